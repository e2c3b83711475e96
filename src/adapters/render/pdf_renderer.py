import base64
import binascii
import logging
from collections.abc import Sequence
from io import BytesIO

import matplotlib.figure
import matplotlib.image
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.patches import Ellipse, Rectangle
from matplotlib.transforms import Affine2D

from src.components.design import CANVAS_DPI, canvas_size
from src.domain.entities import Book, Element, ImageElement, Page, ShapeElement, TextElement

logger = logging.getLogger(__name__)

# Canvas units are pixels at CANVAS_DPI; font sizes are stored in the same units
_PT_PER_PX = 72 / CANVAS_DPI


class RenderError(Exception):
    """A page could not be rendered."""


def _decode_data_url(src: str) -> tuple[bytes, str] | None:
    if not src.startswith("data:") or "," not in src:
        return None
    header, payload = src.split(",", 1)
    if ";base64" not in header:
        return None
    fmt = header[5:].split(";")[0].split("/")[-1] or "png"
    try:
        return base64.b64decode(payload, validate=True), fmt
    except (binascii.Error, ValueError):
        return None


class PdfBookRenderer:
    """
    Renders book pages into one multi-page PDF.

    Each page is drawn on a matplotlib figure sized like the page canvas and
    rasterized at the DPI of the requested quality tier.
    """

    def __init__(self, placeholder_color: str = "#d0d0d0"):
        self.placeholder_color = placeholder_color

    def render(self, book: Book, page_numbers: Sequence[int], dpi: int) -> bytes:
        pages = [book.get_page(n) for n in page_numbers]
        missing = [n for n, p in zip(page_numbers, pages, strict=True) if p is None]
        if missing:
            raise RenderError(f"Pages not found in book: {missing}")
        if not pages:
            raise RenderError("No pages to render")

        width, height = canvas_size(book.page_size, book.orientation)
        buf = BytesIO()
        with PdfPages(buf) as pdf:
            for page in pages:
                assert page is not None
                fig = self.render_page(page, width, height)
                pdf.savefig(fig, dpi=dpi)
        data = buf.getvalue()
        buf.close()
        logger.debug("Rendered %d pages of book %s at %d dpi", len(pages), book.id, dpi)
        return data

    def render_page(self, page: Page, width: int, height: int) -> matplotlib.figure.Figure:
        fig = matplotlib.figure.Figure(
            figsize=(width / CANVAS_DPI, height / CANVAS_DPI), dpi=CANVAS_DPI
        )
        FigureCanvasAgg(fig)
        ax = fig.add_axes((0, 0, 1, 1))
        ax.set_xlim(0, width)
        ax.set_ylim(height, 0)
        ax.set_axis_off()
        ax.set_rasterized(True)

        ax.add_patch(Rectangle((0, 0), width, height, facecolor=page.background_color))
        for element in page.elements:
            self._draw(ax, element)
        return fig

    def _transform(self, ax, element: Element):
        cx = element.x + element.width / 2
        cy = element.y + element.height / 2
        return Affine2D().rotate_deg_around(cx, cy, element.rotation) + ax.transData

    def _draw(self, ax, element: Element) -> None:
        if isinstance(element, ShapeElement):
            self._draw_shape(ax, element)
        elif isinstance(element, TextElement):
            self._draw_text(ax, element)
        elif isinstance(element, ImageElement):
            self._draw_image(ax, element)

    def _draw_shape(self, ax, el: ShapeElement) -> None:
        fill = el.style.get("fill", "none")
        stroke = el.style.get("stroke", "#000000")
        transform = self._transform(ax, el)
        if el.shape == "ellipse":
            patch = Ellipse(
                (el.x + el.width / 2, el.y + el.height / 2),
                el.width,
                el.height,
                facecolor=fill,
                edgecolor=stroke,
                transform=transform,
            )
            ax.add_patch(patch)
        elif el.shape == "line":
            (line,) = ax.plot(
                [el.x, el.x + el.width], [el.y, el.y + el.height], color=stroke
            )
            line.set_transform(transform)
        else:
            ax.add_patch(
                Rectangle(
                    (el.x, el.y),
                    el.width,
                    el.height,
                    facecolor=fill,
                    edgecolor=stroke,
                    transform=transform,
                )
            )

    def _draw_text(self, ax, el: TextElement) -> None:
        if fill := el.style.get("fill"):
            ax.add_patch(
                Rectangle(
                    (el.x, el.y),
                    el.width,
                    el.height,
                    facecolor=fill,
                    edgecolor="none",
                    transform=self._transform(ax, el),
                )
            )
        ax.text(
            el.x,
            el.y,
            el.text,
            fontsize=el.font_size * _PT_PER_PX,
            family=el.font_family,
            color=el.style.get("font_color", "#000000"),
            va="top",
            ha="left",
            rotation=-el.rotation,
            wrap=True,
        )

    def _draw_image(self, ax, el: ImageElement) -> None:
        decoded = _decode_data_url(el.src)
        if decoded is not None:
            payload, fmt = decoded
            try:
                pixels = matplotlib.image.imread(BytesIO(payload), format=fmt)
            except (OSError, ValueError, SyntaxError) as e:
                logger.warning("Unreadable image in element %s: %s", el.id, e)
            else:
                ax.imshow(
                    pixels,
                    extent=(el.x, el.x + el.width, el.y + el.height, el.y),
                    transform=self._transform(ax, el),
                )
                return

        # Remote or missing sources render as a placeholder box
        ax.add_patch(
            Rectangle(
                (el.x, el.y),
                el.width,
                el.height,
                facecolor=self.placeholder_color,
                edgecolor=el.style.get("stroke", "#888888"),
                hatch="//",
                transform=self._transform(ax, el),
            )
        )
