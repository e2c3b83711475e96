"""
Template and palette application.

Deterministic transforms that populate or restyle the elements of a single
page. Both functions return a NEW Page and never touch other pages.

Key behaviors:
- Template: every blueprint is cloned with a freshly generated id and placed
  using its relative geometry scaled to the page canvas
- Re-applying the same template yields the same elements (ids aside)
- Palette: style fields are recoloured by semantic role, never by element type
- Fields without a known role are left untouched
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from uuid import uuid4

from pydantic import TypeAdapter

from src.domain.entities import (
    ColorPalette,
    Element,
    ElementBlueprint,
    Orientation,
    Page,
    PageSize,
    Template,
)

# Canvas size in pixels at 300 DPI
CANVAS_DIMS: dict[str, tuple[int, int]] = {
    "A4": (2480, 3508),
    "A5": (1748, 2480),
    "A6": (1240, 1748),
    "A3": (3508, 4961),
    "Letter": (2550, 3300),
    "Square": (2480, 2480),
}

CANVAS_DPI = 300

_element_adapter: TypeAdapter[Element] = TypeAdapter(Element)


def canvas_size(page_size: PageSize | str, orientation: Orientation | str) -> tuple[int, int]:
    """Canvas (width, height) for a page size, swapped for landscape."""
    width, height = CANVAS_DIMS.get(page_size, CANVAS_DIMS["A4"])
    if orientation == "landscape":
        return height, width
    return width, height


def _new_id() -> str:
    return str(uuid4())


def clone_blueprint(
    blueprint: ElementBlueprint,
    canvas: tuple[int, int],
    element_id: str,
) -> Element:
    """Materialise one blueprint as a concrete element on a canvas."""
    width, height = canvas
    data: dict[str, Any] = dict(blueprint.props)
    data.update(
        {
            "id": element_id,
            "type": blueprint.type,
            "x": round(blueprint.rel_x * width),
            "y": round(blueprint.rel_y * height),
            "width": round(blueprint.rel_width * width),
            "height": round(blueprint.rel_height * height),
            "color_roles": dict(blueprint.color_roles),
        }
    )
    return _element_adapter.validate_python(data)


def apply_template(
    page: Page,
    template: Template,
    canvas: tuple[int, int],
    id_factory: Callable[[], str] | None = None,
    palette: ColorPalette | None = None,
) -> Page:
    """
    Replace the page's elements with fresh clones of the template blueprints.

    Manual edits made since the previous application are discarded. When a
    palette is given the new elements are coloured with it straight away.
    """
    make_id = id_factory or _new_id
    elements = [clone_blueprint(bp, canvas, make_id()) for bp in template.elements]
    result = page.model_copy(
        update={"elements": elements, "template_id": template.id},
        deep=True,
    )
    if palette is not None:
        result = apply_palette(result, palette)
    return result


def recolor_element(element: Element, palette: ColorPalette) -> Element:
    """Return a copy of element with role-bound style fields recoloured."""
    changes = {
        style_field: palette.colors[role]
        for style_field, role in element.color_roles.items()
        if role in palette.colors
    }
    if not changes:
        return element.model_copy(deep=True)
    style = dict(element.style)
    style.update(changes)
    return element.model_copy(update={"style": style}, deep=True)


def apply_palette(page: Page, palette: ColorPalette) -> Page:
    """Recolour every element (and the background) of one page by role."""
    updates: dict[str, Any] = {
        "elements": [recolor_element(el, palette) for el in page.elements],
        "palette_id": palette.id,
    }
    if page.background_role and page.background_role in palette.colors:
        updates["background_color"] = palette.colors[page.background_role]
    return page.model_copy(update=updates, deep=True)


def strip_ids(elements: list[Element]) -> list[dict[str, Any]]:
    """Element payloads without ids, for comparing template results."""
    return [el.model_dump(exclude={"id"}) for el in elements]
