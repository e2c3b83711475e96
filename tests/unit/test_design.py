import itertools
from uuid import uuid4

import pytest

from src.components.design import (
    DesignCatalog,
    apply_palette,
    apply_template,
    canvas_size,
    recolor_element,
    strip_ids,
)
from src.domain.entities import Book, Page, ShapeElement, TextElement


@pytest.fixture
def catalog(rules):
    return DesignCatalog.from_rules(rules.design)


@pytest.fixture
def book():
    pages = [
        Page(page_number=n, elements=[TextElement(id=f"t{n}", text=f"p{n}")]) for n in (1, 2, 3)
    ]
    return Book(name="Designs", owner_user_id=uuid4(), pages=pages)


def test_canvas_size():
    assert canvas_size("A4", "portrait") == (2480, 3508)
    assert canvas_size("A4", "landscape") == (3508, 2480)
    assert canvas_size("unknown", "portrait") == (2480, 3508)


def test_catalog_from_rules(catalog):
    assert {t.id for t in catalog.list_templates()} == {"title-and-photo", "two-notes"}
    assert catalog.get_palette("classic").colors["primary"] == "#1f3a5f"
    assert catalog.get_template("missing") is None


class TestApplyTemplate:
    def test_replaces_page_elements(self, catalog, book):
        template = catalog.get_template("title-and-photo")
        page = apply_template(book.pages[0], template, (2480, 3508))

        assert page.template_id == "title-and-photo"
        assert [e.type for e in page.elements] == ["text", "image"]
        title = page.elements[0]
        assert (title.x, title.y) == (248, 175)
        assert title.width == 1984
        assert title.text == "Title"

    def test_other_pages_untouched(self, catalog, book):
        before = [p.model_dump_json() for p in book.pages]
        apply_template(book.pages[1], catalog.get_template("two-notes"), (2480, 3508))
        assert [p.model_dump_json() for p in book.pages] == before

    def test_fresh_ids(self, catalog, book):
        counter = itertools.count()
        page = apply_template(
            book.pages[0],
            catalog.get_template("two-notes"),
            (2480, 3508),
            id_factory=lambda: f"n{next(counter)}",
        )
        assert [e.id for e in page.elements] == ["n0", "n1"]

    def test_reapply_is_deterministic_modulo_ids(self, catalog, book):
        template = catalog.get_template("two-notes")
        first = apply_template(book.pages[0], template, (2480, 3508))
        second = apply_template(first, template, (2480, 3508))

        assert strip_ids(first.elements) == strip_ids(second.elements)
        assert {e.id for e in first.elements}.isdisjoint({e.id for e in second.elements})

    def test_with_palette(self, catalog, book):
        palette = catalog.get_palette("meadow")
        page = apply_template(
            book.pages[0], catalog.get_template("two-notes"), (2480, 3508), palette=palette
        )
        assert page.elements[0].style == {"fill": "#ffffff", "stroke": "#2f6b3b"}
        assert page.palette_id == "meadow"


class TestApplyPalette:
    def test_recolors_by_role_not_type(self, catalog):
        palette = catalog.get_palette("classic")
        shape = ShapeElement(color_roles={"fill": "accent"})
        text = TextElement(color_roles={"fill": "accent", "font_color": "text"})

        assert recolor_element(shape, palette).style == {"fill": "#d9822b"}
        assert recolor_element(text, palette).style == {"fill": "#d9822b", "font_color": "#1b1b1b"}

    def test_unknown_roles_untouched(self, catalog):
        el = ShapeElement(style={"fill": "#123456"}, color_roles={"fill": "neon"})
        assert recolor_element(el, catalog.get_palette("classic")).style == {"fill": "#123456"}

    def test_background(self, catalog):
        page = Page(page_number=1, background_color="#000000")
        recolored = apply_palette(page, catalog.get_palette("meadow"))
        assert recolored.background_color == "#f4f9f1"
        assert page.background_color == "#000000"

    def test_no_background_role(self, catalog):
        page = Page(page_number=1, background_color="#000000", background_role=None)
        assert apply_palette(page, catalog.get_palette("meadow")).background_color == "#000000"
