"""
Design catalog - built-in templates and colour palettes.

Catalog entries come from the `design` section of rules.yaml.
"""

from __future__ import annotations

from src.domain.entities import ColorPalette, ElementBlueprint, Template
from src.rules.models import DesignRules


class DesignCatalog:
    """Lookup of templates and palettes by id."""

    def __init__(
        self,
        templates: list[Template] | None = None,
        palettes: list[ColorPalette] | None = None,
    ) -> None:
        self._templates = {t.id: t for t in templates or []}
        self._palettes = {p.id: p for p in palettes or []}

    @classmethod
    def from_rules(cls, rules: DesignRules) -> DesignCatalog:
        templates = [
            Template(
                id=t.id,
                name=t.name,
                elements=[ElementBlueprint.model_validate(e.model_dump()) for e in t.elements],
            )
            for t in rules.templates
        ]
        palettes = [
            ColorPalette(id=p.id, name=p.name, colors=dict(p.colors)) for p in rules.palettes
        ]
        return cls(templates, palettes)

    def get_template(self, template_id: str) -> Template | None:
        return self._templates.get(template_id)

    def get_palette(self, palette_id: str) -> ColorPalette | None:
        return self._palettes.get(palette_id)

    def list_templates(self) -> list[Template]:
        return list(self._templates.values())

    def list_palettes(self) -> list[ColorPalette]:
        return list(self._palettes.values())
