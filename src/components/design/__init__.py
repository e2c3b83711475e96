"""
Design component - template and palette application for book pages.
"""

from ._impl import (
    CANVAS_DIMS,
    CANVAS_DPI,
    apply_palette,
    apply_template,
    canvas_size,
    clone_blueprint,
    recolor_element,
    strip_ids,
)
from .component import DesignCatalog

__all__ = [
    "CANVAS_DIMS",
    "CANVAS_DPI",
    "DesignCatalog",
    "apply_palette",
    "apply_template",
    "canvas_size",
    "clone_blueprint",
    "recolor_element",
    "strip_ids",
]
