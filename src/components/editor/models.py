"""
Editor component commands and results.

Every mutation of the document store is one of these tagged variants; the
store keeps one handler per variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from src.domain.entities import (
    Book,
    BookFriend,
    ColorPalette,
    Element,
    PageAssignment,
    PageType,
    Template,
)

# --- Commands ---


@dataclass(frozen=True)
class AddPage:
    """Insert a new empty page after `after_page` (or at the end)."""

    after_page: int | None = None
    page_type: PageType = "content"


@dataclass(frozen=True)
class DeletePage:
    page_number: int


@dataclass(frozen=True)
class DuplicatePage:
    page_number: int


@dataclass(frozen=True)
class ReorderPages:
    """New order expressed as the current page numbers in their new sequence."""

    order: tuple[int, ...]


@dataclass(frozen=True)
class AddElement:
    page_number: int
    element: Element


@dataclass(frozen=True)
class UpdateElement:
    page_number: int
    element_id: str
    changes: dict[str, Any]


@dataclass(frozen=True)
class DeleteElement:
    page_number: int
    element_id: str


@dataclass(frozen=True)
class MoveElement:
    """Change stacking order of one element."""

    page_number: int
    element_id: str
    direction: Literal["front", "back", "up", "down"]


@dataclass(frozen=True)
class SetActivePage:
    page_number: int


@dataclass(frozen=True)
class ApplyTemplate:
    page_number: int
    template: Template
    palette: ColorPalette | None = None


@dataclass(frozen=True)
class ApplyPalette:
    """Recolour one page, or every page the user may edit when page_number is None."""

    palette: ColorPalette
    page_number: int | None = None


@dataclass(frozen=True)
class SetPageAssignments:
    assignments: tuple[PageAssignment, ...]


@dataclass(frozen=True)
class ReplaceBook:
    """Load a whole book (initial load or server-confirmed reorder)."""

    book: Book
    roster: tuple[BookFriend, ...] = ()


Command = (
    AddPage
    | DeletePage
    | DuplicatePage
    | ReorderPages
    | AddElement
    | UpdateElement
    | DeleteElement
    | MoveElement
    | SetActivePage
    | ApplyTemplate
    | ApplyPalette
    | SetPageAssignments
    | ReplaceBook
)

# --- Signals ---


class CommandRejected(Exception):
    """A handler refused a command whose payload conflicts with the book."""


@dataclass(frozen=True)
class AccessDenied:
    """Raised to listeners when a command was dropped by the permission check."""

    command: str
    page_number: int | None
    reason: str


# --- Results ---


@dataclass(frozen=True)
class DispatchResult:
    applied: bool
    denied: AccessDenied | None = None
    message: str = ""
