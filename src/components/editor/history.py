"""Bounded undo/redo history of book snapshots."""

from __future__ import annotations

from dataclasses import dataclass

from src.domain.entities import Book

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class UndoEntry:
    label: str
    book: Book


class UndoHistory:
    """
    Two stacks of snapshots.

    push() records the state before a forward mutation and clears redo.
    undo()/redo() swap the current state with the top of the other stack and
    return None at the boundaries.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self._limit = limit
        self._undo: list[UndoEntry] = []
        self._redo: list[UndoEntry] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def labels(self) -> list[str]:
        return [entry.label for entry in self._undo]

    def push(self, label: str, before: Book) -> None:
        self._undo.append(UndoEntry(label=label, book=before.model_copy(deep=True)))
        if len(self._undo) > self._limit:
            self._undo.pop(0)
        self._redo.clear()

    def undo(self, current: Book) -> Book | None:
        if not self._undo:
            return None
        entry = self._undo.pop()
        self._redo.append(UndoEntry(label=entry.label, book=current.model_copy(deep=True)))
        return entry.book

    def redo(self, current: Book) -> Book | None:
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._undo.append(UndoEntry(label=entry.label, book=current.model_copy(deep=True)))
        return entry.book

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
