"""
Document store - the permission-gated, undoable editing state of one book.

Invariants:
- Page numbers always form a contiguous 1..N sequence
- Every forward mutation records a snapshot and clears the redo stack
- Undo/redo at the stack boundaries are no-ops
- Commands addressed to a page the user may not see or edit are dropped and
  reported to AccessDenied listeners; they never raise
- Replacing the whole book resets undo/redo history
- Mutations are serialized through one lock, never interleaved
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any
from uuid import UUID, uuid4

from pydantic import TypeAdapter, ValidationError

from src.components.design import apply_palette, apply_template, canvas_size
from src.domain.entities import Book, BookFriend, Element, Page
from src.domain.policy import NO_ACCESS, EditorCapabilities, resolve_for_friend

from .history import DEFAULT_HISTORY_LIMIT, UndoHistory
from .models import (
    AccessDenied,
    AddElement,
    AddPage,
    ApplyPalette,
    ApplyTemplate,
    Command,
    CommandRejected,
    DeleteElement,
    DeletePage,
    DispatchResult,
    DuplicatePage,
    MoveElement,
    ReorderPages,
    ReplaceBook,
    SetActivePage,
    SetPageAssignments,
    UpdateElement,
)
from .ports import BookLoadPort, BookSavePort, RoleProviderPort

logger = logging.getLogger(__name__)

_element_adapter: TypeAdapter[Element] = TypeAdapter(Element)

DeniedListener = Callable[[AccessDenied], None]
ChangeListener = Callable[[], None]

# Commands that change page structure or assignments and need can_manage_pages
_STRUCTURAL = (AddPage, DeletePage, DuplicatePage, ReorderPages, SetPageAssignments)


def _renumber(pages: list[Page]) -> list[Page]:
    """Return pages with page_number reset to 1..N in list order."""
    result = []
    for idx, page in enumerate(pages, start=1):
        if page.page_number != idx:
            page = page.model_copy(update={"page_number": idx})
        result.append(page)
    return result


def _replace_page(book: Book, page: Page) -> Book:
    pages = [page if p.page_number == page.page_number else p for p in book.pages]
    return book.model_copy(update={"pages": pages})


class DocumentStore:
    """
    In-memory Book aggregate with bounded undo/redo.

    The canvas renderer reads `book`, `active_page` and `capabilities`; it
    must not mutate the returned models and instead dispatches commands.
    """

    def __init__(
        self,
        user_id: UUID | None,
        *,
        role_provider: RoleProviderPort | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._user_id = user_id
        self._role_provider = role_provider
        self._id_factory = id_factory
        self._history = UndoHistory(history_limit)
        self._lock = threading.RLock()

        self._book: Book | None = None
        self._roster: list[BookFriend] = []
        self._active_page: int | None = None
        self._capabilities: EditorCapabilities = NO_ACCESS
        self._dirty = False
        self._saved_revision = 0

        self._denied_listeners: list[DeniedListener] = []
        self._change_listeners: list[ChangeListener] = []

        self._handlers: dict[type, Callable[[Book, Any], Book | None]] = {
            AddPage: self._add_page,
            DeletePage: self._delete_page,
            DuplicatePage: self._duplicate_page,
            ReorderPages: self._reorder_pages,
            AddElement: self._add_element,
            UpdateElement: self._update_element,
            DeleteElement: self._delete_element,
            MoveElement: self._move_element,
            ApplyTemplate: self._apply_template,
            ApplyPalette: self._apply_palette,
            SetPageAssignments: self._set_assignments,
        }

    # --- Read contract ---

    @property
    def book(self) -> Book | None:
        return self._book

    @property
    def roster(self) -> list[BookFriend]:
        return list(self._roster)

    @property
    def capabilities(self) -> EditorCapabilities:
        return self._capabilities

    @property
    def active_page_number(self) -> int | None:
        return self._active_page

    @property
    def active_page_index(self) -> int | None:
        if self._book is None or self._active_page is None:
            return None
        for idx, page in enumerate(self._book.pages):
            if page.page_number == self._active_page:
                return idx
        return None

    @property
    def active_page(self) -> Page | None:
        if self._book is None or self._active_page is None:
            return None
        return self._book.get_page(self._active_page)

    @property
    def visible_pages(self) -> list[Page]:
        if self._book is None:
            return []
        return [p for p in self._book.pages if self._capabilities.can_view(p.page_number)]

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def saved_revision(self) -> int:
        return self._saved_revision

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def history(self) -> UndoHistory:
        return self._history

    # --- Subscriptions ---

    def subscribe_denied(self, listener: DeniedListener) -> None:
        self._denied_listeners.append(listener)

    def subscribe_changes(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    # --- Loading / saving ---

    def load(self, loader: BookLoadPort, book_id: UUID) -> bool:
        loaded = loader.load(book_id)
        if loaded is None:
            logger.warning("Book %s could not be loaded", book_id)
            return False
        book, roster = loaded
        self.dispatch(ReplaceBook(book=book, roster=tuple(roster)))
        return True

    def save(self, saver: BookSavePort) -> bool:
        """
        Hand the current book to the save collaborator.

        On a transient IO failure the store stays dirty and the undo history
        is kept, so nothing is lost; retrying is up to the caller.
        """
        with self._lock:
            if self._book is None:
                return False
            try:
                stored = saver.save(self._book)
            except OSError as e:
                logger.warning("Saving book %s failed: %s", self._book.id, e)
                return False
            self._saved_revision = stored.revision
            self._dirty = False
        self._notify_changes()
        return True

    # --- Dispatch ---

    def dispatch(self, command: Command) -> DispatchResult:
        with self._lock:
            if isinstance(command, ReplaceBook):
                self._replace_book(command)
                result = DispatchResult(applied=True)
            elif isinstance(command, SetActivePage):
                result = self._set_active_page(command.page_number)
            elif self._book is None:
                result = DispatchResult(applied=False, message="No book loaded")
            else:
                result = self._apply_forward(command)

        if result.denied is not None:
            for listener in list(self._denied_listeners):
                listener(result.denied)
        if result.applied:
            self._notify_changes()
        return result

    def undo(self) -> bool:
        with self._lock:
            if self._book is None:
                return False
            previous = self._history.undo(self._book)
            if previous is None:
                return False
            self._book = previous
            self._dirty = True
            self._refresh_capabilities(self._active_page)
        self._notify_changes()
        return True

    def redo(self) -> bool:
        with self._lock:
            if self._book is None:
                return False
            following = self._history.redo(self._book)
            if following is None:
                return False
            self._book = following
            self._dirty = True
            self._refresh_capabilities(self._active_page)
        self._notify_changes()
        return True

    # --- Internals ---

    def _notify_changes(self) -> None:
        for listener in list(self._change_listeners):
            listener()

    def _current_role(self) -> BookFriend | None:
        if self._book is None or self._user_id is None:
            return None

        friend: BookFriend | None = None
        if self._role_provider is not None:
            friend = self._role_provider.get_role(self._book.id, self._user_id)
        if friend is None:
            friend = next((f for f in self._roster if f.user_id == self._user_id), None)
        if friend is None and self._book.owner_user_id == self._user_id:
            friend = BookFriend(
                book_id=self._book.id,
                user_id=self._user_id,
                book_role="owner",
                page_access_level="all_pages",
                editor_interaction_level="full_edit_with_settings",
            )
        if friend is None:
            return None

        # Page assignments are authoritative for assigned_pages
        assigned = [
            p.page_number for p in self._book.pages if p.assigned_user_id == self._user_id
        ]
        return friend.model_copy(update={"assigned_pages": assigned})

    def _refresh_capabilities(self, current: int | None) -> None:
        if self._book is None:
            self._capabilities = NO_ACCESS
            self._active_page = None
            return
        caps = resolve_for_friend(self._current_role(), current, self._book.page_numbers())
        self._capabilities = caps
        self._active_page = caps.active_page_number
        if caps.forced_page_change and current is not None:
            logger.debug("Active page %s not visible, moved to %s", current, self._active_page)

    def _replace_book(self, command: ReplaceBook) -> None:
        self._book = command.book.model_copy(deep=True)
        self._roster = list(command.roster)
        self._history.clear()
        self._dirty = False
        self._saved_revision = command.book.revision
        first = self._book.pages[0].page_number if self._book.pages else None
        keep = self._active_page if self._active_page in self._book.page_numbers() else first
        self._refresh_capabilities(keep)

    def _set_active_page(self, page_number: int) -> DispatchResult:
        if self._book is None:
            return DispatchResult(applied=False, message="No book loaded")
        self._refresh_capabilities(page_number)
        if self._capabilities.forced_page_change:
            denied = AccessDenied(
                command="SetActivePage",
                page_number=page_number,
                reason=f"Page {page_number} is not visible; showing {self._active_page}",
            )
            return DispatchResult(applied=True, denied=denied)
        return DispatchResult(applied=True)

    def _check_access(self, command: Command) -> AccessDenied | None:
        caps = self._capabilities
        name = type(command).__name__

        if not caps.can_access_editor:
            return AccessDenied(name, None, "No editor access")

        if isinstance(command, _STRUCTURAL):
            if not caps.can_manage_pages:
                return AccessDenied(name, None, "Page management not allowed")
            return None

        page_number: int | None = getattr(command, "page_number", None)
        if page_number is None:
            # Book-wide palette only touches pages the user may edit
            return None
        if not caps.can_view(page_number):
            return AccessDenied(name, page_number, f"Page {page_number} is not visible")
        if not caps.can_edit(page_number):
            return AccessDenied(name, page_number, f"Page {page_number} is read-only")
        return None

    def _apply_forward(self, command: Command) -> DispatchResult:
        assert self._book is not None
        denied = self._check_access(command)
        if denied is not None:
            logger.info("Dropped %s: %s", denied.command, denied.reason)
            return DispatchResult(applied=False, denied=denied)

        handler = self._handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Unknown command type: {type(command)}")

        before = self._book
        try:
            after = handler(before, command)
        except (ValidationError, CommandRejected) as e:
            logger.info("Rejected %s: %s", type(command).__name__, e)
            return DispatchResult(applied=False, message=str(e))

        if after is None:
            return DispatchResult(applied=False, message="Nothing to change")

        self._history.push(type(command).__name__, before)
        self._book = after
        self._dirty = True
        if isinstance(command, _STRUCTURAL):
            self._refresh_capabilities(self._active_page)
        return DispatchResult(applied=True)

    def _new_element_id(self) -> str:
        return self._id_factory() if self._id_factory else str(uuid4())

    # --- Handlers (one per command variant) ---

    def _add_page(self, book: Book, cmd: AddPage) -> Book | None:
        new_page = Page(page_number=book.page_count + 1, page_type=cmd.page_type)
        pages = list(book.pages)
        if cmd.after_page is None or cmd.after_page >= len(pages):
            pages.append(new_page)
        else:
            pages.insert(max(cmd.after_page, 0), new_page)
        return book.model_copy(update={"pages": _renumber(pages)})

    def _delete_page(self, book: Book, cmd: DeletePage) -> Book | None:
        if book.get_page(cmd.page_number) is None or book.page_count <= 1:
            return None
        pages = [p for p in book.pages if p.page_number != cmd.page_number]
        return book.model_copy(update={"pages": _renumber(pages)})

    def _duplicate_page(self, book: Book, cmd: DuplicatePage) -> Book | None:
        source = book.get_page(cmd.page_number)
        if source is None:
            return None
        copy = source.model_copy(
            update={
                "id": uuid4(),
                "assigned_user_id": None,
                "elements": [
                    el.model_copy(update={"id": self._new_element_id()}, deep=True)
                    for el in source.elements
                ],
            },
            deep=True,
        )
        pages = list(book.pages)
        pages.insert(cmd.page_number, copy)
        return book.model_copy(update={"pages": _renumber(pages)})

    def _reorder_pages(self, book: Book, cmd: ReorderPages) -> Book | None:
        if sorted(cmd.order) != book.page_numbers():
            return None
        if list(cmd.order) == book.page_numbers():
            return None
        by_number = {p.page_number: p for p in book.pages}
        pages = [by_number[n] for n in cmd.order]
        return book.model_copy(update={"pages": _renumber(pages)})

    def _add_element(self, book: Book, cmd: AddElement) -> Book | None:
        page = book.get_page(cmd.page_number)
        if page is None:
            return None
        if page.find_element(cmd.element.id) is not None:
            raise CommandRejected(
                f"Element {cmd.element.id} already exists on page {cmd.page_number}"
            )
        element = cmd.element.model_copy(deep=True)
        updated = page.model_copy(update={"elements": [*page.elements, element]})
        return _replace_page(book, updated)

    def _update_element(self, book: Book, cmd: UpdateElement) -> Book | None:
        page = book.get_page(cmd.page_number)
        if page is None:
            return None
        idx = page.find_element(cmd.element_id)
        if idx is None:
            return None
        current = page.elements[idx]
        changes = {k: v for k, v in cmd.changes.items() if k not in ("id", "type")}
        if not changes:
            return None
        data = current.model_dump()
        data.update(changes)
        element = _element_adapter.validate_python(data)
        elements = list(page.elements)
        elements[idx] = element
        return _replace_page(book, page.model_copy(update={"elements": elements}))

    def _delete_element(self, book: Book, cmd: DeleteElement) -> Book | None:
        page = book.get_page(cmd.page_number)
        if page is None or page.find_element(cmd.element_id) is None:
            return None
        elements = [el for el in page.elements if el.id != cmd.element_id]
        return _replace_page(book, page.model_copy(update={"elements": elements}))

    def _move_element(self, book: Book, cmd: MoveElement) -> Book | None:
        page = book.get_page(cmd.page_number)
        if page is None:
            return None
        idx = page.find_element(cmd.element_id)
        if idx is None:
            return None
        elements = list(page.elements)
        element = elements.pop(idx)
        if cmd.direction == "front":
            target = len(elements)
        elif cmd.direction == "back":
            target = 0
        elif cmd.direction == "up":
            target = min(idx + 1, len(elements))
        else:
            target = max(idx - 1, 0)
        if target == idx:
            return None
        elements.insert(target, element)
        return _replace_page(book, page.model_copy(update={"elements": elements}))

    def _apply_template(self, book: Book, cmd: ApplyTemplate) -> Book | None:
        page = book.get_page(cmd.page_number)
        if page is None:
            return None
        canvas = canvas_size(book.page_size, book.orientation)
        updated = apply_template(page, cmd.template, canvas, self._new_element_id, cmd.palette)
        return _replace_page(book, updated)

    def _apply_palette(self, book: Book, cmd: ApplyPalette) -> Book | None:
        if cmd.page_number is not None:
            page = book.get_page(cmd.page_number)
            if page is None:
                return None
            return _replace_page(book, apply_palette(page, cmd.palette))

        targets = [p for p in book.pages if self._capabilities.can_edit(p.page_number)]
        if not targets:
            return None
        for page in targets:
            book = _replace_page(book, apply_palette(page, cmd.palette))
        return book

    def _set_assignments(self, book: Book, cmd: SetPageAssignments) -> Book | None:
        mapping = {a.page_number: a.user_id for a in cmd.assignments}
        if not mapping:
            return None
        pages = [
            p.model_copy(update={"assigned_user_id": mapping[p.page_number]})
            if p.page_number in mapping
            else p
            for p in book.pages
        ]
        return book.model_copy(update={"pages": pages})
