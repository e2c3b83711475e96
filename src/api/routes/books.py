from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_context, get_current_user, raise_for_errors
from src.api.schemas import (
    AssignmentsResponse,
    BookDetailResponse,
    BookSaveRequest,
    CapabilitiesResponse,
    CollaboratorRequest,
    SaveAssignmentsRequest,
)
from src.components.assignments import (
    GetAssignmentsInput,
    GetRosterInput,
    PageOrderEntry,
    SaveAssignmentsInput,
    UpsertCollaboratorInput,
    run_get_assignments,
    run_get_roster,
    run_save_assignments,
    run_upsert_collaborator,
)
from src.domain.entities import Book, BookFriend, Page, User
from src.domain.policy import EditorCapabilities, resolve_for_friend
from src.ui.context import ServiceContext

router = APIRouter()

# Page fields an author may change on pages they can edit
_CONTENT_FIELDS = ("elements", "background_color", "background_role", "template_id", "palette_id")


def _load_book(ctx: ServiceContext, book_id: UUID) -> Book:
    book = ctx.book_repo.get_by_id(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


def _role_for(ctx: ServiceContext, book: Book, user: User) -> BookFriend | None:
    role = ctx.roles.role_in(book, user.id)
    if role is None and user.is_admin:
        role = BookFriend(
            book_id=book.id,
            user_id=user.id,
            book_role="publisher",
            page_access_level="all_pages",
            editor_interaction_level="full_edit_with_settings",
        )
    return role


def _capabilities_response(caps: EditorCapabilities) -> CapabilitiesResponse:
    return CapabilitiesResponse(
        can_access_editor=caps.can_access_editor,
        can_edit_canvas=caps.can_edit_canvas,
        can_manage_pages=caps.can_manage_pages,
        can_view_settings=caps.can_view_settings,
        visible_pages=list(caps.visible_pages),
        editable_pages=sorted(caps.editable_pages),
        active_page_number=caps.active_page_number,
        forced_page_change=caps.forced_page_change,
        redirect=caps.redirect,
    )


def _merge_editable_pages(
    stored: Book, submitted: list[Page], caps: EditorCapabilities
) -> list[Page]:
    """Apply an author's page edits, rejecting changes outside their editable pages."""
    stored_ids = {p.id for p in stored.pages}
    if any(p.id not in stored_ids for p in submitted):
        raise HTTPException(status_code=403, detail="Page management not allowed")

    by_id = {p.id: p for p in submitted}
    pages = []
    for page in stored.pages:
        incoming = by_id.get(page.id)
        if incoming is None:
            pages.append(page)
            continue
        changes = {f: getattr(incoming, f) for f in _CONTENT_FIELDS}
        unchanged = all(getattr(page, f) == value for f, value in changes.items())
        if unchanged:
            pages.append(page)
            continue
        if not caps.can_edit(page.page_number):
            raise HTTPException(
                status_code=403, detail=f"Page {page.page_number} is not editable"
            )
        pages.append(page.model_copy(update=changes))
    return pages


@router.get("/{book_id}", response_model=BookDetailResponse)
def get_book(
    book_id: UUID,
    current_page: int | None = None,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> BookDetailResponse:
    """Load a book with its roster and the caller's editor capabilities."""
    book = _load_book(ctx, book_id)
    role = _role_for(ctx, book, current_user)
    if role is None:
        raise HTTPException(status_code=403, detail="Not a collaborator")

    caps = resolve_for_friend(role, current_page, book.page_numbers())
    visible = book.model_copy(
        update={"pages": [p for p in book.pages if caps.can_view(p.page_number)]}
    )
    roster = run_get_roster(
        GetRosterInput(actor=current_user, book_id=book_id),
        book_repo=ctx.book_repo,
        friend_repo=ctx.friend_repo,
    )
    return BookDetailResponse(
        book=visible, roster=roster.friends, capabilities=_capabilities_response(caps)
    )


@router.put("/{book_id}", response_model=Book)
def save_book(
    book_id: UUID,
    req: BookSaveRequest,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> Book:
    """Save a whole book. Last write wins; the stored revision is bumped."""
    book = _load_book(ctx, book_id)
    role = _role_for(ctx, book, current_user)
    caps = resolve_for_friend(role, None, book.page_numbers())
    if not caps.can_access_editor:
        raise HTTPException(status_code=403, detail="No editor access")

    if caps.can_manage_pages:
        numbers = [p.page_number for p in req.pages]
        if numbers != list(range(1, len(numbers) + 1)):
            raise HTTPException(status_code=400, detail="Page numbers must be 1..N in order")
        pages = req.pages
    else:
        pages = _merge_editable_pages(book, req.pages, caps)

    updates: dict = {"pages": pages}
    if req.name and caps.can_manage_pages:
        updates["name"] = req.name
    return ctx.book_repo.save(book.model_copy(update=updates))


@router.get("/{book_id}/assignments", response_model=AssignmentsResponse)
def get_assignments(
    book_id: UUID,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> AssignmentsResponse:
    result = run_get_assignments(
        GetAssignmentsInput(actor=current_user, book_id=book_id),
        book_repo=ctx.book_repo,
        friend_repo=ctx.friend_repo,
    )
    raise_for_errors(result.errors)
    return AssignmentsResponse(assignments=result.assignments)


@router.put("/{book_id}/assignments", response_model=Book)
def save_assignments(
    book_id: UUID,
    req: SaveAssignmentsRequest,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> Book:
    """Reorder pages and replace all page assignments."""
    inp = SaveAssignmentsInput(
        actor=current_user,
        book_id=book_id,
        entries=[PageOrderEntry(page_id=e.page_id, user_id=e.user_id) for e in req.entries],
    )
    result = run_save_assignments(
        inp, book_repo=ctx.book_repo, friend_repo=ctx.friend_repo, policy=ctx.policy
    )
    raise_for_errors(result.errors)
    assert result.book is not None
    return result.book


@router.get("/{book_id}/roster", response_model=list[BookFriend])
def get_roster(
    book_id: UUID,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> list[BookFriend]:
    result = run_get_roster(
        GetRosterInput(actor=current_user, book_id=book_id),
        book_repo=ctx.book_repo,
        friend_repo=ctx.friend_repo,
    )
    raise_for_errors(result.errors)
    return result.friends


@router.put("/{book_id}/collaborators/{user_id}", response_model=BookFriend)
def upsert_collaborator(
    book_id: UUID,
    user_id: UUID,
    req: CollaboratorRequest,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> BookFriend:
    inp = UpsertCollaboratorInput(
        actor=current_user,
        book_id=book_id,
        user_id=user_id,
        book_role=req.book_role,
        page_access_level=req.page_access_level,
        editor_interaction_level=req.editor_interaction_level,
    )
    result = run_upsert_collaborator(
        inp, book_repo=ctx.book_repo, friend_repo=ctx.friend_repo, policy=ctx.policy
    )
    raise_for_errors(result.errors)
    assert result.friend is not None
    return result.friend
