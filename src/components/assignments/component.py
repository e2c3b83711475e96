from uuid import UUID

from src.domain.entities import Book, BookFriend, PageAssignment, User
from src.domain.policy import PolicyEngine

from .models import (
    AssignmentError,
    AssignmentsOutput,
    CollaboratorOutput,
    GetAssignmentsInput,
    GetRosterInput,
    RosterOutput,
    SaveAssignmentsInput,
    SaveAssignmentsOutput,
    UpsertCollaboratorInput,
)
from .ports import BookFriendRepoPort, BookRepoPort


def derive_assigned_pages(book: Book, friend: BookFriend) -> BookFriend:
    """Return friend with assigned_pages taken from the book's page assignments."""
    if friend.book_role != "author":
        return friend.model_copy(update={"assigned_pages": []})
    pages = [p.page_number for p in book.pages if p.assigned_user_id == friend.user_id]
    return friend.model_copy(update={"assigned_pages": pages})


class RoleProvider:
    """Role data of a user for a book. The book owner is implicitly `owner`."""

    def __init__(self, book_repo: BookRepoPort, friend_repo: BookFriendRepoPort):
        self.book_repo = book_repo
        self.friend_repo = friend_repo

    def get_role(self, book_id: UUID, user_id: UUID) -> BookFriend | None:
        book = self.book_repo.get_by_id(book_id)
        if book is None:
            return None
        return self.role_in(book, user_id)

    def role_in(self, book: Book, user_id: UUID) -> BookFriend | None:
        friend = self.friend_repo.get(book.id, user_id)
        if friend is None and book.owner_user_id == user_id:
            friend = BookFriend(
                book_id=book.id,
                user_id=user_id,
                book_role="owner",
                page_access_level="all_pages",
                editor_interaction_level="full_edit_with_settings",
            )
        if friend is None:
            return None
        return derive_assigned_pages(book, friend)


def _can_manage(
    actor: User, book: Book, roles: RoleProvider, policy: PolicyEngine
) -> bool:
    friend = roles.role_in(book, actor.id)
    return policy.can_manage_book(friend.book_role if friend else None, actor.is_admin)


def run_save_assignments(
    inp: SaveAssignmentsInput,
    book_repo: BookRepoPort,
    friend_repo: BookFriendRepoPort,
    policy: PolicyEngine,
) -> SaveAssignmentsOutput:
    """
    Reorder pages and replace their assignments in one step.

    The order of `inp.entries` defines the new page numbers 1..N. Each page
    keeps its elements; only its number and assignee change.
    """
    book = book_repo.get_by_id(inp.book_id)
    if not book:
        return SaveAssignmentsOutput(errors=[AssignmentError("not_found", "Book not found")])

    roles = RoleProvider(book_repo, friend_repo)
    if not _can_manage(inp.actor, book, roles, policy):
        return SaveAssignmentsOutput(
            errors=[AssignmentError("forbidden", "Cannot manage pages of this book")]
        )

    by_id = {p.id: p for p in book.pages}
    ids = [e.page_id for e in inp.entries]
    if len(ids) != len(set(ids)) or set(ids) != set(by_id):
        return SaveAssignmentsOutput(
            errors=[AssignmentError("validation", "Entries must list every page exactly once")]
        )

    members = {f.user_id for f in friend_repo.list_by_book(book.id)} | {book.owner_user_id}
    unknown = [e.user_id for e in inp.entries if e.user_id and e.user_id not in members]
    if unknown:
        return SaveAssignmentsOutput(
            errors=[AssignmentError("validation", f"User {unknown[0]} is not a collaborator")]
        )

    pages = [
        by_id[entry.page_id].model_copy(
            update={"page_number": number, "assigned_user_id": entry.user_id}
        )
        for number, entry in enumerate(inp.entries, start=1)
    ]
    saved = book_repo.save(book.model_copy(update={"pages": pages}))
    return SaveAssignmentsOutput(book=saved, success=True)


def run_get_assignments(
    inp: GetAssignmentsInput,
    book_repo: BookRepoPort,
    friend_repo: BookFriendRepoPort,
) -> AssignmentsOutput:
    book = book_repo.get_by_id(inp.book_id)
    if not book:
        return AssignmentsOutput(errors=[AssignmentError("not_found", "Book not found")])

    roles = RoleProvider(book_repo, friend_repo)
    if roles.role_in(book, inp.actor.id) is None and not inp.actor.is_admin:
        return AssignmentsOutput(errors=[AssignmentError("forbidden", "Not a collaborator")])

    assignments = [
        PageAssignment(page_number=p.page_number, user_id=p.assigned_user_id) for p in book.pages
    ]
    return AssignmentsOutput(assignments=assignments, success=True)


def run_get_roster(
    inp: GetRosterInput,
    book_repo: BookRepoPort,
    friend_repo: BookFriendRepoPort,
) -> RosterOutput:
    book = book_repo.get_by_id(inp.book_id)
    if not book:
        return RosterOutput(errors=[AssignmentError("not_found", "Book not found")])

    roles = RoleProvider(book_repo, friend_repo)
    if roles.role_in(book, inp.actor.id) is None and not inp.actor.is_admin:
        return RosterOutput(errors=[AssignmentError("forbidden", "Not a collaborator")])

    friends = [derive_assigned_pages(book, f) for f in friend_repo.list_by_book(book.id)]
    return RosterOutput(friends=friends, success=True)


def run_upsert_collaborator(
    inp: UpsertCollaboratorInput,
    book_repo: BookRepoPort,
    friend_repo: BookFriendRepoPort,
    policy: PolicyEngine,
) -> CollaboratorOutput:
    book = book_repo.get_by_id(inp.book_id)
    if not book:
        return CollaboratorOutput(errors=[AssignmentError("not_found", "Book not found")])

    roles = RoleProvider(book_repo, friend_repo)
    if not _can_manage(inp.actor, book, roles, policy):
        return CollaboratorOutput(
            errors=[AssignmentError("forbidden", "Cannot manage collaborators")]
        )

    existing = friend_repo.get(book.id, inp.user_id)
    if existing:
        friend = existing.model_copy(
            update={
                "book_role": inp.book_role,
                "page_access_level": inp.page_access_level,
                "editor_interaction_level": inp.editor_interaction_level,
            }
        )
    else:
        friend = BookFriend(
            book_id=book.id,
            user_id=inp.user_id,
            book_role=inp.book_role,
            page_access_level=inp.page_access_level,
            editor_interaction_level=inp.editor_interaction_level,
        )
    saved = friend_repo.upsert(friend)
    return CollaboratorOutput(friend=derive_assigned_pages(book, saved), success=True)
