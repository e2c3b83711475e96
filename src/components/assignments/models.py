from dataclasses import dataclass, field
from uuid import UUID

from src.domain.entities import (
    Book,
    BookFriend,
    BookRole,
    EditorInteractionLevel,
    PageAccessLevel,
    PageAssignment,
    User,
)


@dataclass(frozen=True)
class AssignmentError:
    code: str
    message: str


@dataclass(frozen=True)
class PageOrderEntry:
    """One row of the assignment screen: a page and who it is assigned to."""

    page_id: UUID
    user_id: UUID | None = None


@dataclass
class SaveAssignmentsInput:
    actor: User
    book_id: UUID
    entries: list[PageOrderEntry]


@dataclass
class GetAssignmentsInput:
    actor: User
    book_id: UUID


@dataclass
class GetRosterInput:
    actor: User
    book_id: UUID


@dataclass
class UpsertCollaboratorInput:
    actor: User
    book_id: UUID
    user_id: UUID
    book_role: BookRole = "author"
    page_access_level: PageAccessLevel = "own_page"
    editor_interaction_level: EditorInteractionLevel = "full_edit"


@dataclass
class SaveAssignmentsOutput:
    book: Book | None = None
    errors: list[AssignmentError] = field(default_factory=list)
    success: bool = False


@dataclass
class AssignmentsOutput:
    assignments: list[PageAssignment] = field(default_factory=list)
    errors: list[AssignmentError] = field(default_factory=list)
    success: bool = False


@dataclass
class RosterOutput:
    friends: list[BookFriend] = field(default_factory=list)
    errors: list[AssignmentError] = field(default_factory=list)
    success: bool = False


@dataclass
class CollaboratorOutput:
    friend: BookFriend | None = None
    errors: list[AssignmentError] = field(default_factory=list)
    success: bool = False
