"""
Assignments component - page order, page assignments and the collaborator roster.

Page assignments are authoritative for which pages an author may edit and for
the page order; saving them renumbers pages 1..N.
"""

from .component import (
    RoleProvider,
    derive_assigned_pages,
    run_get_assignments,
    run_get_roster,
    run_save_assignments,
    run_upsert_collaborator,
)
from .models import (
    AssignmentError,
    AssignmentsOutput,
    CollaboratorOutput,
    GetAssignmentsInput,
    GetRosterInput,
    PageOrderEntry,
    RosterOutput,
    SaveAssignmentsInput,
    SaveAssignmentsOutput,
    UpsertCollaboratorInput,
)
from .ports import BookFriendRepoPort, BookRepoPort

__all__ = [
    # Entry points
    "RoleProvider",
    "derive_assigned_pages",
    "run_get_assignments",
    "run_get_roster",
    "run_save_assignments",
    "run_upsert_collaborator",
    # Input models
    "GetAssignmentsInput",
    "GetRosterInput",
    "PageOrderEntry",
    "SaveAssignmentsInput",
    "UpsertCollaboratorInput",
    # Output models
    "AssignmentError",
    "AssignmentsOutput",
    "CollaboratorOutput",
    "RosterOutput",
    "SaveAssignmentsOutput",
    # Ports
    "BookFriendRepoPort",
    "BookRepoPort",
]
