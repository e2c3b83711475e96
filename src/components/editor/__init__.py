"""
Editor component - permission-gated document store with undo/redo.
"""

from .component import DocumentStore
from .history import DEFAULT_HISTORY_LIMIT, UndoEntry, UndoHistory
from .host import EditorHost, HostMessage, HostReply, NavigateToPage, OpenDialog, RequestSave
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

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "AccessDenied",
    "AddElement",
    "AddPage",
    "ApplyPalette",
    "ApplyTemplate",
    "BookLoadPort",
    "BookSavePort",
    "Command",
    "CommandRejected",
    "DeleteElement",
    "DeletePage",
    "DispatchResult",
    "DocumentStore",
    "DuplicatePage",
    "EditorHost",
    "HostMessage",
    "HostReply",
    "MoveElement",
    "NavigateToPage",
    "OpenDialog",
    "ReorderPages",
    "ReplaceBook",
    "RequestSave",
    "RoleProviderPort",
    "SetActivePage",
    "SetPageAssignments",
    "UndoEntry",
    "UndoHistory",
    "UpdateElement",
]
