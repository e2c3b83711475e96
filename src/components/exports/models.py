"""
Exports component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from src.domain.entities import ExportJob, ExportQuality, PageRange, User

# --- Validation Error ---

ErrorCode = str  # forbidden | validation | rate_limited | queue_full | not_found | not_ready


@dataclass(frozen=True)
class ExportValidationError:
    """Export validation error."""

    code: ErrorCode
    message: str
    field: str | None = None


# --- Input Models ---


@dataclass(frozen=True)
class CreateExportInput:
    """Input for requesting a PDF export of a book."""

    actor: User
    book_id: UUID
    quality: ExportQuality = "medium"
    page_range: PageRange = "all"
    start_page: int | None = None
    end_page: int | None = None
    current_page_number: int | None = None


@dataclass(frozen=True)
class ListExportsInput:
    actor: User
    book_id: UUID


@dataclass(frozen=True)
class GetExportInput:
    actor: User
    export_id: UUID


@dataclass(frozen=True)
class RecentExportsInput:
    actor: User


@dataclass(frozen=True)
class DownloadExportInput:
    actor: User
    export_id: UUID


@dataclass(frozen=True)
class DeleteExportInput:
    actor: User
    export_id: UUID


@dataclass(frozen=True)
class QueueStatusInput:
    actor: User


# --- Output Models ---


@dataclass(frozen=True)
class ExportOutput:
    """Output for create/get operations."""

    job: ExportJob | None
    errors: list[ExportValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class ExportListOutput:
    jobs: tuple[ExportJob, ...]
    errors: list[ExportValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class DownloadOutput:
    content: bytes | None
    filename: str | None = None
    errors: list[ExportValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class DeleteOutput:
    deleted: bool
    errors: list[ExportValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class QueueStatusOutput:
    """
    Snapshot of the export queue.

    `active` holds the in-flight jobs the actor may see: their own, or every
    job for an admin.
    """

    queued: int
    processing: int
    max_concurrent: int
    max_queue_size: int
    active: tuple[ExportJob, ...] = ()
