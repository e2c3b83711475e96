from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from src.domain.entities import (
    Book,
    BookFriend,
    BookRole,
    ColorPalette,
    EditorInteractionLevel,
    ExportQuality,
    ExportStatus,
    Page,
    PageAccessLevel,
    PageAssignment,
    PageRange,
    Template,
)


# --- Books ---
class CapabilitiesResponse(BaseModel):
    can_access_editor: bool
    can_edit_canvas: bool
    can_manage_pages: bool
    can_view_settings: bool
    visible_pages: list[int]
    editable_pages: list[int]
    active_page_number: int | None = None
    forced_page_change: bool = False
    redirect: str | None = None


class BookDetailResponse(BaseModel):
    book: Book
    roster: list[BookFriend]
    capabilities: CapabilitiesResponse


class BookSaveRequest(BaseModel):
    name: str | None = None
    pages: list[Page]


# --- Assignments ---
class AssignmentEntryModel(BaseModel):
    page_id: UUID
    user_id: UUID | None = None


class SaveAssignmentsRequest(BaseModel):
    entries: list[AssignmentEntryModel]


class AssignmentsResponse(BaseModel):
    assignments: list[PageAssignment]


class CollaboratorRequest(BaseModel):
    book_role: BookRole = "author"
    page_access_level: PageAccessLevel = "own_page"
    editor_interaction_level: EditorInteractionLevel = "full_edit"


# --- Exports ---
class CreateExportRequest(BaseModel):
    book_id: UUID
    quality: ExportQuality = "medium"
    page_range: PageRange = "all"
    start_page: int | None = Field(default=None, ge=1)
    end_page: int | None = Field(default=None, ge=1)
    current_page_number: int | None = Field(default=None, ge=1)


class ExportJobResponse(BaseModel):
    id: UUID
    book_id: UUID
    user_id: UUID
    status: ExportStatus
    quality: ExportQuality
    page_range: PageRange
    start_page: int | None = None
    end_page: int | None = None
    current_page_number: int | None = None
    priority: int
    file_size: int | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class QueueStatusResponse(BaseModel):
    queue_length: int
    processing: int
    max_concurrent: int
    max_queue_size: int
    active_exports: list[ExportJobResponse] = Field(default_factory=list)


# --- Design catalog ---
class TemplateListResponse(BaseModel):
    version: str
    templates: list[Template]


class PaletteListResponse(BaseModel):
    version: str
    palettes: list[ColorPalette]
