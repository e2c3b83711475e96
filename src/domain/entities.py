from datetime import UTC, datetime
from typing import Annotated, Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(UTC)


def _element_id() -> str:
    return str(uuid4())


# --- Enums / Literals ---
SiteRole = Literal["admin", "user"]
BookRole = Literal["owner", "publisher", "author"]
PageAccessLevel = Literal["all_pages", "own_page", "form_only"]
EditorInteractionLevel = Literal[
    "full_edit_with_settings", "full_edit", "answer_only", "form_only", "no_access"
]
PageSize = Literal["A4", "A5", "A6", "A3", "Letter", "Square"]
Orientation = Literal["portrait", "landscape"]
PageType = Literal["content", "front-cover", "back-cover"]
ShapeKind = Literal["rect", "ellipse", "line"]

ExportStatus = Literal["pending", "processing", "completed", "failed"]
ExportQuality = Literal["preview", "medium", "printing", "excellent"]
PageRange = Literal["all", "range", "current"]

# --- Users (identity is owned by the auth collaborator) ---


class User(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    display_name: str
    roles: list[SiteRole] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


# --- Elements ---


class ElementBase(BaseModel):
    id: str = Field(default_factory=_element_id)
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 100
    rotation: float = 0
    # Concrete colours keyed by style field (fill, stroke, font_color, ...)
    style: dict[str, str] = Field(default_factory=dict)
    # Style field -> semantic palette role (background, primary, text, ...)
    color_roles: dict[str, str] = Field(default_factory=dict)


class TextElement(ElementBase):
    type: Literal["text"] = "text"
    text: str = ""
    font_family: str = "DejaVu Sans"
    font_size: float = 48


class ImageElement(ElementBase):
    type: Literal["image"] = "image"
    src: str = ""


class ShapeElement(ElementBase):
    type: Literal["shape"] = "shape"
    shape: ShapeKind = "rect"


Element = Annotated[TextElement | ImageElement | ShapeElement, Field(discriminator="type")]

# --- Book aggregate ---


class Page(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    page_number: int = Field(ge=1)
    elements: list[Element] = Field(default_factory=list)
    assigned_user_id: UUID | None = None
    page_type: PageType = "content"
    background_color: str = "#ffffff"
    background_role: str | None = "background"
    template_id: str | None = None
    palette_id: str | None = None

    def find_element(self, element_id: str) -> int | None:
        for idx, element in enumerate(self.elements):
            if element.id == element_id:
                return idx
        return None


class Book(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    page_size: PageSize = "A4"
    orientation: Orientation = "portrait"
    owner_user_id: UUID
    pages: list[Page] = Field(default_factory=list)
    revision: int = 0
    updated_at: datetime = Field(default_factory=_now)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page_numbers(self) -> list[int]:
        return [p.page_number for p in self.pages]

    def get_page(self, page_number: int) -> Page | None:
        for page in self.pages:
            if page.page_number == page_number:
                return page
        return None


# --- Collaboration ---


class BookFriend(BaseModel):
    """A user's role-bound relationship to a book (one per book and user)."""

    book_id: UUID
    user_id: UUID
    book_role: BookRole = "author"
    page_access_level: PageAccessLevel = "own_page"
    editor_interaction_level: EditorInteractionLevel = "full_edit"
    # Derived from page assignments, only meaningful for authors
    assigned_pages: list[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)


class PageAssignment(BaseModel):
    page_number: int = Field(ge=1)
    user_id: UUID | None = None


# --- Design ---


class ElementBlueprint(BaseModel):
    type: Literal["text", "image", "shape"]
    rel_x: float = Field(ge=0, le=1)
    rel_y: float = Field(ge=0, le=1)
    rel_width: float = Field(ge=0, le=1)
    rel_height: float = Field(ge=0, le=1)
    props: dict[str, Any] = Field(default_factory=dict)
    color_roles: dict[str, str] = Field(default_factory=dict)


class Template(BaseModel):
    id: str
    name: str
    elements: list[ElementBlueprint] = Field(default_factory=list)


class ColorPalette(BaseModel):
    id: str
    name: str
    colors: dict[str, str]


# --- Export ---


class ExportJob(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    book_id: UUID
    user_id: UUID
    status: ExportStatus = "pending"
    quality: ExportQuality = "medium"
    page_range: PageRange = "all"
    start_page: int | None = None
    end_page: int | None = None
    current_page_number: int | None = None
    priority: int = 0
    file_path: str | None = None
    file_size: int | None = None
    error_message: str | None = None
    claimed_by: str | None = None
    created_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None

    @property
    def in_flight(self) -> bool:
        return self.status in ("pending", "processing")
