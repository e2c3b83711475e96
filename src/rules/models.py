from typing import Any

from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class EditorRules(BaseModel):
    history_limit: int = Field(default=50, ge=1)
    default_page_size: str = "A4"
    default_orientation: str = "portrait"


class ExportRules(BaseModel):
    quality_dpi: dict[str, int]
    quality_roles: dict[str, list[str]]
    admin_only_qualities: list[str]
    max_in_flight_per_user: int = 3
    max_queue_size: int = 50
    max_concurrent: int = 2
    owner_priority: int = 10
    default_priority: int = 5
    poll_interval_seconds: float = 2.0
    recent_window_hours: int = 24
    error_message_max_length: int = 1000


class PaletteRule(BaseModel):
    id: str
    name: str
    colors: dict[str, str]


class BlueprintRule(BaseModel):
    type: str
    rel_x: float
    rel_y: float
    rel_width: float
    rel_height: float
    props: dict[str, Any] = Field(default_factory=dict)
    color_roles: dict[str, str] = Field(default_factory=dict)


class TemplateRule(BaseModel):
    id: str
    name: str
    elements: list[BlueprintRule]


class DesignRules(BaseModel):
    palettes: list[PaletteRule] = Field(default_factory=list)
    templates: list[TemplateRule] = Field(default_factory=list)


class OpsRules(BaseModel):
    data_dir_required: bool
    required_env: list[str]


class Rules(BaseModel):
    project: ProjectRules
    editor: EditorRules
    exports: ExportRules
    design: DesignRules
    ops: OpsRules
