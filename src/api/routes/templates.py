"""Built-in page templates and colour palettes from the design catalog."""

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.deps import get_context
from src.api.schemas import PaletteListResponse, TemplateListResponse
from src.domain.entities import Template
from src.ui.context import ServiceContext

router = APIRouter()


@router.get("", response_model=TemplateListResponse)
def list_templates(ctx: ServiceContext = Depends(get_context)) -> TemplateListResponse:
    return TemplateListResponse(
        version=ctx.rules.project.rules_version, templates=ctx.catalog.list_templates()
    )


# Declared before /{template_id} so the literal path wins
@router.get("/color-palettes", response_model=PaletteListResponse)
def list_palettes(ctx: ServiceContext = Depends(get_context)) -> PaletteListResponse:
    return PaletteListResponse(
        version=ctx.rules.project.rules_version, palettes=ctx.catalog.list_palettes()
    )


@router.get("/{template_id}", response_model=Template)
def get_template(template_id: str, ctx: ServiceContext = Depends(get_context)) -> Template:
    template = ctx.catalog.get_template(template_id)
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": f"Template {template_id} not found"},
        )
    return template
