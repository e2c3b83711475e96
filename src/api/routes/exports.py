from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from src.api.deps import get_context, get_current_user, raise_for_errors
from src.api.schemas import CreateExportRequest, ExportJobResponse, QueueStatusResponse
from src.components.exports import (
    CreateExportInput,
    DeleteExportInput,
    DownloadExportInput,
    GetExportInput,
    ListExportsInput,
    QueueStatusInput,
    RecentExportsInput,
    run_create,
    run_delete,
    run_download,
    run_get,
    run_list,
    run_queue_status,
    run_recent,
)
from src.domain.entities import ExportJob, User
from src.ui.context import ServiceContext

router = APIRouter()


def _to_response(job: ExportJob) -> ExportJobResponse:
    return ExportJobResponse.model_validate(job.model_dump())


@router.post("", response_model=ExportJobResponse, status_code=status.HTTP_201_CREATED)
def create_export(
    req: CreateExportRequest,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> ExportJobResponse:
    """Queue a PDF export. Nothing is queued when validation fails."""
    inp = CreateExportInput(
        actor=current_user,
        book_id=req.book_id,
        quality=req.quality,
        page_range=req.page_range,
        start_page=req.start_page,
        end_page=req.end_page,
        current_page_number=req.current_page_number,
    )
    result = run_create(inp, **ctx.export_ports())
    raise_for_errors(result.errors)
    assert result.job is not None
    return _to_response(result.job)


@router.get("/book/{book_id}", response_model=list[ExportJobResponse])
def list_book_exports(
    book_id: UUID,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> list[ExportJobResponse]:
    """Exports of a book, newest first."""
    result = run_list(ListExportsInput(actor=current_user, book_id=book_id), **ctx.export_ports())
    raise_for_errors(result.errors)
    return [_to_response(j) for j in result.jobs]


@router.get("/recent", response_model=list[ExportJobResponse])
def list_recent_exports(
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> list[ExportJobResponse]:
    """The caller's exports completed within the recent window."""
    result = run_recent(RecentExportsInput(actor=current_user), **ctx.export_ports())
    return [_to_response(j) for j in result.jobs]


@router.get("/queue/status", response_model=QueueStatusResponse)
def queue_status(
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> QueueStatusResponse:
    """Queue length and in-flight jobs. Admins see every active job."""
    result = run_queue_status(QueueStatusInput(actor=current_user), **ctx.export_ports())
    return QueueStatusResponse(
        queue_length=result.queued,
        processing=result.processing,
        max_concurrent=result.max_concurrent,
        max_queue_size=result.max_queue_size,
        active_exports=[_to_response(j) for j in result.active],
    )


@router.get("/{export_id}", response_model=ExportJobResponse)
def get_export(
    export_id: UUID,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> ExportJobResponse:
    result = run_get(GetExportInput(actor=current_user, export_id=export_id), **ctx.export_ports())
    raise_for_errors(result.errors)
    assert result.job is not None
    return _to_response(result.job)


@router.get("/{export_id}/download")
def download_export(
    export_id: UUID,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> Response:
    result = run_download(
        DownloadExportInput(actor=current_user, export_id=export_id), **ctx.export_ports()
    )
    raise_for_errors(result.errors)
    return Response(
        content=result.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@router.delete("/{export_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_export(
    export_id: UUID,
    current_user: User = Depends(get_current_user),
    ctx: ServiceContext = Depends(get_context),
) -> Response:
    result = run_delete(
        DeleteExportInput(actor=current_user, export_id=export_id), **ctx.export_ports()
    )
    raise_for_errors(result.errors)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
