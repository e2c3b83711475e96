"""
Exports component - PDF export requests and job queries.

Invariants:
- No job row is created when validation fails
- Status moves forward only: pending -> processing -> completed | failed
- Downloads are served only for completed jobs
"""

from __future__ import annotations

from src.rules.models import ExportRules

from ._impl import ExportService
from .models import (
    CreateExportInput,
    DeleteExportInput,
    DeleteOutput,
    DownloadExportInput,
    DownloadOutput,
    ExportListOutput,
    ExportOutput,
    GetExportInput,
    ListExportsInput,
    QueueStatusInput,
    QueueStatusOutput,
    RecentExportsInput,
)
from .ports import (
    ArtifactStorePort,
    BookRepoPort,
    ExportJobRepoPort,
    RoleProviderPort,
    TimePort,
)


def _create_service(
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> ExportService:
    return ExportService(
        repo=repo, books=books, roles=roles, store=store, clock=clock, rules=rules
    )


# --- Component Entry Points ---


def run_create(
    inp: CreateExportInput,
    *,
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> ExportOutput:
    """
    Validate an export request and queue a pending job.

    Args:
        inp: Book, quality tier and page range requested by the actor.
        repo: Export job repository port.
        books: Book repository port.
        roles: Role provider for the actor's role on the book.
        store: Artifact store (unused on create, kept for a uniform signature).
        clock: Time port for created_at.
        rules: Export rules (tiers, limits, priorities).

    Returns:
        ExportOutput with the pending job, or errors and no job.
    """
    service = _create_service(repo, books, roles, store, clock, rules)
    job, errors = service.create(inp)
    return ExportOutput(job=job, errors=errors, success=not errors)


def run_list(
    inp: ListExportsInput,
    *,
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> ExportListOutput:
    """List a book's exports, newest first."""
    service = _create_service(repo, books, roles, store, clock, rules)
    jobs, errors = service.list_for_book(inp.actor, inp.book_id)
    return ExportListOutput(jobs=tuple(jobs), errors=errors, success=not errors)


def run_get(
    inp: GetExportInput,
    *,
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> ExportOutput:
    service = _create_service(repo, books, roles, store, clock, rules)
    job, errors = service.get(inp.actor, inp.export_id)
    return ExportOutput(job=job, errors=errors, success=not errors)


def run_recent(
    inp: RecentExportsInput,
    *,
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> ExportListOutput:
    """Completed exports of the actor inside the recent window."""
    service = _create_service(repo, books, roles, store, clock, rules)
    return ExportListOutput(jobs=tuple(service.recent(inp.actor)))


def run_download(
    inp: DownloadExportInput,
    *,
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> DownloadOutput:
    """
    Fetch the rendered PDF of a completed export.

    Returns not_ready while the job is pending or processing (or failed) and
    not_found when the job or its artifact does not exist.
    """
    service = _create_service(repo, books, roles, store, clock, rules)
    content, job, errors = service.download(inp.actor, inp.export_id)
    filename = f"export-{job.id}.pdf" if job is not None else None
    return DownloadOutput(content=content, filename=filename, errors=errors, success=not errors)


def run_delete(
    inp: DeleteExportInput,
    *,
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> DeleteOutput:
    """Remove a finished export row and its artifact; in-flight jobs give not_ready."""
    service = _create_service(repo, books, roles, store, clock, rules)
    deleted, errors = service.delete(inp.actor, inp.export_id)
    return DeleteOutput(deleted=deleted, errors=errors, success=deleted)


def run_queue_status(
    inp: QueueStatusInput,
    *,
    repo: ExportJobRepoPort,
    books: BookRepoPort,
    roles: RoleProviderPort,
    store: ArtifactStorePort,
    clock: TimePort,
    rules: ExportRules,
) -> QueueStatusOutput:
    """Queue length, jobs being rendered and the actor's in-flight jobs."""
    service = _create_service(repo, books, roles, store, clock, rules)
    queued, processing, active = service.queue_status(inp.actor)
    return QueueStatusOutput(
        queued=queued,
        processing=processing,
        max_concurrent=rules.max_concurrent,
        max_queue_size=rules.max_queue_size,
        active=tuple(active),
    )


def run(
    inp: (
        CreateExportInput
        | ListExportsInput
        | GetExportInput
        | RecentExportsInput
        | DownloadExportInput
        | DeleteExportInput
        | QueueStatusInput
    ),
    **ports: object,
) -> ExportOutput | ExportListOutput | DownloadOutput | DeleteOutput | QueueStatusOutput:
    """
    Main entry point for the exports component.

    Dispatches to the handler matching the input type.
    """
    if isinstance(inp, CreateExportInput):
        return run_create(inp, **ports)  # type: ignore[arg-type]
    elif isinstance(inp, ListExportsInput):
        return run_list(inp, **ports)  # type: ignore[arg-type]
    elif isinstance(inp, GetExportInput):
        return run_get(inp, **ports)  # type: ignore[arg-type]
    elif isinstance(inp, RecentExportsInput):
        return run_recent(inp, **ports)  # type: ignore[arg-type]
    elif isinstance(inp, DownloadExportInput):
        return run_download(inp, **ports)  # type: ignore[arg-type]
    elif isinstance(inp, DeleteExportInput):
        return run_delete(inp, **ports)  # type: ignore[arg-type]
    elif isinstance(inp, QueueStatusInput):
        return run_queue_status(inp, **ports)  # type: ignore[arg-type]
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
