"""
ExportService - PDF export request validation and job bookkeeping.

Rendering happens in the background worker (src/adapters/export_jobs.py);
this service only validates requests and manages job rows and artifacts.

Key behaviors:
- A job row is written only when every validation passes
- printing requires owner/publisher (or admin); excellent requires admin
- range exports need 1 <= start <= end <= page_count
- At most max_in_flight_per_user pending/processing jobs per user
- At most max_queue_size pending/processing jobs overall
- Book owner jobs get owner_priority, everyone else default_priority
- Pending and processing jobs cannot be deleted
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID, uuid4

from src.domain.entities import Book, BookFriend, ExportJob, User
from src.domain.policy import PolicyEngine
from src.rules.models import ExportRules

from .models import CreateExportInput, ExportValidationError
from .ports import (
    ArtifactStorePort,
    BookRepoPort,
    ExportJobRepoPort,
    RoleProviderPort,
    TimePort,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[str, int] = {
    "validation": 400,
    "forbidden": 403,
    "not_found": 404,
    "not_ready": 409,
    "rate_limited": 429,
    "queue_full": 503,
}


def artifact_path(book_id: UUID, job_id: UUID) -> str:
    """Storage path of a rendered export, relative to the file store root."""
    return f"exports/{book_id}/{job_id}.pdf"


@dataclass
class _Access:
    book: Book | None
    role: BookFriend | None


class ExportService:
    def __init__(
        self,
        repo: ExportJobRepoPort,
        books: BookRepoPort,
        roles: RoleProviderPort,
        store: ArtifactStorePort,
        clock: TimePort,
        rules: ExportRules,
    ) -> None:
        self.repo = repo
        self.books = books
        self.roles = roles
        self.store = store
        self.clock = clock
        self.rules = rules
        self.policy = PolicyEngine(rules)

    def _access(self, actor: User, book_id: UUID) -> _Access:
        book = self.books.get_by_id(book_id)
        if book is None:
            return _Access(None, None)
        return _Access(book, self.roles.get_role(book_id, actor.id))

    def _can_view(self, actor: User, job: ExportJob) -> bool:
        if actor.is_admin or job.user_id == actor.id:
            return True
        return self.roles.get_role(job.book_id, actor.id) is not None

    # --- Create ---

    def validate_create(
        self, inp: CreateExportInput
    ) -> tuple[Book | None, BookFriend | None, list[ExportValidationError]]:
        access = self._access(inp.actor, inp.book_id)
        if access.book is None:
            return None, None, [ExportValidationError("not_found", "Book not found")]

        book, role = access.book, access.role
        if role is None and not inp.actor.is_admin:
            return book, None, [ExportValidationError("forbidden", "Not a collaborator")]

        book_role = role.book_role if role else None
        if not self.policy.can_export_quality(book_role, inp.actor.is_admin, inp.quality):
            return book, role, [
                ExportValidationError(
                    "forbidden",
                    f"Quality '{inp.quality}' is not available for your role",
                    field="quality",
                )
            ]

        errors = self._validate_range(inp, book)
        if errors:
            return book, role, errors

        if self.repo.count_in_flight(inp.actor.id) >= self.rules.max_in_flight_per_user:
            return book, role, [
                ExportValidationError(
                    "rate_limited",
                    f"At most {self.rules.max_in_flight_per_user} exports may run at once",
                )
            ]

        if self.repo.count_in_flight() >= self.rules.max_queue_size:
            return book, role, [
                ExportValidationError("queue_full", "Export queue is full, try again later")
            ]

        return book, role, []

    def _validate_range(
        self, inp: CreateExportInput, book: Book
    ) -> list[ExportValidationError]:
        if book.page_count == 0:
            return [ExportValidationError("validation", "Book has no pages")]

        if inp.page_range == "range":
            start, end = inp.start_page, inp.end_page
            if start is None or end is None:
                return [
                    ExportValidationError(
                        "validation", "start_page and end_page are required", field="start_page"
                    )
                ]
            if not 1 <= start <= end <= book.page_count:
                return [
                    ExportValidationError(
                        "validation",
                        f"Page range {start}-{end} is outside 1-{book.page_count}",
                        field="end_page",
                    )
                ]
        elif inp.page_range == "current":
            current = inp.current_page_number
            if current is None or not 1 <= current <= book.page_count:
                return [
                    ExportValidationError(
                        "validation",
                        "A valid current_page_number is required",
                        field="current_page_number",
                    )
                ]
        return []

    def create(
        self, inp: CreateExportInput
    ) -> tuple[ExportJob | None, list[ExportValidationError]]:
        book, _role, errors = self.validate_create(inp)
        if errors or book is None:
            return None, errors

        is_owner = book.owner_user_id == inp.actor.id
        job = ExportJob(
            id=uuid4(),
            book_id=book.id,
            user_id=inp.actor.id,
            status="pending",
            quality=inp.quality,
            page_range=inp.page_range,
            start_page=inp.start_page if inp.page_range == "range" else None,
            end_page=inp.end_page if inp.page_range == "range" else None,
            current_page_number=(
                inp.current_page_number if inp.page_range == "current" else None
            ),
            priority=self.rules.owner_priority if is_owner else self.rules.default_priority,
            created_at=self.clock.now_utc(),
        )
        created = self.repo.create(job)
        logger.info(
            "Export %s queued for book %s (%s, %s)",
            created.id,
            book.id,
            created.quality,
            created.page_range,
        )
        return created, []

    # --- Queries ---

    def list_for_book(
        self, actor: User, book_id: UUID
    ) -> tuple[list[ExportJob], list[ExportValidationError]]:
        access = self._access(actor, book_id)
        if access.book is None:
            return [], [ExportValidationError("not_found", "Book not found")]
        if access.role is None and not actor.is_admin:
            return [], [ExportValidationError("forbidden", "Not a collaborator")]
        return self.repo.list_by_book(book_id), []

    def get(
        self, actor: User, export_id: UUID
    ) -> tuple[ExportJob | None, list[ExportValidationError]]:
        job = self.repo.get_by_id(export_id)
        if job is None:
            return None, [ExportValidationError("not_found", f"Export {export_id} not found")]
        if not self._can_view(actor, job):
            return None, [ExportValidationError("forbidden", "Not allowed to view this export")]
        return job, []

    def recent(self, actor: User) -> list[ExportJob]:
        since = self.clock.now_utc() - timedelta(hours=self.rules.recent_window_hours)
        return self.repo.list_completed_since(actor.id, since)

    def download(
        self, actor: User, export_id: UUID
    ) -> tuple[bytes | None, ExportJob | None, list[ExportValidationError]]:
        job, errors = self.get(actor, export_id)
        if job is None:
            return None, None, errors
        if job.status != "completed" or not job.file_path:
            return None, job, [
                ExportValidationError("not_ready", f"Export is {job.status}, not completed")
            ]
        try:
            content = self.store.get(job.file_path)
        except FileNotFoundError:
            logger.warning("Artifact missing for export %s at %s", job.id, job.file_path)
            return None, job, [ExportValidationError("not_found", "Export file is missing")]
        return content, job, []

    def delete(self, actor: User, export_id: UUID) -> tuple[bool, list[ExportValidationError]]:
        job = self.repo.get_by_id(export_id)
        if job is None:
            return False, [ExportValidationError("not_found", f"Export {export_id} not found")]

        allowed = actor.is_admin or job.user_id == actor.id
        if not allowed:
            role = self.roles.get_role(job.book_id, actor.id)
            allowed = self.policy.can_manage_book(role.book_role if role else None)
        if not allowed:
            return False, [ExportValidationError("forbidden", "Not allowed to delete this export")]

        # The worker owns in-flight rows until they reach a terminal state.
        if job.status in ("pending", "processing"):
            return False, [
                ExportValidationError("not_ready", f"Export is {job.status}, wait for it to finish")
            ]

        if job.file_path:
            self.store.delete(job.file_path)
        self.repo.delete(job.id)
        logger.info("Export %s deleted", job.id)
        return True, []

    def queue_status(self, actor: User) -> tuple[int, int, list[ExportJob]]:
        in_flight = self.repo.list_in_flight()
        queued = sum(1 for j in in_flight if j.status == "pending")
        visible = [j for j in in_flight if actor.is_admin or j.user_id == actor.id]
        return queued, len(in_flight) - queued, visible
