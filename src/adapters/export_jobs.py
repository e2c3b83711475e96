"""
Export Job Worker Adapter.

In-process PDF export worker backed by DB polling.

Key behaviors:
- Atomic job claim via conditional update (pending -> processing)
- Highest priority first, then oldest
- Renders from the last-saved book in the repository
- No retries: a render exception marks the job failed with a sanitized message
- Partial artifacts are removed on failure, and so is the artifact of a job
  whose row was deleted while it rendered
- Terminal states are pushed to the requesting user's channel
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID, uuid4

from src.adapters.channels import ChannelHub, user_channel
from src.components.exports import artifact_path
from src.domain.entities import Book, ExportJob
from src.domain.policy import PolicyEngine
from src.domain.sanitize import sanitize_error_message
from src.domain.state import transition
from src.rules.models import ExportRules

logger = logging.getLogger(__name__)

EXPORT_COMPLETED_EVENT = "pdf_export_completed"


class ExportJobRepoPort(Protocol):
    def claim_next(self, worker_id: str) -> ExportJob | None: ...
    def update(self, job: ExportJob) -> ExportJob: ...


class BookRepoPort(Protocol):
    def get_by_id(self, book_id: UUID) -> Book | None: ...


class ArtifactStorePort(Protocol):
    def save(self, name: str, data: bytes) -> str: ...
    def delete(self, path: str) -> None: ...


class RendererPort(Protocol):
    def render(self, book: Book, page_numbers: Sequence[int], dpi: int) -> bytes: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...


class JobOutcome(Enum):
    """Export job execution result status."""

    SUCCESS = "success"
    FAILURE = "failure"
    NO_JOBS = "no_jobs"


@dataclass
class ExportJobResult:
    status: JobOutcome
    job_id: UUID | None = None
    message: str = ""
    error: str | None = None
    execution_time_ms: int = 0


@dataclass
class BatchResult:
    total_processed: int
    succeeded: int
    failed: int
    results: list[ExportJobResult] = field(default_factory=list)


def pages_for(job: ExportJob, book: Book) -> list[int]:
    """Page numbers an export job covers, validated against the current book."""
    numbers = book.page_numbers()
    if job.page_range == "range":
        start, end = job.start_page or 1, job.end_page or book.page_count
        if not 1 <= start <= end <= book.page_count:
            raise ValueError(f"Page range {start}-{end} is outside 1-{book.page_count}")
        return [n for n in numbers if start <= n <= end]
    if job.page_range == "current":
        if job.current_page_number not in numbers:
            raise ValueError(f"Page {job.current_page_number} does not exist")
        return [job.current_page_number]  # type: ignore[list-item]
    return numbers


def build_event(job: ExportJob, book_name: str | None) -> dict[str, Any]:
    """Push payload for a terminal export job."""
    event: dict[str, Any] = {
        "type": EXPORT_COMPLETED_EVENT,
        "exportId": str(job.id),
        "bookId": str(job.book_id),
        "bookName": book_name or "",
        "status": job.status,
    }
    if job.error_message:
        event["error"] = job.error_message
    return event


class ExportWorker:
    """Claims and renders export jobs one at a time."""

    def __init__(
        self,
        job_repo: ExportJobRepoPort,
        book_repo: BookRepoPort,
        store: ArtifactStorePort,
        renderer: RendererPort,
        clock: TimePort,
        rules: ExportRules,
        hub: ChannelHub | None = None,
        worker_id: str | None = None,
    ) -> None:
        self._job_repo = job_repo
        self._book_repo = book_repo
        self._store = store
        self._renderer = renderer
        self._clock = clock
        self._rules = rules
        self._policy = PolicyEngine(rules)
        self._hub = hub
        self.worker_id = worker_id or f"export-{uuid4().hex[:8]}"

    def claim_next_job(self) -> ExportJob | None:
        job = self._job_repo.claim_next(self.worker_id)
        if job is not None:
            logger.info("Worker %s claimed export %s", self.worker_id, job.id)
        return job

    def run_pending(self, max_jobs: int = 10) -> BatchResult:
        """Claim and process jobs until none are pending or max_jobs is reached."""
        results: list[ExportJobResult] = []
        for _ in range(max_jobs):
            job = self.claim_next_job()
            if job is None:
                break
            results.append(self.process(job))

        if not results:
            return BatchResult(
                total_processed=0,
                succeeded=0,
                failed=0,
                results=[ExportJobResult(status=JobOutcome.NO_JOBS, message="No jobs to process")],
            )

        succeeded = sum(1 for r in results if r.status == JobOutcome.SUCCESS)
        return BatchResult(
            total_processed=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
        )

    def process(self, job: ExportJob) -> ExportJobResult:
        """Render a claimed (processing) job and record its terminal state."""
        start_time = time.monotonic()
        path = artifact_path(job.book_id, job.id)
        book: Book | None = None

        try:
            book = self._book_repo.get_by_id(job.book_id)
            if book is None:
                raise LookupError(f"Book {job.book_id} no longer exists")
            pages = pages_for(job, book)
            data = self._renderer.render(book, pages, self._policy.dpi_for(job.quality))
            stored = self._store.save(path, data)
        except Exception as e:
            logger.exception("Export %s failed", job.id)
            self._remove_partial(path)
            failed = transition(
                job,
                "failed",
                self._clock.now_utc(),
                error_message=sanitize_error_message(e, self._rules.error_message_max_length),
            )
            try:
                self._finish(failed, book)
            except LookupError as gone:
                logger.error("Export %s vanished before its failure was saved: %s", job.id, gone)
            return ExportJobResult(
                status=JobOutcome.FAILURE,
                job_id=job.id,
                message=f"Export {job.id} failed",
                error=failed.error_message,
                execution_time_ms=int((time.monotonic() - start_time) * 1000),
            )

        try:
            self._finish(
                transition(
                    job,
                    "completed",
                    self._clock.now_utc(),
                    file_path=stored,
                    file_size=len(data),
                ),
                book,
            )
        except LookupError as e:
            # Row deleted while rendering; nothing will ever point at the artifact.
            logger.error("Export %s could not be completed, discarding artifact: %s", job.id, e)
            self._remove_partial(stored)
            return ExportJobResult(
                status=JobOutcome.FAILURE,
                job_id=job.id,
                message=f"Export {job.id} was removed while rendering",
                error=str(e),
                execution_time_ms=int((time.monotonic() - start_time) * 1000),
            )
        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info("Export %s completed (%d bytes, %d ms)", job.id, len(data), elapsed_ms)
        return ExportJobResult(
            status=JobOutcome.SUCCESS,
            job_id=job.id,
            message=f"Rendered {len(pages)} pages",
            execution_time_ms=elapsed_ms,
        )

    def _remove_partial(self, path: str) -> None:
        try:
            self._store.delete(path)
        except OSError as e:
            logger.warning("Could not remove partial artifact %s: %s", path, e)

    def _finish(self, job: ExportJob, book: Book | None) -> ExportJob:
        saved = self._job_repo.update(job)
        if self._hub is not None:
            event = build_event(saved, book.name if book else None)
            self._hub.publish(user_channel(saved.user_id), event)
        return saved


class ExportScheduler:
    """
    Background scheduler for export jobs.

    A polling thread claims pending jobs and hands them to a thread pool
    of max_concurrent workers.
    """

    def __init__(
        self,
        worker: ExportWorker,
        poll_interval_seconds: float = 2.0,
        max_concurrent: int = 2,
    ) -> None:
        self._worker = worker
        self._poll_interval = poll_interval_seconds
        self._max_concurrent = max_concurrent
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._pool: ThreadPoolExecutor | None = None
        self._active: set[Future[ExportJobResult]] = set()
        self._active_lock = threading.Lock()
        self._running = False

    def start(self) -> None:
        if self._running:
            return

        self._stop_event.clear()
        self._pool = ThreadPoolExecutor(
            max_workers=self._max_concurrent, thread_name_prefix="export"
        )
        self._thread = threading.Thread(target=self._poll_loop, daemon=True)
        self._thread.start()
        self._running = True
        logger.info(
            "Export scheduler started (poll interval: %.1fs, concurrency: %d)",
            self._poll_interval,
            self._max_concurrent,
        )

    def stop(self) -> None:
        if not self._running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        if self._pool:
            self._pool.shutdown(wait=True)
        self._running = False
        logger.info("Export scheduler stopped")

    def trigger_now(self) -> BatchResult:
        """Process pending jobs synchronously on the calling thread."""
        return self._worker.run_pending()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_count(self) -> int:
        with self._active_lock:
            return len(self._active)

    def dispatch_pending(self) -> int:
        """Claim jobs for free worker slots. Returns the number dispatched."""
        assert self._pool is not None
        dispatched = 0
        while self.active_count < self._max_concurrent:
            job = self._worker.claim_next_job()
            if job is None:
                break
            future = self._pool.submit(self._worker.process, job)
            with self._active_lock:
                self._active.add(future)
            future.add_done_callback(self._on_done)
            dispatched += 1
        return dispatched

    def _on_done(self, future: Future[ExportJobResult]) -> None:
        with self._active_lock:
            self._active.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Export task raised", exc_info=exc)

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._poll_interval):
            try:
                dispatched = self.dispatch_pending()
                if dispatched:
                    logger.info("Scheduler dispatched %d export jobs", dispatched)
            except Exception:
                logger.exception("Error in export scheduler poll loop")


def create_export_scheduler(
    worker: ExportWorker,
    rules: ExportRules,
) -> ExportScheduler:
    return ExportScheduler(
        worker,
        poll_interval_seconds=rules.poll_interval_seconds,
        max_concurrent=rules.max_concurrent,
    )
