"""
Export worker tests.

Verifies that the worker claims jobs by priority, renders the requested
pages, records terminal states and pushes completion events.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future
from uuid import UUID, uuid4

import pytest

from src.adapters.channels import ChannelHub, user_channel
from src.adapters.clock import FrozenClock
from src.adapters.export_jobs import (
    EXPORT_COMPLETED_EVENT,
    ExportScheduler,
    ExportWorker,
    JobOutcome,
    build_event,
    create_export_scheduler,
    pages_for,
)
from src.components.exports import artifact_path
from src.domain.entities import Book, ExportJob, Page
from src.domain.state import can_transition


class MockJobRepo:
    """In-memory job queue with the same claim/update contract as the SQLite repo."""

    def __init__(self) -> None:
        self.jobs: dict[UUID, ExportJob] = {}

    def add(self, job: ExportJob) -> ExportJob:
        self.jobs[job.id] = job
        return job

    def claim_next(self, worker_id: str) -> ExportJob | None:
        pending = [j for j in self.jobs.values() if j.status == "pending"]
        if not pending:
            return None
        job = sorted(pending, key=lambda j: (-j.priority, j.created_at))[0]
        claimed = job.model_copy(update={"status": "processing", "claimed_by": worker_id})
        self.jobs[job.id] = claimed
        return claimed

    def update(self, job: ExportJob) -> ExportJob:
        stored = self.jobs.get(job.id)
        if stored is None:
            raise LookupError(f"Export {job.id} no longer exists")
        if not can_transition(stored.status, job.status):
            raise ValueError(f"{stored.status} -> {job.status}")
        self.jobs[job.id] = job
        return job


class MockBookRepo:
    def __init__(self, *books: Book) -> None:
        self.books = {b.id: b for b in books}

    def get_by_id(self, book_id: UUID) -> Book | None:
        return self.books.get(book_id)


class MockStore:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def save(self, name: str, data: bytes) -> str:
        self.files[name] = data
        return name

    def delete(self, path: str) -> None:
        self.deleted.append(path)
        self.files.pop(path, None)


class FakeRenderer:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[list[int], int]] = []

    def render(self, book, page_numbers, dpi) -> bytes:
        self.calls.append((list(page_numbers), dpi))
        if self.error:
            raise self.error
        return b"%PDF-1.4 fake"


@pytest.fixture
def book():
    return Book(
        name="Sketchbook",
        owner_user_id=uuid4(),
        pages=[Page(page_number=n) for n in range(1, 5)],
    )


@pytest.fixture
def repo():
    return MockJobRepo()


@pytest.fixture
def store():
    return MockStore()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def hub():
    return ChannelHub()


@pytest.fixture
def worker(repo, book, store, renderer, hub, rules):
    return ExportWorker(
        job_repo=repo,
        book_repo=MockBookRepo(book),
        store=store,
        renderer=renderer,
        clock=FrozenClock(),
        rules=rules.exports,
        hub=hub,
        worker_id="worker-1",
    )


def _job(book, **kwargs) -> ExportJob:
    return ExportJob(book_id=book.id, user_id=uuid4(), **kwargs)


class TestPagesFor:
    def test_all(self, book):
        assert pages_for(_job(book), book) == [1, 2, 3, 4]

    def test_range(self, book):
        assert pages_for(_job(book, page_range="range", start_page=2, end_page=3), book) == [2, 3]

    def test_current(self, book):
        assert pages_for(_job(book, page_range="current", current_page_number=4), book) == [4]

    def test_range_beyond_book(self, book):
        with pytest.raises(ValueError):
            pages_for(_job(book, page_range="range", start_page=2, end_page=9), book)

    def test_missing_current_page(self, book):
        with pytest.raises(ValueError):
            pages_for(_job(book, page_range="current", current_page_number=7), book)


class TestWorker:
    def test_success(self, worker, repo, store, renderer, book):
        job = repo.add(_job(book, quality="printing"))

        batch = worker.run_pending()

        assert batch.total_processed == 1
        assert batch.succeeded == 1
        done = repo.jobs[job.id]
        assert done.status == "completed"
        assert done.file_path == artifact_path(book.id, job.id)
        assert done.file_size == len(b"%PDF-1.4 fake")
        assert done.completed_at is not None
        assert done.claimed_by == "worker-1"
        assert renderer.calls == [([1, 2, 3, 4], 300)]
        assert store.files[done.file_path] == b"%PDF-1.4 fake"

    def test_failure_is_sanitized_and_partial_removed(self, worker, repo, store, renderer, book):
        renderer.error = RuntimeError("font\x00 missing")
        job = repo.add(_job(book))

        batch = worker.run_pending()

        assert batch.failed == 1
        failed = repo.jobs[job.id]
        assert failed.status == "failed"
        assert failed.error_message == "font missing"
        assert failed.file_path is None
        assert store.deleted == [artifact_path(book.id, job.id)]

    def test_long_errors_truncated(self, worker, repo, renderer, book, rules):
        renderer.error = RuntimeError("x" * 5000)
        job = repo.add(_job(book))
        worker.run_pending()
        assert len(repo.jobs[job.id].error_message) == rules.exports.error_message_max_length

    def test_deleted_book_fails_job(self, worker, repo, book):
        job = repo.add(ExportJob(book_id=uuid4(), user_id=uuid4()))
        worker.run_pending()
        assert repo.jobs[job.id].status == "failed"
        assert "no longer exists" in repo.jobs[job.id].error_message

    def test_range_shrunk_since_request_fails(self, worker, repo, book):
        job = repo.add(_job(book, page_range="range", start_page=3, end_page=6))
        worker.run_pending()
        assert repo.jobs[job.id].status == "failed"

    def test_priority_order(self, worker, repo, renderer, book, rules):
        low = repo.add(_job(book, priority=rules.exports.default_priority, quality="preview"))
        high = repo.add(_job(book, priority=rules.exports.owner_priority, quality="medium"))

        first = worker.claim_next_job()
        assert first.id == high.id
        second = worker.claim_next_job()
        assert second.id == low.id

    def test_no_jobs(self, worker):
        batch = worker.run_pending()
        assert batch.total_processed == 0
        assert batch.results[0].status == JobOutcome.NO_JOBS

    def test_max_jobs(self, worker, repo, book):
        for _ in range(3):
            repo.add(_job(book))
        assert worker.run_pending(max_jobs=2).total_processed == 2

    def test_terminal_job_not_rewritten(self, worker, repo, book):
        job = repo.add(_job(book))
        claimed = worker.claim_next_job()
        worker.process(claimed)
        with pytest.raises(ValueError):
            worker.process(claimed)
        assert repo.jobs[job.id].status == "completed"

    def test_row_deleted_mid_render_discards_artifact(self, worker, repo, store, renderer, book):
        job = repo.add(_job(book))

        def render_then_delete(b, page_numbers, dpi):
            del repo.jobs[job.id]
            return b"%PDF-1.4 fake"

        renderer.render = render_then_delete

        result = worker.process(worker.claim_next_job())

        assert result.status == JobOutcome.FAILURE
        assert "no longer exists" in result.error
        assert store.files == {}
        assert store.deleted == [artifact_path(book.id, job.id)]
        assert job.id not in repo.jobs

    def test_row_deleted_before_failure_recorded(self, worker, repo, store, renderer, book):
        job = repo.add(_job(book))

        def delete_then_fail(b, page_numbers, dpi):
            del repo.jobs[job.id]
            raise RuntimeError("renderer crashed")

        renderer.render = delete_then_fail

        result = worker.process(worker.claim_next_job())

        assert result.status == JobOutcome.FAILURE
        assert result.error == "renderer crashed"
        assert store.files == {}


class TestPushEvents:
    def test_completion_published_to_requester(self, worker, repo, hub, book):
        job = repo.add(_job(book))
        received = []
        hub.subscribe(user_channel(job.user_id), received.append)

        worker.run_pending()

        assert received == [
            {
                "type": EXPORT_COMPLETED_EVENT,
                "exportId": str(job.id),
                "bookId": str(book.id),
                "bookName": "Sketchbook",
                "status": "completed",
            }
        ]

    def test_failure_event_carries_error(self, worker, repo, renderer, hub, book):
        renderer.error = RuntimeError("boom")
        job = repo.add(_job(book))
        received = []
        hub.subscribe(user_channel(job.user_id), received.append)

        worker.run_pending()

        assert received[0]["status"] == "failed"
        assert received[0]["error"] == "boom"

    def test_other_users_not_notified(self, worker, repo, hub, book):
        repo.add(_job(book))
        received = []
        hub.subscribe(user_channel(uuid4()), received.append)
        worker.run_pending()
        assert received == []

    def test_build_event_without_book(self, book):
        job = _job(book, status="failed", error_message="gone")
        assert build_event(job, None)["bookName"] == ""


class TestScheduler:
    def test_trigger_now(self, worker, repo, book):
        repo.add(_job(book))
        scheduler = ExportScheduler(worker)
        assert scheduler.trigger_now().succeeded == 1

    def test_start_stop(self, worker, rules):
        scheduler = create_export_scheduler(worker, rules.exports)
        scheduler.start()
        assert scheduler.is_running
        scheduler.stop()
        assert not scheduler.is_running

    def test_background_processing(self, worker, repo, book):
        jobs = [repo.add(_job(book)) for _ in range(3)]
        scheduler = ExportScheduler(worker, poll_interval_seconds=0.01, max_concurrent=2)
        scheduler.start()
        try:
            deadline = time.monotonic() + 5
            while time.monotonic() < deadline:
                if all(repo.jobs[j.id].status == "completed" for j in jobs):
                    break
                time.sleep(0.02)
        finally:
            scheduler.stop()

        assert all(repo.jobs[j.id].status == "completed" for j in jobs)
        assert scheduler.active_count == 0

    def test_task_exception_is_logged(self, worker, caplog):
        scheduler = ExportScheduler(worker)
        future: Future = Future()
        future.set_exception(ValueError("Export is not in a state that allows completed"))

        with caplog.at_level(logging.ERROR, logger="src.adapters.export_jobs"):
            scheduler._on_done(future)

        assert "Export task raised" in caplog.text
        assert "not in a state that allows completed" in caplog.text
        assert scheduler.active_count == 0

    def test_cancelled_task_is_not_logged(self, worker, caplog):
        scheduler = ExportScheduler(worker)
        future: Future = Future()
        future.cancel()

        with caplog.at_level(logging.ERROR, logger="src.adapters.export_jobs"):
            scheduler._on_done(future)

        assert caplog.records == []
