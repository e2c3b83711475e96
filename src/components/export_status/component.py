"""
Export status poller.

Keeps a client-side list of a book's export jobs current. Push events give
immediate feedback; polling guarantees the list eventually matches the
server even when a push is lost.

Key behaviors:
- Polls only while some job is pending or processing, then stops
- A terminal push event is applied at once and followed by a refresh
- A failed poll keeps the previous list and is retried on the next tick
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any
from uuid import UUID

from src.domain.entities import ExportJob
from src.domain.state import is_terminal

from .ports import ExportSourceError, ExportSourcePort

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[list[ExportJob]], None]
Sleeper = Callable[[float], None]


class ExportStatusPoller:
    def __init__(
        self,
        book_id: UUID,
        source: ExportSourcePort,
        interval: float = 2.0,
        on_change: ChangeCallback | None = None,
        sleeper: Sleeper | None = None,
    ) -> None:
        self.book_id = book_id
        self.source = source
        self.interval = interval
        self.on_change = on_change
        self._sleep = sleeper or time.sleep
        self._jobs: list[ExportJob] = []
        self._failed_polls = 0

    @property
    def jobs(self) -> list[ExportJob]:
        return list(self._jobs)

    @property
    def has_in_flight(self) -> bool:
        return any(job.in_flight for job in self._jobs)

    @property
    def failed_polls(self) -> int:
        return self._failed_polls

    def _set_jobs(self, jobs: list[ExportJob]) -> None:
        changed = [(j.id, j.status) for j in jobs] != [(j.id, j.status) for j in self._jobs]
        self._jobs = jobs
        if changed and self.on_change is not None:
            self.on_change(self.jobs)

    def refresh(self) -> bool:
        try:
            jobs = self.source.list_exports(self.book_id)
        except (ExportSourceError, OSError) as e:
            self._failed_polls += 1
            logger.warning("Polling exports of book %s failed: %s", self.book_id, e)
            return False
        self._set_jobs(jobs)
        return True

    def tick(self) -> bool:
        """One poll step. Returns True while polling should continue."""
        if not self.has_in_flight:
            return False
        self.refresh()
        return self.has_in_flight

    def handle_push(self, event: dict[str, Any]) -> bool:
        """Apply a pdf_export_completed event. Returns True if it was for this book."""
        if str(event.get("bookId")) != str(self.book_id):
            return False

        status = event.get("status")
        export_id = str(event.get("exportId"))
        if status and is_terminal(status):
            updated = []
            for job in self._jobs:
                if str(job.id) == export_id and not is_terminal(job.status):
                    job = job.model_copy(
                        update={"status": status, "error_message": event.get("error")}
                    )
                updated.append(job)
            self._set_jobs(updated)

        self.refresh()
        return True

    def run_until_settled(self, max_ticks: int | None = None) -> list[ExportJob]:
        """Refresh, then poll at the interval until nothing is in flight."""
        self.refresh()
        ticks = 0
        while self.has_in_flight and (max_ticks is None or ticks < max_ticks):
            self._sleep(self.interval)
            self.tick()
            ticks += 1
        return self.jobs
