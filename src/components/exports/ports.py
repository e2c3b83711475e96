"""
Exports component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.domain.entities import Book, BookFriend, ExportJob


class ExportJobRepoPort(Protocol):
    """Repository interface for export jobs."""

    def create(self, job: ExportJob) -> ExportJob:
        """Insert a new pending job."""
        ...

    def get_by_id(self, job_id: UUID) -> ExportJob | None:
        """Get job by ID."""
        ...

    def list_by_book(self, book_id: UUID) -> list[ExportJob]:
        """Jobs of a book, newest first."""
        ...

    def list_completed_since(self, user_id: UUID, since: datetime) -> list[ExportJob]:
        """Completed jobs of a user finished at or after `since`, newest first."""
        ...

    def count_in_flight(self, user_id: UUID | None = None) -> int:
        """Pending or processing jobs, optionally for one user."""
        ...

    def list_in_flight(self) -> list[ExportJob]:
        """Pending and processing jobs, highest priority then oldest first."""
        ...

    def delete(self, job_id: UUID) -> None:
        """Delete job row."""
        ...


class BookRepoPort(Protocol):
    def get_by_id(self, book_id: UUID) -> Book | None: ...


class RoleProviderPort(Protocol):
    def get_role(self, book_id: UUID, user_id: UUID) -> BookFriend | None: ...


class ArtifactStorePort(Protocol):
    """Binary artifact storage (rendered PDFs)."""

    def get(self, path: str) -> bytes:
        """Raises FileNotFoundError when missing."""
        ...

    def delete(self, path: str) -> None: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...
