from typing import Protocol
from uuid import UUID

from src.domain.entities import ExportJob


class ExportSourceError(Exception):
    """Listing exports failed (network or server error)."""


class ExportSourcePort(Protocol):
    def list_exports(self, book_id: UUID) -> list[ExportJob]:
        """Jobs of a book, newest first. Raises ExportSourceError."""
        ...
