"""
Editor component port definitions.

The store consumes three collaborators: a book loader, a book saver and a
role provider for the current user.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from src.domain.entities import Book, BookFriend


class BookLoadPort(Protocol):
    """Supplies the Book aggregate and its collaborator roster."""

    def load(self, book_id: UUID) -> tuple[Book, list[BookFriend]] | None: ...


class BookSavePort(Protocol):
    """Persists a whole book. Last write wins."""

    def save(self, book: Book) -> Book:
        """Persist and return the stored book. May raise OSError on transient failures."""
        ...


class RoleProviderPort(Protocol):
    """Role data of the current user for the open book."""

    def get_role(self, book_id: UUID, user_id: UUID) -> BookFriend | None: ...
