from typing import Protocol
from uuid import UUID

from src.domain.entities import Book, BookFriend


class BookRepoPort(Protocol):
    def get_by_id(self, book_id: UUID) -> Book | None: ...
    def save(self, book: Book) -> Book: ...


class BookFriendRepoPort(Protocol):
    def get(self, book_id: UUID, user_id: UUID) -> BookFriend | None: ...
    def list_by_book(self, book_id: UUID) -> list[BookFriend]: ...
    def upsert(self, friend: BookFriend) -> BookFriend: ...
