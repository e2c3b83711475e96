import json
import sqlite3
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import TypeAdapter

from src.domain.entities import Book, BookFriend, ExportJob, Page, User

_pages_adapter: TypeAdapter[list[Page]] = TypeAdapter(list[Page])


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def _parse_dt(s: str | None) -> datetime | None:
    return datetime.fromisoformat(s) if s else None


class _SQLiteRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn


class SQLiteUserRepo(_SQLiteRepo):
    def save(self, user: User) -> User:
        conn = self._get_conn()
        try:
            now = datetime.now(UTC).isoformat()
            conn.execute(
                """
                INSERT INTO users (id, display_name, created_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET display_name=excluded.display_name
            """,
                (str(user.id), user.display_name, now),
            )
            conn.execute("DELETE FROM role_assignments WHERE user_id = ?", (str(user.id),))
            for role in user.roles:
                conn.execute(
                    "INSERT INTO role_assignments (id, user_id, role, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    (str(uuid4()), str(user.id), role, now),
                )
            conn.commit()
            return user
        finally:
            conn.close()

    def get_by_id(self, user_id: UUID) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            if not row:
                return None
            role_rows = conn.execute(
                "SELECT role FROM role_assignments WHERE user_id = ?", (row["id"],)
            ).fetchall()
            return User(
                id=UUID(row["id"]),
                display_name=row["display_name"],
                roles=[r["role"] for r in role_rows],
            )
        finally:
            conn.close()


class SQLiteBookRepo(_SQLiteRepo):
    """Books with their pages stored as one JSON document. Last write wins."""

    def _map_row(self, row: dict[str, Any]) -> Book:
        return Book(
            id=UUID(row["id"]),
            name=row["name"],
            page_size=row["page_size"],
            orientation=row["orientation"],
            owner_user_id=UUID(row["owner_user_id"]),
            pages=_pages_adapter.validate_json(row["pages_json"]),
            revision=row["revision"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def get_by_id(self, book_id: UUID) -> Book | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (str(book_id),)).fetchone()
            if not row:
                return None
            return self._map_row(row)
        finally:
            conn.close()

    def save(self, book: Book) -> Book:
        """Upsert the whole book and bump its revision."""
        conn = self._get_conn()
        try:
            pages_json = json.dumps(
                [p.model_dump(mode="json") for p in book.pages], separators=(",", ":")
            )
            row = conn.execute(
                """
                INSERT INTO books (
                    id, name, page_size, orientation, owner_user_id,
                    pages_json, revision, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    page_size=excluded.page_size,
                    orientation=excluded.orientation,
                    pages_json=excluded.pages_json,
                    revision=books.revision + 1,
                    updated_at=excluded.updated_at
                RETURNING *
            """,
                (
                    str(book.id),
                    book.name,
                    book.page_size,
                    book.orientation,
                    str(book.owner_user_id),
                    pages_json,
                    book.revision + 1,
                    datetime.now(UTC).isoformat(),
                ),
            ).fetchone()
            conn.commit()
            return self._map_row(row)
        finally:
            conn.close()

    def list_for_user(self, user_id: UUID) -> list[Book]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM books
                WHERE owner_user_id = ?
                   OR id IN (SELECT book_id FROM book_friends WHERE user_id = ?)
                ORDER BY updated_at DESC
            """,
                (str(user_id), str(user_id)),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def delete(self, book_id: UUID) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM books WHERE id = ?", (str(book_id),))
            conn.commit()
        finally:
            conn.close()


class SQLiteBookFriendRepo(_SQLiteRepo):
    """One role record per (book, user), enforced by a unique constraint."""

    def _map_row(self, row: dict[str, Any]) -> BookFriend:
        return BookFriend(
            book_id=UUID(row["book_id"]),
            user_id=UUID(row["user_id"]),
            book_role=row["book_role"],
            page_access_level=row["page_access_level"],
            editor_interaction_level=row["editor_interaction_level"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def get(self, book_id: UUID, user_id: UUID) -> BookFriend | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM book_friends WHERE book_id = ? AND user_id = ?",
                (str(book_id), str(user_id)),
            ).fetchone()
            if not row:
                return None
            return self._map_row(row)
        finally:
            conn.close()

    def list_by_book(self, book_id: UUID) -> list[BookFriend]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM book_friends WHERE book_id = ? ORDER BY created_at",
                (str(book_id),),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def upsert(self, friend: BookFriend) -> BookFriend:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                INSERT INTO book_friends (
                    book_id, user_id, book_role, page_access_level,
                    editor_interaction_level, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(book_id, user_id) DO UPDATE SET
                    book_role=excluded.book_role,
                    page_access_level=excluded.page_access_level,
                    editor_interaction_level=excluded.editor_interaction_level
                RETURNING *
            """,
                (
                    str(friend.book_id),
                    str(friend.user_id),
                    friend.book_role,
                    friend.page_access_level,
                    friend.editor_interaction_level,
                    friend.created_at.isoformat(),
                ),
            ).fetchone()
            conn.commit()
            return self._map_row(row)
        finally:
            conn.close()

    def delete(self, book_id: UUID, user_id: UUID) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "DELETE FROM book_friends WHERE book_id = ? AND user_id = ?",
                (str(book_id), str(user_id)),
            )
            conn.commit()
        finally:
            conn.close()


class SQLiteExportJobRepo(_SQLiteRepo):
    _PREDECESSORS = {
        "processing": ("pending",),
        "completed": ("processing",),
        "failed": ("processing",),
    }

    def _map_row(self, row: dict[str, Any]) -> ExportJob:
        return ExportJob(
            id=UUID(row["id"]),
            book_id=UUID(row["book_id"]),
            user_id=UUID(row["user_id"]),
            status=row["status"],
            quality=row["quality"],
            page_range=row["page_range"],
            start_page=row["start_page"],
            end_page=row["end_page"],
            current_page_number=row["current_page_number"],
            priority=row["priority"],
            file_path=row["file_path"],
            file_size=row["file_size"],
            error_message=row["error_message"],
            claimed_by=row["claimed_by"],
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=_parse_dt(row["completed_at"]),
        )

    def create(self, job: ExportJob) -> ExportJob:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO export_jobs (
                    id, book_id, user_id, status, quality, page_range,
                    start_page, end_page, current_page_number, priority, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(job.id),
                    str(job.book_id),
                    str(job.user_id),
                    job.status,
                    job.quality,
                    job.page_range,
                    job.start_page,
                    job.end_page,
                    job.current_page_number,
                    job.priority,
                    job.created_at.isoformat(),
                ),
            )
            conn.commit()
            return job
        finally:
            conn.close()

    def get_by_id(self, job_id: UUID) -> ExportJob | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM export_jobs WHERE id = ?", (str(job_id),)).fetchone()
            if not row:
                return None
            return self._map_row(row)
        finally:
            conn.close()

    def list_by_book(self, book_id: UUID) -> list[ExportJob]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM export_jobs WHERE book_id = ? ORDER BY created_at DESC",
                (str(book_id),),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def list_completed_since(self, user_id: UUID, since: datetime) -> list[ExportJob]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM export_jobs
                WHERE user_id = ? AND status = 'completed' AND completed_at >= ?
                ORDER BY completed_at DESC
            """,
                (str(user_id), since.isoformat()),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def list_in_flight(self) -> list[ExportJob]:
        """Pending and processing jobs in claim order."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM export_jobs
                WHERE status IN ('pending', 'processing')
                ORDER BY priority DESC, created_at ASC
            """
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def count_in_flight(self, user_id: UUID | None = None) -> int:
        conn = self._get_conn()
        try:
            if user_id is None:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM export_jobs "
                    "WHERE status IN ('pending', 'processing')"
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM export_jobs "
                    "WHERE user_id = ? AND status IN ('pending', 'processing')",
                    (str(user_id),),
                ).fetchone()
            return int(row["n"])
        finally:
            conn.close()

    def claim(self, job_id: UUID, worker_id: str) -> ExportJob | None:
        """Atomically move one pending job to processing. None if already claimed."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                UPDATE export_jobs
                SET status = 'processing', claimed_by = ?
                WHERE id = ? AND status = 'pending'
                RETURNING *
            """,
                (worker_id, str(job_id)),
            ).fetchone()
            conn.commit()
            if not row:
                return None
            return self._map_row(row)
        finally:
            conn.close()

    def claim_next(self, worker_id: str) -> ExportJob | None:
        """Claim the highest-priority, oldest pending job."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                UPDATE export_jobs
                SET status = 'processing', claimed_by = ?
                WHERE id = (
                    SELECT id FROM export_jobs
                    WHERE status = 'pending'
                    ORDER BY priority DESC, created_at ASC
                    LIMIT 1
                ) AND status = 'pending'
                RETURNING *
            """,
                (worker_id,),
            ).fetchone()
            conn.commit()
            if not row:
                return None
            return self._map_row(row)
        finally:
            conn.close()

    def update(self, job: ExportJob) -> ExportJob:
        """
        Persist a status change.

        The write only applies when the stored row is in a valid predecessor
        state, so terminal rows can never be rewritten. Raises LookupError when
        the row has been deleted and ValueError when its state forbids the change.
        """
        if job.status not in self._PREDECESSORS:
            raise ValueError(f"Cannot persist transition to {job.status}")
        previous = self._PREDECESSORS[job.status]
        placeholders = ", ".join("?" for _ in previous)

        conn = self._get_conn()
        try:
            row = conn.execute(
                f"""
                UPDATE export_jobs
                SET status = ?, file_path = ?, file_size = ?, error_message = ?,
                    claimed_by = ?, completed_at = ?
                WHERE id = ? AND status IN ({placeholders})
                RETURNING *
            """,
                (
                    job.status,
                    job.file_path,
                    job.file_size,
                    job.error_message,
                    job.claimed_by,
                    job.completed_at.isoformat() if job.completed_at else None,
                    str(job.id),
                    *previous,
                ),
            ).fetchone()
            conn.commit()
            if not row:
                exists = conn.execute(
                    "SELECT 1 FROM export_jobs WHERE id = ?", (str(job.id),)
                ).fetchone()
                if not exists:
                    raise LookupError(f"Export {job.id} no longer exists")
                raise ValueError(f"Export {job.id} is not in a state that allows {job.status}")
            return self._map_row(row)
        finally:
            conn.close()

    def delete(self, job_id: UUID) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM export_jobs WHERE id = ?", (str(job_id),))
            conn.commit()
        finally:
            conn.close()


class RepoBookGateway:
    """Load/save collaborator for the document store, backed by the repos."""

    def __init__(self, books: SQLiteBookRepo, friends: SQLiteBookFriendRepo):
        self.books = books
        self.friends = friends

    def load(self, book_id: UUID) -> tuple[Book, list[BookFriend]] | None:
        book = self.books.get_by_id(book_id)
        if book is None:
            return None
        return book, self.friends.list_by_book(book_id)

    def save(self, book: Book) -> Book:
        try:
            return self.books.save(book)
        except sqlite3.OperationalError as e:
            raise OSError(f"Saving book {book.id} failed: {e}") from e
