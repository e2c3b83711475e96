import os
from pathlib import Path
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from src.adapters.clock import FrozenClock
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.auth_utils import create_access_token
from src.api.deps import get_channel_hub, get_context
from src.api.main import app
from src.domain.entities import Book, BookFriend, Page, TextElement, User
from src.rules.loader import load_rules
from src.ui.context import ServiceContext

ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def rules():
    return load_rules(ROOT / "rules.yaml")


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def test_ctx(tmp_path, rules, clock):
    """
    Creates a full ServiceContext backed by a temporary SQLite DB and FileStore.
    """
    db_path = os.path.join(tmp_path, "booklab.db")
    SQLiteMigrator(db_path, str(ROOT / "migrations")).run_migrations()

    fs_path = os.path.join(tmp_path, "files")
    return ServiceContext.create(db_path=db_path, fs_path=fs_path, rules=rules, clock=clock)


@pytest.fixture
def owner(test_ctx):
    return test_ctx.user_repo.save(User(display_name="Olive Owner", roles=["user"]))


@pytest.fixture
def author(test_ctx):
    return test_ctx.user_repo.save(User(display_name="Arlo Author", roles=["user"]))


@pytest.fixture
def outsider(test_ctx):
    return test_ctx.user_repo.save(User(display_name="Otto Outsider", roles=["user"]))


@pytest.fixture
def admin(test_ctx):
    return test_ctx.user_repo.save(User(display_name="Ada Admin", roles=["admin"]))


def _make_book(owner_id: UUID, page_count: int = 3, assignee: UUID | None = None) -> Book:
    """Book with one text element per page; page 2 assigned to `assignee`."""
    pages = [
        Page(
            page_number=n,
            elements=[TextElement(id=f"text-{n}", text=f"Page {n}", x=100, y=100)],
            assigned_user_id=assignee if n == 2 else None,
        )
        for n in range(1, page_count + 1)
    ]
    return Book(name="Field Notes", owner_user_id=owner_id, pages=pages)


@pytest.fixture
def book(test_ctx, owner, author):
    """Three-page book owned by `owner`; `author` is an own_page author of page 2."""
    stored = test_ctx.book_repo.save(_make_book(owner.id, assignee=author.id))
    test_ctx.friend_repo.upsert(
        BookFriend(
            book_id=stored.id,
            user_id=author.id,
            book_role="author",
            page_access_level="own_page",
            editor_interaction_level="full_edit",
        )
    )
    return stored


@pytest.fixture
def make_book():
    return _make_book


def _auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return _auth_headers


@pytest.fixture
def client(test_ctx):
    app.dependency_overrides[get_context] = lambda: test_ctx
    app.dependency_overrides[get_channel_hub] = lambda: test_ctx.hub
    yield TestClient(app)
    app.dependency_overrides.clear()
