from unittest.mock import Mock
from uuid import uuid4

import pytest

from src.components.editor import (
    AddElement,
    DocumentStore,
    EditorHost,
    NavigateToPage,
    OpenDialog,
    ReplaceBook,
    RequestSave,
)
from src.domain.entities import Book, BookFriend, Page, ShapeElement

OWNER = uuid4()
AUTHOR = uuid4()


def _book():
    pages = [
        Page(page_number=n, assigned_user_id=AUTHOR if n == 2 else None) for n in (1, 2, 3)
    ]
    return Book(name="Atlas", owner_user_id=OWNER, pages=pages)


@pytest.fixture
def saver():
    saver = Mock()
    saver.save.side_effect = lambda b: b.model_copy(update={"revision": b.revision + 1})
    return saver


@pytest.fixture
def owner_host(saver):
    store = DocumentStore(OWNER)
    store.dispatch(ReplaceBook(book=_book()))
    return EditorHost(store, saver)


@pytest.fixture
def author_host(saver):
    friend = BookFriend(book_id=uuid4(), user_id=AUTHOR, page_access_level="own_page")
    store = DocumentStore(AUTHOR)
    store.dispatch(ReplaceBook(book=_book(), roster=(friend,)))
    return EditorHost(store, saver)


def test_request_save(owner_host, saver):
    owner_host.store.dispatch(AddElement(1, ShapeElement()))
    reply = owner_host.send(RequestSave())
    assert reply.handled is True
    assert reply.saved is True
    saver.save.assert_called_once()


def test_navigation_saves_dirty_book_first(owner_host, saver):
    owner_host.store.dispatch(AddElement(1, ShapeElement()))

    reply = owner_host.send(NavigateToPage(3))

    assert reply.saved is True
    assert owner_host.store.is_dirty is False
    assert owner_host.store.active_page_number == 3


def test_navigation_without_changes_skips_save(owner_host, saver):
    reply = owner_host.send(NavigateToPage(2))
    assert reply.saved is False
    saver.save.assert_not_called()


def test_navigation_continues_when_save_fails(owner_host, saver):
    saver.save.side_effect = OSError("offline")
    owner_host.store.dispatch(AddElement(1, ShapeElement()))

    reply = owner_host.send(NavigateToPage(2))

    assert reply.handled is True
    assert reply.saved is False
    assert owner_host.store.is_dirty is True
    assert owner_host.store.active_page_number == 2


def test_navigation_to_hidden_page_reports_redirect(author_host):
    reply = author_host.send(NavigateToPage(1))
    assert author_host.store.active_page_number == 2
    assert "not visible" in reply.message


def test_open_registered_dialog(owner_host):
    opened = []
    owner_host.register_dialog("templates", opened.append)

    reply = owner_host.send(OpenDialog("templates", {"page": 1}))

    assert reply.handled is True
    assert opened[0].payload == {"page": 1}


def test_unregistered_dialog(owner_host):
    reply = owner_host.send(OpenDialog("export"))
    assert reply.handled is False


@pytest.mark.parametrize("dialog", ["settings", "assignments"])
def test_gated_dialogs_for_author(author_host, dialog):
    opened = []
    author_host.register_dialog(dialog, opened.append)
    reply = author_host.send(OpenDialog(dialog))
    assert reply.handled is False
    assert opened == []


def test_unknown_message(owner_host):
    with pytest.raises(ValueError, match="Unknown host message"):
        owner_host.send("save")
