"""Push channel websocket: authentication and event delivery."""

import pytest
from fastapi import WebSocketDisconnect

from src.adapters.channels import user_channel
from src.api.auth_utils import create_access_token


def _token(user):
    return create_access_token(user.id)


def test_rejects_missing_token(client, owner):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/users/{owner.id}"):
            pass
    assert exc.value.code == 1008


def test_rejects_token_of_other_user(client, owner, author):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws/users/{owner.id}?token={_token(author)}"):
            pass


def test_delivers_published_events(client, test_ctx, owner):
    event = {"type": "pdf_export_completed", "exportId": "x", "status": "completed"}

    with client.websocket_connect(f"/ws/users/{owner.id}?token={_token(owner)}") as ws:
        assert test_ctx.hub.publish(user_channel(owner.id), event) == 1
        assert ws.receive_json() == event


def test_worker_completion_reaches_requester(client, test_ctx, book, owner, auth_headers):
    created = client.post(
        "/api/exports",
        json={"book_id": str(book.id), "quality": "preview"},
        headers=auth_headers(owner),
    ).json()

    with client.websocket_connect(f"/ws/users/{owner.id}?token={_token(owner)}") as ws:
        test_ctx.export_worker().run_pending()
        event = ws.receive_json()

    assert event["type"] == "pdf_export_completed"
    assert event["exportId"] == created["id"]
    assert event["bookId"] == str(book.id)
    assert event["bookName"] == "Field Notes"
    assert event["status"] == "completed"
