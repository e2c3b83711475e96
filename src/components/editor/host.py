"""
Editing host.

Subordinate views (page list, toolbar, dialogs) talk to the host through typed
messages instead of ambient global events. The host owns the document store and
the save collaborator and routes each message to exactly one handler.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from .component import DocumentStore
from .models import SetActivePage
from .ports import BookSavePort

logger = logging.getLogger(__name__)

DialogName = Literal["templates", "palettes", "assignments", "export", "settings"]


@dataclass(frozen=True)
class RequestSave:
    pass


@dataclass(frozen=True)
class NavigateToPage:
    page_number: int


@dataclass(frozen=True)
class OpenDialog:
    dialog: DialogName
    payload: dict[str, Any] = field(default_factory=dict)


HostMessage = RequestSave | NavigateToPage | OpenDialog

DialogHandler = Callable[[OpenDialog], None]


@dataclass(frozen=True)
class HostReply:
    handled: bool
    saved: bool = False
    message: str = ""


class EditorHost:
    def __init__(self, store: DocumentStore, saver: BookSavePort) -> None:
        self.store = store
        self.saver = saver
        self._dialogs: dict[str, DialogHandler] = {}
        self._handlers: dict[type, Callable[[Any], HostReply]] = {
            RequestSave: self._on_request_save,
            NavigateToPage: self._on_navigate,
            OpenDialog: self._on_open_dialog,
        }

    def register_dialog(self, name: DialogName, handler: DialogHandler) -> None:
        self._dialogs[name] = handler

    def send(self, message: HostMessage) -> HostReply:
        handler = self._handlers.get(type(message))
        if handler is None:
            raise ValueError(f"Unknown host message: {type(message)}")
        return handler(message)

    def _on_request_save(self, message: RequestSave) -> HostReply:
        saved = self.store.save(self.saver)
        return HostReply(handled=True, saved=saved, message="" if saved else "Save failed")

    def _on_navigate(self, message: NavigateToPage) -> HostReply:
        saved = False
        if self.store.is_dirty:
            saved = self.store.save(self.saver)
            if not saved:
                logger.warning("Save on navigation failed, changes kept in memory")

        result = self.store.dispatch(SetActivePage(message.page_number))
        note = result.denied.reason if result.denied else ""
        return HostReply(handled=result.applied, saved=saved, message=note)

    def _on_open_dialog(self, message: OpenDialog) -> HostReply:
        caps = self.store.capabilities
        if message.dialog == "settings" and not caps.can_view_settings:
            return HostReply(handled=False, message="Settings not available")
        if message.dialog == "assignments" and not caps.can_manage_pages:
            return HostReply(handled=False, message="Page management not allowed")

        handler = self._dialogs.get(message.dialog)
        if handler is None:
            return HostReply(handled=False, message=f"No view for {message.dialog}")
        handler(message)
        return HostReply(handled=True)
