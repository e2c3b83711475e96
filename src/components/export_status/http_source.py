"""HTTP client for the export endpoints, used by the status poller."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import httpx

from src.components.cache import TTLCache
from src.domain.entities import ExportJob

from .ports import ExportSourceError


class HttpExportSource:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        client: httpx.Client | None = None,
        cache: TTLCache[dict[str, Any]] | None = None,
        timeout: float = 10.0,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.Client(base_url=base_url, headers=headers, timeout=timeout)
        if client is not None and headers:
            self.client.headers.update(headers)
        self.cache: TTLCache[dict[str, Any]] = cache or TTLCache(ttl_seconds=60)

    def _get(self, path: str) -> Any:
        try:
            response = self.client.get(path)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExportSourceError(str(e)) from e
        return response.json()

    def list_exports(self, book_id: UUID) -> list[ExportJob]:
        data = self._get(f"/api/exports/book/{book_id}")
        return [ExportJob.model_validate(item) for item in data]

    def recent_exports(self) -> list[ExportJob]:
        return [ExportJob.model_validate(item) for item in self._get("/api/exports/recent")]

    def book_summary(self, book_id: UUID) -> dict[str, Any]:
        """Book name and page count, cached for the cache TTL."""

        def load() -> dict[str, Any]:
            data = self._get(f"/api/books/{book_id}")
            book = data["book"]
            return {"id": book["id"], "name": book["name"], "page_count": len(book["pages"])}

        return self.cache.get_or_load(("book", str(book_id)), load)

    def invalidate_book(self, book_id: UUID) -> None:
        self.cache.invalidate(("book", str(book_id)))

    def close(self) -> None:
        self.client.close()
