from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from src.adapters.channels import ChannelHub
from src.adapters.clock import SystemClock
from src.adapters.export_jobs import ExportScheduler, ExportWorker, create_export_scheduler
from src.adapters.fs.filestore import FileSystemStore
from src.adapters.render.pdf_renderer import PdfBookRenderer
from src.adapters.sqlite.repos import (
    RepoBookGateway,
    SQLiteBookFriendRepo,
    SQLiteBookRepo,
    SQLiteExportJobRepo,
    SQLiteUserRepo,
)
from src.components.assignments import RoleProvider
from src.components.design import DesignCatalog
from src.components.editor import DocumentStore
from src.domain.policy import PolicyEngine
from src.rules.models import Rules


@dataclass
class ServiceContext:
    user_repo: SQLiteUserRepo
    book_repo: SQLiteBookRepo
    friend_repo: SQLiteBookFriendRepo
    export_repo: SQLiteExportJobRepo
    file_store: FileSystemStore
    renderer: PdfBookRenderer
    roles: RoleProvider
    books: RepoBookGateway
    catalog: DesignCatalog
    hub: ChannelHub
    policy: PolicyEngine
    rules: Rules
    clock: Any = None  # For testing/injection

    @classmethod
    def create(
        cls,
        db_path: str,
        fs_path: str,
        rules: Rules,
        hub: ChannelHub | None = None,
        clock: Any = None,
    ) -> ServiceContext:
        book_repo = SQLiteBookRepo(db_path)
        friend_repo = SQLiteBookFriendRepo(db_path)
        return cls(
            user_repo=SQLiteUserRepo(db_path),
            book_repo=book_repo,
            friend_repo=friend_repo,
            export_repo=SQLiteExportJobRepo(db_path),
            file_store=FileSystemStore(fs_path),
            renderer=PdfBookRenderer(),
            roles=RoleProvider(book_repo, friend_repo),
            books=RepoBookGateway(book_repo, friend_repo),
            catalog=DesignCatalog.from_rules(rules.design),
            hub=hub or ChannelHub(),
            policy=PolicyEngine(rules.exports),
            rules=rules,
            clock=clock or SystemClock(),
        )

    def export_ports(self) -> dict[str, Any]:
        """Keyword ports for the exports component entry points."""
        return {
            "repo": self.export_repo,
            "books": self.book_repo,
            "roles": self.roles,
            "store": self.file_store,
            "clock": self.clock,
            "rules": self.rules.exports,
        }

    def document_store(self, user_id: UUID | None) -> DocumentStore:
        return DocumentStore(
            user_id,
            role_provider=self.roles,
            history_limit=self.rules.editor.history_limit,
        )

    def export_worker(self, worker_id: str | None = None) -> ExportWorker:
        return ExportWorker(
            job_repo=self.export_repo,
            book_repo=self.book_repo,
            store=self.file_store,
            renderer=self.renderer,
            clock=self.clock,
            rules=self.rules.exports,
            hub=self.hub,
            worker_id=worker_id,
        )

    def export_scheduler(self) -> ExportScheduler:
        return create_export_scheduler(self.export_worker(), self.rules.exports)
