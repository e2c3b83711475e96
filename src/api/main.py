import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import get_context, get_rules, get_settings
from src.app_shell.config import validate_ops_rules

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    rules = get_rules()
    validate_ops_rules(rules, settings)
    logger.info("Rules loaded from %s", settings.rules_path)

    SQLiteMigrator(settings.db_path, str(MIGRATIONS_DIR)).run_migrations()

    scheduler = None
    if settings.embedded_worker:
        scheduler = get_context().export_scheduler()
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()


app = FastAPI(
    title="Book Lab API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from src.api.routes import books, channels, exports, templates  # noqa: E402

app.include_router(books.router, prefix="/api/books", tags=["Books"])
app.include_router(exports.router, prefix="/api/exports", tags=["Exports"])
app.include_router(templates.router, prefix="/api/templates", tags=["Templates"])
app.include_router(channels.router, prefix="/ws", tags=["Channels"])


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
