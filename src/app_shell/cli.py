import argparse
import logging
import sys
import time
from pathlib import Path
from uuid import UUID

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.auth_utils import create_access_token
from src.app_shell.config import AppConfig, ConfigError, load_config, validate_ops_rules
from src.domain.entities import Book, BookFriend, Page, User
from src.rules.loader import load_rules
from src.ui.context import ServiceContext

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("cli")

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def get_context(config: AppConfig) -> ServiceContext:
    try:
        rules = load_rules(config.rules_path)
        validate_ops_rules(rules, config)
    except (FileNotFoundError, ValueError, ConfigError) as e:
        logger.error("Startup failed: %s", e)
        sys.exit(1)

    SQLiteMigrator(config.db_path, str(MIGRATIONS_DIR)).run_migrations()
    return ServiceContext.create(config.db_path, config.files_dir, rules)


def handle_serve(config: AppConfig, args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("src.api.main:app", host=args.host, port=args.port)


def handle_migrate(config: AppConfig, args: argparse.Namespace) -> None:
    config.data_dir.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(config.db_path, str(MIGRATIONS_DIR)).run_migrations()
    print(f"Applied {len(applied)} migrations.")


def handle_worker(config: AppConfig, args: argparse.Namespace) -> None:
    ctx = get_context(config)
    if args.once:
        result = ctx.export_worker().run_pending(max_jobs=args.max_jobs)
        print(
            f"Processed {result.total_processed} exports: "
            f"{result.succeeded} succeeded, {result.failed} failed."
        )
        return

    scheduler = ctx.export_scheduler()
    scheduler.start()
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Stopping export worker")
    finally:
        scheduler.stop()


def handle_seed(config: AppConfig, args: argparse.Namespace) -> None:
    """Create a demo owner, one author and a three-page book."""
    ctx = get_context(config)
    owner = ctx.user_repo.save(User(display_name="Owner", roles=["user"]))
    author = ctx.user_repo.save(User(display_name="Author", roles=["user"]))

    pages = [Page(page_number=n) for n in range(1, 4)]
    pages[1] = pages[1].model_copy(update={"assigned_user_id": author.id})
    book = ctx.book_repo.save(
        Book(
            name="Demo book",
            owner_user_id=owner.id,
            page_size=ctx.rules.editor.default_page_size,
            orientation=ctx.rules.editor.default_orientation,
            pages=pages,
        )
    )
    ctx.friend_repo.upsert(BookFriend(book_id=book.id, user_id=author.id))

    print(f"Book:   {book.id}")
    print(f"Owner:  {owner.id}  token={create_access_token(owner.id)}")
    print(f"Author: {author.id}  token={create_access_token(author.id)}")


def handle_token(config: AppConfig, args: argparse.Namespace) -> None:
    print(create_access_token(UUID(args.user_id)))


def main() -> None:
    parser = argparse.ArgumentParser(description="Book Lab CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    subparsers.add_parser("migrate", help="Apply database migrations")

    worker_parser = subparsers.add_parser("run-worker", help="Render queued PDF exports")
    worker_parser.add_argument("--once", action="store_true", help="Drain the queue and exit")
    worker_parser.add_argument("--max-jobs", type=int, default=10)

    subparsers.add_parser("seed", help="Create demo users and a book")

    token_parser = subparsers.add_parser("token", help="Mint a development access token")
    token_parser.add_argument("user_id")

    args = parser.parse_args()
    config = load_config()

    handlers = {
        "serve": handle_serve,
        "migrate": handle_migrate,
        "run-worker": handle_worker,
        "seed": handle_seed,
        "token": handle_token,
    }
    handlers[args.command](config, args)


if __name__ == "__main__":
    main()
