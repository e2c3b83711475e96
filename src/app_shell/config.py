import logging
import os
from dataclasses import dataclass
from pathlib import Path

from src.rules.models import Rules

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Startup configuration is invalid."""


@dataclass(frozen=True)
class AppConfig:
    data_dir: Path
    rules_path: Path
    secret_key: str
    embedded_worker: bool

    @property
    def db_path(self) -> str:
        return str(self.data_dir / "booklab.db")

    @property
    def files_dir(self) -> str:
        return str(self.data_dir / "files")


def load_config(base_dir: Path | None = None) -> AppConfig:
    """Read configuration from BOOKLAB_* environment variables."""
    base = base_dir or Path(os.getcwd())
    return AppConfig(
        data_dir=Path(os.environ.get("BOOKLAB_DATA_DIR", str(base / "data"))),
        rules_path=Path(os.environ.get("BOOKLAB_RULES_PATH", str(base / "rules.yaml"))),
        secret_key=os.environ.get("BOOKLAB_SECRET_KEY", "dev-secret-unsafe"),
        embedded_worker=os.environ.get("BOOKLAB_EMBEDDED_WORKER", "0") == "1",
    )


def validate_ops_rules(rules: Rules, config: AppConfig) -> None:
    """
    Validate operational requirements before startup.
    Raises ConfigError on the first unmet requirement.
    """
    ops = rules.ops

    if ops.data_dir_required:
        config.data_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(config.data_dir, os.W_OK):
            raise ConfigError(f"Data directory is not writable: {config.data_dir}")

    missing = [env_var for env_var in ops.required_env if env_var not in os.environ]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    if config.secret_key == "dev-secret-unsafe":
        logger.warning("BOOKLAB_SECRET_KEY is not set, using the development key")

    logger.info("Configuration validated")
