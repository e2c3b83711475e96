import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class FileSystemStore:
    """Artifact storage rooted at one directory. Paths are relative to the root."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _safe_path(self, path: str) -> Path:
        target = (self.base_path / path).resolve()
        if not target.is_relative_to(self.base_path):
            raise ValueError(f"Path traversal attempt detected: {path}")
        return target

    def save(self, name: str, data: bytes) -> str:
        """Write bytes atomically and return the path relative to the root."""
        target = self._safe_path(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".part")
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, target)
        return str(target.relative_to(self.base_path))

    def get(self, path: str) -> bytes:
        """Retrieve bytes by path. Raises FileNotFoundError."""
        target = self._safe_path(path)
        if not target.exists():
            raise FileNotFoundError(f"File not found: {path}")
        with open(target, "rb") as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return self._safe_path(path).exists()

    def delete(self, path: str) -> None:
        """Remove a file and any leftover partial write. Missing files are ignored."""
        target = self._safe_path(path)
        for candidate in (target, target.with_suffix(target.suffix + ".part")):
            if candidate.exists():
                os.remove(candidate)
                logger.debug("Deleted %s", candidate)
