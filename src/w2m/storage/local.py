"""Local filesystem storage rooted at the vault directory."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from w2m.storage.base import StorageError

logger = logging.getLogger(__name__)


class LocalStorage:
    """Storage backend writing plain files under ``root``.

    Blocking calls run in a worker thread. Writes go to a temp file that is
    renamed into place, so readers never see a half-written document.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def name(self) -> str:
        return "local"

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        full = (root / path).resolve()
        if full != root and root not in full.parents:
            raise StorageError(f"Path escapes vault root: {path!r}")
        return full

    async def initialize(self) -> None:
        try:
            await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create vault root {self.root}: {e}") from e
        logger.debug("Local storage ready at %s", self.root)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).is_file)

    async def read_file(self, path: str) -> str | None:
        full = self._resolve(path)
        try:
            return await asyncio.to_thread(full.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    async def save_file(self, path: str, content: str) -> None:
        full = self._resolve(path)
        try:
            await asyncio.to_thread(self._write_atomic, full, content)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    @staticmethod
    def _write_atomic(full: Path, content: str) -> None:
        full.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=full.parent, prefix=f".{full.name}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp, full)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def delete_file(self, path: str) -> None:
        full = self._resolve(path)
        try:
            await asyncio.to_thread(full.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e

    async def list_files(self, path: str) -> list[str]:
        full = self._resolve(path)

        def _list() -> list[str]:
            if not full.is_dir():
                return []
            return sorted(
                str(Path(path) / entry.name) for entry in full.iterdir() if entry.is_file()
            )

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise StorageError(f"Failed to list {path}: {e}") from e
