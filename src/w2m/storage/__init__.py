"""Storage backends for the markdown vault."""

from __future__ import annotations

from typing import TYPE_CHECKING

from w2m.storage.base import Storage, StorageError
from w2m.storage.local import LocalStorage

if TYPE_CHECKING:
    from w2m.config import W2MConfig

__all__ = ["LocalStorage", "Storage", "StorageError", "create_storage"]


def create_storage(config: W2MConfig) -> Storage:
    """Build the storage backend named by ``config.storage.type``."""
    kind = config.storage.type
    if kind == "local":
        return LocalStorage(config.vault.path)
    raise ValueError(f"Unknown storage type: {kind}")
