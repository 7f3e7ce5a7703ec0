"""Storage protocol and shared errors."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class StorageError(Exception):
    """A storage backend failed to complete an operation."""


@runtime_checkable
class Storage(Protocol):
    """File operations the core needs; paths are relative to the vault root."""

    async def initialize(self) -> None:
        """Prepare the backend (create the vault root, authenticate, ...)."""
        ...

    async def exists(self, path: str) -> bool: ...

    async def read_file(self, path: str) -> str | None:
        """Return the file content, or None if the file does not exist.

        Any other failure raises StorageError.
        """
        ...

    async def save_file(self, path: str, content: str) -> None:
        """Create or replace a file, creating parent directories."""
        ...

    async def delete_file(self, path: str) -> None:
        """Remove a file; a missing file is not an error."""
        ...

    async def list_files(self, path: str) -> list[str]:
        """Vault-relative paths of the files directly under ``path``."""
        ...
