"""Shared fixtures."""

from __future__ import annotations

import asyncio

import pytest
from pathlib import Path

from w2m.categories.registry import CategoryRegistry
from w2m.storage.base import StorageError


class MemoryStorage:
    """In-memory Storage with optional failure injection and read latency."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.read_delay = 0.0
        self.writes = 0

    async def initialize(self) -> None:
        pass

    async def exists(self, path: str) -> bool:
        return path in self.files

    async def read_file(self, path: str) -> str | None:
        if self.fail_reads:
            raise StorageError(f"read failed: {path}")
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        return self.files.get(path)

    async def save_file(self, path: str, content: str) -> None:
        if self.fail_writes:
            raise StorageError(f"write failed: {path}")
        self.files[path] = content
        self.writes += 1

    async def delete_file(self, path: str) -> None:
        self.files.pop(path, None)

    async def list_files(self, path: str) -> list[str]:
        prefix = path.rstrip("/") + "/"
        return sorted(p for p in self.files if p.startswith(prefix) and "/" not in p[len(prefix):])


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def registry(tmp_path: Path) -> CategoryRegistry:
    reg = CategoryRegistry(tmp_path / "categories.json")
    reg.load()
    return reg
