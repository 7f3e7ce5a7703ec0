"""W2M hub: routes connector messages into the category archive.

Responsibilities:
1. Own the category registry (loaded once at startup) and storage backend
2. Filter messages by allowed group
3. Hand accepted messages to the CategoryWriter
4. Start and stop connectors
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from w2m.categories.registry import CategoryRegistry
from w2m.categories.writer import CategoryWriter
from w2m.storage import create_storage

if TYPE_CHECKING:
    from w2m.config import W2MConfig
    from w2m.connectors.base import Connector, Message
    from w2m.storage.base import Storage

logger = logging.getLogger(__name__)


class W2M:
    """Core hub that wires connectors to the category writer."""

    def __init__(self, config: W2MConfig, storage: Storage | None = None) -> None:
        self.config = config
        self.registry = CategoryRegistry(config.categories_file)
        self.registry.load()
        self.storage = storage or create_storage(config)
        self.writer = CategoryWriter(
            self.registry,
            self.storage,
            use_frontmatter=config.vault.enable_frontmatter,
        )
        self._allowed_groups = {g.lower() for g in config.ingest.allowed_groups}
        self._connectors: list[Connector] = []

    # ── Connector management ─────────────────────────────────

    def add_connector(self, connector: Connector) -> None:
        self._connectors.append(connector)
        logger.info("Registered connector: %s", connector.name)

    @property
    def connectors(self) -> list[Connector]:
        return list(self._connectors)

    # ── Message handling ─────────────────────────────────────

    def accepts_group(self, group: str) -> bool:
        return not self._allowed_groups or group.lower() in self._allowed_groups

    async def handle_message(self, msg: Message) -> bool:
        """Entry point for all connectors. True when the message was archived."""
        if not self.accepts_group(msg.group):
            logger.debug("Ignoring message from unmonitored group %r", msg.group)
            return False
        return await self.writer.process_message(msg)

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Prepare storage and start all connectors."""
        if not self._connectors:
            raise RuntimeError("No connectors registered. Call add_connector() first.")

        await self.storage.initialize()
        logger.info(
            "W2M started (%d categories, vault=%s)", len(self.registry), self.config.vault.path
        )
        await asyncio.gather(*(c.start(self.handle_message) for c in self._connectors))

    async def stop(self) -> None:
        """Gracefully stop all connectors."""
        for connector in self._connectors:
            await connector.stop()
