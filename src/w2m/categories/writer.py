"""Category writer: archive detected messages into per-category markdown.

Each archived message is a read-modify-write of one document. Writes for the
same category are serialized by a per-category lock; different categories
proceed independently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from w2m.categories import codec
from w2m.categories.codec import CategorizedMessage, MarkdownDocument
from w2m.categories.detector import detect
from w2m.categories.registry import CategoryField
from w2m.storage.base import StorageError

if TYPE_CHECKING:
    from w2m.categories.registry import CategoryDefinition, CategoryRegistry
    from w2m.connectors.base import Message
    from w2m.storage.base import Storage

logger = logging.getLogger(__name__)

_PREVIEW_LENGTH = 50


def _preview(text: str) -> str:
    if len(text) <= _PREVIEW_LENGTH:
        return text
    return text[:_PREVIEW_LENGTH] + "..."


class CategoryWriter:
    """Detects categorized messages and merges them into their documents."""

    def __init__(
        self,
        registry: CategoryRegistry,
        storage: Storage,
        use_frontmatter: bool = False,
    ) -> None:
        self.registry = registry
        self.storage = storage
        self.use_frontmatter = use_frontmatter
        self._locks: dict[str, asyncio.Lock] = {}  # normalized_key → lock

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    # ── Message handling ─────────────────────────────────────

    async def process_message(self, message: Message) -> bool:
        """Archive ``message`` if it targets a category. Never raises on I/O."""
        detected = detect(message.content, self.registry)
        if detected is None:
            return False

        category = self.registry.get(detected.category_name)
        if category is None:
            logger.warning(
                "Category %r detected but no longer registered", detected.category_name
            )
            return False

        time_part, _, date_part = message.time.partition(" - ")
        entry = CategorizedMessage(
            content=detected.content,
            sender=message.sender,
            time=time_part.strip(),
            date=date_part.strip(),
            timestamp=codec.timestamp_or_now(time_part, date_part),
        )

        path = self.registry.markdown_path(category.name)
        try:
            await self._append(category, entry)
        except (StorageError, OSError) as e:
            logger.error("Failed to save message in category %r (%s): %s", category.name, path, e)
            return False

        logger.info(
            "Saved message in category %r from %s: %s",
            category.name,
            message.sender,
            _preview(detected.content),
        )
        return True

    async def _append(self, category: CategoryDefinition, entry: CategorizedMessage) -> None:
        path = self.registry.markdown_path(category.name)
        async with self._get_lock(category.normalized_key):
            doc = await self._load(category, path)

            fields = category.enabled_fields
            identity = entry.identity(fields)
            if any(m.identity(fields) == identity for m in doc.messages):
                logger.debug("Duplicate message in %r ignored", category.name)
            else:
                doc.messages.append(entry)

            doc.messages.sort(key=_sort_key, reverse=True)
            await self.storage.save_file(path, codec.encode(doc.header, category, doc.messages))

    async def _load(self, category: CategoryDefinition, path: str) -> MarkdownDocument:
        """Decode the existing document, or start a fresh one if there is none."""
        if not await self.storage.exists(path):
            return MarkdownDocument(header=codec.render_header(category, self.use_frontmatter))

        raw = await self.storage.read_file(path)
        if raw is None:
            logger.warning("Document %s disappeared while reading, starting fresh", path)
            return MarkdownDocument(header=codec.render_header(category, self.use_frontmatter))

        # Only the content fence is mandatory here: blocks written while
        # DATE/TIME were disabled must survive the rewrite.
        doc = codec.decode(raw, required=CategoryField.CONTENT)
        for warning in doc.warnings:
            logger.warning("%s: %s", path, warning)
        return doc

    # ── Document management ──────────────────────────────────

    async def create_document(self, name: str) -> bool:
        """Write an empty document for a category unless one already exists."""
        category = self.registry.get(name)
        if category is None:
            return False
        path = self.registry.markdown_path(category.name)
        async with self._get_lock(category.normalized_key):
            if await self.storage.exists(path):
                return False
            header = codec.render_header(category, self.use_frontmatter)
            await self.storage.save_file(path, codec.encode(header, category, []))
        logger.info("Created document %s", path)
        return True

    async def read_document(self, name: str) -> MarkdownDocument | None:
        """Decode a category's document; None if the category or file is missing."""
        category = self.registry.get(name)
        if category is None:
            return None
        raw = await self.storage.read_file(self.registry.markdown_path(category.name))
        if raw is None:
            return None
        return codec.decode(raw, required=CategoryField.CONTENT)

    async def delete_document(self, name: str) -> bool:
        """Remove a category's markdown file. False if there was nothing to remove."""
        key = name.lower()
        path = self.registry.markdown_path(name)
        async with self._get_lock(key):
            if not await self.storage.exists(path):
                return False
            await self.storage.delete_file(path)
        logger.info("Deleted document %s", path)
        return True


def _sort_key(message: CategorizedMessage) -> tuple[bool, float]:
    # Entries without a recoverable timestamp sink below dated ones
    return (message.timestamp is not None, message.timestamp or 0.0)
