"""Markdown codec for category documents.

A document is a free-text header followed by ``---``-delimited message blocks,
newest first:

    **CATEGORIA:** CODE

    **MENSAJES** (ordenados de más a menos reciente):

    ---

    ## Mensaje #2
    - **FECHA:** 01/01/2024
    - **HORA:** 10:00:00
    - **AUTOR:** Ana

    **CONTENIDO:**

    ```
    print('hi')
    ```

Blocks whose FECHA/HORA lines cannot rebuild the entry's timestamp (DATE or
TIME disabled) also carry a hidden ``<!-- ts: <epoch> -->`` line.

Decoding is lenient: malformed blocks are skipped and reported in
``MarkdownDocument.warnings``; it never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

import frontmatter

from w2m.categories.registry import CategoryField

if TYPE_CHECKING:
    from w2m.categories.registry import CategoryDefinition

logger = logging.getLogger(__name__)

MESSAGES_MARKER = "**MENSAJES**"
BLOCK_SEPARATOR = "---"
EMPTY_PLACEHOLDER = "_No hay mensajes en esta categoría aún._"
UNKNOWN_AUTHOR = "Desconocido"
CONTENT_LABEL = "**CONTENIDO:**"

_FIELD_PREFIXES = {
    CategoryField.DATE: "- **FECHA:**",
    CategoryField.TIME: "- **HORA:**",
    CategoryField.AUTHOR: "- **AUTOR:**",
}

_FENCE = re.compile(r"^`{3,}$")

# Hidden ordering key, written when the visible fields cannot reproduce it
TIMESTAMP_COMMENT = "<!-- ts: {} -->"
_TIMESTAMP_LINE = re.compile(r"^<!-- ts: (\S+) -->$")

DEFAULT_REQUIRED = CategoryField.DATE | CategoryField.TIME | CategoryField.CONTENT


@dataclass(frozen=True)
class CategorizedMessage:
    """One archived message. ``timestamp`` orders and identifies entries."""

    content: str
    sender: str
    time: str
    date: str
    timestamp: float | None = None

    def identity(self, fields: CategoryField) -> tuple:
        """Key under which two entries count as the same persisted message.

        The sender only takes part when ``fields`` stores it; decoded entries
        of other categories all carry ``UNKNOWN_AUTHOR``.
        """
        return (
            self.content,
            self.sender if CategoryField.AUTHOR in fields else None,
            self.timestamp,
        )


@dataclass
class MarkdownDocument:
    """Decoded category document."""

    header: str
    messages: list[CategorizedMessage] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ── Timestamps ───────────────────────────────────────────────


def parse_timestamp(time: str, date: str) -> float:
    """Epoch seconds for ``HH:MM:SS`` + ``DD/MM/YYYY`` in local time.

    Missing time components default to zero. Raises ValueError on bad input.
    """
    day, month, year = (int(p) for p in _split_exact(date.strip(), "/", 3))
    time = time.strip()
    time_parts = [int(p) for p in time.split(":")] if time else []
    if len(time_parts) > 3:
        raise ValueError(f"Too many time components: {time!r}")
    hour, minute, second = (time_parts + [0, 0, 0])[:3]
    try:
        return datetime(year, month, day, hour, minute, second).timestamp()
    except (OverflowError, OSError) as e:
        raise ValueError(str(e)) from e


def timestamp_or_now(time: str, date: str, warnings: list[str] | None = None) -> float:
    """``parse_timestamp`` with a current-time fallback that never raises."""
    try:
        return parse_timestamp(time, date)
    except ValueError:
        message = f"Unparsable date/time {date!r} {time!r}, using current time"
        logger.warning("%s", message)
        if warnings is not None:
            warnings.append(message)
        return datetime.now().timestamp()


def _split_exact(value: str, sep: str, count: int) -> list[str]:
    parts = value.split(sep)
    if len(parts) != count:
        raise ValueError(f"Expected {count} parts in {value!r}")
    return parts


# ── Header ───────────────────────────────────────────────────


def render_header(category: CategoryDefinition, use_frontmatter: bool = False) -> str:
    """Header for a brand-new category document."""
    body = f"**CATEGORIA:** {category.name}\n\n"
    if category.description:
        body += f"**Descripcion:** {category.description}\n\n"
    body += f"{MESSAGES_MARKER} (ordenados de más a menos reciente):\n\n"

    if not use_frontmatter:
        return body

    metadata = {"category": category.name, "created": category.created_at}
    if category.description:
        metadata["description"] = category.description
    return frontmatter.dumps(frontmatter.Post(body, **metadata)) + "\n\n"


# ── Decode ───────────────────────────────────────────────────


def decode(raw: str, required: CategoryField = DEFAULT_REQUIRED) -> MarkdownDocument:
    """Parse a category document.

    Blocks lacking a field in ``required`` or a content fence are skipped.
    """
    lines = raw.splitlines()

    header_end = next((i for i, line in enumerate(lines) if MESSAGES_MARKER in line), None)
    if header_end is None:
        # Legacy layout: a lone --- line ends the header
        header_end = next(
            (i for i, line in enumerate(lines) if line.strip() == BLOCK_SEPARATOR), None
        )
        if header_end is None:
            return MarkdownDocument(header=raw)

    doc = MarkdownDocument(header="\n".join(lines[: header_end + 1]) + "\n\n")
    for block in _split_blocks(lines[header_end + 1 :]):
        message = _parse_block(block, required, doc.warnings)
        if message is not None:
            doc.messages.append(message)
    return doc


def _split_blocks(lines: list[str]) -> list[list[str]]:
    """Split at ``---`` lines outside fenced regions; drop blank blocks."""
    blocks: list[list[str]] = []
    current: list[str] = []
    fence: str | None = None

    for line in lines:
        stripped = line.strip()
        if fence is None and stripped == BLOCK_SEPARATOR:
            blocks.append(current)
            current = []
            continue
        if fence is None and _FENCE.match(stripped):
            fence = stripped
        elif fence is not None and stripped == fence:
            fence = None
        current.append(line)
    blocks.append(current)

    return [b for b in blocks if any(line.strip() for line in b)]


def _parse_block(
    block: list[str], required: CategoryField, warnings: list[str]
) -> CategorizedMessage | None:
    values: dict[CategoryField, str] = {}
    content_lines: list[str] = []
    fence: str | None = None
    fenced = False
    stored_ts: str | None = None

    for line in block:
        stripped = line.strip()
        if fence is not None:
            if stripped == fence:
                fence = None
            else:
                content_lines.append(line)
            continue
        if not fenced and _FENCE.match(stripped):
            fence = stripped
            fenced = True
            continue
        match = _TIMESTAMP_LINE.match(stripped)
        if match:
            stored_ts = match.group(1)
            continue
        for f, prefix in _FIELD_PREFIXES.items():
            if stripped.startswith(prefix):
                values[f] = stripped[len(prefix) :].strip()
                break

    if not fenced and "\n".join(block).strip() == EMPTY_PLACEHOLDER:
        return None

    missing = [f.labels[0] for f in _FIELD_PREFIXES if f in required and not values.get(f)]
    if CategoryField.CONTENT in required and not fenced:
        missing.append("CONTENIDO")
    if missing:
        heading = next(line.strip() for line in block if line.strip())
        warnings.append(f"Skipped block {heading!r}: missing {', '.join(missing)}")
        logger.warning("%s", warnings[-1])
        return None

    date = values.get(CategoryField.DATE, "")
    time = values.get(CategoryField.TIME, "")

    timestamp: float | None = None
    if stored_ts is not None:
        try:
            timestamp = float(stored_ts)
        except ValueError:
            warnings.append(f"Ignoring invalid timestamp comment {stored_ts!r}")
            logger.warning("%s", warnings[-1])
    if timestamp is None and date:
        timestamp = timestamp_or_now(time, date, warnings)

    return CategorizedMessage(
        content="\n".join(content_lines).strip(),
        sender=values.get(CategoryField.AUTHOR, UNKNOWN_AUTHOR),
        time=time,
        date=date,
        timestamp=timestamp,
    )


# ── Encode ───────────────────────────────────────────────────


def encode(
    header: str, category: CategoryDefinition, messages: list[CategorizedMessage]
) -> str:
    """Render a document. ``messages`` must already be newest first."""
    if not header.endswith("\n"):
        header += "\n\n"

    if not messages:
        return f"{header}{BLOCK_SEPARATOR}\n\n{EMPTY_PLACEHOLDER}\n"

    parts = [header]
    total = len(messages)
    for index, message in enumerate(messages):
        parts.append(f"{BLOCK_SEPARATOR}\n\n")
        parts.append(_format_message(message, category.enabled_fields, total - index))
        parts.append("\n\n")
    return "".join(parts).rstrip() + "\n"


def _format_message(message: CategorizedMessage, fields: CategoryField, number: int) -> str:
    lines = [f"## Mensaje #{number}"]

    values = {
        CategoryField.DATE: message.date,
        CategoryField.TIME: message.time,
        CategoryField.AUTHOR: message.sender,
    }
    for f, prefix in _FIELD_PREFIXES.items():
        if f in fields:
            lines.append(f"{prefix} {values[f]}")

    if message.timestamp is not None and not _fields_reproduce(message, fields):
        lines.append(TIMESTAMP_COMMENT.format(repr(message.timestamp)))

    if CategoryField.CONTENT in fields:
        fence = _fence_for(message.content)
        lines.extend(["", CONTENT_LABEL, "", fence, message.content, fence])

    return "\n".join(lines)


def _fields_reproduce(message: CategorizedMessage, fields: CategoryField) -> bool:
    """True if decoding the FECHA/HORA lines yields ``message.timestamp``."""
    if CategoryField.DATE not in fields or CategoryField.TIME not in fields:
        return False
    try:
        return parse_timestamp(message.time, message.date) == message.timestamp
    except ValueError:
        return False


def _fence_for(content: str) -> str:
    """Shortest backtick fence that no line of ``content`` can close."""
    longest = max(
        (len(line.strip()) for line in content.splitlines() if _FENCE.match(line.strip())),
        default=0,
    )
    return "`" * max(3, longest + 1)
