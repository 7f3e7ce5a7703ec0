"""Category registry: CRUD over category definitions backed by a JSON file.

The JSON file is the source of truth. It is read once by ``load()`` and
rewritten in full after every mutation.
"""

from __future__ import annotations

import enum
import json
import logging
import os
import re
import tempfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = ",,"
MAX_SEPARATOR_LENGTH = 3

_INVALID_NAME = re.compile(r'[\s<>:"/\\|?*]')


class CategoryField(enum.IntFlag):
    """Fields a category renders into its markdown document."""

    AUTHOR = 1
    TIME = 2
    DATE = 4
    CONTENT = 8

    @classmethod
    def all(cls) -> CategoryField:
        return cls.AUTHOR | cls.TIME | cls.DATE | cls.CONTENT

    @classmethod
    def parse(cls, names: Iterable[str]) -> CategoryField:
        """Build a flag set from English member names or document labels."""
        result = cls(0)
        for raw in names:
            key = raw.strip().upper()
            if not key:
                continue
            if key in _LABEL_TO_FIELD:
                result |= _LABEL_TO_FIELD[key]
            elif key in cls.__members__:
                result |= cls[key]
            else:
                raise ValueError(f"Unknown category field: {raw!r}")
        return result

    @property
    def labels(self) -> list[str]:
        """Document labels of the set members, in rendering order."""
        return [_FIELD_TO_LABEL[f] for f in FIELD_ORDER if f in self]


# Rendering order inside a message block; CONTENT always comes last.
FIELD_ORDER = (CategoryField.DATE, CategoryField.TIME, CategoryField.AUTHOR, CategoryField.CONTENT)

_FIELD_TO_LABEL = {
    CategoryField.DATE: "FECHA",
    CategoryField.TIME: "HORA",
    CategoryField.AUTHOR: "AUTOR",
    CategoryField.CONTENT: "CONTENIDO",
}
_LABEL_TO_FIELD = {label: f for f, label in _FIELD_TO_LABEL.items()}


def normalize_separator(separator: str | None) -> str:
    """Return ``separator`` if it is 1-3 characters long, else the default."""
    if not separator or len(separator) > MAX_SEPARATOR_LENGTH:
        return DEFAULT_SEPARATOR
    return separator


def validate_name(name: object) -> str:
    """Return the stripped category name. Raises ValueError if it cannot be detected."""
    if not isinstance(name, str) or not name.strip() or _INVALID_NAME.search(name.strip()):
        raise ValueError(f"Invalid category name: {name!r}")
    return name.strip()


@dataclass
class CategoryDefinition:
    """A named category: detection separator plus rendered fields."""

    name: str
    description: str | None = None
    enabled_fields: CategoryField = field(default_factory=CategoryField.all)
    separator: str = DEFAULT_SEPARATOR
    created_at: str = field(
        default_factory=lambda: datetime.now().isoformat(timespec="seconds")
    )

    def __post_init__(self) -> None:
        self.enabled_fields |= CategoryField.CONTENT
        self.separator = normalize_separator(self.separator)

    @property
    def normalized_key(self) -> str:
        return self.name.lower()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "enabledFields": self.enabled_fields.labels,
            "separator": self.separator,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CategoryDefinition:
        name = validate_name(data.get("name"))
        fields = data.get("enabledFields")
        if fields is not None and not isinstance(fields, list):
            raise ValueError(f"enabledFields of {name!r} must be a list")
        separator = data.get("separator")
        if separator is not None and not isinstance(separator, str):
            raise ValueError(f"separator of {name!r} must be a string")
        return cls(
            name=name,
            description=data.get("description") or None,
            enabled_fields=(
                CategoryField.parse(map(str, fields)) if fields is not None else CategoryField.all()
            ),
            separator=separator or DEFAULT_SEPARATOR,
            created_at=data.get("createdAt") or datetime.now().isoformat(timespec="seconds"),
        )


class CategoryRegistry:
    """In-memory category map with explicit load/save lifecycle."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._categories: dict[str, CategoryDefinition] = {}

    # ── Persistence ──────────────────────────────────────────

    def load(self) -> None:
        """Load categories from disk. Never raises; resets to empty on failure."""
        self._categories.clear()
        if not self.path.exists():
            logger.debug("No categories file at %s", self.path)
            return

        try:
            entries = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(entries, list):
                raise ValueError("categories file must hold a JSON array")
        except (OSError, ValueError) as e:
            logger.error("Failed to load categories from %s: %s", self.path, e)
            return

        for entry in entries:
            try:
                category = CategoryDefinition.from_dict(entry)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed category entry: %s", e)
                continue
            self._categories[category.normalized_key] = category

        logger.debug("Loaded %d categories", len(self._categories))

    def save(self) -> None:
        """Rewrite the whole registry file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            [c.to_dict() for c in self._categories.values()], ensure_ascii=False, indent=2
        )
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".categories-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload + "\n")
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Saved %d categories", len(self._categories))

    # ── CRUD ─────────────────────────────────────────────────

    def add(
        self,
        name: str,
        description: str | None = None,
        fields: CategoryField | None = None,
        separator: str | None = None,
    ) -> bool:
        """Register a new category. Returns False if the name is taken."""
        name = validate_name(name)
        if name.lower() in self._categories:
            return False

        category = CategoryDefinition(
            name=name,
            description=description or None,
            enabled_fields=fields if fields is not None else CategoryField.all(),
            separator=normalize_separator(separator),
        )
        self._categories[category.normalized_key] = category
        self.save()
        logger.info("Category added: %s (separator=%r)", name, category.separator)
        return True

    def remove(self, name: str) -> bool:
        if self._categories.pop(name.lower(), None) is None:
            return False
        self.save()
        logger.info("Category removed: %s", name)
        return True

    def update(
        self,
        name: str,
        description: str | None = None,
        fields: CategoryField | None = None,
        separator: str | None = None,
    ) -> bool:
        """Merge the given values into an existing category.

        ``None`` leaves a value unchanged; an empty description clears it.
        """
        category = self._categories.get(name.lower())
        if category is None:
            return False

        if description is not None:
            category.description = description or None
        if fields is not None:
            category.enabled_fields = fields | CategoryField.CONTENT
        if separator is not None:
            category.separator = normalize_separator(separator)

        self.save()
        return True

    # ── Lookup ───────────────────────────────────────────────

    def get(self, name: str) -> CategoryDefinition | None:
        return self._categories.get(name.lower())

    def list(self) -> list[CategoryDefinition]:
        return list(self._categories.values())

    def markdown_path(self, name: str) -> str:
        """Vault-relative path of a category's markdown document."""
        return f"categories/{name.lower()}.md"

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._categories

    def __iter__(self) -> Iterator[CategoryDefinition]:
        return iter(list(self._categories.values()))
