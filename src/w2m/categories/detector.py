"""Category detection: recognize ``<separator><NAME> <content>`` messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from w2m.categories.registry import CategoryRegistry


@dataclass(frozen=True)
class Detection:
    """A message matched to a category."""

    category_name: str
    content: str


def detect(text: str, registry: CategoryRegistry) -> Detection | None:
    """Match ``text`` against the registered categories.

    Categories with longer separators are tried first so that a short
    separator which prefixes a longer one (``,`` vs ``,,``) cannot shadow it.
    Equal-length separators keep registry order.
    """
    candidates = sorted(registry.list(), key=lambda c: len(c.separator), reverse=True)

    for category in candidates:
        if not text.startswith(category.separator):
            continue

        rest = text[len(category.separator):].lstrip()
        parts = rest.split(maxsplit=1)
        if not parts:
            continue

        claimed = parts[0]
        if claimed.lower() != category.normalized_key:
            continue

        content = parts[1].strip() if len(parts) > 1 else ""
        return Detection(category_name=category.name, content=content)

    return None
