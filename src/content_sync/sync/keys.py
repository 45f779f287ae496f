"""Match-key strategies.

A key strategy decides which field pairs an incoming draft with a stored
row:

- ``IdKeyStrategy`` (canonical): the feed's stable ``id``, matched only
  inside the caller's owner scope.
- ``SlugKeyStrategy`` (legacy): the post slug, matched across all owners.
"""

from __future__ import annotations

from typing import Any

from ..errors import NormalizationError
from .models import CanonicalRecord
from .normalizer import preview


class KeyStrategy:
    """Base class: subclasses set ``name``, ``field`` and ``scoped``.

    Attributes:
        name: Short label used in logs and reports.
        field: Canonical store column holding the key.
        scoped: Whether matching is restricted to the owner scope.
    """

    name = ""
    field = ""
    scoped = True

    def key_for(self, record: CanonicalRecord) -> str | None:
        raise NotImplementedError

    def existing_key(self, row: dict[str, Any]) -> str | None:
        raise NotImplementedError

    def require_key(self, record: CanonicalRecord, raw: Any) -> str:
        """Return the record's key or raise ``NormalizationError``."""
        key = self.key_for(record)
        if not key:
            raise NormalizationError(
                f"Skipping post without ID: {preview(raw)}"
            )
        return key

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IdKeyStrategy(KeyStrategy):
    name = "id"
    field = "id"
    scoped = True

    def key_for(self, record: CanonicalRecord) -> str | None:
        return record.identity

    def existing_key(self, row: dict[str, Any]) -> str | None:
        identity = row.get("identity")
        return str(identity) if identity is not None else None


class SlugKeyStrategy(KeyStrategy):
    name = "slug"
    field = "slug"
    scoped = False

    def key_for(self, record: CanonicalRecord) -> str | None:
        return record.slug

    def existing_key(self, row: dict[str, Any]) -> str | None:
        return row.get("slug") or None


def strategy_for_scope(scope: str | None) -> KeyStrategy:
    """Owner-scoped requests match by ID; unscoped ones fall back to slugs."""
    if scope is None:
        return SlugKeyStrategy()
    return IdKeyStrategy()
