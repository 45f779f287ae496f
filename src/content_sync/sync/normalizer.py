"""Field normalization: loosely typed feed rows -> canonical drafts.

The authoring feed is a spreadsheet, so every value may arrive as a
string (``"TRUE"``, ``"a|b|c"``, ``"2024-01-05 10:00"``) and column names
follow the sheet, not the store. ``FieldNormalizer`` applies an explicit
mapping table and exclusion list and coerces each canonical field to its
type. It never logs-and-forgets: data problems come back as
``SyncWarning`` objects alongside the draft.
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..errors import NormalizationError
from ..timestamps import format_timestamp, normalize_timestamp, utc_now
from .models import CanonicalRecord, SyncWarning

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Post"
MAX_SLUG_LENGTH = 60

# External column name -> canonical field name.
DEFAULT_FIELD_MAPPING: dict[str, str] = {
    "id": "identity",
    "identity": "identity",
    "title": "title",
    "slug": "slug",
    "content": "body",
    "body": "body",
    "excerpt": "excerpt",
    "date": "date",
    "categories": "categories",
    "category": "categories",
    "featured": "featured",
    "comment": "commentable",
    "commentable": "commentable",
    "socmed": "shareable",
    "shareable": "shareable",
    "load": "published",
    "published": "published",
    "lastModified": "last_modified",
    "last_modified": "last_modified",
    "updated_at": "last_modified",
    "updatedAt": "last_modified",
    "publish": "publish",
    "featuredImage": "featured_image",
}

# Scope-like and store-managed fields never accepted from the feed.
DEFAULT_EXCLUDE_FIELDS: tuple[str, ...] = (
    "author_handle",
    "owner_scope",
    "ownerScope",
    "handle",
    "created_at",
    "createdAt",
    "secret",
)

_BOOLEAN_FIELDS = ("featured", "commentable", "shareable", "published")
_TEXT_FIELDS = ("title", "body", "excerpt")
_CANONICAL_FIELDS = frozenset(
    (
        "identity",
        "slug",
        "date",
        "categories",
        "last_modified",
        "publish",
        *_BOOLEAN_FIELDS,
        *_TEXT_FIELDS,
    )
)


# ---------------------------------------------------------------------------
# Value coercion helpers
# ---------------------------------------------------------------------------


def coerce_bool(value: Any) -> bool:
    """``True``, ``"TRUE"`` and ``"true"`` are true; everything else is false."""
    if value is True:
        return True
    if isinstance(value, str):
        return value in ("TRUE", "true")
    return False


def is_unpublish_flag(value: Any) -> bool:
    """Return True for ``False``, ``"FALSE"`` and ``"false"``."""
    if value is False:
        return True
    if isinstance(value, str):
        return value in ("FALSE", "false")
    return False


def parse_categories(value: Any) -> list[str]:
    """Split a category cell into an ordered list of names.

    ``|`` takes priority over ``,``; a value with neither is one category.
    Segments are trimmed and empty ones dropped. Lists keep their order
    with falsy entries removed.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v and str(v).strip()]

    text = str(value).strip()
    if not text:
        return []
    if "|" in text:
        parts = text.split("|")
    elif "," in text:
        parts = text.split(",")
    else:
        return [text]
    return [p.strip() for p in parts if p.strip()]


def slugify(title: str) -> str:
    """Derive a URL slug from *title*.

    Accents are folded to ASCII, every run of other characters becomes a
    single hyphen, and the result is capped at 60 characters. Deterministic,
    so re-syncing a row without a slug column never changes its key.
    """
    folded = unicodedata.normalize("NFKD", title.strip().lower())
    folded = "".join(c for c in folded if not unicodedata.combining(c))
    slug = re.sub(r"[^a-z0-9]+", "-", folded).strip("-")
    return slug[:MAX_SLUG_LENGTH].rstrip("-")


def _identity_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def preview(raw: Any, limit: int = 100) -> str:
    """First *limit* characters of *raw* rendered as JSON."""
    try:
        text = json.dumps(raw, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        text = repr(raw)
    return text[:limit]


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizedRecord:
    """A canonical draft plus the warnings raised while building it."""

    record: CanonicalRecord
    warnings: list[SyncWarning] = field(default_factory=list)


class FieldNormalizer:
    """Map and coerce raw feed rows into ``CanonicalRecord`` drafts.

    Args:
        field_mapping: External -> canonical overrides, layered over
            ``DEFAULT_FIELD_MAPPING``.
        exclude_fields: Extra external fields to drop, added to
            ``DEFAULT_EXCLUDE_FIELDS``.
        clock: Returns the current UTC time; used for the date fallback.
    """

    def __init__(
        self,
        field_mapping: Mapping[str, str] | None = None,
        exclude_fields: Iterable[str] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.field_mapping = {**DEFAULT_FIELD_MAPPING, **(field_mapping or {})}
        self.exclude_fields = frozenset(DEFAULT_EXCLUDE_FIELDS).union(
            exclude_fields or ()
        )
        self.clock = clock

    def normalize(self, raw: Any, scope: str | None) -> NormalizedRecord:
        """Normalize one raw record for *scope*.

        Args:
            raw: One feed row; must be a mapping.
            scope: Owner scope of the request; always wins over any
                scope-like field in *raw*.

        Returns:
            ``NormalizedRecord`` with the draft and any warnings.

        Raises:
            NormalizationError: If *raw* is not a mapping.
        """
        if not isinstance(raw, Mapping):
            raise NormalizationError(
                f"Record must be an object, got {type(raw).__name__}: {preview(raw)}"
            )

        canonical: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for name, value in raw.items():
            if name in self.exclude_fields:
                logger.debug("Dropping excluded field %r", name)
                continue
            target = self.field_mapping.get(name, name)
            if target in self.exclude_fields:
                continue
            if target in _CANONICAL_FIELDS:
                # First mapped column wins when several alias one field
                canonical.setdefault(target, value)
            else:
                extra[target] = value

        identity = _identity_text(canonical.get("identity"))
        raw_title = _text(canonical.get("title"))
        slug = _text(canonical.get("slug")) or (
            slugify(raw_title) if raw_title else ""
        )
        key = identity or slug or None

        warnings: list[SyncWarning] = []
        date = self._normalize_date(canonical.get("date"), key, warnings)
        last_modified = self._normalize_last_modified(
            canonical.get("last_modified"), key, warnings
        )

        record = CanonicalRecord(
            identity=identity,
            owner_scope=scope,
            title=raw_title or DEFAULT_TITLE,
            slug=slug or None,
            body=_text(canonical.get("body")),
            excerpt=_text(canonical.get("excerpt")),
            date=date,
            categories=parse_categories(canonical.get("categories")),
            last_modified=last_modified,
            publish=not is_unpublish_flag(canonical.get("publish")),
            extra=extra,
            **{f: coerce_bool(canonical.get(f)) for f in _BOOLEAN_FIELDS},
        )
        return NormalizedRecord(record=record, warnings=warnings)

    def _normalize_date(
        self, value: Any, key: str | None, warnings: list[SyncWarning]
    ) -> str:
        normalized = normalize_timestamp(value)
        if normalized is not None:
            return normalized

        fallback = format_timestamp(self.clock())
        if value not in (None, ""):
            warnings.append(
                SyncWarning(
                    key=key,
                    field="date",
                    value=str(value),
                    message=f"Unparseable date, using current time {fallback}",
                )
            )
        return fallback

    def _normalize_last_modified(
        self, value: Any, key: str | None, warnings: list[SyncWarning]
    ) -> str | None:
        if value in (None, ""):
            return None
        normalized = normalize_timestamp(value)
        if normalized is None:
            warnings.append(
                SyncWarning(
                    key=key,
                    field="last_modified",
                    value=str(value),
                    message="Unparseable last-modified timestamp, record will be overwritten",
                )
            )
        return normalized
