"""Canonical store interface and an in-memory implementation.

A store persists canonical post rows. The engine only needs four calls:

- ``load_existing(scope)``: identity, ``updated_at`` and slug of each row
- ``insert(row)``: create a row (the store assigns ``created_at``)
- ``update(key_field, key, row, scope)``: overwrite the row matching a key
- ``delete(key_field, keys, scope)``: remove matching rows, return their keys

Rows use canonical column names (``id``, ``owner_scope``, ``body`` ...).
Adapters translate to their own schema.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

from ..errors import StoreError, StoreUnavailableError
from ..timestamps import format_timestamp, utc_now

logger = logging.getLogger(__name__)


class ContentStore(ABC):
    """Abstract canonical post store.

    Implementations must be safe to call from worker threads: the
    executor issues up to ``max_parallel_writes`` calls at once.
    """

    @abstractmethod
    def load_existing(self, scope: str | None) -> list[dict[str, Any]]:
        """Return ``{"identity", "updated_at", "slug"}`` for every row.

        Args:
            scope: Only rows owned by this handle; ``None`` for all rows.
        """

    @abstractmethod
    def insert(self, row: dict[str, Any]) -> None:
        """Create a new row."""

    @abstractmethod
    def update(
        self,
        key_field: str,
        key: str,
        row: dict[str, Any],
        scope: str | None,
    ) -> None:
        """Overwrite the row whose *key_field* equals *key* within *scope*.

        Raises:
            StoreError: If no row matches.
        """

    @abstractmethod
    def delete(
        self, key_field: str, keys: list[str], scope: str | None
    ) -> list[str]:
        """Delete rows whose *key_field* is in *keys*.

        Returns:
            The keys of the rows actually removed, as strings. Keys that
            matched nothing are absent.
        """


class InMemoryStore(ContentStore):
    """Thread-safe dict-backed store.

    Backs the test suite and local experiments. Rows are kept in
    insertion order; ``available = False`` simulates an outage.

    Args:
        rows: Optional initial rows (copied).
        clock: Callable returning the current UTC datetime; used for
            ``created_at``.
    """

    def __init__(self, rows: list[dict[str, Any]] | None = None, clock=utc_now):
        self._lock = threading.Lock()
        self._clock = clock
        self._rows: list[dict[str, Any]] = [
            copy.deepcopy(r) for r in (rows or [])
        ]
        self.available = True

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    def rows(self, scope: str | None = None) -> list[dict[str, Any]]:
        """Return a deep copy of the stored rows, optionally scoped."""
        with self._lock:
            return [
                copy.deepcopy(r)
                for r in self._rows
                if self._in_scope(r, scope)
            ]

    def get(
        self, key_field: str, key: str, scope: str | None = None
    ) -> dict[str, Any] | None:
        with self._lock:
            for r in self._rows:
                if _key_of(r, key_field) == str(key) and self._in_scope(r, scope):
                    return copy.deepcopy(r)
        return None

    # ------------------------------------------------------------------
    # ContentStore
    # ------------------------------------------------------------------

    def load_existing(self, scope: str | None) -> list[dict[str, Any]]:
        self._check_available()
        with self._lock:
            return [
                {
                    "identity": r.get("id"),
                    "updated_at": r.get("updated_at"),
                    "slug": r.get("slug"),
                }
                for r in self._rows
                if self._in_scope(r, scope)
            ]

    def insert(self, row: dict[str, Any]) -> None:
        self._check_available()
        new_row = copy.deepcopy(row)
        with self._lock:
            if new_row.get("id") is not None and any(
                _key_of(r, "id") == str(new_row["id"])
                and r.get("owner_scope") == new_row.get("owner_scope")
                for r in self._rows
            ):
                raise StoreError(
                    f"Duplicate key: id={new_row['id']!r} already exists"
                )
            new_row["created_at"] = format_timestamp(self._clock())
            new_row.setdefault("updated_at", new_row["created_at"])
            self._rows.append(new_row)

    def update(
        self,
        key_field: str,
        key: str,
        row: dict[str, Any],
        scope: str | None,
    ) -> None:
        self._check_available()
        changes = {
            k: copy.deepcopy(v)
            for k, v in row.items()
            if k not in ("created_at", "id")
        }
        with self._lock:
            matched = [
                r
                for r in self._rows
                if _key_of(r, key_field) == str(key) and self._in_scope(r, scope)
            ]
            if not matched:
                raise StoreError(f"No row matched {key_field}={key!r}")
            for r in matched:
                r.update(changes)

    def delete(
        self, key_field: str, keys: list[str], scope: str | None
    ) -> list[str]:
        self._check_available()
        wanted = {str(k) for k in keys}
        deleted: list[str] = []
        kept: list[dict[str, Any]] = []
        with self._lock:
            for r in self._rows:
                key = _key_of(r, key_field)
                if key in wanted and self._in_scope(r, scope):
                    deleted.append(key)
                else:
                    kept.append(r)
            self._rows = kept
        return deleted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _in_scope(row: dict[str, Any], scope: str | None) -> bool:
        return scope is None or row.get("owner_scope") == scope

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("In-memory store is offline")


def _key_of(row: dict[str, Any], key_field: str) -> str | None:
    """Stored key as text; numeric ids compare equal to their string form."""
    value = row.get(key_field)
    return str(value) if value is not None else None
