"""Read-path post cache and the invalidation collaborators.

After a sync writes to the store, the reporter hands the affected slugs
to an *invalidator*. Three are provided:

- ``CacheInvalidator``: drops entries from an in-process ``PostCache``.
- ``HttpRevalidator``: POSTs the slugs to the site's revalidation
  endpoint so statically rendered pages are rebuilt.
- ``NullInvalidator``: logs and does nothing.

Invalidators may raise; the reporter logs the error and carries on.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any

import requests

logger = logging.getLogger(__name__)

# Cache key for the post listing of a scope ("*" for the global listing).
LISTING_PREFIX = "listing:"

_MISSING = object()


def listing_key(scope: str | None) -> str:
    return f"{LISTING_PREFIX}{scope or '*'}"


class PostCache:
    """Thread-safe TTL cache for rendered posts and listings.

    Args:
        ttl_seconds: Lifetime of an entry; ``0`` disables expiry.
        clock: Monotonic seconds source (``time.monotonic``).
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        value = self._lookup(key)
        return None if value is _MISSING else value

    def _lookup(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return _MISSING
            stored_at, value = entry
            if self.ttl_seconds and self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return _MISSING
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, calling *loader* on a miss.

        A loaded ``None`` is cached like any other value.
        """
        value = self._lookup(key)
        if value is _MISSING:
            value = loader()
            self.set(key, value)
        return value

    def invalidate(self, keys: Iterable[str]) -> int:
        """Drop *keys*; return how many were present."""
        removed = 0
        with self._lock:
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Invalidators
# ---------------------------------------------------------------------------


class NullInvalidator:
    def invalidate(self, slugs: list[str], scope: str | None) -> None:
        logger.debug(
            "No invalidator configured; %d slugs not signalled", len(slugs)
        )


class CacheInvalidator:
    """Drop affected posts and the scope's listing from a ``PostCache``."""

    def __init__(self, cache: PostCache) -> None:
        self.cache = cache

    def invalidate(self, slugs: list[str], scope: str | None) -> None:
        keys = list(slugs) + [listing_key(scope)]
        if scope is not None:
            # Global listing also shows scoped posts
            keys.append(listing_key(None))
        removed = self.cache.invalidate(keys)
        logger.debug("Invalidated %d cache entries", removed)


class HttpRevalidator:
    """Ask the site to revalidate affected pages.

    Request body::

        {"secret": ..., "slugs": [...], "scope": "alice",
         "tags": ["posts", "author:alice"], "paths": [...]}

    Args:
        url: Revalidation endpoint.
        secret: Shared secret checked by the endpoint.
        timeout: Request timeout in seconds.
        session: Optional ``requests.Session`` (tests inject a mock).
    """

    def __init__(
        self,
        url: str,
        secret: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self.session = session or requests.Session()

    @staticmethod
    def tags_for(scope: str | None) -> list[str]:
        if scope is None:
            return ["posts"]
        return ["posts", f"author:{scope}"]

    @staticmethod
    def paths_for(slugs: list[str], scope: str | None) -> list[str]:
        base = f"/{scope}" if scope else ""
        paths = [base or "/", f"{base}/blog"]
        paths.extend(f"{base}/blog/{slug}" for slug in slugs)
        return paths

    def invalidate(self, slugs: list[str], scope: str | None) -> None:
        payload = {
            "secret": self.secret,
            "slugs": list(slugs),
            "scope": scope,
            "tags": self.tags_for(scope),
            "paths": self.paths_for(slugs, scope),
        }
        response = self.session.post(
            self.url, json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        logger.info(
            "Revalidation requested for %d slugs (scope=%s)",
            len(slugs),
            scope or "*",
        )
