"""Batch executor: apply a ``SyncPlan`` to the store.

Writes run in three phases (inserts, updates, deletes), each chunked into
batches of ``batch_size``. Inside a batch every write is attempted on its
own worker thread, bounded by a per-run semaphore of
``max_parallel_writes``. A failing write becomes a ``WriteResult`` with
``success=False``; it never aborts its siblings or later batches, and
completed batches are not rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from ..core.async_utils import gather_limited, run_sync_limited
from ..core.store import ContentStore
from ..errors import StoreError, StoreUnavailableError
from ..timestamps import format_timestamp, parse_timestamp, utc_now
from .keys import KeyStrategy
from .models import CanonicalRecord, SyncAction, SyncPlan, WriteResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchExecutor:
    """Execute a plan with per-item failure isolation.

    Args:
        store: Canonical post store.
        key_strategy: Match-key strategy of the plan.
        batch_size: Writes per batch.
        max_parallel_writes: Concurrent writes inside one batch.
        clock: Returns the current UTC time; used for ``updated_at``.
    """

    def __init__(
        self,
        store: ContentStore,
        key_strategy: KeyStrategy,
        batch_size: int = 10,
        max_parallel_writes: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_parallel_writes < 1:
            raise ValueError("max_parallel_writes must be at least 1")
        self.store = store
        self.key_strategy = key_strategy
        self.batch_size = batch_size
        self.max_parallel_writes = max_parallel_writes
        self.clock = clock

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def execute(
        self,
        plan: SyncPlan,
        scope: str | None,
        log: logging.LoggerAdapter | None = None,
    ) -> list[WriteResult]:
        """Blocking wrapper around ``execute_async``."""
        return asyncio.run(self.execute_async(plan, scope, log))

    async def execute_async(
        self,
        plan: SyncPlan,
        scope: str | None,
        log: logging.LoggerAdapter | None = None,
    ) -> list[WriteResult]:
        """Apply *plan* and return one ``WriteResult`` per attempted write.

        Args:
            plan: Output of ``plan_sync``.
            scope: Owner scope filter for updates and deletes (``None``
                for the global slug strategy).
            log: Logger carrying the request id.
        """
        log = log or logger
        semaphore = asyncio.Semaphore(self.max_parallel_writes)
        results: list[WriteResult] = []

        for batch in chunked(plan.to_insert, self.batch_size):
            results.extend(
                await gather_limited(
                    [
                        self._insert_one(semaphore, draft, log)
                        for draft in batch
                    ]
                )
            )

        for batch in chunked(plan.to_update, self.batch_size):
            results.extend(
                await gather_limited(
                    [
                        self._update_one(semaphore, draft, plan, scope, log)
                        for draft in batch
                    ]
                )
            )

        for batch in chunked(plan.to_delete, self.batch_size):
            results.extend(
                await self._delete_batch(semaphore, batch, plan, scope, log)
            )

        failed = sum(1 for r in results if not r.success)
        log.info(
            "Executed %d writes (%d failed) in batches of %d",
            len(results),
            failed,
            self.batch_size,
        )
        return results

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    def stamp(self, draft: CanonicalRecord, stored_updated_at: Any = None) -> str:
        """Compute ``updated_at`` for a write.

        The draft's last-modified time if parseable, else now; never
        earlier than the stored value, so ``updated_at`` only moves forward.
        """
        stamp = parse_timestamp(draft.last_modified) or self.clock()
        stored = parse_timestamp(stored_updated_at)
        if stored is not None and stored > stamp:
            stamp = stored
        return format_timestamp(stamp)

    # ------------------------------------------------------------------
    # Single writes
    # ------------------------------------------------------------------

    def _failure(
        self,
        key: str,
        action: SyncAction,
        slug: str | None,
        exc: Exception,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> WriteResult:
        log.error("Failed to %s %s: %s", action.value, key, exc)
        return WriteResult(
            key=key,
            action=action,
            success=False,
            slug=slug,
            error=f"Failed to {action.value} {key}: {exc}",
            unavailable=isinstance(exc, StoreUnavailableError),
        )

    async def _insert_one(
        self,
        semaphore: asyncio.Semaphore,
        draft: CanonicalRecord,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> WriteResult:
        key = self.key_strategy.key_for(draft) or ""
        try:
            row = draft.to_row(updated_at=self.stamp(draft))
            await run_sync_limited(semaphore, self.store.insert, row)
        except Exception as exc:
            return self._failure(key, SyncAction.INSERT, draft.slug, exc, log)
        log.debug("Inserted %s", key)
        return WriteResult(
            key=key, action=SyncAction.INSERT, success=True, slug=draft.slug
        )

    async def _update_one(
        self,
        semaphore: asyncio.Semaphore,
        draft: CanonicalRecord,
        plan: SyncPlan,
        scope: str | None,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> WriteResult:
        key = self.key_strategy.key_for(draft) or ""
        stored = plan.existing.get(key)
        try:
            row = draft.to_row(
                updated_at=self.stamp(
                    draft, stored.updated_at if stored else None
                )
            )
            row.pop(self.key_strategy.field, None)
            await run_sync_limited(
                semaphore,
                self.store.update,
                self.key_strategy.field,
                key,
                row,
                scope,
            )
        except Exception as exc:
            return self._failure(key, SyncAction.UPDATE, draft.slug, exc, log)
        log.debug("Updated %s", key)
        return WriteResult(
            key=key, action=SyncAction.UPDATE, success=True, slug=draft.slug
        )

    async def _delete_batch(
        self,
        semaphore: asyncio.Semaphore,
        keys: list[str],
        plan: SyncPlan,
        scope: str | None,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> list[WriteResult]:
        """Delete *keys* in one call, falling back to one call per key.

        Keys the store reports as not removed become failed results.
        """
        try:
            deleted = await run_sync_limited(
                semaphore,
                self.store.delete,
                self.key_strategy.field,
                keys,
                scope,
            )
        except Exception as exc:
            log.warning(
                "Batch delete of %d posts failed (%s); retrying one by one",
                len(keys),
                exc,
            )
            return await gather_limited(
                [
                    self._delete_one(semaphore, key, plan, scope, log)
                    for key in keys
                ]
            )

        log.debug("Deleted %d of %d posts", len(deleted), len(keys))
        return [self._delete_result(key, deleted, plan, log) for key in keys]

    async def _delete_one(
        self,
        semaphore: asyncio.Semaphore,
        key: str,
        plan: SyncPlan,
        scope: str | None,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> WriteResult:
        try:
            deleted = await run_sync_limited(
                semaphore,
                self.store.delete,
                self.key_strategy.field,
                [key],
                scope,
            )
        except Exception as exc:
            return self._failure(
                key, SyncAction.DELETE, self._stored_slug(plan, key), exc, log
            )
        return self._delete_result(key, deleted, plan, log)

    def _delete_result(
        self,
        key: str,
        deleted: Sequence[str],
        plan: SyncPlan,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> WriteResult:
        slug = self._stored_slug(plan, key)
        if key not in deleted:
            missing = StoreError(
                f"No row matched {self.key_strategy.field}={key!r}"
            )
            return self._failure(key, SyncAction.DELETE, slug, missing, log)
        return WriteResult(
            key=key, action=SyncAction.DELETE, success=True, slug=slug
        )

    @staticmethod
    def _stored_slug(plan: SyncPlan, key: str) -> str | None:
        stored = plan.existing.get(key)
        return stored.slug if stored else None
