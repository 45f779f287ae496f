"""Sync engine: orchestrates one reconciliation request end to end.

The ``SyncEngine`` ties together the normalizer, loader, planner,
executor and reporter. For each request it:

1. Validates the scope and record list (fatal on failure).
2. Normalizes every record; keyless or malformed rows become record
   errors and are left out of the plan.
3. Loads the stored keys for the scope in one read (fatal on failure).
4. Plans inserts, updates, skips and deletes.
5. Executes the plan in batches (skipped for dry runs).
6. Builds the ``SyncResult`` and signals cache invalidation.

Every log line of a run is prefixed with its request id. The engine holds
no per-request state, so one instance can serve concurrent requests.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..config import Config
from ..core.async_utils import run_sync
from ..core.store import ContentStore
from ..errors import (
    ExistingStateError,
    NormalizationError,
    RequestValidationError,
)
from ..logger import request_logger
from ..timestamps import utc_now
from ..validators import validate_records, validate_scope
from .executor import BatchExecutor
from .keys import KeyStrategy, strategy_for_scope
from .loader import ExistingStateLoader
from .models import (
    CanonicalRecord,
    SyncPhase,
    SyncRequest,
    SyncResult,
    SyncWarning,
)
from .normalizer import FieldNormalizer
from .planner import plan_sync
from .reporter import Invalidator, SyncReporter

logger = logging.getLogger(__name__)


def make_request_id(scope: str | None = None) -> str:
    """Return ``sync-<epoch ms>-<5 chars>`` (``author-sync-`` when scoped)."""
    prefix = "author-sync" if scope else "sync"
    suffix = "".join(
        random.choices(string.ascii_lowercase + string.digits, k=5)
    )
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


class SyncEngine:
    """Reconcile feed records into the canonical store.

    Args:
        store: Canonical post store.
        invalidator: Cache invalidation collaborator (optional).
        normalizer: Field normalizer; defaults to the built-in mapping.
        key_strategy: Force a match-key strategy; by default scoped
            requests match by ID and unscoped ones by slug.
        batch_size: Writes per executor batch.
        max_parallel_writes: Concurrent writes inside one batch.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: ContentStore,
        invalidator: Invalidator | None = None,
        *,
        normalizer: FieldNormalizer | None = None,
        key_strategy: KeyStrategy | None = None,
        batch_size: int = 10,
        max_parallel_writes: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.normalizer = normalizer or FieldNormalizer(clock=clock)
        self.key_strategy = key_strategy
        self.batch_size = batch_size
        self.max_parallel_writes = max_parallel_writes
        self.clock = clock
        self.reporter = SyncReporter(invalidator, clock=clock)

    @classmethod
    def from_config(
        cls,
        config: Config,
        store: ContentStore,
        invalidator: Invalidator | None = None,
    ) -> SyncEngine:
        """Build an engine from the resolved runtime ``Config``."""
        return cls(
            store,
            invalidator,
            normalizer=FieldNormalizer(
                field_mapping=config.field_mapping,
                exclude_fields=config.exclude_fields,
            ),
            batch_size=config.batch_size,
            max_parallel_writes=config.max_parallel_writes,
        )

    # ------------------------------------------------------------------
    # Main entry points
    # ------------------------------------------------------------------

    def run(self, request: SyncRequest, dry_run: bool = False) -> SyncResult:
        """Blocking wrapper around ``run_async``."""
        return asyncio.run(self.run_async(request, dry_run=dry_run))

    async def run_async(
        self, request: SyncRequest, dry_run: bool = False
    ) -> SyncResult:
        """Execute one sync request.

        Args:
            request: Scope, optimize flag and raw records.
            dry_run: If ``True``, plan but do not write or invalidate.

        Returns:
            A ``SyncResult``. Fatal problems are reported through
            ``success=False`` rather than raised.
        """
        started = self.clock()
        scope = request.scope
        request_id = make_request_id(scope)
        log = request_logger(logger, request_id)
        ctx: dict[str, Any] = {
            "request_id": request_id,
            "scope": scope,
            "started": started,
        }

        record_count = (
            len(request.records) if isinstance(request.records, list) else 0
        )
        log.info(
            "Starting sync of %d records (scope=%s, optimize_by_date=%s%s)",
            record_count,
            scope or "*",
            request.optimize_by_date,
            ", dry run" if dry_run else "",
        )
        self._enter(log, SyncPhase.RECEIVED)

        try:
            self._validate(request)
        except RequestValidationError as exc:
            log.warning("Rejected request: %s", exc)
            return self.reporter.failed(str(exc), dry_run=dry_run, **ctx)

        strategy = self.key_strategy or strategy_for_scope(scope)
        store_scope = scope if strategy.scoped else None

        drafts, record_errors, warnings = self._normalize(
            request.records, scope, strategy, log
        )
        if not drafts:
            log.error("No valid records after normalization")
            return self.reporter.failed(
                "No valid records after normalization",
                record_errors=record_errors,
                warnings=warnings,
                dry_run=dry_run,
                **ctx,
            )
        self._enter(log, SyncPhase.NORMALIZED)

        loader = ExistingStateLoader(self.store, strategy)
        try:
            existing = await run_sync(loader.load, store_scope, log)
        except ExistingStateError as exc:
            log.error("%s", exc)
            return self.reporter.failed(
                str(exc),
                record_errors=record_errors,
                warnings=warnings,
                dry_run=dry_run,
                **ctx,
            )

        plan = plan_sync(drafts, existing, request.optimize_by_date, strategy)
        for key in plan.duplicates:
            log.warning("Key %r appears more than once in the feed", key)
            warnings.append(
                SyncWarning(
                    key=key,
                    field=strategy.field,
                    value=key,
                    message="Duplicate key in feed; an unpublish row wins, otherwise the last row",
                )
            )
        self._enter(log, SyncPhase.PLANNED)
        log.info(
            "Plan: %d to insert, %d to update, %d to skip, %d to delete",
            len(plan.to_insert),
            len(plan.to_update),
            len(plan.to_skip),
            len(plan.to_delete),
        )

        if dry_run:
            result = self.reporter.from_plan(
                plan, record_errors=record_errors, warnings=warnings, **ctx
            )
            self._enter(log, SyncPhase.REPORTED)
            log.info("Dry run complete; no changes written")
            return result

        self._enter(log, SyncPhase.EXECUTING)
        executor = BatchExecutor(
            self.store,
            strategy,
            batch_size=self.batch_size,
            max_parallel_writes=self.max_parallel_writes,
            clock=self.clock,
        )
        writes = await executor.execute_async(plan, store_scope, log)

        result = self.reporter.from_writes(
            writes,
            plan,
            record_errors=record_errors,
            warnings=warnings,
            **ctx,
        )
        if result.phase == SyncPhase.FAILED:
            log.error("%s", result.error)
            self._enter(log, SyncPhase.FAILED)
            return result

        await self.reporter.signal_async(result, log)
        self._enter(log, SyncPhase.REPORTED)
        log.info(
            "Sync completed in %.2fs: %d inserted, %d updated, %d deleted, "
            "%d skipped, %d errors",
            result.duration_seconds,
            result.stats.inserted,
            result.stats.updated,
            result.stats.deleted,
            result.stats.skipped,
            result.stats.errors,
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _enter(log: logging.LoggerAdapter, phase: SyncPhase) -> None:
        log.debug("Phase -> %s", phase.value)

    @staticmethod
    def _validate(request: SyncRequest) -> None:
        """Raise ``RequestValidationError`` for a malformed envelope."""
        for valid, message in (
            validate_scope(request.scope),
            validate_records(request.records),
        ):
            if not valid:
                raise RequestValidationError(message)

    def _normalize(
        self,
        records: list[Any],
        scope: str | None,
        strategy: KeyStrategy,
        log: logging.LoggerAdapter,
    ) -> tuple[list[CanonicalRecord], list[str], list[SyncWarning]]:
        """Normalize every record, collecting per-record errors."""
        drafts: list[CanonicalRecord] = []
        errors: list[str] = []
        warnings: list[SyncWarning] = []

        for raw in records:
            try:
                normalized = self.normalizer.normalize(raw, scope)
                strategy.require_key(normalized.record, raw)
            except NormalizationError as exc:
                log.warning("%s", exc)
                errors.append(str(exc))
                continue
            for w in normalized.warnings:
                log.warning("%s (%s=%r)", w.message, w.field, w.value)
            warnings.extend(normalized.warnings)
            drafts.append(normalized.record)

        log.debug(
            "Normalized %d of %d records", len(drafts), len(records)
        )
        return drafts, errors, warnings
