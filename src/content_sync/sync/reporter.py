"""Sync result aggregation, invalidation signalling and report formatting.

- ``SyncReporter`` -- turns executor outcomes (or a dry-run plan) into a
  ``SyncResult`` and notifies the invalidation collaborator.
- ``format_sync_report`` -- human-readable post-sync summary.
- ``result_to_json`` -- response dict in the feed API's camelCase shape.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any, Protocol

from ..core.async_utils import run_sync
from ..timestamps import format_timestamp, utc_now
from .cache import NullInvalidator
from .models import (
    SyncAction,
    SyncPhase,
    SyncPlan,
    SyncResult,
    SyncStats,
    SyncWarning,
    WriteResult,
)

logger = logging.getLogger(__name__)


class Invalidator(Protocol):
    def invalidate(self, slugs: list[str], scope: str | None) -> None: ...


def _unique(values: Iterable[str | None]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


class SyncReporter:
    """Build ``SyncResult`` objects and signal cache invalidation.

    Args:
        invalidator: Collaborator told about affected slugs; defaults to
            ``NullInvalidator``.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        invalidator: Invalidator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.invalidator = invalidator or NullInvalidator()
        self.clock = clock

    # ------------------------------------------------------------------
    # Result construction
    # ------------------------------------------------------------------

    def _finish(
        self,
        *,
        success: bool,
        stats: SyncStats,
        request_id: str,
        scope: str | None,
        started: datetime,
        record_errors: Sequence[str],
        warnings: Sequence[SyncWarning],
        phase: SyncPhase,
        dry_run: bool = False,
        affected_slugs: Sequence[str] = (),
        error: str | None = None,
    ) -> SyncResult:
        completed = self.clock()
        return SyncResult(
            success=success,
            stats=stats,
            error_details=list(record_errors),
            warnings=list(warnings),
            request_id=request_id,
            scope=scope,
            dry_run=dry_run,
            phase=phase,
            started_at=format_timestamp(started),
            completed_at=format_timestamp(completed),
            duration_seconds=max(0.0, (completed - started).total_seconds()),
            affected_slugs=list(affected_slugs),
            error=error,
        )

    def failed(
        self,
        error: str,
        *,
        request_id: str,
        scope: str | None,
        started: datetime,
        record_errors: Sequence[str] = (),
        warnings: Sequence[SyncWarning] = (),
        dry_run: bool = False,
    ) -> SyncResult:
        """Result for a request aborted before any write."""
        return self._finish(
            success=False,
            stats=SyncStats(errors=len(record_errors)),
            request_id=request_id,
            scope=scope,
            started=started,
            record_errors=record_errors,
            warnings=warnings,
            phase=SyncPhase.FAILED,
            dry_run=dry_run,
            error=error,
        )

    def from_plan(
        self,
        plan: SyncPlan,
        *,
        request_id: str,
        scope: str | None,
        started: datetime,
        record_errors: Sequence[str] = (),
        warnings: Sequence[SyncWarning] = (),
    ) -> SyncResult:
        """Dry-run result: stats describe what the plan would do."""
        stats = SyncStats(
            inserted=len(plan.to_insert),
            updated=len(plan.to_update),
            deleted=len(plan.to_delete),
            skipped=len(plan.to_skip),
            errors=len(record_errors),
        )
        return self._finish(
            success=True,
            stats=stats,
            request_id=request_id,
            scope=scope,
            started=started,
            record_errors=record_errors,
            warnings=warnings,
            phase=SyncPhase.REPORTED,
            dry_run=True,
        )

    def from_writes(
        self,
        writes: Sequence[WriteResult],
        plan: SyncPlan,
        *,
        request_id: str,
        scope: str | None,
        started: datetime,
        record_errors: Sequence[str] = (),
        warnings: Sequence[SyncWarning] = (),
    ) -> SyncResult:
        """Aggregate executor outcomes.

        The request fails as a whole only when every attempted write
        failed because the store was unreachable.
        """
        done = [w for w in writes if w.success]
        failures = [w for w in writes if not w.success]

        def count(action: SyncAction) -> int:
            return sum(1 for w in done if w.action == action)

        stats = SyncStats(
            inserted=count(SyncAction.INSERT),
            updated=count(SyncAction.UPDATE),
            deleted=count(SyncAction.DELETE),
            skipped=len(plan.to_skip),
            errors=len(record_errors) + len(failures),
        )
        details = list(record_errors) + [
            w.error or f"Failed to {w.action.value} {w.key}" for w in failures
        ]

        outage = bool(writes) and not done and all(
            w.unavailable for w in failures
        )
        return self._finish(
            success=not outage,
            stats=stats,
            request_id=request_id,
            scope=scope,
            started=started,
            record_errors=details,
            warnings=warnings,
            phase=SyncPhase.FAILED if outage else SyncPhase.REPORTED,
            affected_slugs=_unique(w.slug for w in done),
            error=(
                f"Store unavailable: all {len(writes)} writes failed"
                if outage
                else None
            ),
        )

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def signal(
        self,
        result: SyncResult,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> bool:
        """Tell the invalidator about *result*'s affected slugs.

        Skipped for dry runs and when nothing changed. Invalidator
        exceptions are logged, never raised.

        Returns:
            True if the invalidator was called and succeeded.
        """
        log = log or logger
        if result.dry_run or not result.affected_slugs:
            return False
        try:
            self.invalidator.invalidate(list(result.affected_slugs), result.scope)
        except Exception as exc:
            log.warning("Cache invalidation failed: %s", exc)
            return False
        log.info(
            "Signalled invalidation for %d slugs", len(result.affected_slugs)
        )
        return True

    async def signal_async(
        self,
        result: SyncResult,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> bool:
        return await run_sync(self.signal, result, log)


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(result: SyncResult) -> str:
    """Format a sync result as human-readable text.

    Error and warning sections are only included when non-empty.

    Args:
        result: The completed sync result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [result.summary()]
    lines.append(f"Started: {result.started_at}")
    lines.append(
        f"Completed: {result.completed_at} ({result.duration_seconds:.2f}s)"
    )
    lines.append("")

    if result.error:
        lines.append(f"FAILED: {result.error}")
        lines.append("")

    if result.error_details:
        lines.append("Errors:")
        for detail in result.error_details:
            lines.append(f"  {detail}")
        lines.append("")

    if result.warnings:
        lines.append("Warnings:")
        for w in result.warnings:
            where = f"{w.key}." if w.key else ""
            lines.append(f"  {where}{w.field}={w.value!r}: {w.message}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncResult) -> dict[str, Any]:
    """Convert a sync result to the response dict.

    ``errorDetails`` is omitted when empty and ``error`` is present only
    for failed requests.
    """
    payload: dict[str, Any] = {
        "success": result.success,
        "stats": result.stats.model_dump(),
        "requestId": result.request_id,
        "durationSeconds": round(result.duration_seconds, 3),
        "timestamp": result.completed_at,
        "warnings": [
            w.model_dump(exclude_none=True) for w in result.warnings
        ],
    }
    if result.error_details:
        payload["errorDetails"] = list(result.error_details)
    if result.error:
        payload["error"] = result.error
    if result.dry_run:
        payload["dryRun"] = True
    return payload
