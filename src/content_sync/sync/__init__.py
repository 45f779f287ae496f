"""One-way content reconciliation engine.

Public API for mirroring a loosely typed authoring feed (spreadsheet rows)
into the canonical post store.

Architecture
------------
A request flows through five stages, each in its own module:

- ``normalizer`` -- ``FieldNormalizer``: mapping table, type coercion,
  tolerant dates, slug derivation.
- ``loader``     -- ``ExistingStateLoader``: one bulk read of stored keys.
- ``planner``    -- ``plan_sync``: pure insert/update/skip/delete planning.
- ``executor``   -- ``BatchExecutor``: batched, concurrency-bounded writes
  with per-item failure isolation.
- ``reporter``   -- ``SyncReporter``: result aggregation, invalidation,
  text and JSON reports.

``keys`` holds the ID/slug match strategies, ``cache`` the read-path cache
and invalidators, ``models`` the data contracts, and ``engine`` the
``SyncEngine`` tying it all together.

Usage example
-------------
::

    from content_sync.core import InMemoryStore
    from content_sync.sync import SyncEngine, SyncRequest, format_sync_report

    engine = SyncEngine(InMemoryStore())
    request = SyncRequest(scope="alice", records=[{"id": "1", "title": "Hi"}])

    # Dry-run first to preview changes
    preview = engine.run(request, dry_run=True)
    print(format_sync_report(preview))

    result = engine.run(request)
    print(format_sync_report(result))
"""

from .cache import CacheInvalidator, HttpRevalidator, NullInvalidator, PostCache
from .engine import SyncEngine, make_request_id
from .executor import BatchExecutor
from .keys import IdKeyStrategy, KeyStrategy, SlugKeyStrategy, strategy_for_scope
from .loader import ExistingStateLoader
from .models import (
    CanonicalRecord,
    ExistingRecord,
    SyncAction,
    SyncPhase,
    SyncPlan,
    SyncRequest,
    SyncResult,
    SyncStats,
    SyncWarning,
    WriteResult,
)
from .normalizer import FieldNormalizer
from .planner import plan_sync
from .reporter import (
    SyncReporter,
    format_sync_report,
    result_to_json,
)

__all__ = [
    "BatchExecutor",
    "CacheInvalidator",
    "CanonicalRecord",
    "ExistingRecord",
    "ExistingStateLoader",
    "FieldNormalizer",
    "HttpRevalidator",
    "IdKeyStrategy",
    "KeyStrategy",
    "NullInvalidator",
    "PostCache",
    "SlugKeyStrategy",
    "SyncAction",
    "SyncEngine",
    "SyncPhase",
    "SyncPlan",
    "SyncReporter",
    "SyncRequest",
    "SyncResult",
    "SyncStats",
    "SyncWarning",
    "WriteResult",
    "format_sync_report",
    "make_request_id",
    "plan_sync",
    "result_to_json",
    "strategy_for_scope",
]
