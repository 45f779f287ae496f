"""Pydantic models for the content reconciliation engine.

Defines the data contracts passed between the sync stages:

- ``SyncRequest``: One inbound sync call (scope, flag, raw records).
- ``CanonicalRecord``: A normalized post draft ready to be written.
- ``ExistingRecord``: The slice of a stored post the planner needs.
- ``SyncPlan``: Insert/update/skip/delete intent for one request.
- ``WriteResult``: Outcome of one store write.
- ``SyncWarning``: A non-fatal data problem surfaced to the caller.
- ``SyncStats`` / ``SyncResult``: Aggregate outcome of a sync run.

Everything except ``SyncPlan`` is frozen.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class SyncAction(str, Enum):
    """Operations the planner can assign to a record."""

    INSERT = "insert"
    UPDATE = "update"
    SKIP = "skip"
    DELETE = "delete"


class SyncPhase(str, Enum):
    """Pipeline states of a single sync request."""

    RECEIVED = "received"
    NORMALIZED = "normalized"
    PLANNED = "planned"
    EXECUTING = "executing"
    REPORTED = "reported"
    FAILED = "failed"


class SyncRequest(BaseModel):
    """Inbound sync call.

    Accepts the field names used by the authoring feed (``handle``,
    ``posts``, ``optimizeByDate``) as well as the Python ones.

    Attributes:
        scope: Owner handle; ``None`` selects global slug matching.
        optimize_by_date: Skip records whose stored copy is at least as new.
        records: Raw external records, one dict per row.
    """

    scope: str | None = Field(
        default=None, validation_alias=AliasChoices("scope", "handle")
    )
    optimize_by_date: bool = Field(
        default=False,
        validation_alias=AliasChoices("optimize_by_date", "optimizeByDate"),
    )
    records: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("records", "posts"),
    )

    model_config = {"frozen": True}


# Keys of CanonicalRecord.to_row() that are not pass-through extras.
CANONICAL_COLUMNS = (
    "id",
    "owner_scope",
    "title",
    "slug",
    "body",
    "excerpt",
    "date",
    "categories",
    "featured",
    "commentable",
    "shareable",
    "published",
    "updated_at",
)


class CanonicalRecord(BaseModel):
    """A normalized post draft.

    Attributes:
        identity: Stable external ID (``None`` when the feed has none).
        owner_scope: Owner handle, always taken from the request.
        title: Post title.
        slug: URL slug, supplied or derived from the title.
        body: Post body markup.
        excerpt: Short summary.
        date: Publication date, ISO 8601.
        categories: Ordered category names.
        featured: Shown in featured listings.
        commentable: Comments enabled.
        shareable: Social share buttons enabled.
        published: Visible on the site.
        last_modified: Normalized last-modified timestamp from the feed.
        publish: ``False`` means "delete this record if it exists".
        extra: Unmapped, non-excluded external fields.
    """

    identity: str | None = None
    owner_scope: str | None = None
    title: str = ""
    slug: str | None = None
    body: str = ""
    excerpt: str = ""
    date: str | None = None
    categories: list[str] = []
    featured: bool = False
    commentable: bool = False
    shareable: bool = False
    published: bool = False
    last_modified: str | None = None
    publish: bool = True
    extra: dict[str, Any] = {}

    model_config = {"frozen": True}

    def to_row(self, updated_at: str) -> dict[str, Any]:
        """Return the store row for this draft, stamped with *updated_at*.

        ``id`` and ``owner_scope`` are omitted when unset so global
        (slug-keyed) rows keep their store-generated identity.
        """
        row: dict[str, Any] = dict(self.extra)
        if self.identity is not None:
            row["id"] = self.identity
        if self.owner_scope is not None:
            row["owner_scope"] = self.owner_scope
        row.update(
            {
                "title": self.title,
                "slug": self.slug,
                "body": self.body,
                "excerpt": self.excerpt,
                "date": self.date,
                "categories": list(self.categories),
                "featured": self.featured,
                "commentable": self.commentable,
                "shareable": self.shareable,
                "published": self.published,
                "updated_at": updated_at,
            }
        )
        return row


class ExistingRecord(BaseModel):
    """Identity, freshness and slug of one stored post."""

    identity: str
    updated_at: str | None = None
    slug: str | None = None

    model_config = {"frozen": True}


class SyncPlan(BaseModel):
    """Write intent computed by the planner.

    Attributes:
        to_insert: Drafts with no stored counterpart.
        to_update: Drafts that overwrite their stored counterpart.
        to_skip: Keys whose stored copy is already current.
        to_delete: Stored keys absent from, or unpublished in, the feed.
        existing: The index the plan was computed against.
        duplicates: Keys that appeared more than once in the feed.
    """

    to_insert: list[CanonicalRecord] = []
    to_update: list[CanonicalRecord] = []
    to_skip: list[str] = []
    to_delete: list[str] = []
    existing: dict[str, ExistingRecord] = {}
    duplicates: list[str] = []

    @property
    def write_count(self) -> int:
        """Number of store writes the plan will issue."""
        return len(self.to_insert) + len(self.to_update) + len(self.to_delete)

    @property
    def is_empty(self) -> bool:
        return self.write_count == 0


class WriteResult(BaseModel):
    """Outcome of one store write.

    Attributes:
        key: Match key of the record.
        action: INSERT, UPDATE or DELETE.
        success: Whether the store accepted the write.
        slug: Slug of the affected post, used for cache invalidation.
        error: Error message if the write failed.
        unavailable: True if the failure was a connectivity problem.
    """

    key: str
    action: SyncAction
    success: bool
    slug: str | None = None
    error: str | None = None
    unavailable: bool = False

    model_config = {"frozen": True}


class SyncWarning(BaseModel):
    """A non-fatal data problem, e.g. an unparseable date."""

    field: str
    value: str
    message: str
    key: str | None = None

    model_config = {"frozen": True}


class SyncStats(BaseModel):
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: int = 0

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Aggregate outcome of a sync request.

    Attributes:
        success: False only for fatal errors or a total store outage.
        stats: Per-operation counts.
        error_details: One message per failed record.
        warnings: Structured data warnings (date fallbacks, duplicates).
        request_id: Correlation id used in every log line of the run.
        scope: Owner scope of the request.
        dry_run: Whether writes were suppressed.
        phase: Final pipeline phase (REPORTED or FAILED).
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
        duration_seconds: Wall-clock duration.
        affected_slugs: Slugs inserted, updated or deleted.
        error: Top-level message for a failed request.
    """

    success: bool
    stats: SyncStats = Field(default_factory=SyncStats)
    error_details: list[str] = []
    warnings: list[SyncWarning] = []
    request_id: str
    scope: str | None = None
    dry_run: bool = False
    phase: SyncPhase = SyncPhase.REPORTED
    started_at: str
    completed_at: str
    duration_seconds: float = 0.0
    affected_slugs: list[str] = []
    error: str | None = None

    model_config = {"frozen": True}

    def summary(self) -> str:
        """Format a one-screen summary of the run."""
        lines = [
            f"Sync {self.request_id}"
            + (f" for '{self.scope}'" if self.scope else "")
            + (" (dry run)" if self.dry_run else ""),
            f"  Inserted: {self.stats.inserted}",
            f"  Updated:  {self.stats.updated}",
            f"  Deleted:  {self.stats.deleted}",
            f"  Skipped:  {self.stats.skipped}",
            f"  Errors:   {self.stats.errors}",
        ]
        return "\n".join(lines)
