"""Sync planner: pure reconciliation of incoming drafts against stored keys.

Decision table for each keyed draft:

=====================  ==========================  ==========
publish flag           stored?                     action
=====================  ==========================  ==========
false                  yes                         DELETE
false                  no                          (ignored)
true                   no                          INSERT
true                   yes, optimize & not newer   SKIP
true                   yes, otherwise              UPDATE
=====================  ==========================  ==========

Stored keys absent from the feed are deleted as well, so the store ends
up mirroring the feed exactly. A ``publish=false`` row beats a publishable
duplicate of the same key; among publishable duplicates the last one wins.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..timestamps import is_at_least_as_new
from .keys import KeyStrategy
from .models import CanonicalRecord, ExistingRecord, SyncPlan


def plan_sync(
    drafts: Sequence[CanonicalRecord],
    existing: dict[str, ExistingRecord],
    optimize_by_date: bool,
    key_strategy: KeyStrategy,
) -> SyncPlan:
    """Compute insert/update/skip/delete sets for one request.

    Args:
        drafts: Normalized drafts; each must carry a key under
            *key_strategy* (the engine rejects keyless rows earlier).
        existing: Stored key -> ``ExistingRecord`` index.
        optimize_by_date: Skip drafts whose stored copy is at least as new.
        key_strategy: Match-key strategy.

    Returns:
        A ``SyncPlan`` whose four key sets are pairwise disjoint.
    """
    incoming: dict[str, CanonicalRecord] = {}
    flagged: dict[str, None] = {}
    seen: set[str] = set()
    duplicates: dict[str, None] = {}

    for draft in drafts:
        key = key_strategy.key_for(draft)
        if not key:
            continue
        if key in seen:
            duplicates[key] = None
        seen.add(key)

        if not draft.publish:
            flagged[key] = None
        else:
            # Re-insert so the last duplicate also takes the last position
            incoming.pop(key, None)
            incoming[key] = draft

    for key in flagged:
        incoming.pop(key, None)

    to_insert: list[CanonicalRecord] = []
    to_update: list[CanonicalRecord] = []
    to_skip: list[str] = []
    for key, draft in incoming.items():
        stored = existing.get(key)
        if stored is None:
            to_insert.append(draft)
        elif optimize_by_date and is_at_least_as_new(
            stored.updated_at, draft.last_modified
        ):
            to_skip.append(key)
        else:
            to_update.append(draft)

    to_delete = [key for key in flagged if key in existing]
    to_delete.extend(
        key
        for key in existing
        if key not in incoming and key not in flagged
    )

    return SyncPlan(
        to_insert=to_insert,
        to_update=to_update,
        to_skip=to_skip,
        to_delete=to_delete,
        existing=existing,
        duplicates=list(duplicates),
    )
