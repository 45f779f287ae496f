"""Tests for content_sync.sync.planner: pure reconciliation."""

import pytest

from content_sync.sync.keys import IdKeyStrategy, SlugKeyStrategy
from content_sync.sync.models import CanonicalRecord, ExistingRecord
from content_sync.sync.planner import plan_sync

ID = IdKeyStrategy()


def draft(identity, **kwargs):
    kwargs.setdefault("slug", f"slug-{identity}")
    return CanonicalRecord(identity=identity, owner_scope="alice", **kwargs)


def stored(identity, updated_at="2024-01-01T00:00:00.000Z", slug=None):
    return ExistingRecord(
        identity=identity, updated_at=updated_at, slug=slug or f"slug-{identity}"
    )


def index(*records):
    return {r.identity: r for r in records}


def keys(records):
    return [r.identity for r in records]


class TestPlanSync:
    def test_empty_store_inserts_everything(self):
        plan = plan_sync([draft("a"), draft("b")], {}, False, ID)

        assert keys(plan.to_insert) == ["a", "b"]
        assert plan.to_update == []
        assert plan.to_skip == []
        assert plan.to_delete == []
        assert plan.write_count == 2

    def test_mixed_insert_update_delete(self):
        existing = index(stored("a"), stored("b"), stored("c"))

        plan = plan_sync([draft("a"), draft("b"), draft("d")], existing, False, ID)

        assert keys(plan.to_insert) == ["d"]
        assert keys(plan.to_update) == ["a", "b"]
        assert plan.to_delete == ["c"]

    def test_optimize_skips_current_records(self):
        existing = index(
            stored("a", updated_at="2024-03-01T00:00:00.000Z"),
            stored("b", updated_at="2024-01-01T00:00:00.000Z"),
        )
        drafts = [
            draft("a", last_modified="2024-02-01T00:00:00.000Z"),
            draft("b", last_modified="2024-02-01T00:00:00.000Z"),
        ]

        plan = plan_sync(drafts, existing, True, ID)

        assert plan.to_skip == ["a"]
        assert keys(plan.to_update) == ["b"]

    def test_equal_timestamps_skip(self):
        existing = index(stored("a", updated_at="2024-02-01T00:00:00.000Z"))
        drafts = [draft("a", last_modified="2024-02-01T00:00:00.000Z")]

        assert plan_sync(drafts, existing, True, ID).to_skip == ["a"]

    def test_optimize_off_always_updates(self):
        existing = index(stored("a", updated_at="2099-01-01T00:00:00.000Z"))
        drafts = [draft("a", last_modified="2024-02-01T00:00:00.000Z")]

        plan = plan_sync(drafts, existing, False, ID)

        assert keys(plan.to_update) == ["a"]
        assert plan.to_skip == []

    @pytest.mark.parametrize(
        "stored_at,incoming",
        [(None, "2024-02-01T00:00:00.000Z"), ("2024-03-01T00:00:00.000Z", None)],
    )
    def test_missing_timestamp_falls_through_to_update(self, stored_at, incoming):
        existing = index(stored("a", updated_at=stored_at))
        plan = plan_sync([draft("a", last_modified=incoming)], existing, True, ID)
        assert keys(plan.to_update) == ["a"]

    def test_publish_false_deletes_existing(self):
        existing = index(stored("a"), stored("b"))

        plan = plan_sync(
            [draft("a", publish=False), draft("b")], existing, False, ID
        )

        assert plan.to_delete == ["a"]
        assert keys(plan.to_update) == ["b"]

    def test_publish_false_for_unknown_key_ignored(self):
        plan = plan_sync([draft("x", publish=False)], {}, False, ID)
        assert plan.is_empty

    def test_publish_false_beats_duplicate(self):
        existing = index(stored("a"))
        drafts = [draft("a", title="keep?"), draft("a", publish=False)]

        plan = plan_sync(drafts, existing, False, ID)

        assert plan.to_update == []
        assert plan.to_delete == ["a"]
        assert plan.duplicates == ["a"]

    def test_last_publishable_duplicate_wins(self):
        drafts = [draft("a", title="first"), draft("b"), draft("a", title="second")]

        plan = plan_sync(drafts, {}, False, ID)

        assert keys(plan.to_insert) == ["b", "a"]
        assert plan.to_insert[1].title == "second"
        assert plan.duplicates == ["a"]

    def test_keyless_drafts_ignored(self):
        plan = plan_sync([CanonicalRecord(title="no key")], {}, False, ID)
        assert plan.is_empty

    def test_flagged_deletes_precede_absent_deletes(self):
        existing = index(stored("gone"), stored("flagged"))

        plan = plan_sync([draft("flagged", publish=False)], existing, False, ID)

        assert plan.to_delete == ["flagged", "gone"]

    def test_sets_are_disjoint(self):
        existing = index(
            stored("u"),
            stored("s", updated_at="2099-01-01T00:00:00.000Z"),
            stored("f"),
            stored("gone"),
        )
        drafts = [
            draft("i"),
            draft("u", last_modified="2024-06-01T00:00:00.000Z"),
            draft("s", last_modified="2024-06-01T00:00:00.000Z"),
            draft("f", publish=False),
        ]

        plan = plan_sync(drafts, existing, True, ID)

        groups = [
            set(keys(plan.to_insert)),
            set(keys(plan.to_update)),
            set(plan.to_skip),
            set(plan.to_delete),
        ]
        assert groups == [{"i"}, {"u"}, {"s"}, {"f", "gone"}]
        for n, left in enumerate(groups):
            for right in groups[n + 1 :]:
                assert not left & right

    def test_empty_feed_deletes_everything(self):
        existing = index(stored("a"), stored("b"))
        assert plan_sync([], existing, False, ID).to_delete == ["a", "b"]

    def test_plan_keeps_existing_index(self):
        existing = index(stored("a"))
        assert plan_sync([draft("a")], existing, False, ID).existing == existing


class TestSlugStrategyPlanning:
    def test_matches_by_slug(self):
        slug = SlugKeyStrategy()
        existing = {
            "hello": ExistingRecord(identity="hello", slug="hello"),
            "old": ExistingRecord(identity="old", slug="old"),
        }
        drafts = [
            CanonicalRecord(slug="hello", title="Hello"),
            CanonicalRecord(slug="new", title="New"),
        ]

        plan = plan_sync(drafts, existing, False, slug)

        assert [d.slug for d in plan.to_update] == ["hello"]
        assert [d.slug for d in plan.to_insert] == ["new"]
        assert plan.to_delete == ["old"]
