"""Tests for content_sync.sync.normalizer: feed row coercion."""

import pytest

from content_sync.errors import NormalizationError
from content_sync.sync.normalizer import (
    DEFAULT_TITLE,
    FieldNormalizer,
    coerce_bool,
    is_unpublish_flag,
    parse_categories,
    preview,
    slugify,
)

NOW = "2024-06-01T12:00:00.000Z"


@pytest.fixture
def normalizer(fixed_clock):
    return FieldNormalizer(clock=fixed_clock)


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


class TestCoerceBool:
    @pytest.mark.parametrize("value", [True, "TRUE", "true"])
    def test_truthy(self, value):
        assert coerce_bool(value) is True

    @pytest.mark.parametrize(
        "value", [False, None, "", "FALSE", "yes", "1", 1, "True", "tRuE", " true "]
    )
    def test_everything_else_is_false(self, value):
        assert coerce_bool(value) is False


class TestUnpublishFlag:
    @pytest.mark.parametrize("value", [False, "FALSE", "false"])
    def test_flags(self, value):
        assert is_unpublish_flag(value)

    @pytest.mark.parametrize("value", [None, "", True, "TRUE", 0, "no", " false"])
    def test_not_flags(self, value):
        assert not is_unpublish_flag(value)


class TestParseCategories:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("news|tech", ["news", "tech"]),
            ("news, tech", ["news", "tech"]),
            ("a|b,c", ["a", "b,c"]),
            (" solo ", ["solo"]),
            ("a||b|", ["a", "b"]),
            ("", []),
            (None, []),
            (["x", "", None, " y "], ["x", "y"]),
        ],
    )
    def test_split(self, value, expected):
        assert parse_categories(value) == expected


class TestSlugify:
    def test_basic(self):
        assert slugify("Hello World") == "hello-world"

    def test_accents_and_punctuation(self):
        assert slugify("  Héllo, Wörld! ") == "hello-world"

    def test_length_cap(self):
        slug = slugify("word " * 30)
        assert len(slug) <= 60
        assert not slug.endswith("-")

    def test_deterministic(self):
        assert slugify("Same Title") == slugify("Same Title")


class TestPreview:
    def test_truncates(self):
        assert len(preview({"body": "x" * 500})) == 100

    def test_renders_json(self):
        assert preview({"title": "A"}) == '{"title": "A"}'


# ---------------------------------------------------------------------------
# FieldNormalizer
# ---------------------------------------------------------------------------


class TestFieldNormalizer:
    def test_feed_columns_mapped(self, normalizer):
        result = normalizer.normalize(
            {
                "id": "p1",
                "title": "First Post",
                "content": "<p>Hi</p>",
                "excerpt": "Hi",
                "date": "2024-01-05 10:00",
                "categories": "news|tech",
                "featured": "TRUE",
                "comment": "true",
                "socmed": "FALSE",
                "load": True,
                "lastModified": "2024-01-06T08:00:00Z",
            },
            scope="alice",
        )

        record = result.record
        assert result.warnings == []
        assert record.identity == "p1"
        assert record.owner_scope == "alice"
        assert record.title == "First Post"
        assert record.slug == "first-post"
        assert record.body == "<p>Hi</p>"
        assert record.date == "2024-01-05T10:00:00.000Z"
        assert record.categories == ["news", "tech"]
        assert record.featured is True
        assert record.commentable is True
        assert record.shareable is False
        assert record.published is True
        assert record.last_modified == "2024-01-06T08:00:00.000Z"
        assert record.publish is True

    def test_supplied_slug_kept(self, normalizer):
        record = normalizer.normalize(
            {"id": "p1", "title": "Title", "slug": "custom-slug"}, "alice"
        ).record
        assert record.slug == "custom-slug"

    def test_missing_title_defaults(self, normalizer):
        record = normalizer.normalize({"id": "p1"}, "alice").record
        assert record.title == DEFAULT_TITLE
        assert record.slug is None

    def test_numeric_identity_rendered_as_text(self, normalizer):
        assert normalizer.normalize({"id": 42.0}, "alice").record.identity == "42"
        assert normalizer.normalize({"id": 7}, "alice").record.identity == "7"

    def test_scope_fields_excluded_and_forced(self, normalizer):
        record = normalizer.normalize(
            {
                "id": "p1",
                "author_handle": "mallory",
                "ownerScope": "mallory",
                "created_at": "2000-01-01",
                "secret": "hunter2",
            },
            scope="alice",
        ).record

        assert record.owner_scope == "alice"
        row = record.to_row(NOW)
        assert row["owner_scope"] == "alice"
        assert "author_handle" not in row
        assert "created_at" not in row
        assert "secret" not in row

    def test_unmapped_fields_pass_through(self, normalizer):
        record = normalizer.normalize(
            {"id": "p1", "featuredImage": "cover.png", "readingTime": 4},
            "alice",
        ).record
        assert record.extra == {"featured_image": "cover.png", "readingTime": 4}
        assert record.to_row(NOW)["featured_image"] == "cover.png"

    def test_custom_mapping_overrides_defaults(self, fixed_clock):
        normalizer = FieldNormalizer(
            field_mapping={"headline": "title", "writer": "author_handle"},
            clock=fixed_clock,
        )
        record = normalizer.normalize(
            {"id": "p1", "headline": "Big News", "writer": "mallory"}, "alice"
        ).record

        assert record.title == "Big News"
        assert record.owner_scope == "alice"
        assert "author_handle" not in record.extra

    def test_custom_exclusions_extend_defaults(self, fixed_clock):
        normalizer = FieldNormalizer(exclude_fields=["draft_notes"], clock=fixed_clock)
        record = normalizer.normalize(
            {"id": "p1", "draft_notes": "todo", "mood": "happy"}, "alice"
        ).record
        assert record.extra == {"mood": "happy"}

    def test_custom_exclusions_keep_scope_guard(self, fixed_clock):
        normalizer = FieldNormalizer(exclude_fields=["draft_notes"], clock=fixed_clock)

        record = normalizer.normalize(
            {"slug": "hello", "author_handle": "mallory", "owner_scope": "eve"},
            None,
        ).record

        assert record.owner_scope is None
        assert record.extra == {}
        row = record.to_row(updated_at="x")
        assert "author_handle" not in row
        assert "owner_scope" not in row

    def test_first_alias_wins(self, normalizer):
        record = normalizer.normalize(
            {"id": "p1", "content": "from content", "body": "from body"}, "alice"
        ).record
        assert record.body == "from content"

    def test_publish_false_marks_unpublish(self, normalizer):
        record = normalizer.normalize({"id": "p1", "publish": "FALSE"}, "alice").record
        assert record.publish is False

    def test_missing_date_uses_clock_silently(self, normalizer):
        result = normalizer.normalize({"id": "p1"}, "alice")
        assert result.record.date == NOW
        assert result.warnings == []

    def test_unparseable_date_warns(self, normalizer):
        result = normalizer.normalize({"id": "p1", "date": "someday"}, "alice")

        assert result.record.date == NOW
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.field == "date"
        assert warning.value == "someday"
        assert warning.key == "p1"

    def test_unparseable_last_modified_warns(self, normalizer):
        result = normalizer.normalize(
            {"id": "p1", "date": "2024-01-01", "lastModified": "??"}, "alice"
        )
        assert result.record.last_modified is None
        assert [w.field for w in result.warnings] == ["last_modified"]

    def test_non_mapping_raises(self, normalizer):
        with pytest.raises(NormalizationError, match="must be an object"):
            normalizer.normalize(["not", "a", "dict"], "alice")

    def test_global_record_has_no_owner(self, normalizer):
        record = normalizer.normalize({"title": "Hello"}, scope=None).record
        row = record.to_row(NOW)
        assert "owner_scope" not in row
        assert "id" not in row
        assert row["slug"] == "hello"
        assert row["updated_at"] == NOW
