"""Tests for content_sync.config_schema: Pydantic config models."""

import pytest
from pydantic import ValidationError

from content_sync.config_schema import (
    LoggingConfig,
    RevalidationConfig,
    StoreConfig,
    SyncSettings,
    UnifiedConfig,
    build_config,
)


class TestUnifiedConfig:
    def test_empty_dict_produces_valid_defaults(self):
        config = UnifiedConfig(**{})

        assert config.store.url is None
        assert config.store.table == "posts"
        assert config.sync.batch_size == 10
        assert config.sync.max_parallel_writes == 5
        assert config.sync.optimize_by_date is False
        assert config.sync.field_mapping == {}
        assert config.sync.exclude_fields is None
        assert config.revalidation.url is None
        assert config.logging.level == "INFO"

    def test_unknown_sections_ignored(self):
        config = UnifiedConfig(**{"providers": {"x": 1}})
        assert config.store == StoreConfig()

    def test_frozen_model_prevents_mutation(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.store = StoreConfig(url="https://x.example.com")


class TestSyncSettings:
    @pytest.mark.parametrize("size", [0, 501])
    def test_batch_size_bounds(self, size):
        with pytest.raises(ValidationError):
            SyncSettings(batch_size=size)

    @pytest.mark.parametrize("parallel", [0, 101])
    def test_parallel_bounds(self, parallel):
        with pytest.raises(ValidationError):
            SyncSettings(max_parallel_writes=parallel)

    def test_field_mapping_accepts_strings(self):
        settings = SyncSettings(field_mapping={"body_html": "body"})
        assert settings.field_mapping == {"body_html": "body"}

    def test_frozen(self):
        settings = SyncSettings()
        with pytest.raises(ValidationError):
            settings.batch_size = 3


class TestStoreConfig:
    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            StoreConfig(timeout=0)

    def test_all_fields_optional(self):
        config = StoreConfig()
        assert config.api_key is None
        assert config.timeout == 30


class TestSmallSections:
    def test_revalidation_defaults(self):
        assert RevalidationConfig() == RevalidationConfig(url=None, secret=None)

    def test_logging_custom_values(self):
        config = LoggingConfig(level="DEBUG", file="/tmp/sync.log")
        assert config.level == "DEBUG"
        assert config.file == "/tmp/sync.log"


class TestBuildConfig:
    def test_empty_dict_returns_defaults(self):
        assert build_config({}) == UnifiedConfig()

    def test_partial_sections_fill_defaults(self):
        config = build_config({"sync": {"batch_size": 25}})

        assert config.sync.batch_size == 25
        assert config.sync.max_parallel_writes == 5
        assert config.store.table == "posts"

    def test_full_raw_dict(self):
        config = build_config(
            {
                "store": {
                    "url": "https://db.example.com",
                    "api_key": "k",
                    "table": "articles",
                    "timeout": 15,
                },
                "sync": {
                    "optimize_by_date": True,
                    "exclude_fields": ["secret"],
                },
                "revalidation": {
                    "url": "https://blog.example.com/api/revalidate",
                    "secret": "s",
                },
                "logging": {"level": "WARNING"},
            }
        )

        assert config.store.table == "articles"
        assert config.sync.optimize_by_date is True
        assert config.sync.exclude_fields == ["secret"]
        assert config.revalidation.secret == "s"
        assert config.logging.level == "WARNING"

    def test_invalid_section_raises(self):
        with pytest.raises(ValidationError):
            build_config({"sync": {"batch_size": "many"}})
