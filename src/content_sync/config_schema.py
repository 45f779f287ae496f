"""Unified configuration schema for content_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the store, the sync engine, cache revalidation and logging.
The parsed ``UnifiedConfig`` is the YAML fallback layer consumed by
``content_sync.config.load_config()``.

Usage:
    from content_sync.config import load_config
    from content_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(unified=unified)
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Canonical store connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="Base URL of the PostgREST/Supabase API"
    )
    api_key: str | None = Field(
        default=None, description="Service key sent as apikey and bearer token"
    )
    table: str = Field(default="posts", description="Target table name")
    timeout: int = Field(
        default=30, ge=1, le=600, description="Request timeout (seconds)"
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Reconciliation engine tuning.

    ``field_mapping`` entries are layered over the built-in mapping so a
    feed only has to declare the columns it names differently.
    """

    batch_size: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Records per write batch (1-500)",
    )
    max_parallel_writes: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Concurrent writes inside one batch (1-100)",
    )
    optimize_by_date: bool = Field(
        default=False,
        description="Skip records whose stored copy is at least as new",
    )
    field_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="External field name -> canonical field name",
    )
    exclude_fields: list[str] | None = Field(
        default=None,
        description="External fields dropped during normalization",
    )

    model_config = {"frozen": True}


class RevalidationConfig(BaseModel):
    """Cache revalidation endpoint notified after a successful sync."""

    url: str | None = Field(default=None, description="Revalidation URL")
    secret: str | None = Field(
        default=None, description="Shared secret sent with each request"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()`` is always
    valid.
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    revalidation: RevalidationConfig = Field(
        default_factory=RevalidationConfig
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
