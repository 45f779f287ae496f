"""Runtime configuration for the content-sync CLI.

Reads store and engine settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CONTENT_SYNC_STORE_URL: Base URL of the PostgREST/Supabase API (required)
    CONTENT_SYNC_STORE_KEY: Service API key (required)
    CONTENT_SYNC_TABLE: Target table (optional, default: posts)
    CONTENT_SYNC_BATCH_SIZE: Records per write batch (optional, default: 10)
    CONTENT_SYNC_MAX_PARALLEL_WRITES: Concurrent writes per batch (optional, default: 5)
    CONTENT_SYNC_OPTIMIZE_BY_DATE: Skip unchanged records (optional, default: false)
    CONTENT_SYNC_REVALIDATE_URL: Cache revalidation endpoint (optional)
    CONTENT_SYNC_REVALIDATE_SECRET: Secret for the revalidation endpoint (optional)
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .config_schema import UnifiedConfig

logger = logging.getLogger(__name__)


@dataclass
class Config:
    store_url: str
    store_key: str
    table: str = "posts"
    timeout: int = 30
    batch_size: int = 10
    max_parallel_writes: int = 5
    optimize_by_date: bool = False
    field_mapping: dict[str, str] = field(default_factory=dict)
    exclude_fields: list[str] | None = None
    revalidate_url: str | None = None
    revalidate_secret: str | None = None


def _validate_url(name: str, value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid {name} '{value}': must start with http:// or https://"
        )
    if not urlparse(value).hostname:
        raise ValueError(
            f"Invalid {name} '{value}': URL must include a hostname"
        )
    return value.removesuffix("/")


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Raises:
        ValueError: If a URL is malformed, the key is empty, or a numeric
            setting is out of range.
    """
    config.store_url = _validate_url("store URL", config.store_url)

    if not config.store_key.strip():
        raise ValueError(
            "Store API key cannot be empty. Set CONTENT_SYNC_STORE_KEY environment variable."
        )

    if not config.table.strip():
        raise ValueError("Store table name cannot be empty")

    if not (1 <= config.batch_size <= 500):
        raise ValueError(
            f"Invalid batch size {config.batch_size}: must be between 1 and 500"
        )

    if not (1 <= config.max_parallel_writes <= 100):
        raise ValueError(
            f"Invalid max parallel writes {config.max_parallel_writes}: must be between 1 and 100"
        )

    if config.revalidate_url:
        config.revalidate_url = _validate_url(
            "revalidation URL", config.revalidate_url
        )
        if not config.revalidate_secret:
            logger.warning(
                "Revalidation URL configured without a secret; requests may be rejected"
            )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_int_env(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    store_url: str | None = None,
    store_key: str | None = None,
    batch_size: int | None = None,
    optimize_by_date: bool = False,
    unified: UnifiedConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML (``unified``) > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        store_url: Override store URL.
        store_key: Override store API key.
        batch_size: Override write batch size.
        optimize_by_date: Enable the timestamp skip optimisation (CLI flag).
        unified: Parsed YAML config used as fallback values.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the store URL or key is missing after checking all
            sources, or any value is invalid.
    """
    fb = unified or UnifiedConfig()

    # --- String fields: CLI > env > YAML > error ---

    final_url = (
        store_url or os.getenv("CONTENT_SYNC_STORE_URL") or fb.store.url
    )
    if not final_url:
        raise ValueError(
            "Store URL not found. Set CONTENT_SYNC_STORE_URL environment variable, "
            "pass --store-url, or add 'store.url' to config.yml."
        )

    final_key = (
        store_key or os.getenv("CONTENT_SYNC_STORE_KEY") or fb.store.api_key
    )
    if not final_key:
        raise ValueError(
            "Store API key not found. Set CONTENT_SYNC_STORE_KEY environment variable "
            "or add 'store.api_key' to config.yml."
        )

    final_table = os.getenv("CONTENT_SYNC_TABLE") or fb.store.table

    # --- Numeric fields: CLI > env > YAML > default ---

    final_batch = batch_size or _get_int_env(
        "CONTENT_SYNC_BATCH_SIZE", 1, 500
    )
    if final_batch is None:
        final_batch = fb.sync.batch_size

    final_parallel = _get_int_env("CONTENT_SYNC_MAX_PARALLEL_WRITES", 1, 100)
    if final_parallel is None:
        final_parallel = fb.sync.max_parallel_writes

    # --- Boolean fields: CLI > env > YAML > default ---

    if optimize_by_date:
        final_optimize = True
    else:
        env_optimize = _get_bool_env("CONTENT_SYNC_OPTIMIZE_BY_DATE")
        final_optimize = (
            env_optimize
            if env_optimize is not None
            else fb.sync.optimize_by_date
        )

    config = Config(
        store_url=final_url,
        store_key=final_key,
        table=final_table,
        timeout=fb.store.timeout,
        batch_size=final_batch,
        max_parallel_writes=final_parallel,
        optimize_by_date=final_optimize,
        field_mapping=dict(fb.sync.field_mapping),
        exclude_fields=(
            list(fb.sync.exclude_fields)
            if fb.sync.exclude_fields is not None
            else None
        ),
        revalidate_url=os.getenv("CONTENT_SYNC_REVALIDATE_URL")
        or fb.revalidation.url,
        revalidate_secret=os.getenv("CONTENT_SYNC_REVALIDATE_SECRET")
        or fb.revalidation.secret,
    )

    validate_config(config)

    return config
