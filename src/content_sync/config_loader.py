"""
YAML config file discovery and loading for content_sync.

Config files are optional. When present they are found by convention,
may pull fragments in with ``!include`` (typically a field mapping
shared between feeds), and may reference secrets as ``${VAR}`` or
``${VAR:-default}``. Files closer to the project win over global ones.

Usage:
    from content_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()   # {} when no file exists
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CONTENT_SYNC_CONFIG"
PROJECT_DIR = ".content_sync"
GLOBAL_DIR = Path(".config") / "content_sync"

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


# ---------------------------------------------------------------------------
# ${VAR} expansion
# ---------------------------------------------------------------------------


def _env_value(match: re.Match) -> str:
    value = os.environ.get(match.group("name"))
    if value:
        return value
    return match.group("fallback") or ""


def expand_env_vars(data: Any) -> Any:
    """Expand ``${VAR}`` references in every string inside *data*.

    Unset or empty variables expand to the ``:-`` fallback, or to ``""``
    when there is none. Text like ``${VAR`` without a closing brace is
    left alone. Dicts and lists are rebuilt; other values pass through.
    """
    if isinstance(data, str):
        return _ENV_REF.sub(_env_value, data)
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    return data


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include other.yml``.

    The tag is registered on this subclass only, so plain
    ``yaml.safe_load`` keeps rejecting it. Relative paths resolve against
    the including file. ``chain`` holds the files currently being loaded
    and turns include cycles into a ``ValueError``.
    """

    def __init__(self, stream, chain: tuple[Path, ...] = ()):
        super().__init__(stream)
        self.chain = chain

    def construct_include(self, node: yaml.ScalarNode) -> Any:
        current = self.chain[-1]
        target = Path(self.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = current.parent / target
        target = target.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {current})"
            )
        return load_yaml(target, self.chain)


IncludeLoader.add_constructor("!include", IncludeLoader.construct_include)


def load_yaml(path: Path, chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` tags."""
    path = Path(path).resolve()
    with open(path, encoding="utf-8") as fh:
        loader = IncludeLoader(fh, (*chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidate_paths() -> list[Path]:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    project = Path.cwd() / PROJECT_DIR
    candidates = [
        project / "config.yml",
        project / "config.yaml",
        Path.home() / GLOBAL_DIR / "config.yml",
    ]
    if explicit:
        candidates.insert(0, Path(explicit).expanduser().resolve())
    return candidates


def discover_config_files() -> list[Path]:
    """Existing config files, highest precedence first.

    1. the file named by ``CONTENT_SYNC_CONFIG``
    2. ``./.content_sync/config.yml``, then ``config.yaml``
    3. ``~/.config/content_sync/config.yml``
    """
    found: list[Path] = []
    for path in _candidate_paths():
        if path.is_file() and path not in found:
            found.append(path)
    return found


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------

STARTER_CONFIG = """\
# content-sync configuration
#
# Store settings can also be set via environment variables:
#   CONTENT_SYNC_STORE_URL, CONTENT_SYNC_STORE_KEY, CONTENT_SYNC_TABLE
#
# store:
#   url: https://your-project.supabase.co
#   api_key: ${SUPABASE_SERVICE_KEY}
#   table: posts
#   timeout: 30
#
# sync:
#   batch_size: 10
#   max_parallel_writes: 5
#   optimize_by_date: false
#   exclude_fields: [author_handle, owner_scope, created_at, secret]
#   field_mapping:
#     load: published
#     comment: commentable
#     socmed: shareable
#
# revalidation:
#   url: https://blog.example.com/api/revalidate
#   secret: ${REVALIDATION_SECRET}
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """The config file in effect, or the project default if none exists."""
    found = discover_config_files()
    return found[0] if found else Path.cwd() / PROJECT_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing ``STARTER_CONFIG`` if none exists.

    Args:
        target: Where to create the starter file; defaults to
            ``resolve_config_path()``. Ignored when a config file is
            already discoverable.
    """
    found = discover_config_files()
    if found:
        logger.debug("Using existing config %s", found[0])
        return found[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config to %s", path)
    return path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one raw dict.

    Files are applied from lowest to highest precedence and a later
    file's top-level section replaces the earlier one wholesale (no deep
    merge). ``${VAR}`` references are expanded after merging. With no
    config files the result is ``{}``.

    Raises:
        yaml.YAMLError, OSError, ValueError: If a file cannot be loaded.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        try:
            data = load_yaml(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        logger.debug("Loaded config sections %s from %s", sorted(data), path)
        merged.update(data)

    return expand_env_vars(merged)
