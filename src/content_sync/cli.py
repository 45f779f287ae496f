"""Command-line entry point: ``content-sync``.

Subcommands:
    sync RECORDS   Reconcile a JSON or CSV export into the store.
    init           Create a starter ``.content_sync/config.yml``.
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .core.postgrest import PostgrestStore
from .logger import setup_logging
from .sync import (
    HttpRevalidator,
    NullInvalidator,
    SyncEngine,
    SyncRequest,
    format_sync_report,
    result_to_json,
)
from .sync.reporter import Invalidator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Record loading
# ---------------------------------------------------------------------------


def load_records(path: Path) -> dict[str, Any]:
    """Read a feed export into ``SyncRequest`` fields.

    ``.csv`` files are read with a header row; headers and cells are
    trimmed. ``.json`` files hold either a list of records or an object
    with ``posts``/``records`` and optional ``handle``/``scope`` and
    ``optimizeByDate``.

    Raises:
        ValueError: If the file cannot be parsed.
    """
    if path.suffix.lower() == ".csv":
        with open(path, newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh)
            records = [
                {
                    (k or "").strip(): (v.strip() if isinstance(v, str) else v)
                    for k, v in row.items()
                    if k
                }
                for row in reader
            ]
        return {"records": records}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc

    if isinstance(data, list):
        return {"records": data}
    if isinstance(data, dict):
        return data
    raise ValueError(
        f"{path} must contain a list of records or an object with 'posts'"
    )


def build_invalidator(config: Config) -> Invalidator:
    if config.revalidate_url:
        return HttpRevalidator(
            config.revalidate_url,
            config.revalidate_secret,
            timeout=config.timeout,
        )
    return NullInvalidator()


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace) -> int:
    path = ensure_config(Path(args.path) if args.path else None)
    print(f"Config file: {path}")
    return 0


def cmd_sync(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    try:
        config = load_config(
            store_url=args.store_url,
            batch_size=args.batch_size,
            optimize_by_date=args.optimize_by_date,
            unified=unified,
        )
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    try:
        fields = load_records(Path(args.records))
    except (OSError, ValueError) as exc:
        print(f"Cannot read records: {exc}", file=sys.stderr)
        return 1

    if args.scope is not None:
        fields = {k: v for k, v in fields.items() if k not in ("scope", "handle")}
        fields["scope"] = args.scope
    if config.optimize_by_date:
        fields = {
            k: v
            for k, v in fields.items()
            if k not in ("optimize_by_date", "optimizeByDate")
        }
        fields["optimize_by_date"] = True

    try:
        request = SyncRequest.model_validate(fields)
    except ValidationError as exc:
        print(f"Invalid sync request: {exc}", file=sys.stderr)
        return 1

    store = PostgrestStore(config)
    engine = SyncEngine.from_config(config, store, build_invalidator(config))
    result = engine.run(request, dry_run=args.dry_run)

    if args.json:
        print(json.dumps(result_to_json(result), indent=2))
    else:
        print(format_sync_report(result))

    return 0 if result.success else 1


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="content-sync",
        description="Mirror an authoring feed export into the canonical post store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what a sync of an author's sheet export would do
  content-sync sync posts.csv --scope alice --dry-run

  # Sync, skipping rows whose stored copy is already current
  content-sync sync posts.json --scope alice --optimize-by-date

  # Legacy global sync keyed by slug, JSON output
  content-sync sync posts.json --json

  # Create a starter config file
  content-sync init
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"content-sync version {__version__}",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file (overrides LOG_FILE env var)",
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log line format on stderr (default: text)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Reconcile records into the store")
    sync.add_argument("records", help="Path to a .json or .csv export")
    sync.add_argument(
        "--scope",
        help="Owner handle; omit for global slug-keyed sync",
    )
    sync.add_argument(
        "--optimize-by-date",
        action="store_true",
        help="Skip records whose stored copy is at least as new",
    )
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan only: no writes, no cache invalidation",
    )
    sync.add_argument(
        "--json", action="store_true", help="Print the JSON response"
    )
    sync.add_argument(
        "--store-url",
        help="Override store URL (takes precedence over CONTENT_SYNC_STORE_URL)",
    )
    sync.add_argument(
        "--batch-size", type=int, help="Writes per batch (1-500)"
    )

    init = sub.add_parser("init", help="Create a starter config file")
    init.add_argument(
        "--path", help="Config file to create (default: .content_sync/config.yml)"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, configure logging and run a subcommand."""
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        unified = build_config(load_hierarchical_config())
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.log_format,
        level=unified.logging.level,
    )

    if args.command == "init":
        return cmd_init(args)
    return cmd_sync(args, unified)


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
