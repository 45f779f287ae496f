"""Tolerant timestamp parsing for spreadsheet-sourced dates.

Authoring feeds produce dates in whatever shape the sheet happened to
format them: ``2024-01-05``, ``2024-01-05 10:00``, ``2024-01-05T10:00+07``,
``1/5/2024``. Everything is normalized to one UTC representation,
``YYYY-MM-DDTHH:MM:SS.mmmZ``, so stored timestamps compare correctly as
strings and as datetimes.

Parsing strategy:
    1. Direct ISO 8601 parse (a trailing ``Z`` is accepted).
    2. Repair, then re-parse: a space separator becomes ``T``, seconds
       are added to ``HH:MM``, a missing zone becomes ``Z`` and a bare
       offset hour (``+07``) becomes ``+07:00``.
    3. A few common sheet formats (``M/D/YYYY`` with optional time).

Values without a zone are taken as UTC.
"""

import re
from datetime import date, datetime, timezone
from typing import Any

_ZONE_PATTERN = re.compile(r"(Z|[+-]\d{2}(?::?\d{2})?)$")
_HOUR_MINUTE = re.compile(r"^\d{1,2}:\d{2}$")

_FALLBACK_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render *value* as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_iso(text: str) -> datetime | None:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _repair(text: str) -> str:
    """Rewrite near-ISO input into a form ``fromisoformat`` accepts."""
    if "T" not in text and " " in text:
        text = text.replace(" ", "T", 1)
    if "T" not in text:
        return text

    date_part, time_part = text.split("T", 1)
    time_part = time_part.strip()

    zone = ""
    match = _ZONE_PATTERN.search(time_part)
    if match:
        zone = match.group(1)
        time_part = time_part[: match.start()].strip()

    if _HOUR_MINUTE.match(time_part):
        time_part += ":00"

    if not zone:
        zone = "Z"
    elif zone != "Z":
        sign, digits = zone[0], zone[1:].replace(":", "")
        if len(digits) == 2:
            digits += "00"
        zone = f"{sign}{digits[:2]}:{digits[2:]}"

    return f"{date_part}T{time_part}{zone}"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a loosely formatted timestamp into an aware UTC datetime.

    Args:
        value: String, ``datetime`` or ``date``; anything else is
            stringified first.

    Returns:
        The parsed UTC datetime, or ``None`` if *value* is empty or no
        strategy understood it.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    text = str(value).strip()
    if not text:
        return None

    parsed = _from_iso(text)
    if parsed is None:
        parsed = _from_iso(_repair(text))
    if parsed is None:
        for fmt in _FALLBACK_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return _as_utc(parsed)


def normalize_timestamp(value: Any) -> str | None:
    """Parse *value* and render it canonically, or return ``None``."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return format_timestamp(parsed)


def is_at_least_as_new(existing: Any, incoming: Any) -> bool:
    """Return True if *existing* parses and is not older than *incoming*.

    Returns False when either side is missing or unparseable, so callers
    fall through to an overwrite.
    """
    existing_dt = parse_timestamp(existing)
    incoming_dt = parse_timestamp(incoming)
    if existing_dt is None or incoming_dt is None:
        return False
    return existing_dt >= incoming_dt
