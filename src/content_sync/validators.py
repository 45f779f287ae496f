"""
Envelope checks for sync requests.

Run before the store is touched: a bad scope or an empty record list
must never reach the planner, since an empty feed plans a delete of
every stored post. Each check returns ``(is_valid, message)``.
"""

import re
from typing import Any

# Owner handles end up verbatim in store filters, cache keys and URLs.
SCOPE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
MAX_SCOPE_LENGTH = 64


def format_validation_error(field_name: str, reason: str) -> str:
    """``"<Field> <reason>"``, e.g. ``"Scope cannot be empty"``."""
    return f"{field_name} {reason}"


def _invalid(field_name: str, reason: str) -> tuple[bool, str]:
    return (False, format_validation_error(field_name, reason))


def validate_scope(scope: str | None) -> tuple[bool, str]:
    """
    Check an owner scope (author handle).

    ``None`` is accepted and selects the global slug strategy. Otherwise
    the handle must be non-blank, at most 64 characters, start with a
    letter or digit and contain only letters, digits, ``_``, ``.`` and
    ``-``.
    """
    if scope is None:
        return (True, "")
    if not scope.strip():
        return _invalid("Scope", "cannot be empty")
    if len(scope) > MAX_SCOPE_LENGTH:
        return _invalid("Scope", f"exceeds {MAX_SCOPE_LENGTH} characters")
    if not SCOPE_PATTERN.match(scope):
        return _invalid(
            "Scope",
            f"'{scope}' may only contain letters, digits, '_', '.' and '-'",
        )
    return (True, "")


def validate_records(records: Any) -> tuple[bool, str]:
    """Check that *records* is a non-empty list."""
    if not isinstance(records, list):
        return _invalid("Records", "must be a list")
    if not records:
        return _invalid("Records", "cannot be empty")
    return (True, "")
