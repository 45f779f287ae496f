"""Existing-state loader: one bulk read of the stored keys for a scope."""

from __future__ import annotations

import logging

from ..core.store import ContentStore
from ..errors import ExistingStateError
from .keys import KeyStrategy
from .models import ExistingRecord

logger = logging.getLogger(__name__)


class ExistingStateLoader:
    """Build the ``key -> ExistingRecord`` index the planner compares against.

    Args:
        store: Canonical post store.
        key_strategy: Decides which column is the match key.
    """

    def __init__(self, store: ContentStore, key_strategy: KeyStrategy) -> None:
        self.store = store
        self.key_strategy = key_strategy

    def load(
        self, scope: str | None, log: logging.LoggerAdapter | None = None
    ) -> dict[str, ExistingRecord]:
        """Read every stored row in *scope* and index it by match key.

        Rows without a key are ignored. If the store holds the same key
        twice, the first row wins and a warning is logged.

        Raises:
            ExistingStateError: If the store read fails for any reason.
        """
        log = log or logger
        try:
            rows = self.store.load_existing(scope)
        except Exception as exc:
            raise ExistingStateError(
                f"Failed to load existing posts: {exc}"
            ) from exc

        index: dict[str, ExistingRecord] = {}
        for row in rows:
            key = self.key_strategy.existing_key(row)
            if not key:
                continue
            if key in index:
                log.warning(
                    "Duplicate stored %s %r; keeping the first row",
                    self.key_strategy.name,
                    key,
                )
                continue
            index[key] = ExistingRecord(
                identity=key,
                updated_at=row.get("updated_at"),
                slug=row.get("slug"),
            )

        log.info(
            "Loaded %d existing posts (scope=%s, key=%s)",
            len(index),
            scope or "*",
            self.key_strategy.name,
        )
        return index
