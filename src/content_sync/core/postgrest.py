"""PostgREST (Supabase) adapter for the canonical post store."""

import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..errors import StoreError, StoreUnavailableError
from ..timestamps import format_timestamp, utc_now
from .store import ContentStore

logger = logging.getLogger(__name__)

# Canonical field -> table column, for the legacy ``posts`` schema.
DEFAULT_COLUMN_MAP = {
    "owner_scope": "author_handle",
    "body": "content",
    "commentable": "comment",
    "shareable": "socmed",
    "featured_image": "featuredImage",
}

_UNAVAILABLE_STATUS = (502, 503, 504)


class PostgrestStore(ContentStore):
    """Store adapter speaking the PostgREST HTTP dialect.

    One ``requests.Session`` is kept per worker thread, so concurrent
    writes from the executor never share connection state.

    Args:
        config: Runtime config providing URL, key, table and timeout.
        column_map: Canonical field -> column overrides.
        page_size: Rows fetched per request by ``load_existing``.
    """

    def __init__(
        self,
        config: Config,
        column_map: dict[str, str] | None = None,
        page_size: int = 1000,
    ):
        self.config = config
        self.page_size = page_size
        self.columns = {**DEFAULT_COLUMN_MAP, **(column_map or {})}
        self._thread_local = threading.local()
        self.rest_url = self._get_rest_url()

    @property
    def session(self) -> requests.Session:
        return self._get_session()

    def _get_rest_url(self) -> str:
        return f"{self.config.store_url.rstrip('/')}/rest/v1/{self.config.table}"

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "apikey": self.config.store_key,
                "Authorization": f"Bearer {self.config.store_key}",
                "Content-Type": "application/json",
            }
        )
        return session

    # ------------------------------------------------------------------
    # Column translation
    # ------------------------------------------------------------------

    def _column(self, field: str) -> str:
        return self.columns.get(field, field)

    def _to_columns(self, row: dict[str, Any]) -> dict[str, Any]:
        return {self._column(k): v for k, v in row.items()}

    def _scope_filter(self, scope: str | None) -> dict[str, str]:
        if scope is None:
            return {}
        return {self._column("owner_scope"): f"eq.{scope}"}

    @staticmethod
    def _in_list(keys: list[str]) -> str:
        quoted = ",".join(
            '"' + k.replace("\\", "\\\\").replace('"', '\\"') + '"'
            for k in keys
        )
        return f"in.({quoted})"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        params: dict[str, str] | None = None,
        payload: Any = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """Send one request and map transport failures to store errors.

        Raises:
            StoreUnavailableError: Connection failure, timeout or 502-504.
            StoreError: Any other non-2xx response.
        """
        session = self._get_session()
        try:
            response = session.request(
                method,
                self.rest_url,
                params=params,
                json=payload,
                headers=headers,
                timeout=(10, self.config.timeout),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise StoreUnavailableError(
                f"{method} {self.rest_url} failed: {exc}"
            ) from exc

        if response.status_code in _UNAVAILABLE_STATUS:
            raise StoreUnavailableError(
                f"{method} {self.rest_url} returned {response.status_code}"
            )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            detail = response.text[:200] if response.text else ""
            raise StoreError(
                f"{method} {self.rest_url} returned {response.status_code}: {detail}"
            ) from exc
        return response

    # ------------------------------------------------------------------
    # ContentStore
    # ------------------------------------------------------------------

    def load_existing(self, scope: str | None) -> list[dict[str, Any]]:
        id_col = self._column("id")
        updated_col = self._column("updated_at")
        slug_col = self._column("slug")
        params = {
            "select": f"{id_col},{updated_col},{slug_col}",
            # Range paging needs a total order or rows can shift between pages.
            "order": f"{id_col}.asc,{slug_col}.asc",
            **self._scope_filter(scope),
        }

        rows: list[dict[str, Any]] = []
        start = 0
        while True:
            end = start + self.page_size - 1
            response = self._request(
                "GET",
                params=params,
                headers={"Range-Unit": "items", "Range": f"{start}-{end}"},
            )
            page = response.json() or []
            rows.extend(page)
            if len(page) < self.page_size:
                break
            start += self.page_size

        logger.debug(
            "Loaded %d existing rows from %s (scope=%s)",
            len(rows),
            self.config.table,
            scope,
        )
        return [
            {
                "identity": (
                    str(r[id_col]) if r.get(id_col) is not None else None
                ),
                "updated_at": r.get(updated_col),
                "slug": r.get(slug_col),
            }
            for r in rows
        ]

    def insert(self, row: dict[str, Any]) -> None:
        payload = dict(row)
        payload["created_at"] = format_timestamp(utc_now())
        self._request(
            "POST",
            payload=[self._to_columns(payload)],
            headers={"Prefer": "return=minimal"},
        )

    def update(
        self,
        key_field: str,
        key: str,
        row: dict[str, Any],
        scope: str | None,
    ) -> None:
        payload = {
            k: v for k, v in row.items() if k not in ("created_at", "id")
        }
        params = {
            self._column(key_field): f"eq.{key}",
            **self._scope_filter(scope),
        }
        response = self._request(
            "PATCH",
            params=params,
            payload=self._to_columns(payload),
            headers={"Prefer": "return=representation"},
        )
        if not response.json():
            raise StoreError(f"No row matched {key_field}={key!r}")

    def delete(
        self, key_field: str, keys: list[str], scope: str | None
    ) -> list[str]:
        if not keys:
            return []
        key_col = self._column(key_field)
        params = {
            key_col: self._in_list(keys),
            **self._scope_filter(scope),
        }
        response = self._request(
            "DELETE",
            params=params,
            headers={"Prefer": "return=representation"},
        )
        return [
            str(r[key_col])
            for r in response.json() or []
            if r.get(key_col) is not None
        ]
