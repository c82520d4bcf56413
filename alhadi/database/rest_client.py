"""
Relational data collaborator.

A thin PostgREST client for the site's Supabase tables. Filters are
equality matches; rows are plain dicts carrying `created_at` and
`updated_at` timestamps.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from alhadi.config import SupabaseConfig
from alhadi.errors import InvalidInputError, StorageServiceError, TransportError
from alhadi.storage.supabase import response_error_message

logger = logging.getLogger(__name__)

TABLES = frozenset({
    "programs",
    "tags",
    "program_tags",
    "articles",
    "site_settings",
    "news_ticker",
    "ahkam_cards",
    "ahkam_slider",
})

Row = dict[str, Any]


class TableClient:
    """Generic select/insert/update/delete over named tables."""

    def __init__(
        self,
        config: SupabaseConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.base_url = f"{config.url.rstrip('/')}/rest/v1"
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.config.timeout)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        columns: str = "*",
        order: Optional[str] = None,
        ascending: bool = True,
    ) -> list[Row]:
        params = {"select": columns, **self._filter_params(filters)}
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        return await self._request(
            "POST", table, json=rows, headers={"Prefer": "return=representation"}
        )

    async def update(self, table: str, values: Row, filters: dict[str, Any]) -> list[Row]:
        if not filters:
            raise InvalidInputError("Refusing to update without filters")
        body = {**values, "updated_at": datetime.now(timezone.utc).isoformat()}
        return await self._request(
            "PATCH",
            table,
            params=self._filter_params(filters),
            json=body,
            headers={"Prefer": "return=representation"},
        )

    async def delete(self, table: str, filters: dict[str, Any]) -> list[Row]:
        if not filters:
            raise InvalidInputError("Refusing to delete without filters")
        return await self._request(
            "DELETE",
            table,
            params=self._filter_params(filters),
            headers={"Prefer": "return=representation"},
        )

    @staticmethod
    def _filter_params(filters: Optional[dict[str, Any]]) -> dict[str, str]:
        return {column: f"eq.{value}" for column, value in (filters or {}).items()}

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> list[Row]:
        if table not in TABLES:
            raise InvalidInputError(f"Unknown table: {table}")
        if self._http_client is None:
            raise RuntimeError("TableClient used outside its context")

        request_headers = {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {self.config.api_key}",
            **(headers or {}),
        }
        try:
            response = await self._http_client.request(
                method,
                f"{self.base_url}/{table}",
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {table} transport error: {e}")
            raise TransportError(f"Database unreachable: {e}") from e

        if response.status_code >= 400:
            message = response_error_message(response)
            logger.error(f"{method} {table} failed ({response.status_code}): {message}")
            raise StorageServiceError(message, status_code=response.status_code)

        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]
