"""Record stores the CRM sync runs against.

The sync core needs three things from storage: an exact-match lookup, a
"greatest value with this prefix" lookup and an insert that hands back the
stored row. ``SupabaseStore`` does this over the Supabase REST API,
``InMemoryStore`` backs offline mode and tests.
"""
from __future__ import annotations
import asyncio
import logging
import uuid
from typing import Any, Protocol

import httpx

from . import config

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class StoreError(RuntimeError):
    """A CRM store call failed (connectivity, timeout, constraint violation)."""

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None):
        super().__init__(message)
        self.code = code
        self.details = details

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "StoreError":
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            body.get("message") or f"CRM store responded with status {resp.status_code}",
            code=body.get("code") or str(resp.status_code),
            details=body.get("details"),
        )


class RecordStore(Protocol):
    async def find_one(self, table: str, **filters: Any) -> Row | None: ...

    async def find_last_with_prefix(self, table: str, column: str, prefix: str) -> Row | None: ...

    async def insert(self, table: str, record: Row) -> Row: ...


class SupabaseStore:
    """Supabase (PostgREST) backed store."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float = 15):
        self.base_url = (base_url or config.SUPABASE_URL).rstrip("/")
        self.api_key = api_key or config.SUPABASE_KEY
        self.timeout = timeout

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        headers.update(extra)
        return headers

    async def _send(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            async with httpx.AsyncClient(http2=True, timeout=self.timeout) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"CRM store unreachable: {exc}") from exc
        if resp.is_error:
            logger.error("CRM store error on %s %s: status=%s body=%s", method, table, resp.status_code, resp.text[:2048])
            raise StoreError.from_response(resp)
        return resp

    async def find_one(self, table: str, **filters: Any) -> Row | None:
        params = {"select": "*", "limit": "1"}
        params.update({column: f"eq.{value}" for column, value in filters.items()})
        resp = await self._send("GET", table, params=params, headers=self._headers())
        rows = resp.json()
        return rows[0] if rows else None

    async def find_last_with_prefix(self, table: str, column: str, prefix: str) -> Row | None:
        params = {
            "select": column,
            column: f"like.{prefix}*",
            "order": f"{column}.desc",
            "limit": "1",
        }
        resp = await self._send("GET", table, params=params, headers=self._headers())
        rows = resp.json()
        return rows[0] if rows else None

    async def insert(self, table: str, record: Row) -> Row:
        headers = self._headers(**{"Content-Type": "application/json", "Prefer": "return=representation"})
        resp = await self._send("POST", table, json=[record], headers=headers)
        rows = resp.json()
        if not rows:
            raise StoreError(f"CRM store returned no row for insert into {table}")
        return rows[0]


class InMemoryStore:
    """Process-local store with the same capabilities as the CRM.

    Sequential codes are unique per table, as in the CRM schema.
    """

    UNIQUE_COLUMNS = {"patients": ("patient_id",), "appointments": ("appointment_id",)}

    def __init__(self, tables: dict[str, list[Row]] | None = None):
        self.tables: dict[str, list[Row]] = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}

    def rows(self, table: str) -> list[Row]:
        return self.tables.setdefault(table, [])

    async def find_one(self, table: str, **filters: Any) -> Row | None:
        for row in self.rows(table):
            if all(row.get(column) == value for column, value in filters.items()):
                return dict(row)
        return None

    async def find_last_with_prefix(self, table: str, column: str, prefix: str) -> Row | None:
        matches = [r for r in self.rows(table) if isinstance(r.get(column), str) and r[column].startswith(prefix)]
        if not matches:
            return None
        last = max(matches, key=lambda r: r[column])
        return {column: last[column]}

    async def insert(self, table: str, record: Row) -> Row:
        for column in self.UNIQUE_COLUMNS.get(table, ()):
            if any(r.get(column) == record.get(column) for r in self.rows(table)):
                raise StoreError(
                    f"duplicate key value violates unique constraint on {table}.{column}", code="23505"
                )
        row = {"id": str(uuid.uuid4()), **record}
        self.rows(table).append(row)
        return dict(row)


class BoundedStore:
    """Puts a deadline on every call to the wrapped store."""

    def __init__(self, store: RecordStore, timeout: float):
        self.store = store
        self.timeout = timeout

    async def _bounded(self, op: str, coro) -> Any:
        try:
            return await asyncio.wait_for(coro, self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("CRM store %s timed out after %ss", op, self.timeout)
            raise StoreError(f"CRM store {op} timed out", code="timeout") from exc

    async def find_one(self, table: str, **filters: Any) -> Row | None:
        return await self._bounded("find_one", self.store.find_one(table, **filters))

    async def find_last_with_prefix(self, table: str, column: str, prefix: str) -> Row | None:
        return await self._bounded(
            "find_last_with_prefix", self.store.find_last_with_prefix(table, column, prefix)
        )

    async def insert(self, table: str, record: Row) -> Row:
        return await self._bounded("insert", self.store.insert(table, record))
