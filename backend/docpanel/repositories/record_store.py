"""
DocPanel - Record Store Client
==============================
CRUD over the remote record service (PocketBase REST API) through aiohttp.
All service code talks to the `RecordStore` protocol so tests can swap in
an in-memory store.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol

import aiohttp

from docpanel.core.config import get_settings
from docpanel.core.errors import RecordStoreError
from docpanel.core.logging import get_logger

logger = get_logger("record_store")
settings = get_settings()

FULL_LIST_BATCH = 500


class RecordStore(Protocol):
    async def get(self, collection: str, record_id: str, *, fields: str | None = None) -> dict[str, Any]: ...

    async def get_first(self, collection: str, filter: str, *, fields: str | None = None) -> dict[str, Any] | None: ...

    async def list(
        self,
        collection: str,
        *,
        page: int = 1,
        per_page: int = 30,
        filter: str | None = None,
        sort: str | None = None,
        fields: str | None = None,
    ) -> dict[str, Any]: ...

    async def list_all(
        self,
        collection: str,
        *,
        filter: str | None = None,
        sort: str | None = None,
        fields: str | None = None,
    ) -> list[dict[str, Any]]: ...

    async def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]: ...

    async def update(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]: ...

    async def delete(self, collection: str, record_id: str) -> None: ...

    async def increment(self, collection: str, record_id: str, field: str, delta: int = 1) -> dict[str, Any]: ...

    async def authenticate_user(self, email: str, password: str) -> dict[str, Any]: ...

    def invalidate_auth(self) -> None: ...


class PocketBaseRecordStore:
    """Admin-authenticated PocketBase client.

    The superuser token is cached with its issue time and refreshed once it is
    older than `pocketbase_auth_refresh_minutes`. A 401 on any call drops the
    token and retries the call once.
    """

    def __init__(
        self,
        base_url: str,
        admin_email: str,
        admin_password: str,
        *,
        refresh_minutes: int = 30,
        timeout_seconds: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self._admin_email = admin_email
        self._admin_password = admin_password
        self._refresh_seconds = max(60, refresh_minutes * 60)
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None
        self._token: str | None = None
        self._token_issued_at: float = 0.0
        self._auth_lock = asyncio.Lock()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": "DocPanel/1.0"},
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ── Auth ──

    @property
    def auth_valid(self) -> bool:
        return bool(self._token) and (time.monotonic() - self._token_issued_at) < self._refresh_seconds

    def invalidate_auth(self) -> None:
        self._token = None
        self._token_issued_at = 0.0

    async def ensure_auth(self) -> str:
        if self.auth_valid:
            return self._token
        async with self._auth_lock:
            if self.auth_valid:
                return self._token
            payload = await self._send(
                "POST",
                "/api/collections/_superusers/auth-with-password",
                json={"identity": self._admin_email, "password": self._admin_password},
                authenticated=False,
            )
            self._token = payload.get("token")
            self._token_issued_at = time.monotonic()
            if not self._token:
                raise RecordStoreError(500, "admin auth returned no token")
            logger.info("record_store_admin_authenticated", url=self.base_url)
            return self._token

    async def authenticate_user(self, email: str, password: str) -> dict[str, Any]:
        payload = await self._send(
            "POST",
            "/api/collections/users/auth-with-password",
            json={"identity": email, "password": password},
            authenticated=False,
        )
        return payload.get("record") or {}

    # ── Transport ──

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> dict[str, Any]:
        session = await self._ensure_session()
        headers = {}
        if authenticated:
            headers["Authorization"] = await self.ensure_auth()
        clean_params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        try:
            async with session.request(
                method,
                f"{self.base_url}{path}",
                params=clean_params or None,
                json=json,
                headers=headers,
            ) as resp:
                if resp.status == 204:
                    return {}
                try:
                    body = await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = {}
                if resp.status >= 400:
                    body = body if isinstance(body, dict) else {}
                    raise RecordStoreError(resp.status, str(body.get("message") or ""), body.get("data") or {})
                return body if isinstance(body, dict) else {"items": body}
        except aiohttp.ClientError as exc:
            raise RecordStoreError(0, f"record store unreachable: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise RecordStoreError(0, "record store timeout") from exc

    async def _call(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            return await self._send(method, path, **kwargs)
        except RecordStoreError as exc:
            if exc.status != 401:
                raise
            logger.warning("record_store_auth_expired", path=path)
            self.invalidate_auth()
            return await self._send(method, path, **kwargs)

    @staticmethod
    def _records_path(collection: str, record_id: str | None = None) -> str:
        base = f"/api/collections/{collection}/records"
        return f"{base}/{record_id}" if record_id else base

    # ── CRUD ──

    async def get(self, collection: str, record_id: str, *, fields: str | None = None) -> dict[str, Any]:
        return await self._call("GET", self._records_path(collection, record_id), params={"fields": fields})

    async def get_first(self, collection: str, filter: str, *, fields: str | None = None) -> dict[str, Any] | None:
        page = await self.list(collection, page=1, per_page=1, filter=filter, fields=fields)
        items = page.get("items") or []
        return items[0] if items else None

    async def list(
        self,
        collection: str,
        *,
        page: int = 1,
        per_page: int = 30,
        filter: str | None = None,
        sort: str | None = None,
        fields: str | None = None,
    ) -> dict[str, Any]:
        return await self._call(
            "GET",
            self._records_path(collection),
            params={
                "page": max(1, int(page)),
                "perPage": max(1, int(per_page)),
                "filter": filter,
                "sort": sort,
                "fields": fields,
            },
        )

    async def list_all(
        self,
        collection: str,
        *,
        filter: str | None = None,
        sort: str | None = None,
        fields: str | None = None,
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            result = await self.list(
                collection,
                page=page,
                per_page=FULL_LIST_BATCH,
                filter=filter,
                sort=sort,
                fields=fields,
            )
            batch = result.get("items") or []
            items.extend(batch)
            if page >= int(result.get("totalPages") or 1) or not batch:
                return items
            page += 1

    async def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", self._records_path(collection), json=data)

    async def update(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("PATCH", self._records_path(collection, record_id), json=data)

    async def delete(self, collection: str, record_id: str) -> None:
        await self._call("DELETE", self._records_path(collection, record_id))

    async def increment(self, collection: str, record_id: str, field: str, delta: int = 1) -> dict[str, Any]:
        # "field+" is applied atomically by the store.
        return await self.update(collection, record_id, {f"{field}+": delta})


def build_record_store() -> PocketBaseRecordStore:
    return PocketBaseRecordStore(
        settings.pocketbase_url,
        settings.pocketbase_admin_email,
        settings.pocketbase_admin_password,
        refresh_minutes=settings.pocketbase_auth_refresh_minutes,
        timeout_seconds=settings.pocketbase_timeout_seconds,
    )


record_store = build_record_store()
