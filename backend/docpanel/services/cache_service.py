"""
DocPanel - Cache Service
========================
Redis-backed JSON cache shared by visitor sessions, app settings and the
version check. Keys are namespaced under ``docpanel:``. Every Redis failure
degrades to a cache miss; callers fall back to the record store. A failed
connect is retried after ``reconnect_after_seconds``.
"""

from __future__ import annotations

import json
import time
from datetime import timedelta
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from docpanel.core.config import get_settings
from docpanel.core.logging import get_logger

logger = get_logger("services.cache")
settings = get_settings()

KEY_PREFIX = "docpanel:"


class CacheService:
    def __init__(self, url: str | None = None, reconnect_after_seconds: float | None = None):
        self.url = url or settings.redis_url
        self.reconnect_after_seconds = (
            settings.redis_reconnect_seconds if reconnect_after_seconds is None else reconnect_after_seconds
        )
        self._client: Optional[redis.Redis] = None
        # After a failed connect, no new attempt is made before this monotonic time.
        self._retry_at = 0.0

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        client = redis.from_url(self.url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            logger.error(
                "redis_unavailable",
                host=settings.redis_host,
                error=str(exc),
                retry_in_seconds=self.reconnect_after_seconds,
            )
            await client.aclose()
            self._retry_at = time.monotonic() + self.reconnect_after_seconds
            return
        self._client = client
        self._retry_at = 0.0
        logger.info("redis_connected", host=settings.redis_host, db=settings.redis_db)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _redis(self) -> Optional[redis.Redis]:
        # Scheduler-only processes never run the app lifespan, and a Redis
        # that was down at startup is retried once the backoff has passed.
        if self._client is None and time.monotonic() >= self._retry_at:
            await self.connect()
        return self._client

    async def get(self, key: str) -> Optional[str]:
        client = await self._redis()
        if client is None:
            return None
        try:
            return await client.get(KEY_PREFIX + key)
        except RedisError as exc:
            logger.warning("cache_read_failed", key=key, error=str(exc))
            return None

    async def set(self, key: str, value: str, ttl: Optional[timedelta] = None) -> None:
        client = await self._redis()
        if client is None:
            return
        try:
            await client.set(KEY_PREFIX + key, value, ex=ttl)
        except RedisError as exc:
            logger.warning("cache_write_failed", key=key, error=str(exc))

    async def delete(self, key: str) -> None:
        client = await self._redis()
        if client is None:
            return
        try:
            await client.delete(KEY_PREFIX + key)
        except RedisError as exc:
            logger.warning("cache_delete_failed", key=key, error=str(exc))

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache_value_corrupt", key=key)
            await self.delete(key)
            return None

    async def set_json(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        await self.set(key, json.dumps(value, default=str), ttl)


cache_service = CacheService()
