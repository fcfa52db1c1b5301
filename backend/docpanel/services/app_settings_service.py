"""
DocPanel - App Settings Service
===============================
Operator feature flags stored in a single record-store record, cached in Redis.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from docpanel.core.config import get_settings
from docpanel.core.errors import RecordStoreError, from_store_error
from docpanel.core.logging import get_logger
from docpanel.models import Collection
from docpanel.repositories.record_store import RecordStore, record_store
from docpanel.services.cache_service import CacheService, cache_service

logger = get_logger("services.app_settings")
settings = get_settings()

CACHE_KEY = "app_settings:flags"
CACHE_TTL = timedelta(minutes=5)

FLAG_DEFAULTS: dict[str, bool] = {
    "enable_global_search": True,
    "enable_audit_log": True,
    "enable_project_view_tracking_default": True,
    "enable_project_time_tracking_default": True,
    "enable_project_full_width_default": False,
}


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "on", "yes")
    return bool(value)


class AppSettingsService:
    def __init__(self, store: RecordStore | None = None, cache: CacheService | None = None):
        self.store = store or record_store
        self.cache = cache or cache_service
        self.record_id = settings.app_settings_record_id

    async def get_flags(self) -> dict[str, bool]:
        cached = await self.cache.get_json(CACHE_KEY)
        if cached is not None:
            return {**FLAG_DEFAULTS, **cached}

        try:
            record = await self.store.get(Collection.APP_SETTINGS.value, self.record_id)
        except RecordStoreError as exc:
            logger.warning("app_settings_load_failed", status=exc.status, error=exc.message)
            return dict(FLAG_DEFAULTS)

        flags = {key: _coerce_flag(record.get(key, default)) for key, default in FLAG_DEFAULTS.items()}
        await self.cache.set_json(CACHE_KEY, flags, ttl=CACHE_TTL)
        return flags

    async def is_enabled(self, flag: str) -> bool:
        flags = await self.get_flags()
        return flags.get(flag, FLAG_DEFAULTS.get(flag, True))

    async def update_flags(self, values: dict[str, Any]) -> dict[str, bool]:
        """Merge the given flags over the current ones and save the full set."""
        current = await self.get_flags()
        changes = {
            key: _coerce_flag(value)
            for key, value in values.items()
            if key in FLAG_DEFAULTS and value is not None
        }
        data = {**current, **changes}
        try:
            await self.store.update(Collection.APP_SETTINGS.value, self.record_id, data)
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="app_settings_update", record_id=self.record_id) from exc
        await self.cache.delete(CACHE_KEY)
        logger.info("app_settings_updated", **data)
        return data


app_settings_service = AppSettingsService()
