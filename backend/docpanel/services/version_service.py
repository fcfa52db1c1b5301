"""
DocPanel - Version Check
========================
Compares the running version with the latest published release.
One instance owns its cache and expiry; nothing here is module-global state
beyond the default instance wired into the app.
"""

from __future__ import annotations

import re
import time
from dataclasses import asdict, dataclass
from typing import Any

import aiohttp

from docpanel.core.config import get_settings
from docpanel.core.logging import get_logger

logger = get_logger("services.version")
settings = get_settings()


@dataclass(slots=True)
class VersionInfo:
    current_version: str
    latest_version: str | None = None
    update_available: bool = False
    checked_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_version(value: str | None) -> tuple[int, ...]:
    if not value:
        return ()
    text = value.strip().lstrip("vV")
    parts = []
    for chunk in text.split("."):
        match = re.match(r"\d+", chunk)
        parts.append(int(match.group(0)) if match else 0)
    return tuple(parts)


def is_newer(latest: str | None, current: str | None) -> bool:
    a, b = parse_version(latest), parse_version(current)
    if not a:
        return False
    width = max(len(a), len(b))
    return a + (0,) * (width - len(a)) > b + (0,) * (width - len(b))


class VersionService:
    def __init__(
        self,
        current_version: str,
        *,
        url: str,
        timeout_seconds: int = 10,
        cache_ttl_seconds: int = 3600,
    ):
        self.current_version = current_version
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self.cached_info: VersionInfo | None = None
        self.expires_at: float = 0.0

    async def _fetch_latest(self) -> str | None:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(headers={"User-Agent": "DocPanel/1.0"}) as session:
            async with session.get(self.url, timeout=timeout) as resp:
                if resp.status != 200:
                    logger.warning("version_check_http_error", status=resp.status, url=self.url)
                    return None
                payload = await resp.json(content_type=None)
        tag = (payload or {}).get("tag_name") or ""
        return tag.strip().lstrip("vV") or None

    async def refresh(self, force: bool = True) -> VersionInfo:
        if not force and self.cached_info is not None and time.time() < self.expires_at:
            return self.cached_info
        try:
            latest = await self._fetch_latest()
        except Exception as exc:  # noqa: BLE001
            logger.error("version_check_failed", url=self.url, error=str(exc))
            latest = None

        if latest is None:
            if self.cached_info is not None:
                return self.cached_info
            return VersionInfo(current_version=self.current_version)

        info = VersionInfo(
            current_version=self.current_version,
            latest_version=latest,
            update_available=is_newer(latest, self.current_version),
            checked_at=time.time(),
        )
        self.cached_info = info
        self.expires_at = time.time() + self.cache_ttl_seconds
        logger.info(
            "version_check_done",
            current=self.current_version,
            latest=latest,
            update_available=info.update_available,
        )
        return info

    async def get_info(self) -> VersionInfo:
        return await self.refresh(force=False)


version_service = VersionService(
    settings.app_version,
    url=settings.version_check_url,
    timeout_seconds=settings.version_check_timeout_seconds,
    cache_ttl_seconds=settings.version_cache_ttl_seconds,
)
