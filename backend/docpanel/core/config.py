"""
DocPanel - Configuration Module
===============================
All configuration is loaded from environment variables (prefix DOCPANEL_)
and an optional .env file. Secrets are never hardcoded.
"""

from functools import lru_cache
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

DEFAULT_BOT_USER_AGENTS = (
    "bot,crawler,spider,crawling,slurp,bingpreview,facebookexternalhit,"
    "embedly,quora link preview,whatsapp,telegrambot,discordbot,"
    "headlesschrome,lighthouse,pingdom,uptimerobot"
)


def _split_csv(raw: str, *, lower: bool = False) -> list[str]:
    items = [item.strip() for item in (raw or "").split(",") if item.strip()]
    return [item.lower() for item in items] if lower else items


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DOCPANEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    app_name: str = "DocPanel"
    app_env: str = "development"
    app_debug: bool = True
    app_secret_key: str = Field(..., min_length=32)
    app_port: int = 3000
    app_version: str = "1.0.0"
    public_base_url: str = ""

    @property
    def secret_key(self) -> str:
        return self.app_secret_key

    # Server-wide salt for IP and password HMACs
    ip_hash_salt: str = Field(..., min_length=8)

    # Record store (PocketBase)
    pocketbase_url: str = "http://127.0.0.1:8090"
    pocketbase_admin_email: str = ""
    pocketbase_admin_password: str = ""
    pocketbase_auth_refresh_minutes: int = 30
    pocketbase_timeout_seconds: int = 30

    # Single app_settings record holding operator feature flags
    app_settings_record_id: str = "appsettings0001"

    # Local tracking database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "docpanel_db"
    postgres_user: str = "docpanel"
    postgres_password: str = "docpanel"

    def _postgres_url(self, driver: str) -> str:
        url = URL.create(
            driver,
            username=self.postgres_user,
            password=self.postgres_password,
            host=self.postgres_host,
            port=self.postgres_port,
            database=self.postgres_db,
        )
        return url.render_as_string(hide_password=False)

    @property
    def database_url(self) -> str:
        return self._postgres_url("postgresql+asyncpg")

    @property
    def database_url_sync(self) -> str:
        """Alembic runs on the psycopg2 driver."""
        return self._postgres_url("postgresql+psycopg2")

    # Redis (sessions, settings cache)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0
    redis_reconnect_seconds: float = 30.0

    @property
    def redis_url(self) -> str:
        credentials = f":{quote(self.redis_password, safe='')}@" if self.redis_password else ""
        return f"redis://{credentials}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Content lifecycle
    items_per_page: int = 10
    preview_token_expiry_hours: int = 6
    view_timeframe_hours: int = 24
    average_wpm: int = 225
    sweep_batch_size: int = 200
    bot_user_agents: str = DEFAULT_BOT_USER_AGENTS

    @property
    def bot_user_agents_list(self) -> list[str]:
        return _split_csv(self.bot_user_agents, lower=True)

    # Sessions
    session_cookie_name: str = "docpanel_sid"
    session_ttl_hours: int = 168
    session_cookie_secure: bool = False

    # Scheduling
    scheduler_enabled: bool = True
    scheduler_timezone: str = "America/Sao_Paulo"
    sweep_cron_minute: int = 0
    version_check_interval_hours: int = 6

    # Version check
    version_check_url: str = "https://api.github.com/repos/docpanel/docpanel/releases/latest"
    version_check_timeout_seconds: int = 10
    version_cache_ttl_seconds: int = 3600

    # CORS (admin UI origins)
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return _split_csv(self.cors_origins)


@lru_cache
def get_settings() -> Settings:
    return Settings()
