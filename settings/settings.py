import logging

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

from selfecho.environment import EnvironmentName
from settings.log import LoggingSettings


class DatabaseSettings(BaseSettings):
    host: str = Field(alias="DATABASE_HOST", default="postgresql://localhost:5432")
    name: str = Field(alias="DATABASE_NAME", default="selfechodb")
    url: str | None = Field(alias="DATABASE_URL", default=None)
    min_pool_size: int = Field(alias="DATABASE_MIN_POOL_SIZE", default=5)
    max_pool_size: int = Field(alias="DATABASE_MAX_POOL_SIZE", default=20)

    @property
    def async_host(self) -> str:
        """Return the host URL with async driver for SQLAlchemy async engine."""
        return self.host.replace("postgresql://", "postgresql+asyncpg://", 1)

    @property
    def async_url(self) -> str:
        """Full async database URL; DATABASE_URL wins over host + name."""
        if self.url:
            return self.url
        return f"{self.async_host}/{self.name}"

    @property
    def engine_args(self) -> dict[str, int | bool]:
        if self.async_url.startswith("sqlite"):
            return {}
        return {
            "pool_size": self.min_pool_size,
            "max_overflow": self.max_pool_size - self.min_pool_size,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        }


class IMAPSettings(BaseSettings):
    secret: str = Field(alias="IMAP_SECRET", default="")
    mailbox: str = Field(alias="IMAP_MAILBOX", default="INBOX")
    timeout: int = Field(alias="IMAP_TIMEOUT", default=30)
    logout_timeout: int = Field(alias="IMAP_LOGOUT_TIMEOUT", default=5)
    list_sync_limit: int = Field(alias="IMAP_LIST_SYNC_LIMIT", default=50)
    detail_sync_limit: int = Field(alias="IMAP_DETAIL_SYNC_LIMIT", default=20)
    refresh_timeout: int = Field(alias="IMAP_REFRESH_TIMEOUT", default=30)
    shutdown_timeout: int = Field(alias="IMAP_SHUTDOWN_TIMEOUT", default=10)


class CacheSettings(BaseSettings):
    list_ttl: int = Field(alias="LIST_CACHE_TTL", default=30)


class SentrySettings(BaseSettings):
    dsn: str | None = Field(alias="SENTRY_DSN", default=None)

    @property
    def is_enabled(self) -> bool:
        return bool(self.dsn)


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "allow"}

    environment: EnvironmentName = Field(alias="ENVIRONMENT", default=EnvironmentName.DEVELOPMENT)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    imap: IMAPSettings = Field(default_factory=IMAPSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @field_validator("environment", mode="before")
    def set_environment(cls, value: str | EnvironmentName, info: ValidationInfo) -> EnvironmentName:
        if isinstance(value, EnvironmentName):
            return value
        try:
            return EnvironmentName(value)
        except ValueError:
            logging.getLogger(__name__).warning(f"Invalid environment: {value}")
            return EnvironmentName.DEVELOPMENT
