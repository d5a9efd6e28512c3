"""Settings for the market mirror, read from the environment and ``.env``.

Example:
    ```python
    from market_mirror.config import get_settings

    settings = get_settings()
    store = MirrorStore.from_settings(settings.database)
    router = EventRouter.from_settings(settings)
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import lru_cache
from typing import Any, Literal, TypeVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

ErrorPolicyName = Literal["fail_fast", "log_and_continue"]

_S = TypeVar("_S", bound=BaseSettings)


def _from_env_file(settings_cls: type[_S]) -> Callable[[], _S]:
    # Nested settings only see `.env` when it is passed to them explicitly.
    return lambda: settings_cls(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)


class DatabaseSettings(BaseSettings):
    """Mirror store connection."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL URL of the mirror store",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must point at PostgreSQL (postgresql:// or postgresql+asyncpg://)")
        return v


class RedisSettings(BaseSettings):
    """Notification bus connection."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Redis URL notifications are published to",
    )
    channel_prefix: str = Field(
        default="market_mirror:",
        alias="REDIS_CHANNEL_PREFIX",
        description="Prefix prepended to every notification channel name",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class ProcessorSettings(BaseSettings):
    """Log processor behaviour switches."""

    model_config = SettingsConfigDict(env_prefix="MIRROR_", extra="ignore")

    transfer_apply_balance_policy: ErrorPolicyName = Field(
        default="log_and_continue",
        alias="MIRROR_TRANSFER_APPLY_BALANCE_POLICY",
        description="Failure policy for balance updates when a transfer is applied",
    )
    transfer_retract_balance_policy: ErrorPolicyName = Field(
        default="fail_fast",
        alias="MIRROR_TRANSFER_RETRACT_BALANCE_POLICY",
        description="Failure policy for balance updates when a transfer is retracted",
    )
    completion_policy: ErrorPolicyName = Field(
        default="fail_fast",
        alias="MIRROR_COMPLETION_POLICY",
        description="Failure policy for the derived updates of a round completion",
    )
    payout_tie_break: Literal["payout_id", "storage"] = Field(
        default="payout_id",
        alias="MIRROR_PAYOUT_TIE_BREAK",
        description="Secondary ordering for payouts with equal stake",
    )
    notification_names: Literal["faithful", "normalized"] = Field(
        default="faithful",
        alias="MIRROR_NOTIFICATION_NAMES",
        description="Publish retract notifications under their own name or the apply name",
    )


class Settings(BaseSettings):
    """All settings of the market mirror.

    Attributes:
        database: Mirror store connection.
        redis: Notification bus connection.
        processor: Error policies, payout tie-break and notification naming.
        log_level: Level for the host application's root logger.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    database: DatabaseSettings = Field(default_factory=_from_env_file(DatabaseSettings))
    redis: RedisSettings = Field(default_factory=_from_env_file(RedisSettings))
    processor: ProcessorSettings = Field(default_factory=_from_env_file(ProcessorSettings))

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        return logging.getLevelName(self.log_level)

    def redacted_summary(self) -> dict[str, Any]:
        """Settings safe to log at startup: connection passwords are masked."""
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url),
            "redis_channel_prefix": self.redis.channel_prefix,
            "processor": self.processor.model_dump(),
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        return make_url(url).render_as_string(hide_password=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process.

    Raises:
        ValidationError: DATABASE_URL is missing or a value is invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next ``get_settings`` re-reads the environment."""
    get_settings.cache_clear()
