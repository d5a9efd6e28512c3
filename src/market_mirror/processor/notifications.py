"""Downstream notification publishers.

The processors only know the ``Publisher`` protocol. ``RedisPublisher``
pushes each notification as JSON onto a Redis pub/sub channel named
after the notification.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from redis.asyncio import Redis

if TYPE_CHECKING:
    from market_mirror.config import RedisSettings

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    async def publish(self, name: str, payload: Mapping[str, Any]) -> None: ...


def _json_default(value: object) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_payload(payload: Mapping[str, Any]) -> str:
    return json.dumps(dict(payload), default=_json_default, sort_keys=True)


class NullPublisher:
    """Publisher that drops notifications."""

    async def publish(self, name: str, payload: Mapping[str, Any]) -> None:
        logger.debug("Dropping notification %s", name)


class RedisPublisher:
    """Publishes notifications on Redis channels ``<prefix><name>``."""

    def __init__(self, redis: Redis, *, channel_prefix: str = "market_mirror:") -> None:
        self._redis = redis
        self._channel_prefix = channel_prefix

    def channel_for(self, name: str) -> str:
        return f"{self._channel_prefix}{name}"

    async def publish(self, name: str, payload: Mapping[str, Any]) -> None:
        receivers = await self._redis.publish(self.channel_for(name), encode_payload(payload))
        logger.debug("Published %s to %s subscriber(s)", name, receivers)

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> RedisPublisher:
        """Publisher on the configured Redis URL and channel prefix.

        The client connects lazily on the first publish.
        """
        return cls(Redis.from_url(settings.url), channel_prefix=settings.channel_prefix)

    async def close(self) -> None:
        await self._redis.aclose()
