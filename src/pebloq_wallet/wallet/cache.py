"""Short-lived cache for unfiltered wallet scans.

Only pre-visibility data is cached; filters and totals are recomputed on
every request from the cached inputs.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_WALLET_CACHE_TTL_SECONDS = 300


class WalletCache(Protocol):
    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def set(self, key: str, value: dict[str, Any]) -> None: ...


class RedisWalletCache:
    """`WalletCache` backed by Redis string keys with a TTL."""

    def __init__(
        self,
        redis: Redis,
        *,
        ttl_seconds: int = DEFAULT_WALLET_CACHE_TTL_SECONDS,
        key_prefix: str = "wallet:",
    ) -> None:
        self._redis = redis
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key.lower()}"

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self._redis.get(self._key(key))
        except Exception as e:
            logger.warning("Wallet cache get failed: %s", e)
            return None
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable wallet cache entry %s", key)
            return None
        return value if isinstance(value, dict) else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        try:
            await self._redis.set(self._key(key), json.dumps(value), ex=self._ttl)
        except Exception as e:
            logger.warning("Wallet cache set failed: %s", e)
