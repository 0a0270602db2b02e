"""Tests for the Redis wallet cache."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from pebloq_wallet.wallet.cache import RedisWalletCache


class TestRedisWalletCache:
    @pytest.mark.asyncio
    async def test_set_serializes_with_ttl(self) -> None:
        redis = MagicMock()
        redis.set = AsyncMock()
        cache = RedisWalletCache(redis, ttl_seconds=30)

        await cache.set("balance:0xABC", {"tokens": []})

        redis.set.assert_awaited_once_with("wallet:balance:0xabc", json.dumps({"tokens": []}), ex=30)

    @pytest.mark.asyncio
    async def test_get_round_trip(self) -> None:
        redis = MagicMock()
        redis.get = AsyncMock(return_value=b'{"tokens": []}')

        assert await RedisWalletCache(redis).get("balance:0xabc") == {"tokens": []}

    @pytest.mark.asyncio
    async def test_get_miss_and_errors(self) -> None:
        redis = MagicMock()
        redis.get = AsyncMock(side_effect=[None, ConnectionError("down"), b"not json"])
        cache = RedisWalletCache(redis)

        assert await cache.get("k") is None
        assert await cache.get("k") is None
        assert await cache.get("k") is None
