"""EVM JSON-RPC client with rate limiting, caching and failover.

This module provides the chain client used by the wallet pipeline and tip
verification:
- Rate limiting to respect provider limits
- Retry logic with exponential backoff
- Failover to a secondary RPC URL
- Optional Redis caching for immutable contract reads
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from aiohttp import ClientError
from redis.asyncio import Redis
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception
from web3.providers import AsyncHTTPProvider

from pebloq_wallet.chain.abi import to_hex

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CACHE_TTL_SECONDS = 24 * 3600
DEFAULT_MAX_REQUESTS_PER_SECOND = 25
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT = 30

_RETRYABLE_ERRORS = (Web3Exception, ClientError, OSError, TimeoutError)


class ChainClientError(Exception):
    """Base exception for chain client errors."""


class RPCError(ChainClientError):
    """Raised when an RPC call fails on every endpoint."""


class CallRevertedError(ChainClientError):
    """Raised when an eth_call reverts; never retried."""


@dataclass
class RateLimiter:
    """Token bucket rate limiter."""

    max_tokens: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    @classmethod
    def create(cls, max_requests_per_second: float) -> RateLimiter:
        """Create a rate limiter with specified max requests per second."""
        return cls(
            max_tokens=max_requests_per_second,
            refill_rate=max_requests_per_second,
            tokens=max_requests_per_second,
            last_refill=time.monotonic(),
        )

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        while True:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return
            wait_time = (tokens - self.tokens) / self.refill_rate
            await asyncio.sleep(wait_time)


def _plain(value: Any) -> Any:
    """Convert web3 AttributeDicts and HexBytes into plain JSON-like values."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return to_hex(value)
    if isinstance(value, dict) or hasattr(value, "items"):
        return {k: _plain(v) for k, v in dict(value).items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class ChainClient:
    """Chain client for the Abstract (EVM) network.

    Example:
        ```python
        client = ChainClient(
            rpc_url="https://api.mainnet.abs.xyz",
            redis=Redis.from_url("redis://localhost:6379"),
        )
        wei = await client.get_balance_latest("0x...")
        raw = await client.call_cached(token, "0x313ce567")
        await client.aclose()
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        fallback_rpc_url: str | None = None,
        redis: Redis | None = None,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        """Initialize the chain client.

        Args:
            rpc_url: Primary JSON-RPC endpoint URL.
            fallback_rpc_url: Optional fallback RPC URL for failover.
            redis: Optional Redis client for caching immutable reads.
            cache_ttl_seconds: Cache TTL in seconds for `call_cached`.
            max_requests_per_second: Rate limit for RPC calls.
            max_retries: Maximum retry attempts per endpoint.
            retry_delay_seconds: Initial delay between retries.
        """
        self._rpc_url = rpc_url
        self._fallback_rpc_url = fallback_rpc_url
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds

        self._w3 = self._new_web3_client(rpc_url)
        self._w3_fallback: AsyncWeb3[AsyncHTTPProvider] | None = None
        if fallback_rpc_url:
            self._w3_fallback = self._new_web3_client(fallback_rpc_url)

        self._rate_limiter = RateLimiter.create(max_requests_per_second)

        # Track primary RPC health
        self._primary_healthy = True
        self._last_primary_check = 0.0
        self._primary_recovery_interval = 60.0

        self._cache_prefix = "chain:"

    @staticmethod
    def _new_web3_client(rpc_url: str) -> AsyncWeb3[AsyncHTTPProvider]:
        return AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": DEFAULT_REQUEST_TIMEOUT})
        )

    def _cache_key(self, key_type: str, address: str, *, suffix: str) -> str:
        return f"{self._cache_prefix}{key_type}:{address.lower()}:{suffix}"

    async def _get_cached(self, key: str) -> str | None:
        if not self._redis:
            return None
        try:
            value = await self._redis.get(key)
            if isinstance(value, bytes):
                return value.decode()
            return str(value) if value is not None else None
        except Exception as e:
            logger.warning("Cache get failed: %s", e)
            return None

    async def _set_cached(self, key: str, value: str, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, value, ex=ttl or self._cache_ttl)
        except Exception as e:
            logger.warning("Cache set failed: %s", e)

    def _should_try_primary(self) -> bool:
        if self._primary_healthy:
            return True
        # Periodically retry primary
        now = time.monotonic()
        if now - self._last_primary_check > self._primary_recovery_interval:
            self._last_primary_check = now
            return True
        return False

    async def _try_endpoint(
        self,
        w3: AsyncWeb3[AsyncHTTPProvider],
        label: str,
        func_name: str,
        *args: Any,
    ) -> tuple[bool, Any, Exception | None]:
        delay = self._retry_delay
        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                method = getattr(w3.eth, func_name)
                return True, await method(*args), None
            except (TransactionNotFound, ContractLogicError):
                raise
            except _RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    "%s RPC %s failed (attempt %d/%d): %s",
                    label,
                    func_name,
                    attempt + 1,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(delay)
                    delay *= 2  # Exponential backoff
        return False, None, last_error

    async def _execute_with_retry(self, func_name: str, *args: Any) -> Any:
        """Execute an RPC call with retry and failover logic.

        Args:
            func_name: Name of the web3.eth method to call.
            *args: Positional arguments for the method.

        Returns:
            Result from the RPC call.

        Raises:
            RPCError: If all retries and failover fail.
            TransactionNotFound: Propagated untouched for receipt lookups.
            ContractLogicError: Propagated untouched for reverted calls.
        """
        await self._rate_limiter.acquire()

        last_error: Exception | None = None

        if self._should_try_primary():
            ok, result, last_error = await self._try_endpoint(self._w3, "Primary", func_name, *args)
            if ok:
                self._primary_healthy = True
                return result
            self._primary_healthy = False
            self._last_primary_check = time.monotonic()

        if self._w3_fallback:
            ok, result, fallback_error = await self._try_endpoint(
                self._w3_fallback, "Fallback", func_name, *args
            )
            if ok:
                logger.info("Fallback RPC succeeded for %s", func_name)
                return result
            last_error = fallback_error

        raise RPCError(f"RPC call {func_name} failed after all retries: {last_error}")

    async def get_block_number(self) -> int:
        return int(await self._execute_with_retry("get_block_number"))

    async def get_balance_latest(self, address: str) -> int:
        """Get the latest native balance of a wallet in wei."""
        balance = await self._execute_with_retry(
            "get_balance",
            AsyncWeb3.to_checksum_address(address),
            "latest",
        )
        return int(balance)

    async def call(self, to: str, data: str) -> str:
        """Run `eth_call` against the latest block.

        Returns:
            The raw return data as a lower-case 0x-prefixed hex string.

        Raises:
            CallRevertedError: If the call reverts.
            RPCError: If every endpoint fails.
        """
        try:
            result = await self._execute_with_retry(
                "call",
                {"to": AsyncWeb3.to_checksum_address(to), "data": data},
                "latest",
            )
        except ContractLogicError as e:
            raise CallRevertedError(f"eth_call to {to} reverted: {e}") from e
        return to_hex(result)

    async def call_cached(self, to: str, data: str, *, ttl: int | None = None) -> str:
        """Run `eth_call` for immutable data, caching the result in Redis."""
        cache_key = self._cache_key("call", to, suffix=data.lower())
        cached = await self._get_cached(cache_key)
        if cached is not None:
            return cached

        result = await self.call(to, data)
        await self._set_cached(cache_key, result, ttl=ttl)
        return result

    async def get_logs(self, filter_params: dict[str, Any]) -> list[dict[str, Any]]:
        """Fetch logs via `eth_getLogs` with retry/failover semantics."""
        logs = await self._execute_with_retry("get_logs", filter_params)
        return [dict(log) for log in logs]

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Get a transaction receipt, or None when the transaction is unknown or pending."""
        try:
            receipt = await self._execute_with_retry("get_transaction_receipt", tx_hash)
        except TransactionNotFound:
            return None
        if receipt is None:
            return None
        return _plain(receipt)

    async def health_check(self) -> bool:
        """Check if the client can reach any RPC endpoint."""
        try:
            await self._execute_with_retry("get_block_number")
            return True
        except RPCError:
            return False

    async def aclose(self) -> None:
        """Close async HTTP provider sessions."""
        providers = [self._w3.provider]
        if self._w3_fallback is not None:
            providers.append(self._w3_fallback.provider)

        for provider in providers:
            disconnect = getattr(provider, "disconnect", None)
            if not callable(disconnect):
                continue
            try:
                result = disconnect()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Failed to close RPC provider session: %s", e)
