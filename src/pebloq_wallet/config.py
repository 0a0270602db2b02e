"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
PeBloq wallet backend, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _parse_csv(v: object, *, name: str) -> tuple[str, ...]:
    if v is None:
        return ()
    if isinstance(v, str):
        return tuple(p.strip() for p in v.split(",") if p.strip())
    if isinstance(v, (list, tuple)):
        return tuple(str(x) for x in v)
    raise TypeError(f"Invalid {name} type")


def _parse_addresses(v: object, *, name: str) -> tuple[str, ...]:
    addresses = _parse_csv(v, name=name)
    for address in addresses:
        if not _ADDRESS_RE.match(address):
            raise ValueError(f"{name} contains an invalid address: {address}")
    return tuple(a.lower() for a in addresses)


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./pebloq.db",
        alias="DATABASE_URL",
        description="PostgreSQL (or SQLite for local development) connection string",
    )
    pool_size: int = Field(default=5, alias="DATABASE_POOL_SIZE", ge=1, le=100)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings (optional; enables RPC and wallet caching)."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v

    @property
    def enabled(self) -> bool:
        return self.url is not None


class ChainSettings(BaseSettings):
    """Abstract chain RPC and log-scanning settings."""

    model_config = SettingsConfigDict(env_prefix="CHAIN_", extra="ignore")

    rpc_url: str = Field(
        default="https://api.mainnet.abs.xyz",
        alias="ABSTRACT_RPC_URL",
        description="Primary EVM JSON-RPC endpoint",
    )
    fallback_rpc_url: str | None = Field(
        default=None,
        alias="ABSTRACT_FALLBACK_RPC_URL",
        description="Fallback EVM JSON-RPC endpoint",
    )
    chain_id: int = Field(
        default=2741,
        alias="ABSTRACT_CHAIN_ID",
        description="Chain ID of the configured network (Abstract mainnet=2741)",
    )
    max_requests_per_second: float = Field(
        default=25.0,
        alias="CHAIN_MAX_REQUESTS_PER_SECOND",
        gt=0,
        le=1000,
    )
    max_retries: int = Field(default=3, alias="CHAIN_MAX_RETRIES", ge=1, le=10)
    retry_delay_seconds: float = Field(default=1.0, alias="CHAIN_RETRY_DELAY_SECONDS", ge=0.0, le=60.0)
    metadata_cache_ttl_seconds: int = Field(
        default=24 * 3600,
        alias="CHAIN_METADATA_CACHE_TTL_SECONDS",
        ge=60,
        description="Redis TTL for immutable contract metadata reads",
    )
    scan_from_block: int = Field(
        default=0,
        alias="CHAIN_SCAN_FROM_BLOCK",
        ge=0,
        description="First block scanned for Transfer logs (0 = genesis scan)",
    )
    logs_chunk_size_blocks: int | None = Field(
        default=None,
        alias="CHAIN_LOGS_CHUNK_SIZE_BLOCKS",
        ge=100,
        le=5_000_000,
        description="Block chunk size for eth_getLogs scans (unset = single request)",
    )
    excluded_log_contracts: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("0x000000000000000000000000000000000000800a",),
        alias="CHAIN_EXCLUDED_LOG_CONTRACTS",
        description="Contracts whose Transfer logs never count as holdings (comma-separated)",
    )
    required_confirmations: int = Field(
        default=1,
        alias="CHAIN_REQUIRED_CONFIRMATIONS",
        ge=1,
        le=1000,
        description="Confirmations required before a tip transaction is accepted",
    )

    @field_validator("rpc_url", "fallback_rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str | None) -> str | None:
        """Validate RPC URL format."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("RPC URL must be an HTTP(S) endpoint")
        return v

    @field_validator("excluded_log_contracts", mode="before")
    @classmethod
    def _parse_excluded(cls, v: object) -> tuple[str, ...]:
        return _parse_addresses(v, name="CHAIN_EXCLUDED_LOG_CONTRACTS")


class MarketDataSettings(BaseSettings):
    """DexScreener market-data settings."""

    model_config = SettingsConfigDict(env_prefix="MARKET_DATA_", extra="ignore")

    base_url: str = Field(
        default="https://api.dexscreener.com",
        alias="MARKET_DATA_BASE_URL",
        description="DexScreener API base URL",
    )
    chain_ids: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("abstract", "abstracttestnet"),
        alias="MARKET_DATA_CHAIN_IDS",
        description="DexScreener chainId values preferred when selecting a pair",
    )
    timeout_seconds: float = Field(default=10.0, alias="MARKET_DATA_TIMEOUT_SECONDS", gt=0, le=120)
    native_price_token: str = Field(
        default="0x3439153eb7af838ad19d56e1571fbd09333c2809",
        alias="MARKET_DATA_NATIVE_PRICE_TOKEN",
        description="Token whose price values the native balance (WETH on Abstract)",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("MARKET_DATA_BASE_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")

    @field_validator("chain_ids", mode="before")
    @classmethod
    def _parse_chain_ids(cls, v: object) -> tuple[str, ...]:
        return _parse_csv(v, name="MARKET_DATA_CHAIN_IDS")

    @field_validator("native_price_token")
    @classmethod
    def validate_native_price_token(cls, v: str) -> str:
        if not _ADDRESS_RE.match(v):
            raise ValueError("MARKET_DATA_NATIVE_PRICE_TOKEN must be a 0x-prefixed address")
        return v.lower()


class WalletSettings(BaseSettings):
    """Wallet holdings pipeline settings."""

    model_config = SettingsConfigDict(env_prefix="WALLET_", extra="ignore")

    cache_enabled: bool = Field(
        default=False,
        alias="WALLET_CACHE_ENABLED",
        description="Cache unfiltered wallet scans in Redis",
    )
    cache_ttl_seconds: int = Field(default=300, alias="WALLET_CACHE_TTL_SECONDS", ge=1, le=86_400)
    totals_verified_only: bool = Field(
        default=False,
        alias="WALLET_TOTALS_VERIFIED_ONLY",
        description="Only count verified tokens in totalValueUsd",
    )
    track_discovered_tokens: bool = Field(
        default=True,
        alias="WALLET_TRACK_DISCOVERED_TOKENS",
        description="Record tokens with a positive balance for admin review",
    )
    max_nft_metadata: int = Field(
        default=50,
        alias="WALLET_MAX_NFT_METADATA",
        ge=0,
        le=1000,
        description="Maximum NFTs per request whose tokenURI metadata is fetched",
    )
    nft_metadata_timeout_seconds: float = Field(
        default=5.0,
        alias="WALLET_NFT_METADATA_TIMEOUT_SECONDS",
        gt=0,
        le=60,
    )
    common_tokens: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(
            "0x84a71ccd554cc1b02749b35d22f684cc8ec987e1",  # USDC.e
            "0xdf70075737e9f96b078ab4461eee3e055e061223",  # BIG
            "0x45f426ae8c1e647d544f6942784f759e5d3db089",  # PENGURU
            "0x52629ddbf28aa01aa22b994ec9c80273e4eb5b0a",  # RETSBA
        ),
        alias="WALLET_COMMON_TOKENS",
        description="Token contracts always checked in addition to discovered ones (comma-separated)",
    )

    @field_validator("common_tokens", mode="before")
    @classmethod
    def _parse_common_tokens(cls, v: object) -> tuple[str, ...]:
        return _parse_addresses(v, name="WALLET_COMMON_TOKENS")


class ApiSettings(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")

    host: str = Field(default="127.0.0.1", alias="API_HOST")
    port: int = Field(default=8000, alias="API_PORT", ge=1, le=65535)
    cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(default=("*",), alias="API_CORS_ORIGINS")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: object) -> tuple[str, ...]:
        return _parse_csv(v, name="API_CORS_ORIGINS")


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from pebloq_wallet.config import get_settings

        settings = get_settings()
        print(settings.chain.rpc_url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    chain: ChainSettings = Field(
        default_factory=lambda: ChainSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    market_data: MarketDataSettings = Field(
        default_factory=lambda: MarketDataSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    wallet: WalletSettings = Field(
        default_factory=lambda: WalletSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    api: ApiSettings = Field(
        default_factory=lambda: ApiSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    environment: Literal["development", "production", "test"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment; production sanitizes error responses",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "chain": {
                "rpc_url": self._redact_url(self.chain.rpc_url),
                "fallback_rpc_url": (
                    self._redact_url(self.chain.fallback_rpc_url)
                    if self.chain.fallback_rpc_url
                    else "(not set)"
                ),
                "chain_id": str(self.chain.chain_id),
                "scan_from_block": str(self.chain.scan_from_block),
                "logs_chunk_size_blocks": str(self.chain.logs_chunk_size_blocks or "(single request)"),
            },
            "market_data": {
                "base_url": self.market_data.base_url,
                "chain_ids": ",".join(self.market_data.chain_ids),
            },
            "wallet": {
                "cache_enabled": str(self.wallet.cache_enabled),
                "totals_verified_only": str(self.wallet.totals_verified_only),
                "track_discovered_tokens": str(self.wallet.track_discovered_tokens),
            },
            "log_level": self.log_level,
            "environment": self.environment,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
