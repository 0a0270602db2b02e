"""FastAPI application factory.

`create_app()` wires the shared collaborators (chain client, HTTP client,
database, optional Redis) in the lifespan and registers the routers and
error handlers.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from pebloq_wallet import __version__
from pebloq_wallet.api.routes import admin, health, tips, tokens, wallet
from pebloq_wallet.chain.client import ChainClient
from pebloq_wallet.config import Settings, get_settings
from pebloq_wallet.errors import PebloqError
from pebloq_wallet.storage.database import DatabaseManager
from pebloq_wallet.tips.service import TipService
from pebloq_wallet.tips.verification import TransactionVerifier
from pebloq_wallet.wallet.cache import RedisWalletCache
from pebloq_wallet.wallet.discovery import DiscoveredTokenRecorder
from pebloq_wallet.wallet.nfts import NFTCollectionBuilder
from pebloq_wallet.wallet.pricing import PriceEnricher
from pebloq_wallet.wallet.resolver import BalanceResolver
from pebloq_wallet.wallet.scanner import TransferLogScanner
from pebloq_wallet.wallet.service import WalletHoldingsService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared clients and services, then release them on shutdown."""
    settings: Settings = app.state.settings
    logger.info("Starting PeBloq wallet API with settings: %s", settings.redacted_summary())

    redis = Redis.from_url(settings.redis.url) if settings.redis.enabled else None
    db = DatabaseManager(settings.database.url, pool_size=settings.database.pool_size)
    http_client = httpx.AsyncClient(headers={"Accept": "application/json"})
    chain = ChainClient(
        settings.chain.rpc_url,
        fallback_rpc_url=settings.chain.fallback_rpc_url,
        redis=redis,
        cache_ttl_seconds=settings.chain.metadata_cache_ttl_seconds,
        max_requests_per_second=settings.chain.max_requests_per_second,
        max_retries=settings.chain.max_retries,
        retry_delay_seconds=settings.chain.retry_delay_seconds,
    )

    resolver = BalanceResolver(chain, metadata_cache_ttl_seconds=settings.chain.metadata_cache_ttl_seconds)
    recorder = DiscoveredTokenRecorder(db) if settings.wallet.track_discovered_tokens else None
    cache = None
    if settings.wallet.cache_enabled:
        if redis is None:
            logger.warning("WALLET_CACHE_ENABLED is set but REDIS_URL is not; wallet caching disabled")
        else:
            cache = RedisWalletCache(redis, ttl_seconds=settings.wallet.cache_ttl_seconds)

    app.state.db = db
    app.state.chain = chain
    app.state.wallet_service = WalletHoldingsService(
        chain,
        TransferLogScanner(
            chain,
            from_block=settings.chain.scan_from_block,
            chunk_size_blocks=settings.chain.logs_chunk_size_blocks,
            excluded_contracts=settings.chain.excluded_log_contracts,
        ),
        resolver,
        PriceEnricher(
            http_client,
            base_url=settings.market_data.base_url,
            chain_ids=settings.market_data.chain_ids,
            timeout_seconds=settings.market_data.timeout_seconds,
        ),
        NFTCollectionBuilder(
            chain,
            resolver,
            http_client,
            max_metadata=settings.wallet.max_nft_metadata,
            metadata_timeout_seconds=settings.wallet.nft_metadata_timeout_seconds,
            metadata_cache_ttl_seconds=settings.chain.metadata_cache_ttl_seconds,
        ),
        native_price_token=settings.market_data.native_price_token,
        common_tokens=settings.wallet.common_tokens,
        cache=cache,
        recorder=recorder,
        totals_verified_only=settings.wallet.totals_verified_only,
    )
    app.state.tip_service = TipService(
        TransactionVerifier(chain, required_confirmations=settings.chain.required_confirmations)
    )

    try:
        yield
    finally:
        logger.info("Shutting down PeBloq wallet API")
        if recorder is not None:
            await recorder.drain()
        await http_client.aclose()
        await chain.aclose()
        await db.dispose_async()
        if redis is not None:
            await redis.aclose()
        logger.debug("Resources cleaned up")


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(PebloqError)
    async def handle_domain_error(request: Request, exc: PebloqError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error" if settings.is_production else str(exc) or "Internal server error"
        return JSONResponse(status_code=500, content={"error": message})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or get_settings()
    app = FastAPI(
        title="PeBloq Wallet API",
        description="Wallet holdings, token visibility and tipping for the Abstract chain",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.api.cors_origins),
        allow_credentials="*" not in settings.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app, settings)

    app.include_router(health.router, tags=["Health"])
    app.include_router(wallet.router, tags=["Wallet"])
    app.include_router(tips.router, tags=["Tips"])
    app.include_router(tokens.router, tags=["Tokens"])
    app.include_router(admin.router, tags=["Admin"])
    app.include_router(admin.nft_router, tags=["Admin"])
    return app
