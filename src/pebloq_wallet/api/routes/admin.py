"""Admin endpoints for the global token lists and NFT collection flags."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pebloq_wallet.api.deps import get_session, require_admin
from pebloq_wallet.api.schemas import (
    BlacklistNFTCollectionRequest,
    BlacklistTokenRequest,
    VerifyTokenRequest,
    require_address,
)
from pebloq_wallet.errors import ConflictError, NotFoundError, ValidationError
from pebloq_wallet.storage.repos import (
    BlacklistedTokenRepository,
    DiscoveredTokenRepository,
    NFTCollectionRepository,
    UserDTO,
    VerifiedTokenRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/tokens", dependencies=[Depends(require_admin)])
nft_router = APIRouter(prefix="/api/admin/nfts", dependencies=[Depends(require_admin)])


@router.get("/blacklist")
async def list_blacklisted_tokens(session: AsyncSession = Depends(get_session)) -> list[dict[str, Any]]:
    return [t.to_dict() for t in await BlacklistedTokenRepository(session).list_all()]


@router.post("/blacklist")
async def blacklist_token(
    body: BlacklistTokenRequest,
    admin: UserDTO = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    address = require_address(body.token_address, label="Token")
    if not body.reason:
        raise ValidationError("Reason is required")
    entry = await BlacklistedTokenRepository(session).add(
        address,
        reason=body.reason,
        symbol=body.symbol or None,
        name=body.name or None,
        blacklisted_by=admin.id,
    )
    if entry is None:
        raise ConflictError("Token already blacklisted")
    logger.info("Admin %s blacklisted token %s: %s", admin.id, address, body.reason)
    return entry.to_dict()


@router.delete("/blacklist")
async def remove_blacklisted_token(
    address: str | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    token_address = require_address(address, label="Token")
    if not await BlacklistedTokenRepository(session).remove(token_address):
        raise NotFoundError("Token not found in blacklist")
    return {"success": True}


@router.get("/verified")
async def list_verified_tokens(session: AsyncSession = Depends(get_session)) -> list[dict[str, Any]]:
    return [t.to_dict() for t in await VerifiedTokenRepository(session).list_all()]


@router.post("/verified")
async def verify_token(
    body: VerifyTokenRequest,
    admin: UserDTO = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    address = require_address(body.token_address, label="Token")
    entry = await VerifiedTokenRepository(session).add(
        address,
        symbol=body.symbol or None,
        name=body.name or None,
        verified_by=admin.id,
    )
    if entry is None:
        raise ConflictError("Token already verified")
    logger.info("Admin %s verified token %s", admin.id, address)
    return entry.to_dict()


@router.delete("/verified")
async def remove_verified_token(
    address: str | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    token_address = require_address(address, label="Token")
    if not await VerifiedTokenRepository(session).remove(token_address):
        raise NotFoundError("Token not found in verified list")
    return {"success": True}


@router.get("/discovered")
async def list_discovered_tokens(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """Tokens seen in wallets, most frequently seen first."""
    tokens = await DiscoveredTokenRepository(session).list_by_seen_count(limit=limit, offset=offset)
    return [t.to_dict() for t in tokens]


@nft_router.get("/blacklist")
async def list_blacklisted_collections(session: AsyncSession = Depends(get_session)) -> list[dict[str, Any]]:
    return [c.to_dict() for c in await NFTCollectionRepository(session).list_blacklisted()]


@nft_router.post("/blacklist")
async def blacklist_collection(
    body: BlacklistNFTCollectionRequest,
    admin: UserDTO = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Hide an NFT collection from every wallet's NFT list."""
    address = require_address(body.contract_address, label="Contract")
    repo = NFTCollectionRepository(session)
    existing = await repo.get(address)
    if existing is not None and existing.is_blacklisted:
        raise ConflictError("NFT collection already blacklisted")
    collection = await repo.set_flags(address, is_blacklisted=True)
    logger.info("Admin %s blacklisted NFT collection %s", admin.id, address)
    return collection.to_dict()


@nft_router.delete("/blacklist")
async def remove_blacklisted_collection(
    address: str | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    contract = require_address(address, label="Contract")
    repo = NFTCollectionRepository(session)
    existing = await repo.get(contract)
    if existing is None or not existing.is_blacklisted:
        raise NotFoundError("NFT collection not found in blacklist")
    await repo.set_flags(contract, is_blacklisted=False)
    return {"success": True}
