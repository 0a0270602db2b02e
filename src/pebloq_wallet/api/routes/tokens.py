"""Per-user token and NFT visibility endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pebloq_wallet.api.deps import get_session, require_user
from pebloq_wallet.api.schemas import HideNFTRequest, HideTokenRequest, normalize_token_id, require_address
from pebloq_wallet.errors import ConflictError
from pebloq_wallet.storage.repos import (
    HiddenNFTRepository,
    HiddenTokenRepository,
    NFTCollectionRepository,
    UserDTO,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/tokens/hidden")
async def list_hidden_tokens(
    user: UserDTO = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    hidden = await HiddenTokenRepository(session).list_for_user(user.id)
    return [h.to_dict() for h in hidden]


@router.post("/tokens/hidden")
async def hide_token(
    body: HideTokenRequest,
    user: UserDTO = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    address = require_address(body.token_address, label="Token")
    hidden = await HiddenTokenRepository(session).add(user.id, address, symbol=body.symbol)
    if hidden is None:
        raise ConflictError("Token already hidden")
    logger.info("User %s hid token %s", user.id, address)
    return hidden.to_dict()


@router.delete("/tokens/hidden")
async def unhide_token(
    address: str | None = Query(default=None),
    user: UserDTO = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    token_address = require_address(address, label="Token")
    await HiddenTokenRepository(session).remove(user.id, token_address)
    return {"success": True}


@router.get("/nfts/hidden")
async def list_hidden_nfts(
    user: UserDTO = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    hidden = await HiddenNFTRepository(session).list_for_user(user.id)
    return [h.to_dict() for h in hidden]


@router.post("/nfts/hidden")
async def hide_nft(
    body: HideNFTRequest,
    user: UserDTO = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Hide one NFT, or the whole collection when `tokenId` is omitted."""
    contract = require_address(body.contract_address, label="Contract")
    await NFTCollectionRepository(session).ensure(contract)
    token_id = normalize_token_id(body.token_id)
    hidden = await HiddenNFTRepository(session).add(user.id, contract, token_id)
    if hidden is None:
        raise ConflictError("NFT already hidden")
    logger.info("User %s hid NFT %s", user.id, hidden.hide_key)
    return hidden.to_dict()


@router.delete("/nfts/hidden")
async def unhide_nft(
    address: str | None = Query(default=None),
    token_id: str | None = Query(default=None, alias="tokenId"),
    user: UserDTO = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    contract = require_address(address, label="Contract")
    await HiddenNFTRepository(session).remove(user.id, contract, normalize_token_id(token_id))
    return {"success": True}
