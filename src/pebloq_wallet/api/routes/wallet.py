"""Wallet balance and NFT endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pebloq_wallet.api.deps import get_session, get_wallet_service
from pebloq_wallet.wallet.service import WalletHoldingsService

router = APIRouter(prefix="/api/wallet")


@router.get("/balance")
async def get_wallet_balance(
    address: str | None = Query(default=None),
    user_id: str | None = Query(default=None, alias="userId"),
    session: AsyncSession = Depends(get_session),
    service: WalletHoldingsService = Depends(get_wallet_service),
) -> dict[str, Any]:
    """Native and ERC-20 balances with visibility rules applied for `userId`."""
    balance = await service.get_balance(session, address, user_id=user_id)
    return balance.to_dict()


@router.get("/nfts")
async def get_wallet_nfts(
    address: str | None = Query(default=None),
    user_id: str | None = Query(default=None, alias="userId"),
    session: AsyncSession = Depends(get_session),
    service: WalletHoldingsService = Depends(get_wallet_service),
) -> dict[str, Any]:
    nfts = await service.get_nfts(session, address, user_id=user_id)
    return nfts.to_dict()
