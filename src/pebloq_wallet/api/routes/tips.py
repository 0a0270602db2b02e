"""Tip endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pebloq_wallet.api.deps import get_session, get_tip_service, require_admin, require_user
from pebloq_wallet.api.schemas import TipCreateRequest, TipVerifyRequest
from pebloq_wallet.storage.repos import UserDTO
from pebloq_wallet.tips.service import DEFAULT_PAGE_SIZE, NewTip, TipService

router = APIRouter(prefix="/api/tips")


@router.get("")
async def list_tips(
    user_id: str | None = Query(default=None, alias="userId"),
    tip_type: str = Query(default="received", alias="type"),
    limit: int = Query(default=DEFAULT_PAGE_SIZE),
    offset: int = Query(default=0),
    session: AsyncSession = Depends(get_session),
    service: TipService = Depends(get_tip_service),
) -> dict[str, Any]:
    return await service.list_tips(session, user_id, direction=tip_type, limit=limit, offset=offset)


@router.get("/received/{user_id}")
async def list_received_tips(
    user_id: str,
    limit: int = Query(default=10),
    session: AsyncSession = Depends(get_session),
    service: TipService = Depends(get_tip_service),
) -> dict[str, Any]:
    return await service.list_received(session, user_id, limit=limit)


@router.post("", status_code=201)
async def create_tip(
    body: TipCreateRequest,
    user: UserDTO = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    service: TipService = Depends(get_tip_service),
) -> dict[str, Any]:
    """Record a tip whose transaction has been verified on-chain."""
    new_tip = NewTip(
        to_user_id=body.to_user_id,
        token_id=body.token_id,
        amount=body.amount,
        transaction_hash=body.transaction_hash,
        message=body.message,
        is_public=body.is_public,
    )
    return await service.create_tip(session, user, new_tip)


@router.post("/{tip_id}/verify")
async def verify_tip(
    tip_id: str,
    body: TipVerifyRequest | None = Body(default=None),
    admin: UserDTO = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    service: TipService = Depends(get_tip_service),
) -> dict[str, Any]:
    """Resolve a pending tip (admin only)."""
    status = body.status if body is not None else None
    return await service.verify_tip(session, tip_id, status=status, admin=admin)
