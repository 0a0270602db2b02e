"""Tip creation, listing and admin verification."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from pebloq_wallet.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from pebloq_wallet.storage.repos import (
    ProfileRepository,
    TipDirection,
    TipDTO,
    TipRepository,
    TokenDTO,
    TokenRepository,
    UserDTO,
    UserRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from pebloq_wallet.tips.verification import TransactionVerifier

logger = logging.getLogger(__name__)

TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
MAX_MESSAGE_LENGTH = 500
MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 20
VERIFY_STATUSES = ("COMPLETED", "FAILED", "CANCELLED")


@dataclass(frozen=True)
class NewTip:
    """Validated input for creating a tip."""

    to_user_id: str
    token_id: str
    amount: str
    transaction_hash: str
    message: str | None = None
    is_public: bool = True


def parse_amount(amount: str) -> Decimal:
    try:
        value = Decimal(amount.strip())
    except (InvalidOperation, AttributeError):
        raise ValidationError("Amount must be a positive number") from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be a positive number")
    return value


def _short(value: str) -> str:
    return value[:8] + "..."


class TipService:
    """Tip workflows backed by repositories and on-chain verification."""

    def __init__(self, verifier: TransactionVerifier) -> None:
        self._verifier = verifier

    async def _format_tips(self, session: AsyncSession, tips: list[TipDTO]) -> list[dict[str, Any]]:
        users = await UserRepository(session).get_many(
            [t.from_user_id for t in tips] + [t.to_user_id for t in tips]
        )
        tokens = await TokenRepository(session).get_many(t.token_id for t in tips)
        formatted = []
        for tip in tips:
            from_user = users.get(tip.from_user_id)
            to_user = users.get(tip.to_user_id)
            token = tokens.get(tip.token_id)
            formatted.append(
                {
                    "id": tip.id,
                    "amount": tip.amount,
                    "transactionHash": tip.transaction_hash,
                    "message": tip.message,
                    "isPublic": tip.is_public,
                    "status": tip.status,
                    "createdAt": tip.created_at.isoformat(),
                    "updatedAt": tip.updated_at.isoformat(),
                    "fromUser": from_user.to_public_dict() if from_user else None,
                    "toUser": to_user.to_public_dict() if to_user else None,
                    "token": token.to_dict() if token else None,
                }
            )
        return formatted

    async def list_tips(
        self,
        session: AsyncSession,
        user_id: str | None,
        *,
        direction: str = "received",
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List completed tips sent and/or received by a user, newest first."""
        if not user_id:
            raise ValidationError("User ID is required")
        if direction not in ("sent", "received", "all"):
            raise ValidationError("Type must be sent, received, or all")
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)

        tips = await TipRepository(session).list_completed(
            user_id,
            direction=_direction(direction),
            limit=limit,
            offset=offset,
        )
        return {
            "success": True,
            "tips": await self._format_tips(session, tips),
            "type": direction,
            "pagination": {"limit": limit, "offset": offset, "hasMore": len(tips) == limit},
        }

    async def list_received(self, session: AsyncSession, user_id: str, *, limit: int = 10) -> dict[str, Any]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        tips = await TipRepository(session).list_completed(user_id, direction="received", limit=limit)
        return {"success": True, "data": await self._format_tips(session, tips)}

    async def create_tip(self, session: AsyncSession, sender: UserDTO, new_tip: NewTip) -> dict[str, Any]:
        """Create a COMPLETED tip after verifying its transaction on-chain.

        Checks run in a fixed order and the first failure is raised.
        """
        if new_tip.message is not None and len(new_tip.message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                "Validation failed",
                details={"message": f"message must be at most {MAX_MESSAGE_LENGTH} characters"},
            )
        if sender.id == new_tip.to_user_id:
            raise ValidationError("Users cannot tip themselves")
        if not TX_HASH_RE.match(new_tip.transaction_hash):
            raise ValidationError("Invalid transaction hash format")
        amount = parse_amount(new_tip.amount)

        tips = TipRepository(session)
        if await tips.get_by_transaction_hash(new_tip.transaction_hash) is not None:
            raise ConflictError("Transaction hash already used")

        users = UserRepository(session)
        recipient = await users.get(new_tip.to_user_id)
        if recipient is None:
            raise NotFoundError("Recipient user not found")
        if recipient.is_banned:
            raise ForbiddenError("Cannot tip banned users")

        token = await TokenRepository(session).get(new_tip.token_id)
        if token is None:
            raise NotFoundError("Token not found")
        if not token.is_enabled:
            raise ForbiddenError("Token is not enabled for tipping")

        await self._verify_on_chain(session, sender.id, recipient, token, new_tip.transaction_hash)

        try:
            tip = await tips.insert(
                from_user_id=sender.id,
                to_user_id=recipient.id,
                token_id=token.id,
                amount=new_tip.amount.strip(),
                transaction_hash=new_tip.transaction_hash,
                status="COMPLETED",
                message=new_tip.message or None,
                is_public=new_tip.is_public,
            )
        except IntegrityError as e:
            raise ConflictError("Transaction hash already used") from e
        await ProfileRepository(session).record_tip_received(recipient.id, amount)

        logger.info(
            "Tip created: id=%s from=%s to=%s amount=%s token=%s",
            tip.id,
            _short(sender.id),
            _short(recipient.id),
            tip.amount,
            token.symbol,
        )
        return {
            "success": True,
            "tip": (await self._format_tips(session, [tip]))[0],
            "message": "Tip created successfully",
        }

    async def verify_tip(
        self,
        session: AsyncSession,
        tip_id: str,
        *,
        status: str | None,
        admin: UserDTO,
    ) -> dict[str, Any]:
        """Resolve a PENDING tip.

        ``COMPLETED`` (or no status) re-verifies the transaction on-chain and
        completes the tip only if every check passes; ``FAILED`` and
        ``CANCELLED`` close the tip without a chain check.
        """
        target = status or "COMPLETED"
        if target not in VERIFY_STATUSES:
            raise ValidationError("Status must be COMPLETED, FAILED, or CANCELLED")

        tips = TipRepository(session)
        tip = await tips.get(tip_id)
        if tip is None:
            raise NotFoundError("Tip not found")
        if tip.status != "PENDING":
            raise ConflictError("Tip has already been verified")

        if target == "COMPLETED":
            users = UserRepository(session)
            recipient = await users.get(tip.to_user_id)
            token = await TokenRepository(session).get(tip.token_id)
            if recipient is None:
                raise NotFoundError("Recipient user not found")
            if token is None:
                raise NotFoundError("Token not found")
            await self._verify_on_chain(session, tip.from_user_id, recipient, token, tip.transaction_hash)

        updated = await tips.set_status(tip.id, target)
        if updated is None:
            raise NotFoundError("Tip not found")
        if target == "COMPLETED":
            await ProfileRepository(session).record_tip_received(tip.to_user_id, parse_amount(tip.amount))

        logger.info("Tip %s marked %s by %s", tip.id, target, _short(admin.id))
        return {
            "success": True,
            "tip": (await self._format_tips(session, [updated]))[0],
            "message": f"Tip {target.lower()} successfully",
        }

    async def _verify_on_chain(
        self,
        session: AsyncSession,
        sender_id: str,
        recipient: UserDTO,
        token: TokenDTO,
        transaction_hash: str,
    ) -> None:
        sender = await UserRepository(session).get(sender_id)
        if sender is None or not sender.wallet_address:
            raise ValidationError("Sender wallet address not found. Please reconnect your wallet.")
        if not recipient.wallet_address:
            raise ValidationError("Recipient wallet address not found")

        await self._verifier.verify_tip(
            transaction_hash,
            sender_wallet=sender.wallet_address,
            recipient_wallet=recipient.wallet_address,
            token_contract=token.contract_address,
        )


def _direction(value: str) -> TipDirection:
    if value == "sent":
        return "sent"
    if value == "all":
        return "all"
    return "received"
