"""Repository pattern implementations for data access.

This module provides data access abstractions for users and sessions,
tippable tokens and tips, and the token/NFT visibility lists consumed by
the wallet pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from pebloq_wallet.storage.models import (
    BlacklistedTokenModel,
    DiscoveredTokenModel,
    HiddenNFTModel,
    HiddenTokenModel,
    NFTCollectionModel,
    ProfileModel,
    TipModel,
    TokenModel,
    UserModel,
    UserSessionModel,
    VerifiedTokenModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

TipDirection = Literal["sent", "received", "all"]
TIP_STATUSES = ("PENDING", "COMPLETED", "FAILED", "CANCELLED")


def _dialect_insert(session: AsyncSession, model: type[Any]) -> Any:
    """Return a dialect-specific INSERT supporting ON CONFLICT."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ============================================================================
# Users
# ============================================================================


@dataclass
class UserDTO:
    """Data transfer object for users."""

    id: str
    wallet_address: str | None
    username: str | None = None
    display_name: str | None = None
    is_admin: bool = False
    is_banned: bool = False

    @classmethod
    def from_model(cls, model: UserModel) -> UserDTO:
        return cls(
            id=model.id,
            wallet_address=model.wallet_address,
            username=model.username,
            display_name=model.display_name,
            is_admin=model.is_admin,
            is_banned=model.is_banned,
        )

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "displayName": self.display_name,
            "isAdmin": self.is_admin,
        }


class UserRepository:
    """Repository for users and their bearer sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: str) -> UserDTO | None:
        model = await self.session.get(UserModel, user_id)
        return UserDTO.from_model(model) if model else None

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserDTO]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(UserModel).where(UserModel.id.in_(ids)))
        return {m.id: UserDTO.from_model(m) for m in result.scalars().all()}

    async def insert(self, dto: UserDTO) -> UserDTO:
        model = UserModel(
            id=dto.id,
            wallet_address=dto.wallet_address.lower() if dto.wallet_address else None,
            username=dto.username,
            display_name=dto.display_name,
            is_admin=dto.is_admin,
            is_banned=dto.is_banned,
        )
        self.session.add(model)
        await self.session.flush()
        return UserDTO.from_model(model)

    async def create_session(self, user_id: str, session_token: str, *, expires_at: datetime) -> None:
        self.session.add(UserSessionModel(session_token=session_token, user_id=user_id, expires_at=expires_at))
        await self.session.flush()

    async def get_by_session_token(self, session_token: str, *, now: datetime | None = None) -> UserDTO | None:
        """Resolve an unexpired session token to its user."""
        now = now or datetime.now(UTC)
        result = await self.session.execute(
            select(UserModel)
            .join(UserSessionModel, UserSessionModel.user_id == UserModel.id)
            .where(UserSessionModel.session_token == session_token)
            .where(UserSessionModel.expires_at > now)
        )
        model = result.scalar_one_or_none()
        return UserDTO.from_model(model) if model else None


# ============================================================================
# Profiles
# ============================================================================


@dataclass
class ProfileDTO:
    user_id: str
    tip_count: int
    total_tips_received: Decimal

    @classmethod
    def from_model(cls, model: ProfileModel) -> ProfileDTO:
        return cls(
            user_id=model.user_id,
            tip_count=model.tip_count,
            total_tips_received=Decimal(model.total_tips_received),
        )


class ProfileRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: str) -> ProfileDTO | None:
        model = await self.session.get(ProfileModel, user_id, populate_existing=True)
        return ProfileDTO.from_model(model) if model else None

    async def record_tip_received(self, user_id: str, amount: Decimal) -> None:
        """Increment the recipient's tip count and total, creating the profile if needed."""
        now = datetime.now(UTC)
        stmt = _dialect_insert(self.session, ProfileModel).values(
            user_id=user_id,
            tip_count=1,
            total_tips_received=amount,
            updated_at=now,
        )
        table = ProfileModel.__table__.c
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "tip_count": table.tip_count + 1,
                "total_tips_received": table.total_tips_received + amount,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()


# ============================================================================
# Tokens & tips
# ============================================================================


@dataclass
class TokenDTO:
    """Data transfer object for tippable tokens."""

    id: str
    name: str
    symbol: str
    contract_address: str | None
    decimals: int = 18
    is_enabled: bool = True
    logo_url: str | None = None

    @classmethod
    def from_model(cls, model: TokenModel) -> TokenDTO:
        return cls(
            id=model.id,
            name=model.name,
            symbol=model.symbol,
            contract_address=model.contract_address,
            decimals=model.decimals,
            is_enabled=model.is_enabled,
            logo_url=model.logo_url,
        )

    @property
    def is_native(self) -> bool:
        return self.contract_address is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "contractAddress": self.contract_address,
            "decimals": self.decimals,
            "logoUrl": self.logo_url,
        }


class TokenRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, token_id: str) -> TokenDTO | None:
        model = await self.session.get(TokenModel, token_id)
        return TokenDTO.from_model(model) if model else None

    async def get_many(self, token_ids: Iterable[str]) -> dict[str, TokenDTO]:
        ids = set(token_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(TokenModel).where(TokenModel.id.in_(ids)))
        return {m.id: TokenDTO.from_model(m) for m in result.scalars().all()}

    async def insert(self, dto: TokenDTO) -> TokenDTO:
        model = TokenModel(
            id=dto.id,
            name=dto.name,
            symbol=dto.symbol,
            contract_address=dto.contract_address.lower() if dto.contract_address else None,
            decimals=dto.decimals,
            is_enabled=dto.is_enabled,
            logo_url=dto.logo_url,
        )
        self.session.add(model)
        await self.session.flush()
        return TokenDTO.from_model(model)


@dataclass
class TipDTO:
    """Data transfer object for tips."""

    id: str
    from_user_id: str
    to_user_id: str
    token_id: str
    amount: str
    transaction_hash: str
    status: str
    message: str | None
    is_public: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, model: TipModel) -> TipDTO:
        return cls(
            id=model.id,
            from_user_id=model.from_user_id,
            to_user_id=model.to_user_id,
            token_id=model.token_id,
            amount=model.amount,
            transaction_hash=model.transaction_hash,
            status=model.status,
            message=model.message,
            is_public=model.is_public,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class TipRepository:
    """Repository for tips."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, tip_id: str) -> TipDTO | None:
        model = await self.session.get(TipModel, tip_id)
        return TipDTO.from_model(model) if model else None

    async def get_by_transaction_hash(self, transaction_hash: str) -> TipDTO | None:
        result = await self.session.execute(
            select(TipModel).where(func.lower(TipModel.transaction_hash) == transaction_hash.lower())
        )
        model = result.scalar_one_or_none()
        return TipDTO.from_model(model) if model else None

    async def insert(
        self,
        *,
        from_user_id: str,
        to_user_id: str,
        token_id: str,
        amount: str,
        transaction_hash: str,
        status: str,
        message: str | None,
        is_public: bool,
    ) -> TipDTO:
        if status not in TIP_STATUSES:
            raise ValueError(f"Unknown tip status: {status}")
        model = TipModel(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            token_id=token_id,
            amount=amount,
            transaction_hash=transaction_hash.lower(),
            status=status,
            message=message,
            is_public=is_public,
        )
        self.session.add(model)
        await self.session.flush()
        return TipDTO.from_model(model)

    async def set_status(self, tip_id: str, status: str) -> TipDTO | None:
        if status not in TIP_STATUSES:
            raise ValueError(f"Unknown tip status: {status}")
        model = await self.session.get(TipModel, tip_id)
        if model is None:
            return None
        model.status = status
        model.updated_at = datetime.now(UTC)
        await self.session.flush()
        return TipDTO.from_model(model)

    async def list_completed(
        self,
        user_id: str,
        *,
        direction: TipDirection = "received",
        limit: int = 20,
        offset: int = 0,
    ) -> list[TipDTO]:
        """List completed tips for a user, newest first."""
        stmt = select(TipModel).where(TipModel.status == "COMPLETED")
        if direction == "sent":
            stmt = stmt.where(TipModel.from_user_id == user_id)
        elif direction == "received":
            stmt = stmt.where(TipModel.to_user_id == user_id)
        else:
            stmt = stmt.where(or_(TipModel.from_user_id == user_id, TipModel.to_user_id == user_id))
        stmt = stmt.order_by(TipModel.created_at.desc(), TipModel.id.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return [TipDTO.from_model(m) for m in result.scalars().all()]


# ============================================================================
# Visibility lists
# ============================================================================


@dataclass
class HiddenTokenDTO:
    user_id: str
    token_address: str
    symbol: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: HiddenTokenModel) -> HiddenTokenDTO:
        return cls(
            user_id=model.user_id,
            token_address=model.token_address,
            symbol=model.symbol,
            created_at=model.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"tokenAddress": self.token_address, "symbol": self.symbol, "createdAt": _iso(self.created_at)}


class HiddenTokenRepository:
    """Per-user hidden ERC-20 tokens."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_user(self, user_id: str) -> list[HiddenTokenDTO]:
        result = await self.session.execute(
            select(HiddenTokenModel)
            .where(HiddenTokenModel.user_id == user_id)
            .order_by(HiddenTokenModel.created_at.desc(), HiddenTokenModel.id.desc())
        )
        return [HiddenTokenDTO.from_model(m) for m in result.scalars().all()]

    async def addresses_for_user(self, user_id: str) -> list[str]:
        result = await self.session.execute(
            select(HiddenTokenModel.token_address).where(HiddenTokenModel.user_id == user_id)
        )
        return [a.lower() for a in result.scalars().all()]

    async def add(self, user_id: str, token_address: str, *, symbol: str | None = None) -> HiddenTokenDTO | None:
        """Hide a token; returns None when it is already hidden."""
        address = token_address.lower()
        existing = await self.session.execute(
            select(HiddenTokenModel.id).where(
                (HiddenTokenModel.user_id == user_id) & (HiddenTokenModel.token_address == address)
            )
        )
        if existing.scalar_one_or_none() is not None:
            return None
        model = HiddenTokenModel(user_id=user_id, token_address=address, symbol=symbol)
        self.session.add(model)
        await self.session.flush()
        return HiddenTokenDTO.from_model(model)

    async def remove(self, user_id: str, token_address: str) -> int:
        result = await self.session.execute(
            delete(HiddenTokenModel).where(
                (HiddenTokenModel.user_id == user_id)
                & (HiddenTokenModel.token_address == token_address.lower())
            )
        )
        return int(result.rowcount or 0)


@dataclass
class HiddenNFTDTO:
    user_id: str
    contract_address: str
    token_id: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: HiddenNFTModel) -> HiddenNFTDTO:
        return cls(
            user_id=model.user_id,
            contract_address=model.contract_address,
            token_id=model.token_id,
            created_at=model.created_at,
        )

    @property
    def hide_key(self) -> str:
        return f"{self.contract_address.lower()}:{self.token_id or 'collection'}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "contractAddress": self.contract_address,
            "tokenId": self.token_id,
            "createdAt": _iso(self.created_at),
        }


class HiddenNFTRepository:
    """Per-user hidden NFTs; a NULL token_id hides the whole collection."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _match(self, user_id: str, contract_address: str, token_id: str | None) -> Any:
        clause = (HiddenNFTModel.user_id == user_id) & (
            HiddenNFTModel.contract_address == contract_address.lower()
        )
        if token_id is None:
            return clause & HiddenNFTModel.token_id.is_(None)
        return clause & (HiddenNFTModel.token_id == token_id)

    async def list_for_user(self, user_id: str) -> list[HiddenNFTDTO]:
        result = await self.session.execute(
            select(HiddenNFTModel)
            .where(HiddenNFTModel.user_id == user_id)
            .order_by(HiddenNFTModel.created_at.desc(), HiddenNFTModel.id.desc())
        )
        return [HiddenNFTDTO.from_model(m) for m in result.scalars().all()]

    async def keys_for_user(self, user_id: str) -> list[str]:
        return [dto.hide_key for dto in await self.list_for_user(user_id)]

    async def add(self, user_id: str, contract_address: str, token_id: str | None = None) -> HiddenNFTDTO | None:
        """Hide an NFT or collection; returns None when already hidden."""
        existing = await self.session.execute(
            select(HiddenNFTModel.id).where(self._match(user_id, contract_address, token_id))
        )
        if existing.scalar_one_or_none() is not None:
            return None
        model = HiddenNFTModel(user_id=user_id, contract_address=contract_address.lower(), token_id=token_id)
        self.session.add(model)
        await self.session.flush()
        return HiddenNFTDTO.from_model(model)

    async def remove(self, user_id: str, contract_address: str, token_id: str | None = None) -> int:
        result = await self.session.execute(
            delete(HiddenNFTModel).where(self._match(user_id, contract_address, token_id))
        )
        return int(result.rowcount or 0)


@dataclass
class BlacklistedTokenDTO:
    token_address: str
    symbol: str | None
    name: str | None
    reason: str | None
    report_count: int
    blacklisted_by: str | None
    blacklisted_at: datetime

    @classmethod
    def from_model(cls, model: BlacklistedTokenModel) -> BlacklistedTokenDTO:
        return cls(
            token_address=model.token_address,
            symbol=model.symbol,
            name=model.name,
            reason=model.reason,
            report_count=model.report_count,
            blacklisted_by=model.blacklisted_by,
            blacklisted_at=model.blacklisted_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "symbol": self.symbol,
            "name": self.name,
            "reason": self.reason,
            "reportCount": self.report_count,
            "blacklistedBy": self.blacklisted_by,
            "blacklistedAt": _iso(self.blacklisted_at),
        }


class BlacklistedTokenRepository:
    """Global token blacklist."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> list[BlacklistedTokenDTO]:
        result = await self.session.execute(
            select(BlacklistedTokenModel).order_by(
                BlacklistedTokenModel.blacklisted_at.desc(), BlacklistedTokenModel.id.desc()
            )
        )
        return [BlacklistedTokenDTO.from_model(m) for m in result.scalars().all()]

    async def addresses(self) -> list[str]:
        result = await self.session.execute(select(BlacklistedTokenModel.token_address))
        return [a.lower() for a in result.scalars().all()]

    async def add(
        self,
        token_address: str,
        *,
        reason: str,
        symbol: str | None = None,
        name: str | None = None,
        blacklisted_by: str | None = None,
    ) -> BlacklistedTokenDTO | None:
        """Blacklist a token; returns None when it is already blacklisted."""
        address = token_address.lower()
        existing = await self.session.execute(
            select(BlacklistedTokenModel.id).where(BlacklistedTokenModel.token_address == address)
        )
        if existing.scalar_one_or_none() is not None:
            return None
        model = BlacklistedTokenModel(
            token_address=address,
            symbol=symbol,
            name=name,
            reason=reason,
            report_count=0,
            blacklisted_by=blacklisted_by,
        )
        self.session.add(model)
        await self.session.flush()
        return BlacklistedTokenDTO.from_model(model)

    async def remove(self, token_address: str) -> int:
        result = await self.session.execute(
            delete(BlacklistedTokenModel).where(BlacklistedTokenModel.token_address == token_address.lower())
        )
        return int(result.rowcount or 0)


@dataclass
class VerifiedTokenDTO:
    token_address: str
    symbol: str | None
    name: str | None
    verified_by: str | None
    verified_at: datetime

    @classmethod
    def from_model(cls, model: VerifiedTokenModel) -> VerifiedTokenDTO:
        return cls(
            token_address=model.token_address,
            symbol=model.symbol,
            name=model.name,
            verified_by=model.verified_by,
            verified_at=model.verified_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "symbol": self.symbol,
            "name": self.name,
            "verifiedBy": self.verified_by,
            "verifiedAt": _iso(self.verified_at),
        }


class VerifiedTokenRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> list[VerifiedTokenDTO]:
        result = await self.session.execute(
            select(VerifiedTokenModel).order_by(
                VerifiedTokenModel.verified_at.desc(), VerifiedTokenModel.id.desc()
            )
        )
        return [VerifiedTokenDTO.from_model(m) for m in result.scalars().all()]

    async def addresses(self) -> list[str]:
        result = await self.session.execute(select(VerifiedTokenModel.token_address))
        return [a.lower() for a in result.scalars().all()]

    async def add(
        self,
        token_address: str,
        *,
        symbol: str | None = None,
        name: str | None = None,
        verified_by: str | None = None,
    ) -> VerifiedTokenDTO | None:
        """Verify a token; returns None when it is already verified."""
        address = token_address.lower()
        existing = await self.session.execute(
            select(VerifiedTokenModel.id).where(VerifiedTokenModel.token_address == address)
        )
        if existing.scalar_one_or_none() is not None:
            return None
        model = VerifiedTokenModel(token_address=address, symbol=symbol, name=name, verified_by=verified_by)
        self.session.add(model)
        await self.session.flush()
        return VerifiedTokenDTO.from_model(model)

    async def remove(self, token_address: str) -> int:
        result = await self.session.execute(
            delete(VerifiedTokenModel).where(VerifiedTokenModel.token_address == token_address.lower())
        )
        return int(result.rowcount or 0)


@dataclass
class DiscoveredTokenDTO:
    token_address: str
    symbol: str | None
    name: str | None
    decimals: int
    first_seen_at: datetime
    last_seen_at: datetime
    seen_count: int

    @classmethod
    def from_model(cls, model: DiscoveredTokenModel) -> DiscoveredTokenDTO:
        return cls(
            token_address=model.token_address,
            symbol=model.symbol,
            name=model.name,
            decimals=model.decimals,
            first_seen_at=model.first_seen_at,
            last_seen_at=model.last_seen_at,
            seen_count=model.seen_count,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "firstSeenAt": _iso(self.first_seen_at),
            "lastSeenAt": _iso(self.last_seen_at),
            "seenCount": self.seen_count,
        }


class DiscoveredTokenRepository:
    """Tokens seen with a positive balance, for admin review."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, token_address: str) -> DiscoveredTokenDTO | None:
        model = await self.session.get(DiscoveredTokenModel, token_address.lower(), populate_existing=True)
        return DiscoveredTokenDTO.from_model(model) if model else None

    async def record_seen(
        self,
        token_address: str,
        *,
        symbol: str | None,
        name: str | None,
        decimals: int,
    ) -> None:
        """Upsert a sighting: insert with seen_count=1 or bump seen_count and last_seen_at."""
        now = datetime.now(UTC)
        stmt = _dialect_insert(self.session, DiscoveredTokenModel).values(
            token_address=token_address.lower(),
            symbol=symbol,
            name=name,
            decimals=decimals,
            first_seen_at=now,
            last_seen_at=now,
            seen_count=1,
        )
        table = DiscoveredTokenModel.__table__.c
        stmt = stmt.on_conflict_do_update(
            index_elements=["token_address"],
            set_={
                "symbol": func.coalesce(stmt.excluded.symbol, table.symbol),
                "name": func.coalesce(stmt.excluded.name, table.name),
                "last_seen_at": now,
                "seen_count": table.seen_count + 1,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def list_by_seen_count(self, *, limit: int = 50, offset: int = 0) -> list[DiscoveredTokenDTO]:
        result = await self.session.execute(
            select(DiscoveredTokenModel)
            .order_by(DiscoveredTokenModel.seen_count.desc(), DiscoveredTokenModel.last_seen_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [DiscoveredTokenDTO.from_model(m) for m in result.scalars().all()]


@dataclass
class NFTCollectionDTO:
    contract_address: str
    name: str | None
    symbol: str | None
    is_blacklisted: bool
    is_verified: bool

    @classmethod
    def from_model(cls, model: NFTCollectionModel) -> NFTCollectionDTO:
        return cls(
            contract_address=model.contract_address,
            name=model.name,
            symbol=model.symbol,
            is_blacklisted=model.is_blacklisted,
            is_verified=model.is_verified,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "contractAddress": self.contract_address,
            "name": self.name,
            "symbol": self.symbol,
            "isBlacklisted": self.is_blacklisted,
            "isVerified": self.is_verified,
        }


class NFTCollectionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, contract_address: str) -> NFTCollectionDTO | None:
        model = await self.session.get(NFTCollectionModel, contract_address.lower())
        return NFTCollectionDTO.from_model(model) if model else None

    async def get_many(self, contract_addresses: Iterable[str]) -> dict[str, NFTCollectionDTO]:
        addresses = {a.lower() for a in contract_addresses}
        if not addresses:
            return {}
        result = await self.session.execute(
            select(NFTCollectionModel).where(NFTCollectionModel.contract_address.in_(addresses))
        )
        return {m.contract_address: NFTCollectionDTO.from_model(m) for m in result.scalars().all()}

    async def blacklisted_addresses(self) -> list[str]:
        result = await self.session.execute(
            select(NFTCollectionModel.contract_address).where(NFTCollectionModel.is_blacklisted.is_(True))
        )
        return [a.lower() for a in result.scalars().all()]

    async def list_blacklisted(self) -> list[NFTCollectionDTO]:
        result = await self.session.execute(
            select(NFTCollectionModel)
            .where(NFTCollectionModel.is_blacklisted.is_(True))
            .order_by(NFTCollectionModel.updated_at.desc())
        )
        return [NFTCollectionDTO.from_model(m) for m in result.scalars().all()]

    async def ensure(self, contract_address: str) -> None:
        """Create the collection row if it does not exist yet."""
        stmt = _dialect_insert(self.session, NFTCollectionModel).values(
            contract_address=contract_address.lower(),
            is_blacklisted=False,
            is_verified=False,
            created_at=datetime.now(UTC),
            updated_at=datetime.now(UTC),
        )
        await self.session.execute(stmt.on_conflict_do_nothing(index_elements=["contract_address"]))
        await self.session.flush()

    async def set_flags(
        self,
        contract_address: str,
        *,
        is_blacklisted: bool | None = None,
        is_verified: bool | None = None,
    ) -> NFTCollectionDTO:
        """Update admin flags, creating the collection row when it is unknown."""
        now = datetime.now(UTC)
        model = await self.session.get(NFTCollectionModel, contract_address.lower())
        if model is None:
            model = NFTCollectionModel(
                contract_address=contract_address.lower(),
                is_blacklisted=False,
                is_verified=False,
                created_at=now,
            )
            self.session.add(model)
        if is_blacklisted is not None:
            model.is_blacklisted = is_blacklisted
        if is_verified is not None:
            model.is_verified = is_verified
        model.updated_at = now
        await self.session.flush()
        return NFTCollectionDTO.from_model(model)
