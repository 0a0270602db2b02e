"""SQLAlchemy models for persistent storage.

This module defines the tables the wallet pipeline and the tip routes
read and write: users and sessions, tippable tokens and tips, and the
token/NFT visibility lists.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UserModel(Base):
    """Community member; only the columns the wallet and tip flows need."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    wallet_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("wallet_address", name="uq_users_wallet_address"),
        UniqueConstraint("username", name="uq_users_username"),
    )


class UserSessionModel(Base):
    """Bearer session token issued by the login flow."""

    __tablename__ = "user_sessions"

    session_token: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_user_sessions_user", "user_id"),)


class ProfileModel(Base):
    """Per-user tip statistics."""

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tip_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tips_received: Mapped[Decimal] = mapped_column(Numeric(48, 18), nullable=False, default=Decimal(0))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class TokenModel(Base):
    """A token that can be used for tipping."""

    __tablename__ = "tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    # NULL for the native currency.
    contract_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False, default=18)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_tokens_contract", "contract_address"),)


class TipModel(Base):
    """A tip backed by an on-chain transaction."""

    __tablename__ = "tips"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    from_user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    to_user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    token_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # Decimal string as entered by the sender.
    amount: Mapped[str] = mapped_column(String(80), nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    usd_value_at_time: Mapped[Decimal | None] = mapped_column(Numeric(24, 6), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("transaction_hash", name="uq_tips_transaction_hash"),
        Index("idx_tips_from_user", "from_user_id"),
        Index("idx_tips_to_user", "to_user_id"),
        Index("idx_tips_status_created", "status", "created_at"),
    )


class HiddenTokenModel(Base):
    """ERC-20 token a user has hidden from their wallet view."""

    __tablename__ = "hidden_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    token_address: Mapped[str] = mapped_column(String(42), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "token_address", name="uq_hidden_tokens_user_token"),
        Index("idx_hidden_tokens_user", "user_id"),
    )


class HiddenNFTModel(Base):
    """NFT (or, with a NULL token_id, a whole collection) hidden by a user."""

    __tablename__ = "hidden_nfts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False)
    token_id: Mapped[str | None] = mapped_column(String(80), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "contract_address", "token_id", name="uq_hidden_nfts_user_nft"),
        Index("idx_hidden_nfts_user", "user_id"),
    )


class BlacklistedTokenModel(Base):
    """Token hidden for every user by an admin."""

    __tablename__ = "blacklisted_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_address: Mapped[str] = mapped_column(String(42), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blacklisted_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    blacklisted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("token_address", name="uq_blacklisted_tokens_address"),)


class VerifiedTokenModel(Base):
    """Token an admin has marked as legitimate."""

    __tablename__ = "verified_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_address: Mapped[str] = mapped_column(String(42), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("token_address", name="uq_verified_tokens_address"),)


class DiscoveredTokenModel(Base):
    """Token seen with a positive balance in some wallet, queued for admin review."""

    __tablename__ = "discovered_tokens"

    token_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    symbol: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False, default=18)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    seen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (Index("idx_discovered_tokens_seen_count", "seen_count"),)


class NFTCollectionModel(Base):
    """Known NFT collection with admin flags."""

    __tablename__ = "nft_collections"

    contract_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    symbol: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_blacklisted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
