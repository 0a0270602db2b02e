"""Data models for the wallet holdings pipeline.

Everything here is computed per request. The dataclasses serialize to the
camelCase JSON shapes the PeBloq UI consumes via `to_dict()`, and the
cacheable ones can be rebuilt from that shape with `from_dict()`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Literal

from pebloq_wallet.errors import ValidationError

TokenType = Literal["ERC721", "ERC1155"]
MediaType = Literal["image", "video", "audio", "model", "html"]

NATIVE_DECIMALS = 18
NATIVE_SYMBOL = "ETH"
DISPLAY_PLACES = Decimal("0.000001")

_WALLET_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def parse_wallet_address(value: str | None) -> str:
    """Validate a wallet address query value.

    Returns:
        The address as given (display form).

    Raises:
        ValidationError: If the address is missing or malformed.
    """
    if not value:
        raise ValidationError("Wallet address is required")
    if not _WALLET_ADDRESS_RE.match(value):
        raise ValidationError("Invalid wallet address format")
    return value


def exact_units(raw: int, decimals: int) -> Decimal:
    """Return ``raw / 10**decimals`` without precision loss."""
    with localcontext() as ctx:
        ctx.prec = 200
        return Decimal(raw) / (Decimal(10) ** decimals)


def format_units(raw: int, decimals: int) -> str:
    """Render a base-unit amount with six fractional digits, rounding half-up."""
    with localcontext() as ctx:
        ctx.prec = 200
        return str(exact_units(raw, decimals).quantize(DISPLAY_PLACES, rounding=ROUND_HALF_UP))


def usd_value(raw: int, decimals: int, price_usd: float | None) -> float | None:
    if price_usd is None:
        return None
    with localcontext() as ctx:
        ctx.prec = 200
        return float(exact_units(raw, decimals) * Decimal(str(price_usd)))


@dataclass(frozen=True)
class TransferLog:
    """A decoded ``Transfer`` event.

    Attributes:
        contract: Lower-cased emitting contract.
        from_address: Lower-cased sender (topic1).
        to_address: Lower-cased recipient (topic2).
        token_id: NFT token ID for 4-topic logs, None for ERC-20 transfers.
        block_number: Block the log was emitted in.
        log_index: Position of the log within the block.
    """

    contract: str
    from_address: str
    to_address: str
    token_id: int | None
    block_number: int
    log_index: int

    @property
    def is_nft(self) -> bool:
        return self.token_id is not None


@dataclass
class WalletHoldings:
    """Log-scan output: ERC-20 candidates and currently-owned NFT token IDs."""

    erc20_contracts: set[str] = field(default_factory=set)
    nfts: dict[str, set[int]] = field(default_factory=dict)

    @property
    def nft_count(self) -> int:
        return sum(len(ids) for ids in self.nfts.values())


@dataclass(frozen=True)
class PriceInfo:
    price_usd: float | None = None
    logo_url: str | None = None


@dataclass(frozen=True)
class TokenBalance:
    """A resolved ERC-20 balance, optionally priced."""

    contract_address: str
    symbol: str
    name: str
    raw_balance: int
    decimals: int
    balance: str
    price_usd: float | None = None
    value_usd: float | None = None
    logo_url: str | None = None
    is_verified: bool = False
    exclude_from_total: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "contractAddress": self.contract_address,
            "symbol": self.symbol,
            "name": self.name,
            "balance": self.balance,
            "rawBalance": str(self.raw_balance),
            "decimals": self.decimals,
            "isVerified": self.is_verified,
        }
        if self.price_usd is not None:
            data["priceUsd"] = self.price_usd
        if self.value_usd is not None:
            data["valueUsd"] = self.value_usd
        if self.logo_url is not None:
            data["logoUrl"] = self.logo_url
        if self.exclude_from_total:
            data["excludeFromTotal"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenBalance:
        return cls(
            contract_address=data["contractAddress"],
            symbol=data["symbol"],
            name=data["name"],
            raw_balance=int(data["rawBalance"]),
            decimals=int(data["decimals"]),
            balance=data["balance"],
            price_usd=data.get("priceUsd"),
            value_usd=data.get("valueUsd"),
            logo_url=data.get("logoUrl"),
            is_verified=bool(data.get("isVerified", False)),
            exclude_from_total=bool(data.get("excludeFromTotal", False)),
        )


@dataclass(frozen=True)
class NativeBalance:
    raw_wei: int
    balance: str
    symbol: str = NATIVE_SYMBOL
    price_usd: float | None = None
    value_usd: float | None = None
    logo_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"balance": self.balance, "symbol": self.symbol}
        if self.price_usd is not None:
            data["priceUsd"] = self.price_usd
        if self.value_usd is not None:
            data["valueUsd"] = self.value_usd
        if self.logo_url is not None:
            data["logoUrl"] = self.logo_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, raw_wei: int) -> NativeBalance:
        return cls(
            raw_wei=raw_wei,
            balance=data["balance"],
            symbol=data.get("symbol", NATIVE_SYMBOL),
            price_usd=data.get("priceUsd"),
            value_usd=data.get("valueUsd"),
            logo_url=data.get("logoUrl"),
        )


@dataclass(frozen=True)
class NFTMetadata:
    name: str | None = None
    description: str | None = None
    image: str | None = None
    animation_url: str | None = None
    external_url: str | None = None
    attributes: list[Any] | None = None
    media_type: MediaType = "image"

    def to_dict(self) -> dict[str, Any]:
        data = {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "animation_url": self.animation_url,
            "external_url": self.external_url,
            "attributes": self.attributes,
            "media_type": self.media_type,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NFTMetadata:
        return cls(
            name=data.get("name"),
            description=data.get("description"),
            image=data.get("image"),
            animation_url=data.get("animation_url"),
            external_url=data.get("external_url"),
            attributes=data.get("attributes"),
            media_type=data.get("media_type", "image"),
        )


@dataclass(frozen=True)
class NFT:
    contract_address: str
    token_id: int
    token_type: TokenType
    name: str | None = None
    collection_name: str | None = None
    image_url: str | None = None
    animation_url: str | None = None
    media_type: MediaType | None = None
    metadata: NFTMetadata | None = None

    @property
    def hide_key(self) -> str:
        return f"{self.contract_address.lower()}:{self.token_id}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "contractAddress": self.contract_address,
            "tokenId": str(self.token_id),
            "tokenType": self.token_type,
        }
        optional = {
            "name": self.name,
            "collectionName": self.collection_name,
            "imageUrl": self.image_url,
            "animationUrl": self.animation_url,
            "mediaType": self.media_type,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NFT:
        metadata = data.get("metadata")
        return cls(
            contract_address=data["contractAddress"],
            token_id=int(data["tokenId"]),
            token_type=data["tokenType"],
            name=data.get("name"),
            collection_name=data.get("collectionName"),
            image_url=data.get("imageUrl"),
            animation_url=data.get("animationUrl"),
            media_type=data.get("mediaType"),
            metadata=NFTMetadata.from_dict(metadata) if metadata else None,
        )


@dataclass(frozen=True)
class NFTCollection:
    contract_address: str
    token_type: TokenType
    nfts: tuple[NFT, ...]
    name: str | None = None
    symbol: str | None = None
    is_blacklisted: bool = False
    is_verified: bool = False

    @property
    def total_count(self) -> int:
        return len(self.nfts)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "contractAddress": self.contract_address,
            "tokenType": self.token_type,
            "nfts": [nft.to_dict() for nft in self.nfts],
            "totalCount": self.total_count,
            "isBlacklisted": self.is_blacklisted,
            "isVerified": self.is_verified,
        }
        if self.name is not None:
            data["name"] = self.name
        if self.symbol is not None:
            data["symbol"] = self.symbol
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NFTCollection:
        return cls(
            contract_address=data["contractAddress"],
            token_type=data["tokenType"],
            nfts=tuple(NFT.from_dict(n) for n in data.get("nfts", [])),
            name=data.get("name"),
            symbol=data.get("symbol"),
            is_blacklisted=bool(data.get("isBlacklisted", False)),
            is_verified=bool(data.get("isVerified", False)),
        )


@dataclass(frozen=True)
class VisibilityRules:
    """Global and per-user visibility rules, all keys lower-cased.

    Attributes:
        blacklisted_tokens: Token contracts hidden for everyone.
        hidden_tokens: Token contracts the requesting user has hidden.
        hidden_nfts: ``contract:token_id`` and ``contract:collection`` keys
            the requesting user has hidden.
        blacklisted_collections: NFT contracts hidden for everyone.
    """

    blacklisted_tokens: frozenset[str] = frozenset()
    hidden_tokens: frozenset[str] = frozenset()
    hidden_nfts: frozenset[str] = frozenset()
    blacklisted_collections: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        *,
        blacklisted_tokens: list[str] | None = None,
        hidden_tokens: list[str] | None = None,
        hidden_nfts: list[str] | None = None,
        blacklisted_collections: list[str] | None = None,
    ) -> VisibilityRules:
        return cls(
            blacklisted_tokens=frozenset(a.lower() for a in blacklisted_tokens or ()),
            hidden_tokens=frozenset(a.lower() for a in hidden_tokens or ()),
            hidden_nfts=frozenset(k.lower() for k in hidden_nfts or ()),
            blacklisted_collections=frozenset(a.lower() for a in blacklisted_collections or ()),
        )


@dataclass(frozen=True)
class WalletBalance:
    """Response of the balance endpoint."""

    wallet_address: str
    native_balance: NativeBalance
    tokens: tuple[TokenBalance, ...]
    total_value_usd: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "walletAddress": self.wallet_address,
            "nativeBalance": self.native_balance.to_dict(),
            "tokens": [t.to_dict() for t in self.tokens],
            "totalValueUsd": self.total_value_usd,
        }


@dataclass(frozen=True)
class WalletNFTs:
    """Response of the NFT endpoint."""

    wallet_address: str
    collections: tuple[NFTCollection, ...]

    @property
    def total_nfts(self) -> int:
        return sum(c.total_count for c in self.collections)

    def to_dict(self) -> dict[str, Any]:
        return {
            "walletAddress": self.wallet_address,
            "collections": [c.to_dict() for c in self.collections],
            "totalNFTs": self.total_nfts,
        }
