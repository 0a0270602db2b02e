"""Request bodies for the API routes.

Bodies use the camelCase field names of the web client. Address fields are
optional here so the routes can return the specific "required" and
"format" errors.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pebloq_wallet.chain.abi import is_address
from pebloq_wallet.errors import ValidationError


def require_address(value: str | None, *, label: str) -> str:
    """Validate an address field and return it lower-cased.

    Raises:
        ValidationError: "<label> address is required" or
            "Invalid <label> address format".
    """
    if not value:
        raise ValidationError(f"{label} address is required")
    if not is_address(value):
        raise ValidationError(f"Invalid {label.lower()} address format")
    return value.lower()


_TOKEN_ID_RE = re.compile(r"^(0[xX][0-9a-fA-F]{1,64}|[0-9]{1,78})$")


def normalize_token_id(value: str | None) -> str | None:
    """Return an NFT token ID in canonical decimal form, or None when absent.

    Decimal and 0x-prefixed hex IDs are accepted, so "007" and "0x7" both
    become "7".

    Raises:
        ValidationError: If the ID is not a non-negative integer.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if not _TOKEN_ID_RE.match(text):
        raise ValidationError("Invalid token ID format")
    return str(int(text, 16) if text[:2].lower() == "0x" else int(text))


def _stringify(v: object) -> object:
    if isinstance(v, bool):
        return v
    if isinstance(v, int | float):
        return str(v)
    return v


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TipCreateRequest(_CamelModel):
    to_user_id: str = Field(alias="toUserId", min_length=1)
    token_id: str = Field(alias="tokenId", min_length=1)
    amount: str = Field(min_length=1)
    transaction_hash: str = Field(alias="transactionHash", min_length=1)
    message: str | None = Field(default=None, max_length=500)
    is_public: bool = Field(default=True, alias="isPublic")

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_to_str(cls, v: object) -> object:
        return _stringify(v)


class TipVerifyRequest(_CamelModel):
    status: str | None = None


class HideTokenRequest(_CamelModel):
    token_address: str | None = Field(default=None, alias="tokenAddress")
    symbol: str | None = None


class HideNFTRequest(_CamelModel):
    contract_address: str | None = Field(default=None, alias="contractAddress")
    token_id: str | None = Field(default=None, alias="tokenId")

    @field_validator("token_id", mode="before")
    @classmethod
    def _token_id_to_str(cls, v: object) -> object:
        return _stringify(v)


class BlacklistTokenRequest(_CamelModel):
    token_address: str | None = Field(default=None, alias="tokenAddress")
    symbol: str | None = None
    name: str | None = None
    reason: str | None = None


class BlacklistNFTCollectionRequest(_CamelModel):
    contract_address: str | None = Field(default=None, alias="contractAddress")


class VerifyTokenRequest(_CamelModel):
    token_address: str | None = Field(default=None, alias="tokenAddress")
    symbol: str | None = None
    name: str | None = None
