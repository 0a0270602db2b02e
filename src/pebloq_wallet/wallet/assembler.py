"""Response assembly for the balance and NFT endpoints."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from pebloq_wallet.wallet.models import (
    NATIVE_DECIMALS,
    NativeBalance,
    NFTCollection,
    PriceInfo,
    TokenBalance,
    VisibilityRules,
    WalletBalance,
    WalletNFTs,
    format_units,
    usd_value,
)
from pebloq_wallet.wallet.pricing import ETH_LOGO_URL
from pebloq_wallet.wallet.visibility import filter_collections, filter_tokens


def build_native_balance(raw_wei: int, price: PriceInfo | None = None) -> NativeBalance:
    price = price or PriceInfo()
    return NativeBalance(
        raw_wei=raw_wei,
        balance=format_units(raw_wei, NATIVE_DECIMALS),
        price_usd=price.price_usd,
        value_usd=usd_value(raw_wei, NATIVE_DECIMALS, price.price_usd),
        logo_url=price.logo_url or ETH_LOGO_URL,
    )


def mark_verification(
    tokens: Iterable[TokenBalance],
    verified_tokens: frozenset[str],
    *,
    totals_verified_only: bool = False,
) -> list[TokenBalance]:
    """Flag verified tokens; optionally exclude unverified ones from totals."""
    marked = []
    for token in tokens:
        is_verified = token.contract_address.lower() in verified_tokens
        marked.append(
            replace(
                token,
                is_verified=is_verified,
                exclude_from_total=totals_verified_only and not is_verified,
            )
        )
    return marked


def total_value_usd(native: NativeBalance, tokens: Iterable[TokenBalance]) -> float:
    """Sum native value and every token value not excluded from totals."""
    total = native.value_usd or 0.0
    for token in tokens:
        if token.exclude_from_total or token.value_usd is None:
            continue
        total += token.value_usd
    return total


def assemble_balance(
    wallet_address: str,
    native: NativeBalance,
    tokens: Sequence[TokenBalance],
    rules: VisibilityRules,
    *,
    verified_tokens: frozenset[str] = frozenset(),
    totals_verified_only: bool = False,
) -> WalletBalance:
    """Filter tokens by visibility and compute the total from what remains."""
    visible = mark_verification(
        filter_tokens(tokens, rules),
        verified_tokens,
        totals_verified_only=totals_verified_only,
    )
    return WalletBalance(
        wallet_address=wallet_address,
        native_balance=native,
        tokens=tuple(visible),
        total_value_usd=total_value_usd(native, visible),
    )


def assemble_nfts(
    wallet_address: str,
    collections: Sequence[NFTCollection],
    rules: VisibilityRules,
) -> WalletNFTs:
    return WalletNFTs(
        wallet_address=wallet_address,
        collections=tuple(filter_collections(collections, rules)),
    )
