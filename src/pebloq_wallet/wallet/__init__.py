"""Wallet holdings discovery and valuation pipeline."""

from pebloq_wallet.wallet.models import (
    NFT,
    NativeBalance,
    NFTCollection,
    TokenBalance,
    VisibilityRules,
    WalletBalance,
    WalletHoldings,
    WalletNFTs,
)
from pebloq_wallet.wallet.service import WalletHoldingsService

__all__ = [
    "NFT",
    "NFTCollection",
    "NativeBalance",
    "TokenBalance",
    "VisibilityRules",
    "WalletBalance",
    "WalletHoldings",
    "WalletHoldingsService",
    "WalletNFTs",
]
