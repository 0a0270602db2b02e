"""Tipping: on-chain verification and tip workflows."""

from pebloq_wallet.tips.service import NewTip, TipService
from pebloq_wallet.tips.verification import TransactionCheck, TransactionVerifier

__all__ = [
    "NewTip",
    "TipService",
    "TransactionCheck",
    "TransactionVerifier",
]
