"""On-chain verification of tip transactions.

A tip is only accepted when its transaction exists, has the required
confirmations, succeeded, was sent by the tipper's wallet and paid the
recipient's wallet. The recipient check compares the transaction's ``to``
address only; an ERC-20 ``Transfer`` emitted by a call to the token contract
does not count as paying the recipient.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pebloq_wallet.chain.client import RPCError
from pebloq_wallet.errors import (
    ForbiddenError,
    NotFoundError,
    TooEarlyError,
    UpstreamUnavailableError,
    ValidationError,
)
from pebloq_wallet.wallet.models import TransferLog
from pebloq_wallet.wallet.scanner import decode_transfer_log

if TYPE_CHECKING:
    from pebloq_wallet.chain.client import ChainClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionCheck:
    """Decoded receipt facts needed to accept or reject a tip.

    Attributes:
        exists: Whether a receipt was found.
        confirmed: Whether the receipt has the required confirmations.
        success: Whether the transaction executed without reverting.
        block_number: Block the transaction was mined in.
        confirmations: ``latest - block_number + 1``.
        from_address: Lower-cased sender.
        to_address: Lower-cased call target, None for contract creation.
        transfers: Decoded ERC-20 Transfer logs emitted by the transaction.
    """

    exists: bool
    confirmed: bool = False
    success: bool = False
    block_number: int | None = None
    confirmations: int = 0
    from_address: str | None = None
    to_address: str | None = None
    transfers: tuple[TransferLog, ...] = field(default_factory=tuple)

    def pays(self, recipient: str) -> bool:
        """Return True if the transaction was sent directly to `recipient`."""
        return self.to_address is not None and self.to_address == recipient.lower()

    def has_token_transfer(self, contract: str, sender: str, recipient: str) -> bool:
        """Return True if a Transfer of `contract` from `sender` to `recipient` was emitted."""
        contract, sender, recipient = contract.lower(), sender.lower(), recipient.lower()
        return any(
            t.contract == contract and t.from_address == sender and t.to_address == recipient
            for t in self.transfers
        )


def _lower(value: Any) -> str | None:
    return str(value).lower() if value else None


class TransactionVerifier:
    """Checks tip transactions against the chain."""

    def __init__(self, chain_client: ChainClient, *, required_confirmations: int = 1) -> None:
        self._chain = chain_client
        self._required_confirmations = required_confirmations

    async def check(self, tx_hash: str) -> TransactionCheck:
        """Fetch and decode the receipt of `tx_hash`.

        Raises:
            RPCError: If the chain cannot be reached.
        """
        receipt = await self._chain.get_transaction_receipt(tx_hash)
        if receipt is None:
            return TransactionCheck(exists=False)

        block_number = int(receipt["blockNumber"])
        latest = await self._chain.get_block_number()
        confirmations = latest - block_number + 1

        transfers = []
        for raw in receipt.get("logs") or []:
            log = decode_transfer_log(raw)
            if log is not None and not log.is_nft:
                transfers.append(log)

        return TransactionCheck(
            exists=True,
            confirmed=confirmations >= self._required_confirmations,
            success=int(receipt.get("status", 0)) == 1,
            block_number=block_number,
            confirmations=confirmations,
            from_address=_lower(receipt.get("from")),
            to_address=_lower(receipt.get("to")),
            transfers=tuple(transfers),
        )

    async def verify_tip(
        self,
        tx_hash: str,
        *,
        sender_wallet: str,
        recipient_wallet: str,
        token_contract: str | None = None,
    ) -> TransactionCheck:
        """Verify a tip transaction, raising the error for the first failed check.

        Raises:
            NotFoundError: Transaction not found on chain.
            TooEarlyError: Not enough confirmations yet.
            ValidationError: Transaction reverted.
            ForbiddenError: Sender or recipient does not match.
            UpstreamUnavailableError: The chain could not be queried.
        """
        try:
            check = await self.check(tx_hash)
        except RPCError as e:
            logger.error("Tip verification for %s failed to reach the chain: %s", tx_hash, e)
            raise UpstreamUnavailableError("Unable to verify transaction on-chain") from e

        if not check.exists:
            raise NotFoundError(
                "Transaction not found on blockchain. Please ensure the transaction is confirmed."
            )
        if not check.confirmed:
            raise TooEarlyError("Transaction not yet confirmed. Please wait for confirmation and try again.")
        if not check.success:
            raise ValidationError("Transaction failed on blockchain", details="Transaction reverted on-chain")
        if check.from_address != sender_wallet.lower():
            raise ForbiddenError("Transaction sender does not match your wallet address")
        if not check.pays(recipient_wallet):
            if token_contract and check.has_token_transfer(token_contract, sender_wallet, recipient_wallet):
                logger.warning(
                    "Rejecting tip %s: recipient paid by a %s Transfer log, not by the transaction target",
                    tx_hash,
                    token_contract,
                )
            raise ForbiddenError("Transaction recipient does not match target user wallet")

        logger.info(
            "Verified tip transaction %s (block %s, %d confirmations)",
            tx_hash,
            check.block_number,
            check.confirmations,
        )
        return check
