"""Tests for on-chain tip transaction verification."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pebloq_wallet.chain.abi import TRANSFER_TOPIC, pad_address_topic
from pebloq_wallet.chain.client import RPCError
from pebloq_wallet.errors import (
    ForbiddenError,
    NotFoundError,
    TooEarlyError,
    UpstreamUnavailableError,
    ValidationError,
)
from pebloq_wallet.tips.verification import TransactionCheck, TransactionVerifier

TX_HASH = "0x" + "ab" * 32
SENDER = "0x1234567890abcdef1234567890abcdef12345678"
RECIPIENT = "0xabcdef1234567890abcdef1234567890abcdef12"
TOKEN = "0x84a71ccd554cc1b02749b35d22f684cc8ec987e1"


def _receipt(*, to: str | None = RECIPIENT, status: int = 1, block: int = 100, logs=None) -> dict:
    return {
        "transactionHash": TX_HASH,
        "blockNumber": block,
        "status": status,
        "from": SENDER.upper().replace("0X", "0x"),
        "to": to,
        "logs": logs or [],
    }


def _erc20_log(sender: str, recipient: str, contract: str = TOKEN) -> dict:
    return {
        "address": contract,
        "topics": [TRANSFER_TOPIC, pad_address_topic(sender), pad_address_topic(recipient)],
        "data": "0x" + format(10**18, "x").zfill(64),
        "blockNumber": 100,
        "logIndex": 0,
    }


@pytest.fixture
def chain() -> MagicMock:
    chain = MagicMock()
    chain.get_transaction_receipt = AsyncMock(return_value=_receipt())
    chain.get_block_number = AsyncMock(return_value=104)
    return chain


class TestTransactionCheck:
    def test_direct_payment(self) -> None:
        check = TransactionCheck(exists=True, to_address=RECIPIENT)

        assert check.pays(RECIPIENT.upper().replace("0X", "0x"))

    def test_call_to_token_contract_does_not_pay_recipient(self) -> None:
        check = TransactionCheck(exists=True, to_address=TOKEN)

        assert not check.pays(RECIPIENT)

    def test_contract_creation_pays_nobody(self) -> None:
        assert not TransactionCheck(exists=True, to_address=None).pays(RECIPIENT)


class TestCheck:
    @pytest.mark.asyncio
    async def test_decodes_receipt(self, chain: MagicMock) -> None:
        chain.get_transaction_receipt = AsyncMock(
            return_value=_receipt(to=TOKEN, logs=[_erc20_log(SENDER, RECIPIENT)])
        )
        verifier = TransactionVerifier(chain, required_confirmations=3)

        check = await verifier.check(TX_HASH)

        assert check.exists and check.success and check.confirmed
        assert check.confirmations == 5
        assert check.from_address == SENDER
        assert check.to_address == TOKEN
        assert len(check.transfers) == 1
        assert check.has_token_transfer(TOKEN, SENDER, RECIPIENT)
        assert not check.pays(RECIPIENT)

    @pytest.mark.asyncio
    async def test_missing_receipt(self, chain: MagicMock) -> None:
        chain.get_transaction_receipt = AsyncMock(return_value=None)

        check = await TransactionVerifier(chain).check(TX_HASH)

        assert check.exists is False
        chain.get_block_number.assert_not_awaited()


class TestVerifyTip:
    @pytest.mark.asyncio
    async def test_accepts_direct_native_tip(self, chain: MagicMock) -> None:
        check = await TransactionVerifier(chain).verify_tip(
            TX_HASH, sender_wallet=SENDER, recipient_wallet=RECIPIENT
        )

        assert check.block_number == 100

    @pytest.mark.asyncio
    async def test_rejects_token_transfer_log_to_recipient(self, chain: MagicMock) -> None:
        chain.get_transaction_receipt = AsyncMock(
            return_value=_receipt(to=TOKEN, logs=[_erc20_log(SENDER, RECIPIENT)])
        )

        with pytest.raises(ForbiddenError, match="recipient does not match"):
            await TransactionVerifier(chain).verify_tip(
                TX_HASH, sender_wallet=SENDER, recipient_wallet=RECIPIENT, token_contract=TOKEN
            )

    @pytest.mark.asyncio
    async def test_accepts_token_tip_sent_to_recipient(self, chain: MagicMock) -> None:
        check = await TransactionVerifier(chain).verify_tip(
            TX_HASH, sender_wallet=SENDER, recipient_wallet=RECIPIENT, token_contract=TOKEN
        )

        assert check.to_address == RECIPIENT

    @pytest.mark.asyncio
    async def test_rpc_failure_is_unavailable(self, chain: MagicMock) -> None:
        chain.get_transaction_receipt = AsyncMock(side_effect=RPCError("down"))

        with pytest.raises(UpstreamUnavailableError, match="Unable to verify transaction on-chain"):
            await TransactionVerifier(chain).verify_tip(
                TX_HASH, sender_wallet=SENDER, recipient_wallet=RECIPIENT
            )

    @pytest.mark.asyncio
    async def test_not_found(self, chain: MagicMock) -> None:
        chain.get_transaction_receipt = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError, match="Transaction not found on blockchain"):
            await TransactionVerifier(chain).verify_tip(
                TX_HASH, sender_wallet=SENDER, recipient_wallet=RECIPIENT
            )

    @pytest.mark.asyncio
    async def test_not_enough_confirmations(self, chain: MagicMock) -> None:
        chain.get_block_number = AsyncMock(return_value=100)

        with pytest.raises(TooEarlyError) as exc_info:
            await TransactionVerifier(chain, required_confirmations=2).verify_tip(
                TX_HASH, sender_wallet=SENDER, recipient_wallet=RECIPIENT
            )
        assert exc_info.value.status_code == 425

    @pytest.mark.asyncio
    async def test_reverted_checked_before_addresses(self, chain: MagicMock) -> None:
        chain.get_transaction_receipt = AsyncMock(return_value=_receipt(to=None, status=0))

        with pytest.raises(ValidationError, match="Transaction failed on blockchain"):
            await TransactionVerifier(chain).verify_tip(
                TX_HASH, sender_wallet=RECIPIENT, recipient_wallet=SENDER
            )

    @pytest.mark.asyncio
    async def test_sender_mismatch(self, chain: MagicMock) -> None:
        with pytest.raises(ForbiddenError, match="sender does not match"):
            await TransactionVerifier(chain).verify_tip(
                TX_HASH, sender_wallet=RECIPIENT, recipient_wallet=RECIPIENT
            )

    @pytest.mark.asyncio
    async def test_recipient_mismatch(self, chain: MagicMock) -> None:
        chain.get_transaction_receipt = AsyncMock(
            return_value=_receipt(to=TOKEN, logs=[_erc20_log(SENDER, SENDER)])
        )

        with pytest.raises(ForbiddenError, match="recipient does not match"):
            await TransactionVerifier(chain).verify_tip(
                TX_HASH, sender_wallet=SENDER, recipient_wallet=RECIPIENT, token_contract=TOKEN
            )
