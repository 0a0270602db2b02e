"""Tests for Transfer-log scanning and holdings replay."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pebloq_wallet.chain.abi import TRANSFER_TOPIC, pad_address_topic
from pebloq_wallet.chain.client import RPCError
from pebloq_wallet.wallet.models import TransferLog
from pebloq_wallet.wallet.scanner import TransferLogScanner, decode_transfer_log, replay_transfers

WALLET = "0x1234567890abcdef1234567890abcdef12345678"
OTHER = "0xabcdef1234567890abcdef1234567890abcdef12"
TOKEN = "0x84a71ccd554cc1b02749b35d22f684cc8ec987e1"
NFT_CONTRACT = "0x1111111111111111111111111111111111111111"
ETH_TOKEN = "0x000000000000000000000000000000000000800a"


def _raw_log(
    contract: str,
    from_address: str,
    to_address: str,
    *,
    token_id: int | None = None,
    block: int = 1,
    index: int = 0,
) -> dict:
    topics = [TRANSFER_TOPIC, pad_address_topic(from_address), pad_address_topic(to_address)]
    if token_id is not None:
        topics.append("0x" + format(token_id, "x").zfill(64))
    return {"address": contract, "topics": topics, "data": "0x", "blockNumber": block, "logIndex": index}


def _log(
    contract: str,
    from_address: str,
    to_address: str,
    *,
    token_id: int | None = None,
    block: int = 1,
    index: int = 0,
) -> TransferLog:
    return TransferLog(
        contract=contract,
        from_address=from_address,
        to_address=to_address,
        token_id=token_id,
        block_number=block,
        log_index=index,
    )


class TestDecodeTransferLog:
    def test_decodes_erc20_log(self) -> None:
        log = decode_transfer_log(_raw_log(TOKEN.upper().replace("0X", "0x"), OTHER, WALLET, block=5, index=2))

        assert log is not None
        assert log.contract == TOKEN
        assert log.from_address == OTHER
        assert log.to_address == WALLET
        assert log.token_id is None
        assert (log.block_number, log.log_index) == (5, 2)

    def test_decodes_nft_log(self) -> None:
        log = decode_transfer_log(_raw_log(NFT_CONTRACT, OTHER, WALLET, token_id=42))

        assert log is not None
        assert log.is_nft
        assert log.token_id == 42

    def test_hex_block_numbers(self) -> None:
        raw = _raw_log(TOKEN, OTHER, WALLET)
        raw["blockNumber"] = "0x10"
        raw["logIndex"] = "0x1"

        log = decode_transfer_log(raw)

        assert log is not None
        assert (log.block_number, log.log_index) == (16, 1)

    def test_skips_other_events(self) -> None:
        raw = _raw_log(TOKEN, OTHER, WALLET)
        raw["topics"][0] = "0x" + "ab" * 32
        assert decode_transfer_log(raw) is None

    def test_skips_short_topics(self) -> None:
        raw = _raw_log(TOKEN, OTHER, WALLET)
        raw["topics"] = raw["topics"][:2]
        assert decode_transfer_log(raw) is None


class TestReplayTransfers:
    def test_incoming_erc20_marks_candidate(self) -> None:
        holdings = replay_transfers(WALLET, [_log(TOKEN, OTHER, WALLET)])
        assert holdings.erc20_contracts == {TOKEN}
        assert holdings.nfts == {}

    def test_outgoing_only_erc20_is_not_candidate(self) -> None:
        holdings = replay_transfers(WALLET, [_log(TOKEN, WALLET, OTHER)])
        assert holdings.erc20_contracts == set()

    def test_nft_received_then_sent(self) -> None:
        holdings = replay_transfers(
            WALLET,
            [
                _log(NFT_CONTRACT, WALLET, OTHER, token_id=1, block=2),
                _log(NFT_CONTRACT, OTHER, WALLET, token_id=1, block=1),
                _log(NFT_CONTRACT, OTHER, WALLET, token_id=2, block=3),
            ],
        )
        assert holdings.nfts == {NFT_CONTRACT: {2}}
        assert holdings.nft_count == 1

    def test_nft_sent_then_received_back_is_owned(self) -> None:
        holdings = replay_transfers(
            WALLET,
            [
                _log(NFT_CONTRACT, OTHER, WALLET, token_id=7, block=1),
                _log(NFT_CONTRACT, WALLET, OTHER, token_id=7, block=2),
                _log(NFT_CONTRACT, OTHER, WALLET, token_id=7, block=3),
            ],
        )
        assert holdings.nfts == {NFT_CONTRACT: {7}}

    def test_log_order_within_block(self) -> None:
        holdings = replay_transfers(
            WALLET,
            [
                _log(NFT_CONTRACT, WALLET, OTHER, token_id=3, block=4, index=1),
                _log(NFT_CONTRACT, OTHER, WALLET, token_id=3, block=4, index=0),
            ],
        )
        assert holdings.nfts == {}

    def test_self_transfer_applied_once(self) -> None:
        self_transfer = _log(NFT_CONTRACT, WALLET, WALLET, token_id=9)
        holdings = replay_transfers(WALLET, [self_transfer, self_transfer])
        assert holdings.nfts == {NFT_CONTRACT: {9}}

    def test_mixed_case_wallet(self) -> None:
        holdings = replay_transfers(WALLET.upper().replace("0X", "0x"), [_log(TOKEN, OTHER, WALLET)])
        assert holdings.erc20_contracts == {TOKEN}


class TestTransferLogScanner:
    @pytest.mark.asyncio
    async def test_scan_single_request_queries(self) -> None:
        chain = MagicMock()
        chain.get_logs = AsyncMock(
            side_effect=lambda params: (
                [_raw_log(TOKEN, OTHER, WALLET)] if params["topics"][1] is None else []
            )
        )

        scanner = TransferLogScanner(chain)
        holdings = await scanner.scan(WALLET)

        assert holdings.erc20_contracts == {TOKEN}
        filters = [c.args[0] for c in chain.get_logs.await_args_list]
        assert {"fromBlock": 0, "toBlock": "latest", "topics": [TRANSFER_TOPIC, None, pad_address_topic(WALLET)]} in filters
        assert {"fromBlock": 0, "toBlock": "latest", "topics": [TRANSFER_TOPIC, pad_address_topic(WALLET)]} in filters

    @pytest.mark.asyncio
    async def test_scan_excludes_native_token_contract(self) -> None:
        chain = MagicMock()
        chain.get_logs = AsyncMock(return_value=[_raw_log(ETH_TOKEN, OTHER, WALLET)])

        scanner = TransferLogScanner(chain, excluded_contracts=[ETH_TOKEN])
        holdings = await scanner.scan(WALLET)

        assert holdings.erc20_contracts == set()

    @pytest.mark.asyncio
    async def test_scan_in_chunks(self) -> None:
        chain = MagicMock()
        chain.get_block_number = AsyncMock(return_value=250)
        chain.get_logs = AsyncMock(return_value=[])

        scanner = TransferLogScanner(chain, from_block=0, chunk_size_blocks=100)
        await scanner.scan(WALLET)

        ranges = sorted({(c.args[0]["fromBlock"], c.args[0]["toBlock"]) for c in chain.get_logs.await_args_list})
        assert ranges == [(0, 99), (100, 199), (200, 250)]

    @pytest.mark.asyncio
    async def test_scan_propagates_rpc_error(self) -> None:
        chain = MagicMock()
        chain.get_logs = AsyncMock(side_effect=RPCError("down"))

        with pytest.raises(RPCError):
            await TransferLogScanner(chain).scan(WALLET)
