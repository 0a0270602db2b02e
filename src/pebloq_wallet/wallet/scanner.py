"""Transfer-log scanning for wallet holdings discovery.

The scanner pulls every ``Transfer`` log into and out of a wallet and
replays them in chain order:
- 3-topic logs (ERC-20) received by the wallet make the contract a balance candidate
- 4-topic logs (ERC-721) add or remove the token ID from the wallet's holdings
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from pebloq_wallet.chain.abi import (
    TRANSFER_TOPIC,
    AbiDecodeError,
    pad_address_topic,
    to_hex,
    topic_to_address,
    topic_to_int,
)
from pebloq_wallet.wallet.models import TransferLog, WalletHoldings

if TYPE_CHECKING:
    from pebloq_wallet.chain.client import ChainClient

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(to_hex(value), 16)


def decode_transfer_log(log: dict[str, Any]) -> TransferLog | None:
    """Decode a raw ``eth_getLogs`` entry, returning None for unusable logs."""
    topics = log.get("topics") or []
    if len(topics) < 3:
        return None
    try:
        if to_hex(topics[0]) != TRANSFER_TOPIC:
            return None
        token_id = topic_to_int(topics[3]) if len(topics) >= 4 else None
        return TransferLog(
            contract=to_hex(log["address"]),
            from_address=topic_to_address(topics[1]),
            to_address=topic_to_address(topics[2]),
            token_id=token_id,
            block_number=_as_int(log.get("blockNumber", 0)),
            log_index=_as_int(log.get("logIndex", 0)),
        )
    except (AbiDecodeError, KeyError, ValueError) as e:
        logger.debug("Skipping malformed Transfer log %r: %s", log, e)
        return None


def replay_transfers(address: str, logs: Iterable[TransferLog]) -> WalletHoldings:
    """Fold transfer logs into current holdings.

    Logs are applied in (block_number, log_index) order; a log seen twice
    (a self-transfer matches both the incoming and outgoing query) is
    applied once.
    """
    wallet = address.lower()
    unique: dict[tuple[int, int, str], TransferLog] = {}
    for log in logs:
        unique.setdefault((log.block_number, log.log_index, log.contract), log)

    holdings = WalletHoldings()
    for _, log in sorted(unique.items(), key=lambda item: item[0]):
        if log.token_id is None:
            if log.to_address == wallet:
                holdings.erc20_contracts.add(log.contract)
            continue

        owned = holdings.nfts.setdefault(log.contract, set())
        if log.to_address == wallet:
            owned.add(log.token_id)
        elif log.from_address == wallet:
            owned.discard(log.token_id)

    holdings.nfts = {contract: ids for contract, ids in holdings.nfts.items() if ids}
    return holdings


class TransferLogScanner:
    """Discovers ERC-20 candidates and owned NFTs from Transfer logs.

    Example:
        ```python
        scanner = TransferLogScanner(chain, from_block=0, chunk_size_blocks=50_000)
        holdings = await scanner.scan("0x...")
        ```
    """

    def __init__(
        self,
        chain_client: ChainClient,
        *,
        from_block: int = 0,
        chunk_size_blocks: int | None = None,
        excluded_contracts: Sequence[str] = (),
    ) -> None:
        self._chain = chain_client
        self._from_block = from_block
        self._chunk = chunk_size_blocks
        self._excluded = frozenset(c.lower() for c in excluded_contracts)

    async def scan(self, address: str) -> WalletHoldings:
        """Scan incoming and outgoing Transfer logs for `address`.

        Raises:
            RPCError: If log retrieval fails on every endpoint.
        """
        padded = pad_address_topic(address)
        incoming, outgoing = await asyncio.gather(
            self._fetch_logs([TRANSFER_TOPIC, None, padded]),
            self._fetch_logs([TRANSFER_TOPIC, padded]),
        )
        logger.debug(
            "Transfer scan for %s: %d incoming, %d outgoing logs",
            address,
            len(incoming),
            len(outgoing),
        )

        decoded = []
        for raw in [*incoming, *outgoing]:
            log = decode_transfer_log(raw)
            if log is None or log.contract in self._excluded:
                continue
            decoded.append(log)
        return replay_transfers(address, decoded)

    async def _fetch_logs(self, topics: list[str | None]) -> list[dict[str, Any]]:
        if self._chunk is None:
            return await self._chain.get_logs(
                {"fromBlock": self._from_block, "toBlock": "latest", "topics": topics}
            )

        latest = await self._chain.get_block_number()
        logs: list[dict[str, Any]] = []
        for from_block in range(self._from_block, latest + 1, self._chunk):
            to_block = min(latest, from_block + self._chunk - 1)
            logs.extend(
                await self._chain.get_logs(
                    {"fromBlock": from_block, "toBlock": to_block, "topics": topics}
                )
            )
        return logs
