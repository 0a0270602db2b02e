"""ERC-20 balance and metadata resolution via ``eth_call``."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from pebloq_wallet.chain.abi import (
    DECIMALS_SELECTOR,
    NAME_SELECTOR,
    SYMBOL_SELECTOR,
    AbiDecodeError,
    balance_of_call,
    decode_string,
    decode_uint,
)
from pebloq_wallet.chain.client import ChainClientError
from pebloq_wallet.wallet.models import TokenBalance, format_units

if TYPE_CHECKING:
    from pebloq_wallet.chain.client import ChainClient

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18
DEFAULT_SYMBOL = "UNKNOWN"
DEFAULT_NAME = "Unknown Token"
MAX_DECIMALS = 255


@dataclass(frozen=True)
class TokenMetadata:
    decimals: int = DEFAULT_DECIMALS
    symbol: str = DEFAULT_SYMBOL
    name: str = DEFAULT_NAME


class BalanceResolver:
    """Resolves balances and display metadata for candidate token contracts.

    Per-contract failures never abort a batch: a failing ``balanceOf`` drops
    the contract, failing metadata reads fall back to `TokenMetadata`
    defaults.
    """

    def __init__(self, chain_client: ChainClient, *, metadata_cache_ttl_seconds: int | None = None) -> None:
        self._chain = chain_client
        self._metadata_ttl = metadata_cache_ttl_seconds

    async def resolve(self, wallet: str, contracts: Iterable[str]) -> list[TokenBalance]:
        """Resolve every contract concurrently, keeping balances that display above zero."""
        results = await asyncio.gather(*(self.resolve_one(wallet, c) for c in contracts))
        return [r for r in results if r is not None]

    async def resolve_one(self, wallet: str, contract: str) -> TokenBalance | None:
        contract = contract.lower()
        try:
            raw_balance = decode_uint(await self._chain.call(contract, balance_of_call(wallet)))
        except (ChainClientError, AbiDecodeError) as e:
            logger.debug("balanceOf failed for %s on %s: %s", wallet, contract, e)
            return None
        if raw_balance == 0:
            return None

        metadata = await self.read_metadata(contract)
        balance = format_units(raw_balance, metadata.decimals)
        if Decimal(balance) == 0:
            logger.debug("Dropping %s on %s: balance rounds to %s", contract, wallet, balance)
            return None
        return TokenBalance(
            contract_address=contract,
            symbol=metadata.symbol,
            name=metadata.name,
            raw_balance=raw_balance,
            decimals=metadata.decimals,
            balance=balance,
        )

    async def read_metadata(self, contract: str) -> TokenMetadata:
        decimals, symbol, name = await asyncio.gather(
            self.read_decimals(contract),
            self.read_string(contract, SYMBOL_SELECTOR),
            self.read_string(contract, NAME_SELECTOR),
        )
        return TokenMetadata(
            decimals=decimals,
            symbol=symbol or DEFAULT_SYMBOL,
            name=name or DEFAULT_NAME,
        )

    async def read_decimals(self, contract: str) -> int:
        try:
            decimals = decode_uint(
                await self._chain.call_cached(contract, DECIMALS_SELECTOR, ttl=self._metadata_ttl)
            )
        except (ChainClientError, AbiDecodeError) as e:
            logger.debug("decimals() failed on %s: %s", contract, e)
            return DEFAULT_DECIMALS
        if decimals > MAX_DECIMALS:
            logger.debug("decimals() on %s returned out-of-range %d", contract, decimals)
            return DEFAULT_DECIMALS
        return decimals

    async def read_string(self, contract: str, selector: str) -> str | None:
        """Read a string-returning view such as ``symbol()`` or ``name()``."""
        try:
            return decode_string(await self._chain.call_cached(contract, selector, ttl=self._metadata_ttl))
        except (ChainClientError, AbiDecodeError) as e:
            logger.debug("String call %s failed on %s: %s", selector, contract, e)
            return None
