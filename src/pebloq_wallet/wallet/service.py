"""Wallet holdings orchestration.

`WalletHoldingsService` runs the pipeline for one request:

1. Scan Transfer logs for ERC-20 candidates and owned NFTs
2. Resolve balances and metadata per contract
3. Price tokens and the native balance
4. Apply global and per-user visibility rules
5. Assemble the response, recomputing totals from the visible tokens

Scan results (before visibility) may be cached; rules are always read
fresh from the database.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from pebloq_wallet.chain.client import RPCError
from pebloq_wallet.errors import UpstreamUnavailableError
from pebloq_wallet.storage.repos import (
    BlacklistedTokenRepository,
    HiddenNFTRepository,
    HiddenTokenRepository,
    NFTCollectionRepository,
    VerifiedTokenRepository,
)
from pebloq_wallet.wallet.assembler import assemble_balance, assemble_nfts, build_native_balance
from pebloq_wallet.wallet.models import (
    NativeBalance,
    NFTCollection,
    PriceInfo,
    TokenBalance,
    VisibilityRules,
    WalletBalance,
    WalletHoldings,
    WalletNFTs,
    parse_wallet_address,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from pebloq_wallet.chain.client import ChainClient
    from pebloq_wallet.wallet.cache import WalletCache
    from pebloq_wallet.wallet.discovery import DiscoveredTokenRecorder
    from pebloq_wallet.wallet.nfts import NFTCollectionBuilder
    from pebloq_wallet.wallet.pricing import PriceEnricher
    from pebloq_wallet.wallet.resolver import BalanceResolver
    from pebloq_wallet.wallet.scanner import TransferLogScanner

logger = logging.getLogger(__name__)


class WalletHoldingsService:
    """Builds balance and NFT payloads for a wallet address."""

    def __init__(
        self,
        chain_client: ChainClient,
        scanner: TransferLogScanner,
        resolver: BalanceResolver,
        pricing: PriceEnricher,
        nft_builder: NFTCollectionBuilder,
        *,
        native_price_token: str,
        common_tokens: Sequence[str] = (),
        cache: WalletCache | None = None,
        recorder: DiscoveredTokenRecorder | None = None,
        totals_verified_only: bool = False,
    ) -> None:
        self._chain = chain_client
        self._scanner = scanner
        self._resolver = resolver
        self._pricing = pricing
        self._nft_builder = nft_builder
        self._native_price_token = native_price_token.lower()
        self._common_tokens = tuple(t.lower() for t in common_tokens)
        self._cache = cache
        self._recorder = recorder
        self._totals_verified_only = totals_verified_only

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    async def get_balance(
        self,
        session: AsyncSession,
        address: str | None,
        *,
        user_id: str | None = None,
    ) -> WalletBalance:
        """Return the visible native and token balances of `address`.

        Raises:
            ValidationError: If the address is missing or malformed.
            UpstreamUnavailableError: If the native balance cannot be read.
        """
        wallet = parse_wallet_address(address)
        native, tokens = await self._load_unfiltered_balance(wallet)

        blacklisted = await BlacklistedTokenRepository(session).addresses()
        hidden = await HiddenTokenRepository(session).addresses_for_user(user_id) if user_id else []
        verified = await VerifiedTokenRepository(session).addresses()

        rules = VisibilityRules.build(blacklisted_tokens=blacklisted, hidden_tokens=hidden)
        return assemble_balance(
            wallet,
            native,
            tokens,
            rules,
            verified_tokens=frozenset(verified),
            totals_verified_only=self._totals_verified_only,
        )

    async def _load_unfiltered_balance(self, wallet: str) -> tuple[NativeBalance, list[TokenBalance]]:
        cache_key = f"balance:{wallet.lower()}"
        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                logger.debug("Wallet balance cache hit for %s", wallet)
                return _balance_from_cache(cached)

        try:
            raw_wei, native_price, holdings = await asyncio.gather(
                self._chain.get_balance_latest(wallet),
                self._pricing.get_price_info(self._native_price_token),
                self._scan_for_balance(wallet),
            )
        except RPCError as e:
            raise UpstreamUnavailableError("Failed to fetch wallet balance") from e

        candidates = list(dict.fromkeys([*self._common_tokens, *sorted(holdings.erc20_contracts)]))
        logger.info(
            "Checking %d token contracts for %s (%d discovered)",
            len(candidates),
            wallet,
            len(holdings.erc20_contracts),
        )
        balances = await self._resolver.resolve(wallet, candidates)
        tokens = await self._pricing.enrich(balances)
        native = build_native_balance(raw_wei, PriceInfo(price_usd=native_price.price_usd))

        if self._recorder is not None:
            self._recorder.record(tokens)
        if self._cache is not None:
            await self._cache.set(cache_key, _balance_to_cache(native, tokens))
        return native, tokens

    async def _scan_for_balance(self, wallet: str) -> WalletHoldings:
        try:
            return await self._scanner.scan(wallet)
        except RPCError as e:
            logger.warning("Token discovery failed for %s, using common tokens only: %s", wallet, e)
            return WalletHoldings()

    # ------------------------------------------------------------------
    # NFTs
    # ------------------------------------------------------------------

    async def get_nfts(
        self,
        session: AsyncSession,
        address: str | None,
        *,
        user_id: str | None = None,
    ) -> WalletNFTs:
        """Return the visible NFT collections owned by `address`.

        Raises:
            ValidationError: If the address is missing or malformed.
            UpstreamUnavailableError: If the Transfer log scan fails.
        """
        wallet = parse_wallet_address(address)
        collections_repo = NFTCollectionRepository(session)
        collections = await self._load_unfiltered_nfts(wallet, collections_repo)

        hidden = await HiddenNFTRepository(session).keys_for_user(user_id) if user_id else []
        blacklisted = await collections_repo.blacklisted_addresses()
        rules = VisibilityRules.build(hidden_nfts=hidden, blacklisted_collections=blacklisted)
        return assemble_nfts(wallet, collections, rules)

    async def _load_unfiltered_nfts(
        self,
        wallet: str,
        collections_repo: NFTCollectionRepository,
    ) -> list[NFTCollection]:
        cache_key = f"nfts:{wallet.lower()}"
        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                logger.debug("Wallet NFT cache hit for %s", wallet)
                return [NFTCollection.from_dict(c) for c in cached.get("collections", [])]

        try:
            holdings = await self._scanner.scan(wallet)
        except RPCError as e:
            raise UpstreamUnavailableError("Failed to fetch NFTs") from e

        known = await collections_repo.get_many(holdings.nfts.keys())
        collections = await self._nft_builder.build(holdings, known_collections=known)
        if self._cache is not None:
            await self._cache.set(cache_key, {"collections": [c.to_dict() for c in collections]})
        return collections


def _balance_to_cache(native: NativeBalance, tokens: Sequence[TokenBalance]) -> dict[str, Any]:
    return {
        "rawWei": str(native.raw_wei),
        "nativeBalance": native.to_dict(),
        "tokens": [t.to_dict() for t in tokens],
    }


def _balance_from_cache(data: dict[str, Any]) -> tuple[NativeBalance, list[TokenBalance]]:
    native = NativeBalance.from_dict(data["nativeBalance"], raw_wei=int(data.get("rawWei", 0)))
    return native, [TokenBalance.from_dict(t) for t in data.get("tokens", [])]
