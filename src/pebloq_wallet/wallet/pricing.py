"""DexScreener price and logo enrichment."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

import httpx

from pebloq_wallet.chain.abi import ZERO_ADDRESS
from pebloq_wallet.wallet.models import PriceInfo, TokenBalance, usd_value

logger = logging.getLogger(__name__)

ETH_LOGO_URL = "https://assets.coingecko.com/coins/images/279/small/ethereum.png"

FALLBACK_LOGOS: dict[str, str] = {
    # USDC.e
    "0x84a71ccd554cc1b02749b35d22f684cc8ec987e1": "https://assets.coingecko.com/coins/images/6319/small/usdc.png",
    ZERO_ADDRESS: ETH_LOGO_URL,
}


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _liquidity_usd(pair: dict[str, Any]) -> float:
    liquidity = pair.get("liquidity") or {}
    return _to_float(liquidity.get("usd")) or 0.0


def select_best_pair(pairs: Sequence[dict[str, Any]], chain_ids: Sequence[str]) -> dict[str, Any] | None:
    """Pick the most liquid pair, preferring pairs on the configured chains."""
    if not pairs:
        return None
    on_chain = [p for p in pairs if p.get("chainId") in chain_ids]
    candidates = on_chain or list(pairs)
    return max(candidates, key=_liquidity_usd)


def price_from_pair(pair: dict[str, Any], token_address: str) -> tuple[float | None, dict[str, Any] | None]:
    """Return the USD price of `token_address` and its side of the pair.

    DexScreener quotes ``priceUsd`` for the base token; when the token is
    the quote side the price is derived as ``priceUsd / priceNative``.
    """
    address = token_address.lower()
    base = pair.get("baseToken") or {}
    quote = pair.get("quoteToken") or {}
    price_usd = _to_float(pair.get("priceUsd"))

    if str(base.get("address", "")).lower() == address:
        return price_usd, base
    if str(quote.get("address", "")).lower() == address:
        price_native = _to_float(pair.get("priceNative"))
        if price_usd is None or not price_native:
            return None, quote
        return price_usd / price_native, quote
    return price_usd, None


class PriceEnricher:
    """Looks up token prices and logos on DexScreener.

    Lookups never raise: any HTTP or parsing failure yields a `PriceInfo`
    carrying only the hardcoded fallback logo, if one exists.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str = "https://api.dexscreener.com",
        chain_ids: Sequence[str] = ("abstract", "abstracttestnet"),
        timeout_seconds: float = 10.0,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._chain_ids = tuple(chain_ids)
        self._timeout = timeout_seconds

    async def get_price_info(self, token_address: str) -> PriceInfo:
        address = token_address.lower()
        fallback_logo = FALLBACK_LOGOS.get(address)
        try:
            response = await self._http.get(
                f"{self._base_url}/latest/dex/tokens/{address}",
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Market data lookup failed for %s: %s", address, e)
            return PriceInfo(logo_url=fallback_logo)

        pairs = data.get("pairs") if isinstance(data, dict) else None
        if not isinstance(pairs, list):
            return PriceInfo(logo_url=fallback_logo)
        pair = select_best_pair([p for p in pairs if isinstance(p, dict)], self._chain_ids)
        if pair is None:
            return PriceInfo(logo_url=fallback_logo)

        price_usd, token_side = price_from_pair(pair, address)
        info = pair.get("info") or {}
        logo_url = (token_side or {}).get("imageUrl") or info.get("imageUrl") or fallback_logo
        return PriceInfo(price_usd=price_usd, logo_url=logo_url)

    async def enrich(self, tokens: Sequence[TokenBalance]) -> list[TokenBalance]:
        """Attach price, value and logo to each token concurrently."""
        infos = await asyncio.gather(*(self.get_price_info(t.contract_address) for t in tokens))
        return [
            replace(
                token,
                price_usd=info.price_usd,
                value_usd=usd_value(token.raw_balance, token.decimals, info.price_usd),
                logo_url=info.logo_url,
            )
            for token, info in zip(tokens, infos, strict=True)
        ]
