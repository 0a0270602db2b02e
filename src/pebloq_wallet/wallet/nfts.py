"""NFT collection building: token standard detection and tokenURI metadata."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from pebloq_wallet.chain.abi import (
    ERC721_INTERFACE_ID,
    ERC1155_INTERFACE_ID,
    NAME_SELECTOR,
    SYMBOL_SELECTOR,
    AbiDecodeError,
    decode_bool,
    decode_string,
    supports_interface_call,
    token_uri_call,
)
from pebloq_wallet.chain.client import ChainClientError
from pebloq_wallet.wallet.models import NFT, MediaType, NFTCollection, NFTMetadata, TokenType, WalletHoldings

if TYPE_CHECKING:
    from pebloq_wallet.chain.client import ChainClient
    from pebloq_wallet.storage.repos import NFTCollectionDTO
    from pebloq_wallet.wallet.resolver import BalanceResolver

logger = logging.getLogger(__name__)

IPFS_GATEWAY = "https://ipfs.io/ipfs/"
ARWEAVE_GATEWAY = "https://arweave.net/"

_MEDIA_PATTERNS: list[tuple[re.Pattern[str], MediaType]] = [
    (re.compile(r"\.(mp4|webm|mov|avi|mkv|m4v)$"), "video"),
    (re.compile(r"\.(mp3|wav|ogg|m4a|flac)$"), "audio"),
    (re.compile(r"\.(glb|gltf|obj|fbx|usdz)$"), "model"),
    (re.compile(r"\.(html|htm)$"), "html"),
]


def normalize_url(url: str | None) -> str | None:
    """Rewrite ``ipfs://`` and ``ar://`` URIs to public HTTP gateways."""
    if not url:
        return None
    if url.startswith("ipfs://"):
        return IPFS_GATEWAY + url[len("ipfs://") :]
    if url.startswith("ar://"):
        return ARWEAVE_GATEWAY + url[len("ar://") :]
    return url


def detect_media_type(url: str) -> MediaType:
    lower = url.lower()
    for pattern, media_type in _MEDIA_PATTERNS:
        if pattern.search(lower):
            return media_type
    return "image"


def parse_metadata(data: dict[str, Any]) -> NFTMetadata:
    image = normalize_url(data.get("image") or data.get("image_url") or data.get("imageUrl"))
    animation_url = normalize_url(data.get("animation_url") or data.get("animationUrl"))
    if animation_url:
        media_type = detect_media_type(animation_url)
    elif image:
        media_type = detect_media_type(image)
    else:
        media_type = "image"
    attributes = data.get("attributes")
    return NFTMetadata(
        name=data.get("name"),
        description=data.get("description"),
        image=image,
        animation_url=animation_url,
        external_url=data.get("external_url"),
        attributes=attributes if isinstance(attributes, list) else None,
        media_type=media_type,
    )


class NFTCollectionBuilder:
    """Turns scanned NFT holdings into collection payloads.

    Metadata is fetched for at most `max_metadata` NFTs per request; the
    remaining NFTs are returned with identifiers only.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        resolver: BalanceResolver,
        http_client: httpx.AsyncClient,
        *,
        max_metadata: int = 50,
        metadata_timeout_seconds: float = 5.0,
        metadata_cache_ttl_seconds: int | None = None,
    ) -> None:
        self._chain = chain_client
        self._resolver = resolver
        self._http = http_client
        self._max_metadata = max_metadata
        self._timeout = metadata_timeout_seconds
        self._cache_ttl = metadata_cache_ttl_seconds

    async def detect_token_type(self, contract: str) -> TokenType | None:
        """Detect the token standard with ERC-165, None when neither is reported."""
        for interface_id, token_type in ((ERC721_INTERFACE_ID, "ERC721"), (ERC1155_INTERFACE_ID, "ERC1155")):
            try:
                supported = decode_bool(
                    await self._chain.call_cached(
                        contract,
                        supports_interface_call(interface_id),
                        ttl=self._cache_ttl,
                    )
                )
            except (ChainClientError, AbiDecodeError) as e:
                logger.debug("supportsInterface(%s) failed on %s: %s", interface_id, contract, e)
                continue
            if supported:
                return token_type  # type: ignore[return-value]
        return None

    async def read_token_uri(self, contract: str, token_id: int) -> str | None:
        try:
            return decode_string(
                await self._chain.call_cached(contract, token_uri_call(token_id), ttl=self._cache_ttl)
            )
        except (ChainClientError, AbiDecodeError) as e:
            logger.debug("tokenURI(%d) failed on %s: %s", token_id, contract, e)
            return None

    async def fetch_metadata(self, token_uri: str) -> NFTMetadata | None:
        url = normalize_url(token_uri)
        if not url or not url.startswith(("http://", "https://")):
            return None
        try:
            response = await self._http.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Metadata fetch failed for %s: %s", url, e)
            return None
        if not isinstance(data, dict):
            return None
        return parse_metadata(data)

    async def _load_nft_metadata(self, contract: str, token_id: int) -> NFTMetadata | None:
        token_uri = await self.read_token_uri(contract, token_id)
        if token_uri is None:
            return None
        return await self.fetch_metadata(token_uri)

    async def build(
        self,
        holdings: WalletHoldings,
        *,
        known_collections: Mapping[str, NFTCollectionDTO] | None = None,
    ) -> list[NFTCollection]:
        """Build one collection per contract, NFTs ordered by token ID."""
        known_collections = known_collections or {}
        contracts = sorted(holdings.nfts)

        descriptors = await asyncio.gather(
            *(
                asyncio.gather(
                    self.detect_token_type(c),
                    self._resolver.read_string(c, NAME_SELECTOR),
                    self._resolver.read_string(c, SYMBOL_SELECTOR),
                )
                for c in contracts
            )
        )

        keys = [(c, token_id) for c in contracts for token_id in sorted(holdings.nfts[c])]
        with_metadata = keys[: self._max_metadata]
        fetched = await asyncio.gather(*(self._load_nft_metadata(c, t) for c, t in with_metadata))
        metadata_by_key = dict(zip(with_metadata, fetched, strict=True))

        collections: list[NFTCollection] = []
        for contract, (token_type, name, symbol) in zip(contracts, descriptors, strict=True):
            known = known_collections.get(contract)
            collection_name = name or (known.name if known else None)
            resolved_type: TokenType = token_type or "ERC721"
            nfts = []
            for token_id in sorted(holdings.nfts[contract]):
                metadata = metadata_by_key.get((contract, token_id))
                nfts.append(
                    NFT(
                        contract_address=contract,
                        token_id=token_id,
                        token_type=resolved_type,
                        name=metadata.name if metadata else None,
                        collection_name=collection_name,
                        image_url=metadata.image if metadata else None,
                        animation_url=metadata.animation_url if metadata else None,
                        media_type=metadata.media_type if metadata else None,
                        metadata=metadata,
                    )
                )
            collections.append(
                NFTCollection(
                    contract_address=contract,
                    token_type=resolved_type,
                    nfts=tuple(nfts),
                    name=collection_name,
                    symbol=symbol or (known.symbol if known else None),
                    is_blacklisted=known.is_blacklisted if known else False,
                    is_verified=known.is_verified if known else False,
                )
            )
        return collections
