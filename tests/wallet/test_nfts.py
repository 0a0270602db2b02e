"""Tests for NFT collection building and metadata parsing."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from pebloq_wallet.chain.abi import (
    ERC721_INTERFACE_ID,
    ERC1155_INTERFACE_ID,
    supports_interface_call,
    token_uri_call,
)
from pebloq_wallet.chain.client import CallRevertedError
from pebloq_wallet.storage.repos import NFTCollectionDTO
from pebloq_wallet.wallet.models import WalletHoldings
from pebloq_wallet.wallet.nfts import (
    NFTCollectionBuilder,
    detect_media_type,
    normalize_url,
    parse_metadata,
)

NFT_A = "0x1111111111111111111111111111111111111111"
NFT_B = "0x2222222222222222222222222222222222222222"


def _word(value: int) -> str:
    return "0x" + format(value, "x").zfill(64)


def _string(value: str) -> str:
    encoded = value.encode().hex()
    padded = encoded.ljust(((len(encoded) + 63) // 64) * 64, "0")
    return _word(32) + format(len(value), "x").zfill(64) + padded


def _builder(responses: dict[tuple[str, str], str], http_handler, *, max_metadata: int = 50) -> NFTCollectionBuilder:
    async def call_cached(to: str, data: str, *, ttl: int | None = None) -> str:
        if (to, data) not in responses:
            raise CallRevertedError("reverted")
        return responses[(to, data)]

    chain = MagicMock()
    chain.call_cached = AsyncMock(side_effect=call_cached)
    resolver = MagicMock()
    resolver.read_string = AsyncMock(return_value=None)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(http_handler))
    return NFTCollectionBuilder(chain, resolver, http_client, max_metadata=max_metadata)


def _no_http(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


class TestMetadataHelpers:
    def test_normalize_ipfs(self) -> None:
        assert normalize_url("ipfs://Qm123/1.json") == "https://ipfs.io/ipfs/Qm123/1.json"

    def test_normalize_arweave(self) -> None:
        assert normalize_url("ar://abc") == "https://arweave.net/abc"

    def test_normalize_passthrough(self) -> None:
        assert normalize_url("https://x.test/a.png") == "https://x.test/a.png"
        assert normalize_url("") is None

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://x.test/a.MP4", "video"),
            ("https://x.test/a.mp3", "audio"),
            ("https://x.test/a.glb", "model"),
            ("https://x.test/index.html", "html"),
            ("https://x.test/a.png", "image"),
        ],
    )
    def test_detect_media_type(self, url: str, expected: str) -> None:
        assert detect_media_type(url) == expected

    def test_parse_metadata_prefers_animation_media_type(self) -> None:
        metadata = parse_metadata(
            {
                "name": "Penguin #1",
                "image": "ipfs://img/1.png",
                "animation_url": "ipfs://anim/1.mp4",
                "attributes": [{"trait_type": "Hat", "value": "Cap"}],
            }
        )

        assert metadata.image == "https://ipfs.io/ipfs/img/1.png"
        assert metadata.animation_url == "https://ipfs.io/ipfs/anim/1.mp4"
        assert metadata.media_type == "video"
        assert metadata.attributes == [{"trait_type": "Hat", "value": "Cap"}]


class TestNFTCollectionBuilder:
    @pytest.mark.asyncio
    async def test_detects_erc1155(self) -> None:
        builder = _builder(
            {
                (NFT_A, supports_interface_call(ERC721_INTERFACE_ID)): _word(0),
                (NFT_A, supports_interface_call(ERC1155_INTERFACE_ID)): _word(1),
            },
            _no_http,
        )
        assert await builder.detect_token_type(NFT_A) == "ERC1155"

    @pytest.mark.asyncio
    async def test_build_with_metadata(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://ipfs.io/ipfs/meta/7"
            return httpx.Response(200, json={"name": "Item 7", "image": "ipfs://img/7.png"})

        builder = _builder(
            {
                (NFT_A, supports_interface_call(ERC721_INTERFACE_ID)): _word(1),
                (NFT_A, token_uri_call(7)): _string("ipfs://meta/7"),
            },
            handler,
        )
        known = {
            NFT_A: NFTCollectionDTO(
                contract_address=NFT_A,
                name="Known Collection",
                symbol="KNOWN",
                is_blacklisted=False,
                is_verified=True,
            )
        }

        [collection] = await builder.build(WalletHoldings(nfts={NFT_A: {7}}), known_collections=known)

        assert collection.token_type == "ERC721"
        assert collection.name == "Known Collection"
        assert collection.symbol == "KNOWN"
        assert collection.is_verified is True
        [nft] = collection.nfts
        assert nft.name == "Item 7"
        assert nft.image_url == "https://ipfs.io/ipfs/img/7.png"
        assert nft.media_type == "image"
        assert nft.collection_name == "Known Collection"

    @pytest.mark.asyncio
    async def test_metadata_failures_leave_nft_bare(self) -> None:
        builder = _builder(
            {(NFT_A, token_uri_call(1)): _string("https://meta.test/1")},
            lambda request: httpx.Response(404),
        )

        [collection] = await builder.build(WalletHoldings(nfts={NFT_A: {1, 2}}))

        assert collection.token_type == "ERC721"
        assert [n.token_id for n in collection.nfts] == [1, 2]
        assert all(n.metadata is None for n in collection.nfts)

    @pytest.mark.asyncio
    async def test_metadata_fetch_is_bounded(self) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json={"name": "x"})

        responses = {(NFT_B, token_uri_call(i)): _string(f"https://meta.test/{i}") for i in range(5)}
        builder = _builder(responses, handler, max_metadata=2)

        [collection] = await builder.build(WalletHoldings(nfts={NFT_B: set(range(5))}))

        assert collection.total_count == 5
        assert sorted(requested) == ["https://meta.test/0", "https://meta.test/1"]
        assert [n.metadata is not None for n in collection.nfts] == [True, True, False, False, False]

    @pytest.mark.asyncio
    async def test_collections_sorted_by_contract(self) -> None:
        builder = _builder({}, _no_http)

        collections = await builder.build(WalletHoldings(nfts={NFT_B: {1}, NFT_A: {2}}))

        assert [c.contract_address for c in collections] == [NFT_A, NFT_B]
