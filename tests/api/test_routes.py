"""Tests for the HTTP API."""

from collections.abc import Iterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from pebloq_wallet.api import create_app
from pebloq_wallet.config import DatabaseSettings, Settings
from pebloq_wallet.errors import UpstreamUnavailableError
from pebloq_wallet.storage.database import DatabaseManager
from pebloq_wallet.storage.repos import TipRepository, TokenDTO, TokenRepository, UserDTO, UserRepository
from pebloq_wallet.tips.service import TipService
from pebloq_wallet.wallet.assembler import build_native_balance
from pebloq_wallet.wallet.models import WalletBalance, WalletNFTs, parse_wallet_address

WALLET = "0x1234567890abcdef1234567890abcdef12345678"
RECIPIENT_WALLET = "0xabcdef1234567890abcdef1234567890abcdef12"
BANNED_WALLET = "0x9999999999999999999999999999999999999999"
TOKEN = "0x84A71ccD554Cc1b02749b35d22F684CC8ec987e1"
COLLECTION = "0x1111111111111111111111111111111111111111"
PENDING_HASH = "0x" + "77" * 32

USER = {"Authorization": "Bearer user-token"}
ADMIN = {"Authorization": "Bearer admin-token"}
BANNED = {"Authorization": "Bearer banned-token"}


async def _balance(session, address, *, user_id=None) -> WalletBalance:
    wallet = parse_wallet_address(address)
    return WalletBalance(
        wallet_address=wallet,
        native_balance=build_native_balance(10**18),
        tokens=(),
        total_value_usd=0.0,
    )


async def _nfts(session, address, *, user_id=None) -> WalletNFTs:
    return WalletNFTs(wallet_address=parse_wallet_address(address), collections=())


async def _seed(db: DatabaseManager) -> str:
    expires_at = datetime.now(UTC) + timedelta(hours=1)
    async with db.get_async_session() as session:
        users = UserRepository(session)
        await users.insert(UserDTO(id="user-1", wallet_address=WALLET, username="alice"))
        await users.insert(UserDTO(id="recipient-1", wallet_address=RECIPIENT_WALLET, username="bob"))
        await users.insert(UserDTO(id="admin-1", wallet_address=None, is_admin=True))
        await users.insert(UserDTO(id="banned-1", wallet_address=BANNED_WALLET, is_banned=True))
        await users.create_session("user-1", "user-token", expires_at=expires_at)
        await users.create_session("admin-1", "admin-token", expires_at=expires_at)
        await users.create_session("banned-1", "banned-token", expires_at=expires_at)
        await TokenRepository(session).insert(
            TokenDTO(id="usdc", name="USD Coin", symbol="USDC", contract_address=TOKEN, decimals=6)
        )
        pending = await TipRepository(session).insert(
            from_user_id="user-1",
            to_user_id="recipient-1",
            token_id="usdc",
            amount="3",
            transaction_hash=PENDING_HASH,
            status="PENDING",
            message=None,
            is_public=True,
        )
    return pending.id


@pytest.fixture
def wallet_service() -> MagicMock:
    service = MagicMock()
    service.get_balance = AsyncMock(side_effect=_balance)
    service.get_nfts = AsyncMock(side_effect=_nfts)
    return service


@pytest.fixture
def verifier() -> MagicMock:
    verifier = MagicMock()
    verifier.verify_tip = AsyncMock(return_value=None)
    return verifier


@pytest.fixture
def chain() -> MagicMock:
    chain = MagicMock()
    chain.health_check = AsyncMock(return_value=True)
    return chain


@pytest.fixture
def state() -> dict[str, str]:
    return {}


@pytest.fixture
def client(tmp_path, wallet_service, verifier, chain, state) -> Iterator[TestClient]:
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    app = create_app(Settings(database=DatabaseSettings(DATABASE_URL=url), ENVIRONMENT="production"))

    @asynccontextmanager
    async def lifespan(app):
        db = DatabaseManager(url)
        await db.init_schema_async()
        state["pending_tip_id"] = await _seed(db)
        app.state.db = db
        app.state.chain = chain
        app.state.wallet_service = wallet_service
        app.state.tip_service = TipService(verifier)
        yield
        await db.dispose_async()

    app.router.lifespan_context = lifespan
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "components": {"rpc": "healthy", "database": "healthy"},
        }

    def test_degraded_when_rpc_down(self, client: TestClient, chain: MagicMock) -> None:
        chain.health_check = AsyncMock(return_value=False)

        body = client.get("/healthz").json()

        assert body["status"] == "degraded"
        assert body["components"]["rpc"] == "unavailable"


class TestWalletRoutes:
    def test_missing_address(self, client: TestClient) -> None:
        response = client.get("/api/wallet/balance")

        assert response.status_code == 400
        assert response.json() == {"error": "Wallet address is required"}

    def test_invalid_address(self, client: TestClient) -> None:
        response = client.get("/api/wallet/nfts", params={"address": "0x1234"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid wallet address format"}

    def test_balance(self, client: TestClient, wallet_service: MagicMock) -> None:
        response = client.get("/api/wallet/balance", params={"address": WALLET, "userId": "user-1"})

        assert response.status_code == 200
        body = response.json()
        assert body["walletAddress"] == WALLET
        assert body["nativeBalance"]["balance"] == "1.000000"
        assert body["nativeBalance"]["symbol"] == "ETH"
        assert body["tokens"] == []
        assert wallet_service.get_balance.await_args.kwargs["user_id"] == "user-1"

    def test_nfts(self, client: TestClient) -> None:
        response = client.get("/api/wallet/nfts", params={"address": WALLET})

        assert response.json() == {"walletAddress": WALLET, "collections": [], "totalNFTs": 0}

    def test_upstream_failure(self, client: TestClient, wallet_service: MagicMock) -> None:
        wallet_service.get_nfts = AsyncMock(side_effect=UpstreamUnavailableError("Failed to fetch NFTs"))

        response = client.get("/api/wallet/nfts", params={"address": WALLET})

        assert response.status_code == 503
        assert response.json() == {"error": "Failed to fetch NFTs"}

    def test_unexpected_error_is_sanitized(self, client: TestClient, wallet_service: MagicMock) -> None:
        wallet_service.get_balance = AsyncMock(side_effect=RuntimeError("secret stack detail"))

        response = client.get("/api/wallet/balance", params={"address": WALLET})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestHiddenTokens:
    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.get("/api/tokens/hidden")

        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}

    def test_banned_user(self, client: TestClient) -> None:
        response = client.get("/api/tokens/hidden", headers=BANNED)

        assert response.status_code == 403
        assert response.json() == {"error": "Account is banned"}

    def test_hide_list_unhide(self, client: TestClient) -> None:
        created = client.post("/api/tokens/hidden", json={"tokenAddress": TOKEN, "symbol": "USDC"}, headers=USER)
        duplicate = client.post("/api/tokens/hidden", json={"tokenAddress": TOKEN.lower()}, headers=USER)
        listed = client.get("/api/tokens/hidden", headers=USER)

        assert created.status_code == 200
        assert created.json()["tokenAddress"] == TOKEN.lower()
        assert duplicate.status_code == 409
        assert duplicate.json() == {"error": "Token already hidden"}
        assert [h["tokenAddress"] for h in listed.json()] == [TOKEN.lower()]
        assert client.get("/api/tokens/hidden", headers=ADMIN).json() == []

        removed = client.delete("/api/tokens/hidden", params={"address": TOKEN}, headers=USER)

        assert removed.json() == {"success": True}
        assert client.get("/api/tokens/hidden", headers=USER).json() == []

    def test_address_validation(self, client: TestClient) -> None:
        missing = client.post("/api/tokens/hidden", json={}, headers=USER)
        invalid = client.post("/api/tokens/hidden", json={"tokenAddress": "0xnope"}, headers=USER)

        assert missing.json() == {"error": "Token address is required"}
        assert invalid.status_code == 400
        assert invalid.json() == {"error": "Invalid token address format"}


class TestHiddenNFTs:
    def test_hide_token_and_collection(self, client: TestClient) -> None:
        single = client.post("/api/nfts/hidden", json={"contractAddress": COLLECTION, "tokenId": 5}, headers=USER)
        whole = client.post("/api/nfts/hidden", json={"contractAddress": COLLECTION}, headers=USER)
        duplicate = client.post(
            "/api/nfts/hidden", json={"contractAddress": COLLECTION, "tokenId": "5"}, headers=USER
        )

        assert single.status_code == 200
        assert single.json()["tokenId"] == "5"
        assert whole.json()["tokenId"] is None
        assert duplicate.status_code == 409
        assert duplicate.json() == {"error": "NFT already hidden"}

        client.delete("/api/nfts/hidden", params={"address": COLLECTION, "tokenId": "5"}, headers=USER)

        remaining = client.get("/api/nfts/hidden", headers=USER).json()
        assert [(h["contractAddress"], h["tokenId"]) for h in remaining] == [(COLLECTION, None)]

    def test_token_id_is_normalized(self, client: TestClient) -> None:
        hex_id = client.post("/api/nfts/hidden", json={"contractAddress": COLLECTION, "tokenId": "0x7"}, headers=USER)
        padded = client.post("/api/nfts/hidden", json={"contractAddress": COLLECTION, "tokenId": "007"}, headers=USER)

        assert hex_id.json()["tokenId"] == "7"
        assert padded.status_code == 409

        client.delete("/api/nfts/hidden", params={"address": COLLECTION, "tokenId": "0x07"}, headers=USER)

        assert client.get("/api/nfts/hidden", headers=USER).json() == []

    @pytest.mark.parametrize("token_id", ["abc", "-1", "7.5", "0x"])
    def test_rejects_non_numeric_token_id(self, client: TestClient, token_id: str) -> None:
        response = client.post(
            "/api/nfts/hidden", json={"contractAddress": COLLECTION, "tokenId": token_id}, headers=USER
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid token ID format"}
        assert client.get("/api/nfts/hidden", headers=USER).json() == []

    def test_unhide_rejects_non_numeric_token_id(self, client: TestClient) -> None:
        response = client.delete("/api/nfts/hidden", params={"address": COLLECTION, "tokenId": "abc"}, headers=USER)

        assert response.status_code == 400


class TestAdminNFTCollections:
    def test_requires_admin(self, client: TestClient) -> None:
        response = client.post("/api/admin/nfts/blacklist", json={"contractAddress": COLLECTION}, headers=USER)

        assert response.status_code == 403

    def test_blacklist_flow(self, client: TestClient) -> None:
        created = client.post("/api/admin/nfts/blacklist", json={"contractAddress": COLLECTION}, headers=ADMIN)
        duplicate = client.post("/api/admin/nfts/blacklist", json={"contractAddress": COLLECTION}, headers=ADMIN)

        assert created.status_code == 200
        assert created.json()["contractAddress"] == COLLECTION
        assert created.json()["isBlacklisted"] is True
        assert duplicate.status_code == 409
        assert [c["contractAddress"] for c in client.get("/api/admin/nfts/blacklist", headers=ADMIN).json()] == [
            COLLECTION
        ]

        removed = client.delete("/api/admin/nfts/blacklist", params={"address": COLLECTION}, headers=ADMIN)
        missing = client.delete("/api/admin/nfts/blacklist", params={"address": COLLECTION}, headers=ADMIN)

        assert removed.json() == {"success": True}
        assert missing.status_code == 404
        assert client.get("/api/admin/nfts/blacklist", headers=ADMIN).json() == []

    def test_blacklists_collection_a_user_has_hidden(self, client: TestClient) -> None:
        client.post("/api/nfts/hidden", json={"contractAddress": COLLECTION}, headers=USER)

        response = client.post("/api/admin/nfts/blacklist", json={"contractAddress": COLLECTION}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["isBlacklisted"] is True

    def test_address_required(self, client: TestClient) -> None:
        response = client.post("/api/admin/nfts/blacklist", json={}, headers=ADMIN)

        assert response.status_code == 400
        assert response.json() == {"error": "Contract address is required"}


class TestAdminTokens:
    def test_requires_admin(self, client: TestClient) -> None:
        response = client.get("/api/admin/tokens/blacklist", headers=USER)

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    def test_blacklist_flow(self, client: TestClient) -> None:
        no_reason = client.post("/api/admin/tokens/blacklist", json={"tokenAddress": TOKEN}, headers=ADMIN)
        created = client.post(
            "/api/admin/tokens/blacklist",
            json={"tokenAddress": TOKEN, "symbol": "FAKE", "reason": "phishing"},
            headers=ADMIN,
        )
        duplicate = client.post(
            "/api/admin/tokens/blacklist", json={"tokenAddress": TOKEN, "reason": "again"}, headers=ADMIN
        )

        assert no_reason.status_code == 400
        assert no_reason.json() == {"error": "Reason is required"}
        assert created.status_code == 200
        assert created.json()["blacklistedBy"] == "admin-1"
        assert duplicate.status_code == 409
        assert len(client.get("/api/admin/tokens/blacklist", headers=ADMIN).json()) == 1

        removed = client.delete("/api/admin/tokens/blacklist", params={"address": TOKEN}, headers=ADMIN)
        missing = client.delete("/api/admin/tokens/blacklist", params={"address": TOKEN}, headers=ADMIN)

        assert removed.json() == {"success": True}
        assert missing.status_code == 404
        assert missing.json() == {"error": "Token not found in blacklist"}

    def test_verified_flow(self, client: TestClient) -> None:
        created = client.post("/api/admin/tokens/verified", json={"tokenAddress": TOKEN}, headers=ADMIN)
        duplicate = client.post("/api/admin/tokens/verified", json={"tokenAddress": TOKEN}, headers=ADMIN)

        assert created.status_code == 200
        assert duplicate.json() == {"error": "Token already verified"}
        assert client.delete(
            "/api/admin/tokens/verified", params={"address": TOKEN}, headers=ADMIN
        ).json() == {"success": True}
        assert client.delete(
            "/api/admin/tokens/verified", params={"address": TOKEN}, headers=ADMIN
        ).status_code == 404

    def test_discovered_tokens(self, client: TestClient) -> None:
        response = client.get("/api/admin/tokens/discovered", headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == []


class TestTips:
    def _payload(self, **overrides) -> dict:
        payload = {
            "toUserId": "recipient-1",
            "tokenId": "usdc",
            "amount": 1.5,
            "transactionHash": "0x" + "ab" * 32,
            "message": "gm",
        }
        payload.update(overrides)
        return payload

    def test_create_requires_authentication(self, client: TestClient) -> None:
        assert client.post("/api/tips", json=self._payload()).status_code == 401

    def test_create_and_list(self, client: TestClient, verifier: MagicMock) -> None:
        created = client.post("/api/tips", json=self._payload(), headers=USER)

        assert created.status_code == 201
        body = created.json()
        assert body["message"] == "Tip created successfully"
        assert body["tip"]["amount"] == "1.5"
        assert body["tip"]["status"] == "COMPLETED"
        verifier.verify_tip.assert_awaited_once()

        listed = client.get("/api/tips", params={"userId": "recipient-1"}).json()
        received = client.get("/api/tips/received/recipient-1").json()

        assert [t["transactionHash"] for t in listed["tips"]] == ["0x" + "ab" * 32]
        assert listed["pagination"] == {"limit": 20, "offset": 0, "hasMore": False}
        assert len(received["data"]) == 1

    def test_duplicate_hash(self, client: TestClient) -> None:
        response = client.post("/api/tips", json=self._payload(transactionHash=PENDING_HASH), headers=USER)

        assert response.status_code == 409
        assert response.json() == {"error": "Transaction hash already used"}

    def test_body_validation(self, client: TestClient) -> None:
        payload = self._payload()
        del payload["amount"]

        response = client.post("/api/tips", json=payload, headers=USER)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["details"][0]["field"] == "amount"

    def test_list_requires_user(self, client: TestClient) -> None:
        response = client.get("/api/tips")

        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}

    def test_admin_verify(self, client: TestClient, state: dict[str, str]) -> None:
        tip_id = state["pending_tip_id"]

        forbidden = client.post(f"/api/tips/{tip_id}/verify", headers=USER)
        verified = client.post(f"/api/tips/{tip_id}/verify", headers=ADMIN)
        again = client.post(f"/api/tips/{tip_id}/verify", json={"status": "FAILED"}, headers=ADMIN)

        assert forbidden.status_code == 403
        assert verified.status_code == 200
        assert verified.json()["tip"]["status"] == "COMPLETED"
        assert again.status_code == 409
