"""Storage layer - Database schemas and repositories."""

from pebloq_wallet.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from pebloq_wallet.storage.models import Base
from pebloq_wallet.storage.repos import (
    BlacklistedTokenRepository,
    DiscoveredTokenRepository,
    HiddenNFTRepository,
    HiddenTokenRepository,
    NFTCollectionRepository,
    ProfileRepository,
    TipRepository,
    TokenRepository,
    UserRepository,
    VerifiedTokenRepository,
)

__all__ = [
    "Base",
    "BlacklistedTokenRepository",
    "DatabaseManager",
    "DiscoveredTokenRepository",
    "HiddenNFTRepository",
    "HiddenTokenRepository",
    "NFTCollectionRepository",
    "ProfileRepository",
    "TipRepository",
    "TokenRepository",
    "UserRepository",
    "VerifiedTokenRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
