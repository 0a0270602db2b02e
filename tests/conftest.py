"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pebloq_wallet.storage.models import Base

WALLET = "0x1234567890abcdef1234567890abcdef12345678"
OTHER_WALLET = "0xabcdef1234567890abcdef1234567890abcdef12"


@pytest.fixture
def wallet_address() -> str:
    """Sample wallet address for testing."""
    return WALLET


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:
    """Create an async session for testing."""
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session
