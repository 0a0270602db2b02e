"""FastAPI dependencies: sessions, services and authentication."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from pebloq_wallet.errors import ForbiddenError, UnauthorizedError
from pebloq_wallet.storage.repos import UserDTO, UserRepository

if TYPE_CHECKING:
    from pebloq_wallet.storage.database import DatabaseManager
    from pebloq_wallet.tips.service import TipService
    from pebloq_wallet.wallet.service import WalletHoldingsService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a session that commits when the request succeeds."""
    db: DatabaseManager = request.app.state.db
    async with db.get_async_session() as session:
        yield session


def get_wallet_service(request: Request) -> WalletHoldingsService:
    return request.app.state.wallet_service


def get_tip_service(request: Request) -> TipService:
    return request.app.state.tip_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> UserDTO | None:
    """Resolve the bearer session token to a user, or None if absent/invalid."""
    if credentials is None or not credentials.credentials:
        return None
    return await UserRepository(session).get_by_session_token(credentials.credentials)


async def require_user(user: UserDTO | None = Depends(get_current_user)) -> UserDTO:
    if user is None:
        raise UnauthorizedError("Authentication required")
    if user.is_banned:
        raise ForbiddenError("Account is banned")
    return user


async def require_admin(user: UserDTO = Depends(require_user)) -> UserDTO:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
