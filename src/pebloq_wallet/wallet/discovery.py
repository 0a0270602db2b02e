"""Background recording of discovered tokens for admin review."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pebloq_wallet.storage.repos import DiscoveredTokenRepository

if TYPE_CHECKING:
    from pebloq_wallet.storage.database import DatabaseManager
    from pebloq_wallet.wallet.models import TokenBalance

logger = logging.getLogger(__name__)


class DiscoveredTokenRecorder:
    """Upserts discovered tokens in background tasks.

    Each batch runs in its own database session so a failure never affects
    the request that triggered it. Failures are logged; `drain()` waits for
    outstanding batches on shutdown.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def record(self, tokens: Sequence[TokenBalance]) -> asyncio.Task[None] | None:
        if not tokens:
            return None
        task = asyncio.create_task(self._record(list(tokens)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _record(self, tokens: list[TokenBalance]) -> None:
        try:
            async with self._db.get_async_session() as session:
                repo = DiscoveredTokenRepository(session)
                for token in tokens:
                    await repo.record_seen(
                        token.contract_address,
                        symbol=token.symbol,
                        name=token.name,
                        decimals=token.decimals,
                    )
        except Exception:
            logger.exception("Failed to record %d discovered tokens", len(tokens))

    async def drain(self) -> None:
        """Wait for all in-flight recordings to finish."""
        if not self._tasks:
            return
        logger.info("Draining %d discovered-token recordings", len(self._tasks))
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
