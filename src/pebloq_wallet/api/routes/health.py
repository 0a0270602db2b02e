from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/healthz")
async def health_check(request: Request) -> dict[str, Any]:
    """Report RPC and database reachability."""
    rpc_ok = await request.app.state.chain.health_check()
    db_ok = await request.app.state.db.health_check()
    return {
        "status": "healthy" if rpc_ok and db_ok else "degraded",
        "components": {
            "rpc": "healthy" if rpc_ok else "unavailable",
            "database": "healthy" if db_ok else "unavailable",
        },
    }
