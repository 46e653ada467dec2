from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from gamerewards.api.errors import ApiError
from gamerewards.api.routes_public_parts.common import _engine

router = APIRouter()

Json = Dict[str, Any]


@router.get("/health")
def health() -> Json:
    """Liveness: the process is up and serving HTTP."""
    return {"ok": True, "service": "game-rewards"}


@router.get("/readyz")
def readyz(request: Request) -> Json:
    """Readiness: the engine is attached and its store answers reads."""
    eng = _engine(request)
    try:
        pool = eng.pool_snapshot()
    except Exception as e:
        raise ApiError.unavailable("store_unavailable", "ledger store is not readable", {"error": type(e).__name__}) from e
    return {"ok": True, "initialized": bool(pool.initialized)}
