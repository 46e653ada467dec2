from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from gamerewards.api.routes_public_parts.common import _engine, _int_param

router = APIRouter()

Json = Dict[str, Any]


@router.get("/payouts")
def payouts(request: Request, limit: Optional[str] = None) -> Json:
    """Payout outbox rows in commit order, for the relayer to deliver."""
    rows = _engine(request).list_payouts(limit=_int_param(limit, 100))
    return {"ok": True, "payouts": [p.to_json() for p in rows]}
