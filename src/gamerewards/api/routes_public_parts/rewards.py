from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from gamerewards.api.routes_public_parts.common import _dispatcher, _engine
from gamerewards.api.schemas import ClaimRequest
from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.catalog import claim_summary
from gamerewards.runtime.engine import Operation

router = APIRouter()

Json = Dict[str, Any]


@router.post("/rewards/claim")
def rewards_claim(body: ClaimRequest, request: Request) -> Json:
    """Settle one milestone reward. The caller must be the pool admin."""
    return _dispatcher(request).submit(body.to_request(Operation.CLAIM_REWARD.value))


@router.get("/rewards/{user}/summary")
def rewards_summary(user: str, request: Request, game_id: Optional[str] = None) -> Json:
    """Catalog milestones with this user's claimed flag, settlement time and amount."""
    account = AccountId.parse(user)
    out = claim_summary(_engine(request).list_claims(account), game_id=game_id)
    return {"ok": True, "user": account.address, **out}


@router.get("/rewards/{user}/{milestone_id:path}")
def rewards_status(user: str, milestone_id: str, request: Request) -> Json:
    eng = _engine(request)
    account = AccountId.parse(user)
    rec = eng.get_claim(account, milestone_id)
    return {
        "ok": True,
        "user": account.address,
        "milestone_id": milestone_id,
        "claimed": rec is not None,
        "amount": int(rec.amount) if rec is not None else 0,
        "claim": rec.to_json() if rec is not None else None,
    }


@router.get("/rewards/{user}")
def rewards_history(user: str, request: Request) -> Json:
    account = AccountId.parse(user)
    claims = _engine(request).list_claims(account)
    return {
        "ok": True,
        "user": account.address,
        "total": sum(int(c.amount) for c in claims),
        "claims": [c.to_json() for c in claims],
    }
