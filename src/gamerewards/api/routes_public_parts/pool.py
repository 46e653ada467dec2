from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from gamerewards.api.routes_public_parts.common import _dispatcher, _engine
from gamerewards.api.schemas import FundRequest, InitRequest, UpdateAdminRequest, WithdrawRequest
from gamerewards.runtime.engine import Operation

router = APIRouter()

Json = Dict[str, Any]


@router.get("/pool")
def pool_get(request: Request) -> Json:
    """Pool totals, available balance, owner and admin."""
    return {"ok": True, "pool": _engine(request).pool_summary()}


@router.post("/pool/init")
def pool_init(body: InitRequest, request: Request) -> Json:
    return _dispatcher(request).submit(body.to_request(Operation.INIT.value))


@router.post("/pool/fund")
def pool_fund(body: FundRequest, request: Request) -> Json:
    return _dispatcher(request).submit(body.to_request(Operation.FUND_POOL.value))


@router.post("/pool/withdraw")
def pool_withdraw(body: WithdrawRequest, request: Request) -> Json:
    return _dispatcher(request).submit(body.to_request(Operation.EMERGENCY_WITHDRAW.value))


@router.post("/pool/admin")
def pool_admin(body: UpdateAdminRequest, request: Request) -> Json:
    return _dispatcher(request).submit(body.to_request(Operation.UPDATE_ADMIN.value))
