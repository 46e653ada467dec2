# src/gamerewards/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from gamerewards.api.routes_public_parts.health import router as health_router
from gamerewards.api.routes_public_parts.metrics import router as metrics_router
from gamerewards.api.routes_public_parts.milestones import router as milestones_router
from gamerewards.api.routes_public_parts.payouts import router as payouts_router
from gamerewards.api.routes_public_parts.pool import router as pool_router
from gamerewards.api.routes_public_parts.requests import router as requests_router
from gamerewards.api.routes_public_parts.rewards import router as rewards_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(pool_router, prefix="/v1", tags=["pool"])
public_router.include_router(rewards_router, prefix="/v1", tags=["rewards"])
public_router.include_router(requests_router, prefix="/v1", tags=["requests"])
public_router.include_router(milestones_router, prefix="/v1", tags=["milestones"])
public_router.include_router(payouts_router, prefix="/v1", tags=["payouts"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
