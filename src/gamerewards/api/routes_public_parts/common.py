from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from gamerewards.api.errors import ApiError
from gamerewards.runtime.dispatch import RequestDispatcher
from gamerewards.runtime.engine import SettlementEngine

Json = Dict[str, Any]


def _engine(request: Request) -> SettlementEngine:
    eng = getattr(request.app.state, "engine", None)
    if eng is None:
        raise ApiError.unavailable("not_ready", "engine not attached to app.state", {})
    return eng


def _dispatcher(request: Request) -> RequestDispatcher:
    d = getattr(request.app.state, "dispatcher", None)
    if d is None:
        raise ApiError.unavailable("not_ready", "dispatcher not attached to app.state", {})
    return d


def _int_param(v: Any, default: int, *, lo: int = 1, hi: int = 1000) -> int:
    """Parse an int-ish query param and clamp it to [lo, hi]."""
    if v is None:
        return int(default)
    try:
        n = int(str(v).strip())
    except ValueError:
        return int(default)
    return max(lo, min(hi, n))
