from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from gamerewards.api.routes_public_parts.common import _dispatcher
from gamerewards.api.schemas import GenericRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/requests")
def submit_request(body: GenericRequest, request: Request) -> Json:
    """Submit any signed request envelope.

    Returns:
      { ok, op, result }
    """
    return _dispatcher(request).submit(body.model_dump())
