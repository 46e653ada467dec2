from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter

from gamerewards.ledger.catalog import GAME_NAMES, MILESTONES, milestones_for_game

router = APIRouter()

Json = Dict[str, Any]


@router.get("/milestones")
def milestones(game_id: Optional[str] = None) -> Json:
    rows = milestones_for_game(game_id) if game_id else list(MILESTONES)
    return {
        "ok": True,
        "games": dict(GAME_NAMES),
        "milestones": [m.to_json() for m in rows],
    }
