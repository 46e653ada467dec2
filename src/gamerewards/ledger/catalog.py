# src/gamerewards/ledger/catalog.py
from __future__ import annotations

"""Milestone catalog.

The settlement core never consults this table: the reward amount passed to
claimReward is authoritative. The catalog is what the admin-side caller
uses to turn a completed milestone into (milestone_id, reward_amount).
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from gamerewards.ledger.constants import COIN
from gamerewards.ledger.types import ClaimRecord

Json = Dict[str, Any]


def to_micro(coins: Any) -> int:
    """Convert a whole-coin amount (e.g. "0.5") to integer micro-units."""
    d = Decimal(str(coins))
    if d < 0:
        raise ValueError("reward must be non-negative")
    return int((d * COIN).quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class MilestoneDefinition:
    game_id: str
    milestone_id: str
    name: str
    requirement: int
    reward: Decimal
    type: str

    @property
    def reward_micro(self) -> int:
        return to_micro(self.reward)

    def to_json(self) -> Json:
        return {
            "game_id": self.game_id,
            "game_name": GAME_NAMES.get(self.game_id, self.game_id),
            "milestone_id": self.milestone_id,
            "name": self.name,
            "requirement": int(self.requirement),
            "reward": str(self.reward),
            "reward_micro": self.reward_micro,
            "type": self.type,
        }


GAME_NAMES: Dict[str, str] = {
    "endless-runner": "Endless Runner",
    "rock-paper-scissor": "Rock Paper Scissors",
    "slither": "Slither",
    "head-soccer": "Head Soccer",
    "showdown": "Quick Draw Showdown",
    "paaji": "Paaji",
}

# (milestone_id, name, requirement, reward in coins, type)
_RAW: Dict[str, List[Tuple[str, str, int, str, str]]] = {
    "endless-runner": [
        ("er_score_10k", "Runner's Start", 10_000, "0.5", "totalScore"),
        ("er_score_50k", "Marathon Runner", 50_000, "1", "totalScore"),
        ("er_score_100k", "Elite Sprinter", 100_000, "2", "totalScore"),
        ("er_score_250k", "Speed Legend", 250_000, "5", "totalScore"),
    ],
    "rock-paper-scissor": [
        ("rps_wins_5", "Beginner's Luck", 5, "0.3", "wins"),
        ("rps_wins_20", "Strategic Mind", 20, "1", "wins"),
        ("rps_wins_50", "Master Tactician", 50, "3", "wins"),
        ("rps_wins_100", "Undefeated Champion", 100, "7", "wins"),
    ],
    "slither": [
        ("sl_score_5k", "Snake Charmer", 5_000, "0.5", "totalScore"),
        ("sl_score_20k", "Serpent Master", 20_000, "1.5", "totalScore"),
        ("sl_score_50k", "Python Lord", 50_000, "3", "totalScore"),
        ("sl_score_100k", "Legendary Viper", 100_000, "6", "totalScore"),
    ],
    "head-soccer": [
        ("hs_wins_10", "Soccer Rookie", 10, "0.5", "wins"),
        ("hs_wins_30", "Field Captain", 30, "1.5", "wins"),
        ("hs_wins_75", "Soccer Pro", 75, "4", "wins"),
        ("hs_wins_150", "World Champion", 150, "8", "wins"),
    ],
    "showdown": [
        ("sd_wins_10", "Quick Draw", 10, "0.5", "wins"),
        ("sd_wins_30", "Gunslinger", 30, "1.5", "wins"),
        ("sd_wins_75", "Sharp Shooter", 75, "4", "wins"),
        ("sd_wins_150", "Western Legend", 150, "8", "wins"),
    ],
    "paaji": [
        ("pj_score_10k", "Lucky Start", 10_000, "0.5", "totalScore"),
        ("pj_score_50k", "Risk Taker", 50_000, "1.5", "totalScore"),
        ("pj_score_100k", "High Roller", 100_000, "3", "totalScore"),
        ("pj_score_300k", "Jackpot Master", 300_000, "7", "totalScore"),
    ],
}

MILESTONES: Tuple[MilestoneDefinition, ...] = tuple(
    MilestoneDefinition(
        game_id=game_id,
        milestone_id=mid,
        name=name,
        requirement=req,
        reward=Decimal(reward),
        type=mtype,
    )
    for game_id, rows in _RAW.items()
    for (mid, name, req, reward, mtype) in rows
)

_BY_ID: Dict[str, MilestoneDefinition] = {m.milestone_id: m for m in MILESTONES}


def find_milestone(milestone_id: str) -> Optional[MilestoneDefinition]:
    return _BY_ID.get(str(milestone_id or "").strip())


def milestones_for_game(game_id: str) -> List[MilestoneDefinition]:
    return [m for m in MILESTONES if m.game_id == game_id]


def claim_summary(claims: Iterable[ClaimRecord], *, game_id: Optional[str] = None) -> Json:
    """Join the catalog with one user's settled claims.

    Amounts are the ones recorded at settlement, not the catalog reward.
    Claims for milestones outside the catalog are left out; the claim
    history lists them.
    """
    by_id = {c.milestone_text(): c for c in claims}
    rows = milestones_for_game(game_id) if game_id else list(MILESTONES)

    out: List[Json] = []
    total_earned = 0
    claimed_count = 0
    for m in rows:
        rec = by_id.get(m.milestone_id)
        row = m.to_json()
        row["claimed"] = rec is not None
        row["claimed_ts_ms"] = int(rec.claimed_ts_ms) if rec is not None else None
        row["amount"] = int(rec.amount) if rec is not None else 0
        if rec is not None:
            total_earned += int(rec.amount)
            claimed_count += 1
        out.append(row)

    return {
        "milestones": out,
        "total_earned": total_earned,
        "milestones_claimed": claimed_count,
        "total_milestones": len(rows),
    }
