from __future__ import annotations

from decimal import Decimal

import pytest

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.catalog import GAME_NAMES, MILESTONES, claim_summary, find_milestone, milestones_for_game, to_micro
from gamerewards.ledger.claim_key import derive_claim_key
from gamerewards.ledger.constants import COIN, MAX_MILESTONE_ID_LEN
from gamerewards.ledger.types import ClaimRecord


def test_to_micro() -> None:
    assert to_micro(1) == COIN
    assert to_micro("0.5") == 500_000
    assert to_micro(Decimal("0.0000005")) == 1
    with pytest.raises(ValueError):
        to_micro(-1)


def test_catalog_ids_are_unique_and_valid() -> None:
    ids = [m.milestone_id for m in MILESTONES]
    assert len(ids) == len(set(ids))
    for m in MILESTONES:
        assert m.game_id in GAME_NAMES
        assert 0 < len(m.milestone_id.encode("utf-8")) <= MAX_MILESTONE_ID_LEN
        assert m.reward_micro > 0
        assert m.type in {"totalScore", "wins"}


def test_lookup() -> None:
    first = MILESTONES[0]
    assert find_milestone(first.milestone_id) == first
    assert find_milestone("no-such-milestone") is None
    rows = milestones_for_game(first.game_id)
    assert first in rows
    assert all(m.game_id == first.game_id for m in rows)
    assert first.to_json()["reward_micro"] == first.reward_micro


def _record(user: AccountId, milestone_id: str, amount: int, ts: int) -> ClaimRecord:
    key = derive_claim_key(user, milestone_id)
    return ClaimRecord(key=key, recipient=user, milestone_id=milestone_id.encode("utf-8"), amount=amount, claimed_ts_ms=ts, payout_id="p")


def test_claim_summary_uses_recorded_amounts() -> None:
    user = AccountId(b"\x07" * 32)
    # Settled below the catalog reward; the recorded amount wins.
    claims = [_record(user, "hs_wins_10", 123, 5), _record(user, "custom", 999, 6)]

    out = claim_summary(claims, game_id="head-soccer")
    assert (out["total_milestones"], out["milestones_claimed"], out["total_earned"]) == (4, 1, 123)
    row = next(m for m in out["milestones"] if m["milestone_id"] == "hs_wins_10")
    assert (row["claimed"], row["amount"], row["claimed_ts_ms"], row["reward_micro"]) == (True, 123, 5, 500_000)

    empty = claim_summary([])
    assert empty["total_milestones"] == len(MILESTONES)
    assert empty["total_earned"] == 0
    assert not any(m["claimed"] for m in empty["milestones"])
