from __future__ import annotations

import pytest

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.claim_key import derive_claim_key
from gamerewards.ledger.types import ClaimRecord, PaymentEvidence
from gamerewards.runtime.errors import RewardError

U = AccountId(b"\x44" * 32)


@pytest.mark.parametrize("kind", ["memory", "sqlite"])
def test_unit_commits_all_staged_writes(make_store, kind: str) -> None:
    store = make_store(kind)
    key = derive_claim_key(U, "m1")

    with store.unit() as u:
        u.pool.state.initialized = True
        u.pool.fund(100, paid=100)
        u.payments.credit(PaymentEvidence(payment_id="p1", sender=U, amount=100), 1)
        res = u.transfers.send(U, 40, kind="claim", ref=key.hex())
        u.pool.reserve(40)
        u.claims.put(key, ClaimRecord(key=key, recipient=U, milestone_id=b"m1", amount=40, claimed_ts_ms=1, payout_id=res.payout_id))

    pool = store.snapshot_pool()
    assert (pool.total_funded, pool.total_claimed) == (100, 40)
    assert store.get_claim(key).amount == 40
    assert [p.payout_id for p in store.list_payouts()] == [res.payout_id]

    with store.unit() as u:
        assert u.payments.seen("p1")


@pytest.mark.parametrize("kind", ["memory", "sqlite"])
def test_unit_discards_everything_on_error(make_store, kind: str) -> None:
    store = make_store(kind)
    key = derive_claim_key(U, "m1")

    with store.unit() as u:
        u.pool.state.initialized = True
        u.pool.fund(100, paid=100)

    with pytest.raises(RuntimeError):
        with store.unit() as u:
            u.payments.credit(PaymentEvidence(payment_id="p2", sender=U, amount=1), 1)
            res = u.transfers.send(U, 40, kind="claim", ref=key.hex())
            u.pool.reserve(40)
            u.claims.put(key, ClaimRecord(key=key, recipient=U, milestone_id=b"m1", amount=40, claimed_ts_ms=1, payout_id=res.payout_id))
            raise RuntimeError("abort")

    pool = store.snapshot_pool()
    assert (pool.total_funded, pool.total_claimed) == (100, 0)
    assert store.get_claim(key) is None
    assert store.list_payouts() == []
    with store.unit() as u:
        assert not u.payments.seen("p2")


@pytest.mark.parametrize("kind", ["memory", "sqlite"])
def test_nonces_strictly_increase(make_store, kind: str) -> None:
    store = make_store(kind)
    assert store.last_nonce(U) == 0
    store.consume_nonce(U, 5)
    assert store.last_nonce(U) == 5

    for bad in (5, 4, True, 2**63):
        with pytest.raises(RewardError) as ei:
            store.consume_nonce(U, bad)
        assert ei.value.code == "bad_nonce"

    store.consume_nonce(U, 2**63 - 1)
    assert store.last_nonce(U) == 2**63 - 1


def test_pool_row_timestamp_uses_store_clock(make_store, clock) -> None:
    store = make_store("sqlite")
    with store.unit() as u:
        u.pool.state.initialized = True
        u.pool.fund(5, paid=5)

    with store.db.connection() as con:
        row = con.execute("SELECT updated_ts_ms FROM pool_state WHERE id=1;").fetchone()
    assert int(row["updated_ts_ms"]) == clock.now
