from __future__ import annotations

import multiprocessing as mp
from pathlib import Path

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.types import PaymentEvidence
from gamerewards.runtime.engine import SettlementEngine
from gamerewards.runtime.errors import RewardError
from gamerewards.runtime.sqlite_db import SqliteDB
from gamerewards.runtime.store import SqliteLedgerStore

OWNER = AccountId(b"\x01" * 32)
ADMIN = AccountId(b"\x02" * 32)
USER = AccountId(b"\x03" * 32)


def _engine(db_path: str) -> SettlementEngine:
    return SettlementEngine(SqliteLedgerStore(db=SqliteDB(path=db_path)))


def _claim_worker(db_path: str, milestones: list, results) -> None:
    eng = _engine(db_path)
    for mid in milestones:
        try:
            eng.claim_reward(ADMIN, USER, mid, 10)
            results.put(("ok", mid))
        except RewardError as e:
            results.put((e.code, mid))


def test_concurrent_claims_on_same_key_pay_once(tmp_path: Path) -> None:
    """Many processes race to claim the same milestones; each pays out once."""
    db_path = str(tmp_path / "rewards.db")
    eng = _engine(db_path)
    eng.init(OWNER, ADMIN)
    eng.fund_pool(OWNER, 1_000, PaymentEvidence(payment_id="d1", sender=OWNER, amount=1_000))

    milestones = [f"m{i}" for i in range(10)]
    results = mp.Queue()
    procs = []
    workers = 4
    for _ in range(workers):
        pr = mp.Process(target=_claim_worker, args=(db_path, milestones, results))
        pr.start()
        procs.append(pr)

    outcomes = [results.get(timeout=60) for _ in range(workers * len(milestones))]
    for pr in procs:
        pr.join(30)
        assert pr.exitcode == 0

    for mid in milestones:
        codes = sorted(code for code, m in outcomes if m == mid)
        assert codes == ["already_claimed"] * (workers - 1) + ["ok"]

    assert eng.get_total_claimed() == 10 * len(milestones)
    assert eng.get_available_balance() == 1_000 - 10 * len(milestones)
    assert len(eng.list_payouts()) == len(milestones)
    assert len(eng.list_claims(USER)) == len(milestones)


def test_concurrent_claims_never_overdraw(tmp_path: Path) -> None:
    """Distinct claims compete for a pool that can only cover some of them."""
    db_path = str(tmp_path / "rewards.db")
    eng = _engine(db_path)
    eng.init(OWNER, ADMIN)
    eng.fund_pool(OWNER, 55, PaymentEvidence(payment_id="d1", sender=OWNER, amount=55))

    results = mp.Queue()
    procs = []
    for w in range(4):
        pr = mp.Process(target=_claim_worker, args=(db_path, [f"w{w}-{i}" for i in range(5)], results))
        pr.start()
        procs.append(pr)

    outcomes = [results.get(timeout=60) for _ in range(20)]
    for pr in procs:
        pr.join(30)
        assert pr.exitcode == 0

    ok = [m for code, m in outcomes if code == "ok"]
    assert len(ok) == 5
    assert {code for code, _ in outcomes} <= {"ok", "insufficient_balance"}
    assert eng.get_total_claimed() == 50
    assert eng.get_available_balance() == 5
