from __future__ import annotations

import pytest

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.constants import UINT64_MAX
from gamerewards.ledger.pool import PoolLedger, as_uint64
from gamerewards.ledger.types import PoolState
from gamerewards.runtime.errors import RewardError


def _pool(funded: int = 0, claimed: int = 0) -> PoolLedger:
    return PoolLedger(
        PoolState(
            owner=AccountId(b"\x01" * 32),
            admin=AccountId(b"\x02" * 32),
            total_funded=funded,
            total_claimed=claimed,
            initialized=True,
        )
    )


@pytest.mark.parametrize("paid", [99, 101])
def test_fund_requires_exact_payment(paid: int) -> None:
    p = _pool()
    with pytest.raises(RewardError) as ei:
        p.fund(100, paid=paid)
    assert ei.value.code == "payment_mismatch"
    assert p.total_funded == 0


def test_fund_exact_payment_credits_exactly() -> None:
    p = _pool(funded=5)
    assert p.fund(100, paid=100) == 105
    assert p.available() == 105


def test_fund_rejects_overflow_without_mutation() -> None:
    p = _pool(funded=UINT64_MAX - 1)
    with pytest.raises(RewardError) as ei:
        p.fund(2, paid=2)
    assert ei.value.code == "invalid_amount"
    assert ei.value.reason == "uint64_overflow"
    assert p.total_funded == UINT64_MAX - 1


def test_fund_requires_initialized_pool() -> None:
    p = PoolLedger(PoolState())
    with pytest.raises(RewardError) as ei:
        p.fund(1, paid=1)
    assert ei.value.code == "not_initialized"


@pytest.mark.parametrize("v", [-1, UINT64_MAX + 1, True, 1.5, "10", None])
def test_invalid_amounts(v) -> None:
    with pytest.raises(RewardError) as ei:
        as_uint64(v)
    assert ei.value.code == "invalid_amount"


def test_zero_amounts_are_rejected() -> None:
    p = _pool(funded=10)
    for fn in (lambda: p.fund(0, paid=0), lambda: p.reserve(0), lambda: p.reduce(0)):
        with pytest.raises(RewardError) as ei:
            fn()
        assert ei.value.code == "invalid_amount"


def test_reserve_and_reduce_respect_available() -> None:
    p = _pool(funded=100, claimed=60)
    assert p.available() == 40

    with pytest.raises(RewardError) as ei:
        p.reserve(41)
    assert ei.value.code == "insufficient_balance"

    assert p.reserve(40) == 100
    assert p.available() == 0

    with pytest.raises(RewardError) as ei:
        p.reduce(1)
    assert ei.value.code == "insufficient_balance"


def test_corrupt_counters_report_underflow() -> None:
    p = _pool(funded=1, claimed=2)
    with pytest.raises(RewardError) as ei:
        p.available()
    assert ei.value.code == "underflow"
