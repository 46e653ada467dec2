# src/gamerewards/ledger/pool.py
from __future__ import annotations

from typing import Any

from gamerewards.ledger.constants import UINT64_MAX
from gamerewards.ledger.types import PoolState
from gamerewards.runtime.errors import (
    INSUFFICIENT_BALANCE,
    INVALID_AMOUNT,
    NOT_INITIALIZED,
    PAYMENT_MISMATCH,
    UNDERFLOW,
    RewardError,
)


def as_uint64(v: Any, *, field: str = "amount") -> int:
    """Validate a uint64 amount. bool is rejected even though it is an int."""
    if isinstance(v, bool) or not isinstance(v, int):
        raise RewardError(INVALID_AMOUNT, "amount_not_integer", {"field": field, "value": repr(v)})
    if v < 0 or v > UINT64_MAX:
        raise RewardError(INVALID_AMOUNT, "amount_out_of_range", {"field": field, "value": int(v)})
    return int(v)


def as_positive_uint64(v: Any, *, field: str = "amount") -> int:
    n = as_uint64(v, field=field)
    if n == 0:
        raise RewardError(INVALID_AMOUNT, "amount_must_be_positive", {"field": field})
    return n


class PoolLedger:
    """Funding pool counters: total funded, total claimed, available balance.

    Every method checks before it mutates, so a raised RewardError leaves
    the state untouched.
    """

    def __init__(self, state: PoolState) -> None:
        self.state = state

    @property
    def total_funded(self) -> int:
        return int(self.state.total_funded)

    @property
    def total_claimed(self) -> int:
        return int(self.state.total_claimed)

    def require_initialized(self) -> None:
        if not self.state.initialized:
            raise RewardError(NOT_INITIALIZED, "pool_not_initialized", {})

    def available(self) -> int:
        funded = self.total_funded
        claimed = self.total_claimed
        if claimed > funded:
            raise RewardError(UNDERFLOW, "claimed_exceeds_funded", {"total_funded": funded, "total_claimed": claimed})
        return funded - claimed

    def fund(self, amount: Any, *, paid: Any) -> int:
        """Credit `amount`, which must equal the accompanying payment exactly."""
        self.require_initialized()
        n = as_positive_uint64(amount)
        p = as_uint64(paid, field="payment_amount")
        if p != n:
            raise RewardError(PAYMENT_MISMATCH, "payment_amount_mismatch", {"declared": n, "paid": p})
        if self.total_funded + n > UINT64_MAX:
            raise RewardError(INVALID_AMOUNT, "uint64_overflow", {"total_funded": self.total_funded, "amount": n})
        self.state.total_funded = self.total_funded + n
        return self.state.total_funded

    def _require_available(self, n: int) -> None:
        avail = self.available()
        if avail < n:
            raise RewardError(INSUFFICIENT_BALANCE, "insufficient_pool_balance", {"available": avail, "requested": n})

    def check_available(self, amount: Any) -> int:
        n = as_positive_uint64(amount)
        self._require_available(n)
        return n

    def reserve(self, amount: Any) -> int:
        """Move `amount` from available to claimed."""
        n = self.check_available(amount)
        self.state.total_claimed = self.total_claimed + n
        return self.state.total_claimed

    def reduce(self, amount: Any) -> int:
        """Remove `amount` of unclaimed funds from the pool (withdrawal)."""
        n = self.check_available(amount)
        self.state.total_funded = self.total_funded - n
        return self.state.total_funded
