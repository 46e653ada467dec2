from __future__ import annotations

from dataclasses import dataclass
from typing import Any

NOT_INITIALIZED = "not_initialized"
ALREADY_INITIALIZED = "already_initialized"
UNAUTHORIZED = "unauthorized"
INVALID_AMOUNT = "invalid_amount"
ALREADY_CLAIMED = "already_claimed"
INSUFFICIENT_BALANCE = "insufficient_balance"
PAYMENT_MISMATCH = "payment_mismatch"
PAYMENT_REPLAYED = "payment_replayed"
TRANSFER_FAILED = "transfer_failed"
UNDERFLOW = "underflow"
BAD_NONCE = "bad_nonce"
INTERNAL_ERROR = "internal_error"


@dataclass
class RewardError(Exception):
    """Canonical error type for settlement failures.

    Every RewardError raised inside a settlement unit aborts the unit; none
    of the unit's staged writes survive.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
