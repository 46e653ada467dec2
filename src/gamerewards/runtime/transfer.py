# src/gamerewards/runtime/transfer.py
from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.constants import UINT64_MAX
from gamerewards.ledger.types import PayoutRecord


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TransferResult:
    ok: bool
    payout_id: str = ""
    reason: str = ""

    @staticmethod
    def success(payout_id: str) -> "TransferResult":
        return TransferResult(True, payout_id, "")

    @staticmethod
    def fail(reason: str) -> "TransferResult":
        return TransferResult(False, "", str(reason or "transfer_failed"))


class PaymentRail:
    """Preflight hook for the external payment rail.

    check() returns None when the payout may go out, else a refusal reason.
    """

    def check(self, recipient: AccountId, amount: int) -> Optional[str]:
        return None


class CeilingRail(PaymentRail):
    """Refuses any single payout above `max_amount`."""

    def __init__(self, max_amount: int) -> None:
        self.max_amount = int(max_amount)

    def check(self, recipient: AccountId, amount: int) -> Optional[str]:
        if int(amount) > self.max_amount:
            return "payout_above_ceiling"
        return None


class PayoutOutbox:
    """Unit-bound staging area for outbound payments."""

    def append(self, record: PayoutRecord) -> None:
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError


class ListPayoutOutbox(PayoutOutbox):
    def __init__(self, committed: List[PayoutRecord]) -> None:
        self._committed = committed
        self.staged: List[PayoutRecord] = []

    def append(self, record: PayoutRecord) -> None:
        self.staged.append(record)

    def count(self) -> int:
        return len(self._committed) + len(self.staged)


class TransferExecutor:
    """The only component that moves value out of the pool."""

    def send(self, recipient: AccountId, amount: int, *, kind: str, ref: str) -> TransferResult:
        raise NotImplementedError


def payout_id_for(*, kind: str, ref: str, recipient: AccountId, amount: int, seq: int) -> str:
    h = hashlib.sha256()
    for part in (kind, ref, recipient.hex(), str(int(amount)), str(int(seq))):
        h.update(part.encode("utf-8"))
        h.update(b"\x00")
    return h.hexdigest()


class OutboxTransferExecutor(TransferExecutor):
    """Stages the payout in the outbox of the current settlement unit.

    The payout row commits together with the claim record and pool counters,
    or not at all. A relayer delivers committed rows to the chain.
    """

    def __init__(
        self,
        outbox: PayoutOutbox,
        *,
        rail: Optional[PaymentRail] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._outbox = outbox
        self._rail = rail or PaymentRail()
        self._clock = clock or _now_ms

    def send(self, recipient: AccountId, amount: Any, *, kind: str, ref: str) -> TransferResult:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0 or amount > UINT64_MAX:
            return TransferResult.fail("invalid_transfer_amount")

        refusal = self._rail.check(recipient, int(amount))
        if refusal:
            return TransferResult.fail(refusal)

        pid = payout_id_for(kind=kind, ref=ref, recipient=recipient, amount=int(amount), seq=self._outbox.count())
        self._outbox.append(
            PayoutRecord(
                payout_id=pid,
                recipient=recipient,
                amount=int(amount),
                kind=str(kind),
                ref=str(ref),
                created_ts_ms=int(self._clock()),
            )
        )
        return TransferResult.success(pid)
