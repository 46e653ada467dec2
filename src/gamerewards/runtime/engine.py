# src/gamerewards/runtime/engine.py
from __future__ import annotations

"""Settlement engine: the reward ledger state machine.

claim_reward walks Received -> Validated -> Reserved -> Transferred ->
Committed inside one settlement unit. Any gate failure raises RewardError
and the unit discards everything it staged, so a caller observes either
one payout plus one claim record, or neither.
"""

import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.claim_key import derive_claim_key, milestone_bytes
from gamerewards.ledger.constants import PAYOUT_KIND_CLAIM, PAYOUT_KIND_WITHDRAW
from gamerewards.ledger.pool import PoolLedger, as_positive_uint64
from gamerewards.ledger.types import ClaimRecord, PaymentEvidence, PayoutRecord, PoolState
from gamerewards.runtime import metrics
from gamerewards.runtime.auth import ROLE_ADMIN, ROLE_OWNER, AuthorizationGuard
from gamerewards.runtime.errors import (
    ALREADY_CLAIMED,
    ALREADY_INITIALIZED,
    PAYMENT_REPLAYED,
    TRANSFER_FAILED,
    RewardError,
)
from gamerewards.runtime.logs import log_event
from gamerewards.runtime.store import LedgerStore

Json = Dict[str, Any]

log = logging.getLogger("gamerewards.settlement")


def _now_ms() -> int:
    return int(time.time() * 1000)


class Operation(str, Enum):
    INIT = "INIT"
    FUND_POOL = "FUND_POOL"
    CLAIM_REWARD = "CLAIM_REWARD"
    UPDATE_ADMIN = "UPDATE_ADMIN"
    EMERGENCY_WITHDRAW = "EMERGENCY_WITHDRAW"
    IS_CLAIMED = "IS_CLAIMED"
    GET_CLAIMED_AMOUNT = "GET_CLAIMED_AMOUNT"
    GET_TOTAL_POOL = "GET_TOTAL_POOL"
    GET_TOTAL_CLAIMED = "GET_TOTAL_CLAIMED"
    GET_AVAILABLE_BALANCE = "GET_AVAILABLE_BALANCE"


MUTATING_OPERATIONS = frozenset(
    {
        Operation.INIT,
        Operation.FUND_POOL,
        Operation.CLAIM_REWARD,
        Operation.UPDATE_ADMIN,
        Operation.EMERGENCY_WITHDRAW,
    }
)


class SettlementEngine:
    """Sole writer of the pool and the claim store."""

    def __init__(self, store: LedgerStore, *, clock: Optional[Callable[[], int]] = None) -> None:
        self._store = store
        self._clock = clock or _now_ms

    @property
    def store(self) -> LedgerStore:
        return self._store

    @contextmanager
    def _operation(self, op: Operation, **fields: Any) -> Iterator[None]:
        try:
            yield
        except RewardError as e:
            metrics.inc_counter(f"rejected_{e.code}")
            log_event(log, "operation_rejected", level=logging.WARNING, op=op.value, code=e.code, reason=e.reason, **fields)
            raise
        metrics.inc_counter(f"op_{op.value.lower()}")
        self._publish_gauges()

    def _publish_gauges(self) -> None:
        pool = self._store.snapshot_pool()
        metrics.set_gauge("pool_total_funded", pool.total_funded)
        metrics.set_gauge("pool_total_claimed", pool.total_claimed)

    # ---- mutating operations -------------------------------------------

    def init(self, owner: Any, admin: Any) -> PoolState:
        """One-time setup. Any later call fails with already_initialized."""
        owner_id = AccountId.parse(owner)
        admin_id = AccountId.parse(admin)

        with self._operation(Operation.INIT, owner=owner_id.address, admin=admin_id.address):
            with self._store.unit() as u:
                st = u.pool.state
                if st.initialized:
                    raise RewardError(ALREADY_INITIALIZED, "pool_already_initialized", {})
                st.owner = owner_id
                st.admin = admin_id
                st.total_funded = 0
                st.total_claimed = 0
                st.initialized = True
                out = st.copy()

        log_event(log, "pool_initialized", owner=owner_id.address, admin=admin_id.address)
        return out

    def fund_pool(self, caller: Any, amount: Any, payment: PaymentEvidence) -> int:
        """Credit the pool with an inbound payment of exactly `amount`.

        Any account may fund; the payment sender need not be the caller.
        Returns the new total funded.
        """
        caller_id = AccountId.parse(caller)

        with self._operation(Operation.FUND_POOL, caller=caller_id.address, payment_id=payment.payment_id):
            with self._store.unit() as u:
                u.pool.require_initialized()
                if u.payments.seen(payment.payment_id):
                    raise RewardError(PAYMENT_REPLAYED, "payment_already_credited", {"payment_id": payment.payment_id})
                total = u.pool.fund(amount, paid=payment.amount)
                u.payments.credit(payment, self._clock())

        log_event(
            log,
            "pool_funded",
            caller=caller_id.address,
            sender=payment.sender.address,
            payment_id=payment.payment_id,
            amount=int(amount),
            total_funded=total,
        )
        return total

    def claim_reward(self, caller: Any, recipient: Any, milestone_id: Any, reward_amount: Any) -> ClaimRecord:
        """Pay `reward_amount` to `recipient` for `milestone_id`, at most once."""
        recipient_id = AccountId.parse(recipient)
        mid = milestone_bytes(milestone_id)

        with self._operation(
            Operation.CLAIM_REWARD,
            caller=str(caller),
            recipient=recipient_id.address,
            milestone_id=mid.decode("utf-8", errors="replace"),
        ):
            with self._store.unit() as u:
                # Validated
                u.pool.require_initialized()
                AuthorizationGuard(u.pool.state).require(ROLE_ADMIN, caller)
                amount = as_positive_uint64(reward_amount, field="reward_amount")

                key = derive_claim_key(recipient_id, mid)
                if u.claims.exists(key):
                    raise RewardError(ALREADY_CLAIMED, "reward_already_claimed", {"key": key.hex()})
                u.pool.check_available(amount)

                # Transferred
                result = u.transfers.send(recipient_id, amount, kind=PAYOUT_KIND_CLAIM, ref=key.hex())
                if not result.ok:
                    raise RewardError(TRANSFER_FAILED, result.reason, {"recipient": recipient_id.address, "amount": amount})

                # Committed (on unit exit)
                u.pool.reserve(amount)
                record = ClaimRecord(
                    key=key,
                    recipient=recipient_id,
                    milestone_id=mid,
                    amount=amount,
                    claimed_ts_ms=int(self._clock()),
                    payout_id=result.payout_id,
                )
                u.claims.put(key, record)
                available = u.pool.available()

        log_event(
            log,
            "claim_settled",
            recipient=recipient_id.address,
            milestone_id=record.milestone_text(),
            amount=amount,
            payout_id=record.payout_id,
            available=available,
        )
        return record

    def update_admin(self, caller: Any, new_admin: Any) -> AccountId:
        admin_id = AccountId.parse(new_admin)

        with self._operation(Operation.UPDATE_ADMIN, caller=str(caller), new_admin=admin_id.address):
            with self._store.unit() as u:
                u.pool.require_initialized()
                AuthorizationGuard(u.pool.state).require(ROLE_OWNER, caller)
                previous = u.pool.state.admin
                u.pool.state.admin = admin_id

        log_event(
            log,
            "admin_updated",
            previous=previous.address if previous is not None else None,
            admin=admin_id.address,
        )
        return admin_id

    def emergency_withdraw(self, caller: Any, amount: Any) -> str:
        """Pay unclaimed funds back to the owner. Returns the payout id."""
        with self._operation(Operation.EMERGENCY_WITHDRAW, caller=str(caller)):
            with self._store.unit() as u:
                u.pool.require_initialized()
                owner = AuthorizationGuard(u.pool.state).require(ROLE_OWNER, caller)
                n = u.pool.check_available(amount)

                result = u.transfers.send(owner, n, kind=PAYOUT_KIND_WITHDRAW, ref="emergency_withdraw")
                if not result.ok:
                    raise RewardError(TRANSFER_FAILED, result.reason, {"recipient": owner.address, "amount": n})

                total = u.pool.reduce(n)

        log_event(log, "withdraw_settled", owner=owner.address, amount=n, payout_id=result.payout_id, total_funded=total)
        return result.payout_id

    # ---- read-only queries ---------------------------------------------

    def is_claimed(self, user: Any, milestone_id: Any) -> bool:
        return self._store.get_claim(derive_claim_key(AccountId.parse(user), milestone_id)) is not None

    def get_claimed_amount(self, user: Any, milestone_id: Any) -> int:
        rec = self._store.get_claim(derive_claim_key(AccountId.parse(user), milestone_id))
        return int(rec.amount) if rec is not None else 0

    def get_claim(self, user: Any, milestone_id: Any) -> Optional[ClaimRecord]:
        return self._store.get_claim(derive_claim_key(AccountId.parse(user), milestone_id))

    def list_claims(self, user: Any) -> List[ClaimRecord]:
        return self._store.list_claims(AccountId.parse(user))

    def list_payouts(self, *, limit: int = 100) -> List[PayoutRecord]:
        return self._store.list_payouts(limit=limit)

    def pool_snapshot(self) -> PoolState:
        return self._store.snapshot_pool()

    def get_total_pool(self) -> int:
        return int(self._store.snapshot_pool().total_funded)

    def get_total_claimed(self) -> int:
        return int(self._store.snapshot_pool().total_claimed)

    def get_available_balance(self) -> int:
        return PoolLedger(self._store.snapshot_pool()).available()

    def pool_summary(self) -> Json:
        pool = self._store.snapshot_pool()
        out = pool.to_json()
        out["available"] = PoolLedger(pool).available()
        return out
