# src/gamerewards/ledger/types.py
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from gamerewards.ledger.accounts import AccountId

Json = Dict[str, Any]


def _opt_account(v: Any) -> Optional[AccountId]:
    if v is None or v == "":
        return None
    return AccountId.parse(v)


def _opt_address(a: Optional[AccountId]) -> Optional[str]:
    return a.address if a is not None else None


@dataclass
class PoolState:
    """Singleton pool state.

    Invariant: total_claimed <= total_funded. Only the settlement engine
    mutates it, and only inside a settlement unit.
    """

    owner: Optional[AccountId] = None
    admin: Optional[AccountId] = None
    total_funded: int = 0
    total_claimed: int = 0
    initialized: bool = False

    def copy(self) -> "PoolState":
        return replace(self)

    def to_json(self) -> Json:
        return {
            "owner": _opt_address(self.owner),
            "admin": _opt_address(self.admin),
            "total_funded": int(self.total_funded),
            "total_claimed": int(self.total_claimed),
            "initialized": bool(self.initialized),
        }

    @classmethod
    def from_json(cls, obj: Json) -> "PoolState":
        return cls(
            owner=_opt_account(obj.get("owner")),
            admin=_opt_account(obj.get("admin")),
            total_funded=int(obj.get("total_funded", 0) or 0),
            total_claimed=int(obj.get("total_claimed", 0) or 0),
            initialized=bool(obj.get("initialized", False)),
        )


@dataclass(frozen=True, slots=True)
class ClaimRecord:
    """One settled claim. Created once, never updated or deleted."""

    key: bytes
    recipient: AccountId
    milestone_id: bytes
    amount: int
    claimed_ts_ms: int
    payout_id: str = ""

    def milestone_text(self) -> str:
        return self.milestone_id.decode("utf-8", errors="replace")

    def to_json(self) -> Json:
        return {
            "key": self.key.hex(),
            "recipient": self.recipient.address,
            "milestone_id": self.milestone_text(),
            "amount": int(self.amount),
            "claimed_ts_ms": int(self.claimed_ts_ms),
            "payout_id": self.payout_id,
        }


@dataclass(frozen=True, slots=True)
class PaymentEvidence:
    """Pre-validated evidence of the inbound payment that accompanies fundPool.

    `attestation` is a signature by the deposit attestor over signing_bytes().
    """

    payment_id: str
    sender: AccountId
    amount: int
    attestation: Optional[str] = None

    def signing_bytes(self) -> bytes:
        obj = {
            "payment_id": str(self.payment_id),
            "sender": self.sender.address,
            "amount": int(self.amount),
        }
        return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_json(cls, obj: Json) -> "PaymentEvidence":
        if not isinstance(obj, dict):
            raise ValueError("payment evidence must be an object")
        payment_id = str(obj.get("payment_id") or "").strip()
        if not payment_id:
            raise ValueError("payment evidence requires payment_id")
        amount = obj.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValueError("payment evidence amount must be an integer")
        att = obj.get("attestation")
        return cls(
            payment_id=payment_id,
            sender=AccountId.parse(obj.get("sender")),
            amount=amount,
            attestation=str(att) if att else None,
        )


@dataclass(frozen=True, slots=True)
class PayoutRecord:
    """An outbound payment staged in the payout outbox."""

    payout_id: str
    recipient: AccountId
    amount: int
    kind: str
    ref: str
    created_ts_ms: int

    def to_json(self) -> Json:
        return {
            "payout_id": self.payout_id,
            "recipient": self.recipient.address,
            "amount": int(self.amount),
            "kind": self.kind,
            "ref": self.ref,
            "created_ts_ms": int(self.created_ts_ms),
        }
