# src/gamerewards/runtime/dispatch.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from gamerewards.crypto.sig import canonical_request_message, verify_ed25519_signature
from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.catalog import find_milestone
from gamerewards.ledger.types import PaymentEvidence
from gamerewards.runtime.engine import MUTATING_OPERATIONS, Operation, SettlementEngine
from gamerewards.runtime.errors import INTERNAL_ERROR, UNAUTHORIZED, RewardError

Json = Dict[str, Any]


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


@dataclass(frozen=True)
class RewardRequest:
    """A caller-signed request for one mutating operation."""

    op: Operation
    caller: AccountId
    nonce: int
    payload: Json = field(default_factory=dict)
    sig: Optional[str] = None

    @classmethod
    def from_json(cls, obj: Any) -> "RewardRequest":
        if not isinstance(obj, dict):
            raise ValueError("request must be an object")

        raw_op = str(obj.get("op") or "").strip().upper()
        try:
            op = Operation(raw_op)
        except ValueError as e:
            raise ValueError(f"unknown op: {raw_op!r}") from e
        if op not in MUTATING_OPERATIONS:
            raise ValueError(f"op is read-only: {raw_op!r}")

        nonce = obj.get("nonce")
        if isinstance(nonce, bool) or not isinstance(nonce, int):
            raise ValueError("nonce must be an integer")

        sig = obj.get("sig")
        return cls(
            op=op,
            caller=AccountId.parse(obj.get("caller")),
            nonce=nonce,
            payload=_as_dict(obj.get("payload")),
            sig=str(sig) if sig else None,
        )

    def signing_bytes(self) -> bytes:
        return canonical_request_message(
            op=self.op.value,
            caller=self.caller.address,
            nonce=self.nonce,
            payload=self.payload,
        )


@dataclass(frozen=True)
class AdmissionPolicy:
    """How much the dispatcher trusts what arrives over the wire.

    allow_unsigned: accept requests without a caller signature (dev only).
    payment_attestor: account whose signature vouches for inbound payments.
    require_attestation: refuse unattested payment evidence when no attestor
      is configured.
    """

    allow_unsigned: bool = False
    payment_attestor: Optional[AccountId] = None
    require_attestation: bool = True


def verify_request_signature(req: RewardRequest) -> None:
    if not req.sig:
        raise RewardError(UNAUTHORIZED, "missing_signature", {"caller": req.caller.address})
    if not verify_ed25519_signature(message=req.signing_bytes(), sig=req.sig, account=req.caller):
        raise RewardError(UNAUTHORIZED, "invalid_signature", {"caller": req.caller.address})


def verify_payment_attestation(evidence: PaymentEvidence, policy: AdmissionPolicy) -> None:
    """Pre-validate inbound payment evidence before it reaches the engine."""
    attestor = policy.payment_attestor
    if attestor is None:
        if policy.require_attestation:
            raise RewardError(UNAUTHORIZED, "payment_attestor_not_configured", {"payment_id": evidence.payment_id})
        return

    if not evidence.attestation or not verify_ed25519_signature(
        message=evidence.signing_bytes(), sig=evidence.attestation, account=attestor
    ):
        raise RewardError(UNAUTHORIZED, "payment_not_attested", {"payment_id": evidence.payment_id})


def _reward_amount(payload: Json) -> Any:
    amount = payload.get("reward_amount")
    if amount is not None:
        return amount
    m = find_milestone(str(payload.get("milestone_id") or ""))
    if m is None:
        raise ValueError("reward_amount missing and milestone is not in the catalog")
    return m.reward_micro


class RequestDispatcher:
    """Routes admitted requests to the engine method for their operation."""

    def __init__(self, engine: SettlementEngine, *, policy: Optional[AdmissionPolicy] = None) -> None:
        self.engine = engine
        self.policy = policy or AdmissionPolicy()
        self._handlers: Dict[Operation, Callable[[RewardRequest], Json]] = {
            Operation.INIT: self._init,
            Operation.FUND_POOL: self._fund_pool,
            Operation.CLAIM_REWARD: self._claim_reward,
            Operation.UPDATE_ADMIN: self._update_admin,
            Operation.EMERGENCY_WITHDRAW: self._emergency_withdraw,
        }

    def admit(self, req: RewardRequest) -> None:
        """Check the signature and burn the nonce.

        The nonce is consumed in its own write, so it stays consumed even
        when the operation is rejected afterwards.
        """
        if req.sig or not self.policy.allow_unsigned:
            verify_request_signature(req)
        self.engine.store.consume_nonce(req.caller, req.nonce)

    def submit(self, obj: Any) -> Json:
        req = obj if isinstance(obj, RewardRequest) else RewardRequest.from_json(obj)
        self.admit(req)
        return self.apply(req)

    def apply(self, req: RewardRequest) -> Json:
        fn = self._handlers.get(req.op)
        if fn is None:
            raise ValueError(f"op not dispatchable: {req.op.value}")

        try:
            result = fn(req)
        except (RewardError, ValueError):
            raise
        except Exception as e:
            raise RewardError(
                INTERNAL_ERROR,
                type(e).__name__,
                {"op": req.op.value, "error": str(e)},
            ) from e

        return {"ok": True, "op": req.op.value, "result": result}

    # ---- handlers -------------------------------------------------------

    def _init(self, req: RewardRequest) -> Json:
        owner = AccountId.parse(req.payload.get("owner") or req.caller)
        if owner != req.caller:
            raise RewardError(UNAUTHORIZED, "init_caller_must_be_owner", {"caller": req.caller.address})
        pool = self.engine.init(owner, req.payload.get("admin"))
        return pool.to_json()

    def _fund_pool(self, req: RewardRequest) -> Json:
        evidence = PaymentEvidence.from_json(_as_dict(req.payload.get("payment")))
        verify_payment_attestation(evidence, self.policy)
        total = self.engine.fund_pool(req.caller, req.payload.get("amount"), evidence)
        return {"total_funded": total}

    def _claim_reward(self, req: RewardRequest) -> Json:
        rec = self.engine.claim_reward(
            req.caller,
            req.payload.get("recipient"),
            str(req.payload.get("milestone_id") or ""),
            _reward_amount(req.payload),
        )
        return rec.to_json()

    def _update_admin(self, req: RewardRequest) -> Json:
        admin = self.engine.update_admin(req.caller, req.payload.get("new_admin"))
        return {"admin": admin.address}

    def _emergency_withdraw(self, req: RewardRequest) -> Json:
        payout_id = self.engine.emergency_withdraw(req.caller, req.payload.get("amount"))
        return {"payout_id": payout_id}
