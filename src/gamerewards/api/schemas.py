"""Pydantic request schemas for the public API.

These exist only for HTTP input validation. The signed message is rebuilt
from the payload exactly as the client sent it (model_dump with
exclude_unset), so integer fields are strict and unknown fields are refused.
Milestone ids are bounded by the claim key codec (64 UTF-8 bytes), not here.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, StrictInt

Json = Dict[str, Any]


class PaymentEvidenceModel(BaseModel):
    payment_id: str = Field(..., min_length=1, description="Rail-level id of the inbound payment")
    sender: str = Field(..., description="Sender address")
    amount: StrictInt = Field(..., ge=0, description="Micro-units received")
    attestation: Optional[str] = Field(default=None, description="Deposit attestor signature (hex or base64)")

    model_config = {"extra": "forbid"}


class InitPayload(BaseModel):
    owner: str = Field(..., description="Owner address; must equal the caller")
    admin: str = Field(..., description="Admin address")

    model_config = {"extra": "forbid"}


class FundPayload(BaseModel):
    amount: StrictInt = Field(..., description="Micro-units to credit")
    payment: PaymentEvidenceModel

    model_config = {"extra": "forbid"}


class ClaimPayload(BaseModel):
    recipient: str = Field(..., description="Recipient address")
    milestone_id: str = Field(..., min_length=1, description="Milestone id (at most 64 UTF-8 bytes)")
    reward_amount: Optional[StrictInt] = Field(
        default=None, description="Micro-units; looked up in the milestone catalog when omitted"
    )

    model_config = {"extra": "forbid"}


class UpdateAdminPayload(BaseModel):
    new_admin: str = Field(..., description="New admin address")

    model_config = {"extra": "forbid"}


class WithdrawPayload(BaseModel):
    amount: StrictInt = Field(..., description="Micro-units to pay back to the owner")

    model_config = {"extra": "forbid"}


class _Envelope(BaseModel):
    op: Optional[str] = Field(default=None, description="Optional; must match the route when present")
    caller: str = Field(..., description="Caller address")
    nonce: StrictInt = Field(..., description="Strictly increasing per caller")
    sig: Optional[str] = Field(default=None, description="Ed25519 signature over the canonical request")

    model_config = {"extra": "forbid"}

    def to_request(self, op: str) -> Json:
        if self.op is not None and self.op != op:
            raise ValueError(f"op {self.op!r} does not match route operation {op!r}")
        payload = getattr(self, "payload")
        return {
            "op": op,
            "caller": self.caller,
            "nonce": self.nonce,
            "payload": payload.model_dump(exclude_unset=True),
            "sig": self.sig,
        }


class InitRequest(_Envelope):
    payload: InitPayload


class FundRequest(_Envelope):
    payload: FundPayload


class ClaimRequest(_Envelope):
    payload: ClaimPayload


class UpdateAdminRequest(_Envelope):
    payload: UpdateAdminPayload


class WithdrawRequest(_Envelope):
    payload: WithdrawPayload


class GenericRequest(BaseModel):
    op: str = Field(..., description="INIT | FUND_POOL | CLAIM_REWARD | UPDATE_ADMIN | EMERGENCY_WITHDRAW")
    caller: str
    nonce: StrictInt
    payload: Json = Field(default_factory=dict)
    sig: Optional[str] = None

    model_config = {"extra": "forbid"}
