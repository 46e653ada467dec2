from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from gamerewards.runtime.errors import (
    ALREADY_CLAIMED,
    ALREADY_INITIALIZED,
    BAD_NONCE,
    INSUFFICIENT_BALANCE,
    INVALID_AMOUNT,
    NOT_INITIALIZED,
    PAYMENT_MISMATCH,
    PAYMENT_REPLAYED,
    TRANSFER_FAILED,
    UNAUTHORIZED,
    RewardError,
)

Json = Dict[str, Any]

_STATUS_BY_CODE: Dict[str, int] = {
    UNAUTHORIZED: 403,
    NOT_INITIALIZED: 409,
    ALREADY_INITIALIZED: 409,
    ALREADY_CLAIMED: 409,
    PAYMENT_REPLAYED: 409,
    INSUFFICIENT_BALANCE: 422,
    TRANSFER_FAILED: 422,
    BAD_NONCE: 400,
    INVALID_AMOUNT: 400,
    PAYMENT_MISMATCH: 400,
}


def status_for_code(code: str) -> int:
    return _STATUS_BY_CODE.get(str(code), 500)


def error_body(code: str, message: str, details: Optional[Json] = None) -> Json:
    return {"ok": False, "error": {"code": str(code), "message": str(message), "details": details or {}}}


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def unavailable(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(503, code, message, details or {})

    @staticmethod
    def from_reward_error(e: RewardError) -> "ApiError":
        return ApiError(status_for_code(e.code), e.code, e.reason, dict(e.details or {}))

    def body(self) -> Json:
        return error_body(self.code, self.message, self.details)
