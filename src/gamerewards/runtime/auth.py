# src/gamerewards/runtime/auth.py
from __future__ import annotations

from typing import Any, Optional

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.types import PoolState
from gamerewards.runtime.errors import UNAUTHORIZED, RewardError

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"


class AuthorizationGuard:
    """Checks a caller against the identities stored in the pool.

    owner: reassigns admin, withdraws.
    admin: approves milestone claims.
    """

    def __init__(self, pool: PoolState) -> None:
        self._pool = pool

    def identity(self, role: str) -> Optional[AccountId]:
        if role == ROLE_OWNER:
            return self._pool.owner
        if role == ROLE_ADMIN:
            return self._pool.admin
        raise ValueError(f"unknown role: {role!r}")

    def has_role(self, role: str, caller: Any) -> bool:
        expected = self.identity(role)
        if expected is None:
            return False
        try:
            return AccountId.parse(caller) == expected
        except ValueError:
            return False

    def require(self, role: str, caller: Any) -> AccountId:
        if not self.has_role(role, caller):
            raise RewardError(UNAUTHORIZED, f"only_{role}", {"role": role, "caller": str(caller)})
        return AccountId.parse(caller)
