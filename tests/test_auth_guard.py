from __future__ import annotations

import pytest

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.types import PoolState
from gamerewards.runtime.auth import ROLE_ADMIN, ROLE_OWNER, AuthorizationGuard
from gamerewards.runtime.errors import RewardError

OWNER = AccountId(b"\x01" * 32)
ADMIN = AccountId(b"\x02" * 32)
OTHER = AccountId(b"\x03" * 32)


def test_roles_match_stored_identities() -> None:
    g = AuthorizationGuard(PoolState(owner=OWNER, admin=ADMIN, initialized=True))
    assert g.require(ROLE_OWNER, OWNER) == OWNER
    assert g.require(ROLE_ADMIN, ADMIN.address) == ADMIN
    assert not g.has_role(ROLE_ADMIN, OWNER)
    assert not g.has_role(ROLE_OWNER, "garbage")


@pytest.mark.parametrize("role,caller", [(ROLE_OWNER, ADMIN), (ROLE_ADMIN, OTHER), (ROLE_ADMIN, OWNER)])
def test_wrong_identity_is_unauthorized(role: str, caller: AccountId) -> None:
    g = AuthorizationGuard(PoolState(owner=OWNER, admin=ADMIN, initialized=True))
    with pytest.raises(RewardError) as ei:
        g.require(role, caller)
    assert ei.value.code == "unauthorized"
    assert ei.value.reason == f"only_{role}"


def test_uninitialized_pool_has_no_roles() -> None:
    g = AuthorizationGuard(PoolState())
    assert not g.has_role(ROLE_OWNER, OWNER)
    with pytest.raises(ValueError):
        g.identity("root")
