from __future__ import annotations

import pytest

from gamerewards.crypto.sig import sign_ed25519, sign_request_dict
from gamerewards.ledger.catalog import find_milestone
from gamerewards.runtime.dispatch import AdmissionPolicy, RequestDispatcher, RewardRequest
from gamerewards.runtime.engine import SettlementEngine
from gamerewards.runtime.errors import RewardError
from gamerewards.runtime.store import MemoryLedgerStore
from gamerewards.testing.sigtools import attested_payment, signed_request


@pytest.fixture
def dispatcher(clock, attestor) -> RequestDispatcher:
    eng = SettlementEngine(MemoryLedgerStore(clock=clock), clock=clock)
    return RequestDispatcher(eng, policy=AdmissionPolicy(payment_attestor=attestor.account))


def _bootstrap(d: RequestDispatcher, owner, admin, attestor, amount: int = 10_000_000) -> None:
    d.submit(signed_request(owner, "INIT", {"owner": owner.address, "admin": admin.address}, nonce=1))
    pay = attested_payment(attestor, payment_id="dep-1", sender=owner.account, amount=amount)
    d.submit(signed_request(owner, "FUND_POOL", {"amount": amount, "payment": pay}, nonce=2))


def test_signed_lifecycle(dispatcher: RequestDispatcher, owner, admin, alice, attestor) -> None:
    _bootstrap(dispatcher, owner, admin, attestor)

    out = dispatcher.submit(
        signed_request(admin, "CLAIM_REWARD", {"recipient": alice.address, "milestone_id": "m1", "reward_amount": 250}, nonce=1)
    )
    assert out["ok"] is True
    assert out["op"] == "CLAIM_REWARD"
    assert out["result"]["amount"] == 250
    assert out["result"]["recipient"] == alice.address

    out = dispatcher.submit(signed_request(owner, "EMERGENCY_WITHDRAW", {"amount": 50}, nonce=3))
    assert out["result"]["payout_id"]
    assert dispatcher.engine.get_available_balance() == 10_000_000 - 250 - 50

    out = dispatcher.submit(signed_request(owner, "UPDATE_ADMIN", {"new_admin": alice.address}, nonce=4))
    assert out["result"]["admin"] == alice.address


def test_claim_amount_defaults_to_catalog(dispatcher: RequestDispatcher, owner, admin, alice, attestor) -> None:
    _bootstrap(dispatcher, owner, admin, attestor)
    m = find_milestone("rps_wins_5")
    assert m is not None

    out = dispatcher.submit(
        signed_request(admin, "CLAIM_REWARD", {"recipient": alice.address, "milestone_id": "rps_wins_5"}, nonce=1)
    )
    assert out["result"]["amount"] == m.reward_micro == 300_000

    with pytest.raises(ValueError):
        dispatcher.submit(
            signed_request(admin, "CLAIM_REWARD", {"recipient": alice.address, "milestone_id": "unknown"}, nonce=2)
        )


def test_bad_signature_is_unauthorized(dispatcher: RequestDispatcher, owner, admin, alice) -> None:
    # Signed by alice, but claims to come from owner.
    req = signed_request(alice, "INIT", {"owner": owner.address, "admin": admin.address}, caller=owner.address)
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(req)
    assert ei.value.code == "unauthorized"
    assert ei.value.reason == "invalid_signature"

    req = signed_request(owner, "INIT", {"owner": owner.address, "admin": admin.address})
    req["payload"]["admin"] = alice.address
    with pytest.raises(RewardError):
        dispatcher.submit(req)

    unsigned = dict(signed_request(owner, "INIT", {"owner": owner.address, "admin": admin.address}), sig=None)
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(unsigned)
    assert ei.value.reason == "missing_signature"


def test_nonce_consumed_on_apply_reject(dispatcher: RequestDispatcher, owner, admin, alice, attestor) -> None:
    _bootstrap(dispatcher, owner, admin, attestor)

    # Rejected (alice is not admin) but nonce 1 is burned.
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(
            signed_request(alice, "CLAIM_REWARD", {"recipient": alice.address, "milestone_id": "m1", "reward_amount": 1}, nonce=1)
        )
    assert ei.value.code == "unauthorized"
    assert dispatcher.engine.store.last_nonce(alice.account) == 1

    with pytest.raises(RewardError) as ei:
        dispatcher.submit(
            signed_request(alice, "CLAIM_REWARD", {"recipient": alice.address, "milestone_id": "m1", "reward_amount": 1}, nonce=1)
        )
    assert ei.value.code == "bad_nonce"


def test_replayed_request_is_refused(dispatcher: RequestDispatcher, owner, admin, attestor) -> None:
    _bootstrap(dispatcher, owner, admin, attestor)
    req = signed_request(owner, "EMERGENCY_WITHDRAW", {"amount": 10}, nonce=3)
    dispatcher.submit(req)
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(req)
    assert ei.value.code == "bad_nonce"
    assert dispatcher.engine.get_total_pool() == 10_000_000 - 10


@pytest.mark.parametrize("nonce", [0, -1, 2**63])
def test_out_of_range_nonces(dispatcher: RequestDispatcher, owner, admin, nonce: int) -> None:
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(signed_request(owner, "INIT", {"owner": owner.address, "admin": admin.address}, nonce=nonce))
    assert ei.value.code == "bad_nonce"


def test_init_caller_must_be_owner(dispatcher: RequestDispatcher, owner, admin) -> None:
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(signed_request(admin, "INIT", {"owner": owner.address, "admin": admin.address}))
    assert ei.value.reason == "init_caller_must_be_owner"
    assert not dispatcher.engine.pool_snapshot().initialized


def test_fund_requires_attestation(dispatcher: RequestDispatcher, owner, admin, alice, attestor) -> None:
    _bootstrap(dispatcher, owner, admin, attestor, amount=100)

    forged = attested_payment(alice, payment_id="dep-2", sender=alice.account, amount=500)
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(signed_request(alice, "FUND_POOL", {"amount": 500, "payment": forged}, nonce=1))
    assert ei.value.reason == "payment_not_attested"

    bare = {"payment_id": "dep-3", "sender": alice.address, "amount": 500}
    with pytest.raises(RewardError):
        dispatcher.submit(signed_request(alice, "FUND_POOL", {"amount": 500, "payment": bare}, nonce=2))

    assert dispatcher.engine.get_total_pool() == 100


def test_unattested_funding_without_attestor(clock, owner, admin) -> None:
    eng = SettlementEngine(MemoryLedgerStore(clock=clock), clock=clock)
    bare = {"payment_id": "dep-1", "sender": owner.address, "amount": 10}

    strict = RequestDispatcher(eng)
    strict.submit(signed_request(owner, "INIT", {"owner": owner.address, "admin": admin.address}, nonce=1))
    with pytest.raises(RewardError) as ei:
        strict.submit(signed_request(owner, "FUND_POOL", {"amount": 10, "payment": bare}, nonce=2))
    assert ei.value.reason == "payment_attestor_not_configured"

    lax = RequestDispatcher(eng, policy=AdmissionPolicy(allow_unsigned=True, require_attestation=False))
    unsigned = {"op": "FUND_POOL", "caller": owner.address, "nonce": 3, "payload": {"amount": 10, "payment": bare}}
    assert lax.submit(unsigned)["result"]["total_funded"] == 10


@pytest.mark.parametrize(
    "obj",
    [
        [],
        {"op": "NOPE", "caller": "x", "nonce": 1},
        {"op": "GET_TOTAL_POOL", "caller": "x", "nonce": 1},
        {"op": "INIT", "caller": "not-an-address", "nonce": 1},
        {"op": "INIT", "caller": "A" * 58, "nonce": "1"},
    ],
)
def test_malformed_envelopes(obj) -> None:
    with pytest.raises(ValueError):
        RewardRequest.from_json(obj)


def test_unexpected_errors_become_internal_error(dispatcher: RequestDispatcher, owner, admin, monkeypatch) -> None:
    def _boom(*a, **k):
        raise KeyError("kaboom")

    monkeypatch.setattr(dispatcher.engine, "init", _boom)
    with pytest.raises(RewardError) as ei:
        dispatcher.submit(signed_request(owner, "INIT", {"owner": owner.address, "admin": admin.address}))
    assert ei.value.code == "internal_error"
    assert ei.value.reason == "KeyError"
    assert isinstance(ei.value.__cause__, KeyError)


def test_base64_signatures_and_expanded_keys(dispatcher: RequestDispatcher, owner, admin) -> None:
    # 64-byte key form: seed followed by the public key.
    expanded = owner.privkey_hex + owner.account.raw.hex()
    req = {"op": "INIT", "caller": owner.address, "nonce": 1, "payload": {"owner": owner.address, "admin": admin.address}}
    signed = sign_request_dict(req, privkey=expanded, encoding="base64")
    assert "sig" not in req

    assert dispatcher.submit(signed)["result"]["initialized"] is True

    with pytest.raises(ValueError):
        sign_ed25519(message=b"x", privkey=owner.privkey_hex, encoding="pem")
    with pytest.raises(ValueError):
        sign_ed25519(message=b"x", privkey="00" * 31)
