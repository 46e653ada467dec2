# src/gamerewards/ledger/claim_key.py
from __future__ import annotations

from typing import Any

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.constants import ACCOUNT_ID_LEN, MAX_MILESTONE_ID_LEN


def milestone_bytes(milestone_id: Any) -> bytes:
    """Normalize a milestone id to its canonical bytes.

    Text ids are UTF-8 encoded. Ids must be non-empty and at most
    MAX_MILESTONE_ID_LEN bytes.
    """
    if isinstance(milestone_id, str):
        b = milestone_id.encode("utf-8")
    elif isinstance(milestone_id, (bytes, bytearray)):
        b = bytes(milestone_id)
    else:
        raise ValueError(f"milestone id must be str or bytes; got {type(milestone_id).__name__}")

    if not b:
        raise ValueError("milestone id must be non-empty")
    if len(b) > MAX_MILESTONE_ID_LEN:
        raise ValueError(f"milestone id must be at most {MAX_MILESTONE_ID_LEN} bytes")
    return b


def derive_claim_key(user: AccountId, milestone_id: Any) -> bytes:
    """Return the claim key for (user, milestone): user.raw || milestone.

    The account id is fixed-width, so no two (user, milestone) pairs share a key.
    """
    return AccountId.parse(user).raw + milestone_bytes(milestone_id)


def split_claim_key(key: bytes) -> tuple[AccountId, bytes]:
    if not isinstance(key, (bytes, bytearray)) or len(key) <= ACCOUNT_ID_LEN:
        raise ValueError("claim key is too short")
    key = bytes(key)
    return AccountId(key[:ACCOUNT_ID_LEN]), milestone_bytes(key[ACCOUNT_ID_LEN:])
