# src/gamerewards/crypto/sig.py
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from gamerewards.ledger.accounts import AccountId

Json = Dict[str, Any]


def _decode_bytes(s: str) -> bytes:
    s = s.strip()
    if not s:
        raise ValueError("empty string")
    # hex
    try:
        return bytes.fromhex(s)
    except ValueError:
        pass
    # base64 / base64url
    try:
        padding = "=" * (-len(s) % 4)
        s2 = (s + padding).replace("-", "+").replace("_", "/")
        return base64.b64decode(s2, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("not hex or base64") from e


def canonical_request_message(*, op: str, caller: str, nonce: int, payload: Json) -> bytes:
    """Bytes a caller signs for a request envelope."""
    obj: Json = {
        "op": str(op),
        "caller": str(caller),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def verify_ed25519_signature(*, message: bytes, sig: str, account: AccountId) -> bool:
    """The account id is the Ed25519 public key, so no key registry is needed."""
    try:
        sig_b = _decode_bytes(sig)
        key = Ed25519PublicKey.from_public_bytes(account.raw)
        key.verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def load_private_key(privkey: str) -> Ed25519PrivateKey:
    """privkey: hex or base64 string of a 32-byte seed (or 64-byte expanded key)."""
    pk_b = _decode_bytes(privkey)
    if len(pk_b) == 64:
        pk_b = pk_b[:32]
    if len(pk_b) != 32:
        raise ValueError("ed25519 privkey must be 32-byte seed (or 64-byte expanded key)")
    return Ed25519PrivateKey.from_private_bytes(pk_b)


def sign_ed25519(*, message: bytes, privkey: str, encoding: str = "hex") -> str:
    sig_b = load_private_key(privkey).sign(message)
    if encoding == "hex":
        return sig_b.hex()
    if encoding in {"b64", "base64"}:
        return base64.b64encode(sig_b).decode("ascii")
    raise ValueError("unsupported encoding")


def sign_request_dict(req: Json, *, privkey: str, encoding: str = "hex") -> Json:
    """Return a copy of a request envelope with its 'sig' field populated."""
    msg = canonical_request_message(
        op=str(req.get("op") or ""),
        caller=str(req.get("caller") or ""),
        nonce=int(req.get("nonce") or 0),
        payload=req.get("payload") if isinstance(req.get("payload"), dict) else {},
    )
    out = dict(req)
    out["sig"] = sign_ed25519(message=msg, privkey=privkey, encoding=encoding)
    return out
