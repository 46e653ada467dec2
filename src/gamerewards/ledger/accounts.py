# src/gamerewards/ledger/accounts.py
from __future__ import annotations

"""Fixed-width account identifiers.

An account id is the 32-byte Ed25519 public key of the account. Its text
form is a 58-character address:

    base32(pubkey || sha512_256(pubkey)[-4:])   (RFC 4648, no padding)

The fixed width is what makes claim keys unambiguous (see claim_key.py).
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives import hashes

from gamerewards.ledger.constants import ACCOUNT_ID_LEN, ADDRESS_CHECKSUM_LEN, ADDRESS_LEN


def _sha512_256(data: bytes) -> bytes:
    h = hashes.Hash(hashes.SHA512_256())
    h.update(data)
    return h.finalize()


def _checksum(raw: bytes) -> bytes:
    return _sha512_256(raw)[-ADDRESS_CHECKSUM_LEN:]


def encode_address(raw: bytes) -> str:
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != ACCOUNT_ID_LEN:
        raise ValueError(f"account id must be {ACCOUNT_ID_LEN} bytes")
    body = bytes(raw) + _checksum(bytes(raw))
    return base64.b32encode(body).decode("ascii").rstrip("=")


def decode_address(address: str) -> bytes:
    if not isinstance(address, str):
        raise ValueError("address must be a string")
    s = address.strip().upper()
    if len(s) != ADDRESS_LEN:
        raise ValueError(f"address must be {ADDRESS_LEN} characters")

    pad = "=" * (-len(s) % 8)
    try:
        body = base64.b32decode(s + pad)
    except (binascii.Error, ValueError) as e:
        raise ValueError("address is not valid base32") from e

    raw, chk = body[:ACCOUNT_ID_LEN], body[ACCOUNT_ID_LEN:]
    if len(raw) != ACCOUNT_ID_LEN or chk != _checksum(raw):
        raise ValueError("address checksum mismatch")
    return raw


@dataclass(frozen=True, slots=True)
class AccountId:
    """A 32-byte account identifier (Ed25519 public key)."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, bytes):
            raise ValueError("account id must be bytes")
        if len(self.raw) != ACCOUNT_ID_LEN:
            raise ValueError(f"account id must be {ACCOUNT_ID_LEN} bytes; got {len(self.raw)}")

    @classmethod
    def from_address(cls, address: str) -> "AccountId":
        return cls(decode_address(address))

    @classmethod
    def from_hex(cls, pubkey_hex: str) -> "AccountId":
        try:
            raw = bytes.fromhex(str(pubkey_hex).strip())
        except ValueError as e:
            raise ValueError("account id hex is malformed") from e
        return cls(raw)

    @classmethod
    def parse(cls, v: Any) -> "AccountId":
        """Accept an AccountId, raw bytes, an address or a 64-char pubkey hex."""
        if isinstance(v, AccountId):
            return v
        if isinstance(v, (bytes, bytearray)):
            return cls(bytes(v))
        if isinstance(v, str):
            s = v.strip()
            if len(s) == ADDRESS_LEN:
                return cls.from_address(s)
            if len(s) == ACCOUNT_ID_LEN * 2:
                return cls.from_hex(s)
        raise ValueError(f"not an account id: {v!r}")

    @property
    def address(self) -> str:
        return encode_address(self.raw)

    def hex(self) -> str:
        return self.raw.hex()

    def __str__(self) -> str:
        return self.address
