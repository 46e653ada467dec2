# src/gamerewards/ledger/constants.py
from __future__ import annotations

"""Monetary and codec constants for the reward ledger.

- Amounts are integer micro-units (1 coin = 1e6 micro-units)
- Counters and amounts are uint64
- Account ids are fixed-width Ed25519 public keys
"""

# Monetary precision (1 coin = 1e-6 units)
COIN_DECIMALS: int = 6
COIN: int = 10**COIN_DECIMALS

UINT64_MAX: int = 2**64 - 1

# Account identifiers
ACCOUNT_ID_LEN: int = 32
ADDRESS_CHECKSUM_LEN: int = 4
ADDRESS_LEN: int = 58

# Milestone ids are opaque bytes; keep claim keys bounded.
MAX_MILESTONE_ID_LEN: int = 64
MAX_CLAIM_KEY_LEN: int = ACCOUNT_ID_LEN + MAX_MILESTONE_ID_LEN

# Payout kinds recorded in the outbox
PAYOUT_KIND_CLAIM: str = "claim"
PAYOUT_KIND_WITHDRAW: str = "withdraw"
