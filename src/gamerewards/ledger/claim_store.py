# src/gamerewards/ledger/claim_store.py
from __future__ import annotations

import sqlite3
from typing import Dict, Iterable, List, Optional

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.types import ClaimRecord
from gamerewards.runtime.errors import ALREADY_CLAIMED, RewardError


def _already_claimed(key: bytes) -> RewardError:
    return RewardError(ALREADY_CLAIMED, "reward_already_claimed", {"key": bytes(key).hex()})


class ClaimStore:
    """Single-write mapping from claim key to ClaimRecord.

    Existence of a record means "already claimed". put() refuses to
    overwrite, which is the last line of defense against double payout.
    """

    def exists(self, key: bytes) -> bool:
        return self.get(key) is not None

    def get(self, key: bytes) -> Optional[ClaimRecord]:
        raise NotImplementedError

    def put(self, key: bytes, record: ClaimRecord) -> None:
        raise NotImplementedError

    def list_for(self, user: AccountId) -> List[ClaimRecord]:
        raise NotImplementedError


class MemoryClaimStore(ClaimStore):
    """Dict-backed store. Writes go to `staged` until the owning unit commits."""

    def __init__(self, committed: Dict[bytes, ClaimRecord]) -> None:
        self._committed = committed
        self.staged: Dict[bytes, ClaimRecord] = {}

    def get(self, key: bytes) -> Optional[ClaimRecord]:
        k = bytes(key)
        rec = self.staged.get(k)
        if rec is not None:
            return rec
        return self._committed.get(k)

    def put(self, key: bytes, record: ClaimRecord) -> None:
        k = bytes(key)
        if self.exists(k):
            raise _already_claimed(k)
        self.staged[k] = record

    def list_for(self, user: AccountId) -> List[ClaimRecord]:
        recs: Iterable[ClaimRecord] = list(self._committed.values()) + list(self.staged.values())
        out = [r for r in recs if r.recipient == user]
        out.sort(key=lambda r: (r.claimed_ts_ms, r.key))
        return out


def _row_to_record(row: sqlite3.Row) -> ClaimRecord:
    return ClaimRecord(
        key=bytes(row["key"]),
        recipient=AccountId(bytes(row["recipient"])),
        milestone_id=bytes(row["milestone_id"]),
        amount=int(row["amount"]),
        claimed_ts_ms=int(row["claimed_ts_ms"]),
        payout_id=str(row["payout_id"] or ""),
    )


class SqliteClaimStore(ClaimStore):
    """Claim store bound to one SQLite connection (and so to its transaction).

    Amounts are stored as decimal TEXT: SQLite INTEGER is signed 64-bit.
    """

    def __init__(self, con: sqlite3.Connection) -> None:
        self._con = con

    def get(self, key: bytes) -> Optional[ClaimRecord]:
        row = self._con.execute(
            "SELECT key, recipient, milestone_id, amount, claimed_ts_ms, payout_id FROM claims WHERE key=? LIMIT 1;",
            (bytes(key),),
        ).fetchone()
        return _row_to_record(row) if row is not None else None

    def exists(self, key: bytes) -> bool:
        return self._con.execute("SELECT 1 FROM claims WHERE key=? LIMIT 1;", (bytes(key),)).fetchone() is not None

    def put(self, key: bytes, record: ClaimRecord) -> None:
        k = bytes(key)
        try:
            self._con.execute(
                """
                INSERT INTO claims(key, recipient, milestone_id, amount, claimed_ts_ms, payout_id)
                VALUES(?, ?, ?, ?, ?, ?);
                """,
                (
                    k,
                    record.recipient.raw,
                    record.milestone_id,
                    str(int(record.amount)),
                    int(record.claimed_ts_ms),
                    record.payout_id,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise _already_claimed(k) from e

    def list_for(self, user: AccountId) -> List[ClaimRecord]:
        rows = self._con.execute(
            """
            SELECT key, recipient, milestone_id, amount, claimed_ts_ms, payout_id
            FROM claims WHERE recipient=? ORDER BY claimed_ts_ms ASC, key ASC;
            """,
            (user.raw,),
        ).fetchall()
        return [_row_to_record(r) for r in rows]
