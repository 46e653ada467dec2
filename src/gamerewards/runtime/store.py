# src/gamerewards/runtime/store.py
from __future__ import annotations

"""Settlement units: the all-or-nothing execution environment.

A unit stages every write an operation makes (pool counters, claim record,
payout outbox row, credited payment id). Leaving the `with store.unit()`
block normally commits them together; an exception discards all of them.
Units on one store are serialized, so a duplicate check and the write it
guards always belong to the same unit.
"""

import json
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.claim_store import ClaimStore, MemoryClaimStore, SqliteClaimStore
from gamerewards.ledger.pool import PoolLedger
from gamerewards.ledger.types import ClaimRecord, PaymentEvidence, PayoutRecord, PoolState
from gamerewards.runtime.errors import BAD_NONCE, RewardError
from gamerewards.runtime.sqlite_db import SqliteDB, canon_json
from gamerewards.runtime.transfer import (
    ListPayoutOutbox,
    OutboxTransferExecutor,
    PaymentRail,
    PayoutOutbox,
    TransferExecutor,
)

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


class PaymentRegistry:
    """Inbound payments already credited to the pool."""

    def seen(self, payment_id: str) -> bool:
        raise NotImplementedError

    def credit(self, evidence: PaymentEvidence, ts_ms: int) -> None:
        raise NotImplementedError


class MemoryPaymentRegistry(PaymentRegistry):
    def __init__(self, committed: Dict[str, Json]) -> None:
        self._committed = committed
        self.staged: Dict[str, Json] = {}

    def seen(self, payment_id: str) -> bool:
        return payment_id in self.staged or payment_id in self._committed

    def credit(self, evidence: PaymentEvidence, ts_ms: int) -> None:
        self.staged[evidence.payment_id] = {
            "sender": evidence.sender.address,
            "amount": int(evidence.amount),
            "credited_ts_ms": int(ts_ms),
        }


class SqlitePaymentRegistry(PaymentRegistry):
    def __init__(self, con: sqlite3.Connection) -> None:
        self._con = con

    def seen(self, payment_id: str) -> bool:
        row = self._con.execute("SELECT 1 FROM inbound_payments WHERE payment_id=? LIMIT 1;", (payment_id,)).fetchone()
        return row is not None

    def credit(self, evidence: PaymentEvidence, ts_ms: int) -> None:
        self._con.execute(
            "INSERT INTO inbound_payments(payment_id, sender, amount, credited_ts_ms) VALUES(?, ?, ?, ?);",
            (evidence.payment_id, evidence.sender.raw, str(int(evidence.amount)), int(ts_ms)),
        )


class SqlitePayoutOutbox(PayoutOutbox):
    def __init__(self, con: sqlite3.Connection) -> None:
        self._con = con

    def append(self, record: PayoutRecord) -> None:
        self._con.execute(
            """
            INSERT INTO payouts(payout_id, recipient, amount, kind, ref, created_ts_ms)
            VALUES(?, ?, ?, ?, ?, ?);
            """,
            (
                record.payout_id,
                record.recipient.raw,
                str(int(record.amount)),
                record.kind,
                record.ref,
                int(record.created_ts_ms),
            ),
        )

    def count(self) -> int:
        row = self._con.execute("SELECT COUNT(*) FROM payouts;").fetchone()
        return int(row[0]) if row is not None else 0


@dataclass
class SettlementUnit:
    pool: PoolLedger
    claims: ClaimStore
    transfers: TransferExecutor
    payments: PaymentRegistry


class LedgerStore:
    """Execution environment shared by all settlement engine operations."""

    def unit(self):  # pragma: no cover - interface
        raise NotImplementedError

    def snapshot_pool(self) -> PoolState:
        raise NotImplementedError

    def get_claim(self, key: bytes) -> Optional[ClaimRecord]:
        raise NotImplementedError

    def list_claims(self, user: AccountId) -> List[ClaimRecord]:
        raise NotImplementedError

    def list_payouts(self, *, limit: int = 100) -> List[PayoutRecord]:
        raise NotImplementedError

    def last_nonce(self, account: AccountId) -> int:
        raise NotImplementedError

    def consume_nonce(self, account: AccountId, nonce: int) -> None:
        """Record `nonce` for `account`; it must exceed the last one recorded."""
        raise NotImplementedError


_MAX_NONCE = 2**63 - 1


def _check_nonce(account: AccountId, nonce: Any, last: int) -> int:
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce <= last or nonce > _MAX_NONCE:
        raise RewardError(BAD_NONCE, "nonce_not_increasing", {"account": account.address, "nonce": nonce, "last": last})
    return int(nonce)


class MemoryLedgerStore(LedgerStore):
    """In-process store. A re-entrant lock serializes units."""

    def __init__(self, *, rail: Optional[PaymentRail] = None, clock: Optional[Callable[[], int]] = None) -> None:
        self._lock = threading.RLock()
        self._rail = rail
        self._clock = clock or _now_ms
        self._pool = PoolState()
        self._claims: Dict[bytes, ClaimRecord] = {}
        self._payouts: List[PayoutRecord] = []
        self._payments: Dict[str, Json] = {}
        self._nonces: Dict[bytes, int] = {}

    @contextmanager
    def unit(self) -> Iterator[SettlementUnit]:
        with self._lock:
            pool = self._pool.copy()
            claims = MemoryClaimStore(self._claims)
            outbox = ListPayoutOutbox(self._payouts)
            payments = MemoryPaymentRegistry(self._payments)

            yield SettlementUnit(
                pool=PoolLedger(pool),
                claims=claims,
                transfers=OutboxTransferExecutor(outbox, rail=self._rail, clock=self._clock),
                payments=payments,
            )

            # Only reached when the unit body did not raise.
            self._pool = pool
            self._claims.update(claims.staged)
            self._payouts.extend(outbox.staged)
            self._payments.update(payments.staged)

    def snapshot_pool(self) -> PoolState:
        with self._lock:
            return self._pool.copy()

    def get_claim(self, key: bytes) -> Optional[ClaimRecord]:
        with self._lock:
            return self._claims.get(bytes(key))

    def list_claims(self, user: AccountId) -> List[ClaimRecord]:
        with self._lock:
            return MemoryClaimStore(self._claims).list_for(user)

    def list_payouts(self, *, limit: int = 100) -> List[PayoutRecord]:
        with self._lock:
            return list(self._payouts[: max(0, int(limit))])

    def last_nonce(self, account: AccountId) -> int:
        with self._lock:
            return int(self._nonces.get(account.raw, 0))

    def consume_nonce(self, account: AccountId, nonce: int) -> None:
        with self._lock:
            self._nonces[account.raw] = _check_nonce(account, nonce, self._nonces.get(account.raw, 0))


class SqliteLedgerStore(LedgerStore):
    """Durable store. Each unit is one SQLite write transaction."""

    def __init__(
        self,
        *,
        db: SqliteDB,
        rail: Optional[PaymentRail] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._db = db
        self._db.init_schema()
        self._rail = rail
        self._clock = clock or _now_ms

    @property
    def db(self) -> SqliteDB:
        return self._db

    @staticmethod
    def _read_pool(con: sqlite3.Connection) -> PoolState:
        row = con.execute("SELECT state_json FROM pool_state WHERE id=1;").fetchone()
        if row is None:
            return PoolState()
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("pool_state is not a JSON object")
        return PoolState.from_json(st)

    def _write_pool(self, con: sqlite3.Connection, pool: PoolState) -> None:
        con.execute(
            """
            INSERT INTO pool_state(id, state_json, updated_ts_ms) VALUES(1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET state_json=excluded.state_json, updated_ts_ms=excluded.updated_ts_ms;
            """,
            (canon_json(pool.to_json()), int(self._clock())),
        )

    @contextmanager
    def unit(self) -> Iterator[SettlementUnit]:
        with self._db.write_tx() as con:
            pool = self._read_pool(con)
            before = pool.to_json()

            yield SettlementUnit(
                pool=PoolLedger(pool),
                claims=SqliteClaimStore(con),
                transfers=OutboxTransferExecutor(SqlitePayoutOutbox(con), rail=self._rail, clock=self._clock),
                payments=SqlitePaymentRegistry(con),
            )

            if pool.to_json() != before:
                self._write_pool(con, pool)

    def snapshot_pool(self) -> PoolState:
        with self._db.connection() as con:
            return self._read_pool(con)

    def get_claim(self, key: bytes) -> Optional[ClaimRecord]:
        with self._db.connection() as con:
            return SqliteClaimStore(con).get(key)

    def list_claims(self, user: AccountId) -> List[ClaimRecord]:
        with self._db.connection() as con:
            return SqliteClaimStore(con).list_for(user)

    def list_payouts(self, *, limit: int = 100) -> List[PayoutRecord]:
        with self._db.connection() as con:
            rows = con.execute(
                """
                SELECT payout_id, recipient, amount, kind, ref, created_ts_ms
                FROM payouts ORDER BY seq ASC LIMIT ?;
                """,
                (max(0, int(limit)),),
            ).fetchall()
        return [
            PayoutRecord(
                payout_id=str(r["payout_id"]),
                recipient=AccountId(bytes(r["recipient"])),
                amount=int(r["amount"]),
                kind=str(r["kind"]),
                ref=str(r["ref"]),
                created_ts_ms=int(r["created_ts_ms"]),
            )
            for r in rows
        ]

    def last_nonce(self, account: AccountId) -> int:
        with self._db.connection() as con:
            row = con.execute("SELECT nonce FROM nonces WHERE account=?;", (account.raw,)).fetchone()
            return int(row["nonce"]) if row is not None else 0

    def consume_nonce(self, account: AccountId, nonce: int) -> None:
        with self._db.write_tx() as con:
            row = con.execute("SELECT nonce FROM nonces WHERE account=?;", (account.raw,)).fetchone()
            last = int(row["nonce"]) if row is not None else 0
            n = _check_nonce(account, nonce, last)
            con.execute(
                "INSERT INTO nonces(account, nonce) VALUES(?, ?) ON CONFLICT(account) DO UPDATE SET nonce=excluded.nonce;",
                (account.raw, n),
            )
