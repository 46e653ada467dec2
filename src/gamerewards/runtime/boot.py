# src/gamerewards/runtime/boot.py

from __future__ import annotations

from typing import Optional

from gamerewards.runtime.config import RewardsConfig, load_rewards_config
from gamerewards.runtime.dispatch import AdmissionPolicy, RequestDispatcher
from gamerewards.runtime.engine import SettlementEngine
from gamerewards.runtime.sqlite_db import SqliteDB
from gamerewards.runtime.store import SqliteLedgerStore
from gamerewards.runtime.transfer import CeilingRail, PaymentRail


def build_rail(cfg: RewardsConfig) -> Optional[PaymentRail]:
    if cfg.max_payout is None:
        return None
    return CeilingRail(int(cfg.max_payout))


def build_engine(cfg: Optional[RewardsConfig] = None) -> SettlementEngine:
    """
    Build a SettlementEngine on the configured SQLite database.

    With no explicit config, config is loaded from REWARDS_CONFIG_PATH and
    REWARDS_* overrides, which is what the API and CLI do in production.
    """
    c = cfg or load_rewards_config()
    db = SqliteDB(path=c.db_path)
    return SettlementEngine(SqliteLedgerStore(db=db, rail=build_rail(c)))


def admission_policy(cfg: RewardsConfig) -> AdmissionPolicy:
    return AdmissionPolicy(
        allow_unsigned=bool(cfg.allow_unsigned_requests),
        payment_attestor=cfg.attestor_account(),
        require_attestation=cfg.is_prod,
    )


def build_dispatcher(engine: SettlementEngine, cfg: RewardsConfig) -> RequestDispatcher:
    return RequestDispatcher(engine, policy=admission_policy(cfg))
