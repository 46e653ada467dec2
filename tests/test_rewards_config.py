from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from gamerewards.ledger.accounts import AccountId
from gamerewards.runtime.boot import admission_policy, build_engine
from gamerewards.runtime.config import (
    default_rewards_config,
    load_rewards_config,
    read_rewards_config_file,
    validate_rewards_config,
)
from gamerewards.runtime.store import SqliteLedgerStore

_ENV = (
    "REWARDS_CONFIG_PATH",
    "REWARDS_MODE",
    "REWARDS_DB_PATH",
    "REWARDS_API_HOST",
    "REWARDS_API_PORT",
    "REWARDS_LOG_LEVEL",
    "REWARDS_PAYMENT_ATTESTOR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in _ENV:
        monkeypatch.delenv(k, raising=False)


def test_defaults_are_production_safe() -> None:
    cfg = load_rewards_config()
    assert cfg.mode == "prod"
    assert cfg.allow_unsigned_requests is False
    assert cfg.payment_attestor is None

    pol = admission_policy(cfg)
    assert pol.allow_unsigned is False
    assert pol.require_attestation is True


def test_config_file_and_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    attestor = AccountId(b"\x05" * 32).address
    p = tmp_path / "rewards.json"
    p.write_text(
        json.dumps(
            {
                "mode": "dev",
                "db_path": str(tmp_path / "a.db"),
                "api_port": 9001,
                "allow_unsigned_requests": "yes",
                "max_payout": 5000,
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("REWARDS_CONFIG_PATH", str(p))
    monkeypatch.setenv("REWARDS_DB_PATH", str(tmp_path / "b.db"))
    monkeypatch.setenv("REWARDS_PAYMENT_ATTESTOR", attestor)
    monkeypatch.setenv("REWARDS_LOG_LEVEL", "debug")

    cfg = load_rewards_config()
    assert cfg.mode == "dev"
    assert cfg.api_port == 9001
    assert cfg.allow_unsigned_requests is True
    assert cfg.max_payout == 5000
    assert cfg.db_path == str(tmp_path / "b.db")
    assert cfg.log_level == "DEBUG"
    assert cfg.attestor_account() == AccountId(b"\x05" * 32)

    eng = build_engine(cfg)
    assert isinstance(eng.store, SqliteLedgerStore)
    assert Path(cfg.db_path).exists()


@pytest.mark.parametrize(
    "change",
    [
        {"mode": "staging"},
        {"api_port": 0},
        {"api_port": 70000},
        {"db_path": " "},
        {"allow_unsigned_requests": True},
        {"payment_attestor": "not-an-address"},
        {"max_payout": -1},
        {"log_level": "LOUD"},
    ],
)
def test_validation_rejects_bad_config(change: dict) -> None:
    cfg = replace(default_rewards_config(), **change)
    with pytest.raises(ValueError):
        validate_rewards_config(cfg)


def test_unsigned_requests_allowed_outside_prod() -> None:
    validate_rewards_config(replace(default_rewards_config(), mode="testnet", allow_unsigned_requests=True))


def test_config_file_must_be_object(tmp_path: Path) -> None:
    p = tmp_path / "bad.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        read_rewards_config_file(str(p))
