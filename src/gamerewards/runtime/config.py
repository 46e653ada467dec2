# src/gamerewards/runtime/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from gamerewards.ledger.accounts import AccountId

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_opt_int(v: Any, default: Optional[int]) -> Optional[int]:
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    try:
        return int(v)
    except Exception:
        return default


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_opt_str(v: Any, default: Optional[str]) -> Optional[str]:
    if v is None:
        return default
    s = str(v).strip()
    return s or default


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class RewardsConfig:
    mode: str  # "dev" | "testnet" | "prod"

    db_path: str

    api_host: str
    api_port: int

    allow_unsigned_requests: bool

    # Address of the account that attests inbound pool payments.
    payment_attestor: Optional[str]

    # Per-payout ceiling enforced by the payment rail (micro-units).
    max_payout: Optional[int]

    log_level: str

    @property
    def is_prod(self) -> bool:
        return str(self.mode or "").strip().lower() == "prod"

    def attestor_account(self) -> Optional[AccountId]:
        return AccountId.parse(self.payment_attestor) if self.payment_attestor else None


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_rewards_config(cfg: RewardsConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if mode == "prod" and cfg.allow_unsigned_requests:
        raise ValueError("allow_unsigned_requests is not permitted in prod mode")

    if cfg.payment_attestor:
        try:
            AccountId.parse(cfg.payment_attestor)
        except ValueError as e:
            raise ValueError(f"payment_attestor is not a valid address: {cfg.payment_attestor!r}") from e

    if cfg.max_payout is not None and int(cfg.max_payout) < 0:
        raise ValueError(f"max_payout must be >= 0; got: {cfg.max_payout}")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LOG_LEVELS}; got: {cfg.log_level!r}")


def default_rewards_config() -> RewardsConfig:
    return RewardsConfig(
        # Without an explicit config file the service starts signed-only.
        mode="prod",
        db_path="./data/rewards.db",
        api_host="127.0.0.1",
        api_port=8080,
        allow_unsigned_requests=False,
        payment_attestor=None,
        max_payout=None,
        log_level="INFO",
    )


def _from_mapping(raw: Json, d: RewardsConfig) -> RewardsConfig:
    return RewardsConfig(
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        allow_unsigned_requests=_as_bool(raw.get("allow_unsigned_requests"), d.allow_unsigned_requests),
        payment_attestor=_as_opt_str(raw.get("payment_attestor"), d.payment_attestor),
        max_payout=_as_opt_int(raw.get("max_payout"), d.max_payout),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )


def read_rewards_config_file(path: str) -> RewardsConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("rewards config must be a JSON object")
    return _from_mapping(raw, default_rewards_config())


def apply_env_overrides(cfg: RewardsConfig) -> RewardsConfig:
    env = os.environ
    out = cfg
    if env.get("REWARDS_MODE"):
        out = replace(out, mode=env["REWARDS_MODE"].strip().lower())
    if env.get("REWARDS_DB_PATH"):
        out = replace(out, db_path=env["REWARDS_DB_PATH"])
    if env.get("REWARDS_API_HOST"):
        out = replace(out, api_host=env["REWARDS_API_HOST"])
    if env.get("REWARDS_API_PORT"):
        out = replace(out, api_port=_as_int(env["REWARDS_API_PORT"], out.api_port))
    if env.get("REWARDS_LOG_LEVEL"):
        out = replace(out, log_level=env["REWARDS_LOG_LEVEL"].strip().upper())
    if env.get("REWARDS_PAYMENT_ATTESTOR"):
        out = replace(out, payment_attestor=env["REWARDS_PAYMENT_ATTESTOR"].strip())
    return out


def load_rewards_config(*, config_path: Optional[str] = None) -> RewardsConfig:
    p = config_path or os.environ.get("REWARDS_CONFIG_PATH")
    cfg = read_rewards_config_file(p) if p else default_rewards_config()
    cfg = apply_env_overrides(cfg)
    validate_rewards_config(cfg)
    return cfg
