# src/gamerewards/cli.py
"""Operator CLI.

Commands that touch the ledger open the configured SQLite database
directly; they run in the operator's trust domain and skip request
signatures and payment attestation.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from typing import Any, Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from gamerewards.env import load_dotenv_if_present
from gamerewards.ledger.accounts import AccountId
from gamerewards.ledger.types import PaymentEvidence
from gamerewards.runtime.boot import build_engine
from gamerewards.runtime.config import RewardsConfig, load_rewards_config
from gamerewards.runtime.engine import SettlementEngine
from gamerewards.runtime.errors import RewardError
from gamerewards.runtime.logs import configure_structured_logging


def _print(obj: Any) -> None:
    print(json.dumps(obj, sort_keys=True, indent=2))


def _config(args: argparse.Namespace) -> RewardsConfig:
    cfg = load_rewards_config(config_path=args.config)
    if args.db:
        cfg = replace(cfg, db_path=args.db)
    return cfg


def _engine(args: argparse.Namespace) -> SettlementEngine:
    return build_engine(_config(args))


def cmd_keygen(args: argparse.Namespace) -> int:
    sk = Ed25519PrivateKey.generate()
    seed = sk.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    pub = sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    _print({"privkey": seed.hex(), "pubkey": pub.hex(), "address": AccountId(pub).address})
    return 0


def cmd_address(args: argparse.Namespace) -> int:
    _print({"pubkey": args.pubkey, "address": AccountId.from_hex(args.pubkey).address})
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    pool = _engine(args).init(args.owner, args.admin)
    _print(pool.to_json())
    return 0


def cmd_fund(args: argparse.Namespace) -> int:
    sender = AccountId.parse(args.sender)
    evidence = PaymentEvidence(payment_id=args.payment_id, sender=sender, amount=int(args.amount))
    total = _engine(args).fund_pool(sender, int(args.amount), evidence)
    _print({"total_funded": total})
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    _print(_engine(args).pool_summary())
    return 0


def cmd_claims(args: argparse.Namespace) -> int:
    claims = _engine(args).list_claims(args.address)
    _print({"claims": [c.to_json() for c in claims], "total": sum(int(c.amount) for c in claims)})
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from gamerewards.api.app import create_app

    cfg = _config(args)
    host = args.host or cfg.api_host
    port = int(args.port or cfg.api_port)
    uvicorn.run(create_app(cfg=cfg), host=host, port=port, log_level=cfg.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gamerewards", description="Game milestone reward ledger")
    p.add_argument("--config", default=None, help="JSON config file (default: $REWARDS_CONFIG_PATH)")
    p.add_argument("--db", default=None, help="SQLite database path (overrides config)")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("keygen", help="generate an Ed25519 keypair and its address")
    s.set_defaults(func=cmd_keygen)

    s = sub.add_parser("address", help="address for a 32-byte public key")
    s.add_argument("pubkey", help="public key hex")
    s.set_defaults(func=cmd_address)

    s = sub.add_parser("init", help="initialize the pool")
    s.add_argument("--owner", required=True)
    s.add_argument("--admin", required=True)
    s.set_defaults(func=cmd_init)

    s = sub.add_parser("fund", help="credit an inbound payment to the pool")
    s.add_argument("--amount", required=True, type=int, help="micro-units")
    s.add_argument("--payment-id", required=True)
    s.add_argument("--sender", required=True)
    s.set_defaults(func=cmd_fund)

    s = sub.add_parser("stats", help="pool totals")
    s.set_defaults(func=cmd_stats)

    s = sub.add_parser("claims", help="claim history of one account")
    s.add_argument("address")
    s.set_defaults(func=cmd_claims)

    s = sub.add_parser("serve", help="run the HTTP API")
    s.add_argument("--host", default=None)
    s.add_argument("--port", default=None, type=int)
    s.set_defaults(func=cmd_serve)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv_if_present()
    args = build_parser().parse_args(argv)
    configure_structured_logging()

    try:
        return int(args.func(args))
    except RewardError as e:
        print(json.dumps({"ok": False, "error": {"code": e.code, "message": e.reason, "details": e.details or {}}}), file=sys.stderr)
        return 2
    except ValueError as e:
        print(json.dumps({"ok": False, "error": {"code": "bad_request", "message": str(e)}}), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
