from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Iterator

import pytest

# Ensure local "src/" takes precedence over any globally-installed "gamerewards" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from gamerewards.runtime import metrics  # noqa: E402
from gamerewards.runtime.engine import SettlementEngine  # noqa: E402
from gamerewards.runtime.sqlite_db import SqliteDB  # noqa: E402
from gamerewards.runtime.store import LedgerStore, MemoryLedgerStore, SqliteLedgerStore  # noqa: E402
from gamerewards.testing.sigtools import TestKey, deterministic_key  # noqa: E402


class FakeClock:
    """Monotonic millisecond clock advancing 1ms per read."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = int(start_ms)

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def owner() -> TestKey:
    return deterministic_key("owner")


@pytest.fixture
def admin() -> TestKey:
    return deterministic_key("admin")


@pytest.fixture
def alice() -> TestKey:
    return deterministic_key("alice")


@pytest.fixture
def bob() -> TestKey:
    return deterministic_key("bob")


@pytest.fixture
def attestor() -> TestKey:
    return deterministic_key("attestor")


@pytest.fixture
def make_store(tmp_path: Path, clock: FakeClock) -> Callable[[str], LedgerStore]:
    def _make(kind: str, **kw) -> LedgerStore:
        if kind == "memory":
            return MemoryLedgerStore(clock=clock, **kw)
        if kind == "sqlite":
            return SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "rewards.db")), clock=clock, **kw)
        raise ValueError(kind)

    return _make


@pytest.fixture(params=["memory", "sqlite"])
def engine(request, make_store, clock: FakeClock) -> SettlementEngine:
    return SettlementEngine(make_store(request.param), clock=clock)
