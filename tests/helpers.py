"""Shared constants and helpers for the test suite."""

from __future__ import annotations

import random
import threading
import time
from decimal import Decimal
from pathlib import Path
from typing import Callable

from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.types import Instrument

ACCOUNT_ID = 1
OPENING_BALANCE = Decimal("1000")
X = Instrument(symbol="X", name="X Corp", price=Decimal("100"))
Y = Instrument(symbol="Y", name="Y Holdings", price=Decimal("25.50"))


class FixedRandom(random.Random):
    """random.Random whose uniform() always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def uniform(self, a: float, b: float) -> float:
        return self.value


def seed_gateway(gateway: PersistenceGateway) -> PersistenceGateway:
    gateway.upsert_instrument(X)
    gateway.upsert_instrument(Y)
    gateway.provision_account(ACCOUNT_ID, OPENING_BALANCE)
    return gateway


def sqlite_url(path: Path) -> str:
    return f"sqlite:///{path}"


def wait_until(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll `condition` until it holds or `timeout` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


def run_in_threads(target: Callable[[int], object], count: int) -> list[object]:
    """Run `target(i)` in `count` threads released together by a barrier.

    Returns each call's result, or the exception it raised, indexed by i.
    """
    barrier = threading.Barrier(count)
    results: list[object] = [None] * count

    def worker(i: int) -> None:
        barrier.wait()
        try:
            results[i] = target(i)
        except Exception as exc:
            results[i] = exc

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results
