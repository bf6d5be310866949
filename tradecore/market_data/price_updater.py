"""Simulated market price updates.

A background thread that perturbs every instrument's price on a fixed
interval. It stands in for a real market data feed.

Usage:
    updater = PriceUpdater(gateway=gateway)
    updater.start()

    # ... trade ...

    updater.stop()
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from tradecore.errors import PersistenceFailure
from tradecore.persistence.interfaces import InstrumentStore
from tradecore.types import Instrument

logger = logging.getLogger(__name__)

PRICE_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class PriceUpdaterConfig:
    """Price updater configuration."""

    interval_seconds: float = 2.0
    max_change_pct: Decimal = Decimal("0.01")  # +/-1% per tick
    floor: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if not Decimal("0") <= self.max_change_pct < Decimal("1"):
            raise ValueError("max_change_pct must be in [0, 1)")
        if self.floor <= 0:
            raise ValueError("floor must be positive")


def next_price(old: Decimal, delta: Decimal, floor: Decimal) -> Decimal:
    """Apply a fractional change, round to cents and clamp at the floor."""
    moved = (old * (Decimal("1") + delta)).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)
    return max(floor, moved)


class PriceUpdater:
    """Background price perturbation task.

    States are Running and Stopped only. `stop()` wakes the sleeping thread
    immediately; an update already in progress finishes its current
    instrument before the loop exits, so no price is ever half-written.
    """

    def __init__(
        self,
        *,
        gateway: InstrumentStore,
        config: Optional[PriceUpdaterConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._gateway = gateway
        self._config = config or PriceUpdaterConfig()
        self._rng = rng or random.Random()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._ticks = 0

    @property
    def config(self) -> PriceUpdaterConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def ticks(self) -> int:
        return self._ticks

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                logger.warning("Price updater already running")
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="PriceUpdater", daemon=True)
            self._thread.start()
        logger.info(f"Price updater started (interval={self._config.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal the loop to stop and wait for the thread to exit.

        If the thread outlives `timeout` it stays registered: `is_running`
        remains true and `start()` refuses until the thread has exited.
        """
        with self._lock:
            thread = self._thread
            self._stop_event.set()
            if thread is not None and thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=timeout)
                if thread.is_alive():
                    logger.warning("Price updater did not stop within timeout")
                    return
            self._thread = None
        logger.info("Price updater stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self._tick(interruptible=True)
            # Event.wait returns True as soon as stop() is called.
            if self._stop_event.wait(self._config.interval_seconds):
                break

    def tick(self) -> list[Instrument]:
        """Apply one round of price changes.

        Returns:
            Instruments whose new price was written
        """
        return self._tick(interruptible=False)

    def _tick(self, *, interruptible: bool) -> list[Instrument]:
        try:
            catalog = self._gateway.list_instruments()
        except PersistenceFailure as exc:
            logger.error(f"Price update skipped, catalog unavailable: {exc}")
            return []

        updated = []
        bound = float(self._config.max_change_pct)
        for instrument in catalog:
            if interruptible and self._stop_event.is_set():
                break
            delta = Decimal(str(round(self._rng.uniform(-bound, bound), 6)))
            new = instrument.with_price(next_price(instrument.price, delta, self._config.floor))
            try:
                self._gateway.upsert_instrument(new)
            except PersistenceFailure as exc:
                logger.error(f"Price update failed for {instrument.symbol}: {exc}")
                continue
            updated.append(new)

        self._ticks += 1
        logger.debug(f"Price tick {self._ticks}: updated {len(updated)} instruments")
        return updated
