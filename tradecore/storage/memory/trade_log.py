"""Append-only trade log for the in-memory backend.

Every trade committed by `InMemoryStores` can be mirrored here as one JSON
object per line. The file exists for forensic replay only: the in-memory
backend never reloads it on startup.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator

from tradecore.types import Trade


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    """Convert a trade to a JSON-serializable dictionary."""
    return {
        "seq_id": trade.seq_id,
        "account_id": trade.account_id,
        "symbol": trade.symbol,
        "quantity": trade.quantity,
        "price": str(trade.price),
        "side": trade.side,
        "timestamp": trade.timestamp.isoformat(),
    }


def trade_from_dict(data: dict[str, Any]) -> Trade:
    ts = str(data["timestamp"])
    # Normalize trailing 'Z' (UTC)
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    return Trade(
        seq_id=int(data["seq_id"]),
        account_id=int(data["account_id"]),
        symbol=str(data["symbol"]),
        quantity=int(data["quantity"]),
        price=Decimal(str(data["price"])),
        side=data["side"],
        timestamp=datetime.fromisoformat(ts),
    )


class TradeLogMirror:
    """Thread-safe JSON-lines appender.

    `append` flushes before returning, so a trade is only applied in memory
    after its line reached the file. Write errors propagate to the caller.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, trade: Trade) -> None:
        line = json.dumps(trade_to_dict(trade), separators=(",", ":"))
        with self._lock:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
                fh.flush()


def replay_trade_log(path: str | Path) -> Iterator[Trade]:
    """Yield trades from a mirror file in the order they were written.

    Blank lines are skipped. A malformed line raises ValueError naming the
    line number.
    """
    with Path(path).open("r", encoding="utf-8") as fh:
        for lineno, raw in enumerate(fh, start=1):
            raw = raw.strip()
            if not raw:
                continue
            try:
                yield trade_from_dict(json.loads(raw))
            except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
                raise ValueError(f"Malformed trade log line {lineno}: {exc}") from exc
