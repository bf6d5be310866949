"""In-memory fallback backend with an optional append-only trade log."""

from .stores import InMemoryStores
from .trade_log import TradeLogMirror, replay_trade_log
