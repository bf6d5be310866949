#!/usr/bin/env python
"""Run a venue with simulated trader sessions.

Boots the execution core (durable store if DATABASE_URL is reachable,
in-memory otherwise), starts the price updater, and lets a few trader
threads place random market orders. Prints a summary per account.

Usage:
  python scripts/run_venue.py --sessions 4 --orders 25
  DATABASE_URL=postgresql://... python scripts/run_venue.py --json
"""

import argparse
import json
import logging
import random
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from decimal import Decimal
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tradecore.config import VenueConfig
from tradecore.errors import PersistenceFailure, TradeRejected
from tradecore.venue import Venue

logger = logging.getLogger("run_venue")


def _trader_session(venue: Venue, account_id: int, orders: int, seed: int) -> dict[str, int]:
    rng = random.Random(seed)
    symbols = [i.symbol for i in venue.portfolio.list_instruments()]
    outcome = {"executed": 0, "rejected": 0, "failed": 0}

    for _ in range(orders):
        symbol = rng.choice(symbols)
        side = rng.choice(["BUY", "SELL"])
        quantity = rng.randint(1, 10)
        try:
            venue.engine.execute(account_id, symbol, quantity, side)
            outcome["executed"] += 1
        except TradeRejected:
            outcome["rejected"] += 1
        except PersistenceFailure:
            outcome["failed"] += 1

    return outcome


def _summary(venue: Venue, account_ids: list[int]) -> dict:
    accounts = {}
    for account_id in account_ids:
        valuation = venue.portfolio.get_valuation(account_id)
        accounts[str(account_id)] = {
            "cash": str(valuation.cash),
            "holdings_value": str(valuation.holdings_value),
            "equity": str(valuation.equity),
            "positions": dict(valuation.positions),
            "trades": len(venue.portfolio.get_trade_history(account_id)),
        }
    return {
        "mode": venue.mode.value,
        "instruments": {i.symbol: str(i.price) for i in venue.portfolio.list_instruments()},
        "accounts": accounts,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a simulated trading venue")
    parser.add_argument("--sessions", type=int, default=4, help="Concurrent trader sessions (default: 4)")
    parser.add_argument("--orders", type=int, default=25, help="Orders per session (default: 25)")
    parser.add_argument("--balance", type=float, default=100000, help="Opening balance per account")
    parser.add_argument("--interval", type=float, help="Price update interval in seconds (overrides env)")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    parser.add_argument("--json", action="store_true", help="Print summary as JSON")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = VenueConfig.from_env()
    if args.interval is not None:
        config = replace(config, price_updater=replace(config.price_updater, interval_seconds=args.interval))

    account_ids = list(range(1, args.sessions + 1))
    venue = Venue(config=config, rng=random.Random(args.seed))
    venue.seed(accounts={a: Decimal(str(args.balance)) for a in account_ids})

    with venue:
        with ThreadPoolExecutor(max_workers=args.sessions, thread_name_prefix="trader") as pool:
            futures = [
                pool.submit(_trader_session, venue, account_id, args.orders, args.seed + account_id)
                for account_id in account_ids
            ]
            for account_id, future in zip(account_ids, futures):
                logger.info(f"Session {account_id}: {future.result()}")

    summary = _summary(venue, account_ids)
    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(f"Mode: {summary['mode']}")
        for symbol, price in summary["instruments"].items():
            print(f"  {symbol:<6} {price}")
        for account_id, info in summary["accounts"].items():
            print(
                f"Account {account_id}: cash={info['cash']} equity={info['equity']} "
                f"trades={info['trades']} positions={info['positions']}"
            )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
