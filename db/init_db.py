#!/usr/bin/env python3
"""Initialize the trading schema.

Creates the instruments, accounts, positions, trades and trade_sequence
tables (if missing) in the database pointed to by DATABASE_URL, and seeds
the trade sequence row.

Usage:
  python -m db.init_db

Requirements:
  - DATABASE_URL must be set
  - SQLAlchemy installed (plus psycopg2-binary for PostgreSQL)
"""

from __future__ import annotations

import os

from sqlalchemy.exc import SQLAlchemyError

from tradecore.storage.sql import DatabaseConfig, SqlStores


def main() -> int:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")

    stores = SqlStores(config=DatabaseConfig(database_url=database_url))
    try:
        stores.ensure_schema()
    except SQLAlchemyError as exc:
        # Do not echo the URL; the exception text is enough to debug.
        raise SystemExit(f"Schema init failed: {type(exc).__name__}") from exc
    finally:
        stores.dispose()

    print("✅ Database schema applied")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
