"""Shared test fixtures for pytest.

Provides seeded gateways for both backends (in-memory fallback and durable
SQL on a SQLite file), and engines wired to them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from helpers import seed_gateway, sqlite_url

from tradecore.execution.audit import AuditLogger
from tradecore.execution.engine import ExecutionEngine
from tradecore.persistence.interfaces import PersistenceGateway
from tradecore.portfolio.service import PortfolioService
from tradecore.storage.memory import InMemoryStores
from tradecore.storage.sql import DatabaseConfig, SqlStores


@pytest.fixture
def memory_gateway() -> InMemoryStores:
    """Seeded in-memory gateway: X@100, Y@25.50, account 1 with 1000."""
    stores = InMemoryStores()
    seed_gateway(stores)
    return stores


@pytest.fixture
def sql_gateway(tmp_path: Path) -> Iterator[SqlStores]:
    """Seeded durable gateway backed by a SQLite file."""
    stores = SqlStores(config=DatabaseConfig(database_url=sqlite_url(tmp_path / "venue.db")))
    stores.probe()
    seed_gateway(stores)
    yield stores
    stores.dispose()


@pytest.fixture(params=["memory", "sql"])
def gateway(request: pytest.FixtureRequest) -> PersistenceGateway:
    """Each test using this fixture runs once per backend."""
    return request.getfixturevalue(f"{request.param}_gateway")


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def engine(gateway: PersistenceGateway, audit_logger: AuditLogger) -> ExecutionEngine:
    return ExecutionEngine(gateway=gateway, audit_logger=audit_logger)


@pytest.fixture
def portfolio(gateway: PersistenceGateway) -> PortfolioService:
    return PortfolioService(gateway=gateway)
