"""Concrete implementations of the persistence gateway.

- memory: in-process fallback, non-durable
- sql: durable backend via SQLAlchemy (PostgreSQL in production)
"""

from .memory import InMemoryStores
from .sql import DatabaseConfig, SqlStores
