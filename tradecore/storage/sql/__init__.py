"""Durable SQL backend (SQLAlchemy).

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- All trade writes go through one transaction per commit.
"""

from .config import DatabaseConfig
from .stores import SqlStores
