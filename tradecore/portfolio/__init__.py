"""Portfolio queries: balances, positions, trade history, catalog."""

from .service import PortfolioService

__all__ = ["PortfolioService"]
