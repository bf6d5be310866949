"""Market data: the simulated price updater."""

from tradecore.market_data.price_updater import PriceUpdater, PriceUpdaterConfig, next_price

__all__ = ["PriceUpdater", "PriceUpdaterConfig", "next_price"]
