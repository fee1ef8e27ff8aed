"""Trade source adapters and the price oracle."""

from congress_rebalancer.data.providers.alphavantage import AlphaVantagePriceOracle
from congress_rebalancer.data.providers.house_stock_watcher import HouseStockWatcherSource
from congress_rebalancer.data.providers.manual_entry import ManualEntrySource

__all__ = [
    "AlphaVantagePriceOracle",
    "HouseStockWatcherSource",
    "ManualEntrySource",
]
