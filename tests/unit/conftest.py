"""Shared fixtures for unit tests."""

from datetime import date
from typing import Dict, List, Optional

import pytest

from congress_rebalancer.data.base import (
    PriceOracle,
    Quote,
    QuoteResult,
    TradeRecord,
    TradeSource,
    TransactionType,
    Unavailable,
)
from congress_rebalancer.data.storage.database import DatabaseManager
from congress_rebalancer.portfolio.base import Portfolio, load_tracked_actors

ACTORS_CONFIG = {
    "Nancy Pelosi": {"weight": 1.0, "success_rate": 0.89},
    "Ron Wyden": {"weight": 0.80, "success_rate": 0.84},
    "Roger Williams": {"weight": 0.60, "success_rate": 0.79},
}

PORTFOLIO_CONFIG = {
    "initial_value": 1000.0,
    "cash_fraction": 0.10,
    "positions": {
        "QQQ": {"target_allocation": 0.25},
        "NVDA": {"target_allocation": 0.20},
        "MSFT": {"target_allocation": 0.20},
        "AAPL": {"target_allocation": 0.15},
        "GOOGL": {"target_allocation": 0.10},
    },
}


class StubOracle(PriceOracle):
    """Price oracle returning fixed prices; missing tickers are unavailable."""

    def __init__(self, prices: Optional[Dict[str, float]] = None):
        self.prices = prices or {}
        self.calls: List[str] = []

    def quote(self, ticker: str) -> QuoteResult:
        self.calls.append(ticker)
        price = self.prices.get(ticker)
        if price is None:
            return Unavailable(ticker, "no price")
        return Quote(ticker=ticker, price=price)


class FakeClock:
    """Monotonic clock that only moves forward when sleep() is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubSource(TradeSource):
    """Trade source returning a fixed list and recording acknowledgements."""

    def __init__(self, name: str, trades: Optional[List[TradeRecord]] = None):
        self.name = name
        self.trades = trades or []
        self.acknowledged: List[TradeRecord] = []

    def fetch(self) -> List[TradeRecord]:
        return list(self.trades)

    def acknowledge(self, records: List[TradeRecord]) -> None:
        self.acknowledged.extend(records)


def make_trade(
    actor: str = "Nancy Pelosi",
    ticker: str = "NVDA",
    transaction_type: TransactionType = TransactionType.PURCHASE,
    amount: float = 250000.0,
    trade_date: date = date(2024, 6, 3),
    disclosure_date: Optional[date] = date(2024, 6, 10),
    origin: str = "house_stock_watcher",
    source_id: Optional[int] = None,
) -> TradeRecord:
    return TradeRecord(
        actor=actor,
        ticker=ticker,
        transaction_type=transaction_type,
        amount=amount,
        trade_date=trade_date,
        disclosure_date=disclosure_date,
        origin=origin,
        source_id=source_id,
    )


@pytest.fixture
def actors():
    """Tracked actor registry."""
    return load_tracked_actors(ACTORS_CONFIG)


@pytest.fixture
def portfolio():
    """Default $1000 portfolio with five positions and $100 cash."""
    return Portfolio.from_config(PORTFOLIO_CONFIG)


@pytest.fixture
def db(tmp_path) -> DatabaseManager:
    """DatabaseManager backed by a temporary file."""
    manager = DatabaseManager(str(tmp_path / "trades.db"))
    yield manager
    manager.close()
