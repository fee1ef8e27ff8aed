"""Portfolio state and recommendation data structures.

This module defines the single virtual portfolio the bot tracks, the actors
whose disclosures drive it, and the recommendations produced for it.

Responsibilities:
- Tracked actors: immutable name/weight/success-rate records
- Positions: shares, price, value and target allocation per ticker
- Portfolio: cash plus positions, with total value kept consistent
- Recommendation: immutable BUY/SELL/HOLD output of the rebalancing engine
"""

import threading
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from congress_rebalancer.utils.exceptions import ConfigurationError, RebalanceError


class RecommendationAction(Enum):
    """Recommendation action types."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class TrackedActor:
    """An actor whose disclosed trades are followed.

    Attributes:
        name: Actor name as it appears in disclosures
        weight: Historical influence in [0, 1]
        success_rate: Historical success rate in [0, 1] (informational)
    """

    name: str
    weight: float
    success_rate: float = 0.0

    def __post_init__(self):
        """Validate actor fields."""
        if not 0.0 <= self.weight <= 1.0:
            raise ValueError(f"weight must be in [0, 1], got {self.weight}")
        if not 0.0 <= self.success_rate <= 1.0:
            raise ValueError(
                f"success_rate must be in [0, 1], got {self.success_rate}"
            )


@dataclass
class Position:
    """One tracked instrument held in the portfolio.

    Attributes:
        ticker: Stock ticker symbol
        shares: Shares held (fractional allowed)
        target_allocation: Target fraction of total value in (0, 1]
        current_price: Last observed price (0 means never observed)
        current_value: Dollar value of the position
    """

    ticker: str
    target_allocation: float
    shares: float = 0.0
    current_price: float = 0.0
    current_value: float = 0.0

    def __post_init__(self):
        """Validate position fields."""
        if not 0.0 < self.target_allocation <= 1.0:
            raise ValueError(
                f"target_allocation must be in (0, 1], got {self.target_allocation}"
            )
        if self.shares < 0:
            raise ValueError(f"shares must be non-negative, got {self.shares}")
        if self.current_price < 0:
            raise ValueError(
                f"current_price must be non-negative, got {self.current_price}"
            )

    def apply_price(self, price: float) -> None:
        """Revalue the position at a newly observed price.

        A position with no shares is seeded from its current value the first
        time a nonzero price is seen; from then on value is shares x price.

        Args:
            price: Observed price, must be positive
        """
        if price <= 0:
            raise ValueError(f"price must be positive, got {price}")

        self.current_price = price
        if self.shares == 0:
            self.shares = self.current_value / price
        self.current_value = self.shares * price


class Portfolio:
    """The single virtual portfolio, mutated in place.

    Total value is always derived from cash plus position values. All
    mutations and snapshots go through a re-entrant lock so readers never
    observe a total that disagrees with the positions.

    Example:
        >>> portfolio = Portfolio(
        ...     cash=100.0,
        ...     positions={"NVDA": Position("NVDA", 0.2, current_value=200.0)},
        ... )
        >>> portfolio.total_value
        300.0
    """

    def __init__(
        self,
        cash: float,
        positions: Dict[str, Position],
        last_updated: Optional[datetime] = None,
    ):
        if cash < 0:
            raise ValueError(f"cash must be non-negative, got {cash}")

        self.cash = cash
        self.positions = positions
        self.last_updated = last_updated or datetime.now()
        self.lock = threading.RLock()
        self.total_value = 0.0
        self.recompute_total()

    @classmethod
    def from_config(cls, portfolio_config: Dict[str, Any]) -> "Portfolio":
        """Build the initial portfolio from the ``portfolio`` config section.

        Each position is seeded with ``initial_value * target_allocation``
        dollars and zero shares; cash is ``initial_value * cash_fraction``.

        Raises:
            ConfigurationError: If the section is missing or invalid
        """
        positions_config = portfolio_config.get("positions") or {}
        if not positions_config:
            raise ConfigurationError("portfolio.positions must list at least one ticker")

        initial_value = float(portfolio_config.get("initial_value", 1000.0))
        cash_fraction = float(portfolio_config.get("cash_fraction", 0.10))
        if initial_value <= 0:
            raise ConfigurationError(
                f"portfolio.initial_value must be positive, got {initial_value}"
            )

        positions = {}
        try:
            for ticker, settings in positions_config.items():
                target = float(settings["target_allocation"])
                positions[ticker] = Position(
                    ticker=ticker,
                    target_allocation=target,
                    current_value=initial_value * target,
                )
            return cls(cash=initial_value * cash_fraction, positions=positions)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid portfolio configuration: {e}") from e

    @property
    def tickers(self) -> list:
        """Tracked tickers."""
        return list(self.positions.keys())

    def has_ticker(self, ticker: str) -> bool:
        return ticker in self.positions

    def get_position(self, ticker: str) -> Position:
        """Get a position by ticker.

        Raises:
            RebalanceError: If the ticker is not tracked
        """
        try:
            return self.positions[ticker]
        except KeyError:
            raise RebalanceError(f"{ticker} is not a tracked instrument") from None

    def recompute_total(self) -> float:
        """Recompute total value from cash and position values."""
        with self.lock:
            self.total_value = self.cash + sum(
                p.current_value for p in self.positions.values()
            )
            return self.total_value

    def apply_price(self, ticker: str, price: float) -> None:
        """Revalue one position and the total atomically."""
        with self.lock:
            self.get_position(ticker).apply_price(price)
            self.recompute_total()
            self.last_updated = datetime.now()

    def set_target_allocation(self, ticker: str, target: float) -> None:
        """Record a new target allocation for a position.

        Only the one position is updated. Other targets are not renormalized,
        so after several issued buys the targets can sum to more than 1.
        """
        with self.lock:
            position = self.get_position(ticker)
            if not 0.0 < target <= 1.0:
                raise ValueError(f"target must be in (0, 1], got {target}")
            position.target_allocation = target

    def allocation(self, ticker: str) -> float:
        """Current allocation of a position as a fraction of total value."""
        with self.lock:
            if self.total_value <= 0:
                return 0.0
            return self.get_position(ticker).current_value / self.total_value

    def snapshot(self) -> "Portfolio":
        """Consistent deep copy, safe to read without holding the lock.

        The live total is copied as-is rather than recomputed, so the copy
        shows exactly what a reader holding the lock would have seen.
        """
        with self.lock:
            copy = Portfolio(
                cash=self.cash,
                positions=deepcopy(self.positions),
                last_updated=self.last_updated,
            )
            copy.total_value = self.total_value
            return copy

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the portfolio."""
        with self.lock:
            return {
                "totalValue": self.total_value,
                "cash": self.cash,
                "positions": {
                    ticker: {
                        "shares": p.shares,
                        "targetAllocation": p.target_allocation,
                        "currentValue": p.current_value,
                        "currentPrice": p.current_price,
                    }
                    for ticker, p in self.positions.items()
                },
                "lastUpdated": self.last_updated.isoformat(),
            }


def load_tracked_actors(actors_config: Dict[str, Any]) -> Dict[str, TrackedActor]:
    """Build the tracked-actor registry from the ``actors`` config section.

    Args:
        actors_config: {name: {"weight": float, "success_rate": float}}

    Returns:
        Dict of actor name to TrackedActor

    Raises:
        ConfigurationError: If an entry is missing a weight or out of range
    """
    actors = {}
    for name, settings in (actors_config or {}).items():
        try:
            actors[name] = TrackedActor(
                name=name,
                weight=float(settings["weight"]),
                success_rate=float(settings.get("success_rate", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid tracked actor '{name}': {e}") from e

    if not actors:
        raise ConfigurationError("At least one tracked actor must be configured")

    return actors


@dataclass(frozen=True)
class Recommendation:
    """A rebalancing recommendation derived from one disclosed trade.

    Attributes:
        ticker: Stock ticker symbol
        action: BUY, SELL or HOLD
        current_price: Price at decision time (0 if never observed)
        recommended_amount: Dollar amount to trade
        shares_to_trade: Equivalent share count
        reason: Human-readable rationale
        confidence: Score in [0, 1]
        target_allocation: Target allocation the recommendation moves toward
        actor: Actor whose trade triggered it
        created_at: When it was computed
    """

    ticker: str
    action: RecommendationAction
    current_price: float = 0.0
    recommended_amount: float = 0.0
    shares_to_trade: float = 0.0
    reason: str = ""
    confidence: float = 0.0
    target_allocation: Optional[float] = None
    actor: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate recommendation fields."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if self.recommended_amount < 0:
            raise ValueError(
                f"recommended_amount must be non-negative, got {self.recommended_amount}"
            )

    @property
    def is_actionable(self) -> bool:
        return self.action != RecommendationAction.HOLD
