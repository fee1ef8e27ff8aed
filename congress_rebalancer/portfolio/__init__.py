"""Portfolio Layer.

This layer holds the single tracked portfolio and turns disclosed trades
into rebalancing recommendations.

Components:
- Portfolio / Position: Current holdings and target allocations
- TrackedActor: Actors whose disclosures are followed
- RebalancingEngine: Trade → BUY/SELL/HOLD recommendation
- refresh_prices: Rate-limited revaluation from the price oracle
"""

from congress_rebalancer.portfolio.base import (
    Portfolio,
    Position,
    Recommendation,
    RecommendationAction,
    TrackedActor,
    load_tracked_actors,
)
from congress_rebalancer.portfolio.price_refresh import RefreshResult, refresh_prices
from congress_rebalancer.portfolio.rebalancing_engine import RebalancingEngine, should_dispatch

__all__ = [
    "Portfolio",
    "Position",
    "Recommendation",
    "RecommendationAction",
    "TrackedActor",
    "load_tracked_actors",
    "RebalancingEngine",
    "should_dispatch",
    "RefreshResult",
    "refresh_prices",
]
