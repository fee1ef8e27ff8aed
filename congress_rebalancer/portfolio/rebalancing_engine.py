"""Rebalancing engine: turns one disclosed trade into a recommendation.

Algorithm:
1. Trade impact = (amount / amount_scale) x actor weight, capped at
   max_trade_impact (15 points by default)
2. Purchases raise the target allocation (ceiling 35%), sales lower it
   (floor 5%)
3. The dollar gap between the new target and the current value becomes a
   BUY or SELL when it clears the noise floor, otherwise HOLD
4. Confidence = actor weight x 0.9 for buys, x 0.8 for sales

Disclosed buys count as a stronger signal than disclosed sells, which are
often liquidity-driven.
"""

from typing import Dict, Optional, Union

from congress_rebalancer.data.base import TransactionType
from congress_rebalancer.portfolio.base import (
    Portfolio,
    Recommendation,
    RecommendationAction,
    TrackedActor,
)
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


class RebalancingEngine:
    """Computes allocation adjustments from disclosed trades.

    The engine never mutates the portfolio it is given.

    Example:
        >>> engine = RebalancingEngine(actors)
        >>> rec = engine.compute_adjustment(
        ...     "NVDA", "Purchase", "Nancy Pelosi", 2_000_000, portfolio
        ... )
        >>> rec.action
        <RecommendationAction.BUY: 'BUY'>
    """

    def __init__(
        self,
        actors: Dict[str, TrackedActor],
        config: Optional[Dict] = None,
    ):
        """Initialize rebalancing engine.

        Args:
            actors: Tracked actor registry {name: TrackedActor}
            config: Configuration dictionary (the ``rebalancing`` section)
                - amount_scale: Dollar normalization for trade size (default: 1e6)
                - max_trade_impact: Cap on allocation swing (default: 0.15)
                - allocation_ceiling: Max target after a purchase (default: 0.35)
                - allocation_floor: Min target after a sale (default: 0.05)
                - min_trade_amount: Noise floor in dollars (default: 10)
                - fallback_price: Price used when none observed (default: 100)
                - buy_confidence: Confidence multiplier for buys (default: 0.9)
                - sell_confidence: Confidence multiplier for sells (default: 0.8)
                - default_actor_weight: Weight of untracked actors (default: 0.5)
        """
        config = config or {}
        self.actors = actors
        self.amount_scale = config.get("amount_scale", 1_000_000.0)
        self.max_trade_impact = config.get("max_trade_impact", 0.15)
        self.allocation_ceiling = config.get("allocation_ceiling", 0.35)
        self.allocation_floor = config.get("allocation_floor", 0.05)
        self.min_trade_amount = config.get("min_trade_amount", 10.0)
        self.fallback_price = config.get("fallback_price", 100.0)
        self.buy_confidence = config.get("buy_confidence", 0.9)
        self.sell_confidence = config.get("sell_confidence", 0.8)
        self.default_actor_weight = config.get("default_actor_weight", 0.5)

    def actor_weight(self, actor_name: str) -> float:
        """Weight of an actor, or the default weight if untracked."""
        actor = self.actors.get(actor_name)
        if actor is None:
            return self.default_actor_weight
        return actor.weight

    def trade_impact(self, dollar_amount: float, weight: float) -> float:
        """Allocation shift attributable to one trade, capped."""
        return min((dollar_amount / self.amount_scale) * weight, self.max_trade_impact)

    def compute_adjustment(
        self,
        ticker: str,
        action: Union[str, TransactionType],
        actor_name: str,
        dollar_amount: float,
        portfolio: Portfolio,
    ) -> Recommendation:
        """Compute the recommendation for one disclosed trade.

        Args:
            ticker: Ticker of the disclosed trade (must be tracked)
            action: Transaction kind, enum or text ("Purchase", "Sell", ...)
            actor_name: Disclosing actor
            dollar_amount: Disclosed dollar amount
            portfolio: Current portfolio state (read only)

        Returns:
            Recommendation (HOLD for unrecognized actions or gaps under the
            noise floor)

        Raises:
            RebalanceError: If ticker is not tracked
        """
        transaction = TransactionType.parse(action)

        with portfolio.lock:
            position = portfolio.get_position(ticker)
            total_value = portfolio.total_value
            current_value = position.current_value
            target_allocation = position.target_allocation
            price = position.current_price

        weight = self.actor_weight(actor_name)
        current_allocation = current_value / total_value if total_value > 0 else 0.0
        impact = self.trade_impact(dollar_amount, weight)
        trade_price = price or self.fallback_price

        if transaction == TransactionType.PURCHASE:
            new_target = min(target_allocation + impact, self.allocation_ceiling)
            gap = new_target * total_value - current_value
            verb, direction = "bought", "increasing"
            action_if_clear = RecommendationAction.BUY
            confidence = weight * self.buy_confidence
        elif transaction == TransactionType.SALE:
            new_target = max(target_allocation - impact, self.allocation_floor)
            gap = current_value - new_target * total_value
            verb, direction = "sold", "reducing"
            action_if_clear = RecommendationAction.SELL
            confidence = weight * self.sell_confidence
        else:
            label = action.value if isinstance(action, TransactionType) else action
            logger.debug(
                "No signal from %s transaction by %s in %s", label, actor_name, ticker
            )
            return Recommendation(
                ticker=ticker,
                action=RecommendationAction.HOLD,
                current_price=price,
                reason=(
                    f"{actor_name} reported an unrecognized transaction ({label}) "
                    f"of ${dollar_amount:,.0f} - holding at "
                    f"{current_allocation * 100:.1f}%"
                ),
                confidence=0.0,
                target_allocation=target_allocation,
                actor=actor_name,
            )

        transition = (
            f"from {current_allocation * 100:.1f}% to {new_target * 100:.1f}%"
        )

        if gap > self.min_trade_amount:
            return Recommendation(
                ticker=ticker,
                action=action_if_clear,
                current_price=price,
                recommended_amount=gap,
                shares_to_trade=gap / trade_price,
                reason=(
                    f"{actor_name} {verb} ${dollar_amount:,.0f} - {direction} "
                    f"allocation {transition}"
                ),
                confidence=confidence,
                target_allocation=new_target,
                actor=actor_name,
            )

        return Recommendation(
            ticker=ticker,
            action=RecommendationAction.HOLD,
            current_price=price,
            reason=(
                f"{actor_name} {verb} ${dollar_amount:,.0f} - allocation change "
                f"{transition} is below the ${self.min_trade_amount:,.0f} minimum"
            ),
            confidence=0.0,
            target_allocation=new_target,
            actor=actor_name,
        )


def should_dispatch(recommendation: Recommendation, min_confidence: float = 0.6) -> bool:
    """Dispatch gate: only actionable, high-conviction recommendations are sent.

    Args:
        recommendation: Recommendation to check
        min_confidence: Confidence must be strictly above this

    Returns:
        True if the recommendation should be issued
    """
    return recommendation.is_actionable and recommendation.confidence > min_confidence
