"""Abstract base class for recommendation dispatchers."""

from abc import ABC, abstractmethod

from congress_rebalancer.portfolio.base import Recommendation
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationDispatcher(ABC):
    """Abstract interface for delivering recommendations to the user.

    Delivery is fire-and-forget from the pipeline's point of view:
    implementations log their own failures and never raise from send().
    """

    @abstractmethod
    def send(self, recommendation: Recommendation) -> bool:
        """Deliver one recommendation.

        Args:
            recommendation: Issued recommendation

        Returns:
            True if delivered, False if skipped or failed
        """
        pass


class LoggingDispatcher(NotificationDispatcher):
    """Dispatcher that only writes recommendations to the log."""

    def send(self, recommendation: Recommendation) -> bool:
        logger.info(
            "%s %s $%.0f (%.3f shares, confidence %.0f%%): %s",
            recommendation.action.value,
            recommendation.ticker,
            recommendation.recommended_amount,
            recommendation.shares_to_trade,
            recommendation.confidence * 100,
            recommendation.reason,
        )
        return True
