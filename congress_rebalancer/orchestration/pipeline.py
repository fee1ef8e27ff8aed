"""Recommendation pipeline - one ingestion-and-recommendation cycle.

Workflow Chain:
Trade Sources → Ingestion (dedup + persist) → for each accepted trade:
Price Refresh → Rebalancing Engine → Recommendation persisted →
Dispatch Gate → Notification

At most one cycle (or standalone price update) runs at a time. A trigger
that arrives while a run is in progress is rejected with an
ALREADY_RUNNING result instead of running interleaved.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from congress_rebalancer.data.base import PriceOracle, TradeRecord
from congress_rebalancer.data.storage.database import DatabaseManager
from congress_rebalancer.notification.base import NotificationDispatcher
from congress_rebalancer.orchestration.ingestion import IngestionPipeline, IngestionReport
from congress_rebalancer.portfolio.base import Portfolio, Recommendation
from congress_rebalancer.portfolio.price_refresh import (
    DEFAULT_REQUEST_DELAY,
    QuoteThrottle,
    RefreshResult,
    refresh_prices,
)
from congress_rebalancer.portfolio.rebalancing_engine import RebalancingEngine, should_dispatch
from congress_rebalancer.utils.exceptions import StorageError
from congress_rebalancer.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class CycleStatus(Enum):
    """Outcome of a pipeline trigger."""

    COMPLETED = "completed"
    ALREADY_RUNNING = "already_running"


@dataclass
class CycleResult:
    """Result of one run_cycle() or update_prices() call.

    Attributes:
        status: COMPLETED, or ALREADY_RUNNING if the trigger was rejected
        ingestion: Ingestion report (None for price-only runs)
        recommendations: Every recommendation computed, in trade order
        issued: The subset that passed the dispatch gate
        refresh: Last price refresh performed
        errors: Per-trade failures that did not stop the cycle
    """

    status: CycleStatus
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    ingestion: Optional[IngestionReport] = None
    recommendations: List[Recommendation] = field(default_factory=list)
    issued: List[Recommendation] = field(default_factory=list)
    refresh: Optional[RefreshResult] = None
    errors: List[str] = field(default_factory=list)

    @property
    def accepted_trades(self) -> List[TradeRecord]:
        return self.ingestion.accepted if self.ingestion else []


class RecommendationPipeline:
    """Runs ingestion-and-recommendation cycles against the shared portfolio.

    Example:
        >>> pipeline = RecommendationPipeline(
        ...     portfolio, ingestion, engine, oracle, db, dispatcher
        ... )
        >>> result = pipeline.run_cycle()
        >>> print(len(result.issued))
    """

    def __init__(
        self,
        portfolio: Portfolio,
        ingestion: IngestionPipeline,
        engine: RebalancingEngine,
        price_oracle: PriceOracle,
        db: DatabaseManager,
        dispatcher: NotificationDispatcher,
        min_confidence: float = 0.6,
        request_delay: float = DEFAULT_REQUEST_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize recommendation pipeline.

        Args:
            portfolio: The process-wide portfolio
            ingestion: Ingestion pipeline with its trade sources
            engine: Rebalancing engine
            price_oracle: Quote source for price refreshes
            db: Recommendation store
            dispatcher: Notification dispatcher
            min_confidence: Dispatch gate threshold (strictly greater than)
            request_delay: Seconds between quote requests
            sleep: Sleep function (injected for tests)
            clock: Monotonic clock used to space quote requests
        """
        self.portfolio = portfolio
        self.ingestion = ingestion
        self.engine = engine
        self.price_oracle = price_oracle
        self.db = db
        self.dispatcher = dispatcher
        self.min_confidence = min_confidence
        self.request_delay = request_delay
        self._throttle = QuoteThrottle(request_delay, sleep=sleep, clock=clock)
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def run_cycle(self) -> CycleResult:
        """Run one ingestion-and-recommendation cycle.

        Returns:
            CycleResult; status ALREADY_RUNNING if another run holds the guard
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Pipeline already running, trade check skipped")
            return CycleResult(status=CycleStatus.ALREADY_RUNNING, finished_at=datetime.now())

        try:
            logger.info("Processing new congressional trades...")
            result = CycleResult(status=CycleStatus.COMPLETED)
            result.ingestion = self.ingestion.run()

            for trade in result.ingestion.accepted:
                self._process_trade(trade, result)

            result.finished_at = datetime.now()
            logger.info(
                "Cycle complete: %d accepted, %d recommendations, %d issued, %d errors",
                len(result.accepted_trades),
                len(result.recommendations),
                len(result.issued),
                len(result.errors),
            )
            return result
        finally:
            self._run_lock.release()

    def update_prices(self) -> CycleResult:
        """Refresh portfolio prices outside of a trade cycle.

        Shares the run guard with run_cycle() so quote requests from two
        triggers never overlap.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Pipeline already running, price update skipped")
            return CycleResult(status=CycleStatus.ALREADY_RUNNING, finished_at=datetime.now())

        try:
            result = CycleResult(status=CycleStatus.COMPLETED)
            result.refresh = self._refresh()
            result.finished_at = datetime.now()
            return result
        finally:
            self._run_lock.release()

    def _refresh(self) -> RefreshResult:
        return refresh_prices(
            self.portfolio,
            self.price_oracle,
            throttle=self._throttle,
        )

    def _process_trade(self, trade: TradeRecord, result: CycleResult) -> None:
        """Refresh, recommend, record and (if gated through) dispatch.

        Failures are recorded on the result and never retried; the cycle
        moves on to the next trade.
        """
        log_with_context(
            logger,
            "info",
            "Analyzing trade",
            actor=trade.actor,
            type=trade.transaction_type.value,
            ticker=trade.ticker,
            amount=f"${trade.amount:,.0f}",
        )

        try:
            result.refresh = self._refresh()
            recommendation = self.engine.compute_adjustment(
                trade.ticker,
                trade.transaction_type,
                trade.actor,
                trade.amount,
                self.portfolio,
            )
        except Exception as e:
            logger.error("Failed to evaluate trade %s: %s", trade.key, e, exc_info=True)
            result.errors.append(f"{trade.key}: {e}")
            return

        issued = should_dispatch(recommendation, self.min_confidence)

        try:
            self.db.insert_recommendation(recommendation, issued)
        except StorageError as e:
            logger.error("Failed to record recommendation for %s: %s", trade.ticker, e)
            result.errors.append(f"{trade.key}: {e}")
            return

        result.recommendations.append(recommendation)
        if not issued:
            logger.info(
                "%s %s not issued (confidence %.2f)",
                recommendation.action.value,
                recommendation.ticker,
                recommendation.confidence,
            )
            return

        result.issued.append(recommendation)
        if recommendation.target_allocation is not None:
            self.portfolio.set_target_allocation(
                recommendation.ticker, recommendation.target_allocation
            )

        try:
            self.dispatcher.send(recommendation)
        except Exception as e:
            # Recorded as issued already; not retried to avoid duplicate alerts
            logger.error("Dispatcher failed for %s: %s", recommendation.ticker, e, exc_info=True)
            result.errors.append(f"dispatch {recommendation.ticker}: {e}")
