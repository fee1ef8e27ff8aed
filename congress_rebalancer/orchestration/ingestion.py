"""Trade ingestion: merge, filter, deduplicate and persist disclosed trades.

Pipeline:
Sources → filter (tracked actor AND tracked ticker) → dedup by identity key
→ persist → accepted trades in encounter order

Each accepted trade is written to the trade store before anything else
happens to it, so a crash later in the cycle cannot make it look new on the
next run.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, List, Sequence

from congress_rebalancer.data.base import TradeRecord, TradeSource
from congress_rebalancer.data.storage.database import DatabaseManager
from congress_rebalancer.portfolio.base import TrackedActor
from congress_rebalancer.utils.exceptions import StorageError
from congress_rebalancer.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


@dataclass
class IngestionReport:
    """Outcome of ingesting one batch of candidate trades.

    Attributes:
        accepted: Newly accepted trades, in encounter order
        filtered: Trades by untracked actors or on untracked tickers
        duplicates: Trades whose identity key was already seen
        failed: Trades that could not be checked or persisted
    """

    accepted: List[TradeRecord] = field(default_factory=list)
    filtered: List[TradeRecord] = field(default_factory=list)
    duplicates: List[TradeRecord] = field(default_factory=list)
    failed: List[TradeRecord] = field(default_factory=list)

    @property
    def candidates(self) -> int:
        return len(self.accepted) + len(self.filtered) + len(self.duplicates) + len(self.failed)


class IngestionPipeline:
    """Merges trade sources and accepts each disclosed trade at most once.

    Example:
        >>> pipeline = IngestionPipeline(db, actors, portfolio.tickers, sources)
        >>> accepted = pipeline.run()
    """

    def __init__(
        self,
        db: DatabaseManager,
        actors: Dict[str, TrackedActor],
        tracked_tickers: Collection[str],
        sources: Sequence[TradeSource] = (),
    ):
        """Initialize ingestion pipeline.

        Args:
            db: Trade store
            actors: Tracked actor registry
            tracked_tickers: Tickers of the tracked instruments
            sources: Trade source adapters, fetched in this order
        """
        self.db = db
        self.actors = actors
        self.tracked_tickers = set(tracked_tickers)
        self.sources = list(sources)

    def collect(self) -> List[TradeRecord]:
        """Fetch candidate trades from every source.

        A failing source contributes nothing; the others still run.
        """
        candidates: List[TradeRecord] = []
        for source in self.sources:
            try:
                trades = source.fetch()
            except Exception as e:
                logger.error("Trade source '%s' failed: %s", source.name, e, exc_info=True)
                continue
            candidates.extend(trades)

        logger.info("Total trades found: %d", len(candidates))
        return candidates

    def is_tracked(self, trade: TradeRecord) -> bool:
        return trade.actor in self.actors and trade.ticker in self.tracked_tickers

    def ingest(self, candidates: Iterable[TradeRecord]) -> List[TradeRecord]:
        """Accept new trades from a batch of candidates.

        Args:
            candidates: Candidate trades from any source

        Returns:
            The newly accepted trades, in encounter order
        """
        return self.ingest_with_report(candidates).accepted

    def ingest_with_report(self, candidates: Iterable[TradeRecord]) -> IngestionReport:
        """Accept new trades and report what happened to every candidate.

        Args:
            candidates: Candidate trades from any source

        Returns:
            IngestionReport
        """
        report = IngestionReport()
        seen = set()

        for trade in candidates:
            if not self.is_tracked(trade):
                report.filtered.append(trade)
                continue

            try:
                duplicate = trade.key in seen or self.db.trade_exists(*trade.key)
            except StorageError as e:
                logger.error("Could not check trade %s: %s", trade.key, e)
                report.failed.append(trade)
                continue

            if duplicate:
                logger.debug("Skipping duplicate trade %s from %s", trade.key, trade.origin)
                report.duplicates.append(trade)
                continue

            try:
                self.db.insert_trade(trade)
            except StorageError as e:
                logger.error("Could not persist trade %s, will retry next cycle: %s", trade.key, e)
                report.failed.append(trade)
                continue

            seen.add(trade.key)
            report.accepted.append(trade)
            log_with_context(
                logger,
                "info",
                "Trade accepted",
                actor=trade.actor,
                ticker=trade.ticker,
                type=trade.transaction_type.value,
                amount=trade.amount,
                origin=trade.origin,
            )

        self._acknowledge(report.accepted + report.duplicates + report.filtered)

        logger.info(
            "Ingested %d candidates: %d accepted, %d duplicate, %d filtered, %d failed",
            report.candidates,
            len(report.accepted),
            len(report.duplicates),
            len(report.filtered),
            len(report.failed),
        )
        return report

    def run(self) -> IngestionReport:
        """Collect from all sources and ingest the result."""
        return self.ingest_with_report(self.collect())

    def _acknowledge(self, handled: List[TradeRecord]) -> None:
        """Tell each source which of its records were decided.

        Failed records are left out so their source offers them again.
        """
        by_origin: Dict[str, List[TradeRecord]] = defaultdict(list)
        for trade in handled:
            by_origin[trade.origin].append(trade)

        for source in self.sources:
            records = by_origin.get(source.name)
            if not records:
                continue
            try:
                source.acknowledge(records)
            except StorageError as e:
                logger.error("Could not acknowledge %d '%s' trades: %s", len(records), source.name, e)
