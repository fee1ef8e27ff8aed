"""Manual-entry trade source.

Trades typed in by the user are queued in the ``manual_trades`` table and
offered to the pipeline until the pipeline acknowledges them.
"""

from datetime import date
from typing import List

from congress_rebalancer.data.base import TradeRecord, TradeSource, TransactionType
from congress_rebalancer.data.storage.database import DatabaseManager
from congress_rebalancer.utils.exceptions import StorageError
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


class ManualEntrySource(TradeSource):
    """Trade source backed by the manual-entry backlog."""

    name = "manual"

    def __init__(self, db: DatabaseManager):
        self.db = db

    def fetch(self) -> List[TradeRecord]:
        """Fetch pending manual trades.

        Rows stay pending until acknowledge() is called, so a trade whose
        ingestion fails is offered again next cycle.

        Returns:
            Pending trades in submission order, empty if the backlog
            cannot be read
        """
        try:
            rows = self.db.fetch_pending_manual_trades()
        except StorageError as e:
            logger.error("Manual trade backlog unavailable: %s", e)
            return []

        today = date.today()
        trades = []
        malformed = []
        for row in rows:
            try:
                trades.append(
                    TradeRecord(
                        actor=row["trader_name"],
                        ticker=row["symbol"],
                        transaction_type=TransactionType.parse(row["transaction_type"]),
                        amount=float(row["amount"]),
                        trade_date=date.fromisoformat(row["trade_date"]),
                        disclosure_date=today,
                        origin=self.name,
                        source_id=row["id"],
                    )
                )
            except (TypeError, ValueError) as e:
                logger.warning("Discarding malformed manual trade %s: %s", row["id"], e)
                malformed.append(row["id"])

        # Malformed rows would otherwise be offered forever
        if malformed:
            try:
                self.db.mark_manual_trades_consumed(malformed)
            except StorageError as e:
                logger.error("Could not discard malformed manual trades: %s", e)

        logger.info("Found %d manual trades", len(trades))
        return trades

    def acknowledge(self, records: List[TradeRecord]) -> None:
        """Mark the given backlog rows consumed."""
        ids = [r.source_id for r in records if r.origin == self.name and r.source_id is not None]
        if ids:
            self.db.mark_manual_trades_consumed(ids)
            logger.debug("Marked %d manual trades consumed", len(ids))
