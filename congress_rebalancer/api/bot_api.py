"""User-friendly Bot API.

This module exposes the bot's operations (portfolio view, manual trade entry
and manual triggers) as plain Python calls. The CLI is built on top of it.
"""

from datetime import date
from typing import Any, Dict, Optional

from congress_rebalancer.data.base import TransactionType
from congress_rebalancer.data.storage.database import DatabaseManager
from congress_rebalancer.notification.email_dispatcher import EmailDispatcher
from congress_rebalancer.orchestration.pipeline import CycleResult, RecommendationPipeline
from congress_rebalancer.orchestration.scheduler import TradingScheduler
from congress_rebalancer.portfolio.base import Portfolio
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)

TRADE_CHECK_TASK = "trade_check"
PRICE_UPDATE_TASK = "price_update"


class BotAPI:
    """High-level API for operating the bot.

    Example:
        >>> api = BotAPI(pipeline, db, portfolio, scheduler=scheduler)
        >>> api.add_manual_trade("Nancy Pelosi", "NVDA", "Purchase", 500000)
        >>> api.get_portfolio()["totalValue"]
        1000.0
    """

    def __init__(
        self,
        pipeline: RecommendationPipeline,
        db: DatabaseManager,
        portfolio: Portfolio,
        scheduler: Optional[TradingScheduler] = None,
        email: Optional[EmailDispatcher] = None,
        auto_process_delay: float = 1.0,
    ):
        """Initialize BotAPI.

        Args:
            pipeline: Recommendation pipeline
            db: Database holding the manual-entry backlog
            portfolio: The process-wide portfolio
            scheduler: Running scheduler; when given, manual trades queue a
                trade check automatically
            email: Email dispatcher used for test emails
            auto_process_delay: Seconds before the queued trade check runs
        """
        self.pipeline = pipeline
        self.db = db
        self.portfolio = portfolio
        self.scheduler = scheduler
        self.email = email
        self.auto_process_delay = auto_process_delay

    def get_portfolio(self) -> Dict[str, Any]:
        """Current portfolio as a dict."""
        return self.portfolio.to_dict()

    def add_manual_trade(
        self,
        trader: str,
        symbol: str,
        transaction_type: str,
        amount: Any,
        trade_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Queue a manually entered trade.

        Args:
            trader: Actor name
            symbol: Ticker symbol
            transaction_type: "Purchase"/"Buy" or "Sale"/"Sell"
            amount: Dollar amount (number or numeric string)
            trade_date: Trade date (default: today)

        Returns:
            Dict with the queued trade id and the normalized fields

        Raises:
            ValueError: If a field is missing or invalid
        """
        missing = [
            name
            for name, value in (
                ("trader", trader),
                ("symbol", symbol),
                ("type", transaction_type),
                ("amount", amount),
            )
            if value in (None, "")
        ]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        try:
            amount_value = float(amount)
        except (TypeError, ValueError):
            raise ValueError(f"amount must be a number, got {amount!r}") from None
        if amount_value <= 0:
            raise ValueError(f"amount must be positive, got {amount_value}")

        if TransactionType.parse(transaction_type) == TransactionType.OTHER:
            raise ValueError(
                f"type must be Purchase, Buy, Sale or Sell, got {transaction_type!r}"
            )

        trader = trader.strip()
        symbol = symbol.strip().upper()
        trade_id = self.db.add_manual_trade(
            trader, symbol, transaction_type, amount_value, trade_date
        )
        logger.info(
            "Manual trade added: %s %s %s $%.0f (id %d)",
            trader,
            transaction_type,
            symbol,
            amount_value,
            trade_id,
        )

        if self.scheduler is not None and self.scheduler.is_running():
            self.scheduler.trigger_now(TRADE_CHECK_TASK, delay_seconds=self.auto_process_delay)

        return {
            "message": "Manual trade added successfully",
            "id": trade_id,
            "trade": {
                "trader": trader,
                "symbol": symbol,
                "type": transaction_type,
                "amount": amount_value,
            },
        }

    def trigger_trades(self) -> CycleResult:
        """Run a trade check now, in the calling thread."""
        return self.pipeline.run_cycle()

    def trigger_price_update(self) -> CycleResult:
        """Refresh portfolio prices now, in the calling thread."""
        return self.pipeline.update_prices()

    def send_test_email(self) -> bool:
        """Send a test email. False if email is not configured."""
        if self.email is None:
            logger.info("Email not configured, skipping...")
            return False
        return self.email.send_test()

    def status(self) -> Dict[str, Any]:
        """Summary of bot state for display."""
        with self.portfolio.lock:
            total_value = self.portfolio.total_value
            cash = self.portfolio.cash
            last_updated = self.portfolio.last_updated

        return {
            "totalValue": total_value,
            "cash": cash,
            "lastUpdated": last_updated.isoformat(),
            "emailConfigured": bool(self.email and self.email.is_configured),
            "pipelineRunning": self.pipeline.is_running,
            "schedulerRunning": bool(self.scheduler and self.scheduler.is_running()),
            "tradesStored": self.db.count_trades(),
            "pendingManualTrades": len(self.db.fetch_pending_manual_trades()),
        }
