"""Application wiring.

Builds every component from configuration and hands them out as one
Application object, so the CLI (and tests) share a single portfolio,
database and pipeline.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from congress_rebalancer.api.bot_api import PRICE_UPDATE_TASK, TRADE_CHECK_TASK, BotAPI
from congress_rebalancer.data.base import PriceOracle, TradeSource
from congress_rebalancer.data.providers.alphavantage import AlphaVantagePriceOracle
from congress_rebalancer.data.providers.house_stock_watcher import (
    DEFAULT_URL,
    HouseStockWatcherSource,
)
from congress_rebalancer.data.providers.manual_entry import ManualEntrySource
from congress_rebalancer.data.storage.database import DatabaseManager
from congress_rebalancer.notification.base import LoggingDispatcher, NotificationDispatcher
from congress_rebalancer.notification.email_dispatcher import EmailDispatcher
from congress_rebalancer.orchestration.ingestion import IngestionPipeline
from congress_rebalancer.orchestration.pipeline import RecommendationPipeline
from congress_rebalancer.orchestration.scheduler import TradingScheduler
from congress_rebalancer.portfolio.base import Portfolio, TrackedActor, load_tracked_actors
from congress_rebalancer.portfolio.rebalancing_engine import RebalancingEngine
from congress_rebalancer.utils.config import Config
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Application:
    """All components of a running bot."""

    config: Config
    portfolio: Portfolio
    actors: Dict[str, TrackedActor]
    db: DatabaseManager
    sources: List[TradeSource]
    price_oracle: PriceOracle
    dispatcher: NotificationDispatcher
    email: EmailDispatcher
    pipeline: RecommendationPipeline
    scheduler: TradingScheduler
    api: BotAPI

    def schedule(self) -> None:
        """Register the recurring trade check and price update."""
        self.scheduler.register_task(
            name=TRADE_CHECK_TASK,
            func=self.pipeline.run_cycle,
            trigger="cron",
            trigger_args=self.config.get(
                "scheduler.trade_check",
                {"day_of_week": "mon-fri", "hour": "9,11,13,15", "minute": 0},
            ),
        )
        self.scheduler.register_task(
            name=PRICE_UPDATE_TASK,
            func=self.pipeline.update_prices,
            trigger="cron",
            trigger_args=self.config.get(
                "scheduler.price_update",
                {"day_of_week": "mon-fri", "hour": "9,16", "minute": 0},
            ),
        )

    def close(self) -> None:
        if self.scheduler.is_running():
            self.scheduler.stop()
        self.db.close()


def create_sources(config: Config, db: DatabaseManager) -> List[TradeSource]:
    """Create the enabled trade sources, in fetch order."""
    sources: List[TradeSource] = []

    if config.get("sources.house_stock_watcher.enabled", True):
        sources.append(
            HouseStockWatcherSource(
                url=config.get("sources.house_stock_watcher.url", DEFAULT_URL),
                lookback_days=config.get("sources.house_stock_watcher.lookback_days", 7),
                timeout=config.get("sources.house_stock_watcher.timeout", 30),
            )
        )
        logger.info("Enabled House Stock Watcher source")

    if config.get("sources.manual.enabled", True):
        sources.append(ManualEntrySource(db))
        logger.info("Enabled manual-entry source")

    return sources


def build_application(
    config: Config,
    credentials: Dict[str, Optional[str]],
    price_oracle: Optional[PriceOracle] = None,
    sources: Optional[List[TradeSource]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Application:
    """Create every component from configuration.

    Args:
        config: Loaded configuration
        credentials: Credentials from load_app_config()
        price_oracle: Override the AlphaVantage oracle (tests, offline runs)
        sources: Override the configured trade sources
        sleep: Sleep function used between quote requests

    Returns:
        Application with nothing started yet
    """
    portfolio = Portfolio.from_config(config.get("portfolio", {}))
    actors = load_tracked_actors(config.get("actors", {}))
    db = DatabaseManager(config.get("database.path", "data/trades.db"))

    if sources is None:
        sources = create_sources(config, db)

    if price_oracle is None:
        price_oracle = AlphaVantagePriceOracle(
            api_key=credentials.get("alpha_vantage_api_key"),
            timeout=config.get("price_oracle.timeout", 30),
        )

    email = EmailDispatcher(
        username=credentials.get("email_user"),
        password=credentials.get("email_pass"),
        portfolio=portfolio,
        smtp_host=config.get("email.smtp_host", "smtp.gmail.com"),
        smtp_port=config.get("email.smtp_port", 587),
        timeout=config.get("email.timeout", 30),
    )
    dispatcher: NotificationDispatcher = email if email.is_configured else LoggingDispatcher()

    ingestion = IngestionPipeline(db, actors, portfolio.tickers, sources)
    engine = RebalancingEngine(actors, config.get("rebalancing", {}))
    pipeline = RecommendationPipeline(
        portfolio=portfolio,
        ingestion=ingestion,
        engine=engine,
        price_oracle=price_oracle,
        db=db,
        dispatcher=dispatcher,
        min_confidence=config.get("dispatch.min_confidence", 0.6),
        request_delay=config.get("price_oracle.request_delay_seconds", 15),
        sleep=sleep,
    )

    scheduler = TradingScheduler(config.get("scheduler", {}))
    api = BotAPI(pipeline, db, portfolio, scheduler=scheduler, email=email)

    logger.info(
        "Bot initialized: portfolio $%.2f, %d actors, %d sources, email %s",
        portfolio.total_value,
        len(actors),
        len(sources),
        "configured" if email.is_configured else "not configured",
    )

    return Application(
        config=config,
        portfolio=portfolio,
        actors=actors,
        db=db,
        sources=sources,
        price_oracle=price_oracle,
        dispatcher=dispatcher,
        email=email,
        pipeline=pipeline,
        scheduler=scheduler,
        api=api,
    )
