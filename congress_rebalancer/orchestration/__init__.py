"""Orchestration Layer - Coordinates ingestion, recommendation and scheduling."""

from congress_rebalancer.orchestration.ingestion import IngestionPipeline, IngestionReport
from congress_rebalancer.orchestration.pipeline import (
    CycleResult,
    CycleStatus,
    RecommendationPipeline,
)
from congress_rebalancer.orchestration.scheduler import TradingScheduler, is_trading_day

__all__ = [
    "IngestionPipeline",
    "IngestionReport",
    "RecommendationPipeline",
    "CycleResult",
    "CycleStatus",
    "TradingScheduler",
    "is_trading_day",
]
