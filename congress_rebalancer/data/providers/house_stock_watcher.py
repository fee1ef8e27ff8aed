"""House Stock Watcher trade source.

This module reads the public House Stock Watcher disclosure dump (a single
JSON array of every periodic transaction report) and normalizes recent
entries into TradeRecords.
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import requests

from congress_rebalancer.data.base import TradeRecord, TradeSource, TransactionType
from congress_rebalancer.utils.exceptions import DataProviderError
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_URL = (
    "https://house-stock-watcher-data.s3-us-west-2.amazonaws.com/data/all_transactions.json"
)

_HONORIFIC = re.compile(r"^(hon\.?|rep\.?|representative)\s+", re.IGNORECASE)
_DOLLARS = re.compile(r"\$?\s*(\d[\d,]*(?:\.\d+)?)")


def parse_amount(value: Any) -> float:
    """Parse a disclosed amount into dollars.

    Disclosures report ranges such as "$1,001 - $15,000" or open-ended
    brackets such as "$50,000,000 +". The lower bound of the range is used.
    Unparseable values count as 0.

    Example:
        >>> parse_amount("$1,001 - $15,000")
        1001.0
        >>> parse_amount(250000)
        250000.0
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return max(float(value), 0.0)

    match = _DOLLARS.search(str(value))
    if not match:
        return 0.0
    return float(match.group(1).replace(",", ""))


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO (YYYY-MM-DD) or US (MM/DD/YYYY) date string."""
    if not value:
        return None
    if isinstance(value, date):
        return value

    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_actor(name: Any) -> str:
    """Strip honorifics and surrounding whitespace from a representative name."""
    if not name:
        return ""
    return _HONORIFIC.sub("", str(name).strip()).strip()


class HouseStockWatcherSource(TradeSource):
    """Trade source for the House Stock Watcher public dataset.

    Example:
        >>> source = HouseStockWatcherSource(lookback_days=7)
        >>> trades = source.fetch()
    """

    name = "house_stock_watcher"

    def __init__(
        self,
        url: str = DEFAULT_URL,
        lookback_days: int = 7,
        timeout: float = 30,
        today: Callable[[], date] = date.today,
    ):
        """Initialize House Stock Watcher source.

        Args:
            url: URL of the all-transactions JSON dump
            lookback_days: Only trades executed within this many days are kept
            timeout: Request timeout in seconds
            today: Clock for the lookback window (injected for tests)
        """
        self.url = url
        self.lookback_days = lookback_days
        self.timeout = timeout
        self._today = today

    def fetch(self) -> List[TradeRecord]:
        """Fetch recent trades from House Stock Watcher.

        Returns:
            Normalized trades executed within the lookback window. Empty on
            any network or parse failure.
        """
        logger.info("Fetching from House Stock Watcher...")

        try:
            payload = self.download()
        except DataProviderError as e:
            logger.error("House Stock Watcher failed: %s", e)
            return []

        cutoff = self._today() - timedelta(days=self.lookback_days)
        trades = []
        for raw in payload:
            trade = self._normalize(raw)
            if trade is not None and trade.trade_date > cutoff:
                trades.append(trade)

        logger.info("Found %d recent trades from House Stock Watcher", len(trades))
        return trades

    def download(self) -> List[Dict[str, Any]]:
        """Download the raw transaction list.

        Raises:
            DataProviderError: On network errors, invalid JSON, or a payload
                that is not a list
        """
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise DataProviderError(f"Request failed: {e}") from e
        except ValueError as e:
            raise DataProviderError(f"Invalid JSON: {e}") from e

        if not isinstance(payload, list):
            raise DataProviderError(
                f"Unexpected payload {type(payload).__name__}, expected a list"
            )
        return payload

    def _normalize(self, raw: Dict[str, Any]) -> Optional[TradeRecord]:
        """Convert one feed entry, or None if it lacks required fields."""
        if not isinstance(raw, dict):
            return None

        actor = normalize_actor(raw.get("representative"))
        ticker = str(raw.get("ticker") or "").strip().upper()
        trade_date = parse_date(raw.get("transaction_date"))

        if not actor or not ticker or ticker == "--" or trade_date is None:
            return None

        return TradeRecord(
            actor=actor,
            ticker=ticker,
            transaction_type=TransactionType.parse(
                raw.get("type") or raw.get("transaction_type")
            ),
            amount=parse_amount(raw.get("amount")),
            trade_date=trade_date,
            disclosure_date=parse_date(raw.get("disclosure_date")),
            origin=self.name,
        )
