"""AlphaVantage price oracle.

This module fetches current quotes from AlphaVantage's GLOBAL_QUOTE API
endpoint. Lookups are best-effort: any failure is logged and reported as
Unavailable so the caller can keep its last known price.
"""

import logging
from datetime import datetime
from typing import Optional

import requests

from congress_rebalancer.data.base import PriceOracle, Quote, QuoteResult, Unavailable

logger = logging.getLogger(__name__)


class AlphaVantagePriceOracle(PriceOracle):
    """Price oracle backed by AlphaVantage.

    API Endpoint: https://www.alphavantage.co/query?function=GLOBAL_QUOTE

    Note: The free tier allows 5 calls per minute. This class does not
    throttle or retry; callers space their requests out.
    """

    API_URL = "https://www.alphavantage.co/query"

    def __init__(self, api_key: Optional[str], timeout: float = 30):
        """Initialize AlphaVantage price oracle.

        Args:
            api_key: AlphaVantage API key (lookups are skipped when missing)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.timeout = timeout

        if not api_key:
            logger.warning("AlphaVantage API key not configured, prices will be unavailable")

    def quote(self, ticker: str) -> QuoteResult:
        """Fetch the latest quote for a ticker.

        Args:
            ticker: Stock ticker symbol

        Returns:
            Quote with price, change and change percent, or Unavailable
        """
        if not self.api_key:
            return Unavailable(ticker, "API key not configured")

        params = {
            "function": "GLOBAL_QUOTE",
            "symbol": ticker,
            "apikey": self.api_key,
        }

        try:
            response = requests.get(self.API_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error("Error fetching price for %s: %s", ticker, e)
            return Unavailable(ticker, str(e))
        except ValueError as e:
            logger.error("Invalid JSON from AlphaVantage for %s: %s", ticker, e)
            return Unavailable(ticker, "invalid JSON")

        return self._parse_quote(ticker, payload)

    def _parse_quote(self, ticker: str, payload: dict) -> QuoteResult:
        """Parse a GLOBAL_QUOTE payload.

        Rate-limit notices come back as HTTP 200 with a "Note" or
        "Information" field instead of a quote.
        """
        quote = payload.get("Global Quote") if isinstance(payload, dict) else None
        if not quote or not quote.get("05. price"):
            notice = None
            if isinstance(payload, dict):
                notice = payload.get("Note") or payload.get("Information")
            reason = notice or "Invalid response from AlphaVantage"
            logger.error("Error fetching price for %s: %s", ticker, reason)
            return Unavailable(ticker, reason)

        try:
            price = float(quote["05. price"])
            change = float(quote.get("09. change") or 0.0)
            change_percent = float(
                str(quote.get("10. change percent") or "0").replace("%", "")
            )
        except ValueError as e:
            logger.error("Unparseable quote for %s: %s", ticker, e)
            return Unavailable(ticker, f"unparseable quote: {e}")

        if price <= 0:
            return Unavailable(ticker, f"non-positive price {price}")

        return Quote(
            ticker=ticker,
            price=price,
            as_of=datetime.now(),
            change=change,
            change_percent=change_percent,
        )
