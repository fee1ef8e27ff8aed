"""Portfolio price refresh.

Walks the tracked tickers one at a time, asks the price oracle for a quote,
and revalues each position. Calls are spaced out to respect the quote
provider's rate limit, including across consecutive refresh passes when
they share a QuoteThrottle. A ticker whose quote is unavailable keeps its
last price and value.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from congress_rebalancer.data.base import PriceOracle, Quote
from congress_rebalancer.portfolio.base import Portfolio
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_REQUEST_DELAY = 15.0


class QuoteThrottle:
    """Keeps at least `request_delay` seconds between quote requests.

    The time of the last request is remembered, so the first quote of a
    new pass still waits out the gap left by the previous pass.
    """

    def __init__(
        self,
        request_delay: float = DEFAULT_REQUEST_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.request_delay = request_delay
        self._sleep = sleep
        self._clock = clock
        self._last_request: Optional[float] = None

    def wait(self) -> None:
        """Block until the next request is allowed, then mark it as sent."""
        if self.request_delay > 0 and self._last_request is not None:
            remaining = self.request_delay - (self._clock() - self._last_request)
            if remaining > 0:
                self._sleep(remaining)
        self._last_request = self._clock()


@dataclass
class RefreshResult:
    """Outcome of one refresh pass.

    Attributes:
        updated: {ticker: new price} for tickers that were revalued
        stale: Tickers whose quote was unavailable
        total_value: Portfolio total after the pass
    """

    updated: Dict[str, float] = field(default_factory=dict)
    stale: List[str] = field(default_factory=list)
    total_value: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)


def refresh_prices(
    portfolio: Portfolio,
    price_oracle: PriceOracle,
    request_delay: float = DEFAULT_REQUEST_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    throttle: Optional[QuoteThrottle] = None,
) -> RefreshResult:
    """Refresh prices and values for every tracked position.

    Each position and the portfolio total are updated together under the
    portfolio lock, so a concurrent reader never sees a total that differs
    from cash plus the position values.

    Args:
        portfolio: Portfolio to update in place
        price_oracle: Quote source
        request_delay: Seconds to wait between quote requests
        sleep: Sleep function (injected for tests)
        throttle: Shared throttle; when omitted a fresh one is built from
            request_delay and sleep, spacing calls within this pass only

    Returns:
        RefreshResult describing which tickers were updated or left stale
    """
    if throttle is None:
        throttle = QuoteThrottle(request_delay, sleep=sleep)

    result = RefreshResult()
    tickers = portfolio.tickers

    logger.info("Updating portfolio values for %d tickers...", len(tickers))

    for ticker in tickers:
        throttle.wait()
        quote = price_oracle.quote(ticker)

        if isinstance(quote, Quote) and quote.price > 0:
            portfolio.apply_price(ticker, quote.price)
            result.updated[ticker] = quote.price
            logger.debug("%s priced at $%.2f", ticker, quote.price)
        else:
            result.stale.append(ticker)
            logger.warning("No price for %s, keeping last known value", ticker)

    with portfolio.lock:
        result.total_value = portfolio.recompute_total()
        if result.updated:
            portfolio.last_updated = datetime.now()

    logger.info(
        "Portfolio updated: $%.2f (%d priced, %d stale)",
        result.total_value,
        len(result.updated),
        len(result.stale),
    )
    return result
