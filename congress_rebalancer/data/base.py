"""Trade records, quotes, and the abstract data-source interfaces.

This module defines the contracts every trade source adapter and price
oracle must implement, along with the normalized records they produce.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple, Union


class TransactionType(Enum):
    """Normalized transaction kinds of a disclosed trade."""

    PURCHASE = "Purchase"
    SALE = "Sale"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Union[str, "TransactionType", None]) -> "TransactionType":
        """Normalize a textual transaction label.

        "Purchase"/"Buy" and "Sale"/"Sell" map to the same variants,
        case-insensitively. The disclosure feed's partial and full sale
        labels ("sale_partial", "sale_full") count as sales. Anything else
        (exchanges, blanks) is OTHER.

        Example:
            >>> TransactionType.parse("buy")
            <TransactionType.PURCHASE: 'Purchase'>
            >>> TransactionType.parse("sale_partial")
            <TransactionType.SALE: 'Sale'>
        """
        if isinstance(value, TransactionType):
            return value
        if not value:
            return cls.OTHER

        label = str(value).strip().lower()
        if label in ("purchase", "buy"):
            return cls.PURCHASE
        if label in ("sale", "sell") or label.startswith("sale_") or label.startswith("sale ("):
            return cls.SALE
        return cls.OTHER


TradeKey = Tuple[str, str, date, float]


@dataclass(frozen=True)
class TradeRecord:
    """A disclosed trade normalized from one source.

    Attributes:
        actor: Name of the disclosing actor (e.g., "Nancy Pelosi")
        ticker: Stock ticker symbol
        transaction_type: PURCHASE, SALE or OTHER
        amount: Dollar amount of the disclosed trade
        trade_date: Date the trade was executed
        disclosure_date: Date the trade was disclosed
        origin: Name of the adapter that produced the record
        source_id: Row id in the originating backlog, if any
    """

    actor: str
    ticker: str
    transaction_type: TransactionType
    amount: float
    trade_date: date
    disclosure_date: Optional[date] = None
    origin: str = "unknown"
    source_id: Optional[int] = None

    def __post_init__(self):
        """Validate trade fields."""
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative, got {self.amount}")

    @property
    def key(self) -> TradeKey:
        """Deduplication identity: (actor, ticker, trade date, amount).

        Disclosure date and origin are excluded since the same event is
        reported with different disclosure metadata by different sources.
        Transaction type is excluded as well.
        """
        return (self.actor, self.ticker, self.trade_date, float(self.amount))


@dataclass(frozen=True)
class Quote:
    """A price observed from the quote provider."""

    ticker: str
    price: float
    as_of: datetime = field(default_factory=datetime.now)
    change: float = 0.0
    change_percent: float = 0.0


@dataclass(frozen=True)
class Unavailable:
    """Explicit "no price" outcome of a quote lookup."""

    ticker: str
    reason: str = ""


QuoteResult = Union[Quote, Unavailable]


class TradeSource(ABC):
    """Abstract interface for trade source adapters.

    Adapters are independent of each other and must not raise on transient
    failures: a failed fetch is logged and yields an empty list so the other
    sources still run.
    """

    name: str = "source"

    @abstractmethod
    def fetch(self) -> List[TradeRecord]:
        """Fetch normalized trade records from this source.

        Returns:
            List of TradeRecord, empty on failure
        """
        pass

    def acknowledge(self, records: List[TradeRecord]) -> None:
        """Mark records as handled so they are not offered again.

        Called by the ingestion pipeline once it has decided each record
        (accepted, duplicate or filtered). Stateless feeds ignore this.

        Args:
            records: Records previously returned by fetch()
        """
        return None


class PriceOracle(ABC):
    """Abstract interface for current-price lookups.

    Lookups are best-effort: implementations return Unavailable instead of
    raising, and never retry internally.
    """

    @abstractmethod
    def quote(self, ticker: str) -> QuoteResult:
        """Fetch the current price for a ticker.

        Args:
            ticker: Stock ticker symbol

        Returns:
            Quote on success, Unavailable on any failure
        """
        pass
