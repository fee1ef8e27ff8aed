"""SQLite database manager implementation.

This module provides the DatabaseManager class for handling all interactions
with the SQLite database: the trade store used for deduplication, the
recommendation audit log, and the manual-entry backlog.
"""

import sqlite3
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from congress_rebalancer.data.base import TradeRecord
from congress_rebalancer.portfolio.base import Recommendation
from congress_rebalancer.utils.exceptions import StorageError
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """Manages SQLite database interactions.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str):
        """Initialize database manager.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self.create_tables()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if not hasattr(self._local, "connection"):
            self._local.connection = sqlite3.connect(self.db_path)
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    def create_tables(self) -> None:
        """Create necessary database tables if they don't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        try:
            with open(schema_path, "r") as f:
                schema = f.read()

            conn = self._get_connection()
            conn.executescript(schema)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise StorageError(f"Database initialization failed: {e}") from e

    # ----- trade store -----

    def trade_exists(
        self, actor: str, ticker: str, trade_date: date, amount: float
    ) -> bool:
        """Check whether a trade with this identity key was already stored.

        Args:
            actor: Actor name
            ticker: Ticker symbol
            trade_date: Trade execution date
            amount: Disclosed dollar amount

        Returns:
            True if a matching trade exists
        """
        query = """
            SELECT 1 FROM trades
            WHERE trader_name = ? AND symbol = ? AND trade_date = ? AND amount = ?
            LIMIT 1
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                query, (actor, ticker, _date_str(trade_date), float(amount))
            )
            return cursor.fetchone() is not None
        except sqlite3.Error as e:
            logger.error(f"Failed to look up trade {actor}/{ticker}: {e}")
            raise StorageError(f"Trade lookup failed: {e}") from e

    def insert_trade(self, trade: TradeRecord) -> int:
        """Persist an accepted trade.

        Args:
            trade: Trade to store

        Returns:
            Row id of the inserted trade

        Raises:
            StorageError: If the insert fails (including identity collisions)
        """
        insert_sql = """
            INSERT INTO trades
            (trader_name, symbol, transaction_type, amount, trade_date,
             disclosure_date, origin, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    insert_sql,
                    (
                        trade.actor,
                        trade.ticker,
                        trade.transaction_type.value,
                        float(trade.amount),
                        _date_str(trade.trade_date),
                        _date_str(trade.disclosure_date),
                        trade.origin,
                        datetime.now().isoformat(),
                    ),
                )
            return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f"Failed to save trade {trade.actor}/{trade.ticker}: {e}")
            raise StorageError(f"Failed to save trade: {e}") from e

    def count_trades(self) -> int:
        """Number of trades stored."""
        conn = self._get_connection()
        try:
            return conn.execute("SELECT COUNT(*) FROM trades").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e

    # ----- recommendation store -----

    def insert_recommendation(self, recommendation: Recommendation, issued: bool) -> int:
        """Persist a recommendation for audit, whether or not it was issued.

        Args:
            recommendation: Recommendation produced by the rebalancing engine
            issued: Whether it passed the dispatch gate

        Returns:
            Row id of the inserted recommendation
        """
        insert_sql = """
            INSERT INTO recommendations
            (symbol, action, trader_name, current_price, recommended_amount,
             shares_to_trade, target_allocation, reason, confidence, issued, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    insert_sql,
                    (
                        recommendation.ticker,
                        recommendation.action.value,
                        recommendation.actor,
                        recommendation.current_price,
                        recommendation.recommended_amount,
                        recommendation.shares_to_trade,
                        recommendation.target_allocation,
                        recommendation.reason,
                        recommendation.confidence,
                        int(issued),
                        recommendation.created_at.isoformat(),
                    ),
                )
            return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(
                f"Failed to save recommendation for {recommendation.ticker}: {e}"
            )
            raise StorageError(f"Failed to save recommendation: {e}") from e

    def load_recommendations(
        self, limit: Optional[int] = None, issued_only: bool = False
    ) -> pd.DataFrame:
        """Load stored recommendations, newest first.

        Args:
            limit: Maximum number of rows (None for all)
            issued_only: Only return recommendations that were dispatched

        Returns:
            DataFrame with one row per recommendation and a "created_at"
            datetime column. Empty if none are stored.
        """
        query = """
            SELECT id, created_at, symbol, action, trader_name, current_price,
                   recommended_amount, shares_to_trade, target_allocation,
                   reason, confidence, issued
            FROM recommendations
        """
        params: list = []
        if issued_only:
            query += " WHERE issued = 1"
        query += " ORDER BY id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        conn = self._get_connection()
        try:
            df = pd.read_sql_query(query, conn, params=params, parse_dates=["created_at"])
            df["issued"] = df["issued"].astype(bool)
            return df
        except Exception as e:
            logger.error(f"Failed to load recommendations: {e}")
            raise StorageError(f"Failed to load recommendations: {e}") from e

    # ----- manual-entry backlog -----

    def add_manual_trade(
        self,
        trader_name: str,
        symbol: str,
        transaction_type: str,
        amount: float,
        trade_date: Optional[date] = None,
    ) -> int:
        """Queue a manually entered trade for the next pipeline cycle.

        Args:
            trader_name: Actor name
            symbol: Ticker symbol
            transaction_type: Transaction label ("Purchase", "Sale", ...)
            amount: Dollar amount
            trade_date: Trade date (default: today)

        Returns:
            Row id of the queued trade
        """
        insert_sql = """
            INSERT INTO manual_trades
            (trader_name, symbol, transaction_type, amount, trade_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    insert_sql,
                    (
                        trader_name,
                        symbol,
                        transaction_type,
                        float(amount),
                        _date_str(trade_date or date.today()),
                        datetime.now().isoformat(),
                    ),
                )
            return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f"Failed to queue manual trade: {e}")
            raise StorageError(f"Failed to queue manual trade: {e}") from e

    def fetch_pending_manual_trades(self) -> List[Dict]:
        """Get manual trades not yet consumed, in submission order."""
        query = """
            SELECT id, trader_name, symbol, transaction_type, amount, trade_date, created_at
            FROM manual_trades
            WHERE processed = 0
            ORDER BY id ASC
        """
        conn = self._get_connection()
        try:
            return [dict(row) for row in conn.execute(query).fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Failed to load manual trades: {e}")
            raise StorageError(f"Failed to load manual trades: {e}") from e

    def mark_manual_trades_consumed(self, ids: Iterable[int]) -> int:
        """Mark manual trades as consumed so they are not offered again.

        Args:
            ids: Row ids from manual_trades

        Returns:
            Number of rows updated
        """
        id_list = [int(i) for i in ids]
        if not id_list:
            return 0

        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.executemany(
                    "UPDATE manual_trades SET processed = 1 WHERE id = ?",
                    [(i,) for i in id_list],
                )
            return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to mark manual trades consumed: {e}")
            raise StorageError(f"Failed to update manual trades: {e}") from e

    def close(self):
        """Close the thread-local connection."""
        if hasattr(self._local, "connection"):
            self._local.connection.close()
            del self._local.connection


def _date_str(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()
