"""Unit tests for the ingestion pipeline."""

from datetime import date
from unittest.mock import Mock

import pytest

from congress_rebalancer.orchestration.ingestion import IngestionPipeline
from congress_rebalancer.utils.exceptions import StorageError

from conftest import StubSource, make_trade


@pytest.fixture
def ingestion(db, actors, portfolio):
    """Ingestion pipeline without sources."""
    return IngestionPipeline(db, actors, portfolio.tickers)


class TestFilter:
    """Test the tracked-actor and tracked-ticker filter."""

    def test_untracked_actor_is_filtered(self, ingestion, db):
        """A trade by an untracked actor is neither accepted nor stored."""
        trade = make_trade(actor="Someone Else")

        report = ingestion.ingest_with_report([trade])

        assert report.accepted == []
        assert report.filtered == [trade]
        assert db.count_trades() == 0

    def test_untracked_ticker_is_filtered(self, ingestion, db):
        trade = make_trade(ticker="TSLA")

        assert ingestion.ingest([trade]) == []
        assert db.count_trades() == 0

    def test_tracked_trade_accepted_and_stored(self, ingestion, db):
        trade = make_trade()

        accepted = ingestion.ingest([trade])

        assert accepted == [trade]
        assert db.trade_exists(*trade.key)


class TestDeduplication:
    """Test identity-key deduplication."""

    def test_same_batch_twice_is_idempotent(self, ingestion):
        batch = [
            make_trade(),
            make_trade(actor="Ron Wyden", ticker="GOOGL", amount=100000.0),
        ]

        first = ingestion.ingest(batch)
        second = ingestion.ingest(batch)

        assert first == batch
        assert second == []

    def test_same_event_from_two_sources(self, ingestion, db):
        """Identical key with different disclosure dates is accepted once."""
        feed = make_trade(disclosure_date=date(2024, 6, 10), origin="house_stock_watcher")
        manual = make_trade(disclosure_date=date(2024, 6, 12), origin="manual", source_id=3)

        report = ingestion.ingest_with_report([feed, manual])

        assert report.accepted == [feed]
        assert report.duplicates == [manual]
        assert db.count_trades() == 1

    def test_encounter_order_preserved(self, ingestion):
        trades = [
            make_trade(ticker="MSFT"),
            make_trade(ticker="AAPL"),
            make_trade(ticker="QQQ"),
        ]

        assert [t.ticker for t in ingestion.ingest(trades)] == ["MSFT", "AAPL", "QQQ"]

    def test_lookup_failure_marks_failed(self, actors, portfolio):
        db = Mock()
        db.trade_exists.side_effect = StorageError("database is locked")
        ingestion = IngestionPipeline(db, actors, portfolio.tickers)

        report = ingestion.ingest_with_report([make_trade()])

        assert report.accepted == []
        assert len(report.failed) == 1
        db.insert_trade.assert_not_called()


class TestPersistenceFailure:
    """A trade that cannot be stored is not accepted."""

    def test_insert_failure_not_accepted(self, actors, portfolio):
        db = Mock()
        db.trade_exists.return_value = False
        db.insert_trade.side_effect = StorageError("disk I/O error")
        ingestion = IngestionPipeline(db, actors, portfolio.tickers)

        report = ingestion.ingest_with_report([make_trade()])

        assert report.accepted == []
        assert len(report.failed) == 1

    def test_failed_trade_retried_next_batch(self, actors, portfolio, db):
        """Once storage recovers the same trade is accepted."""
        flaky = Mock(wraps=db)
        flaky.insert_trade.side_effect = [StorageError("disk I/O error"), 1]
        ingestion = IngestionPipeline(flaky, actors, portfolio.tickers)

        assert ingestion.ingest([make_trade()]) == []
        assert len(ingestion.ingest([make_trade()])) == 1


class TestSources:
    """Test collection from sources and acknowledgements."""

    def test_run_merges_sources_in_order(self, db, actors, portfolio):
        feed = StubSource("house_stock_watcher", [make_trade(ticker="NVDA")])
        manual = StubSource("manual", [make_trade(ticker="MSFT", origin="manual", source_id=1)])
        ingestion = IngestionPipeline(db, actors, portfolio.tickers, [feed, manual])

        report = ingestion.run()

        assert [t.ticker for t in report.accepted] == ["NVDA", "MSFT"]

    def test_failing_source_does_not_stop_others(self, db, actors, portfolio):
        broken = Mock()
        broken.name = "broken"
        broken.fetch.side_effect = RuntimeError("boom")
        manual = StubSource("manual", [make_trade(origin="manual", source_id=1)])
        ingestion = IngestionPipeline(db, actors, portfolio.tickers, [broken, manual])

        report = ingestion.run()

        assert len(report.accepted) == 1

    def test_acknowledges_decided_records(self, db, actors, portfolio):
        """Accepted, duplicate and filtered records are acknowledged to their source."""
        accepted = make_trade(origin="manual", source_id=1)
        duplicate = make_trade(origin="manual", source_id=2)
        filtered = make_trade(actor="Someone Else", origin="manual", source_id=3)
        feed_trade = make_trade(ticker="MSFT")
        manual = StubSource("manual", [accepted, duplicate, filtered])
        feed = StubSource("house_stock_watcher", [feed_trade])
        ingestion = IngestionPipeline(db, actors, portfolio.tickers, [feed, manual])

        ingestion.run()

        assert set(manual.acknowledged) == {accepted, duplicate, filtered}
        assert feed.acknowledged == [feed_trade]

    def test_failed_records_not_acknowledged(self, actors, portfolio):
        db = Mock()
        db.trade_exists.return_value = False
        db.insert_trade.side_effect = StorageError("disk I/O error")
        manual = StubSource("manual", [make_trade(origin="manual", source_id=1)])
        ingestion = IngestionPipeline(db, actors, portfolio.tickers, [manual])

        ingestion.run()

        assert manual.acknowledged == []

    def test_acknowledge_failure_is_logged(self, db, actors, portfolio):
        manual = StubSource("manual", [make_trade(origin="manual", source_id=1)])
        manual.acknowledge = Mock(side_effect=StorageError("database is locked"))
        ingestion = IngestionPipeline(db, actors, portfolio.tickers, [manual])

        report = ingestion.run()

        assert len(report.accepted) == 1
