"""Unit tests for RecommendationPipeline."""

import threading
from unittest.mock import Mock

import pytest

from congress_rebalancer.data.base import TransactionType
from congress_rebalancer.orchestration.ingestion import IngestionPipeline
from congress_rebalancer.orchestration.pipeline import CycleStatus, RecommendationPipeline
from congress_rebalancer.portfolio.base import RecommendationAction
from congress_rebalancer.portfolio.rebalancing_engine import RebalancingEngine, should_dispatch
from congress_rebalancer.utils.exceptions import StorageError

from conftest import FakeClock, StubOracle, StubSource, make_trade

PRICES = {"QQQ": 400.0, "NVDA": 100.0, "MSFT": 400.0, "AAPL": 200.0, "GOOGL": 100.0}


@pytest.fixture
def source():
    return StubSource("house_stock_watcher")


@pytest.fixture
def oracle():
    return StubOracle(PRICES)


@pytest.fixture
def dispatcher():
    dispatcher = Mock()
    dispatcher.send.return_value = True
    return dispatcher


@pytest.fixture
def make_pipeline(db, actors, portfolio, source, oracle, dispatcher):
    """Factory so tests can swap the store or engine."""

    def factory(store=None, engine=None):
        ingestion = IngestionPipeline(db, actors, portfolio.tickers, [source])
        return RecommendationPipeline(
            portfolio=portfolio,
            ingestion=ingestion,
            engine=engine or RebalancingEngine(actors),
            price_oracle=oracle,
            db=store or db,
            dispatcher=dispatcher,
            request_delay=0,
        )

    return factory


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()


class TestRunCycle:
    """Test one ingestion-and-recommendation cycle."""

    def test_high_conviction_purchase_is_issued(self, pipeline, source, dispatcher, portfolio, db):
        source.trades = [make_trade(amount=2_000_000.0)]

        result = pipeline.run_cycle()

        assert result.status == CycleStatus.COMPLETED
        assert len(result.accepted_trades) == 1
        assert len(result.issued) == 1
        rec = result.issued[0]
        assert rec.action == RecommendationAction.BUY
        assert rec.confidence == pytest.approx(0.9)
        dispatcher.send.assert_called_once_with(rec)
        assert portfolio.get_position("NVDA").target_allocation == pytest.approx(0.35)

        stored = db.load_recommendations()
        assert len(stored) == 1
        assert bool(stored.iloc[0]["issued"]) is True

    def test_low_conviction_recorded_not_issued(self, pipeline, source, dispatcher, portfolio, db):
        """Weight 0.6 sale: confidence 0.48 is logged but never dispatched."""
        source.trades = [
            make_trade(
                actor="Roger Williams",
                ticker="QQQ",
                transaction_type=TransactionType.SALE,
                amount=500_000.0,
            )
        ]

        result = pipeline.run_cycle()

        assert len(result.recommendations) == 1
        assert result.recommendations[0].action == RecommendationAction.SELL
        assert result.issued == []
        dispatcher.send.assert_not_called()
        assert portfolio.get_position("QQQ").target_allocation == pytest.approx(0.25)
        assert bool(db.load_recommendations().iloc[0]["issued"]) is False

    def test_issued_exactly_when_gate_passes(self, pipeline, source, dispatcher, db):
        source.trades = [
            make_trade(amount=2_000_000.0),
            make_trade(actor="Ron Wyden", ticker="GOOGL", transaction_type=TransactionType.SALE, amount=100_000.0),
            make_trade(actor="Roger Williams", ticker="MSFT", amount=1_000.0),
            make_trade(actor="Roger Williams", ticker="AAPL", transaction_type=TransactionType.SALE, amount=300_000.0),
        ]

        result = pipeline.run_cycle()

        assert len(result.recommendations) == 4
        for rec in result.recommendations:
            assert (rec in result.issued) == should_dispatch(rec)
        assert dispatcher.send.call_count == len(result.issued)

        stored = db.load_recommendations()
        assert len(stored) == 4
        assert int(stored["issued"].sum()) == len(result.issued)

    def test_second_cycle_finds_nothing_new(self, pipeline, source, dispatcher):
        source.trades = [make_trade(amount=2_000_000.0)]

        pipeline.run_cycle()
        result = pipeline.run_cycle()

        assert result.accepted_trades == []
        assert result.recommendations == []
        assert dispatcher.send.call_count == 1

    def test_prices_refreshed_before_each_trade(self, pipeline, source, oracle, portfolio):
        source.trades = [make_trade(ticker="NVDA"), make_trade(ticker="MSFT")]

        result = pipeline.run_cycle()

        assert len(oracle.calls) == 2 * len(portfolio.tickers)
        assert result.refresh is not None
        assert result.recommendations[0].current_price == 100.0

    def test_no_trades(self, pipeline, oracle):
        result = pipeline.run_cycle()

        assert result.status == CycleStatus.COMPLETED
        assert result.recommendations == []
        assert oracle.calls == []
        assert result.finished_at is not None


class TestFailures:
    """Per-trade failures are recorded and the cycle continues."""

    def test_dispatcher_failure_does_not_abort(self, pipeline, source, dispatcher):
        dispatcher.send.side_effect = RuntimeError("SMTP down")
        source.trades = [
            make_trade(amount=2_000_000.0),
            make_trade(ticker="MSFT", amount=2_000_000.0),
        ]

        result = pipeline.run_cycle()

        assert len(result.issued) == 2
        assert dispatcher.send.call_count == 2
        assert len(result.errors) == 2
        assert "SMTP down" in result.errors[0]

    def test_recommendation_store_failure(self, make_pipeline, source, dispatcher, db):
        store = Mock(wraps=db)
        store.insert_recommendation.side_effect = [StorageError("disk I/O error"), 2]
        pipeline = make_pipeline(store=store)
        source.trades = [
            make_trade(amount=2_000_000.0),
            make_trade(ticker="MSFT", amount=2_000_000.0),
        ]

        result = pipeline.run_cycle()

        assert len(result.errors) == 1
        assert [r.ticker for r in result.recommendations] == ["MSFT"]
        dispatcher.send.assert_called_once()

    def test_engine_failure(self, make_pipeline, source, actors):
        real = RebalancingEngine(actors)
        failed = []

        def flaky(*args):
            if not failed:
                failed.append(args)
                raise ValueError("bad input")
            return real.compute_adjustment(*args)

        engine = Mock(wraps=real)
        engine.compute_adjustment.side_effect = flaky
        pipeline = make_pipeline(engine=engine)
        source.trades = [make_trade(), make_trade(ticker="MSFT")]

        result = pipeline.run_cycle()

        assert len(result.errors) == 1
        assert "bad input" in result.errors[0]
        assert len(result.accepted_trades) == 2
        assert [r.ticker for r in result.recommendations] == ["MSFT"]

    def test_failing_source_yields_empty_cycle(self, make_pipeline, source):
        source.fetch = Mock(side_effect=RuntimeError("feed down"))
        pipeline = make_pipeline()

        result = pipeline.run_cycle()

        assert result.status == CycleStatus.COMPLETED
        assert result.accepted_trades == []


class TestRunGuard:
    """At most one run at a time."""

    def test_trigger_while_running_is_rejected(self, pipeline, source):
        pipeline._run_lock.acquire()
        try:
            result = pipeline.run_cycle()
        finally:
            pipeline._run_lock.release()

        assert result.status == CycleStatus.ALREADY_RUNNING
        assert source.acknowledged == []

    def test_price_update_while_running_is_rejected(self, pipeline, oracle):
        pipeline._run_lock.acquire()
        try:
            result = pipeline.update_prices()
        finally:
            pipeline._run_lock.release()

        assert result.status == CycleStatus.ALREADY_RUNNING
        assert oracle.calls == []

    def test_concurrent_trigger(self, pipeline, source):
        """A second trigger during a cycle returns ALREADY_RUNNING."""
        started = threading.Event()
        release = threading.Event()
        original_fetch = source.fetch

        def slow_fetch():
            started.set()
            release.wait(5)
            return original_fetch()

        source.fetch = slow_fetch
        source.trades = [make_trade(amount=2_000_000.0)]
        results = []

        worker = threading.Thread(target=lambda: results.append(pipeline.run_cycle()))
        worker.start()
        assert started.wait(5)

        assert pipeline.is_running
        second = pipeline.run_cycle()
        release.set()
        worker.join(5)

        assert second.status == CycleStatus.ALREADY_RUNNING
        assert results[0].status == CycleStatus.COMPLETED
        assert len(results[0].issued) == 1
        assert not pipeline.is_running

    def test_guard_released_after_error(self, make_pipeline, source):
        pipeline = make_pipeline()
        pipeline.ingestion.run = Mock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            pipeline.run_cycle()

        assert not pipeline.is_running


class TestUpdatePrices:
    """Test standalone price updates."""

    def test_update_prices(self, pipeline, portfolio):
        result = pipeline.update_prices()

        assert result.status == CycleStatus.COMPLETED
        assert result.ingestion is None
        assert set(result.refresh.updated) == set(portfolio.tickers)
        assert portfolio.get_position("NVDA").shares == pytest.approx(2.0)


class TimedOracle(StubOracle):
    """StubOracle that records the clock reading of every quote request."""

    def __init__(self, prices, clock):
        super().__init__(prices)
        self.clock = clock
        self.times = []

    def quote(self, ticker):
        self.times.append(self.clock())
        return super().quote(ticker)


class TestQuoteSpacing:
    """Quote requests stay spaced out across consecutive refreshes."""

    def test_delay_holds_across_trades_and_price_update(
        self, db, actors, portfolio, source, dispatcher
    ):
        clock = FakeClock()
        oracle = TimedOracle(PRICES, clock)
        pipeline = RecommendationPipeline(
            portfolio=portfolio,
            ingestion=IngestionPipeline(db, actors, portfolio.tickers, [source]),
            engine=RebalancingEngine(actors),
            price_oracle=oracle,
            db=db,
            dispatcher=dispatcher,
            request_delay=15,
            sleep=clock.sleep,
            clock=clock,
        )
        source.trades = [make_trade(ticker="NVDA"), make_trade(ticker="MSFT")]

        pipeline.run_cycle()
        pipeline.update_prices()

        assert oracle.calls == portfolio.tickers * 3
        gaps = [later - earlier for earlier, later in zip(oracle.times, oracle.times[1:])]
        assert len(gaps) == 14
        assert min(gaps) >= 15
