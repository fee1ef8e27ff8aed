"""Tests for application wiring and the CLI."""

from unittest.mock import Mock

import pytest
import yaml
from click.testing import CliRunner

from congress_rebalancer.api.bot_api import PRICE_UPDATE_TASK, TRADE_CHECK_TASK
from congress_rebalancer.app import build_application, create_sources
from congress_rebalancer.cli import cli
from congress_rebalancer.data.providers.house_stock_watcher import HouseStockWatcherSource
from congress_rebalancer.data.providers.manual_entry import ManualEntrySource
from congress_rebalancer.notification.base import LoggingDispatcher
from congress_rebalancer.notification.email_dispatcher import EmailDispatcher
from congress_rebalancer.orchestration.pipeline import CycleStatus
from congress_rebalancer.portfolio.base import RecommendationAction
from congress_rebalancer.utils.config import ROOT_DIR, Config, load_config

from conftest import StubOracle


@pytest.fixture
def config(tmp_path):
    """Default configuration with a temporary database and no live feed."""
    config = load_config()
    config.set("database.path", str(tmp_path / "trades.db"))
    config.set("sources.house_stock_watcher.enabled", False)
    config.set("price_oracle.request_delay_seconds", 0)
    return config


@pytest.fixture
def app(config):
    app = build_application(config, {}, price_oracle=StubOracle({"NVDA": 100.0}))
    yield app
    app.close()


class TestBuildApplication:
    """Test build_application and create_sources."""

    def test_components(self, app):
        assert app.portfolio.total_value == pytest.approx(1000.0)
        assert len(app.actors) == 6
        assert [s.name for s in app.sources] == ["manual"]
        assert isinstance(app.dispatcher, LoggingDispatcher)
        assert app.api.portfolio is app.portfolio

    def test_email_dispatcher_when_configured(self, config):
        app = build_application(
            config,
            {"email_user": "me@example.com", "email_pass": "secret"},
            price_oracle=StubOracle(),
        )
        try:
            assert isinstance(app.dispatcher, EmailDispatcher)
            assert app.dispatcher.portfolio is app.portfolio
        finally:
            app.close()

    def test_create_sources(self, tmp_path):
        config = Config({"sources": {"house_stock_watcher": {"lookback_days": 3}}})
        db = Mock()

        sources = create_sources(config, db)

        assert isinstance(sources[0], HouseStockWatcherSource)
        assert sources[0].lookback_days == 3
        assert isinstance(sources[1], ManualEntrySource)

    def test_schedule_registers_tasks(self, app):
        app.schedule()

        assert set(app.scheduler.tasks) == {TRADE_CHECK_TASK, PRICE_UPDATE_TASK}
        assert app.scheduler.tasks[TRADE_CHECK_TASK]["trigger_args"]["hour"] == "9,11,13,15"


class TestManualTradeFlow:
    """A manual trade goes all the way to an issued recommendation."""

    def test_manual_trade_issued_once(self, app):
        app.api.add_manual_trade("Nancy Pelosi", "NVDA", "Purchase", 500000)

        result = app.api.trigger_trades()

        assert result.status == CycleStatus.COMPLETED
        assert len(result.issued) == 1
        assert result.issued[0].action == RecommendationAction.BUY
        assert result.issued[0].current_price == 100.0
        assert app.db.fetch_pending_manual_trades() == []

        again = app.api.trigger_trades()
        assert again.recommendations == []

    def test_untracked_actor_consumed_without_recommendation(self, app):
        app.api.add_manual_trade("Someone Else", "NVDA", "Purchase", 500000)

        result = app.api.trigger_trades()

        assert result.recommendations == []
        assert len(result.ingestion.filtered) == 1
        assert app.db.fetch_pending_manual_trades() == []


class TestCli:
    """Test the click commands."""

    @pytest.fixture
    def cli_args(self, tmp_path, monkeypatch):
        for name in ("ALPHA_VANTAGE_API_KEY", "EMAIL_USER", "EMAIL_PASS", "DEFAULT_PORTFOLIO_VALUE"):
            monkeypatch.delenv(name, raising=False)
        settings = yaml.safe_load((ROOT_DIR / "config" / "default.yaml").read_text())
        settings["database"]["path"] = str(tmp_path / "trades.db")
        settings["sources"]["house_stock_watcher"]["enabled"] = False
        settings["price_oracle"]["request_delay_seconds"] = 0
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump(settings))
        return ["--config", str(config_file), "--env-file", str(tmp_path / "missing.env")]

    def test_portfolio(self, cli_args):
        result = CliRunner().invoke(cli, cli_args + ["portfolio"])

        assert result.exit_code == 0, result.output
        assert "Total Value" in result.output
        assert "NVDA" in result.output

    def test_add_trade_and_history(self, cli_args):
        runner = CliRunner()

        added = runner.invoke(
            cli, cli_args + ["add-trade", "Nancy Pelosi", "NVDA", "Purchase", "500000", "--process"]
        )
        history = runner.invoke(cli, cli_args + ["history", "--issued-only"])

        assert added.exit_code == 0, added.output
        assert "Manual trade added successfully" in added.output
        assert history.exit_code == 0, history.output
        assert "NVDA" in history.output

    def test_add_trade_invalid_type(self, cli_args):
        result = CliRunner().invoke(
            cli, cli_args + ["add-trade", "Nancy Pelosi", "NVDA", "Exchange", "500000"]
        )

        assert result.exit_code != 0
        assert "type must be" in result.output

    def test_history_empty(self, cli_args):
        result = CliRunner().invoke(cli, cli_args + ["history"])

        assert result.exit_code == 0
        assert "No recommendations recorded yet" in result.output

    def test_test_email_not_configured(self, cli_args):
        result = CliRunner().invoke(cli, cli_args + ["test-email"])

        assert result.exit_code == 0
        assert "not sent" in result.output
