"""Congress Rebalancer command-line interface.

Examples:
    # Run the bot: scheduled trade checks and price updates until Ctrl-C
    congress-rebalancer run

    # One trade check right now
    congress-rebalancer cycle

    # Queue a manual trade and process it immediately
    congress-rebalancer add-trade "Nancy Pelosi" NVDA Purchase 500000 --process

    # Show the portfolio and recent recommendations
    congress-rebalancer portfolio
    congress-rebalancer history --limit 20
"""

import signal
import threading
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from congress_rebalancer.app import Application, build_application
from congress_rebalancer.orchestration.pipeline import CycleResult, CycleStatus
from congress_rebalancer.utils.config import load_app_config
from congress_rebalancer.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


def create_app(config_path: Optional[str], env_file: Optional[str]) -> Application:
    """Load configuration and build the application."""
    config, credentials = load_app_config(config_path, env_file)
    setup_logging(level=config.get("logging.level", "INFO"), quiet_libraries=True)
    return build_application(config, credentials)


def print_portfolio(app: Application) -> None:
    """Render the portfolio as a rich table."""
    status = app.api.status()
    console.print(
        Panel(
            f"Total Value: [bold]${status['totalValue']:,.2f}[/bold]\n"
            f"Cash: ${status['cash']:,.2f}\n"
            f"Last Updated: {status['lastUpdated']}\n"
            f"Email Configured: {'Yes' if status['emailConfigured'] else 'No'}\n"
            f"Pending Manual Trades: {status['pendingManualTrades']}",
            title="Portfolio Status",
        )
    )

    table = Table(title="Current Positions")
    table.add_column("Symbol", style="cyan")
    table.add_column("Shares", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Allocation", justify="right")
    table.add_column("Target", justify="right")

    for ticker, position in app.api.get_portfolio()["positions"].items():
        table.add_row(
            ticker,
            f"{position['shares']:.3f}",
            f"${position['currentPrice']:.2f}",
            f"${position['currentValue']:.2f}",
            f"{app.portfolio.allocation(ticker) * 100:.1f}%",
            f"{position['targetAllocation'] * 100:.0f}%",
        )

    console.print(table)


def print_cycle(result: CycleResult) -> None:
    """Summarize a cycle result."""
    if result.status == CycleStatus.ALREADY_RUNNING:
        console.print("[yellow]Pipeline already running, request skipped[/yellow]")
        return

    if result.ingestion is not None:
        report = result.ingestion
        console.print(
            f"Trades: {report.candidates} found, {len(report.accepted)} new, "
            f"{len(report.duplicates)} duplicate, {len(report.filtered)} not tracked, "
            f"{len(report.failed)} failed"
        )

    if result.recommendations:
        table = Table(title="Recommendations")
        table.add_column("Symbol", style="cyan")
        table.add_column("Action")
        table.add_column("Amount", justify="right")
        table.add_column("Shares", justify="right")
        table.add_column("Confidence", justify="right")
        table.add_column("Issued")
        table.add_column("Reason")
        for rec in result.recommendations:
            table.add_row(
                rec.ticker,
                rec.action.value,
                f"${rec.recommended_amount:,.0f}",
                f"{rec.shares_to_trade:.3f}",
                f"{rec.confidence * 100:.0f}%",
                "yes" if rec in result.issued else "no",
                rec.reason,
            )
        console.print(table)

    if result.refresh is not None:
        console.print(
            f"Prices: {len(result.refresh.updated)} updated, "
            f"{len(result.refresh.stale)} stale, total ${result.refresh.total_value:,.2f}"
        )

    for error in result.errors:
        console.print(f"[red]Error:[/red] {error}")


@click.group()
@click.option("--config", "config_path", type=click.Path(), default=None, help="YAML config file")
@click.option("--env-file", type=click.Path(), default=None, help=".env file with credentials")
@click.pass_context
def cli(ctx, config_path, env_file):
    """Congress Rebalancer - follow congressional trade disclosures"""
    ctx.obj = create_app(config_path, env_file)
    ctx.call_on_close(ctx.obj.close)


@cli.command()
@click.pass_obj
def run(app: Application):
    """Start the scheduler and block until interrupted."""
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    app.schedule()
    app.scheduler.start()
    console.print("[green]Congress Rebalancer running. Press Ctrl-C to stop.[/green]")

    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass

    logger.info("Shutting down gracefully...")


@cli.command()
@click.pass_obj
def cycle(app: Application):
    """Run one trade check now."""
    print_cycle(app.api.trigger_trades())


@cli.command("update-prices")
@click.pass_obj
def update_prices(app: Application):
    """Refresh portfolio prices now."""
    print_cycle(app.api.trigger_price_update())
    print_portfolio(app)


@cli.command("add-trade")
@click.argument("trader")
@click.argument("symbol")
@click.argument("transaction_type", metavar="TYPE")
@click.argument("amount", type=float)
@click.option("--process", is_flag=True, help="Run a trade check right after queueing")
@click.pass_obj
def add_trade(app: Application, trader, symbol, transaction_type, amount, process):
    """Queue a manual trade.

    TYPE: Purchase, Buy, Sale or Sell
    """
    try:
        response = app.api.add_manual_trade(trader, symbol, transaction_type, amount)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    console.print(f"[green]{response['message']}[/green] (id {response['id']})")
    if process:
        print_cycle(app.api.trigger_trades())


@cli.command()
@click.pass_obj
def portfolio(app: Application):
    """Show portfolio status and positions."""
    print_portfolio(app)


@cli.command()
@click.option("--limit", type=int, default=20, help="Number of recommendations")
@click.option("--issued-only", is_flag=True, help="Only recommendations that were sent")
@click.pass_obj
def history(app: Application, limit, issued_only):
    """Show recent recommendations."""
    df = app.db.load_recommendations(limit=limit, issued_only=issued_only)
    if df.empty:
        console.print("No recommendations recorded yet")
        return

    table = Table(title="Recent Recommendations")
    for column in ("created_at", "symbol", "action", "recommended_amount", "confidence", "issued", "reason"):
        table.add_column(column)
    for row in df.itertuples(index=False):
        table.add_row(
            row.created_at.strftime("%Y-%m-%d %H:%M"),
            row.symbol,
            row.action,
            f"${row.recommended_amount:,.0f}",
            f"{row.confidence * 100:.0f}%",
            "yes" if row.issued else "no",
            row.reason,
        )
    console.print(table)


@cli.command("test-email")
@click.pass_obj
def test_email(app: Application):
    """Send a test email."""
    if app.api.send_test_email():
        console.print("[green]Test email sent[/green]")
    else:
        console.print("[yellow]Test email not sent (see log)[/yellow]")


def main():
    cli()


if __name__ == "__main__":
    main()
