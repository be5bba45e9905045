"""
Click CLI for the wheel tracker.

Records trade events and deposits into a local SQLite ledger and prints
positions and dashboard reports.
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

import click
from sqlalchemy.orm import Session, sessionmaker

from .config import ConfigurationError, TrackerConfig
from .dashboard import DashboardReport, DashboardService
from .deposits import summarize_deposits
from .exceptions import TrackerError
from .expirations import DEFAULT_DAYS_AHEAD, group_by_expiration, upcoming_expirations
from .export import deposits_csv, pl_report_csv
from .ledger import PositionFilter
from .models import Deposit, DepositType, Position, TradeEvent, present_money
from .pnl import PnLEngine, premium_pl
from .pricing import CachingPriceProvider, FinnhubPriceProvider, StaticPriceProvider
from .rolls import build_roll_events
from .state import EventType

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class CLIContext:
    """Context object passed to all CLI commands.

    Attributes:
        config: Configuration settings
        session: Database session for this invocation
        verbose: Verbose output enabled
        json: JSON output enabled
    """

    config: TrackerConfig
    session: Session
    verbose: bool
    json: bool

    def ledger_store(self):
        from src.server.repositories.ledger import SqlLedgerStore

        return SqlLedgerStore(self.session)

    def deposit_repository(self):
        from src.server.repositories.deposit import DepositRepository

        return DepositRepository(self.session)

    def price_provider(self) -> CachingPriceProvider:
        if self.config.finnhub_api_key:
            from src.market_data.finnhub_client import FinnhubConfig, FinnhubQuoteClient

            client = FinnhubQuoteClient(FinnhubConfig(api_key=self.config.finnhub_api_key))
            inner = FinnhubPriceProvider(client)
        else:
            inner = StaticPriceProvider()
        return CachingPriceProvider(inner, ttl_seconds=self.config.price_ttl_seconds)


def print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def print_success(message: str) -> None:
    click.secho(message, fg="green")


def print_warning(message: str) -> None:
    click.secho(f"Warning: {message}", fg="yellow", err=True)


def _money(value) -> str:
    amount = present_money(value)
    return "n/a" if amount is None else f"${amount:,.2f}"


def print_position(position: Position, verbose: bool = False) -> None:
    """Print one position on a line (plus events when verbose)."""
    line = (
        f"{position.id[:8]}  {position.ticker:<5}  {position.reporting_status.value:<12} "
        f"v{position.version:<3} sold {_money(position.premium_collected)} "
        f"net {_money(premium_pl(position.events))}"
    )
    if position.holds_shares:
        line += f"  {position.shares_held} sh @ {_money(position.cost_basis_per_share)}"
    if position.closed_at:
        line += f"  closed {position.closed_at.isoformat()}"
    click.echo(line)

    if verbose:
        for event in position.events:
            click.echo(
                f"    {event.occurred_at.isoformat()}  {event.event_type.value:<18} "
                f"x{event.contracts} @ {event.strike}  cash {_money(event.cash_flow)}"
            )


def print_report(report: DashboardReport) -> None:
    """Print a dashboard report."""
    metrics = report.metrics
    click.echo()
    click.secho(f"=== Dashboard ({report.time_range.value}) ===", bold=True)
    click.echo(f"Total P&L:        {_money(metrics.total_pl)}")
    click.echo(f"  Premium:        {_money(metrics.premium_pl)}")
    click.echo(f"  Realized:       {_money(metrics.realized_pl)}")
    click.echo(f"  Unrealized:     {_money(metrics.unrealized_pl)}")
    click.echo(f"Premium Sold:     {_money(metrics.premium_collected)}")
    click.echo(f"Open Positions:   {metrics.open_positions}")
    click.echo(f"Closed Positions: {metrics.closed_positions}")
    click.echo(f"Win Rate:         {float(report.win_rate_data.win_rate) * 100:.1f}%")
    click.echo(f"Net Deposits:     {_money(metrics.cash_deposits)}")

    if report.pl_by_ticker:
        click.echo()
        click.secho("By ticker:", bold=True)
        for row in report.pl_by_ticker:
            click.echo(f"  {row.ticker:<5} {_money(row.total_pl):>14}")

    if report.stale:
        click.echo()
        print_warning(
            f"Prices unavailable or stale for: {', '.join(report.stale_tickers)}"
        )


def _emit_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def _get_cli_context(ctx: click.Context) -> CLIContext:
    return ctx.obj


@click.group()
@click.option("--db", default=None, help="Database file path", envvar="WHEEL_TRACKER_DB_PATH")
@click.option(
    "--config-file",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json", "output_json", is_flag=True, help="JSON output")
@click.pass_context
def cli(
    ctx: click.Context,
    db: Optional[str],
    config_file: Optional[str],
    verbose: bool,
    output_json: bool,
) -> None:
    """
    Wheel Tracker - record wheel trades and report P&L.
    """
    try:
        config = TrackerConfig.load_from_file(Path(config_file) if config_file else None)
    except ConfigurationError as e:
        print_error(str(e))
        sys.exit(1)

    if db:
        config.db_path = db
    if verbose:
        config.verbose = True
    if output_json:
        config.json_output = True

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    from src.server.database.session import create_sqlite_engine, create_tables

    engine = create_sqlite_engine(config.database_url)
    create_tables(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    ctx.call_on_close(session.close)
    ctx.call_on_close(engine.dispose)

    ctx.obj = CLIContext(
        config=config,
        session=session,
        verbose=config.verbose,
        json=config.json_output,
    )


@cli.command()
@click.argument("ticker")
@click.argument(
    "event_type",
    type=click.Choice([t.value for t in EventType], case_sensitive=False),
)
@click.option("--strike", required=True, type=str, help="Strike or share price ($)")
@click.option("--contracts", default=1, type=int, help="Number of contracts")
@click.option("--premium", default="0", type=str, help="Option premium per share ($)")
@click.option(
    "--date", "occurred_at", type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None, help="Trade date (default today)",
)
@click.option(
    "--expiration", type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None, help="Option expiration date",
)
@click.option("--position", "position_id", default=None, help="Existing position id")
@click.option("--expected-version", type=int, default=None, help="Version last seen")
@click.option("--event-id", default=None, help="Idempotency key")
@click.option("--notes", default=None, help="Free text")
@click.pass_context
def record(
    ctx: click.Context,
    ticker: str,
    event_type: str,
    strike: str,
    contracts: int,
    premium: str,
    occurred_at,
    expiration,
    position_id: Optional[str],
    expected_version: Optional[int],
    event_id: Optional[str],
    notes: Optional[str],
) -> None:
    """
    Record a trade event.

    Without --position a SELL_TO_OPEN_PUT opens a new position.

    Example: wheel-tracker record AAPL SELL_TO_OPEN_PUT --strike 150 --premium 2.00
    """
    cli_ctx = _get_cli_context(ctx)
    store = cli_ctx.ledger_store()

    kwargs = {"id": event_id} if event_id else {}
    try:
        event = TradeEvent(
            ticker=ticker,
            event_type=EventType(event_type.upper()),
            strike=strike,
            contracts=contracts,
            premium_per_contract=premium,
            occurred_at=occurred_at.date() if occurred_at else date.today(),
            expiration_date=expiration.date() if expiration else None,
            notes=notes,
            **kwargs,
        )
        position = store.append_event(position_id, event, expected_version=expected_version)
    except TrackerError as e:
        print_error(str(e))
        sys.exit(1)

    if cli_ctx.json:
        from src.server.models.trade_event import PositionResponse

        _emit_json(
            PositionResponse.from_position(position, include_events=True)
            .model_dump(mode="json", by_alias=True)
        )
        return

    print_success(
        f"Recorded {event.event_type.value} x{event.contracts} {event.ticker} "
        f"({_money(event.cash_flow)})"
    )
    print_position(position, verbose=cli_ctx.verbose)


@cli.command()
@click.argument("position_id")
@click.option("--strike", "new_strike", required=True, type=str, help="New strike ($)")
@click.option(
    "--expiration", required=True, type=click.DateTime(formats=["%Y-%m-%d"]),
    help="New expiration date",
)
@click.option("--close-premium", required=True, type=str, help="Buyback price per share ($)")
@click.option("--open-premium", required=True, type=str, help="New leg price per share ($)")
@click.option(
    "--date", "occurred_at", type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None, help="Trade date (default today)",
)
@click.option("--expected-version", type=int, default=None, help="Version last seen")
@click.option("--notes", default=None, help="Free text")
@click.pass_context
def roll(
    ctx: click.Context,
    position_id: str,
    new_strike: str,
    expiration,
    close_premium: str,
    open_premium: str,
    occurred_at,
    expected_version: Optional[int],
    notes: Optional[str],
) -> None:
    """
    Roll a position's open put or call.

    Example: wheel-tracker roll 3f2a... --strike 155 --expiration 2026-02-20
    --close-premium 1.00 --open-premium 1.80
    """
    cli_ctx = _get_cli_context(ctx)
    store = cli_ctx.ledger_store()

    try:
        current = store.get_position(position_id)
        close_event, open_event = build_roll_events(
            current,
            new_strike=new_strike,
            new_expiration=expiration.date(),
            close_premium=close_premium,
            open_premium=open_premium,
            occurred_at=occurred_at.date() if occurred_at else None,
            notes=notes,
        )
        result = store.roll(
            position_id,
            close_event,
            open_event,
            expected_version=(
                expected_version if expected_version is not None else current.version
            ),
        )
    except TrackerError as e:
        print_error(str(e))
        sys.exit(1)

    if cli_ctx.json:
        from src.server.models.trade_event import RollResponse

        _emit_json(RollResponse.from_result(result).model_dump(mode="json", by_alias=True))
        return

    kind = "credit" if result.net_premium >= 0 else "debit"
    print_success(
        f"Rolled {result.position.ticker} to {open_event.strike} "
        f"exp {open_event.expiration_date.isoformat()} "
        f"(net {kind} {_money(abs(result.net_premium))})"
    )
    if result.rolled_from is not None:
        print_position(result.rolled_from, verbose=cli_ctx.verbose)
    print_position(result.position, verbose=cli_ctx.verbose)


@cli.command()
@click.option("--days", default=DEFAULT_DAYS_AHEAD, type=int, help="Days ahead to look")
@click.pass_context
def expirations(ctx: click.Context, days: int) -> None:
    """List open option legs by expiration date."""
    cli_ctx = _get_cli_context(ctx)
    store = cli_ctx.ledger_store()

    try:
        legs = upcoming_expirations(
            store.list_positions(PositionFilter(open_only=True)), date.today(), days
        )
    except TrackerError as e:
        print_error(str(e))
        sys.exit(1)

    if cli_ctx.json:
        _emit_json([leg.to_dict() for leg in legs])
        return

    if not legs:
        click.echo(f"No expirations in the next {days} days")
        return
    for day, group in group_by_expiration(legs).items():
        click.secho(day, bold=True)
        for leg in group:
            flag = "  OVERDUE" if leg.overdue else f"  in {leg.days_until}d"
            click.echo(
                f"  {leg.ticker:<5} {leg.event_type:<18} x{leg.contracts} @ {leg.strike}"
                f"{flag}  {leg.position_id[:8]}"
            )


@cli.command()
@click.argument("what", type=click.Choice(["pl", "deposits"], case_sensitive=False))
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="P&L: positions opened on or after")
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="P&L: positions opened on or before")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Write to file instead of stdout")
@click.pass_context
def export(ctx: click.Context, what: str, start, end, output: Optional[str]) -> None:
    """Export P&L or deposits as CSV."""
    cli_ctx = _get_cli_context(ctx)

    try:
        if what.lower() == "pl":
            service = DashboardService(
                cli_ctx.ledger_store(),
                PnLEngine(cli_ctx.price_provider(), timeout=cli_ctx.config.price_timeout_seconds),
            )
            results = asyncio.run(service.position_overview())
            content = pl_report_csv(
                results,
                start.date() if start else None,
                end.date() if end else None,
            )
        else:
            content = deposits_csv(cli_ctx.deposit_repository().list_deposits())
    except TrackerError as e:
        print_error(str(e))
        sys.exit(1)

    if output:
        Path(output).write_text(content)
        print_success(f"Wrote {output}")
    else:
        click.echo(content, nl=False)


@cli.command()
@click.option("--ticker", default=None, help="Filter by ticker")
@click.option("--open-only", is_flag=True, help="Only open positions")
@click.pass_context
def positions(ctx: click.Context, ticker: Optional[str], open_only: bool) -> None:
    """List positions."""
    cli_ctx = _get_cli_context(ctx)
    store = cli_ctx.ledger_store()

    found = store.list_positions(PositionFilter(ticker=ticker, open_only=open_only))

    if cli_ctx.json:
        from src.server.models.trade_event import PositionResponse

        _emit_json([
            PositionResponse.from_position(p).model_dump(mode="json", by_alias=True)
            for p in found
        ])
        return

    if not found:
        click.echo("No positions found")
        return
    for position in found:
        print_position(position, verbose=cli_ctx.verbose)


@cli.command()
@click.option(
    "--range", "time_range", default=None,
    help="Time range: 1M, 3M, 6M, 1Y or All (default from config)",
)
@click.pass_context
def report(ctx: click.Context, time_range: Optional[str]) -> None:
    """Show the dashboard report."""
    cli_ctx = _get_cli_context(ctx)
    deposits = cli_ctx.deposit_repository()
    service = DashboardService(
        cli_ctx.ledger_store(),
        PnLEngine(cli_ctx.price_provider(), timeout=cli_ctx.config.price_timeout_seconds),
        deposits_source=deposits.list_deposits,
        cache_seconds=0,
    )

    try:
        result = asyncio.run(service.build_report(time_range or cli_ctx.config.default_range))
    except TrackerError as e:
        print_error(str(e))
        sys.exit(1)

    if cli_ctx.json:
        _emit_json(result.report_dict())
    else:
        print_report(result)


def _record_deposit(ctx: click.Context, amount: str, deposit_type: DepositType, on, notes) -> None:
    cli_ctx = _get_cli_context(ctx)
    try:
        deposit = Deposit(
            amount=amount,
            deposit_date=on.date() if on else date.today(),
            deposit_type=deposit_type,
            notes=notes,
        )
    except TrackerError as e:
        print_error(str(e))
        sys.exit(1)

    cli_ctx.deposit_repository().create_deposit(deposit)
    if cli_ctx.json:
        _emit_json({
            "id": deposit.id,
            "amount": present_money(deposit.amount),
            "depositType": deposit.deposit_type.value,
            "depositDate": deposit.deposit_date.isoformat(),
        })
        return
    print_success(
        f"Recorded {deposit_type.value.lower()} of {_money(deposit.amount)} "
        f"on {deposit.deposit_date.isoformat()}"
    )


@cli.command()
@click.argument("amount")
@click.option("--date", "on", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--notes", default=None)
@click.pass_context
def deposit(ctx: click.Context, amount: str, on, notes: Optional[str]) -> None:
    """Record a cash deposit."""
    _record_deposit(ctx, amount, DepositType.DEPOSIT, on, notes)


@cli.command()
@click.argument("amount")
@click.option("--date", "on", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--notes", default=None)
@click.pass_context
def withdraw(ctx: click.Context, amount: str, on, notes: Optional[str]) -> None:
    """Record a cash withdrawal."""
    _record_deposit(ctx, amount, DepositType.WITHDRAWAL, on, notes)


@cli.command()
@click.pass_context
def deposits(ctx: click.Context) -> None:
    """List deposits and withdrawals with totals."""
    cli_ctx = _get_cli_context(ctx)
    records = cli_ctx.deposit_repository().list_deposits()
    summary = summarize_deposits(records)

    if cli_ctx.json:
        _emit_json(summary.to_dict())
        return

    for record in records:
        click.echo(
            f"{record.deposit_date.isoformat()}  {record.deposit_type.value:<10} "
            f"{_money(record.amount):>14}"
        )
    click.echo(f"Net invested: {_money(summary.net_invested)}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
