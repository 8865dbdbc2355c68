"""CLI interface for portfolio data.

Commands:
    init-db                              Apply database migrations
    holdings list|add|remove|replace     Manage a user's holdings
    holdings summary [--json]            Value, cost basis, returns and day change
    watchlist list|add|remove|replace    Manage a user's watchlist
    quote SYMBOL...                      Show live quotes
    series [--range 1D|1W|1M] [--json]   Portfolio value series for a user's holdings
    discounts [--symbol SYM] [--no-live] Latest discount snapshot per symbol
"""

import json
import logging
import math
import os
from pathlib import Path

import click
from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

from foliohub.database import DEFAULT_DB_PATH, Database
from foliohub.discount_hub import get_discount_for_symbol, get_discount_hub_data
from foliohub.market_data import (
    DEFAULT_BASE_URL,
    APIError,
    AuthenticationError,
    ClientError,
    FMPClient,
    NetworkError,
)
from foliohub.models.active_model import ActiveModelError
from foliohub.models.holding import Holding
from foliohub.models.watchlist_item import WatchlistItem
from foliohub.portfolio import build_account_summary
from foliohub.portfolio_series import build_portfolio_series

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def ensure_database_initialized(db_path: str) -> None:
    """Run Alembic migrations unless the schema already exists."""
    if os.path.exists(db_path):
        if Database(db_path=db_path).table_exists("holdings"):
            return

    click.echo("Initializing database schema...")
    alembic_config = Config(str(ALEMBIC_INI))
    alembic_config.set_main_option(
        "sqlalchemy.url", f"sqlite:///{os.path.abspath(db_path)}"
    )
    command.upgrade(alembic_config, "head")
    click.echo("✓ Database schema initialized")


def open_database() -> Database:
    """Database from DB_PATH / DB_ENCRYPTION_KEY, migrated to head."""
    db_path = os.getenv("DB_PATH", DEFAULT_DB_PATH)
    db_key = os.getenv("DB_ENCRYPTION_KEY")
    if not db_key:
        logger.debug("DB_ENCRYPTION_KEY not set. Using unencrypted database.")
    ensure_database_initialized(db_path)
    return Database(db_path=db_path, encryption_key=db_key)


def make_client() -> FMPClient:
    """FMP client from FMP_API_KEY / FMP_BASE_URL.

    Raises:
        click.ClickException: If FMP_API_KEY is not set
    """
    api_key = os.getenv("FMP_API_KEY")
    if not api_key:
        raise click.ClickException("FMP_API_KEY required. Set it in .env")
    return FMPClient(api_key=api_key, base_url=os.getenv("FMP_BASE_URL", DEFAULT_BASE_URL))


def _fmt(value: float | None, suffix: str = "") -> str:
    return "-" if value is None else f"{value:,.2f}{suffix}"


def _nan_to_none(value):
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, dict):
        return {k: _nan_to_none(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_nan_to_none(v) for v in value]
    return value


user_id_option = click.option(
    "--user-id",
    type=int,
    default=lambda: int(os.getenv("FOLIOHUB_USER_ID", "1")),
    show_default="FOLIOHUB_USER_ID or 1",
    help="Owner of the holdings/watchlist.",
)


@click.group()
def cli():
    """FolioHub CLI - portfolio tracking, watchlists and discount hub."""
    pass


@cli.command("init-db")
def init_db():
    """Create or upgrade the database schema."""
    open_database()


@cli.group()
def holdings():
    """Manage portfolio holdings."""
    pass


@holdings.command("list")
@user_id_option
def holdings_list(user_id: int):
    """List holdings."""
    rows = Holding.find_by_user(open_database(), user_id)
    if not rows:
        click.echo("No holdings")
        return
    for holding in rows:
        click.echo(
            f"{holding.symbol:<8} {holding.shares:>12g} @ {_fmt(holding.avg_cost)}"
        )


@holdings.command("add")
@user_id_option
@click.argument("symbol")
@click.argument("shares", type=float)
@click.option("--avg-cost", type=float, default=0.0, help="Average cost per share.")
def holdings_add(user_id: int, symbol: str, shares: float, avg_cost: float):
    """Add SYMBOL or overwrite its share count (0 removes it)."""
    try:
        holding = Holding.upsert(open_database(), user_id, symbol, shares, avg_cost)
    except ActiveModelError as e:
        click.echo(f"✗ {str(e)}", err=True)
        raise SystemExit(1)
    if holding is None:
        click.echo(f"✓ Removed {symbol.strip().upper()} (no shares left)")
        return
    click.echo(f"✓ {holding.symbol}: {holding.shares:g} shares")


@holdings.command("remove")
@user_id_option
@click.argument("symbol")
def holdings_remove(user_id: int, symbol: str):
    """Remove SYMBOL from holdings."""
    if Holding.remove(open_database(), user_id, symbol):
        click.echo(f"✓ Removed {symbol.upper()}")
    else:
        click.echo(f"✗ No holding for {symbol.upper()}", err=True)
        raise SystemExit(1)


@holdings.command("replace")
@user_id_option
@click.argument("items_file", type=click.File("r"))
def holdings_replace(user_id: int, items_file):
    """Replace all holdings with the JSON list in ITEMS_FILE ("-" for stdin).

    Each entry is {"sym": str, "shares": number, "avgCost"?: number}.
    """
    try:
        items = json.load(items_file)
    except ValueError as e:
        click.echo(f"✗ Invalid JSON: {str(e)}", err=True)
        raise SystemExit(1)
    if isinstance(items, dict):
        items = items.get("items")

    try:
        rows = Holding.replace_for_user(open_database(), user_id, items)
    except ActiveModelError as e:
        click.echo(f"✗ {str(e)}", err=True)
        raise SystemExit(1)
    click.echo(f"✓ {len(rows)} holdings: {', '.join(h.symbol for h in rows) or '-'}")


@holdings.command("summary")
@user_id_option
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON.")
def holdings_summary(user_id: int, as_json: bool):
    """Value, cost basis, returns and today's change of the holdings."""
    items = [h.as_series_item() for h in Holding.find_by_user(open_database(), user_id)]
    if not items:
        click.echo("No holdings")
        return

    summary = build_account_summary(make_client(), items)
    if as_json:
        click.echo(json.dumps(summary))
        return

    account, daily = summary["account"], summary["daily"]
    for p in account["positions"]:
        click.echo(
            f"{p['symbol']:<8} {p['shares']:>10g} x {_fmt(p['price']):>10}"
            f" = {_fmt(p['value']):>12}  return {_fmt(p['ret_abs'])}"
            f" ({_fmt(p['ret_pct'], '%')})  alloc {_fmt(p['alloc'], '%')}"
        )
    click.echo(f"Total:  {_fmt(account['total_value'])}  cost {_fmt(account['total_cost'])}")
    click.echo(
        f"All-time: {_fmt(account['all_time_abs'])} ({_fmt(account['all_time_pct'], '%')})"
    )
    click.echo(f"Today:  {_fmt(daily['change_abs'])} ({_fmt(daily['change_pct'], '%')})")


@cli.group()
def watchlist():
    """Manage the watchlist."""
    pass


@watchlist.command("list")
@user_id_option
def watchlist_list(user_id: int):
    """List watched symbols."""
    items = WatchlistItem.find_by_user(open_database(), user_id)
    if not items:
        click.echo("Watchlist is empty")
        return
    for item in items:
        click.echo(item.symbol)


@watchlist.command("add")
@user_id_option
@click.argument("symbol")
def watchlist_add(user_id: int, symbol: str):
    """Watch SYMBOL."""
    try:
        item = WatchlistItem.add(open_database(), user_id, symbol)
    except ActiveModelError as e:
        click.echo(f"✗ {str(e)}", err=True)
        raise SystemExit(1)
    click.echo(f"✓ Watching {item.symbol}")


@watchlist.command("remove")
@user_id_option
@click.argument("symbol")
def watchlist_remove(user_id: int, symbol: str):
    """Stop watching SYMBOL."""
    if WatchlistItem.remove(open_database(), user_id, symbol):
        click.echo(f"✓ Removed {symbol.upper()}")
    else:
        click.echo(f"✗ {symbol.upper()} is not on the watchlist", err=True)
        raise SystemExit(1)


@watchlist.command("replace")
@user_id_option
@click.argument("symbols", nargs=-1)
def watchlist_replace(user_id: int, symbols: tuple[str, ...]):
    """Make the watchlist exactly SYMBOLS (none clears it)."""
    items = WatchlistItem.replace_for_user(open_database(), user_id, list(symbols))
    click.echo(f"✓ Watching {', '.join(i.symbol for i in items) or 'nothing'}")


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
def quote(symbols: tuple[str, ...]):
    """Show live quotes for SYMBOLS."""
    client = make_client()
    try:
        quotes = client.get_quotes(list(symbols))
    except (AuthenticationError, NetworkError, ClientError, APIError) as e:
        click.echo(f"✗ Error: {str(e)}", err=True)
        raise SystemExit(1)

    for symbol, q in quotes.items():
        click.echo(
            f"{symbol:<8} {_fmt(q['price']):>12}  prev {_fmt(q['previous_close'])}"
            f"  {_fmt(q['change_pct'], '%')}"
        )


@cli.command()
@user_id_option
@click.option(
    "--range",
    "range_hint",
    type=click.Choice(["1D", "1W", "1M"], case_sensitive=False),
    default="1D",
    show_default=True,
)
@click.option("--json", "as_json", is_flag=True, help="Print the raw series as JSON.")
def series(user_id: int, range_hint: str, as_json: bool):
    """Portfolio value series for the user's holdings."""
    items = [h.as_series_item() for h in Holding.find_by_user(open_database(), user_id)]
    if not items:
        click.echo("No holdings", err=True)
        return

    result = build_portfolio_series(make_client(), items, range_hint.upper())
    if as_json:
        # NaN is not valid JSON; the chart treats null as a gap
        click.echo(json.dumps(_nan_to_none(result)))
        return

    if not result["times"]:
        click.echo("✗ No market data returned", err=True)
        return

    baseline = result["baseline"]
    last = result["values"][-1]
    click.echo(f"Points: {len(result['times'])}  ({result['times'][0]} -> {result['times'][-1]})")
    click.echo(f"Value:  {_fmt(last)}")
    if baseline:
        click.echo(
            f"Day:    {_fmt(last - baseline)} ({_fmt((last - baseline) / baseline * 100, '%')})"
        )


@cli.command()
@click.option("--symbol", help="Show one symbol's snapshot history.")
@click.option("--no-live", is_flag=True, help="Skip live quote pricing.")
def discounts(symbol: str | None, no_live: bool):
    """Latest discount snapshot per symbol."""
    database = open_database()
    client = None if no_live or not os.getenv("FMP_API_KEY") else make_client()

    if symbol:
        data = get_discount_for_symbol(database, symbol, client)
        rows = data["history"]
    else:
        rows = get_discount_hub_data(database, client)["latest"]

    if not rows:
        click.echo("No discount positions")
        return
    for dto in rows:
        click.echo(
            f"{dto['symbol']:<8} {dto['as_of'][:10]}  price {_fmt(dto['price_used'])}"
            f" ({dto['price_source'] or '-'})  fair {_fmt(dto['fair_value'])}"
            f"  discount {_fmt(dto['discount_pct'], '%')}"
        )


if __name__ == "__main__":
    cli()
