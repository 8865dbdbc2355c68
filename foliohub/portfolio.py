"""Account summary for a user's holdings: value, cost basis, returns and
allocation per position, plus today's change from the quotes' day percentage.
"""

import logging
from typing import Any

from foliohub.data_normalization import normalize_holdings, unique_symbols
from foliohub.market_data import FETCH_ERRORS, FMPClient

logger = logging.getLogger(__name__)

Quotes = dict[str, dict[str, float | None]]


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def compute_account(holdings: list[dict[str, Any]], quotes: Quotes) -> dict[str, Any]:
    """Value every holding at its live price.

    Args:
        holdings: Normalized holdings, [{"symbol", "shares", "avg_cost"}]
        quotes: Normalized quote map, {SYMBOL: {"price", ...}}

    Returns:
        {
            "positions": [{"symbol", "shares", "avg_cost", "price", "value",
                           "cost", "ret_abs", "ret_pct", "alloc"}, ...],
            "total_value", "total_cost", "all_time_abs", "all_time_pct",
        }
        A holding without a quoted price is valued at 0. Percentages are 0
        when their base (cost or total value) is not positive.
    """
    positions = []
    for holding in holdings:
        symbol = holding["symbol"]
        shares = holding["shares"]
        price = (quotes.get(symbol) or {}).get("price") or 0.0
        value = shares * price
        cost = shares * (holding.get("avg_cost") or 0.0)
        positions.append(
            {
                "symbol": symbol,
                "shares": shares,
                "avg_cost": holding.get("avg_cost"),
                "price": price,
                "value": value,
                "cost": cost,
                "ret_abs": value - cost,
                "ret_pct": _pct(value - cost, cost),
            }
        )

    total_value = sum(p["value"] for p in positions)
    total_cost = sum(p["cost"] for p in positions)
    for position in positions:
        position["alloc"] = _pct(position["value"], total_value)

    return {
        "positions": positions,
        "total_value": total_value,
        "total_cost": total_cost,
        "all_time_abs": total_value - total_cost,
        "all_time_pct": _pct(total_value - total_cost, total_cost),
    }


def compute_daily(positions: list[dict[str, Any]], quotes: Quotes) -> dict[str, float]:
    """Today's change, weighting each position's value by its quote's change_pct.

    Returns:
        {"prev_total", "curr_total", "change_abs", "change_pct"}; all 0 when
        the positions are worth nothing.
    """
    total = sum(p["value"] for p in positions)
    if total <= 0:
        return {"prev_total": 0.0, "curr_total": 0.0, "change_abs": 0.0, "change_pct": 0.0}

    delta = 0.0
    for position in positions:
        change_pct = (quotes.get(position["symbol"]) or {}).get("change_pct") or 0.0
        delta += position["value"] * change_pct / 100

    return {
        "prev_total": total - delta,
        "curr_total": total,
        "change_abs": delta,
        "change_pct": delta / total * 100,
    }


def build_account_summary(client: FMPClient, items: Any) -> dict[str, Any]:
    """Quote the holdings and compute the account and daily summaries.

    A failed quote call is logged and every position is valued at 0.
    """
    holdings = normalize_holdings(items)
    symbols = unique_symbols(holdings)
    quotes: Quotes = {}
    if symbols:
        try:
            quotes = client.get_quotes(symbols)
        except FETCH_ERRORS as e:
            logger.warning(f"Quotes unavailable for account summary: {str(e)}")

    account = compute_account(holdings, quotes)
    return {"account": account, "daily": compute_daily(account["positions"], quotes)}
