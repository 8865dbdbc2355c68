"""Data normalization layer.

Converts request bodies and FMP API payloads into the plain structures used by
the series aligner and discount hub: holdings, ascending bar lists, weekly
resamples and quote maps.
"""

import math
from datetime import date, datetime, timedelta
from typing import Any


def _to_float(value: Any) -> float | None:
    """Parse a number, returning None for missing, non-numeric or non-finite input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_symbol(symbol: Any) -> str:
    """Upper-case and trim a ticker; non-strings become ""."""
    if not isinstance(symbol, str):
        return ""
    return symbol.strip().upper()


def normalize_holdings(items: Any) -> list[dict[str, Any]]:
    """Normalize a portfolio series request body's "items" list.

    Args:
        items: List of {"sym": str, "shares": number, "avgCost"?: number}

    Returns:
        List of {"symbol", "shares", "avg_cost"} in input order. Duplicate
        symbols are kept, since every holding contributes to the total. Entries
        without a symbol are dropped, and unparsable shares become 0.

    Example:
        [{"sym": " aapl", "shares": "10"}] -> [{"symbol": "AAPL", "shares": 10.0,
        "avg_cost": None}]
    """
    if not isinstance(items, list):
        return []

    holdings = []
    for item in items:
        if not isinstance(item, dict):
            continue
        symbol = normalize_symbol(item.get("sym", item.get("symbol")))
        if not symbol:
            continue
        holdings.append(
            {
                "symbol": symbol,
                "shares": _to_float(item.get("shares")) or 0.0,
                "avg_cost": _to_float(item.get("avgCost", item.get("avg_cost"))),
            }
        )
    return holdings


def unique_symbols(holdings: list[dict[str, Any]]) -> list[str]:
    """Distinct symbols of normalized holdings in first-seen order."""
    return list(dict.fromkeys(h["symbol"] for h in holdings))


def _payload_rows(payload: Any) -> list[Any]:
    # v3 endpoints wrap history in {"historical": [...]}; stable returns a bare list
    if isinstance(payload, dict) and isinstance(payload.get("historical"), list):
        return payload["historical"]
    if isinstance(payload, list):
        return payload
    return []


def normalize_intraday_bars(
    payload: Any, limit: int | None = None
) -> list[tuple[str, float]]:
    """Convert an FMP historical-chart payload to ascending (time, close) bars.

    Args:
        payload: FMP response (list or {"historical": list}) of
            {"date": "YYYY-MM-DD HH:MM:SS", "close": number, ...}
        limit: If positive, keep only the last `limit` bars after sorting

    Returns:
        Bars sorted ascending by timestamp string. Rows without a string
        date or a finite close are dropped.
    """
    bars = []
    for row in _payload_rows(payload):
        if not isinstance(row, dict):
            continue
        timestamp = row.get("date")
        close = _to_float(row.get("close"))
        if not isinstance(timestamp, str) or close is None:
            continue
        bars.append((timestamp, close))

    bars.sort(key=lambda bar: bar[0])

    if limit is not None and limit > 0 and len(bars) > limit:
        return bars[-limit:]
    return bars


def normalize_daily_bars(payload: Any) -> list[dict[str, Any]]:
    """Convert an FMP historical-price-full payload to ascending daily bars.

    Adjusted close is preferred; either close field fills in for the other.

    Returns:
        List of {"date", "adj_close", "close", "volume"} sorted by date
    """
    bars = []
    for row in _payload_rows(payload):
        if not isinstance(row, dict) or not isinstance(row.get("date"), str):
            continue
        adj_close = _to_float(row.get("adjClose"))
        close = _to_float(row.get("close"))
        if adj_close is None and close is None:
            continue
        bars.append(
            {
                "date": row["date"],
                "adj_close": adj_close if adj_close is not None else close,
                "close": close if close is not None else adj_close,
                "volume": _to_float(row.get("volume")),
            }
        )
    bars.sort(key=lambda bar: bar["date"])
    return bars


def _monday_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def to_weekly(daily: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Resample daily bars to Monday-based weeks.

    Each week is represented by its last trading day in the data; volume is
    summed, treating missing volume as 0.

    Returns:
        List of {"date", "close", "volume"} sorted by date
    """
    groups: dict[date, list[dict[str, Any]]] = {}
    for bar in daily:
        try:
            day = datetime.strptime(bar["date"][:10], "%Y-%m-%d").date()
        except (KeyError, TypeError, ValueError):
            continue
        groups.setdefault(_monday_of_week(day), []).append(bar)

    weekly = []
    for bars in groups.values():
        bars = sorted(bars, key=lambda b: b["date"])
        last = bars[-1]
        close = last.get("adj_close")
        if close is None:
            close = last.get("close")
        weekly.append(
            {
                "date": last["date"],
                "close": close,
                "volume": sum(b.get("volume") or 0.0 for b in bars),
            }
        )

    weekly.sort(key=lambda bar: bar["date"])
    return weekly


def normalize_quotes(payload: Any) -> dict[str, dict[str, float | None]]:
    """Convert an FMP quote payload to a symbol-keyed map.

    Returns:
        {"AAPL": {"price": 150.0, "previous_close": 148.0, "change_pct": 1.35}}
        with None for any field FMP omitted. Rows without a symbol are skipped.
    """
    quotes: dict[str, dict[str, float | None]] = {}
    if not isinstance(payload, list):
        return quotes

    for row in payload:
        if not isinstance(row, dict):
            continue
        symbol = normalize_symbol(row.get("symbol"))
        if not symbol:
            continue
        change_pct = _to_float(row.get("changesPercentage"))
        if change_pct is None:
            change_pct = _to_float(row.get("changePercentage"))
        quotes[symbol] = {
            "price": _to_float(row.get("price")),
            "previous_close": _to_float(row.get("previousClose")),
            "change_pct": change_pct,
        }
    return quotes
