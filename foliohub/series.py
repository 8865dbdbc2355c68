"""Intraday portfolio series aligner.

Combines independently fetched per-symbol price bars into one portfolio value
series. All symbols share the union of observed timestamps, and each symbol is
forward-filled onto that axis:

    A: (t1, 10) (t2, 11)          shares 2
    B: (t1, 20)                   shares 1
    axis      t1   t2
    aligned A 10   11
    aligned B 20   20   <- carried forward
    values    40   42

Timestamps are FMP's zero-padded "YYYY-MM-DD HH:MM:SS" strings, so plain string
ordering is chronological ordering.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any

Bar = tuple[str, float]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
PAD_INTERVAL = timedelta(minutes=5)

RANGE_1D = "1D"
RANGE_1W = "1W"
RANGE_1M = "1M"
RANGE_LOOKBACK_DAYS = {RANGE_1W: 7, RANGE_1M: 32}


def union_timestamps(bars_by_symbol: dict[str, list[Bar]]) -> list[str]:
    """Sorted union of every timestamp observed for any symbol."""
    times = set()
    for bars in bars_by_symbol.values():
        times.update(timestamp for timestamp, _ in bars)
    return sorted(times)


def forward_fill(bars: list[Bar], axis: list[str]) -> list[float]:
    """Re-sample one symbol's bars onto axis, carrying the last price forward.

    Points before the symbol's first bar are NaN. If a timestamp appears more
    than once, the last bar for it wins.
    """
    prices = dict(bars)
    aligned = []
    last_known = math.nan
    for timestamp in axis:
        price = prices.get(timestamp)
        if price is not None:
            last_known = price
        aligned.append(last_known)
    return aligned


def portfolio_values(
    holdings: list[dict[str, Any]],
    aligned_by_symbol: dict[str, list[float]],
    length: int,
) -> list[float]:
    """Sum shares * aligned price over holdings at every axis point.

    Holdings whose symbol has no aligned series, or whose aligned price is NaN
    at a point, contribute nothing there.
    """
    values = []
    for i in range(length):
        total = 0.0
        for holding in holdings:
            aligned = aligned_by_symbol.get(holding["symbol"])
            if aligned is None:
                continue
            price = aligned[i]
            if math.isfinite(price):
                total += price * holding["shares"]
        values.append(total)
    return values


def align_series(
    holdings: list[dict[str, Any]], bars_by_symbol: dict[str, list[Bar]]
) -> dict[str, Any]:
    """Build the portfolio value series from per-symbol bars.

    Args:
        holdings: Normalized holdings, each {"symbol": str, "shares": float}
        bars_by_symbol: Upper-case symbol -> ascending (timestamp, price) bars;
            an empty list means the symbol has no data

    Returns:
        {
            "times": [str, ...],                  # ascending union axis
            "values": [float, ...],               # portfolio total per axis point
            "by_symbol_aligned": {sym: [float]},  # only symbols with bars
        }
    """
    axis = union_timestamps(bars_by_symbol)
    if not axis:
        return {"times": [], "values": [], "by_symbol_aligned": {}}

    aligned_by_symbol = {
        symbol: forward_fill(bars, axis)
        for symbol, bars in bars_by_symbol.items()
        if bars
    }

    return {
        "times": axis,
        "values": portfolio_values(holdings, aligned_by_symbol, len(axis)),
        "by_symbol_aligned": aligned_by_symbol,
    }


def parse_timestamp(timestamp: str) -> datetime | None:
    """Parse "YYYY-MM-DD HH:MM:SS" (or ISO-8601); None if unparsable.

    Offsets are converted to naive UTC so all parsed times compare.
    """
    try:
        parsed = datetime.fromisoformat(timestamp.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def pad_single_point(times: list[str], values: list[float]) -> tuple[list[str], list[float]]:
    """Add a second point 5 minutes after a lone point, with the same value.

    Chart consumers need at least two points. Series of any other length are
    returned unchanged. An unparsable lone timestamp is repeated as-is.
    """
    if len(values) != 1:
        return times, values

    start = parse_timestamp(times[0])
    if start is None:
        return [times[0], times[0]], [values[0], values[0]]
    following = (start + PAD_INTERVAL).strftime(TIMESTAMP_FORMAT)
    return [times[0], following], [values[0], values[0]]


def trim_bars_for_range(bars: list[Bar], range_hint: str) -> list[Bar]:
    """Restrict ascending bars to the window a chart range displays.

    1D keeps the latest calendar day present. 1W and 1M keep bars within 7 or
    32 days of the last bar. If the last timestamp cannot be parsed, the bars
    are returned unchanged.
    """
    if not bars:
        return []

    last_timestamp = bars[-1][0]
    if range_hint not in RANGE_LOOKBACK_DAYS:
        latest_day = last_timestamp[:10]
        return [bar for bar in bars if bar[0][:10] == latest_day]

    last = parse_timestamp(last_timestamp)
    if last is None:
        return bars

    cutoff = (last - timedelta(days=RANGE_LOOKBACK_DAYS[range_hint])).strftime(
        TIMESTAMP_FORMAT
    )
    return [bar for bar in bars if bar[0] >= cutoff]


def compute_baseline(
    holdings: list[dict[str, Any]], quotes: dict[str, dict[str, float | None]]
) -> tuple[float, dict[str, float]]:
    """Portfolio value at the previous close.

    A quote's previous close is used when present, otherwise its price;
    symbols without a quote count as 0.

    Returns:
        (portfolio baseline, symbol -> per-symbol baseline for quoted symbols)
    """
    previous_by_symbol = {}
    for symbol, quote in quotes.items():
        previous = quote.get("previous_close")
        if previous is None:
            previous = quote.get("price")
        previous_by_symbol[symbol] = previous if previous is not None else 0.0

    baseline = sum(
        holding["shares"] * previous_by_symbol.get(holding["symbol"], 0.0)
        for holding in holdings
    )
    return baseline, previous_by_symbol
