"""Portfolio value series for the intraday chart.

Fetches previous-close quotes and per-symbol bars from FMP, then aligns and
sums them with foliohub.series. Upstream failures are never fatal: a missing
baseline becomes 0, and a symbol whose bars cannot be fetched is left out of
the sum. Nothing is retried, since the chart is re-requested anyway.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from foliohub.data_normalization import normalize_holdings, unique_symbols
from foliohub.market_data import FETCH_ERRORS, FMPClient
from foliohub.series import (
    RANGE_1D,
    RANGE_1M,
    RANGE_1W,
    align_series,
    compute_baseline,
    pad_single_point,
    trim_bars_for_range,
)

logger = logging.getLogger(__name__)

# (interval, bars to request) per chart range
RANGE_FETCH_PLAN = {
    RANGE_1D: ("5min", 220),
    RANGE_1W: ("1hour", 320),
    RANGE_1M: ("1hour", 1200),
}
DEFAULT_MAX_WORKERS = 8


def empty_series() -> dict[str, Any]:
    return {"times": [], "values": [], "baseline": 0}


def normalize_range(range_hint: str | None) -> str:
    """Map a requested range to 1D, 1W or 1M; anything unknown is 1D."""
    hint = (range_hint or "").strip().upper()
    return hint if hint in RANGE_FETCH_PLAN else RANGE_1D


def load_bars_for_range(
    client: FMPClient, symbol: str, range_hint: str
) -> list[tuple[str, float]]:
    """Fetch one symbol's bars at the range's interval and trim to its window.

    Raises:
        AuthenticationError, NetworkError, ClientError, APIError
    """
    interval, limit = RANGE_FETCH_PLAN[range_hint]
    bars = client.get_intraday_history(symbol, interval, limit=limit, retry=False)
    return trim_bars_for_range(bars, range_hint)


def fetch_baseline(
    client: FMPClient, holdings: list[dict[str, Any]], symbols: list[str]
) -> tuple[float, dict[str, float]]:
    """Previous-close baseline, or (0, {}) if quotes are unavailable."""
    try:
        quotes = client.get_quotes(symbols, retry=False)
    except FETCH_ERRORS as e:
        logger.warning(f"Baseline quotes unavailable, using 0: {str(e)}")
        return 0, {}
    return compute_baseline(holdings, quotes)


def fetch_bars_by_symbol(
    client: FMPClient,
    symbols: list[str],
    range_hint: str,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[str, list[tuple[str, float]]]:
    """Fetch every symbol's bars concurrently.

    Waits for every fetch to finish. A failed symbol maps to [].
    """
    bars_by_symbol: dict[str, list[tuple[str, float]]] = {}
    if not symbols:
        return bars_by_symbol

    workers = max(1, min(max_workers, len(symbols)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            symbol: executor.submit(load_bars_for_range, client, symbol, range_hint)
            for symbol in symbols
        }
        for symbol, future in futures.items():
            try:
                bars_by_symbol[symbol] = future.result()
            except FETCH_ERRORS as e:
                logger.warning(f"No bars for {symbol}, excluding it: {str(e)}")
                bars_by_symbol[symbol] = []

    fetched = sum(1 for bars in bars_by_symbol.values() if bars)
    logger.info(f"Fetched bars for {fetched}/{len(symbols)} symbols ({range_hint})")
    return bars_by_symbol


def build_portfolio_series(
    client: FMPClient,
    items: Any,
    range_hint: str | None = RANGE_1D,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[str, Any]:
    """Build the portfolio value series for a list of holdings.

    Args:
        client: FMP client
        items: Request body holdings, [{"sym": str, "shares": number, "avgCost"?: number}]
        range_hint: "1D" (5min bars), "1W" or "1M" (1hour bars)
        max_workers: Upper bound on concurrent symbol fetches

    Returns:
        {
            "times": [str, ...],
            "values": [float, ...],
            "baseline": float,
            "by_symbol": {sym: {"values": [float], "baseline": float | None}},
        }
        A lone point is padded to two points 5 minutes apart and then
        "by_symbol" is omitted. No holdings gives empty times/values and
        baseline 0.
    """
    try:
        range_hint = normalize_range(range_hint)
        holdings = normalize_holdings(items)
        symbols = unique_symbols(holdings)
        if not symbols:
            return empty_series()

        logger.info(f"Building {range_hint} series for {len(symbols)} symbols")
        baseline, previous_by_symbol = fetch_baseline(client, holdings, symbols)
        bars_by_symbol = fetch_bars_by_symbol(client, symbols, range_hint, max_workers)
        aligned = align_series(holdings, bars_by_symbol)

        if len(aligned["values"]) == 1:
            times, values = pad_single_point(aligned["times"], aligned["values"])
            return {"times": times, "values": values, "baseline": baseline}

        by_symbol = {}
        for symbol, values in aligned["by_symbol_aligned"].items():
            if any(math.isfinite(value) for value in values):
                by_symbol[symbol] = {
                    "values": values,
                    "baseline": previous_by_symbol.get(symbol),
                }

        return {
            "times": aligned["times"],
            "values": aligned["values"],
            "baseline": baseline,
            "by_symbol": by_symbol,
        }

    except Exception as e:
        logger.error(f"Unexpected error building portfolio series: {str(e)}", exc_info=True)
        return empty_series()
