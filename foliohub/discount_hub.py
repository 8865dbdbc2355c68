"""Discount hub: latest valuation snapshot per symbol, with history.

DiscountPosition rows accumulate one snapshot per article. The hub shows the
newest snapshot of each symbol. When quotes are available, each snapshot is
re-priced at the live price.
"""

import logging
from datetime import datetime
from typing import Any

from foliohub.database import Database
from foliohub.market_data import FETCH_ERRORS, FMPClient
from foliohub.models.discount_position import DiscountPosition
from foliohub.series import parse_timestamp

logger = logging.getLogger(__name__)

HUB_ROW_LIMIT = 500
SYMBOL_ROW_LIMIT = 50


def _pct_change(new: float | None, base: float | None) -> float | None:
    if not new or not base:
        return None
    return (new - base) / base * 100


def discount_pct(fair_value: float | None, price: float | None) -> float | None:
    """Percent the price sits below fair value (negative when above)."""
    return _pct_change(fair_value, price)


def resolve_as_of(row: dict[str, Any]) -> tuple[datetime, datetime]:
    """When a snapshot applies, plus its creation time for tie-breaking.

    The as-of date is the first parseable of as_of_date, article_date and
    created_at. If none parses, both times fall back to now.
    """
    created = parse_timestamp(row.get("created_at") or "")
    for candidate in (row.get("as_of_date"), row.get("article_date"), row.get("created_at")):
        parsed = parse_timestamp(candidate) if isinstance(candidate, str) else None
        if parsed is not None:
            return parsed, created or parsed

    now = datetime.utcnow()
    return now, created or now


def _keyed_dto(row: dict[str, Any]) -> tuple[tuple[datetime, datetime], dict[str, Any]]:
    """The display DTO of a row together with the (as_of, created) times it shows."""
    current_price = row.get("current_price")
    as_of, created = resolve_as_of(row)
    dto = {
        "id": row.get("id"),
        "symbol": (row.get("symbol") or "").strip().upper(),
        "name": row.get("name"),
        "recommendation": row.get("recommendation"),
        "allocation": row.get("allocation"),
        "entry_date": row.get("entry_date"),
        "entry_price": row.get("entry_price"),
        "current_price": current_price,
        "return_pct": row.get("return_pct"),
        "fair_value": row.get("fair_value"),
        "stop_price": row.get("stop_price"),
        "notes": row.get("notes"),
        "as_of": as_of.isoformat(),
        "article_id": row.get("article_id"),
        "article_title": row.get("article_title"),
        "article_date": row.get("article_date"),
        "created_at": created.isoformat(),
        "live_price": None,
        "live_return_pct": None,
        "price_used": current_price,
        "price_source": "article" if current_price is not None else None,
        "discount_pct": discount_pct(row.get("fair_value"), current_price),
    }
    return (as_of, created), dto


def to_dto(row: dict[str, Any]) -> dict[str, Any]:
    """Shape one discount_positions row for display, priced at the article price."""
    return _keyed_dto(row)[1]


def build_discount_dtos(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Group snapshots by symbol.

    Args:
        rows: discount_positions rows as dicts, any order

    Returns:
        {
            "latest": [dto, ...],            # newest snapshot per symbol, newest first
            "history": {symbol: [dto, ...]}, # every snapshot, newest first
        }
        Snapshots order by as-of time, then creation time. Rows without a
        symbol are ignored.
    """
    grouped: dict[str, list[tuple[tuple[datetime, datetime], dict[str, Any]]]] = {}
    for row in rows:
        key, dto = _keyed_dto(row)
        if not dto["symbol"]:
            continue
        grouped.setdefault(dto["symbol"], []).append((key, dto))

    history = {}
    heads = []
    for symbol, entries in grouped.items():
        entries.sort(key=lambda entry: entry[0], reverse=True)
        history[symbol] = [dto for _, dto in entries]
        heads.append(entries[0])

    heads.sort(key=lambda entry: entry[0][0], reverse=True)
    return {"latest": [dto for _, dto in heads], "history": history}


def apply_live_price(dto: dict[str, Any], live_price: float | None) -> dict[str, Any]:
    """Re-price a DTO in place at live_price; None leaves it untouched."""
    if live_price is None:
        return dto
    dto["live_price"] = live_price
    dto["price_used"] = live_price
    dto["price_source"] = "live"
    dto["live_return_pct"] = _pct_change(live_price, dto.get("entry_price"))
    recomputed = discount_pct(dto.get("fair_value"), live_price)
    if recomputed is not None:
        dto["discount_pct"] = recomputed
    return dto


def attach_live_quotes(data: dict[str, Any], client: FMPClient | None) -> dict[str, Any]:
    """Best-effort live pricing of every latest and history DTO."""
    symbols = sorted({dto["symbol"] for dto in data["latest"] if dto["symbol"]})
    if client is None or not symbols:
        return data

    try:
        quotes = client.get_quotes(symbols)
    except FETCH_ERRORS as e:
        logger.warning(f"Failed to attach live quotes to discount hub data: {str(e)}")
        return data

    for dto in data["latest"]:
        apply_live_price(dto, quotes.get(dto["symbol"], {}).get("price"))
    for symbol, dtos in data["history"].items():
        price = quotes.get(symbol, {}).get("price")
        for dto in dtos:
            apply_live_price(dto, price)
    return data


def get_discount_hub_data(
    database: Database, client: FMPClient | None = None, limit: int = HUB_ROW_LIMIT
) -> dict[str, Any]:
    """Latest snapshot per symbol across the newest `limit` rows."""
    try:
        rows = [p.to_dict() for p in DiscountPosition.recent(database, limit=limit)]
        return attach_live_quotes(build_discount_dtos(rows), client)
    except Exception as e:
        logger.error(f"Failed to load discount hub data: {str(e)}", exc_info=True)
        return {"latest": [], "history": {}}


def get_discount_for_symbol(
    database: Database, symbol: str, client: FMPClient | None = None
) -> dict[str, Any]:
    """Latest snapshot and history for one symbol.

    Returns:
        {"latest": dto | None, "history": [dto, ...]}
    """
    symbol = (symbol or "").strip().upper()
    if not symbol:
        return {"latest": None, "history": []}

    try:
        rows = [
            p.to_dict()
            for p in DiscountPosition.recent(database, limit=SYMBOL_ROW_LIMIT, symbol=symbol)
        ]
        data = attach_live_quotes(build_discount_dtos(rows), client)
        latest = next((dto for dto in data["latest"] if dto["symbol"] == symbol), None)
        return {"latest": latest, "history": data["history"].get(symbol, [])}
    except Exception as e:
        logger.error(
            f"Failed to load discount data for symbol {symbol}: {str(e)}", exc_info=True
        )
        return {"latest": None, "history": []}
