"""WatchlistItem model class

A ticker a user follows without holding it. Unique per (user_id, symbol).
"""

from foliohub.data_normalization import normalize_symbol
from foliohub.database import Database
from foliohub.models.active_model import ActiveModel, ActiveModelError, utc_now_iso


class WatchlistItem(ActiveModel):
    table_name = "watchlist_items"
    primary_key = "id"
    primary_key_type = "INTEGER"

    _allowed_fields = {"id", "user_id", "symbol", "created_at", "updated_at"}

    def __repr__(self):
        return f"WatchlistItem(user_id={self.user_id}, symbol={self.symbol})"

    def _before_save(self):
        if isinstance(getattr(self, "symbol", None), str):
            self.symbol = self.symbol.strip().upper()
        if getattr(self, "user_id", None) is None or not getattr(self, "symbol", None):
            raise ActiveModelError("Validation failed: user_id and symbol are required")

    @classmethod
    def find_by_user(cls, database: Database, user_id: int) -> list["WatchlistItem"]:
        return cls.where(database, user_id=user_id, _order_by="symbol ASC")

    @classmethod
    def replace_for_user(
        cls, database: Database, user_id: int, symbols: list[str]
    ) -> list["WatchlistItem"]:
        """Make the user's watchlist exactly `symbols`, in one transaction.

        Blank symbols are dropped. Symbols already watched keep their row.
        """
        wanted = list(dict.fromkeys(s for s in map(normalize_symbol, symbols) if s))
        now = utc_now_iso()
        placeholders = ", ".join("?" * len(wanted))
        with database.transaction() as conn:
            conn.execute(
                f"DELETE FROM {cls.table_name} WHERE user_id = ? "
                f"AND symbol NOT IN ({placeholders})",
                [user_id, *wanted],
            )
            conn.executemany(
                f"INSERT OR IGNORE INTO {cls.table_name} "
                "(user_id, symbol, created_at, updated_at) VALUES (?, ?, ?, ?)",
                [(user_id, symbol, now, now) for symbol in wanted],
            )
        return cls.find_by_user(database, user_id)

    @classmethod
    def add(cls, database: Database, user_id: int, symbol: str) -> "WatchlistItem":
        """Add symbol to the user's watchlist. Adding an existing symbol is a no-op."""
        symbol = (symbol or "").strip().upper()
        existing = cls.find_by(database, user_id=user_id, symbol=symbol)
        if existing is not None:
            return existing
        item = cls(database, user_id=user_id, symbol=symbol)
        item.save()
        return item

    @classmethod
    def remove(cls, database: Database, user_id: int, symbol: str) -> bool:
        symbol = (symbol or "").strip().upper()
        return cls.delete_where(database, user_id=user_id, symbol=symbol) > 0
