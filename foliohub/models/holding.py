"""Holding model class

This model represents one portfolio position of a user.

Attributes:
- id: Auto-increment primary key
- user_id: Owner of the holding
- symbol: Upper-case ticker (unique per user)
- shares: Share count
- avg_cost: Average cost per share
- created_at: The timestamp of the holding creation
- updated_at: The timestamp of the last holding update
"""

from typing import Any

from foliohub.data_normalization import normalize_holdings
from foliohub.database import Database
from foliohub.models.active_model import ActiveModel, ActiveModelError


class Holding(ActiveModel):
    table_name = "holdings"
    primary_key = "id"
    primary_key_type = "INTEGER"

    _allowed_fields = {
        "id",
        "user_id",
        "symbol",
        "shares",
        "avg_cost",
        "created_at",
        "updated_at",
    }

    def __init__(self, database: Database, **kwargs):
        kwargs.setdefault("avg_cost", 0.0)
        super().__init__(database, **kwargs)

    def __repr__(self):
        return (
            f"Holding(user_id={self.user_id}, symbol={self.symbol}, "
            f"shares={self.shares})"
        )

    def _before_save(self):
        if isinstance(self.symbol, str):
            self.symbol = self.symbol.strip().upper()
        self.validate()

    def validate(self):
        """Validate the holding"""
        errors = []

        if getattr(self, "user_id", None) is None:
            errors.append("user_id is required")

        if not getattr(self, "symbol", None):
            errors.append("symbol is required")

        shares = getattr(self, "shares", None)
        if shares is None:
            errors.append("shares is required")
        elif shares < 0:
            errors.append(f"shares must be >= 0, but got {shares}")

        if self.avg_cost is not None and self.avg_cost < 0:
            errors.append(f"avg_cost must be >= 0, but got {self.avg_cost}")

        if errors:
            raise ActiveModelError(f"Validation failed: {', '.join(errors)}")

    def as_series_item(self) -> dict[str, Any]:
        """Shape used by the portfolio series request body."""
        return {"sym": self.symbol, "shares": self.shares, "avgCost": self.avg_cost}

    @classmethod
    def find_by_user(cls, database: Database, user_id: int) -> list["Holding"]:
        """All holdings of a user, ordered by symbol."""
        return cls.where(database, user_id=user_id, _order_by="symbol ASC")

    @classmethod
    def upsert(
        cls,
        database: Database,
        user_id: int,
        symbol: str,
        shares: float,
        avg_cost: float | None = 0.0,
    ) -> "Holding | None":
        """Create the (user_id, symbol) holding or overwrite its shares and cost.

        Args:
            database: Database instance
            user_id: Owner of the holding
            symbol: Ticker; normalized to upper case
            shares: New share count; 0 or less removes the holding
            avg_cost: New average cost per share

        Returns:
            The saved Holding, or None if the holding was removed

        Raises:
            ActiveModelError: If validation fails
        """
        symbol = (symbol or "").strip().upper()
        if shares is not None and shares <= 0:
            cls.remove(database, user_id, symbol)
            return None

        holding = cls.find_by(database, user_id=user_id, symbol=symbol)
        if holding is None:
            holding = cls(
                database,
                user_id=user_id,
                symbol=symbol,
                shares=shares,
                avg_cost=avg_cost,
            )
        else:
            holding.shares = shares
            holding.avg_cost = avg_cost
        holding.save()
        return holding

    @classmethod
    def replace_for_user(
        cls, database: Database, user_id: int, items: Any
    ) -> list["Holding"]:
        """Replace a user's whole holdings list in one transaction.

        Args:
            database: Database instance
            user_id: Owner of the holdings
            items: [{"sym": str, "shares": number, "avgCost"?: number}, ...].
                Entries without a symbol or with shares <= 0 are dropped; for a
                repeated symbol the last entry wins.

        Returns:
            The user's holdings after the replace, ordered by symbol

        Raises:
            ActiveModelError: If a kept entry fails validation (nothing is written)
        """
        kept: dict[str, Holding] = {}
        for item in normalize_holdings(items):
            if item["shares"] <= 0:
                continue
            kept.pop(item["symbol"], None)
            kept[item["symbol"]] = cls(
                database,
                user_id=user_id,
                symbol=item["symbol"],
                shares=item["shares"],
                avg_cost=item["avg_cost"],
            )
        for holding in kept.values():
            holding.validate()

        placeholders = ", ".join("?" * len(kept))
        with database.transaction() as conn:
            conn.execute(
                f"DELETE FROM {cls.table_name} WHERE user_id = ? "
                f"AND symbol NOT IN ({placeholders})",
                [user_id, *kept],
            )
            for holding in kept.values():
                conn.execute(
                    f"INSERT INTO {cls.table_name} "
                    "(user_id, symbol, shares, avg_cost, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(user_id, symbol) DO UPDATE SET "
                    "shares = excluded.shares, avg_cost = excluded.avg_cost, "
                    "updated_at = excluded.updated_at",
                    (
                        user_id,
                        holding.symbol,
                        holding.shares,
                        holding.avg_cost,
                        holding.created_at,
                        holding.updated_at,
                    ),
                )
        return cls.find_by_user(database, user_id)

    @classmethod
    def remove(cls, database: Database, user_id: int, symbol: str) -> bool:
        """Delete the (user_id, symbol) holding. Returns False if it did not exist."""
        symbol = (symbol or "").strip().upper()
        return cls.delete_where(database, user_id=user_id, symbol=symbol) > 0
