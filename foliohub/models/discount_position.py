"""DiscountPosition model class

One position extracted from a valuation ("FTV") article. Each article that
mentions a symbol adds a new snapshot row; the discount hub groups them.

Attributes:
- id: Auto-increment primary key
- article_id: Source article identifier
- article_title / article_date: Denormalized article metadata
- symbol: Ticker
- name, recommendation, allocation, notes: Article fields
- entry_date, entry_price, current_price, return_pct: Position performance
- fair_value, stop_price: Valuation targets
- as_of_date: Date the snapshot describes (ISO-8601)
- created_at / updated_at: Row timestamps
"""

from foliohub.database import Database
from foliohub.models.active_model import ActiveModel, ActiveModelError


class DiscountPosition(ActiveModel):
    table_name = "discount_positions"
    primary_key = "id"
    primary_key_type = "INTEGER"

    _allowed_fields = {
        "id",
        "article_id",
        "article_title",
        "article_date",
        "symbol",
        "name",
        "recommendation",
        "allocation",
        "entry_date",
        "entry_price",
        "current_price",
        "return_pct",
        "fair_value",
        "stop_price",
        "notes",
        "as_of_date",
        "created_at",
        "updated_at",
    }

    def __init__(self, database: Database, **kwargs):
        for field in self._allowed_fields - {"id", "created_at", "updated_at"}:
            kwargs.setdefault(field, None)
        super().__init__(database, **kwargs)

    def __repr__(self):
        return (
            f"DiscountPosition(symbol={self.symbol}, article_id={self.article_id}, "
            f"as_of_date={self.as_of_date})"
        )

    def _before_save(self):
        if isinstance(self.symbol, str):
            self.symbol = self.symbol.strip().upper()
        self.validate()

    def validate(self):
        errors = []
        if not self.article_id:
            errors.append("article_id is required")
        if not self.symbol:
            errors.append("symbol is required")
        for field in ("entry_price", "current_price", "fair_value", "stop_price"):
            value = getattr(self, field)
            if value is not None and value < 0:
                errors.append(f"{field} must be >= 0, but got {value}")
        if errors:
            raise ActiveModelError(f"Validation failed: {', '.join(errors)}")

    @classmethod
    def recent(
        cls, database: Database, limit: int = 500, symbol: str | None = None
    ) -> list["DiscountPosition"]:
        """Newest rows first, optionally restricted to one symbol."""
        criteria = {}
        if symbol:
            criteria["symbol"] = symbol.strip().upper()
        return cls.where(
            database, **criteria, _order_by="created_at DESC, id DESC", _limit=limit
        )
