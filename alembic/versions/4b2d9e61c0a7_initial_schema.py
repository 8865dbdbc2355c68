"""Initial schema: holdings, watchlist items, discount positions

Revision ID: 4b2d9e61c0a7
Revises:
Create Date: 2025-11-23 15:42:53.118204

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4b2d9e61c0a7"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    # Table: holdings
    op.create_table(
        "holdings",
        sa.Column(
            "id", sa.Integer(), nullable=False, primary_key=True, autoincrement=True
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("symbol", sa.Text(), nullable=False),
        sa.Column("shares", sa.REAL(), nullable=False),
        sa.Column("avg_cost", sa.REAL(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint("shares >= 0", name="check_holdings_shares_non_negative"),
        sa.UniqueConstraint("user_id", "symbol", name="uq_holdings_user_symbol"),
    )
    op.create_index("ix_holdings_user_id", "holdings", ["user_id"])

    # Table: watchlist_items
    op.create_table(
        "watchlist_items",
        sa.Column(
            "id", sa.Integer(), nullable=False, primary_key=True, autoincrement=True
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("symbol", sa.Text(), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.UniqueConstraint("user_id", "symbol", name="uq_watchlist_items_user_symbol"),
    )
    op.create_index("ix_watchlist_items_user_id", "watchlist_items", ["user_id"])

    # Table: discount_positions
    op.create_table(
        "discount_positions",
        sa.Column(
            "id", sa.Integer(), nullable=False, primary_key=True, autoincrement=True
        ),
        sa.Column("article_id", sa.Text(), nullable=False),
        sa.Column("article_title", sa.Text(), nullable=True),
        sa.Column("article_date", sa.Text(), nullable=True),
        sa.Column("symbol", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("recommendation", sa.Text(), nullable=True),
        sa.Column("allocation", sa.REAL(), nullable=True),
        sa.Column("entry_date", sa.Text(), nullable=True),
        sa.Column("entry_price", sa.REAL(), nullable=True),
        sa.Column("current_price", sa.REAL(), nullable=True),
        sa.Column("return_pct", sa.REAL(), nullable=True),
        sa.Column("fair_value", sa.REAL(), nullable=True),
        sa.Column("stop_price", sa.REAL(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("as_of_date", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )
    op.create_index(
        "ix_discount_positions_symbol_created_at",
        "discount_positions",
        ["symbol", "created_at"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_discount_positions_symbol_created_at", table_name="discount_positions")
    op.drop_table("discount_positions")
    op.drop_index("ix_watchlist_items_user_id", table_name="watchlist_items")
    op.drop_table("watchlist_items")
    op.drop_index("ix_holdings_user_id", table_name="holdings")
    op.drop_table("holdings")
