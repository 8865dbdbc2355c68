"""ActiveRecord-style model classes for portfolio data.

Models provide object-relational mapping with ActiveRecord pattern.
"""

from foliohub.models.active_model import ActiveModel, ActiveModelError
from foliohub.models.discount_position import DiscountPosition
from foliohub.models.holding import Holding
from foliohub.models.watchlist_item import WatchlistItem

__all__ = [
    "ActiveModel",
    "ActiveModelError",
    "DiscountPosition",
    "Holding",
    "WatchlistItem",
]
