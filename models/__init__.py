"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for relationships to work correctly.
"""

from models.base import Base
from models.user import User
from models.item import Item
from models.cart_entry import CartEntry
from models.bundle_discount import BundleDiscountTier
from models.order import Order
from models.download_log import DownloadLogEntry

__all__ = [
    'Base',
    'User',
    'Item',
    'CartEntry',
    'BundleDiscountTier',
    'Order',
    'DownloadLogEntry',
]
