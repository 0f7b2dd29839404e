"""
Item-related exceptions.
"""

from .base import MarketplaceException, NotFoundException, ConflictException, ValidationException


class ItemException(MarketplaceException):
    """Base exception for item-related errors."""
    pass


class ItemNotFoundException(ItemException, NotFoundException):
    """Raised when item is not found or not listed."""

    def __init__(self, item_id: int):
        super().__init__(
            f"Item {item_id} not found",
            details={'item_id': item_id}
        )
        self.item_id = item_id


class ItemUnavailableException(ItemException, ConflictException):
    """Raised when an item cannot be added to the cart."""

    def __init__(self, item_id: int, reason: str):
        super().__init__(
            f"Item {item_id} is not available: {reason}",
            details={'item_id': item_id, 'reason': reason}
        )
        self.item_id = item_id
        self.reason = reason


class NotFreeItemException(ItemException, ValidationException):
    """Raised when a free download is requested for a paid item."""

    def __init__(self, item_id: int):
        super().__init__(
            f"Item {item_id} is not free",
            details={'item_id': item_id}
        )
        self.item_id = item_id


class FreeItemOrderException(ItemException, ValidationException):
    """Raised when an order is requested for a free item."""

    def __init__(self, item_id: int):
        super().__init__(
            f"Item {item_id} is free and does not need an order",
            details={'item_id': item_id}
        )
        self.item_id = item_id


class InvalidItemStateException(ItemException, ConflictException):
    """Raised when an item's catalog state cannot move to the requested one."""

    def __init__(self, item_id: int, current_state: str, requested_state: str):
        super().__init__(
            f"Item {item_id} cannot move from '{current_state}' to '{requested_state}'",
            details={'item_id': item_id, 'current_state': current_state, 'requested_state': requested_state}
        )
        self.item_id = item_id
        self.current_state = current_state
        self.requested_state = requested_state
