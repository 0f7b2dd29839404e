"""
Cart-related exceptions.
"""

from .base import MarketplaceException, NotFoundException, ConflictException


class CartException(MarketplaceException):
    """Base exception for cart-related errors."""
    pass


class EmptyCartException(CartException, ConflictException):
    """Raised when checkout finds nothing left to order."""

    def __init__(self, user_id: int):
        super().__init__(
            f"Cart is empty for user {user_id}",
            details={'user_id': user_id}
        )
        self.user_id = user_id


class CartEntryNotFoundException(CartException, NotFoundException):
    """Raised when a cart entry does not exist or belongs to another user."""

    def __init__(self, cart_entry_id: int, user_id: int):
        super().__init__(
            f"Cart entry {cart_entry_id} not found",
            details={'cart_entry_id': cart_entry_id, 'user_id': user_id}
        )
        self.cart_entry_id = cart_entry_id
        self.user_id = user_id


class CartChangedException(CartException, ConflictException):
    """Raised when the cart was modified between snapshot and checkout."""

    def __init__(self, user_id: int, expected: list[int], actual: list[int]):
        super().__init__(
            f"Cart of user {user_id} changed during checkout, please review it and try again",
            details={'user_id': user_id, 'expected': expected, 'actual': actual}
        )
        self.user_id = user_id
        self.expected = expected
        self.actual = actual
