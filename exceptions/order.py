"""
Order-related exceptions.
"""

from .base import MarketplaceException, NotFoundException, ConflictException, ValidationException


class OrderException(MarketplaceException):
    """Base exception for order-related errors."""
    pass


class OrderNotFoundException(OrderException, NotFoundException):
    """Raised when order is not found or not owned by the caller."""

    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} not found",
            details={'order_id': order_id}
        )
        self.order_id = order_id


class BundleNotFoundException(OrderException, NotFoundException):
    """Raised when a checkout bundle has no orders for the caller."""

    def __init__(self, bundle_id: str):
        super().__init__(
            f"Bundle {bundle_id} not found",
            details={'bundle_id': bundle_id}
        )
        self.bundle_id = bundle_id


class AlreadyOwnedException(OrderException, ConflictException):
    """Raised when the user already paid for the item."""

    def __init__(self, user_id: int, item_id: int, order_id: int):
        super().__init__(
            f"User {user_id} already owns item {item_id}",
            details={'user_id': user_id, 'item_id': item_id, 'order_id': order_id}
        )
        self.user_id = user_id
        self.item_id = item_id
        self.order_id = order_id


class OrderAlreadyPaidException(OrderException, ConflictException):
    """Raised when approving (or paying for) an order that is already paid."""

    def __init__(self, order_id: int, bundle_id: str | None = None):
        details = {'order_id': order_id}
        if bundle_id:
            details['bundle_id'] = bundle_id
        super().__init__(f"Order {order_id} is already paid", details=details)
        self.order_id = order_id
        self.bundle_id = bundle_id


class InvalidOrderStateException(OrderException, ConflictException):
    """Raised when order is in invalid state for requested operation."""

    def __init__(self, order_id: int, current_state: str, required_state: str):
        super().__init__(
            f"Order {order_id} is in state '{current_state}', required '{required_state}'",
            details={'order_id': order_id, 'current_state': current_state, 'required_state': required_state}
        )
        self.order_id = order_id
        self.current_state = current_state
        self.required_state = required_state


class MissingReasonException(OrderException, ValidationException):
    """Raised when staff rejects an order without a reason."""

    def __init__(self, order_id: int):
        super().__init__(
            f"A reason is required to reject order {order_id}",
            details={'order_id': order_id}
        )
        self.order_id = order_id


class ApprovalFailedException(OrderException):
    """Raised when approval could not be committed. The order stays pending."""
    status_code = 503
    retryable = True

    def __init__(self, order_id: int, reason: str):
        super().__init__(
            f"Approval of order {order_id} failed, the order is still pending",
            details={'order_id': order_id, 'reason': reason}
        )
        self.order_id = order_id
        self.reason = reason
