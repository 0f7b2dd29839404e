from enum import IntEnum


class OrderFilterType(IntEnum):
    """
    Filter types for the staff purchase listing.

    Default filter: PENDING (orders waiting for payment confirmation)
    """
    # Predefined filter groups
    PENDING = 1          # Waiting for staff approval (default)
    ALL = 2              # Every order
    ACTIVE = 3           # Pending and paid, i.e. live orders
    CLOSED = 4           # Failed and refunded

    # Individual status filters
    PAID = 5
    FAILED = 6
    REFUNDED = 7
