"""
Order Filter Utilities

Maps OrderFilterType enum to lists of OrderStatus for database queries.
"""
from enums.order_filter import OrderFilterType
from enums.order_status import OrderStatus


def get_status_filter_for_filter_type(filter_type: OrderFilterType | int | None) -> list[OrderStatus] | None:
    """
    Converts OrderFilterType to list of OrderStatus values for repository queries.

    Args:
        filter_type: OrderFilterType enum value (or None for default)

    Returns:
        List of OrderStatus to filter by, or None for all orders

    Default behavior:
        None or PENDING → [PENDING], the staff work queue
    """
    if filter_type is None or filter_type == OrderFilterType.PENDING:
        return [OrderStatus.PENDING]

    # Filter groups
    if filter_type == OrderFilterType.ALL:
        return None  # No filter = all orders

    if filter_type == OrderFilterType.ACTIVE:
        return OrderStatus.live()

    if filter_type == OrderFilterType.CLOSED:
        return [OrderStatus.FAILED, OrderStatus.REFUNDED]

    # Individual status filters
    if filter_type == OrderFilterType.PAID:
        return [OrderStatus.PAID]

    if filter_type == OrderFilterType.FAILED:
        return [OrderStatus.FAILED]

    if filter_type == OrderFilterType.REFUNDED:
        return [OrderStatus.REFUNDED]

    # Fallback: default filter
    return [OrderStatus.PENDING]
