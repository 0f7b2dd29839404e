"""
Order State Machine for validating order status transitions and maintaining consistency.

This module implements a finite state machine to ensure valid order status transitions
and provide audit logging for all status changes.
"""

import logging
from typing import Dict, List, Optional, Set

from enums.order_status import OrderStatus
from exceptions.order import InvalidOrderStateException

logger = logging.getLogger(__name__)


class OrderStatusTransition:
    """Represents a valid status transition with metadata"""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus, requires_admin: bool = False,
                 description: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.requires_admin = requires_admin
        self.description = description

    def __repr__(self):
        admin_flag = " (Admin)" if self.requires_admin else ""
        return f"{self.from_status.value} -> {self.to_status.value}{admin_flag}"


class OrderStateMachine:
    """
    Finite state machine for order status transitions with validation and audit logging.

    Valid status transitions:
    - PENDING -> PAID (staff confirms the bank transfer)
    - PENDING -> FAILED (staff rejects the payment)
    - PAID -> REFUNDED (staff refunds the buyer)

    PAID and REFUNDED rows never change again. A refunded or failed item is
    bought again through a brand-new order.
    """

    # Define all valid transitions
    VALID_TRANSITIONS: List[OrderStatusTransition] = [
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.PAID,
            requires_admin=True,
            description="Bank transfer confirmed by staff"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.FAILED,
            requires_admin=True,
            description="Payment rejected by staff"
        ),
        OrderStatusTransition(
            OrderStatus.PAID,
            OrderStatus.REFUNDED,
            requires_admin=True,
            description="Payment refunded by staff"
        ),
    ]

    # Build transition map for fast lookup
    _transition_map: Dict[OrderStatus, Set[OrderStatus]] = {}
    _admin_required_transitions: Set[tuple] = set()
    _transition_descriptions: Dict[tuple, str] = {}

    @classmethod
    def _build_transition_map(cls):
        """Build internal transition maps for performance"""
        if cls._transition_map:
            return  # Already built

        for transition in cls.VALID_TRANSITIONS:
            cls._transition_map.setdefault(transition.from_status, set()).add(transition.to_status)
            if transition.requires_admin:
                cls._admin_required_transitions.add((transition.from_status, transition.to_status))
            cls._transition_descriptions[(transition.from_status, transition.to_status)] = transition.description

    @classmethod
    def is_valid_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check if a status transition is valid according to the state machine.

        Args:
            from_status: Current order status
            to_status: Desired new status

        Returns:
            True if transition is valid, False otherwise
        """
        cls._build_transition_map()
        return to_status in cls._transition_map.get(from_status, set())

    @classmethod
    def requires_admin(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        cls._build_transition_map()
        return (from_status, to_status) in cls._admin_required_transitions

    @classmethod
    def get_valid_transitions(cls, from_status: OrderStatus) -> List[OrderStatus]:
        cls._build_transition_map()
        return sorted(cls._transition_map.get(from_status, set()), key=lambda s: s.value)

    @classmethod
    def is_final_status(cls, status: OrderStatus) -> bool:
        """A status is final when no transition leaves it."""
        cls._build_transition_map()
        return not cls._transition_map.get(status)

    @classmethod
    def assert_transition(cls, order_id: int, from_status: OrderStatus, to_status: OrderStatus,
                          staff_id: Optional[int] = None) -> None:
        """
        Validate a status transition and write the audit log line.

        Raises:
            InvalidOrderStateException: transition not allowed, or staff-only without staff_id
        """
        if not cls.is_valid_transition(from_status, to_status):
            logger.error(f"Invalid status transition for order {order_id}: {from_status.value} -> {to_status.value}")
            required = [s.value for s, targets in cls._transition_map.items() if to_status in targets]
            raise InvalidOrderStateException(order_id, from_status.value, " or ".join(required) or "none")

        if cls.requires_admin(from_status, to_status) and staff_id is None:
            logger.error(f"Staff required for transition {from_status.value} -> {to_status.value} on order {order_id}")
            raise InvalidOrderStateException(order_id, from_status.value, "staff action")

        description = cls._transition_descriptions.get((from_status, to_status), "")
        logger.info(f"ORDER_STATUS_TRANSITION: Order {order_id} {from_status.value} -> {to_status.value} "
                    f"by staff {staff_id}: {description}")
