"""
Tests for the order state machine and the staff listing filters.
"""

import pytest

from enums.order_filter import OrderFilterType
from enums.order_status import OrderStatus
from exceptions.order import InvalidOrderStateException
from utils.order_filters import get_status_filter_for_filter_type
from utils.order_state_machine import OrderStateMachine


class TestOrderStateMachine:

    @pytest.mark.parametrize("from_status,to_status", [
        (OrderStatus.PENDING, OrderStatus.PAID),
        (OrderStatus.PENDING, OrderStatus.FAILED),
        (OrderStatus.PAID, OrderStatus.REFUNDED),
    ])
    def test_valid_transitions(self, from_status, to_status):
        assert OrderStateMachine.is_valid_transition(from_status, to_status)
        assert OrderStateMachine.requires_admin(from_status, to_status)

    @pytest.mark.parametrize("from_status,to_status", [
        (OrderStatus.PAID, OrderStatus.PENDING),
        (OrderStatus.PAID, OrderStatus.FAILED),
        (OrderStatus.FAILED, OrderStatus.PAID),
        (OrderStatus.REFUNDED, OrderStatus.PAID),
        (OrderStatus.PENDING, OrderStatus.REFUNDED),
    ])
    def test_invalid_transitions(self, from_status, to_status):
        assert not OrderStateMachine.is_valid_transition(from_status, to_status)
        with pytest.raises(InvalidOrderStateException):
            OrderStateMachine.assert_transition(1, from_status, to_status, staff_id=7)

    def test_final_statuses(self):
        assert OrderStateMachine.is_final_status(OrderStatus.FAILED)
        assert OrderStateMachine.is_final_status(OrderStatus.REFUNDED)
        assert not OrderStateMachine.is_final_status(OrderStatus.PENDING)
        assert not OrderStateMachine.is_final_status(OrderStatus.PAID)

    def test_valid_transitions_from_pending(self):
        assert OrderStateMachine.get_valid_transitions(OrderStatus.PENDING) == [OrderStatus.FAILED, OrderStatus.PAID]

    def test_staff_required(self):
        with pytest.raises(InvalidOrderStateException):
            OrderStateMachine.assert_transition(1, OrderStatus.PENDING, OrderStatus.PAID, staff_id=None)

    def test_transition_logged(self, caplog):
        with caplog.at_level("INFO"):
            OrderStateMachine.assert_transition(42, OrderStatus.PENDING, OrderStatus.PAID, staff_id=7)
        assert "ORDER_STATUS_TRANSITION: Order 42 pending -> paid by staff 7" in caplog.text


class TestOrderFilters:

    def test_default_is_work_queue(self):
        assert get_status_filter_for_filter_type(None) == [OrderStatus.PENDING]
        assert get_status_filter_for_filter_type(OrderFilterType.PENDING) == [OrderStatus.PENDING]

    def test_all(self):
        assert get_status_filter_for_filter_type(OrderFilterType.ALL) is None

    def test_groups(self):
        assert get_status_filter_for_filter_type(OrderFilterType.ACTIVE) == [OrderStatus.PENDING, OrderStatus.PAID]
        assert get_status_filter_for_filter_type(OrderFilterType.CLOSED) == \
            [OrderStatus.FAILED, OrderStatus.REFUNDED]

    def test_individual(self):
        assert get_status_filter_for_filter_type(OrderFilterType.PAID) == [OrderStatus.PAID]
        assert get_status_filter_for_filter_type(OrderFilterType.REFUNDED) == [OrderStatus.REFUNDED]

    def test_unknown_falls_back_to_pending(self):
        assert get_status_filter_for_filter_type(99) == [OrderStatus.PENDING]
