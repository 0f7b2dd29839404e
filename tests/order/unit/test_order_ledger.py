"""
Unit Tests: OrderService ledger operations

Covers single-item order creation, the one-live-order-per-item rule,
superseding failed and refunded orders, and status transitions.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from enums.download_outcome import DownloadOutcome
from enums.order_status import OrderStatus
from exceptions.item import ItemNotFoundException, FreeItemOrderException
from exceptions.order import (
    AlreadyOwnedException,
    BundleNotFoundException,
    InvalidOrderStateException,
    OrderNotFoundException,
)
from models.download_log import DownloadLogEntryDTO
from models.order import Order
from repositories.download_log import DownloadLogRepository
from repositories.order import OrderRepository
from services.order import OrderService
from services.order_management import OrderManagementService


class TestCreateSingle:

    @pytest.mark.asyncio
    async def test_creates_pending_order_at_item_price(self, session, items, buyer):
        order = await OrderService.create_single(buyer.user_id, items["premium"], session)

        assert order.status == OrderStatus.PENDING
        assert order.bundle_id is None
        assert order.original_price == Decimal("99.00")
        assert order.discount_amount == Decimal("0.00")
        assert order.final_amount == Decimal("99.00")
        assert order.download_count == 0

    @pytest.mark.asyncio
    async def test_repeated_call_returns_same_order(self, session, items, buyer):
        first = await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()
        second = await OrderService.create_single(buyer.user_id, items["premium"], session)

        assert second.id == first.id
        assert len(await OrderRepository.get_by_user_id(buyer.user_id, session)) == 1

    @pytest.mark.asyncio
    async def test_paid_order_blocks_new_one(self, session, items, buyer, staff_id):
        order = await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()
        await OrderManagementService.approve(order.id, staff_id, session)

        with pytest.raises(AlreadyOwnedException) as exc_info:
            await OrderService.create_single(buyer.user_id, items["premium"], session)
        assert exc_info.value.order_id == order.id

    @pytest.mark.asyncio
    async def test_failed_order_superseded(self, session, items, buyer, staff_id):
        order = await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()
        await OrderManagementService.reject(order.id, staff_id, "transfer not found", session)

        retry = await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()

        assert retry.id != order.id
        assert retry.status == OrderStatus.PENDING
        orders = await OrderRepository.get_by_user_and_item(buyer.user_id, items["premium"], session)
        assert [o.id for o in orders] == [retry.id]

    @pytest.mark.asyncio
    async def test_refunded_order_id_not_reused(self, session, items, buyer, staff_id):
        first = await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()
        await OrderManagementService.approve(first.id, staff_id, session, "REF1")
        await DownloadLogRepository.append(DownloadLogEntryDTO(
            order_id=first.id,
            user_id=buyer.user_id,
            item_id=items["premium"],
            outcome=DownloadOutcome.COMPLETED,
        ), session)
        session.commit()
        await OrderManagementService.refund(first.id, staff_id, session)

        second = await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()

        assert second.id != first.id
        assert await DownloadLogRepository.get_by_order_id(second.id, session) == []
        assert len(await DownloadLogRepository.get_by_order_id(first.id, session)) == 1

    @pytest.mark.asyncio
    async def test_free_item_has_no_order(self, session, items, buyer):
        with pytest.raises(FreeItemOrderException):
            await OrderService.create_single(buyer.user_id, items["free"], session)

    @pytest.mark.asyncio
    async def test_unlisted_item(self, session, items, buyer):
        with pytest.raises(ItemNotFoundException):
            await OrderService.create_single(buyer.user_id, items["retired"], session)

    @pytest.mark.asyncio
    async def test_database_rejects_second_live_order(self, session, items, buyer):
        await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()

        session.add(Order(user_id=buyer.user_id, item_id=items["premium"], status=OrderStatus.PENDING,
                          original_price=Decimal("99.00"), final_amount=Decimal("99.00")))
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()


class TestTransitions:

    @pytest.mark.asyncio
    async def test_mark_paid_requires_pending(self, session, items, buyer, staff_id):
        order = await OrderService.create_single(buyer.user_id, items["premium"], session)
        await OrderService.mark_failed(order.id, "no transfer", staff_id, session)

        with pytest.raises(InvalidOrderStateException) as exc_info:
            await OrderService.mark_paid(order.id, "REF", staff_id, session)
        assert exc_info.value.current_state == "failed"

    @pytest.mark.asyncio
    async def test_mark_paid_unknown_order(self, session, items, staff_id):
        with pytest.raises(OrderNotFoundException):
            await OrderService.mark_paid(12345, "REF", staff_id, session)

    @pytest.mark.asyncio
    async def test_mark_failed_is_idempotent(self, session, items, buyer, staff_id):
        order = await OrderService.create_single(buyer.user_id, items["premium"], session)
        first = await OrderService.mark_failed(order.id, "no transfer", staff_id, session)
        second = await OrderService.mark_failed(order.id, "again", staff_id, session)

        assert first.status == second.status == OrderStatus.FAILED
        assert second.failure_reason == "no transfer"

    @pytest.mark.asyncio
    async def test_refund_requires_paid(self, session, items, buyer, staff_id):
        order = await OrderService.create_single(buyer.user_id, items["premium"], session)

        with pytest.raises(InvalidOrderStateException):
            await OrderService.mark_refunded(order.id, staff_id, session)

    @pytest.mark.asyncio
    async def test_get_for_user_hides_foreign_orders(self, session, items, buyer, other_buyer):
        order = await OrderService.create_single(buyer.user_id, items["premium"], session)

        assert (await OrderService.get_for_user(order.id, buyer.user_id, session)).id == order.id
        with pytest.raises(OrderNotFoundException):
            await OrderService.get_for_user(order.id, other_buyer.user_id, session)

    @pytest.mark.asyncio
    async def test_unknown_bundle(self, session, items, buyer):
        with pytest.raises(BundleNotFoundException):
            await OrderService.get_bundle("ORDER-0-0", buyer.user_id, session)
