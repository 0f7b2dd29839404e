"""
Unit Tests: PaymentService

Payment codes for single items and checkout bundles, reuse of existing codes,
and payment status reporting.
"""

from decimal import Decimal

import pytest

from enums.order_status import OrderStatus
from exceptions.order import AlreadyOwnedException, BundleNotFoundException, OrderAlreadyPaidException
from repositories.order import OrderRepository
from services.cart import CartService
from services.order_management import OrderManagementService
from services.payment import PaymentService, PromptPayService


async def _checkout(user_id, item_ids, session):
    for item_id in item_ids:
        await CartService.add(user_id, item_id, session)
    return await CartService.checkout(user_id, session)


class TestItemPayment:

    @pytest.mark.asyncio
    async def test_creates_order_and_code(self, session, items, buyer):
        payment = await PaymentService.create_item_payment(buyer.user_id, items["premium"], session)

        assert payment.is_existing is False
        assert payment.total == Decimal("99.00")
        assert payment.currency == "THB"
        assert len(payment.orders) == 1
        assert PromptPayService.decode(payment.payload) == ("0812345678", Decimal("99.00"))
        assert payment.qr_image.startswith("data:image/png;base64,")
        assert len(payment.instructions) == 5
        assert "Pay exactly 99.00 THB" in payment.instructions

        stored = await OrderRepository.get_by_id(payment.orders[0].id, session)
        assert stored.payment_payload == payment.payload

    @pytest.mark.asyncio
    async def test_second_call_reuses_order_and_code(self, session, items, buyer):
        first = await PaymentService.create_item_payment(buyer.user_id, items["premium"], session)
        second = await PaymentService.create_item_payment(buyer.user_id, items["premium"], session)

        assert second.is_existing is True
        assert second.orders[0].id == first.orders[0].id
        assert second.payload == first.payload

    @pytest.mark.asyncio
    async def test_owned_item(self, session, items, buyer, staff_id):
        payment = await PaymentService.create_item_payment(buyer.user_id, items["premium"], session)
        await OrderManagementService.approve(payment.orders[0].id, staff_id, session)

        with pytest.raises(AlreadyOwnedException):
            await PaymentService.create_item_payment(buyer.user_id, items["premium"], session)

    @pytest.mark.asyncio
    async def test_order_status(self, session, items, buyer, other_buyer, staff_id):
        payment = await PaymentService.create_item_payment(buyer.user_id, items["premium"], session)
        order_id = payment.orders[0].id

        status = await PaymentService.get_order_status(buyer.user_id, order_id, session)
        assert status.status == OrderStatus.PENDING
        assert status.is_paid is False

        await OrderManagementService.approve(order_id, staff_id, session)
        status = await PaymentService.get_order_status(buyer.user_id, order_id, session)
        assert status.is_paid is True


class TestBundlePayment:

    @pytest.mark.asyncio
    async def test_single_code_for_bundle_total(self, session, items, tiers, buyer):
        summary = await _checkout(buyer.user_id, [items["guide"], items["course"], items["ebook"]], session)

        payment = await PaymentService.create_bundle_payment(buyer.user_id, summary.bundle_id, session)

        assert payment.bundle_id == summary.bundle_id
        assert payment.total == Decimal("450.00")
        assert len(payment.orders) == 3
        assert PromptPayService.decode(payment.payload)[1] == Decimal("450.00")
        orders = await OrderRepository.get_by_bundle_id(summary.bundle_id, buyer.user_id, session)
        assert {o.payment_payload for o in orders} == {payment.payload}

    @pytest.mark.asyncio
    async def test_code_reused_while_total_unchanged(self, session, items, tiers, buyer):
        summary = await _checkout(buyer.user_id, [items["guide"], items["course"]], session)

        first = await PaymentService.create_bundle_payment(buyer.user_id, summary.bundle_id, session)
        second = await PaymentService.create_bundle_payment(buyer.user_id, summary.bundle_id, session)

        assert second.is_existing is True
        assert second.payload == first.payload

    @pytest.mark.asyncio
    async def test_item_payment_for_bundled_order_returns_bundle_code(self, session, items, tiers, buyer):
        summary = await _checkout(buyer.user_id, [items["guide"], items["course"]], session)
        bundle_payment = await PaymentService.create_bundle_payment(buyer.user_id, summary.bundle_id, session)

        payment = await PaymentService.create_item_payment(buyer.user_id, items["guide"], session)

        assert payment.is_existing is True
        assert payment.bundle_id == summary.bundle_id
        assert payment.payload == bundle_payment.payload
        assert payment.total == Decimal("237.50")
        assert {o.id for o in payment.orders} == set(summary.order_ids)
        orders = await OrderRepository.get_by_bundle_id(summary.bundle_id, buyer.user_id, session)
        assert {PromptPayService.decode(o.payment_payload)[1] for o in orders} == {Decimal("237.50")}

    @pytest.mark.asyncio
    async def test_code_regenerated_when_total_changes(self, session, items, tiers, buyer, staff_id):
        summary = await _checkout(buyer.user_id, [items["guide"], items["course"], items["ebook"]], session)
        first = await PaymentService.create_bundle_payment(buyer.user_id, summary.bundle_id, session)
        rejected = first.orders[0]
        await OrderManagementService.reject(rejected.id, staff_id, "item disputed", session)

        second = await PaymentService.create_bundle_payment(buyer.user_id, summary.bundle_id, session)

        assert second.is_existing is False
        assert second.total == Decimal("450.00") - rejected.final_amount
        assert PromptPayService.decode(second.payload)[1] == second.total
        assert rejected.id not in {o.id for o in second.orders}

    @pytest.mark.asyncio
    async def test_paid_bundle(self, session, items, tiers, buyer, staff_id):
        summary = await _checkout(buyer.user_id, [items["guide"], items["course"]], session)
        await OrderManagementService.approve_bundle(summary.bundle_id, staff_id, session)

        with pytest.raises(OrderAlreadyPaidException):
            await PaymentService.create_bundle_payment(buyer.user_id, summary.bundle_id, session)

        status = await PaymentService.get_bundle_status(buyer.user_id, summary.bundle_id, session)
        assert status.is_paid is True
        assert status.status == OrderStatus.PAID
        assert status.total == summary.total

    @pytest.mark.asyncio
    async def test_foreign_bundle(self, session, items, tiers, buyer, other_buyer):
        summary = await _checkout(buyer.user_id, [items["guide"], items["course"]], session)

        with pytest.raises(BundleNotFoundException):
            await PaymentService.create_bundle_payment(other_buyer.user_id, summary.bundle_id, session)
