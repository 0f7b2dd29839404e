from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from enums.order_status import OrderStatus
from exceptions.cart import EmptyCartException, CartChangedException
from exceptions.item import ItemNotFoundException, FreeItemOrderException
from exceptions.order import (
    OrderNotFoundException,
    BundleNotFoundException,
    AlreadyOwnedException,
    OrderAlreadyPaidException,
    InvalidOrderStateException,
)
from models.cart_entry import CartSnapshotDTO
from models.order import OrderDTO, OrderUpdateDTO, BundleSummaryDTO
from repositories.cart import CartRepository
from repositories.item import ItemRepository
from repositories.order import OrderRepository
from services.pricing import PricingService
from utils.order_state_machine import OrderStateMachine


class OrderService:
    """
    Order ledger.

    Every method runs inside the caller's transaction: rows are flushed, never
    committed here, so a caller can combine several ledger operations into one
    atomic unit (see CartService.checkout and OrderManagementService).
    """

    @staticmethod
    async def create_single(user_id: int, item_id: int, session: AsyncSession | Session) -> OrderDTO:
        """
        Create (or return) the pending order for one item.

        Flow:
        1. A paid order for the pair means the user owns the item → AlreadyOwnedException
        2. A pending order is returned unchanged, so repeated clicks reuse one QR code
        3. Failed or refunded orders are superseded: removed, then a fresh
           pending order is created at the current price

        Args:
            user_id: Buyer
            item_id: Item to buy
            session: Database session

        Returns:
            The pending OrderDTO

        Raises:
            ItemNotFoundException: Item missing or not listed
            FreeItemOrderException: Free items are downloaded without an order
            AlreadyOwnedException: User already paid for the item
        """
        item = await ItemRepository.get_active_by_id(item_id, session)
        if item is None:
            raise ItemNotFoundException(item_id)
        if item.is_free:
            raise FreeItemOrderException(item_id)

        orders = await OrderRepository.get_by_user_and_item(user_id, item_id, session, for_update=True)
        paid = next((o for o in orders if o.status == OrderStatus.PAID), None)
        if paid is not None:
            raise AlreadyOwnedException(user_id, item_id, paid.id)

        pending = next((o for o in orders if o.status == OrderStatus.PENDING), None)
        if pending is not None:
            logging.info(f"Order {pending.id} already pending for user {user_id}, item {item_id} - reusing it")
            return pending

        superseded = [o.id for o in orders]
        if superseded:
            await OrderRepository.delete_by_ids(superseded, session)
            logging.info(f"Superseded orders {superseded} of user {user_id} for item {item_id}")

        order_id = await OrderRepository.create(OrderDTO(
            user_id=user_id,
            item_id=item_id,
            status=OrderStatus.PENDING,
            original_price=item.price,
            discount_amount=0,
            final_amount=item.price,
        ), session)
        logging.info(f"💾 Order {order_id} created for user {user_id}, item {item_id} ({item.price})")
        return await OrderRepository.get_by_id(order_id, session)

    @staticmethod
    async def create_bundle(user_id: int, snapshot: CartSnapshotDTO, bundle_id: str,
                            session: AsyncSession | Session) -> BundleSummaryDTO:
        """
        Turn the user's cart into one pending order per item under bundle_id.

        The cart rows are re-read under lock and must still match the snapshot
        the buyer was shown (same items, same prices), otherwise the checkout is
        rejected instead of silently dropping or adding items.

        Items the user already has a live order for (paid, or pending from an
        earlier checkout) are skipped and their cart entries removed. The bundle
        discount is computed for the remaining items and pro-rated by price.

        Raises:
            CartChangedException: Cart differs from the snapshot
            EmptyCartException: Nothing left to order (no rows are written)
        """
        lines = await CartRepository.get_lines(user_id, session, for_update=True)
        live_prices = sorted((line.item_id, line.price) for line in lines)
        snapshot_prices = sorted((line.item_id, line.price) for line in snapshot.lines)
        if live_prices != snapshot_prices:
            raise CartChangedException(user_id, snapshot.item_ids, [line.item_id for line in lines])

        item_ids = [line.item_id for line in lines]
        live = await OrderRepository.get_live_statuses(user_id, item_ids, session)
        to_order = [line for line in lines if line.item_id not in live]
        skipped = [line.item_id for line in lines if line.item_id in live]
        if not to_order:
            raise EmptyCartException(user_id)

        summary = await PricingService.summarize_lines(to_order, session)
        shares = PricingService.prorate_discount([line.price for line in to_order], summary.discount_amount)

        order_ids = []
        for line, share in zip(to_order, shares):
            # Failed or refunded attempts for the same item are superseded
            previous = await OrderRepository.get_by_user_and_item(user_id, line.item_id, session)
            await OrderRepository.delete_by_ids([o.id for o in previous], session)
            order_id = await OrderRepository.create(OrderDTO(
                bundle_id=bundle_id,
                user_id=user_id,
                item_id=line.item_id,
                status=OrderStatus.PENDING,
                original_price=line.price,
                discount_amount=share,
                final_amount=line.price - share,
            ), session)
            order_ids.append(order_id)

        await CartRepository.delete_by_item_ids(user_id, item_ids, session)

        if skipped:
            logging.info(f"Bundle {bundle_id}: skipped items {skipped} with live orders")
        logging.info(f"💾 Bundle {bundle_id} created for user {user_id}: {len(order_ids)} orders, "
                     f"total {summary.total} (discount {summary.discount_amount})")
        return BundleSummaryDTO(
            bundle_id=bundle_id,
            order_ids=order_ids,
            item_count=summary.item_count,
            subtotal=summary.subtotal,
            discount_percentage=summary.discount_percentage,
            discount_amount=summary.discount_amount,
            total=summary.total,
            skipped_item_ids=skipped,
        )

    @staticmethod
    async def attach_payment(order_ids: list[int], payload: str, session: AsyncSession | Session) -> int:
        """Store the payment payload on the orders that are still pending. Returns rows updated."""
        updated = await OrderRepository.update_if_status(
            order_ids, OrderStatus.PENDING, OrderUpdateDTO(payment_payload=payload), session
        )
        logging.info(f"Payment payload attached to {updated}/{len(order_ids)} orders")
        return updated

    @staticmethod
    async def mark_paid(order_id: int, payment_reference: str, staff_id: int,
                        session: AsyncSession | Session) -> OrderDTO:
        """
        Move a pending order to paid and count the sale.

        The row is locked for the read, and the write is a compare-and-swap on
        status, so of two concurrent approvals exactly one increments the item's
        purchase counter. The loser sees the paid row and gets
        OrderAlreadyPaidException.

        Raises:
            OrderNotFoundException: No such order
            OrderAlreadyPaidException: Order is already paid
            InvalidOrderStateException: Order is failed or refunded
        """
        order = await OrderRepository.get_by_id_for_update(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        if order.status == OrderStatus.PAID:
            raise OrderAlreadyPaidException(order_id, order.bundle_id)
        OrderStateMachine.assert_transition(order_id, order.status, OrderStatus.PAID, staff_id)

        updated = await OrderRepository.update_if_status([order_id], OrderStatus.PENDING, OrderUpdateDTO(
            status=OrderStatus.PAID,
            paid_at=datetime.utcnow(),
            payment_reference=payment_reference,
            processed_by=staff_id,
        ), session)
        if updated == 0:
            current = await OrderRepository.get_by_id(order_id, session)
            if current is not None and current.status == OrderStatus.PAID:
                logging.warning(f"Order {order_id} was approved concurrently - rejecting duplicate approval")
                raise OrderAlreadyPaidException(order_id, current.bundle_id)
            raise InvalidOrderStateException(
                order_id, current.status.value if current else "deleted", OrderStatus.PENDING.value
            )

        await ItemRepository.increment_purchase_count(order.item_id, session)
        logging.info(f"✅ Order {order_id} marked PAID by staff {staff_id}")
        return await OrderRepository.get_by_id(order_id, session)

    @staticmethod
    async def mark_failed(order_id: int, reason: str, staff_id: int, session: AsyncSession | Session) -> OrderDTO:
        """Reject a pending order. Calling it again on a failed order is a no-op."""
        order = await OrderRepository.get_by_id_for_update(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        if order.status == OrderStatus.FAILED:
            return order
        OrderStateMachine.assert_transition(order_id, order.status, OrderStatus.FAILED, staff_id)

        updated = await OrderRepository.update_if_status([order_id], OrderStatus.PENDING, OrderUpdateDTO(
            status=OrderStatus.FAILED,
            failure_reason=reason,
            processed_by=staff_id,
        ), session)
        current = await OrderRepository.get_by_id(order_id, session)
        if updated == 0 and current.status != OrderStatus.FAILED:
            raise InvalidOrderStateException(order_id, current.status.value, OrderStatus.PENDING.value)
        logging.info(f"Order {order_id} marked FAILED by staff {staff_id}")
        return current

    @staticmethod
    async def mark_refunded(order_id: int, staff_id: int, session: AsyncSession | Session) -> OrderDTO:
        """
        Refund a paid order.

        The item's purchase counter is left alone: it counts historical sales.
        """
        order = await OrderRepository.get_by_id_for_update(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        OrderStateMachine.assert_transition(order_id, order.status, OrderStatus.REFUNDED, staff_id)

        updated = await OrderRepository.update_if_status([order_id], OrderStatus.PAID, OrderUpdateDTO(
            status=OrderStatus.REFUNDED,
            refunded_at=datetime.utcnow(),
            processed_by=staff_id,
        ), session)
        current = await OrderRepository.get_by_id(order_id, session)
        if updated == 0:
            raise InvalidOrderStateException(order_id, current.status.value, OrderStatus.PAID.value)
        logging.info(f"Order {order_id} marked REFUNDED by staff {staff_id}")
        return current

    @staticmethod
    async def get_for_user(order_id: int, user_id: int, session: AsyncSession | Session) -> OrderDTO:
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None or order.user_id != user_id:
            raise OrderNotFoundException(order_id)
        return order

    @staticmethod
    async def get_bundle(bundle_id: str, user_id: int, session: AsyncSession | Session,
                         for_update: bool = False) -> list[OrderDTO]:
        orders = await OrderRepository.get_by_bundle_id(bundle_id, user_id, session, for_update=for_update)
        if not orders:
            raise BundleNotFoundException(bundle_id)
        return orders

    @staticmethod
    async def get_latest_for_item(user_id: int, item_id: int, session: AsyncSession | Session) -> OrderDTO | None:
        orders = await OrderRepository.get_by_user_and_item(user_id, item_id, session)
        return orders[0] if orders else None

    @staticmethod
    async def list_for_user(user_id: int, session: AsyncSession | Session) -> list[OrderDTO]:
        return await OrderRepository.get_by_user_id(user_id, session)
