"""
Order Management Service

Staff-facing side of the order ledger:
- Approving transfers (single order, several orders, whole bundle)
- Rejecting and refunding
- Work queue of pending payments and the paginated purchase listing

Authorization happens before these methods are called; they trust staff_id.

Usage:
    order = await OrderManagementService.approve(42, staff_id=7, session=session,
                                                 reference_note="REF1")
    page = await OrderManagementService.list_purchases(session, OrderFilterType.PAID, limit=20)
"""

import logging
import time

from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from enums.order_filter import OrderFilterType
from enums.order_status import OrderStatus
from exceptions.base import MarketplaceException
from exceptions.order import (
    ApprovalFailedException,
    BundleNotFoundException,
    MissingReasonException,
    OrderAlreadyPaidException,
)
from models.order import OrderDTO, OrderDetailsDTO, PageDTO
from repositories.order import OrderRepository
from services.order import OrderService
from utils.order_filters import get_status_filter_for_filter_type
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class OrderManagementService:
    """Approval workflow and staff listings."""

    @staticmethod
    def default_reference() -> str:
        return f"ADMIN_APPROVED_{int(time.time() * 1000)}"

    @staticmethod
    @TransactionManager.with_retry()
    async def approve(order_id: int, staff_id: int, session: AsyncSession | Session,
                      reference_note: str | None = None) -> OrderDTO:
        """
        Confirm the bank transfer for one order.

        Runs mark_paid in its own transaction. On any failure the transaction is
        rolled back and the order stays pending. Domain errors (not found,
        already paid) are passed through; database failures become
        ApprovalFailedException, which the caller may retry. Lost connections
        are retried here first with exponential backoff.
        """
        reference = reference_note or OrderManagementService.default_reference()
        try:
            async with TransactionManager.transaction(session):
                order = await OrderService.mark_paid(order_id, reference, staff_id, session)
        except (MarketplaceException, OperationalError):
            raise
        except SQLAlchemyError as e:
            logger.error(f"Approval of order {order_id} failed: {e}", exc_info=True)
            raise ApprovalFailedException(order_id, str(e)) from e
        logger.info(f"✅ Order {order_id} approved by staff {staff_id} (reference: {reference})")
        return order

    @staticmethod
    @TransactionManager.with_retry()
    async def approve_many(order_ids: list[int], staff_id: int, session: AsyncSession | Session,
                           reference_note: str | None = None) -> list[OrderDTO]:
        """
        Approve several orders as one unit: either all become paid or none do.
        """
        reference = reference_note or OrderManagementService.default_reference()
        approved = []
        current_id = None
        try:
            async with TransactionManager.transaction(session):
                for current_id in order_ids:
                    approved.append(await OrderService.mark_paid(current_id, reference, staff_id, session))
        except (MarketplaceException, OperationalError):
            raise
        except SQLAlchemyError as e:
            logger.error(f"Batch approval failed at order {current_id}: {e}", exc_info=True)
            raise ApprovalFailedException(current_id, str(e)) from e
        logger.info(f"✅ {len(approved)} orders approved by staff {staff_id} (reference: {reference})")
        return approved

    @staticmethod
    async def approve_bundle(bundle_id: str, staff_id: int, session: AsyncSession | Session,
                             reference_note: str | None = None) -> list[OrderDTO]:
        """Approve every pending order of a checkout bundle."""
        orders = await OrderRepository.get_by_bundle_id(bundle_id, None, session)
        if not orders:
            raise BundleNotFoundException(bundle_id)
        pending_ids = [o.id for o in orders if o.status == OrderStatus.PENDING]
        if not pending_ids:
            paid = next((o for o in orders if o.status == OrderStatus.PAID), None)
            if paid is not None:
                raise OrderAlreadyPaidException(paid.id, bundle_id)
            raise BundleNotFoundException(bundle_id)
        return await OrderManagementService.approve_many(pending_ids, staff_id, session, reference_note)

    @staticmethod
    @TransactionManager.with_retry()
    async def reject(order_id: int, staff_id: int, reason: str, session: AsyncSession | Session) -> OrderDTO:
        """Reject a pending payment. A non-empty reason is required."""
        if reason is None or not reason.strip():
            raise MissingReasonException(order_id)
        async with TransactionManager.transaction(session):
            order = await OrderService.mark_failed(order_id, reason.strip(), staff_id, session)
        logger.info(f"❌ Order {order_id} rejected by staff {staff_id}")
        return order

    @staticmethod
    @TransactionManager.with_retry()
    async def refund(order_id: int, staff_id: int, session: AsyncSession | Session) -> OrderDTO:
        async with TransactionManager.transaction(session):
            order = await OrderService.mark_refunded(order_id, staff_id, session)
        logger.info(f"↩️ Order {order_id} refunded by staff {staff_id}")
        return order

    @staticmethod
    async def list_pending_payments(session: AsyncSession | Session) -> list[OrderDetailsDTO]:
        """All orders waiting for payment confirmation, newest first, with buyer and item."""
        return await OrderRepository.get_details_by_status([OrderStatus.PENDING], None, 0, session)

    @staticmethod
    async def list_purchases(session: AsyncSession | Session,
                             filter_type: OrderFilterType | int | None = OrderFilterType.ALL,
                             limit: int | None = None,
                             offset: int = 0) -> PageDTO:
        """
        Paginated purchase listing for staff.

        Args:
            session: Database session
            filter_type: OrderFilterType (None = pending work queue)
            limit: Page size, defaults to config.PAGE_ENTRIES, capped at config.MAX_PAGE_SIZE
            offset: Rows to skip

        Returns:
            PageDTO with the total count for the filter and the requested page
        """
        limit = config.PAGE_ENTRIES if limit is None else max(1, min(limit, config.MAX_PAGE_SIZE))
        offset = max(0, offset)
        statuses = get_status_filter_for_filter_type(filter_type)
        total = await OrderRepository.count_by_status(statuses, session)
        items = await OrderRepository.get_details_by_status(statuses, limit, offset, session)
        return PageDTO(total=total, limit=limit, offset=offset, items=items)
