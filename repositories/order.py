from datetime import datetime
import logging

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.order_status import OrderStatus
from models.item import Item
from models.order import Order, OrderDTO, OrderDetailsDTO, OrderUpdateDTO
from models.user import User

logger = logging.getLogger(__name__)


class OrderRepository:
    @staticmethod
    async def create(order_dto: OrderDTO, session: Session | AsyncSession) -> int:
        order = Order(**order_dto.model_dump(exclude_none=True))
        session.add(order)
        await session_flush(session)
        return order.id

    @staticmethod
    async def get_by_id(order_id: int, session: Session | AsyncSession) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def get_by_id_for_update(order_id: int, session: Session | AsyncSession) -> OrderDTO | None:
        """Load the order and hold its row lock until the transaction ends."""
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def get_by_user_and_item(user_id: int, item_id: int, session: Session | AsyncSession,
                                   for_update: bool = False) -> list[OrderDTO]:
        """All orders of a user for one item, newest first."""
        stmt = (
            select(Order)
            .where(Order.user_id == user_id, Order.item_id == item_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in result.scalars().all()]

    @staticmethod
    async def get_live_statuses(user_id: int, item_ids: list[int],
                                session: Session | AsyncSession) -> dict[int, OrderStatus]:
        """Map item_id to the status of the user's pending or paid order for it."""
        if not item_ids:
            return {}
        stmt = select(Order.item_id, Order.status).where(
            Order.user_id == user_id,
            Order.item_id.in_(item_ids),
            Order.status.in_(OrderStatus.live()),
        )
        result = await session_execute(stmt, session)
        return {item_id: status for item_id, status in result.all()}

    @staticmethod
    async def get_by_bundle_id(bundle_id: str, user_id: int | None, session: Session | AsyncSession,
                               for_update: bool = False) -> list[OrderDTO]:
        stmt = select(Order).where(Order.bundle_id == bundle_id)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        stmt = stmt.order_by(Order.id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in result.scalars().all()]

    @staticmethod
    async def get_by_user_id(user_id: int, session: Session | AsyncSession) -> list[OrderDTO]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in result.scalars().all()]

    @staticmethod
    async def delete_by_ids(order_ids: list[int], session: Session | AsyncSession) -> int:
        if not order_ids:
            return 0
        stmt = delete(Order).where(Order.id.in_(order_ids))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def update_if_status(order_ids: list[int], expected_status: OrderStatus,
                               order_update: OrderUpdateDTO, session: Session | AsyncSession) -> int:
        """
        Compare-and-swap update: only rows still in expected_status are touched.

        Returns:
            Number of rows updated. Fewer than len(order_ids) means another
            transaction moved some of the orders first.
        """
        values = order_update.model_dump(exclude_unset=True)
        if not order_ids or not values:
            return 0
        stmt = (
            update(Order)
            .where(Order.id.in_(order_ids), Order.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def record_download(order_id: int, downloaded_at: datetime, session: Session | AsyncSession) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(download_count=Order.download_count + 1, last_download_at=downloaded_at)
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)

    @staticmethod
    def _details_query():
        return (
            select(Order, Item.title, User.name, User.email)
            .join(Item, Item.id == Order.item_id)
            .join(User, User.id == Order.user_id)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    def _to_details(row) -> OrderDetailsDTO:
        order, title, name, email = row
        dto = OrderDetailsDTO.model_validate(order, from_attributes=True)
        dto.item_title = title
        dto.user_name = name
        dto.user_email = email
        return dto

    @staticmethod
    async def get_details_by_status(statuses: list[OrderStatus] | None, limit: int, offset: int,
                                    session: Session | AsyncSession) -> list[OrderDetailsDTO]:
        stmt = OrderRepository._details_query()
        if statuses is not None:
            stmt = stmt.where(Order.status.in_(statuses))
        stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset)
        result = await session_execute(stmt, session)
        return [OrderRepository._to_details(row) for row in result.all()]

    @staticmethod
    async def count_by_status(statuses: list[OrderStatus] | None, session: Session | AsyncSession) -> int:
        stmt = select(func.count(Order.id))
        if statuses is not None:
            stmt = stmt.where(Order.status.in_(statuses))
        result = await session_execute(stmt, session)
        return result.scalar() or 0
