from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.item_status import ItemStatus
from models.item import Item, ItemDTO


class ItemRepository:

    @staticmethod
    async def get_by_id(item_id: int, session: Session | AsyncSession) -> ItemDTO | None:
        stmt = select(Item).where(Item.id == item_id).execution_options(populate_existing=True)
        item = await session_execute(stmt, session)
        item = item.scalar()
        if item is not None:
            return ItemDTO.model_validate(item, from_attributes=True)
        return None

    @staticmethod
    async def get_active_by_id(item_id: int, session: Session | AsyncSession) -> ItemDTO | None:
        stmt = (
            select(Item)
            .where(Item.id == item_id, Item.status == ItemStatus.ACTIVE)
            .execution_options(populate_existing=True)
        )
        item = await session_execute(stmt, session)
        item = item.scalar()
        if item is not None:
            return ItemDTO.model_validate(item, from_attributes=True)
        return None

    @staticmethod
    async def add(item_dto: ItemDTO, session: Session | AsyncSession) -> int:
        item = Item(**item_dto.model_dump(exclude_none=True))
        session.add(item)
        await session_flush(session)
        return item.id

    @staticmethod
    async def increment_purchase_count(item_id: int, session: Session | AsyncSession) -> None:
        # Single UPDATE so concurrent approvals cannot lose an increment
        stmt = update(Item).where(Item.id == item_id).values(purchase_count=Item.purchase_count + 1)
        await session_execute(stmt, session)

    @staticmethod
    async def update_status_if(item_id: int, expected: ItemStatus, new_status: ItemStatus,
                               session: Session | AsyncSession) -> int:
        """Compare-and-swap on status. Returns rows updated (0 when the item moved meanwhile)."""
        stmt = (
            update(Item)
            .where(Item.id == item_id, Item.status == expected)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)
        return result.rowcount
