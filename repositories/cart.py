from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.item_status import ItemStatus
from models.cart_entry import CartEntry, CartEntryDTO, CartLineDTO
from models.item import Item


class CartRepository:

    @staticmethod
    async def get_entry(user_id: int, item_id: int, session: Session | AsyncSession) -> CartEntryDTO | None:
        stmt = select(CartEntry).where(CartEntry.user_id == user_id, CartEntry.item_id == item_id)
        entry = await session_execute(stmt, session)
        entry = entry.scalar()
        if entry is not None:
            return CartEntryDTO.model_validate(entry, from_attributes=True)
        return None

    @staticmethod
    async def add(user_id: int, item_id: int, session: Session | AsyncSession) -> int:
        entry = CartEntry(user_id=user_id, item_id=item_id)
        session.add(entry)
        await session_flush(session)
        return entry.id

    @staticmethod
    async def delete_by_id(cart_entry_id: int, user_id: int, session: Session | AsyncSession) -> int:
        """Delete the entry only if it belongs to user_id. Returns rows deleted."""
        stmt = delete(CartEntry).where(CartEntry.id == cart_entry_id, CartEntry.user_id == user_id)
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def delete_by_item_ids(user_id: int, item_ids: list[int], session: Session | AsyncSession) -> int:
        if not item_ids:
            return 0
        stmt = delete(CartEntry).where(CartEntry.user_id == user_id, CartEntry.item_id.in_(item_ids))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def clear(user_id: int, session: Session | AsyncSession) -> int:
        stmt = delete(CartEntry).where(CartEntry.user_id == user_id)
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def count(user_id: int, session: Session | AsyncSession) -> int:
        stmt = select(func.count(CartEntry.id)).where(CartEntry.user_id == user_id)
        result = await session_execute(stmt, session)
        return result.scalar() or 0

    @staticmethod
    async def get_lines(user_id: int, session: Session | AsyncSession,
                        for_update: bool = False) -> list[CartLineDTO]:
        """
        Cart entries joined with their items, newest first.

        Entries whose item is no longer active are left out. With for_update the
        entry rows stay locked until the surrounding transaction ends.
        """
        stmt = (
            select(CartEntry, Item)
            .join(Item, Item.id == CartEntry.item_id)
            .where(CartEntry.user_id == user_id, Item.status == ItemStatus.ACTIVE)
            .order_by(CartEntry.added_at.desc(), CartEntry.id.desc())
        )
        if for_update:
            stmt = stmt.with_for_update(of=CartEntry)
        result = await session_execute(stmt, session)
        return [
            CartLineDTO(
                cart_entry_id=entry.id,
                item_id=item.id,
                title=item.title,
                price=item.price,
                creator_id=item.creator_id,
                added_at=entry.added_at,
            )
            for entry, item in result.all()
        ]
