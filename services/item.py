import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from enums.item_status import ItemStatus
from exceptions.item import ItemNotFoundException, InvalidItemStateException
from models.item import ItemDTO
from repositories.item import ItemRepository
from utils.transaction_manager import TransactionManager


class ItemService:

    @staticmethod
    async def change_status(item_id: int, new_status: ItemStatus, staff_id: int,
                            session: AsyncSession | Session) -> ItemDTO:
        """
        Move an item through catalog moderation.

        pending_review -> active | rejected, active -> deactivated,
        deactivated -> active. Setting the status an item already has is a no-op.

        Raises:
            ItemNotFoundException: No such item
            InvalidItemStateException: Transition not allowed, or the item
                changed state concurrently
        """
        async with TransactionManager.transaction(session):
            item = await ItemRepository.get_by_id(item_id, session)
            if item is None:
                raise ItemNotFoundException(item_id)
            if item.status == new_status:
                return item
            if not item.status.can_transition_to(new_status):
                raise InvalidItemStateException(item_id, item.status.value, new_status.value)

            updated = await ItemRepository.update_status_if(item_id, item.status, new_status, session)
            if updated == 0:
                current = await ItemRepository.get_by_id(item_id, session)
                raise InvalidItemStateException(item_id, current.status.value, new_status.value)
            item = await ItemRepository.get_by_id(item_id, session)

        logging.info(f"📚 Item {item_id} moved to {new_status.value} by staff {staff_id}")
        return item
