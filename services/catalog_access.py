from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from enums.order_status import OrderStatus
from exceptions.item import ItemNotFoundException
from models.item import ItemDTO, ItemViewDTO
from models.order import OrderDTO
from models.user import RequesterDTO
from repositories.item import ItemRepository
from repositories.order import OrderRepository


class CatalogAccessService:
    """Decides which item fields a requester may see."""

    @staticmethod
    def build_view(item: ItemDTO, requester: RequesterDTO | None, purchase: OrderDTO | None) -> ItemViewDTO:
        """
        Redact an item for one requester.

        The storage path never leaves this method. Bonus links are shown to the
        buyer of a paid order, to the item's creator, and, for free items, to
        any logged-in requester. Anonymous requesters see free items as locked.
        """
        is_free = item.is_free
        is_purchased = purchase is not None and purchase.status == OrderStatus.PAID
        is_creator = requester is not None and item.creator_id == requester.user_id
        unlocked = is_purchased or is_creator or (is_free and requester is not None)

        return ItemViewDTO(
            id=item.id,
            title=item.title,
            description=item.description,
            price=item.price,
            creator_id=item.creator_id,
            purchase_count=item.purchase_count or 0,
            is_free=is_free,
            is_purchased=is_purchased or (is_free and requester is not None),
            is_locked=not unlocked,
            purchase_status=purchase.status.value if purchase is not None else None,
            order_id=purchase.id if purchase is not None else None,
            bonus_links=list(item.bonus_links or []) if unlocked else None,
        )

    @staticmethod
    async def get_item_view(item_id: int, requester: RequesterDTO | None,
                            session: Session | AsyncSession) -> ItemViewDTO:
        item = await ItemRepository.get_active_by_id(item_id, session)
        if item is None:
            raise ItemNotFoundException(item_id)
        purchase = None
        if requester is not None:
            orders = await OrderRepository.get_by_user_and_item(requester.user_id, item_id, session)
            purchase = orders[0] if orders else None
        return CatalogAccessService.build_view(item, requester, purchase)
