"""
Unit Tests: CatalogAccessService

Which item fields each kind of requester gets to see.
"""

from decimal import Decimal

import pytest

from enums.item_status import ItemStatus
from enums.order_status import OrderStatus
from exceptions.item import ItemNotFoundException
from models.item import ItemDTO
from models.order import OrderDTO
from models.user import RequesterDTO
from services.catalog_access import CatalogAccessService
from services.order import OrderService
from services.order_management import OrderManagementService

CREATOR = RequesterDTO(user_id=10, name="Cleo Creator", email="creator@example.com", is_seller=True)
BUYER = RequesterDTO(user_id=20, name="Jane Buyer", email="buyer@example.com")


def _item(price: str = "99.00") -> ItemDTO:
    return ItemDTO(
        id=1,
        title="Premium Pack",
        description="Recipes",
        price=Decimal(price),
        status=ItemStatus.ACTIVE,
        storage_path="items/secret.pdf",
        bonus_links=["https://example.com/bonus"],
        creator_id=CREATOR.user_id,
        purchase_count=3,
    )


def _order(status: OrderStatus) -> OrderDTO:
    return OrderDTO(id=7, user_id=BUYER.user_id, item_id=1, status=status)


class TestBuildView:

    def test_storage_path_never_exposed(self):
        for requester in (None, BUYER, CREATOR):
            view = CatalogAccessService.build_view(_item(), requester, None)
            assert "storage_path" not in view.model_dump()
            assert "items/secret.pdf" not in view.model_dump_json()

    def test_anonymous_sees_locked_item(self):
        view = CatalogAccessService.build_view(_item(), None, None)

        assert view.is_locked is True
        assert view.is_purchased is False
        assert view.bonus_links is None
        assert view.purchase_count == 3

    def test_paid_buyer_unlocked(self):
        view = CatalogAccessService.build_view(_item(), BUYER, _order(OrderStatus.PAID))

        assert view.is_locked is False
        assert view.is_purchased is True
        assert view.purchase_status == "paid"
        assert view.order_id == 7
        assert view.bonus_links == ["https://example.com/bonus"]

    def test_pending_buyer_still_locked(self):
        view = CatalogAccessService.build_view(_item(), BUYER, _order(OrderStatus.PENDING))

        assert view.is_locked is True
        assert view.purchase_status == "pending"
        assert view.bonus_links is None

    def test_creator_sees_own_item(self):
        view = CatalogAccessService.build_view(_item(), CREATOR, None)

        assert view.is_locked is False
        assert view.is_purchased is False
        assert view.bonus_links is not None

    def test_free_item_needs_login(self):
        anonymous = CatalogAccessService.build_view(_item("0.00"), None, None)
        logged_in = CatalogAccessService.build_view(_item("0.00"), BUYER, None)

        assert anonymous.is_free is True
        assert anonymous.is_locked is True
        assert logged_in.is_locked is False
        assert logged_in.is_purchased is True


class TestGetItemView:

    @pytest.mark.asyncio
    async def test_view_follows_purchase(self, session, items, buyer, staff_id):
        view = await CatalogAccessService.get_item_view(items["premium"], buyer, session)
        assert view.is_locked is True
        assert view.purchase_status is None

        order = await OrderService.create_single(buyer.user_id, items["premium"], session)
        session.commit()
        await OrderManagementService.approve(order.id, staff_id, session)

        view = await CatalogAccessService.get_item_view(items["premium"], buyer, session)
        assert view.is_locked is False
        assert view.purchase_count == 1

    @pytest.mark.asyncio
    async def test_unlisted_item_hidden(self, session, items, buyer):
        with pytest.raises(ItemNotFoundException):
            await CatalogAccessService.get_item_view(items["retired"], buyer, session)
