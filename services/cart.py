import logging
import time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit, session_rollback
from enums.order_status import OrderStatus
from exceptions.cart import EmptyCartException, CartEntryNotFoundException
from exceptions.item import ItemNotFoundException, ItemUnavailableException
from models.cart_entry import CartAddResultDTO, CartSnapshotDTO
from models.order import BundleSummaryDTO
from repositories.cart import CartRepository
from repositories.item import ItemRepository
from repositories.order import OrderRepository
from services.order import OrderService
from services.pricing import PricingService
from utils.transaction_manager import TransactionManager


class CartService:

    @staticmethod
    async def add(user_id: int, item_id: int, session: AsyncSession | Session) -> CartAddResultDTO:
        """
        Add an item to the user's cart.

        An item that is already in the cart is reported with already_in_cart=True
        rather than as an error.

        Raises:
            ItemNotFoundException: Item does not exist
            ItemUnavailableException: Item is not listed, free, or already owned
        """
        item = await ItemRepository.get_by_id(item_id, session)
        if item is None:
            raise ItemNotFoundException(item_id)
        if not item.is_active:
            raise ItemUnavailableException(item_id, "item is not available for purchase")
        if item.is_free:
            raise ItemUnavailableException(item_id, "free items are downloaded directly")

        live = await OrderRepository.get_live_statuses(user_id, [item_id], session)
        if live.get(item_id) == OrderStatus.PAID:
            raise ItemUnavailableException(item_id, "already purchased")

        if await CartRepository.get_entry(user_id, item_id, session) is not None:
            return CartAddResultDTO(
                added=False,
                already_in_cart=True,
                cart_count=await CartRepository.count(user_id, session),
            )

        try:
            await CartRepository.add(user_id, item_id, session)
            await session_commit(session)
        except IntegrityError:
            # A parallel request inserted the same entry first
            await session_rollback(session)
            logging.info(f"Item {item_id} added to cart of user {user_id} concurrently")
            return CartAddResultDTO(
                added=False,
                already_in_cart=True,
                cart_count=await CartRepository.count(user_id, session),
            )

        count = await CartRepository.count(user_id, session)
        logging.info(f"🛒 Item {item_id} added to cart of user {user_id} ({count} items)")
        return CartAddResultDTO(added=True, cart_count=count)

    @staticmethod
    async def remove(user_id: int, cart_entry_id: int, session: AsyncSession | Session) -> int:
        """Remove one entry owned by the user. Returns the new cart count."""
        deleted = await CartRepository.delete_by_id(cart_entry_id, user_id, session)
        if deleted == 0:
            raise CartEntryNotFoundException(cart_entry_id, user_id)
        await session_commit(session)
        return await CartRepository.count(user_id, session)

    @staticmethod
    async def clear(user_id: int, session: AsyncSession | Session) -> int:
        deleted = await CartRepository.clear(user_id, session)
        await session_commit(session)
        if deleted:
            logging.info(f"🗑️ Cleared {deleted} entries from cart of user {user_id}")
        return deleted

    @staticmethod
    async def count(user_id: int, session: AsyncSession | Session) -> int:
        return await CartRepository.count(user_id, session)

    @staticmethod
    async def snapshot(user_id: int, session: AsyncSession | Session) -> CartSnapshotDTO:
        """
        Current cart contents with live prices and the bundle summary.

        Prices are read from the items now, not remembered from add time.
        Entries whose item was taken off the catalog are left out.
        """
        lines = await CartRepository.get_lines(user_id, session)
        summary = await PricingService.summarize_lines(lines, session)
        return CartSnapshotDTO(lines=lines, summary=summary)

    @staticmethod
    def generate_bundle_id(user_id: int) -> str:
        return f"ORDER-{int(time.time() * 1000)}-{user_id}"

    @staticmethod
    async def checkout(user_id: int, session: AsyncSession | Session) -> BundleSummaryDTO:
        """
        Convert the whole cart into a bundle of pending orders.

        Snapshot, order creation and cart cleanup commit together or not at
        all. This is not retried automatically: a caller that lost the
        connection should re-read the cart before trying again.

        Raises:
            EmptyCartException: Cart empty, or every item already has a live order
            CartChangedException: Cart modified concurrently during checkout
        """
        bundle_id = CartService.generate_bundle_id(user_id)
        async with TransactionManager.transaction(session):
            snapshot = await CartService.snapshot(user_id, session)
            if not snapshot.lines:
                raise EmptyCartException(user_id)
            summary = await OrderService.create_bundle(user_id, snapshot, bundle_id, session)
        return summary
