from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func

from models.base import Base


# A cart entry only records the selection. Prices are re-read from the item
# every time the cart is priced, so nothing about the price is stored here.
class CartEntry(Base):
    __tablename__ = "cart_entries"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False)
    item_id = Column(Integer, ForeignKey('items.id', ondelete="CASCADE"), nullable=False)
    added_at = Column(DateTime, nullable=False, default=func.now())

    __table_args__ = (
        UniqueConstraint('user_id', 'item_id', name='uq_cart_entry_user_item'),
    )


class CartEntryDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    item_id: int | None = None
    added_at: datetime | None = None


class CartLineDTO(BaseModel):
    """Cart entry joined with the live item it points at."""
    cart_entry_id: int
    item_id: int
    title: str
    price: Decimal
    creator_id: int | None = None
    added_at: datetime | None = None


class CartSummaryDTO(BaseModel):
    item_count: int = 0
    subtotal: Decimal = Decimal("0.00")
    discount_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    is_bundle: bool = False


class CartSnapshotDTO(BaseModel):
    lines: list[CartLineDTO] = []
    summary: CartSummaryDTO = CartSummaryDTO()

    @property
    def item_ids(self) -> list[int]:
        return [line.item_id for line in self.lines]


class CartAddResultDTO(BaseModel):
    added: bool
    already_in_cart: bool = False
    cart_count: int = 0
