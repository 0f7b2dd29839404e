from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint, JSON, func
from sqlalchemy import Enum as SQLEnum

from enums.item_status import ItemStatus
from models.base import Base


# Item is a PDF listed in the catalog. A paid order grants its buyer unlimited downloads.
class Item(Base):
    __tablename__ = 'items'

    id = Column(Integer, primary_key=True, unique=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    status = Column(SQLEnum(ItemStatus, values_callable=lambda e: [m.value for m in e]),
                    nullable=False, default=ItemStatus.PENDING_REVIEW)

    # Blob store key of the source PDF, never exposed to clients
    storage_path = Column(String, nullable=False)
    # Bonus content (videos, extra links) unlocked together with the file
    bonus_links = Column(JSON, nullable=False, default=list)

    creator_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    purchase_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint('price >= 0', name='check_item_price_non_negative'),
        CheckConstraint('purchase_count >= 0', name='check_item_purchase_count_non_negative'),
    )


class ItemDTO(BaseModel):
    id: int | None = None
    title: str | None = None
    description: str | None = None
    price: Decimal | None = None
    status: ItemStatus | None = None
    storage_path: str | None = None
    bonus_links: list[str] | None = None
    creator_id: int | None = None
    purchase_count: int | None = None
    created_at: datetime | None = None

    @property
    def is_free(self) -> bool:
        return self.price is not None and self.price == 0

    @property
    def is_active(self) -> bool:
        return self.status == ItemStatus.ACTIVE


class ItemViewDTO(BaseModel):
    """Redacted item as shown to a requester. Never carries the storage path."""
    id: int
    title: str
    description: str | None = None
    price: Decimal
    creator_id: int | None = None
    purchase_count: int = 0
    is_free: bool = False
    is_purchased: bool = False
    is_locked: bool = True
    purchase_status: str | None = None
    order_id: int | None = None
    bonus_links: list[str] | None = None
