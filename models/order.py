from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint, Index, func, text
from sqlalchemy import Enum as SQLEnum

from enums.order_status import OrderStatus
from models.base import Base


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, unique=True)
    # Links the orders created by one checkout; NULL for single-item purchases
    bundle_id = Column(String(64), nullable=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    item_id = Column(Integer, ForeignKey('items.id'), nullable=False)
    status = Column(SQLEnum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
                    nullable=False, default=OrderStatus.PENDING)

    # Pricing (fixed at order creation)
    original_price = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    final_amount = Column(Numeric(10, 2), nullable=False)

    # Payment
    payment_payload = Column(Text, nullable=True)       # PromptPay EMVCo string the QR encodes
    payment_reference = Column(String, nullable=True)   # Bank reference entered by staff on approval
    processed_by = Column(Integer, nullable=True)       # Staff member who approved/rejected/refunded
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    paid_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    # Fulfillment
    download_count = Column(Integer, nullable=False, default=0)
    last_download_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint('original_price >= 0', name='check_order_original_price_non_negative'),
        CheckConstraint('discount_amount >= 0', name='check_order_discount_non_negative'),
        CheckConstraint('final_amount >= 0', name='check_order_final_amount_non_negative'),
        CheckConstraint('download_count >= 0', name='check_order_download_count_non_negative'),
        Index('ix_orders_user_item_status', 'user_id', 'item_id', 'status'),
        Index('ix_orders_bundle_id', 'bundle_id'),
        # At most one live (pending or paid) order per user and item
        Index('uq_orders_live_user_item', 'user_id', 'item_id', unique=True,
              sqlite_where=text("status IN ('pending', 'paid')"),
              postgresql_where=text("status IN ('pending', 'paid')")),
        # Superseded orders are deleted; their ids must never come back
        {'sqlite_autoincrement': True},
    )


class OrderDTO(BaseModel):
    id: int | None = None
    bundle_id: str | None = None
    user_id: int | None = None
    item_id: int | None = None
    status: OrderStatus | None = None
    original_price: Decimal | None = None
    discount_amount: Decimal | None = None
    final_amount: Decimal | None = None
    payment_payload: str | None = None
    payment_reference: str | None = None
    processed_by: int | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    download_count: int | None = None
    last_download_at: datetime | None = None


class OrderDetailsDTO(OrderDTO):
    """Order joined with item and buyer, used by staff listings."""
    item_title: str | None = None
    user_name: str | None = None
    user_email: str | None = None


class BundleSummaryDTO(BaseModel):
    bundle_id: str
    order_ids: list[int]
    item_count: int
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    total: Decimal
    skipped_item_ids: list[int] = []


class PageDTO(BaseModel):
    total: int
    limit: int
    offset: int
    items: list[OrderDetailsDTO]


class OrderUpdateDTO(BaseModel):
    """
    Partial update of an order row.

    Only fields that were explicitly set are written, each as a bound parameter
    of a single UPDATE statement.
    """
    status: OrderStatus | None = None
    payment_payload: str | None = None
    payment_reference: str | None = None
    processed_by: int | None = None
    failure_reason: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
