from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Numeric, Boolean, CheckConstraint

from models.base import Base


class BundleDiscountTier(Base):
    """
    Volume discount applied when several items are bought in one checkout.

    The tier with the largest min_items not exceeding the number of cart items
    applies. Example: 2+ items: 5%, 3+ items: 10%, 5+ items: 15%
    """
    __tablename__ = 'bundle_discounts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    min_items = Column(Integer, nullable=False, unique=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint('min_items >= 2', name='check_min_items_at_least_two'),
        CheckConstraint('discount_percentage > 0 AND discount_percentage < 100',
                        name='check_discount_percentage_range'),
    )


class BundleDiscountTierDTO(BaseModel):
    """DTO for bundle discount tier data transfer."""
    id: int | None = None
    min_items: int
    discount_percentage: Decimal
    is_active: bool = True
