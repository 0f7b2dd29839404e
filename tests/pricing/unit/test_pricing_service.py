"""
PricingService Unit Tests

Tests the bundle discount calculation and its split across orders.
Uses in-memory SQLite database for testing.

Run with:
    pytest tests/pricing/unit/test_pricing_service.py -v
"""

from decimal import Decimal

import pytest

from models.bundle_discount import BundleDiscountTierDTO
from models.cart_entry import CartLineDTO
from repositories.bundle_discount import BundleDiscountRepository
from services.pricing import PricingService, to_money


def _line(item_id: int, price: str) -> CartLineDTO:
    return CartLineDTO(cart_entry_id=item_id, item_id=item_id, title=f"Item {item_id}", price=Decimal(price))


class TestSummarize:
    """Test PricingService.summarize()"""

    def test_three_items_ten_percent(self):
        tier = BundleDiscountTierDTO(min_items=3, discount_percentage=Decimal("10"))
        summary = PricingService.summarize([Decimal("100"), Decimal("150"), Decimal("250")], tier)

        assert summary.item_count == 3
        assert summary.subtotal == Decimal("500.00")
        assert summary.discount_percentage == Decimal("10")
        assert summary.discount_amount == Decimal("50.00")
        assert summary.total == Decimal("450.00")
        assert summary.is_bundle is True

    def test_single_item_never_discounted(self):
        """Even a misconfigured tier cannot discount a one-item selection"""
        tier = BundleDiscountTierDTO(min_items=2, discount_percentage=Decimal("5"))
        summary = PricingService.summarize([Decimal("99.00")], tier)

        assert summary.discount_amount == Decimal("0.00")
        assert summary.total == Decimal("99.00")
        assert summary.is_bundle is False

    def test_no_tier(self):
        summary = PricingService.summarize([Decimal("10.00"), Decimal("20.00")], None)
        assert summary.discount_percentage == Decimal("0")
        assert summary.total == Decimal("30.00")

    def test_empty_selection(self):
        summary = PricingService.summarize([], None)
        assert summary.item_count == 0
        assert summary.total == Decimal("0.00")

    def test_discount_rounds_half_up(self):
        # 33.33 * 3 = 99.99, 5% = 4.9995 -> 5.00
        tier = BundleDiscountTierDTO(min_items=2, discount_percentage=Decimal("5"))
        summary = PricingService.summarize([Decimal("33.33")] * 3, tier)
        assert summary.discount_amount == Decimal("5.00")
        assert summary.total == Decimal("94.99")


class TestProrateDiscount:
    """Test PricingService.prorate_discount()"""

    def test_shares_follow_price(self):
        shares = PricingService.prorate_discount(
            [Decimal("100.00"), Decimal("150.00"), Decimal("250.00")], Decimal("50.00")
        )
        assert shares == [Decimal("10.00"), Decimal("15.00"), Decimal("25.00")]

    def test_last_share_absorbs_remainder(self):
        shares = PricingService.prorate_discount([Decimal("33.33")] * 3, Decimal("10.00"))
        assert shares == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]
        assert sum(shares) == Decimal("10.00")

    def test_share_never_exceeds_price(self):
        prices = [Decimal("99.99"), Decimal("0.01")]
        shares = PricingService.prorate_discount(prices, Decimal("50.00"))
        assert sum(shares) == Decimal("50.00")
        for price, share in zip(prices, shares):
            assert Decimal("0") <= share <= price

    def test_zero_discount(self):
        assert PricingService.prorate_discount([Decimal("5.00"), Decimal("7.00")], Decimal("0")) == \
            [Decimal("0.00"), Decimal("0.00")]


class TestTierSelection:
    """Test tier lookup against the database"""

    @pytest.mark.asyncio
    async def test_largest_applicable_tier_wins(self, session, tiers):
        await BundleDiscountRepository.add(BundleDiscountTierDTO(min_items=5, discount_percentage=Decimal("15")),
                                           session)
        session.commit()

        tier = await BundleDiscountRepository.get_applicable(4, session)
        assert tier.min_items == 3
        assert tier.discount_percentage == Decimal("10")

        tier = await BundleDiscountRepository.get_applicable(7, session)
        assert tier.min_items == 5

        assert await BundleDiscountRepository.get_applicable(1, session) is None

    @pytest.mark.asyncio
    async def test_inactive_tier_ignored(self, session, tiers):
        await BundleDiscountRepository.add(
            BundleDiscountTierDTO(min_items=4, discount_percentage=Decimal("20"), is_active=False), session
        )
        session.commit()

        tier = await BundleDiscountRepository.get_applicable(4, session)
        assert tier.min_items == 3

    @pytest.mark.asyncio
    async def test_summarize_lines(self, session, tiers):
        lines = [_line(1, "100.00"), _line(2, "150.00"), _line(3, "250.00")]
        summary = await PricingService.summarize_lines(lines, session)
        assert summary.discount_amount == Decimal("50.00")
        assert summary.total == Decimal("450.00")

        summary = await PricingService.summarize_lines(lines[:2], session)
        assert summary.discount_percentage == Decimal("5")
        assert summary.total == to_money("237.50")
