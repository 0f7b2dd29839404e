import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from models.bundle_discount import BundleDiscountTierDTO
from models.cart_entry import CartLineDTO, CartSummaryDTO
from repositories.bundle_discount import BundleDiscountRepository

CENT = Decimal("0.01")
MIN_BUNDLE_ITEMS = 2


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Round half-up to whole satang/cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class PricingService:
    """Service for bundle discount calculations."""

    @staticmethod
    def summarize(prices: list[Decimal], tier: BundleDiscountTierDTO | None) -> CartSummaryDTO:
        """
        Price a set of items with a bundle discount tier.

        A selection of fewer than two items never gets a discount, whatever
        tiers are configured. The percentage applies to the whole subtotal.

        Example with prices [100, 150, 250] and tier 3→10%:
            subtotal 500.00, discount 50.00, total 450.00
        """
        item_count = len(prices)
        subtotal = to_money(sum(prices, Decimal("0")))
        percentage = Decimal("0")
        if item_count >= MIN_BUNDLE_ITEMS and tier is not None and tier.min_items <= item_count:
            percentage = Decimal(tier.discount_percentage)
        discount_amount = to_money(subtotal * percentage / Decimal(100))
        return CartSummaryDTO(
            item_count=item_count,
            subtotal=subtotal,
            discount_percentage=percentage,
            discount_amount=discount_amount,
            total=subtotal - discount_amount,
            is_bundle=item_count >= MIN_BUNDLE_ITEMS,
        )

    @staticmethod
    async def summarize_lines(lines: list[CartLineDTO], session: Session | AsyncSession) -> CartSummaryDTO:
        tier = None
        if len(lines) >= MIN_BUNDLE_ITEMS:
            tier = await BundleDiscountRepository.get_applicable(len(lines), session)
        summary = PricingService.summarize([line.price for line in lines], tier)
        if tier is not None:
            logging.debug(f"Bundle tier {tier.min_items}+ ({tier.discount_percentage}%) applied to "
                          f"{summary.item_count} items")
        return summary

    @staticmethod
    def prorate_discount(prices: list[Decimal], discount_amount: Decimal) -> list[Decimal]:
        """
        Split a bundle discount across items in proportion to their price.

        Each share is rounded to 0.01; the last item absorbs the rounding
        remainder so the shares always add up to discount_amount exactly.
        """
        subtotal = sum(prices, Decimal("0"))
        if not prices or subtotal == 0 or discount_amount == 0:
            return [Decimal("0.00") for _ in prices]
        shares = [to_money(discount_amount * price / subtotal) for price in prices[:-1]]
        last_share = to_money(discount_amount - sum(shares, Decimal("0")))
        # A share may never exceed its own price (final_amount >= 0)
        if last_share > prices[-1] or last_share < 0:
            excess = last_share - min(max(last_share, Decimal("0")), prices[-1])
            last_share -= excess
            for index in range(len(shares)):
                room = prices[index] - shares[index]
                take = min(room, excess)
                shares[index] += take
                excess -= take
                if excess == 0:
                    break
        return shares + [last_share]
