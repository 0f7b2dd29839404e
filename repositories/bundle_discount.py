from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.bundle_discount import BundleDiscountTier, BundleDiscountTierDTO


class BundleDiscountRepository:
    """Repository for bundle discount tier operations."""

    @staticmethod
    async def get_active(session: Session | AsyncSession) -> list[BundleDiscountTierDTO]:
        """
        Get all active tiers, sorted by min_items DESC.

        Args:
            session: Database session

        Returns:
            List of BundleDiscountTierDTO, largest threshold first
        """
        stmt = (
            select(BundleDiscountTier)
            .where(BundleDiscountTier.is_active.is_(True))
            .order_by(BundleDiscountTier.min_items.desc())
        )
        result = await session_execute(stmt, session)
        return [BundleDiscountTierDTO.model_validate(tier, from_attributes=True) for tier in result.scalars().all()]

    @staticmethod
    async def get_applicable(item_count: int, session: Session | AsyncSession) -> BundleDiscountTierDTO | None:
        """The active tier with the largest min_items not exceeding item_count."""
        stmt = (
            select(BundleDiscountTier)
            .where(BundleDiscountTier.is_active.is_(True), BundleDiscountTier.min_items <= item_count)
            .order_by(BundleDiscountTier.min_items.desc())
            .limit(1)
        )
        result = await session_execute(stmt, session)
        tier = result.scalar()
        if tier is not None:
            return BundleDiscountTierDTO.model_validate(tier, from_attributes=True)
        return None

    @staticmethod
    async def add(tier_dto: BundleDiscountTierDTO, session: Session | AsyncSession) -> int:
        tier = BundleDiscountTier(**tier_dto.model_dump(exclude_none=True))
        session.add(tier)
        await session_flush(session)
        return tier.id
