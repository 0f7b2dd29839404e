from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.download_outcome import DownloadOutcome
from models.download_log import DownloadLogEntry, DownloadLogEntryDTO


class DownloadLogRepository:
    """Append-only access to the download trail. There is no update or delete."""

    @staticmethod
    async def append(entry_dto: DownloadLogEntryDTO, session: Session | AsyncSession) -> int:
        entry = DownloadLogEntry(**entry_dto.model_dump(exclude_none=True))
        session.add(entry)
        await session_flush(session)
        return entry.id

    @staticmethod
    async def get_by_order_id(order_id: int, session: Session | AsyncSession) -> list[DownloadLogEntryDTO]:
        stmt = select(DownloadLogEntry).where(DownloadLogEntry.order_id == order_id).order_by(DownloadLogEntry.id)
        result = await session_execute(stmt, session)
        return [DownloadLogEntryDTO.model_validate(e, from_attributes=True) for e in result.scalars().all()]

    @staticmethod
    async def get_by_user_and_item(user_id: int, item_id: int,
                                   session: Session | AsyncSession) -> list[DownloadLogEntryDTO]:
        stmt = (
            select(DownloadLogEntry)
            .where(DownloadLogEntry.user_id == user_id, DownloadLogEntry.item_id == item_id)
            .order_by(DownloadLogEntry.id)
        )
        result = await session_execute(stmt, session)
        return [DownloadLogEntryDTO.model_validate(e, from_attributes=True) for e in result.scalars().all()]

    @staticmethod
    async def count_completed_free(user_id: int, item_id: int, session: Session | AsyncSession) -> int:
        stmt = select(func.count(DownloadLogEntry.id)).where(
            DownloadLogEntry.user_id == user_id,
            DownloadLogEntry.item_id == item_id,
            DownloadLogEntry.order_id.is_(None),
            DownloadLogEntry.outcome == DownloadOutcome.COMPLETED,
        )
        result = await session_execute(stmt, session)
        return result.scalar() or 0
