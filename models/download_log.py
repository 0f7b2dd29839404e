import asyncio
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, DateTime, Index, func
from sqlalchemy import Enum as SQLEnum

import config
from enums.access_reason import AccessReason
from enums.download_outcome import DownloadOutcome
from enums.order_status import OrderStatus
from models.base import Base


class DownloadLogEntry(Base):
    """
    Append-only record of every download attempt.

    order_id is NULL for free items. It is a plain indexed column rather than a
    foreign key so the trail outlives orders that get superseded on re-purchase.
    """
    __tablename__ = 'download_logs'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, nullable=True)
    user_id = Column(Integer, nullable=False)
    item_id = Column(Integer, nullable=False)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    outcome = Column(SQLEnum(DownloadOutcome, values_callable=lambda e: [m.value for m in e]), nullable=False)
    created_at = Column(DateTime, nullable=False, default=func.now())

    __table_args__ = (
        Index('ix_download_logs_order_id', 'order_id'),
        Index('ix_download_logs_user_item', 'user_id', 'item_id'),
    )


class DownloadLogEntryDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    user_id: int | None = None
    item_id: int | None = None
    ip: str | None = None
    user_agent: str | None = None
    outcome: DownloadOutcome | None = None
    created_at: datetime | None = None


class ClientInfoDTO(BaseModel):
    """Request metadata recorded with each download."""
    ip: str | None = None
    user_agent: str | None = None


class AccessCheckDTO(BaseModel):
    can_download: bool
    reason: AccessReason
    order_id: int | None = None
    status: OrderStatus | None = None
    download_count: int | None = None


class DownloadArtifactDTO(BaseModel):
    """Personalised copy waiting to be streamed. The file is deleted when the download ends."""
    path: Path
    file_name: str
    size: int
    media_type: str = "application/pdf"
    order_id: int | None = None
    item_id: int

    async def iter_chunks(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        chunk_size = chunk_size or config.DOWNLOAD_CHUNK_SIZE
        with open(self.path, "rb") as f:
            while True:
                chunk = await asyncio.to_thread(f.read, chunk_size)
                if not chunk:
                    break
                yield chunk
