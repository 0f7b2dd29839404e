import logging
import re
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from enums.access_reason import AccessReason
from enums.download_outcome import DownloadOutcome
from enums.order_status import OrderStatus
from exceptions.base import AuthenticationRequiredException, ExternalServiceException
from exceptions.download import PaymentIncompleteException, WatermarkFailedException
from exceptions.item import ItemNotFoundException, NotFreeItemException
from exceptions.order import OrderNotFoundException
from models.download_log import AccessCheckDTO, ClientInfoDTO, DownloadArtifactDTO, DownloadLogEntryDTO
from models.item import ItemDTO
from models.user import RequesterDTO
from repositories.download_log import DownloadLogRepository
from repositories.item import ItemRepository
from repositories.order import OrderRepository
from services.order import OrderService
from services.watermark import WatermarkService
from utils.blob_store import BlobStore
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class FulfillmentService:
    """
    Download pipeline for paid and free items.

    Every download produces a fresh watermarked copy in DOWNLOAD_TEMP_DIR which
    only lives for the duration of the `async with` block: it is removed on
    success, on error and when the consumer is cancelled (client disconnect).

    Usage:
        async with FulfillmentService.download(order_id, requester, session, blob_store, client) as artifact:
            async for chunk in artifact.iter_chunks():
                await response.write(chunk)
    """

    @staticmethod
    def _file_name(item: ItemDTO) -> str:
        stem = re.sub(r"[^A-Za-z0-9._-]+", "_", item.title or "").strip("._")
        return f"{stem or f'item-{item.id}'}.pdf"

    @staticmethod
    async def _append_failed(order_id: int | None, item: ItemDTO, requester: RequesterDTO,
                             client: ClientInfoDTO, session: AsyncSession | Session) -> None:
        try:
            async with TransactionManager.transaction(session):
                await DownloadLogRepository.append(DownloadLogEntryDTO(
                    order_id=order_id,
                    user_id=requester.user_id,
                    item_id=item.id,
                    ip=client.ip,
                    user_agent=client.user_agent,
                    outcome=DownloadOutcome.FAILED,
                ), session)
        except SQLAlchemyError as e:
            logger.error(f"Could not log failed download of item {item.id} for user {requester.user_id}: {e}")

    @staticmethod
    async def _record_completed(order_id: int | None, item: ItemDTO, requester: RequesterDTO,
                                client: ClientInfoDTO, session: AsyncSession | Session) -> None:
        """
        Counter, timestamp and log entry in one transaction.

        A failure here is reported to operators but does not stop the buyer
        from receiving a file that was already produced.
        """
        now = datetime.utcnow()
        try:
            async with TransactionManager.transaction(session):
                if order_id is not None:
                    await OrderRepository.record_download(order_id, now, session)
                else:
                    # First free download of an item counts as an acquisition
                    previous = await DownloadLogRepository.count_completed_free(requester.user_id, item.id, session)
                    if previous == 0:
                        await ItemRepository.increment_purchase_count(item.id, session)
                await DownloadLogRepository.append(DownloadLogEntryDTO(
                    order_id=order_id,
                    user_id=requester.user_id,
                    item_id=item.id,
                    ip=client.ip,
                    user_agent=client.user_agent,
                    outcome=DownloadOutcome.COMPLETED,
                    created_at=now,
                ), session)
        except SQLAlchemyError as e:
            logger.error(f"Download bookkeeping failed for item {item.id}, order {order_id}, "
                         f"user {requester.user_id}: {e}", exc_info=True)

    @staticmethod
    @asynccontextmanager
    async def _deliver(order_id: int | None, item: ItemDTO, requester: RequesterDTO,
                       client: ClientInfoDTO | None, session: AsyncSession | Session,
                       blob_store: BlobStore) -> AsyncIterator[DownloadArtifactDTO]:
        client = client or ClientInfoDTO()
        temp_dir = Path(config.DOWNLOAD_TEMP_DIR)
        temp_path = temp_dir / f"{uuid.uuid4().hex}.pdf"
        try:
            try:
                source = await blob_store.get(item.storage_path)
                temp_dir.mkdir(parents=True, exist_ok=True)
                await WatermarkService.stamp_to_file(source, requester, item.id, temp_path)
                size = temp_path.stat().st_size
            except OSError as e:
                logger.error(f"Temp copy of item {item.id} unavailable in {temp_dir}: {e}")
                await FulfillmentService._append_failed(order_id, item, requester, client, session)
                raise WatermarkFailedException(item.id, str(e)) from e
            except ExternalServiceException:
                await FulfillmentService._append_failed(order_id, item, requester, client, session)
                raise

            await FulfillmentService._record_completed(order_id, item, requester, client, session)
            logger.info(f"📥 Item {item.id} prepared for user {requester.user_id} (order {order_id})")
            yield DownloadArtifactDTO(
                path=temp_path,
                file_name=FulfillmentService._file_name(item),
                size=size,
                order_id=order_id,
                item_id=item.id,
            )
        finally:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove temp copy {temp_path}: {e}")

    @staticmethod
    @asynccontextmanager
    async def download(order_id: int, requester: RequesterDTO, session: AsyncSession | Session,
                       blob_store: BlobStore,
                       client: ClientInfoDTO | None = None) -> AsyncIterator[DownloadArtifactDTO]:
        """
        Personalised copy of a purchased item.

        Raises:
            OrderNotFoundException: Order missing or owned by someone else
            PaymentIncompleteException: Order not paid (carries the current status)
            BlobStoreException: Source file unavailable
            WatermarkFailedException: Copy could not be produced
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None or order.user_id != requester.user_id:
            raise OrderNotFoundException(order_id)
        if order.status != OrderStatus.PAID:
            raise PaymentIncompleteException(order_id, order.status.value)

        item = await ItemRepository.get_by_id(order.item_id, session)
        if item is None:
            raise ItemNotFoundException(order.item_id)

        async with FulfillmentService._deliver(order.id, item, requester, client, session, blob_store) as artifact:
            yield artifact

    @staticmethod
    @asynccontextmanager
    async def download_free(item_id: int, requester: RequesterDTO | None, session: AsyncSession | Session,
                            blob_store: BlobStore,
                            client: ClientInfoDTO | None = None) -> AsyncIterator[DownloadArtifactDTO]:
        """
        Personalised copy of a free item. No order is involved; the log entry
        carries order_id None.

        Raises:
            AuthenticationRequiredException: Anonymous requester
            ItemNotFoundException: Item missing or not listed
            NotFreeItemException: Item has a price
        """
        if requester is None:
            raise AuthenticationRequiredException("free download")
        item = await ItemRepository.get_active_by_id(item_id, session)
        if item is None:
            raise ItemNotFoundException(item_id)
        if not item.is_free:
            raise NotFreeItemException(item_id)

        async with FulfillmentService._deliver(None, item, requester, client, session, blob_store) as artifact:
            yield artifact

    @staticmethod
    async def check_access(item_id: int, requester: RequesterDTO | None,
                           session: AsyncSession | Session) -> AccessCheckDTO:
        """Whether the requester may download the item right now, and why."""
        item = await ItemRepository.get_active_by_id(item_id, session)
        if item is None:
            raise ItemNotFoundException(item_id)

        if requester is None:
            return AccessCheckDTO(can_download=False, reason=AccessReason.LOGIN_REQUIRED)
        if item.is_free:
            return AccessCheckDTO(can_download=True, reason=AccessReason.FREE)

        order = await OrderService.get_latest_for_item(requester.user_id, item_id, session)
        if order is None or order.status in (OrderStatus.FAILED, OrderStatus.REFUNDED):
            return AccessCheckDTO(
                can_download=False,
                reason=AccessReason.NOT_PURCHASED,
                order_id=order.id if order else None,
                status=order.status if order else None,
            )
        if order.status == OrderStatus.PENDING:
            return AccessCheckDTO(
                can_download=False,
                reason=AccessReason.PAYMENT_PENDING,
                order_id=order.id,
                status=order.status,
            )
        return AccessCheckDTO(
            can_download=True,
            reason=AccessReason.PURCHASED,
            order_id=order.id,
            status=order.status,
            download_count=order.download_count,
        )
