import logging
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional
from functools import wraps
from datetime import datetime

from sqlalchemy.exc import OperationalError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from db import get_db_session, session_commit, session_rollback
from exceptions.base import TransientStoreException

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Utility class for managing database transactions with rollback mechanisms
    and retry logic for transient store failures.

    The relational store is the only consistency authority. Services flush inside
    the caller's transaction; the boundary (commit or rollback) is drawn here.
    """

    # Transaction duration above which a warning is logged, in seconds
    TRANSACTION_TIMEOUT = 30

    # Retry configuration
    MAX_RETRIES = config.DB_MAX_RETRIES
    RETRY_DELAY_BASE = config.DB_RETRY_DELAY_BASE  # Base delay in seconds

    # Errors worth repeating: lost connection, busy database, lock timeout,
    # and unique-index races that resolve to an idempotent result on re-read
    TRANSIENT_ERRORS = (OperationalError, IntegrityError)

    @staticmethod
    @asynccontextmanager
    async def transaction(session: AsyncSession | Session,
                          timeout: Optional[int] = None) -> AsyncGenerator[Any, None]:
        """
        Commit everything done inside the block, or roll all of it back.

        Usage:
            async with TransactionManager.transaction(session):
                await OrderService.mark_paid(order_id, reference, staff_id, session)
        """
        timeout = timeout or TransactionManager.TRANSACTION_TIMEOUT
        transaction_start = datetime.utcnow()
        try:
            yield session
            await session_commit(session)
        except BaseException as e:
            try:
                await session_rollback(session)
                logger.info(f"Transaction rolled back due to error: {type(e).__name__}: {e}")
            except Exception as rollback_error:
                logger.critical(f"Failed to rollback transaction: {str(rollback_error)}")
            raise
        duration = (datetime.utcnow() - transaction_start).total_seconds()
        if duration > timeout:
            logger.warning(f"Transaction exceeded timeout: {duration}s > {timeout}s")
        logger.debug(f"Transaction committed successfully in {duration:.2f}s")

    @staticmethod
    @asynccontextmanager
    async def atomic_transaction(timeout: Optional[int] = None) -> AsyncGenerator[Any, None]:
        """
        Open a fresh session and run the block as one transaction.

        Usage:
            async with TransactionManager.atomic_transaction() as session:
                await CartService.checkout(user_id, session)
        """
        async with get_db_session() as session:
            async with TransactionManager.transaction(session, timeout):
                yield session

    @staticmethod
    def with_retry(max_retries: Optional[int] = None, delay_base: Optional[float] = None):
        """
        Decorator for automatic retry of database operations with exponential backoff.

        Only wrap operations that are safe to repeat (approve, reject, refund,
        single-item payment). After the last attempt the transient error is
        surfaced as TransientStoreException.

        Args:
            max_retries: Maximum number of attempts
            delay_base: Base delay for exponential backoff
        """
        max_retries = max_retries or TransactionManager.MAX_RETRIES
        delay_base = delay_base or TransactionManager.RETRY_DELAY_BASE

        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                last_exception = None

                for attempt in range(max_retries):
                    try:
                        return await func(*args, **kwargs)
                    except TransactionManager.TRANSIENT_ERRORS as e:
                        last_exception = e

                        if attempt == max_retries - 1:
                            logger.error(f"Function {func.__name__} failed after {max_retries} attempts: {str(e)}")
                            break

                        # Exponential backoff with jitter
                        delay = delay_base * (2 ** attempt) + (delay_base * 0.1 * attempt)
                        logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}, retrying in {delay:.2f}s: {str(e)}")
                        await asyncio.sleep(delay)

                raise TransientStoreException(func.__name__, max_retries, str(last_exception)) from last_exception

            return wrapper
        return decorator
