"""
Tests for utils/transaction_manager.py
"""

import pytest
from sqlalchemy.exc import OperationalError

from exceptions.base import TransientStoreException
from exceptions.order import OrderNotFoundException
from repositories.cart import CartRepository
from utils.transaction_manager import TransactionManager


def _lost_connection() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))


class TestWithRetry:

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self):
        calls = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise _lost_connection()
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_with_transient_store_error(self):
        calls = []

        @TransactionManager.with_retry(max_retries=2, delay_base=0.001)
        async def broken():
            calls.append(1)
            raise _lost_connection()

        with pytest.raises(TransientStoreException) as exc_info:
            await broken()
        assert len(calls) == 2
        assert exc_info.value.attempts == 2
        assert exc_info.value.operation == "broken"
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_domain_errors_not_retried(self):
        calls = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def missing():
            calls.append(1)
            raise OrderNotFoundException(1)

        with pytest.raises(OrderNotFoundException):
            await missing()
        assert len(calls) == 1


class TestTransaction:

    @pytest.mark.asyncio
    async def test_commit(self, session, items, buyer):
        async with TransactionManager.transaction(session):
            await CartRepository.add(buyer.user_id, items["guide"], session)

        session.expire_all()
        assert await CartRepository.count(buyer.user_id, session) == 1

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, session, items, buyer):
        with pytest.raises(ValueError):
            async with TransactionManager.transaction(session):
                await CartRepository.add(buyer.user_id, items["guide"], session)
                raise ValueError("abort")

        assert await CartRepository.count(buyer.user_id, session) == 0
