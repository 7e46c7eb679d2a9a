"""
Order Store

Durable collection of order records on top of the SQLAlchemy async engine.
Supports the four primitives the lifecycle engine needs:

    - atomic insert of a fully formed order
    - read by id (and by idempotency key)
    - compare-and-swap status update scoped to one row
    - ordered range read by creation time, most recent first

Every storage failure is re-raised as StoreUnavailable. The store never
retries on its own.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderflow.core.exceptions import StoreUnavailable
from orderflow.models import Order, OrderStatus

logger = logging.getLogger(__name__)


class OrderStore:
    """Order persistence with per-record optimistic concurrency."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._last_timestamp: Optional[datetime] = None

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Order store {operation} failed: {e}")
            raise StoreUnavailable(f"Order store unavailable during {operation}") from e

    def _next_timestamp(self) -> datetime:
        """Creation timestamps never go backwards within this process."""
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    @staticmethod
    async def _find_by_key(session: AsyncSession, key: str) -> Optional[Order]:
        result = await session.execute(
            select(Order).where(Order.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # WRITES
    # =========================================================================

    async def insert(
        self,
        customer_name: str,
        customer_phone: str,
        customer_location: str,
        items: str,
        total_amount: int,
        customer_email: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> tuple[Order, bool]:
        """
        Insert a new pending order in one transaction.

        Returns:
            (order, created). `created` is False when an order with the same
            idempotency key already existed and was returned instead.
        """
        with self._guard("insert"):
            async with self._session_maker() as session:
                if idempotency_key:
                    existing = await self._find_by_key(session, idempotency_key)
                    if existing is not None:
                        return existing, False

                order = Order(
                    customer_name=customer_name,
                    customer_phone=customer_phone,
                    customer_email=customer_email,
                    customer_location=customer_location,
                    items=items,
                    total_amount=total_amount,
                    status=OrderStatus.PENDING,
                    version=1,
                    idempotency_key=idempotency_key,
                    created_at=self._next_timestamp(),
                )
                session.add(order)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    if not idempotency_key:
                        raise
                    # Lost a race against a duplicate submission
                    existing = await self._find_by_key(session, idempotency_key)
                    if existing is None:
                        raise
                    return existing, False

                return order, True

    async def compare_and_set_status(
        self,
        order_id: int,
        expected_version: int,
        expected_status: OrderStatus,
        new_status: OrderStatus,
    ) -> bool:
        """
        Apply a status change only if the row is still at the expected
        version and status. Returns True when exactly one row was updated.
        """
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.version == expected_version,
                Order.status == expected_status,
            )
            .values(
                status=new_status,
                version=Order.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        with self._guard("update"):
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount == 1

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, order_id: int) -> Optional[Order]:
        with self._guard("read"):
            async with self._session_maker() as session:
                result = await session.execute(select(Order).where(Order.id == order_id))
                return result.scalar_one_or_none()

    async def list_recent(self, limit: int) -> list[Order]:
        """Orders sorted by creation time descending, at most `limit`."""
        query = (
            select(Order)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        with self._guard("list"):
            async with self._session_maker() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
