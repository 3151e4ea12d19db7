"""
Concurrency safety tests.

Demonstrates:
1. The partial unique index rejects a second PENDING bid even when the
   read-side duplicate check is bypassed (lost race), surfacing as
   ``DuplicatePendingBid``.
2. Bid placement and acceptance run under the per-route Redis lock, and a
   lock held elsewhere becomes a retryable ``ConflictError``.
3. Distributed lock acquire / release semantics (mocked Redis).
4. Every decision path takes the route row lock before bid row locks.
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from backhaul.domain.enums import BidStatus
from backhaul.domain.errors import ConflictError, DuplicatePendingBid
from backhaul.infrastructure.locks import DistributedLock, LockNotAcquired, route_lock
from backhaul.infrastructure.models import BidModel, utcnow
from backhaul.services.bids import BidService
from tests.support import route_fields


def _redis(acquired: bool = True) -> AsyncMock:
    mock_redis = AsyncMock()
    mock_redis.set = AsyncMock(return_value=acquired)
    mock_redis.eval = AsyncMock(return_value=1)
    return mock_redis


class TestPendingBidUniqueness:
    @pytest.mark.asyncio
    async def test_index_rejects_second_pending_bid(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        customer = uuid.uuid4()
        for price in (9000, 9500):
            db_session.add(
                BidModel(
                    route_id=route.id,
                    customer_id=customer,
                    offered_price=price,
                    status=BidStatus.PENDING,
                    created_at=utcnow(),
                    updated_at=utcnow(),
                )
            )
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_index_ignores_terminal_bids(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        customer = uuid.uuid4()
        for status in (BidStatus.WITHDRAWN, BidStatus.REJECTED, BidStatus.PENDING):
            db_session.add(
                BidModel(
                    route_id=route.id,
                    customer_id=customer,
                    offered_price=9000,
                    status=status,
                )
            )
        await db_session.flush()

        result = await db_session.execute(select(func.count()).select_from(BidModel))
        assert result.scalar() == 3

    @pytest.mark.asyncio
    async def test_lost_race_surfaces_as_duplicate(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        customer = uuid.uuid4()
        service = BidService(db_session)
        await service.place_bid(route.id, customer, 9000)

        # The competing request read "no pending bid" before ours committed.
        service.bids.get_pending_for_customer = AsyncMock(return_value=None)

        with pytest.raises(DuplicatePendingBid):
            await service.place_bid(route.id, customer, 9100)


class TestRouteLock:
    @pytest.mark.asyncio
    async def test_place_bid_holds_route_lock(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        redis = _redis()

        await BidService(db_session, redis=redis).place_bid(route.id, uuid.uuid4(), 9000)

        args, kwargs = redis.set.call_args
        assert args[0] == f"lock:route:{route.id}"
        assert kwargs == {"nx": True, "ex": 10}
        redis.eval.assert_called_once()

    @pytest.mark.asyncio
    async def test_accept_holds_route_lock(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        bid = await BidService(db_session).place_bid(route.id, uuid.uuid4(), 9000)
        redis = _redis()

        await BidService(db_session, redis=redis).accept(bid.id, route.driver_id)

        assert redis.set.call_args.args[0] == f"lock:route:{route.id}"
        redis.eval.assert_called_once()

    @pytest.mark.asyncio
    async def test_busy_route_is_conflict_and_writes_nothing(
        self, route_service, db_session
    ):
        route = await route_service.create(**route_fields())
        service = BidService(db_session, redis=_redis(acquired=False), lock_wait_seconds=0)

        with pytest.raises(ConflictError):
            await service.place_bid(route.id, uuid.uuid4(), 9000)

        result = await db_session.execute(select(func.count()).select_from(BidModel))
        assert result.scalar() == 0

    @pytest.mark.asyncio
    async def test_lock_released_when_operation_fails(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        customer = uuid.uuid4()
        redis = _redis()
        service = BidService(db_session, redis=redis)
        await service.place_bid(route.id, customer, 9000)

        with pytest.raises(DuplicatePendingBid):
            await service.place_bid(route.id, customer, 9000)
        assert redis.eval.call_count == 2


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        lock = DistributedLock(_redis(), "test-key", ttl_seconds=10)
        assert await lock.acquire() is True

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        lock = DistributedLock(_redis(acquired=False), "test-key", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_acquire_retries_until_wait_elapses(self):
        mock_redis = _redis()
        mock_redis.set = AsyncMock(side_effect=[False, False, True])
        lock = DistributedLock(
            mock_redis, "test-key", wait_seconds=1.0, retry_interval=0.01
        )
        assert await lock.acquire() is True
        assert mock_redis.set.call_count == 3

    @pytest.mark.asyncio
    async def test_release_calls_eval_with_own_token(self):
        mock_redis = _redis()
        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        args = mock_redis.eval.call_args.args
        assert args[1:] == (1, "lock:test-key", lock.token)

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        lock = route_lock(_redis(acquired=False), uuid.uuid4(), 10, 0)
        with pytest.raises(LockNotAcquired, match="Could not acquire lock"):
            async with lock:
                pass


class TestRowLockOrder:
    """Decision paths lock the route row before any bid row."""

    @staticmethod
    def _record(service: BidService) -> list[str]:
        order: list[str] = []

        def spy(name, method):
            async def wrapper(*args, **kwargs):
                order.append(name)
                return await method(*args, **kwargs)

            return wrapper

        service.routes.get_for_update = spy("route", service.routes.get_for_update)
        service.bids.get_for_update = spy("bid", service.bids.get_for_update)
        service.bids.get_pending_for_route_for_update = spy(
            "siblings", service.bids.get_pending_for_route_for_update
        )
        return order

    @pytest.mark.asyncio
    async def test_accept_locks_route_then_bids(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        first = await service.place_bid(route.id, uuid.uuid4(), 9000)
        await service.place_bid(route.id, uuid.uuid4(), 9500)
        order = self._record(service)

        await service.accept(first.id, route.driver_id)

        assert order == ["route", "bid", "siblings"]

    @pytest.mark.asyncio
    async def test_reject_locks_route_then_bid(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)
        order = self._record(service)

        await service.reject(bid.id, route.driver_id)

        assert order == ["route", "bid"]

    @pytest.mark.asyncio
    async def test_withdraw_and_expire_lock_route_then_bid(
        self, route_service, db_session
    ):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        withdrawn = await service.place_bid(route.id, uuid.uuid4(), 9000)
        expired = await service.place_bid(route.id, uuid.uuid4(), 9500)
        order = self._record(service)

        await service.withdraw(withdrawn.id, withdrawn.customer_id)
        await service.expire(expired.id)

        assert order == ["route", "bid", "route", "bid"]
