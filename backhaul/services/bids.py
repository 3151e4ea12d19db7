"""
Bid Negotiation Engine
======================

State machine per bid: PENDING -> ACCEPTED | REJECTED | WITHDRAWN | EXPIRED.

Concurrency safety
------------------
* **Redis distributed lock** per route (when Redis is configured) keeps two
  API processes from deciding on the same route at once.
* **SELECT ... FOR UPDATE** on the route and its pending bids makes
  ``accept`` atomic: winner ACCEPTED, siblings REJECTED and route BOOKED are
  written in one transaction, and a second ``accept`` sees the committed
  state and fails with ``InvalidTransition``.
  Every path locks the route row before any bid row, so decisions on
  different bids of one route queue on the route instead of deadlocking.
  Row locks last until the unit of work commits; the Redis lock only
  covers the service call.
* **Partial unique index** on pending bids turns a lost duplicate-placement
  race into ``DuplicatePendingBid`` rather than a second pending bid.

Nothing here commits; the request's unit of work commits or rolls back the
whole operation.
"""

from __future__ import annotations

import contextlib
import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backhaul.domain.entities import transition
from backhaul.domain.enums import BidStatus, RouteStatus
from backhaul.domain.errors import (
    AccessDenied,
    BidNotFound,
    ConflictError,
    DuplicatePendingBid,
    InvalidTransition,
    RouteNotBiddable,
    RouteNotFound,
    ValidationError,
)
from backhaul.domain.ports import DeliveryRequestStore
from backhaul.domain.pricing import to_money
from backhaul.infrastructure.locks import LockNotAcquired, route_lock
from backhaul.infrastructure.models import BidModel, RouteModel, utcnow
from backhaul.infrastructure.repositories import (
    BidRepository,
    RouteRepository,
    SqlDeliveryRequestStore,
)

logger = logging.getLogger(__name__)


class BidService:
    def __init__(
        self,
        session: AsyncSession,
        requests: Optional[DeliveryRequestStore] = None,
        redis: Optional[aioredis.Redis] = None,
        lock_ttl_seconds: int = 10,
        lock_wait_seconds: float = 2.0,
    ):
        self.session = session
        self.routes = RouteRepository(session)
        self.bids = BidRepository(session)
        self.requests = requests or SqlDeliveryRequestStore(session)
        self.redis = redis
        self.lock_ttl = lock_ttl_seconds
        self.lock_wait = lock_wait_seconds

    # ── Placement ─────────────────────────────────────────────────────

    async def place_bid(
        self,
        route_id: uuid.UUID,
        customer_id: uuid.UUID,
        offered_price: Any,
        special_instructions: Optional[str] = None,
    ) -> BidModel:
        price = self._validate_price(offered_price)
        async with self._locked(route_id):
            route = await self._biddable_route(route_id, customer_id)
            bid = await self._insert_bid(
                route, customer_id, price, special_instructions
            )
        logger.info(
            "Bid %s placed on route %s by customer %s (%s)",
            bid.id,
            route_id,
            customer_id,
            price,
        )
        return bid

    async def place_bid_with_request(
        self,
        route_id: uuid.UUID,
        request_spec: dict[str, Any],
        bid_spec: dict[str, Any],
    ) -> tuple[BidModel, uuid.UUID]:
        """
        Create a delivery request and a bid referencing it.

        All checks run before the first write and both rows go through the
        same session, so a failure anywhere leaves neither behind once the
        unit of work rolls back.
        """
        customer_id = bid_spec.get("customer_id")
        if customer_id is None:
            raise ValidationError("customer_id")
        price = self._validate_price(bid_spec.get("offered_price"))

        async with self._locked(route_id):
            route = await self._biddable_route(route_id, customer_id)
            request_id = await self.requests.create(
                {**request_spec, "customer_id": customer_id}
            )
            bid = await self._insert_bid(
                route,
                customer_id,
                price,
                bid_spec.get("special_instructions"),
                delivery_request_id=request_id,
            )
        logger.info(
            "Bid %s placed on route %s with delivery request %s",
            bid.id,
            route_id,
            request_id,
        )
        return bid, request_id

    # ── Decisions ─────────────────────────────────────────────────────

    async def accept(
        self, bid_id: uuid.UUID, driver_id: uuid.UUID
    ) -> tuple[BidModel, list[BidModel]]:
        """Accept *bid_id*; returns the winner and the bids it rejected."""
        route_id = await self._route_of(bid_id)
        async with self._locked(route_id):
            route = await self._owned_route(route_id, bid_id, driver_id)
            bid = await self._get_for_update(bid_id)
            self._require_pending(bid, BidStatus.ACCEPTED)

            transition(route, RouteStatus.BOOKED)
            transition(bid, BidStatus.ACCEPTED)

            now = utcnow()
            siblings = [
                b
                for b in await self.bids.get_pending_for_route_for_update(route.id)
                if b.id != bid.id
            ]
            for sibling in siblings:
                transition(sibling, BidStatus.REJECTED)
                sibling.updated_at = now
            bid.updated_at = route.updated_at = now
            await self.session.flush()

        logger.info(
            "Bid %s accepted on route %s; %d competing bid(s) rejected",
            bid.id,
            route.id,
            len(siblings),
        )
        return bid, siblings

    async def reject(self, bid_id: uuid.UUID, driver_id: uuid.UUID) -> BidModel:
        route_id = await self._route_of(bid_id)
        async with self._locked(route_id):
            await self._owned_route(route_id, bid_id, driver_id)
            bid = await self._get_for_update(bid_id)
            return await self._finish(bid, BidStatus.REJECTED)

    async def withdraw(self, bid_id: uuid.UUID, customer_id: uuid.UUID) -> BidModel:
        bid = await self._lock_with_route(bid_id)
        if bid.customer_id != customer_id:
            raise AccessDenied(
                "Only the bidding customer may withdraw a bid",
                bid_id=bid_id,
                customer_id=customer_id,
            )
        return await self._finish(bid, BidStatus.WITHDRAWN)

    async def expire(self, bid_id: uuid.UUID) -> BidModel:
        """Transition primitive for the external expiry sweeper."""
        bid = await self._lock_with_route(bid_id)
        return await self._finish(bid, BidStatus.EXPIRED)

    async def get(self, bid_id: uuid.UUID) -> BidModel:
        bid = await self.bids.get_by_id(bid_id)
        if bid is None:
            raise BidNotFound(bid_id)
        return bid

    # ── Internals ─────────────────────────────────────────────────────

    @contextlib.asynccontextmanager
    async def _locked(self, route_id: uuid.UUID) -> AsyncIterator[None]:
        if self.redis is None:
            yield
            return
        lock = route_lock(self.redis, route_id, self.lock_ttl, self.lock_wait)
        try:
            await lock.__aenter__()
        except LockNotAcquired as exc:
            raise ConflictError(
                "Route is being updated by another request; retry shortly",
                route_id=route_id,
            ) from exc
        try:
            yield
        finally:
            await lock.release()

    @staticmethod
    def _validate_price(value: Any) -> Decimal:
        if value is None:
            raise ValidationError("offered_price")
        try:
            price = to_money(value)
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("offered_price", "offered_price must be a number") from exc
        if not price.is_finite():
            raise ValidationError("offered_price", "offered_price must be a number")
        if price <= 0:
            raise ValidationError("offered_price", "offered_price must be positive")
        return price

    async def _biddable_route(
        self, route_id: uuid.UUID, customer_id: uuid.UUID
    ) -> RouteModel:
        route = await self.routes.get_for_update(route_id)
        if route is None:
            raise RouteNotFound(route_id)
        if RouteStatus(route.status) != RouteStatus.OPEN:
            raise RouteNotBiddable(route_id, route.status)
        if await self.bids.get_pending_for_customer(route_id, customer_id):
            raise DuplicatePendingBid(route_id, customer_id)
        return route

    async def _insert_bid(
        self,
        route: RouteModel,
        customer_id: uuid.UUID,
        price: Decimal,
        special_instructions: Optional[str],
        delivery_request_id: Optional[uuid.UUID] = None,
    ) -> BidModel:
        now = utcnow()
        bid = BidModel(
            id=uuid.uuid4(),
            route_id=route.id,
            customer_id=customer_id,
            offered_price=price,
            special_instructions=special_instructions,
            delivery_request_id=delivery_request_id,
            status=BidStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        try:
            return await self.bids.create(bid)
        except IntegrityError as exc:
            # Lost the race against a concurrent placement by the same customer.
            raise DuplicatePendingBid(route.id, customer_id) from exc

    async def _route_of(self, bid_id: uuid.UUID) -> uuid.UUID:
        bid = await self.get(bid_id)
        if bid.route_id is None:
            raise RouteNotFound(None)
        return bid.route_id

    async def _get_for_update(self, bid_id: uuid.UUID) -> BidModel:
        bid = await self.bids.get_for_update(bid_id)
        if bid is None:
            raise BidNotFound(bid_id)
        return bid

    async def _lock_with_route(self, bid_id: uuid.UUID) -> BidModel:
        # Route row before bid row, the order every decision path uses.
        bid = await self.get(bid_id)
        if bid.route_id is not None:
            await self.routes.get_for_update(bid.route_id)
        return await self._get_for_update(bid_id)

    async def _owned_route(
        self, route_id: uuid.UUID, bid_id: uuid.UUID, driver_id: uuid.UUID
    ) -> RouteModel:
        route = await self.routes.get_for_update(route_id)
        if route is None:
            raise RouteNotFound(route_id)
        if route.driver_id != driver_id:
            raise AccessDenied(
                "Only the route's driver may decide on its bids",
                bid_id=bid_id,
                driver_id=driver_id,
            )
        return route

    @staticmethod
    def _require_pending(bid: BidModel, requested: BidStatus) -> None:
        if BidStatus(bid.status) != BidStatus.PENDING:
            raise InvalidTransition("bid", BidStatus(bid.status), requested)

    async def _finish(self, bid: BidModel, status: BidStatus) -> BidModel:
        transition(bid, status)
        bid.updated_at = utcnow()
        await self.session.flush()
        logger.info("Bid %s is now %s", bid.id, status.value)
        return bid
