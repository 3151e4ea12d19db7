"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``*_for_update`` variants take row locks and
refresh already-loaded instances so decisions are made on current state.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import BidModel, DeliveryRequestModel, RouteModel
from backhaul.domain.enums import LIVE_BID_STATUSES, BidStatus, RouteStatus
from backhaul.domain.errors import DependencyUnavailable


class RouteRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, route: RouteModel) -> RouteModel:
        self.session.add(route)
        await self.session.flush()
        return route

    async def get_by_id(self, route_id: uuid.UUID) -> Optional[RouteModel]:
        return await self.session.get(RouteModel, route_id)

    async def get_for_update(self, route_id: uuid.UUID) -> Optional[RouteModel]:
        """SELECT ... FOR UPDATE to serialise decisions on one route."""
        result = await self.session.execute(
            select(RouteModel)
            .where(RouteModel.id == route_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def delete(self, route: RouteModel) -> None:
        await self.session.delete(route)
        await self.session.flush()


class BidRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, bid: BidModel) -> BidModel:
        self.session.add(bid)
        await self.session.flush()
        return bid

    async def get_by_id(self, bid_id: uuid.UUID) -> Optional[BidModel]:
        return await self.session.get(BidModel, bid_id)

    async def get_for_update(self, bid_id: uuid.UUID) -> Optional[BidModel]:
        result = await self.session.execute(
            select(BidModel)
            .where(BidModel.id == bid_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_pending_for_customer(
        self, route_id: uuid.UUID, customer_id: uuid.UUID
    ) -> Optional[BidModel]:
        result = await self.session.execute(
            select(BidModel).where(
                BidModel.route_id == route_id,
                BidModel.customer_id == customer_id,
                BidModel.status == BidStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def get_pending_for_route_for_update(
        self, route_id: uuid.UUID
    ) -> list[BidModel]:
        result = await self.session.execute(
            select(BidModel)
            .where(
                BidModel.route_id == route_id,
                BidModel.status == BidStatus.PENDING,
            )
            .order_by(BidModel.created_at)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_live(self, route_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(BidModel)
            .where(
                BidModel.route_id == route_id,
                BidModel.status.in_(LIVE_BID_STATUSES),
            )
        )
        return result.scalar() or 0

    async def live_statistics(
        self, route_id: uuid.UUID
    ) -> tuple[int, Optional[Any], Optional[Any]]:
        """(count, highest, average) over PENDING and ACCEPTED bids."""
        result = await self.session.execute(
            select(
                func.count(BidModel.id),
                func.max(BidModel.offered_price),
                func.avg(BidModel.offered_price),
            ).where(
                BidModel.route_id == route_id,
                BidModel.status.in_(LIVE_BID_STATUSES),
            )
        )
        count, highest, average = result.one()
        return count or 0, highest, average

    async def recent_for_route(
        self, route_id: uuid.UUID, limit: int
    ) -> list[BidModel]:
        result = await self.session.execute(
            select(BidModel)
            .where(BidModel.route_id == route_id)
            .order_by(BidModel.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def detach_from_route(self, route_id: uuid.UUID) -> None:
        await self.session.execute(
            update(BidModel)
            .where(BidModel.route_id == route_id)
            .values(route_id=None)
            .execution_options(synchronize_session="fetch")
        )


class SqlDeliveryRequestStore:
    """Writes delivery requests in the caller's unit of work."""

    FIELDS = (
        "customer_id",
        "description",
        "weight_kg",
        "volume_m3",
        "pickup_lat",
        "pickup_lng",
        "dropoff_lat",
        "dropoff_lng",
    )

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, spec: dict[str, Any]) -> uuid.UUID:
        request = DeliveryRequestModel(
            **{k: v for k, v in spec.items() if k in self.FIELDS}
        )
        self.session.add(request)
        await self.session.flush()
        return request.id


class SqlBidHistoryReader:
    """
    Accepted-bid prices on comparable routes (same origin and destination
    cells, distance within a relative tolerance), newest first.

    Runs in its own short-lived session so a timeout cancelling the query
    never leaves the caller's transaction half-used.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        distance_tolerance: float = 0.25,
        limit: int = 50,
    ):
        self.session_factory = session_factory
        self.distance_tolerance = distance_tolerance
        self.limit = limit

    async def historical_prices(
        self, origin_region: str, destination_region: str, distance_km: float
    ) -> Sequence[Decimal]:
        low = distance_km * (1 - self.distance_tolerance)
        high = distance_km * (1 + self.distance_tolerance)
        query = (
            select(BidModel.offered_price)
            .join(RouteModel, BidModel.route_id == RouteModel.id)
            .where(
                BidModel.status == BidStatus.ACCEPTED,
                RouteModel.origin_cell == origin_region,
                RouteModel.destination_cell == destination_region,
                RouteModel.distance_km.between(low, high),
                RouteModel.status != RouteStatus.CANCELLED,
            )
            .order_by(BidModel.updated_at.desc())
            .limit(self.limit)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return [Decimal(str(p)) for p in result.scalars().all()]
        except (OSError, SQLAlchemyError) as exc:
            raise DependencyUnavailable("bid history", str(exc)) from exc
