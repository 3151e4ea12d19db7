"""Integration tests for the bid negotiation engine."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from backhaul.domain.enums import BidStatus, RouteStatus
from backhaul.domain.errors import (
    AccessDenied,
    BidNotFound,
    DuplicatePendingBid,
    InvalidTransition,
    RouteNotBiddable,
    RouteNotFound,
    ValidationError,
)
from backhaul.infrastructure.models import BidModel, DeliveryRequestModel
from backhaul.services.bids import BidService
from tests.support import route_fields

PARCEL = {
    "description": "Six bags of cement",
    "weight_kg": 300,
    "volume_m3": 0.5,
    "pickup_lat": 7.2906,
    "pickup_lng": 80.6337,
    "dropoff_lat": 6.9271,
    "dropoff_lng": 79.8612,
}


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar()


class TestPlaceBid:
    @pytest.mark.asyncio
    async def test_bid_is_pending(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        customer = uuid.uuid4()

        bid = await BidService(db_session).place_bid(
            route.id, customer, 9500, "Fragile, keep upright"
        )

        assert bid.status == BidStatus.PENDING
        assert bid.route_id == route.id
        assert bid.customer_id == customer
        assert bid.offered_price == Decimal("9500.00")
        assert bid.special_instructions == "Fragile, keep upright"

    @pytest.mark.asyncio
    async def test_two_customers_get_distinct_pending_bids(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)

        first = await service.place_bid(route.id, uuid.uuid4(), 9000)
        second = await service.place_bid(route.id, uuid.uuid4(), 9100)

        assert first.id != second.id
        assert first.status == second.status == BidStatus.PENDING

    @pytest.mark.asyncio
    async def test_same_customer_twice_is_duplicate(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        customer = uuid.uuid4()
        await service.place_bid(route.id, customer, 9000)

        with pytest.raises(DuplicatePendingBid):
            await service.place_bid(route.id, customer, 9900)
        assert await _count(db_session, BidModel) == 1

    @pytest.mark.asyncio
    async def test_customer_may_bid_again_after_withdrawing(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        customer = uuid.uuid4()
        first = await service.place_bid(route.id, customer, 9000)
        await service.withdraw(first.id, customer)

        second = await service.place_bid(route.id, customer, 9900)
        assert second.status == BidStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_route(self, db_session):
        with pytest.raises(RouteNotFound):
            await BidService(db_session).place_bid(uuid.uuid4(), uuid.uuid4(), 9000)

    @pytest.mark.asyncio
    async def test_cancelled_route_is_not_biddable(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        await route_service.update(route.id, route.driver_id, {"status": "CANCELLED"})

        with pytest.raises(RouteNotBiddable) as exc_info:
            await BidService(db_session).place_bid(route.id, uuid.uuid4(), 9000)
        assert exc_info.value.context["status"] == "CANCELLED"

    @pytest.mark.parametrize("price", [0, -100, None, float("nan"), "NaN", "abc"])
    @pytest.mark.asyncio
    async def test_price_must_be_positive(self, route_service, db_session, price):
        route = await route_service.create(**route_fields())
        with pytest.raises(ValidationError):
            await BidService(db_session).place_bid(route.id, uuid.uuid4(), price)


class TestPlaceBidWithRequest:
    @pytest.mark.asyncio
    async def test_creates_request_and_bid(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        customer = uuid.uuid4()

        bid, request_id = await BidService(db_session).place_bid_with_request(
            route.id, PARCEL, {"customer_id": customer, "offered_price": 7500}
        )

        assert bid.delivery_request_id == request_id
        request = await db_session.get(DeliveryRequestModel, request_id)
        assert request.customer_id == customer
        assert request.description == "Six bags of cement"

    @pytest.mark.asyncio
    async def test_failed_check_writes_nothing(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        customer = uuid.uuid4()
        await service.place_bid(route.id, customer, 9000)

        with pytest.raises(DuplicatePendingBid):
            await service.place_bid_with_request(
                route.id, PARCEL, {"customer_id": customer, "offered_price": 7500}
            )
        assert await _count(db_session, DeliveryRequestModel) == 0
        assert await _count(db_session, BidModel) == 1

    @pytest.mark.asyncio
    async def test_invalid_price_writes_nothing(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        with pytest.raises(ValidationError):
            await BidService(db_session).place_bid_with_request(
                route.id, PARCEL, {"customer_id": uuid.uuid4(), "offered_price": -1}
            )
        assert await _count(db_session, DeliveryRequestModel) == 0

    @pytest.mark.asyncio
    async def test_missing_customer(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        with pytest.raises(ValidationError) as exc_info:
            await BidService(db_session).place_bid_with_request(
                route.id, PARCEL, {"offered_price": 7500}
            )
        assert exc_info.value.field == "customer_id"


class TestAcceptBid:
    @pytest.mark.asyncio
    async def test_accept_books_route_and_rejects_competitors(
        self, route_service, db_session
    ):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bids = [
            await service.place_bid(route.id, uuid.uuid4(), price)
            for price in (9000, 9500, 10000)
        ]

        winner, rejected = await service.accept(bids[1].id, route.driver_id)

        assert winner.status == BidStatus.ACCEPTED
        assert {b.id for b in rejected} == {bids[0].id, bids[2].id}
        assert all(b.status == BidStatus.REJECTED for b in rejected)
        assert (await route_service.get(route.id)).status == RouteStatus.BOOKED

        for bid in bids:
            with pytest.raises(InvalidTransition):
                await service.accept(bid.id, route.driver_id)

    @pytest.mark.asyncio
    async def test_only_route_owner_may_accept(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)

        with pytest.raises(AccessDenied):
            await service.accept(bid.id, uuid.uuid4())
        assert (await service.get(bid.id)).status == BidStatus.PENDING

    @pytest.mark.asyncio
    async def test_accept_on_cancelled_route_is_invalid(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)
        await route_service.update(route.id, route.driver_id, {"status": "CANCELLED"})

        with pytest.raises(InvalidTransition) as exc_info:
            await service.accept(bid.id, route.driver_id)
        assert exc_info.value.context["entity"] == "route"

    @pytest.mark.asyncio
    async def test_accept_withdrawn_bid_is_invalid(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)
        await service.withdraw(bid.id, bid.customer_id)

        with pytest.raises(InvalidTransition) as exc_info:
            await service.accept(bid.id, route.driver_id)
        assert exc_info.value.current == "WITHDRAWN"
        assert exc_info.value.requested == "ACCEPTED"

    @pytest.mark.asyncio
    async def test_unknown_bid(self, db_session):
        with pytest.raises(BidNotFound):
            await BidService(db_session).accept(uuid.uuid4(), uuid.uuid4())


class TestOtherDecisions:
    @pytest.mark.asyncio
    async def test_reject_by_driver(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)

        rejected = await service.reject(bid.id, route.driver_id)

        assert rejected.status == BidStatus.REJECTED
        assert (await route_service.get(route.id)).status == RouteStatus.OPEN

    @pytest.mark.asyncio
    async def test_reject_by_stranger_is_denied(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)
        with pytest.raises(AccessDenied):
            await service.reject(bid.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_withdraw_by_other_customer_is_denied(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)
        with pytest.raises(AccessDenied):
            await service.withdraw(bid.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_expire_pending_bid(self, route_service, db_session):
        route = await route_service.create(**route_fields())
        service = BidService(db_session)
        bid = await service.place_bid(route.id, uuid.uuid4(), 9000)

        expired = await service.expire(bid.id)

        assert expired.status == BidStatus.EXPIRED
        with pytest.raises(InvalidTransition):
            await service.withdraw(bid.id, bid.customer_id)

    @pytest.mark.asyncio
    async def test_expire_unknown_bid(self, db_session):
        with pytest.raises(BidNotFound):
            await BidService(db_session).expire(uuid.uuid4())
