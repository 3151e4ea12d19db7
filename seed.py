"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample routes between Sri Lankan towns (one already BOOKED)
  - 9 sample bids (mix of PENDING, ACCEPTED, REJECTED)
  - 1 delivery request attached to a bid
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from backhaul.config import settings
from backhaul.domain.pricing import PriceBandCalculator
from backhaul.infrastructure.database import async_session_factory, engine
from backhaul.infrastructure.repositories import SqlBidHistoryReader
from backhaul.services.bids import BidService
from backhaul.services.geometry import GeometryEngine
from backhaul.services.pricing import PriceSuggestionService
from backhaul.services.routes import RouteService

TOWNS = {
    "Colombo": (6.9271, 79.8612),
    "Kandy": (7.2906, 80.6337),
    "Galle": (6.0535, 80.2210),
    "Kurunegala": (7.4863, 80.3647),
    "Anuradhapura": (8.3114, 80.4037),
    "Jaffna": (9.6615, 80.0255),
    "Matara": (5.9549, 80.5550),
}

DRIVERS = [uuid.uuid4() for _ in range(4)]
CUSTOMERS = [uuid.uuid4() for _ in range(6)]

ROUTES = [
    # (driver index, origin, destination, departs in hours)
    (0, "Kandy", "Colombo", 6),
    (1, "Galle", "Colombo", 10),
    (2, "Anuradhapura", "Kurunegala", 20),
    (3, "Jaffna", "Anuradhapura", 30),
    (0, "Colombo", "Matara", 48),
    (1, "Kandy", "Colombo", 72),
]

BIDS = [
    # (route index, customer index, price)
    (0, 0, 9500),
    (0, 1, 10200),
    (0, 2, 11000),
    (1, 0, 7800),
    (1, 3, 8200),
    (2, 4, 6400),
    (3, 5, 12500),
    (5, 1, 9900),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM routes"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        pricing = PriceSuggestionService(
            session,
            SqlBidHistoryReader(async_session_factory),
            PriceBandCalculator(
                base_fare=settings.base_fare,
                rate_per_km=settings.rate_per_km,
                band_pct=settings.price_band_pct,
            ),
        )
        routes = RouteService(session, GeometryEngine(), pricing, settings)
        bids = BidService(session)
        now = datetime.now(timezone.utc)

        # ── Routes ────────────────────────────────────────────────────
        route_models = []
        for driver, origin, destination, hours in ROUTES:
            o_lat, o_lng = TOWNS[origin]
            d_lat, d_lng = TOWNS[destination]
            route = await routes.create(
                driver_id=DRIVERS[driver],
                origin_lat=o_lat,
                origin_lng=o_lng,
                destination_lat=d_lat,
                destination_lng=d_lng,
                origin_address=origin,
                destination_address=destination,
                departure_time=now + timedelta(hours=hours),
                detour_tolerance_km=5,
            )
            route_models.append(route)
        print(f"  Created {len(route_models)} routes")

        # ── Bids ──────────────────────────────────────────────────────
        bid_models = []
        for route_idx, customer_idx, price in BIDS:
            bid = await bids.place_bid(
                route_models[route_idx].id, CUSTOMERS[customer_idx], price
            )
            bid_models.append(bid)

        _, request_id = await bids.place_bid_with_request(
            route_models[4].id,
            {
                "description": "Two crates of tea, fragile",
                "weight_kg": 120,
                "volume_m3": 0.8,
                "pickup_lat": TOWNS["Colombo"][0],
                "pickup_lng": TOWNS["Colombo"][1],
                "dropoff_lat": TOWNS["Matara"][0],
                "dropoff_lng": TOWNS["Matara"][1],
            },
            {"customer_id": CUSTOMERS[2], "offered_price": 8800},
        )
        print(f"  Created {len(bid_models) + 1} bids (request {request_id})")

        # ── Booked route: Kandy -> Colombo ────────────────────────────
        winner, rejected = await bids.accept(bid_models[1].id, DRIVERS[0])
        print(
            f"  Accepted bid {winner.id} on route {winner.route_id}; "
            f"rejected {len(rejected)}"
        )

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
