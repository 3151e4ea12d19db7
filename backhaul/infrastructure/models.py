"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``routes``             -- driver-published return trips
* ``bids``               -- customer price offers against a route
* ``delivery_requests``  -- parcel specs created together with a bid

Indexes
-------
* **Partial unique** on ``bids (route_id, customer_id) WHERE status =
  'PENDING'``: the database, not a check-then-insert, guarantees one
  pending bid per customer and route.
* **B-Tree** on ``status``, ``driver_id``, region cells and ``route_id``
  for the look-ups used by bidding, price history and the details view.

Segments are not stored; they are recomputed from ``routes.polyline``.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)

from .database import Base
from backhaul.domain.enums import BidStatus, RouteStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RouteModel(Base):
    __tablename__ = "routes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id = Column(Uuid, nullable=False)

    origin_lat = Column(Numeric(9, 6), nullable=False)
    origin_lng = Column(Numeric(9, 6), nullable=False)
    destination_lat = Column(Numeric(9, 6), nullable=False)
    destination_lng = Column(Numeric(9, 6), nullable=False)
    origin_address = Column(String(255), nullable=True)
    destination_address = Column(String(255), nullable=True)

    # Encoded polyline from the driver's mapping provider; NULL means the
    # straight origin -> destination line.
    polyline = Column(Text, nullable=True)
    distance_km = Column(Numeric(10, 3), nullable=False, default=0)
    origin_cell = Column(String(20), nullable=True)
    destination_cell = Column(String(20), nullable=True)

    departure_time = Column(DateTime(timezone=True), nullable=False)
    detour_tolerance_km = Column(Numeric(6, 2), nullable=True)
    suggested_price_min = Column(Numeric(12, 2), nullable=True)
    suggested_price_max = Column(Numeric(12, 2), nullable=True)
    status = Column(Enum(RouteStatus), default=RouteStatus.OPEN, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_routes_status", "status"),
        Index("idx_routes_driver", "driver_id"),
        Index("idx_routes_cells", "origin_cell", "destination_cell"),
    )


class DeliveryRequestModel(Base):
    __tablename__ = "delivery_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, nullable=False)
    description = Column(Text, nullable=True)
    weight_kg = Column(Numeric(10, 2), nullable=True)
    volume_m3 = Column(Numeric(10, 3), nullable=True)
    pickup_lat = Column(Numeric(9, 6), nullable=True)
    pickup_lng = Column(Numeric(9, 6), nullable=True)
    dropoff_lat = Column(Numeric(9, 6), nullable=True)
    dropoff_lng = Column(Numeric(9, 6), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_delivery_requests_customer", "customer_id"),)


class BidModel(Base):
    __tablename__ = "bids"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Nullable: deleting a route detaches its (terminal) bids instead of
    # erasing the customer's history.
    route_id = Column(
        Uuid, ForeignKey("routes.id", ondelete="SET NULL"), nullable=True
    )
    customer_id = Column(Uuid, nullable=False)
    delivery_request_id = Column(
        Uuid, ForeignKey("delivery_requests.id"), nullable=True
    )
    offered_price = Column(Numeric(12, 2), nullable=False)
    special_instructions = Column(Text, nullable=True)
    status = Column(Enum(BidStatus), default=BidStatus.PENDING, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_bids_route", "route_id"),
        Index("idx_bids_customer", "customer_id"),
        Index("idx_bids_status", "status"),
        Index(
            "uq_bids_one_pending_per_customer",
            "route_id",
            "customer_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )
