"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ── Requests ──────────────────────────────────────────────────────────


class RouteCreateRequest(BaseModel):
    # Required fields are checked by the route service so a missing one
    # surfaces as a named ValidationError rather than a schema error.
    driver_id: Optional[uuid.UUID] = None
    origin_lat: Optional[float] = Field(None, ge=-90, le=90)
    origin_lng: Optional[float] = Field(None, ge=-180, le=180)
    destination_lat: Optional[float] = Field(None, ge=-90, le=90)
    destination_lng: Optional[float] = Field(None, ge=-180, le=180)
    origin_address: Optional[str] = Field(None, max_length=255)
    destination_address: Optional[str] = Field(None, max_length=255)
    polyline: Optional[str] = Field(
        None, description="Encoded polyline (precision 5) of the driven path."
    )
    departure_time: Optional[datetime] = None
    detour_tolerance_km: Optional[float] = Field(None, ge=0)
    suggested_price_min: Optional[float] = Field(None, gt=0)
    suggested_price_max: Optional[float] = Field(None, gt=0)


class RouteUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are applied."""

    origin_lat: Optional[float] = Field(None, ge=-90, le=90)
    origin_lng: Optional[float] = Field(None, ge=-180, le=180)
    destination_lat: Optional[float] = Field(None, ge=-90, le=90)
    destination_lng: Optional[float] = Field(None, ge=-180, le=180)
    origin_address: Optional[str] = Field(None, max_length=255)
    destination_address: Optional[str] = Field(None, max_length=255)
    polyline: Optional[str] = None
    departure_time: Optional[datetime] = None
    detour_tolerance_km: Optional[float] = Field(None, ge=0)
    suggested_price_min: Optional[float] = Field(None, gt=0)
    suggested_price_max: Optional[float] = Field(None, gt=0)
    status: Optional[str] = None


class SegmentRequest(BaseModel):
    polyline: str
    segment_distance_km: Optional[float] = Field(None, gt=0)


class BidCreateRequest(BaseModel):
    customer_id: uuid.UUID
    offered_price: Optional[float] = Field(None, allow_inf_nan=False)
    special_instructions: Optional[str] = Field(None, max_length=1000)


class DeliveryRequestSpec(BaseModel):
    description: Optional[str] = None
    weight_kg: Optional[float] = Field(None, gt=0)
    volume_m3: Optional[float] = Field(None, gt=0)
    pickup_lat: Optional[float] = Field(None, ge=-90, le=90)
    pickup_lng: Optional[float] = Field(None, ge=-180, le=180)
    dropoff_lat: Optional[float] = Field(None, ge=-90, le=90)
    dropoff_lng: Optional[float] = Field(None, ge=-180, le=180)


class BidWithRequestCreate(BidCreateRequest):
    delivery_request: DeliveryRequestSpec


class DriverDecision(BaseModel):
    driver_id: uuid.UUID


class CustomerDecision(BaseModel):
    customer_id: uuid.UUID


# ── Responses ─────────────────────────────────────────────────────────


class RouteResponse(BaseModel):
    id: uuid.UUID
    driver_id: uuid.UUID
    origin_lat: float
    origin_lng: float
    destination_lat: float
    destination_lng: float
    origin_address: Optional[str] = None
    destination_address: Optional[str] = None
    polyline: Optional[str] = None
    distance_km: float
    origin_cell: Optional[str] = None
    destination_cell: Optional[str] = None
    departure_time: datetime
    detour_tolerance_km: Optional[float] = None
    suggested_price_min: Optional[float] = None
    suggested_price_max: Optional[float] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CoordinateResponse(BaseModel):
    latitude: float
    longitude: float

    model_config = {"from_attributes": True}


class SegmentResponse(BaseModel):
    index: int
    start: CoordinateResponse
    end: CoordinateResponse
    distance_km: float
    cumulative_km: float
    place_name: Optional[str] = None

    model_config = {"from_attributes": True}


class PricePredictionResponse(BaseModel):
    route_id: uuid.UUID
    min_price: float
    max_price: float
    confidence: str
    sample_size: int
    distance_km: float
    computed_at: datetime

    model_config = {"from_attributes": True}


class BidResponse(BaseModel):
    id: uuid.UUID
    route_id: Optional[uuid.UUID] = None
    customer_id: uuid.UUID
    delivery_request_id: Optional[uuid.UUID] = None
    offered_price: float
    special_instructions: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BidWithRequestResponse(BaseModel):
    bid: BidResponse
    delivery_request_id: uuid.UUID


class BidAcceptResponse(BaseModel):
    bid: BidResponse
    rejected_bid_ids: list[uuid.UUID] = []


class BidStatisticsResponse(BaseModel):
    total_bids: int
    highest_bid: Optional[float] = None
    average_bid: Optional[float] = None

    model_config = {"from_attributes": True}


class DriverProfileResponse(BaseModel):
    name: str
    rating: Optional[float] = None
    review_count: int = 0
    photo_url: Optional[str] = None

    model_config = {"from_attributes": True}


class VehicleResponse(BaseModel):
    make: Optional[str] = None
    model: Optional[str] = None
    plate: Optional[str] = None
    max_weight_kg: Optional[float] = None
    max_volume_m3: Optional[float] = None

    model_config = {"from_attributes": True}


class RouteDetailsResponse(BaseModel):
    route: RouteResponse
    statistics: BidStatisticsResponse
    total_distance_km: float
    estimated_duration_minutes: int
    segments: list[SegmentResponse] = []
    recent_bids: list[BidResponse] = []
    driver: Optional[DriverProfileResponse] = None
    vehicle: Optional[VehicleResponse] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
    database: str = "ok"
    redis: str = "disabled"


class ErrorResponse(BaseModel):
    detail: str
    code: str
