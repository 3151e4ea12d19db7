"""
Route endpoints
===============

POST   /api/v1/routes                              -- publish a return trip
GET    /api/v1/routes/{route_id}                   -- route as stored
GET    /api/v1/routes/{route_id}/details           -- route + bids + driver + segments
PATCH  /api/v1/routes/{route_id}?driver_id=...     -- partial update by the owner
DELETE /api/v1/routes/{route_id}                   -- remove a route without live bids
GET    /api/v1/routes/{route_id}/segments          -- labelled segments of a route
POST   /api/v1/routes/segments                     -- segment an arbitrary polyline
GET    /api/v1/routes/{route_id}/price-suggestion  -- suggested price band
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from backhaul.api.dependencies import (
    get_container,
    get_pricing_service,
    get_route_service,
)
from backhaul.api.middleware import limiter
from backhaul.api.schemas import (
    ErrorResponse,
    PricePredictionResponse,
    RouteCreateRequest,
    RouteDetailsResponse,
    RouteResponse,
    RouteUpdateRequest,
    SegmentRequest,
    SegmentResponse,
)
from backhaul.config import settings
from backhaul.container import Container
from backhaul.services.pricing import PriceSuggestionService
from backhaul.services.routes import RouteService

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post(
    "",
    status_code=201,
    response_model=RouteResponse,
    summary="Publish a route",
    responses={422: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def create_route(
    request: Request,
    body: RouteCreateRequest,
    service: RouteService = Depends(get_route_service),
):
    return await service.create(**body.model_dump())


@router.post(
    "/segments",
    response_model=list[SegmentResponse],
    summary="Split an encoded polyline into labelled segments",
    responses={422: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def segment_polyline(
    request: Request,
    body: SegmentRequest,
    container: Container = Depends(get_container),
):
    target = body.segment_distance_km or container.settings.segment_distance_km
    return await container.geometry.segment(body.polyline, target)


@router.get(
    "/{route_id}",
    response_model=RouteResponse,
    summary="Get a route",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_route(
    request: Request,
    route_id: uuid.UUID,
    service: RouteService = Depends(get_route_service),
):
    return await service.get(route_id)


@router.get(
    "/{route_id}/details",
    response_model=RouteDetailsResponse,
    summary="Route with bid statistics, driver, vehicle and segments",
    description=(
        "Driver profile and vehicle come from the profile service; they are "
        "null when that service is slow, down or has no record."
    ),
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_route_details(
    request: Request,
    route_id: uuid.UUID,
    service: RouteService = Depends(get_route_service),
):
    details = await service.get_details(route_id)
    return RouteDetailsResponse.model_validate(details)


@router.patch(
    "/{route_id}",
    response_model=RouteResponse,
    summary="Update a route",
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def update_route(
    request: Request,
    route_id: uuid.UUID,
    body: RouteUpdateRequest,
    driver_id: uuid.UUID = Query(..., description="Acting driver"),
    service: RouteService = Depends(get_route_service),
):
    return await service.update(route_id, driver_id, body.model_dump(exclude_unset=True))


@router.delete(
    "/{route_id}",
    status_code=204,
    summary="Delete a route",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def delete_route(
    request: Request,
    route_id: uuid.UUID,
    service: RouteService = Depends(get_route_service),
):
    await service.delete(route_id)
    return Response(status_code=204)


@router.get(
    "/{route_id}/segments",
    response_model=list[SegmentResponse],
    summary="Labelled segments of a stored route",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_route_segments(
    request: Request,
    route_id: uuid.UUID,
    segment_distance_km: Optional[float] = Query(None, gt=0),
    service: RouteService = Depends(get_route_service),
):
    return await service.segments(route_id, segment_distance_km)


@router.get(
    "/{route_id}/price-suggestion",
    response_model=PricePredictionResponse,
    summary="Suggested price band for a route",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_price_suggestion(
    request: Request,
    route_id: uuid.UUID,
    pricing: PriceSuggestionService = Depends(get_pricing_service),
):
    return await pricing.suggest(route_id)
