"""
Bid endpoints
=============

POST /api/v1/routes/{route_id}/bids               -- place a bid (201)
POST /api/v1/routes/{route_id}/bids/with-request  -- delivery request + bid, atomically
GET  /api/v1/bids/{bid_id}                        -- bid status
POST /api/v1/bids/{bid_id}/accept                 -- driver accepts; competitors rejected
POST /api/v1/bids/{bid_id}/reject                 -- driver rejects
POST /api/v1/bids/{bid_id}/withdraw               -- customer withdraws
POST /api/v1/bids/{bid_id}/expire                 -- expiry sweeper hook

Decision events are published after the response; a notification failure
never undoes a committed decision.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from backhaul.api.dependencies import get_bid_service, get_container
from backhaul.api.middleware import limiter
from backhaul.api.schemas import (
    BidAcceptResponse,
    BidCreateRequest,
    BidResponse,
    BidWithRequestCreate,
    BidWithRequestResponse,
    CustomerDecision,
    DriverDecision,
    ErrorResponse,
)
from backhaul.config import settings
from backhaul.container import Container
from backhaul.services.bids import BidService

router = APIRouter(tags=["bids"])

_CONFLICTS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "/routes/{route_id}/bids",
    status_code=201,
    response_model=BidResponse,
    summary="Place a bid on an open route",
    responses=_CONFLICTS,
)
@limiter.limit(settings.rate_limit)
async def place_bid(
    request: Request,
    route_id: uuid.UUID,
    body: BidCreateRequest,
    service: BidService = Depends(get_bid_service),
):
    return await service.place_bid(
        route_id, body.customer_id, body.offered_price, body.special_instructions
    )


@router.post(
    "/routes/{route_id}/bids/with-request",
    status_code=201,
    response_model=BidWithRequestResponse,
    summary="Create a delivery request and bid with it",
    description="Both records are written in one transaction or not at all.",
    responses=_CONFLICTS,
)
@limiter.limit(settings.rate_limit)
async def place_bid_with_request(
    request: Request,
    route_id: uuid.UUID,
    body: BidWithRequestCreate,
    service: BidService = Depends(get_bid_service),
):
    bid, request_id = await service.place_bid_with_request(
        route_id,
        body.delivery_request.model_dump(exclude_none=True),
        body.model_dump(exclude={"delivery_request"}),
    )
    return BidWithRequestResponse(
        bid=BidResponse.model_validate(bid), delivery_request_id=request_id
    )


@router.get(
    "/bids/{bid_id}",
    response_model=BidResponse,
    summary="Get a bid",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_bid(
    request: Request,
    bid_id: uuid.UUID,
    service: BidService = Depends(get_bid_service),
):
    return await service.get(bid_id)


@router.post(
    "/bids/{bid_id}/accept",
    response_model=BidAcceptResponse,
    summary="Accept a bid",
    description=(
        "Books the route, accepts this bid and rejects every other pending "
        "bid on the route in one transaction."
    ),
    responses={403: {"model": ErrorResponse}, **_CONFLICTS},
)
@limiter.limit(settings.rate_limit)
async def accept_bid(
    request: Request,
    bid_id: uuid.UUID,
    body: DriverDecision,
    background: BackgroundTasks,
    service: BidService = Depends(get_bid_service),
    container: Container = Depends(get_container),
):
    bid, rejected = await service.accept(bid_id, body.driver_id)
    background.add_task(container.notifier.bid_accepted, bid)
    background.add_task(container.notifier.bids_rejected, rejected)
    return BidAcceptResponse(
        bid=BidResponse.model_validate(bid),
        rejected_bid_ids=[b.id for b in rejected],
    )


@router.post(
    "/bids/{bid_id}/reject",
    response_model=BidResponse,
    summary="Reject a bid",
    responses={403: {"model": ErrorResponse}, **_CONFLICTS},
)
@limiter.limit(settings.rate_limit)
async def reject_bid(
    request: Request,
    bid_id: uuid.UUID,
    body: DriverDecision,
    background: BackgroundTasks,
    service: BidService = Depends(get_bid_service),
    container: Container = Depends(get_container),
):
    bid = await service.reject(bid_id, body.driver_id)
    background.add_task(container.notifier.bids_rejected, [bid])
    return bid


@router.post(
    "/bids/{bid_id}/withdraw",
    response_model=BidResponse,
    summary="Withdraw a bid",
    responses={403: {"model": ErrorResponse}, **_CONFLICTS},
)
@limiter.limit(settings.rate_limit)
async def withdraw_bid(
    request: Request,
    bid_id: uuid.UUID,
    body: CustomerDecision,
    service: BidService = Depends(get_bid_service),
):
    return await service.withdraw(bid_id, body.customer_id)


@router.post(
    "/bids/{bid_id}/expire",
    response_model=BidResponse,
    summary="Expire a pending bid",
    responses=_CONFLICTS,
)
@limiter.limit(settings.rate_limit)
async def expire_bid(
    request: Request,
    bid_id: uuid.UUID,
    service: BidService = Depends(get_bid_service),
):
    return await service.expire(bid_id)
