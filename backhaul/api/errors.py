"""Maps the domain error taxonomy onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from backhaul.domain.errors import (
    AccessDenied,
    BidNotFound,
    ConflictError,
    DependencyUnavailable,
    DomainError,
    DuplicatePendingBid,
    InvalidGeometry,
    InvalidTransition,
    RouteNotBiddable,
    RouteNotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[DomainError], int] = {
    ValidationError: 422,
    InvalidGeometry: 422,
    RouteNotFound: 404,
    BidNotFound: 404,
    AccessDenied: 403,
    InvalidTransition: 409,
    DuplicatePendingBid: 409,
    RouteNotBiddable: 409,
    ConflictError: 409,
    DependencyUnavailable: 503,
}


def status_for(exc: DomainError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"detail": exc.message, "code": exc.code, **exc.context}
    return JSONResponse(status_code=status, content=jsonable_encoder(body))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
