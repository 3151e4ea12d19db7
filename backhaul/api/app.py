"""
FastAPI application factory.

* Registers routes for routes, bids and admin.
* Builds the process-wide ``Container`` (HTTP client, Redis pool,
  collaborators) on startup and closes it on shutdown, unless one is
  injected (tests).
* Translates domain errors into JSON responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from backhaul.api.errors import register_error_handlers
from backhaul.api.middleware import limiter
from backhaul.api.routes import admin, bids, routes
from backhaul.config import settings
from backhaul.container import Container, build_container

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container is not None:
            app.state.container = container
            yield
            return
        app.state.container = build_container(settings)
        logger.info("Backhaul API started")
        try:
            yield
        finally:
            await app.state.container.aclose()
            logger.info("Backhaul API stopped")

    app = FastAPI(
        title="Backhaul Freight Matching API",
        description=(
            "Drivers publish return trips, customers bid on the spare "
            "capacity.  Suggests price bands from accepted-bid history and "
            "guarantees a single accepted bid per route under concurrent "
            "requests."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    if container is not None:
        # ASGITransport does not run lifespan events.
        app.state.container = container

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    # Routers
    app.include_router(routes.router, prefix="/api/v1")
    app.include_router(bids.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
