"""FastAPI dependency injection helpers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backhaul.container import Container
from backhaul.infrastructure.database import async_session_factory
from backhaul.services.bids import BidService
from backhaul.services.pricing import PriceSuggestionService
from backhaul.services.routes import RouteService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_pricing_service(
    db: AsyncSession = Depends(get_db),
    container: Container = Depends(get_container),
) -> PriceSuggestionService:
    return PriceSuggestionService(
        db,
        container.history,
        container.price_calculator(),
        timeout_seconds=container.settings.history_timeout_seconds,
    )


def get_route_service(
    db: AsyncSession = Depends(get_db),
    container: Container = Depends(get_container),
    pricing: PriceSuggestionService = Depends(get_pricing_service),
) -> RouteService:
    return RouteService(
        db,
        container.geometry,
        pricing,
        container.settings,
        profiles=container.profiles,
    )


def get_bid_service(
    db: AsyncSession = Depends(get_db),
    container: Container = Depends(get_container),
) -> BidService:
    return BidService(
        db,
        redis=container.redis,
        lock_ttl_seconds=container.settings.lock_ttl_seconds,
        lock_wait_seconds=container.settings.lock_wait_seconds,
    )
