"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health -- database and Redis reachability
"""

import logging

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backhaul.api.dependencies import get_container, get_db
from backhaul.api.schemas import HealthResponse
from backhaul.container import Container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(
    db: AsyncSession = Depends(get_db),
    container: Container = Depends(get_container),
):
    result = HealthResponse()
    try:
        await db.execute(text("SELECT 1"))
    except (OSError, SQLAlchemyError):
        logger.warning("Health check: database unreachable", exc_info=True)
        result.status = result.database = "degraded"

    if container.redis is not None:
        try:
            await container.redis.ping()
            result.redis = "ok"
        except (OSError, RedisError):
            logger.warning("Health check: redis unreachable", exc_info=True)
            result.status = result.redis = "degraded"
    return result
