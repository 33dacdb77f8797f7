"""
Health check API endpoints.

Routes: GET /health, GET /health/db

Dependencies: livedesk.boundary
System role: Health check HTTP API
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.boundary.db import get_async_db
from livedesk.boundary.realtime.change_feed import ChangeFeed, get_change_feed

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    message: str
    feed_subscribers: int | None = None


router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check(feed: ChangeFeed = Depends(get_change_feed)) -> HealthResponse:
    """Basic health check."""
    return HealthResponse(
        status="healthy",
        message="Server Healthy",
        feed_subscribers=feed.subscriber_count,
    )


@router.get("/db", response_model=HealthResponse)
async def health_check_db(db: AsyncSession = Depends(get_async_db)) -> HealthResponse:
    """Database health check."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        )
    return HealthResponse(status="healthy", message="Database connection OK")
