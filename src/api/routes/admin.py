"""
Admin / observability endpoints
===============================

GET /api/v1/admin/ride-stats -- ride counts per lifecycle status
GET /api/v1/admin/health     -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import HealthResponse, RideStatsResponse
from src.domain.enums import RideStatus
from src.infrastructure.repositories import RideRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/ride-stats",
    response_model=RideStatsResponse,
    summary="Ride counts per lifecycle status",
)
@limiter.limit(RATE_LIMIT)
async def get_ride_stats(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    counts = await RideRepository(db).count_by_status()
    by_status = {status.value: counts.get(status, 0) for status in RideStatus}
    return RideStatsResponse(total=sum(by_status.values()), by_status=by_status)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
