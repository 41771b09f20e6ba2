"""
Ride request endpoints
======================

POST /api/v1/ride-requests/{request_id}/accept   -- owner accepts; ride -> confirmed
POST /api/v1/ride-requests/{request_id}/reject   -- owner rejects one request
POST /api/v1/ride-requests/{request_id}/withdraw -- requester withdraws
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import Identity, get_current_user, get_lifecycle_manager
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import ErrorResponse, RideRequestResponse, RideResponse
from src.services.ride_lifecycle import RideLifecycleManager

router = APIRouter(
    prefix="/ride-requests",
    tags=["ride-requests"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


@router.post(
    "/{request_id}/accept",
    response_model=RideResponse,
    summary="Accept a request",
    description=(
        "Confirms the ride with the requester, generates the ride OTP and "
        "rejects every other pending request on the ride in the same commit."
    ),
)
@limiter.limit(RATE_LIMIT)
async def accept_request(
    request: Request,
    request_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.accept_request(user.id, request_id)
    return RideResponse.for_viewer(ride, user.id)


@router.post(
    "/{request_id}/reject",
    response_model=RideRequestResponse,
    summary="Reject a request",
)
@limiter.limit(RATE_LIMIT)
async def reject_request(
    request: Request,
    request_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.reject_request(user.id, request_id)


@router.post(
    "/{request_id}/withdraw",
    response_model=RideRequestResponse,
    summary="Withdraw your own request",
)
@limiter.limit(RATE_LIMIT)
async def withdraw_request(
    request: Request,
    request_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.withdraw_request(user.id, request_id)
