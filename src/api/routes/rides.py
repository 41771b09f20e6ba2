"""
Ride endpoints
==============

POST  /api/v1/rides/offers                -- driver posts an offer (OFFERING)
POST  /api/v1/rides/service-requests      -- passenger posts a request (PENDING)
GET   /api/v1/rides/open                  -- browse open rides of other users
GET   /api/v1/rides/mine                  -- rides the caller takes part in
GET   /api/v1/rides/{ride_id}             -- ride detail
POST  /api/v1/rides/{ride_id}/requests    -- ask to join an open ride
GET   /api/v1/rides/{ride_id}/requests    -- owner lists pending requests
POST  /api/v1/rides/{ride_id}/otp/verify  -- driver submits the passenger's OTP
POST  /api/v1/rides/{ride_id}/start       -- confirm trip start (both parties)
POST  /api/v1/rides/{ride_id}/complete    -- confirm trip completion (both parties)
PATCH /api/v1/rides/{ride_id}/cancel      -- cancel / reopen per ride stage
POST  /api/v1/rides/{ride_id}/sos         -- raise an emergency alert

Every endpoint takes the caller from ``X-User-Id``.  Rejected operations
raise ``LifecycleError`` subclasses, rendered by the app-level handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import Identity, get_current_user, get_lifecycle_manager
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    EmergencyAlertResponse,
    ErrorResponse,
    OtpVerifyRequest,
    RideCreateRequest,
    RideRequestResponse,
    RideResponse,
    SosRequest,
)
from src.domain.enums import VehicleType
from src.services.ride_lifecycle import RideLifecycleManager

router = APIRouter(
    prefix="/rides",
    tags=["rides"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


@router.post(
    "/offers",
    status_code=201,
    response_model=RideResponse,
    summary="Offer a ride as the driver",
)
@limiter.limit(RATE_LIMIT)
async def offer_ride(
    request: Request,
    body: RideCreateRequest,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.offer_ride(user.id, **body.model_dump())
    return RideResponse.for_viewer(ride, user.id)


@router.post(
    "/service-requests",
    status_code=201,
    response_model=RideResponse,
    summary="Request a ride as the passenger",
)
@limiter.limit(RATE_LIMIT)
async def post_ride_request(
    request: Request,
    body: RideCreateRequest,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.post_ride_request(user.id, **body.model_dump())
    return RideResponse.for_viewer(ride, user.id)


@router.get(
    "/open",
    response_model=list[RideResponse],
    summary="Browse open rides posted by other users",
)
@limiter.limit(RATE_LIMIT)
async def list_open_rides(
    request: Request,
    from_location: Optional[str] = None,
    to_location: Optional[str] = None,
    vehicle_type: Optional[VehicleType] = None,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    rides = await manager.list_open_rides(
        user.id,
        from_location=from_location,
        to_location=to_location,
        vehicle_type=vehicle_type,
    )
    return [RideResponse.for_viewer(r, user.id) for r in rides]


@router.get(
    "/mine",
    response_model=list[RideResponse],
    summary="Rides the caller participates in",
)
@limiter.limit(RATE_LIMIT)
async def list_my_rides(
    request: Request,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    rides = await manager.list_my_rides(user.id)
    return [RideResponse.for_viewer(r, user.id) for r in rides]


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.get_ride(user.id, ride_id)
    return RideResponse.for_viewer(ride, user.id)


@router.post(
    "/{ride_id}/requests",
    status_code=201,
    response_model=RideRequestResponse,
    summary="Ask to join an open ride",
)
@limiter.limit(RATE_LIMIT)
async def request_to_join(
    request: Request,
    ride_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.request_to_join(user.id, ride_id)


@router.get(
    "/{ride_id}/requests",
    response_model=list[RideRequestResponse],
    summary="Pending requests on the caller's ride",
)
@limiter.limit(RATE_LIMIT)
async def list_requests(
    request: Request,
    ride_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.list_requests(user.id, ride_id)


@router.post(
    "/{ride_id}/otp/verify",
    response_model=RideResponse,
    summary="Verify the ride OTP",
    description=(
        "The passenger reads the 4-digit code out in person; the driver "
        "submits it.  A mismatch returns 422 and leaves the ride unchanged."
    ),
    responses={422: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def verify_otp(
    request: Request,
    ride_id: int,
    body: OtpVerifyRequest,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.verify_otp(user.id, ride_id, body.code)
    return RideResponse.for_viewer(ride, user.id)


@router.post(
    "/{ride_id}/start",
    response_model=RideResponse,
    summary="Confirm trip start",
    description="The ride becomes in-progress once both participants confirm.",
)
@limiter.limit(RATE_LIMIT)
async def confirm_start(
    request: Request,
    ride_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.confirm_start(user.id, ride_id)
    return RideResponse.for_viewer(ride, user.id)


@router.post(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Confirm trip completion",
    description="The ride becomes completed once both participants confirm.",
)
@limiter.limit(RATE_LIMIT)
async def confirm_completion(
    request: Request,
    ride_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.confirm_completion(user.id, ride_id)
    return RideResponse.for_viewer(ride, user.id)


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "An open ride is cancelled by its owner.  A confirmed ride is "
        "reopened for new requests.  An in-progress ride is cancelled."
    ),
)
@limiter.limit(RATE_LIMIT)
async def cancel_ride(
    request: Request,
    ride_id: int,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    ride = await manager.cancel_ride(user.id, ride_id)
    return RideResponse.for_viewer(ride, user.id)


@router.post(
    "/{ride_id}/sos",
    status_code=202,
    response_model=EmergencyAlertResponse,
    summary="Raise an emergency alert",
)
@limiter.limit(RATE_LIMIT)
async def raise_sos(
    request: Request,
    ride_id: int,
    body: Optional[SosRequest] = None,
    user: Identity = Depends(get_current_user),
    manager: RideLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.raise_emergency_alert(
        user.id, ride_id, body.message if body else None
    )
