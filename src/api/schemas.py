"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field, StringConstraints

from src.domain.entities import Ride
from src.domain.enums import (
    NotificationType,
    ParticipantRole,
    RequestStatus,
    RideStatus,
    VehicleType,
)


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    from_location: str = Field(..., min_length=1, max_length=255)
    to_location: str = Field(..., min_length=1, max_length=255)
    date_time: Optional[datetime] = None
    shared_cost: float = Field(0.0, ge=0)
    vehicle_type: Optional[VehicleType] = None


class OtpVerifyRequest(BaseModel):
    code: str = Field(..., max_length=16, description="The 4-digit code shown to the passenger.")


class SosRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=500)


class ChatMessageCreate(BaseModel):
    text: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)
    ]


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, max_length=120)
    email: Optional[str] = Field(None, max_length=255)
    emergency_contact: Optional[str] = Field(
        None,
        max_length=255,
        description="Notified when the user presses SOS, e.g. 'Rohan (+91 98765 12345)'.",
    )


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    driver_id: Optional[str] = None
    passenger_id: Optional[str] = None
    participant_ids: list[str] = []
    status: RideStatus
    from_location: str
    to_location: str
    date_time: Optional[datetime] = None
    shared_cost: float
    vehicle_type: Optional[VehicleType] = None
    ride_otp: Optional[str] = Field(
        None, description="Only returned to the passenger, who shares it in person."
    )
    otp_verified: bool
    rider_started: bool
    passenger_started: bool
    rider_completed: bool
    passenger_completed: bool
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @classmethod
    def for_viewer(cls, ride: Ride, viewer_id: str) -> RideResponse:
        data = cls.model_validate(ride)
        if ride.role_of(viewer_id) is not ParticipantRole.PASSENGER:
            data.ride_otp = None
        return data


class RideRequestResponse(BaseModel):
    id: int
    ride_id: int
    requester_id: str
    status: RequestStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EmergencyAlertResponse(BaseModel):
    id: int
    ride_id: int
    user_id: str
    message: str
    emergency_contact: Optional[str] = None
    notified_user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ChatMessageResponse(BaseModel):
    id: int
    ride_id: int
    sender_id: str
    text: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationResponse(BaseModel):
    id: int
    user_id: str
    ride_id: Optional[int] = None
    message: str
    type: NotificationType
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserProfileResponse(BaseModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    emergency_contact: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RideStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
