"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (OFFERING | PENDING -> CONFIRMED -> IN_PROGRESS -> COMPLETED, with
  CANCELLED reachable from the open, confirmed and in-progress states).
- **Two-sided handshake**: starting and completing a trip each need a
  confirmation from both the driver and the passenger; the status only
  moves once both flags are set.
- The ride's *owner* is whoever created it (``created_by``).  A driver's
  offer starts as OFFERING, a passenger's request starts as PENDING, and a
  cancelled confirmation resets the ride to that origin state.

None of these methods touch storage.  A method either raises before
mutating anything or applies all of its changes.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .enums import (
    ACTIVE_STATUSES,
    OPEN_STATUSES,
    REQUEST_TRANSITIONS,
    RIDE_TRANSITIONS,
    NotificationType,
    ParticipantRole,
    RequestStatus,
    RideStatus,
    VehicleType,
)
from .exceptions import (
    InvalidStateTransition,
    NotAuthorizedError,
    OtpValidationError,
)

OTP_MIN = 1000
OTP_MAX = 9999


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp(previous: Optional[str] = None) -> str:
    """Draw a 4-digit code from [1000, 9999] that differs from *previous*."""
    while True:
        otp = str(random.randint(OTP_MIN, OTP_MAX))
        if otp != previous:
            return otp


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[int] = None
    driver_id: Optional[str] = None
    passenger_id: Optional[str] = None
    participant_ids: list[str] = field(default_factory=list)
    status: RideStatus = RideStatus.OFFERING
    from_location: str = ""
    to_location: str = ""
    date_time: Optional[datetime] = None
    shared_cost: float = 0.0
    vehicle_type: Optional[VehicleType] = None
    ride_otp: Optional[str] = None
    last_otp: Optional[str] = None
    otp_verified: bool = False
    rider_started: bool = False
    passenger_started: bool = False
    rider_completed: bool = False
    passenger_completed: bool = False
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    # ── Creation ──────────────────────────────────────────────────

    @classmethod
    def offer(cls, driver_id: str, **details) -> Ride:
        """A driver posts a ride offer looking for a passenger."""
        return cls(
            driver_id=driver_id,
            participant_ids=[driver_id],
            status=RideStatus.OFFERING,
            created_by=driver_id,
            **details,
        )

    @classmethod
    def request(cls, passenger_id: str, **details) -> Ride:
        """A passenger posts a ride request looking for a driver."""
        return cls(
            passenger_id=passenger_id,
            participant_ids=[passenger_id],
            status=RideStatus.PENDING,
            created_by=passenger_id,
            **details,
        )

    # ── Roles & access ────────────────────────────────────────────

    @property
    def owner_role(self) -> ParticipantRole:
        if self.created_by is not None and self.created_by == self.driver_id:
            return ParticipantRole.DRIVER
        return ParticipantRole.PASSENGER

    @property
    def origin_status(self) -> RideStatus:
        if self.owner_role is ParticipantRole.DRIVER:
            return RideStatus.OFFERING
        return RideStatus.PENDING

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def role_of(self, actor_id: Optional[str]) -> Optional[ParticipantRole]:
        if actor_id is None:
            return None
        if actor_id == self.driver_id:
            return ParticipantRole.DRIVER
        if actor_id == self.passenger_id:
            return ParticipantRole.PASSENGER
        return None

    def other_participant(self, actor_id: str) -> Optional[str]:
        if actor_id == self.driver_id:
            return self.passenger_id
        if actor_id == self.passenger_id:
            return self.driver_id
        return None

    def can_access(self, actor_id: Optional[str]) -> bool:
        return actor_id is not None and actor_id in self.participant_ids

    def can_chat(self, actor_id: Optional[str]) -> bool:
        return self.can_access(actor_id) and self.status in ACTIVE_STATUSES

    def _require_role(self, actor_id: str) -> ParticipantRole:
        role = self.role_of(actor_id)
        if role is None or not self.can_access(actor_id):
            raise NotAuthorizedError("Only ride participants can do this")
        return role

    # ── Transitions ───────────────────────────────────────────────

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = RIDE_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def confirm_match(
        self, actor_id: str, requester_id: str, now: Optional[datetime] = None
    ) -> None:
        """Owner accepts *requester_id* as the counterpart; ride -> CONFIRMED."""
        if actor_id != self.created_by:
            raise NotAuthorizedError("Only the ride owner can accept requests")
        if not self.is_open:
            raise InvalidStateTransition(
                f"Ride is {self.status.value}; requests can no longer be accepted"
            )
        if requester_id == self.created_by:
            raise InvalidStateTransition("A ride owner cannot join their own ride")

        self.transition_to(RideStatus.CONFIRMED)
        if self.owner_role is ParticipantRole.DRIVER:
            self.passenger_id = requester_id
        else:
            self.driver_id = requester_id
        self.participant_ids = [self.driver_id, self.passenger_id]
        self._clear_handshake()
        self.ride_otp = generate_otp(previous=self.ride_otp or self.last_otp)
        self.accepted_at = now or utcnow()

    def verify_otp(self, actor_id: str, code: str) -> None:
        """Driver submits the code the passenger disclosed in person."""
        if self._require_role(actor_id) is not ParticipantRole.DRIVER:
            raise NotAuthorizedError("Only the driver can verify the ride OTP")
        if self.status is not RideStatus.CONFIRMED or self.otp_verified:
            raise InvalidStateTransition(
                "OTP can only be verified once, on a confirmed ride"
            )
        code = (code or "").strip()
        if len(code) != 4 or not code.isdigit():
            raise OtpValidationError("OTP must be exactly 4 digits", code="otp_malformed")
        if code != self.ride_otp:
            raise OtpValidationError("OTP does not match", code="otp_mismatch")
        self.otp_verified = True

    def confirm_start(self, actor_id: str) -> bool:
        """Set the actor's start flag.  Returns True once the trip starts."""
        role = self._require_role(actor_id)
        if self.status is not RideStatus.CONFIRMED:
            raise InvalidStateTransition(
                f"Cannot start a ride that is {self.status.value}"
            )
        if not self.otp_verified:
            raise InvalidStateTransition("OTP must be verified before starting")

        if role is ParticipantRole.DRIVER:
            self.rider_started = True
        else:
            self.passenger_started = True

        if self.rider_started and self.passenger_started:
            self.transition_to(RideStatus.IN_PROGRESS)
            return True
        return False

    def confirm_completion(
        self, actor_id: str, now: Optional[datetime] = None
    ) -> bool:
        """Set the actor's completion flag.  Returns True once completed."""
        role = self._require_role(actor_id)
        if self.status is not RideStatus.IN_PROGRESS:
            raise InvalidStateTransition(
                f"Cannot complete a ride that is {self.status.value}"
            )

        if role is ParticipantRole.DRIVER:
            self.rider_completed = True
        else:
            self.passenger_completed = True

        if self.rider_completed and self.passenger_completed:
            self.transition_to(RideStatus.COMPLETED)
            self.completed_at = now or utcnow()
            return True
        return False

    def cancel(self, actor_id: str, now: Optional[datetime] = None) -> RideStatus:
        """
        Apply the cancellation policy and return the resulting status.

        * open ride, owner            -> CANCELLED
        * CONFIRMED, either party     -> back to the origin state
        * IN_PROGRESS, either party   -> CANCELLED
        """
        self._require_role(actor_id)

        if self.is_open:
            if actor_id != self.created_by:
                raise NotAuthorizedError("Only the ride owner can cancel an open ride")
            self._mark_cancelled(actor_id, now)
        elif self.status is RideStatus.CONFIRMED:
            self._reopen()
        elif self.status is RideStatus.IN_PROGRESS:
            self._mark_cancelled(actor_id, now)
        else:
            raise InvalidStateTransition(
                f"Cannot cancel a ride that is {self.status.value}"
            )
        return self.status

    def _reopen(self) -> None:
        origin = self.origin_status
        self.transition_to(origin)
        if origin is RideStatus.OFFERING:
            self.passenger_id = None
        else:
            self.driver_id = None
        self.participant_ids = [self.created_by]
        self._clear_handshake()
        self.accepted_at = None

    def _mark_cancelled(self, actor_id: str, now: Optional[datetime]) -> None:
        self.transition_to(RideStatus.CANCELLED)
        self._clear_handshake()
        self.cancelled_by = actor_id
        self.cancelled_at = now or utcnow()

    def _clear_handshake(self) -> None:
        # remembered so the next confirmation never reissues the same code
        if self.ride_otp:
            self.last_otp = self.ride_otp
        self.ride_otp = None
        self.otp_verified = False
        self.rider_started = False
        self.passenger_started = False
        self.rider_completed = False
        self.passenger_completed = False


@dataclass
class RideRequest:
    """A bid by the counterpart to join an open ride."""

    id: Optional[int] = None
    ride_id: int = 0
    requester_id: str = ""
    status: RequestStatus = RequestStatus.PENDING
    created_at: Optional[datetime] = None

    def transition_to(self, new_status: RequestStatus) -> None:
        allowed = REQUEST_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot move request from {self.status.value} to {new_status.value}"
            )
        self.status = new_status


@dataclass
class Notification:
    user_id: str
    ride_id: Optional[int]
    message: str
    type: NotificationType
    is_read: bool = False
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class ChatMessage:
    ride_id: int
    sender_id: str
    text: str
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class EmergencyAlert:
    ride_id: int
    user_id: str
    message: str
    emergency_contact: Optional[str] = None
    notified_user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None
