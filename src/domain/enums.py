"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    OFFERING = "offering"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses.
# CONFIRMED -> OFFERING / PENDING is the cancellation reset back to the
# ride's origin state.
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.OFFERING: {RideStatus.CONFIRMED, RideStatus.CANCELLED},
    RideStatus.PENDING: {RideStatus.CONFIRMED, RideStatus.CANCELLED},
    RideStatus.CONFIRMED: {
        RideStatus.IN_PROGRESS,
        RideStatus.OFFERING,
        RideStatus.PENDING,
    },
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

# Unmatched rides that accept join requests
OPEN_STATUSES = frozenset({RideStatus.OFFERING, RideStatus.PENDING})

# Matched rides where chat and SOS are available
ACTIVE_STATUSES = frozenset({RideStatus.CONFIRMED, RideStatus.IN_PROGRESS})


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


REQUEST_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.PENDING: {
        RequestStatus.ACCEPTED,
        RequestStatus.REJECTED,
        RequestStatus.CANCELLED,
    },
    RequestStatus.ACCEPTED: {RequestStatus.CANCELLED, RequestStatus.REJECTED},
    RequestStatus.REJECTED: set(),
    RequestStatus.CANCELLED: set(),
}


class ParticipantRole(str, enum.Enum):
    DRIVER = "driver"
    PASSENGER = "passenger"


class NotificationType(str, enum.Enum):
    NEW_REQUEST = "new_request"
    RIDE_ACCEPTED = "ride_accepted"
    REQUEST_REJECTED = "request_rejected"
    RIDE_REOPENED = "ride_reopened"
    RIDE_CANCELLED = "ride_cancelled"
    RIDE_STARTED = "ride_started"
    RIDE_COMPLETED = "ride_completed"
    EMERGENCY_ALERT = "emergency_alert"


class VehicleType(str, enum.Enum):
    BIKE = "Bike"
    SCOOTY = "Scooty"
