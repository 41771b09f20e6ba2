"""Lifecycle errors.  Every error carries a stable reason ``code``."""


class LifecycleError(Exception):
    """Base class for rejected ride operations."""

    code = "lifecycle_error"

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class RideNotFoundError(LifecycleError):
    """Ride not found."""

    code = "not_found"


class RequestNotFoundError(LifecycleError):
    """Ride request not found."""

    code = "not_found"


class NotAuthorizedError(LifecycleError):
    """Actor is not allowed to perform this operation on the ride."""

    code = "not_authorized"


class InvalidStateTransition(LifecycleError):
    """Raised when a ride status change violates the state machine."""

    code = "invalid_transition"


class DuplicateRequestError(LifecycleError):
    """A pending request from this user already exists for the ride."""

    code = "duplicate_request"


class StaleRideStateError(LifecycleError):
    """The ride changed while the operation was in flight."""

    code = "stale_state"


class OtpValidationError(LifecycleError):
    """Raised for malformed or mismatching ride OTPs."""

    code = "otp_mismatch"


class StoreFailureError(LifecycleError):
    """The backing store failed to commit the batch."""

    code = "store_failure"


class InvalidMessageError(LifecycleError):
    """Chat message text is empty or too long."""

    code = "invalid_message"
