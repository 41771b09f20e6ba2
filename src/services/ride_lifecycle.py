"""
Ride Lifecycle Manager
======================

Every public operation is one unit of work:

1. Open a session transaction (the atomic batch).
2. Re-read the ride (and request) rows inside it.
3. Let the domain entity validate and apply the transition.
4. Write all touched rows back and commit.  The ride's ``version`` column
   is part of the UPDATE predicate, so a concurrent commit in between fails
   the whole batch with ``StaleRideStateError``.
5. Only after a successful commit, hand notifications to the publisher.

The acting user is always an explicit argument; nothing here reads
ambient session state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from src.domain.entities import (
    EmergencyAlert,
    Notification,
    Ride,
    RideRequest,
    utcnow,
)
from src.domain.enums import (
    ACTIVE_STATUSES,
    NotificationType,
    RequestStatus,
    RideStatus,
    VehicleType,
)
from src.domain.exceptions import (
    DuplicateRequestError,
    InvalidStateTransition,
    LifecycleError,
    NotAuthorizedError,
    RequestNotFoundError,
    RideNotFoundError,
    StaleRideStateError,
    StoreFailureError,
)
from src.infrastructure.models import RideModel, RideRequestModel
from src.infrastructure.repositories import (
    EmergencyAlertRepository,
    RideRepository,
    RideRequestRepository,
    UserRepository,
    apply_entity,
    to_entity,
)

logger = logging.getLogger(__name__)

DEFAULT_SOS_MESSAGE = "Emergency alert raised during the ride."


class NotificationPublisher(Protocol):
    def publish(self, notifications: Iterable[Notification]) -> int: ...


@asynccontextmanager
async def unit_of_work(session_factory) -> AsyncIterator[AsyncSession]:
    """Commit on success; roll back and translate store errors."""
    async with session_factory() as session:
        try:
            async with session.begin():
                yield session
        except LifecycleError:
            raise
        except StaleDataError as exc:
            raise StaleRideStateError(
                "Ride was modified concurrently; reload and retry"
            ) from exc
        except SQLAlchemyError as exc:
            logger.exception("Ride store batch failed")
            raise StoreFailureError("Could not save changes; try again") from exc


class RideLifecycleManager:
    def __init__(self, session_factory, publisher: NotificationPublisher):
        self._session_factory = session_factory
        self._publisher = publisher

    # ── Unit of work ──────────────────────────────────────────────
    # Row locks are always taken ride first, then its requests.

    def _unit_of_work(self):
        return unit_of_work(self._session_factory)

    async def _load_ride(
        self, session: AsyncSession, ride_id: int
    ) -> tuple[RideModel, Ride]:
        model = await RideRepository(session).get_for_update(ride_id)
        if model is None:
            raise RideNotFoundError(f"Ride {ride_id} not found")
        return model, to_entity(model, Ride)

    async def _load_request(
        self, session: AsyncSession, request_id: int
    ) -> tuple[RideRequestModel, RideRequest, RideModel, Ride]:
        """Lock the request's ride, then the request itself."""
        requests = RideRequestRepository(session)
        # unlocked read, only to learn which ride to lock
        unlocked = await requests.get_by_id(request_id)
        if unlocked is None:
            raise RequestNotFoundError(f"Ride request {request_id} not found")
        ride_model, ride = await self._load_ride(session, unlocked.ride_id)
        model = await requests.get_for_update(request_id)
        if model is None:
            raise RequestNotFoundError(f"Ride request {request_id} not found")
        return model, to_entity(model, RideRequest), ride_model, ride

    def _publish(self, notifications: list[Notification]) -> None:
        if not notifications:
            return
        try:
            self._publisher.publish(notifications)
        except Exception:
            logger.exception("Failed to enqueue %d notifications", len(notifications))

    # ── Creation ──────────────────────────────────────────────────

    async def offer_ride(
        self,
        actor_id: str,
        *,
        from_location: str,
        to_location: str,
        date_time: Optional[datetime] = None,
        shared_cost: float = 0.0,
        vehicle_type: Optional[VehicleType] = None,
    ) -> Ride:
        """Driver-originated ride; starts as OFFERING."""
        ride = Ride.offer(
            actor_id,
            from_location=from_location,
            to_location=to_location,
            date_time=date_time,
            shared_cost=shared_cost,
            vehicle_type=vehicle_type,
        )
        return await self._create(ride)

    async def post_ride_request(
        self,
        actor_id: str,
        *,
        from_location: str,
        to_location: str,
        date_time: Optional[datetime] = None,
        shared_cost: float = 0.0,
        vehicle_type: Optional[VehicleType] = None,
    ) -> Ride:
        """Passenger-originated ride; starts as PENDING."""
        ride = Ride.request(
            actor_id,
            from_location=from_location,
            to_location=to_location,
            date_time=date_time,
            shared_cost=shared_cost,
            vehicle_type=vehicle_type,
        )
        return await self._create(ride)

    async def _create(self, ride: Ride) -> Ride:
        async with self._unit_of_work() as session:
            model = await RideRepository(session).create(ride)
            created = to_entity(model, Ride)
        logger.info(
            "Ride %s created by %s (%s)",
            created.id,
            created.created_by,
            created.status.value,
        )
        return created

    # ── Queries ───────────────────────────────────────────────────

    async def get_ride(self, actor_id: str, ride_id: int) -> Ride:
        """Participants can always read a ride; anyone can read an open one."""
        async with self._session_factory() as session:
            model = await RideRepository(session).get_by_id(ride_id)
            if model is None:
                raise RideNotFoundError(f"Ride {ride_id} not found")
            ride = to_entity(model, Ride)
        if not (ride.can_access(actor_id) or ride.is_open):
            raise NotAuthorizedError("You are not a participant of this ride")
        return ride

    async def list_open_rides(
        self,
        actor_id: str,
        *,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
        vehicle_type: Optional[VehicleType] = None,
    ) -> list[Ride]:
        async with self._session_factory() as session:
            models = await RideRepository(session).get_open_rides(
                exclude_owner=actor_id,
                from_location=from_location,
                to_location=to_location,
                vehicle_type=vehicle_type,
            )
            return [to_entity(m, Ride) for m in models]

    async def list_my_rides(self, actor_id: str) -> list[Ride]:
        async with self._session_factory() as session:
            models = await RideRepository(session).get_rides_for_participant(actor_id)
            return [to_entity(m, Ride) for m in models]

    async def list_requests(self, actor_id: str, ride_id: int) -> list[RideRequest]:
        """Pending requests on a ride, visible to its owner only."""
        async with self._session_factory() as session:
            model = await RideRepository(session).get_by_id(ride_id)
            if model is None:
                raise RideNotFoundError(f"Ride {ride_id} not found")
            if model.created_by != actor_id:
                raise NotAuthorizedError("Only the ride owner can see its requests")
            models = await RideRequestRepository(session).get_for_ride(
                ride_id, RequestStatus.PENDING
            )
            return [to_entity(m, RideRequest) for m in models]

    # ── Matching ──────────────────────────────────────────────────

    async def request_to_join(self, actor_id: str, ride_id: int) -> RideRequest:
        async with self._unit_of_work() as session:
            _, ride = await self._load_ride(session, ride_id)
            if not ride.is_open:
                raise InvalidStateTransition(
                    f"Ride is {ride.status.value}; it is not accepting requests"
                )
            if actor_id == ride.created_by:
                raise InvalidStateTransition("You cannot request your own ride")

            requests = RideRequestRepository(session)
            if await requests.get_pending_by_requester(ride_id, actor_id):
                raise DuplicateRequestError(
                    "You already have a pending request for this ride"
                )
            model = await requests.create(
                RideRequest(ride_id=ride_id, requester_id=actor_id)
            )
            request = to_entity(model, RideRequest)

        logger.info("Request %s on ride %s by %s", request.id, ride_id, actor_id)
        self._publish(
            [
                Notification(
                    user_id=ride.created_by,
                    ride_id=ride_id,
                    message=(
                        f"New request for your ride from {ride.from_location} "
                        f"to {ride.to_location}."
                    ),
                    type=NotificationType.NEW_REQUEST,
                )
            ]
        )
        return request

    async def withdraw_request(self, actor_id: str, request_id: int) -> RideRequest:
        async with self._unit_of_work() as session:
            model, request, _, _ = await self._load_request(session, request_id)
            if request.requester_id != actor_id:
                raise NotAuthorizedError("Only the requester can withdraw a request")
            if request.status is not RequestStatus.PENDING:
                raise InvalidStateTransition(
                    f"Request is {request.status.value}; only pending requests "
                    "can be withdrawn"
                )
            request.transition_to(RequestStatus.CANCELLED)
            apply_entity(model, request)
        return request

    async def reject_request(self, actor_id: str, request_id: int) -> RideRequest:
        async with self._unit_of_work() as session:
            model, request, _, ride = await self._load_request(session, request_id)
            if actor_id != ride.created_by:
                raise NotAuthorizedError("Only the ride owner can reject requests")
            if request.status is not RequestStatus.PENDING:
                raise InvalidStateTransition(
                    f"Request is {request.status.value}; only pending requests "
                    "can be rejected"
                )
            request.transition_to(RequestStatus.REJECTED)
            apply_entity(model, request)

        self._publish(
            [
                Notification(
                    user_id=request.requester_id,
                    ride_id=ride.id,
                    message=(
                        f"Your request for the ride from {ride.from_location} "
                        "was not accepted."
                    ),
                    type=NotificationType.REQUEST_REJECTED,
                )
            ]
        )
        return request

    async def accept_request(self, actor_id: str, request_id: int) -> Ride:
        """
        Accept one request and reject every other pending one, atomically.

        The ride moves to CONFIRMED with a fresh OTP; each affected requester
        is notified after the batch commits.
        """
        async with self._unit_of_work() as session:
            requests = RideRequestRepository(session)
            request_model, request, ride_model, ride = await self._load_request(
                session, request_id
            )

            if actor_id != ride.created_by:
                raise NotAuthorizedError("Only the ride owner can accept requests")
            if request.status is not RequestStatus.PENDING:
                raise InvalidStateTransition(
                    f"Request is {request.status.value}; only pending requests "
                    "can be accepted"
                )

            ride.confirm_match(actor_id, request.requester_id, now=utcnow())
            request.transition_to(RequestStatus.ACCEPTED)
            apply_entity(request_model, request)

            notifications = [
                Notification(
                    user_id=request.requester_id,
                    ride_id=ride.id,
                    message=(
                        f"Your request for the ride from {ride.from_location} "
                        f"to {ride.to_location} has been accepted!"
                    ),
                    type=NotificationType.RIDE_ACCEPTED,
                )
            ]
            for other_model in await requests.get_for_ride(
                ride.id, RequestStatus.PENDING, for_update=True
            ):
                if other_model.id == request_model.id:
                    continue
                other = to_entity(other_model, RideRequest)
                other.transition_to(RequestStatus.REJECTED)
                apply_entity(other_model, other)
                notifications.append(
                    Notification(
                        user_id=other.requester_id,
                        ride_id=ride.id,
                        message=(
                            f"Your request for the ride from {ride.from_location} "
                            "was not accepted."
                        ),
                        type=NotificationType.REQUEST_REJECTED,
                    )
                )

            apply_entity(ride_model, ride)

        logger.info(
            "Ride %s confirmed: request %s accepted, %d rejected",
            ride.id,
            request_id,
            len(notifications) - 1,
        )
        self._publish(notifications)
        return ride

    # ── Two-sided handshake ───────────────────────────────────────

    async def verify_otp(self, actor_id: str, ride_id: int, code: str) -> Ride:
        async with self._unit_of_work() as session:
            model, ride = await self._load_ride(session, ride_id)
            ride.verify_otp(actor_id, code)
            apply_entity(model, ride)
        logger.info("OTP verified for ride %s", ride_id)
        return ride

    async def confirm_start(self, actor_id: str, ride_id: int) -> Ride:
        async with self._unit_of_work() as session:
            model, ride = await self._load_ride(session, ride_id)
            started = ride.confirm_start(actor_id)
            apply_entity(model, ride)

        if started:
            logger.info("Ride %s is in progress", ride_id)
            self._publish(
                self._notify_both(
                    ride, "Your ride has started. Stay safe!", NotificationType.RIDE_STARTED
                )
            )
        return ride

    async def confirm_completion(self, actor_id: str, ride_id: int) -> Ride:
        async with self._unit_of_work() as session:
            model, ride = await self._load_ride(session, ride_id)
            completed = ride.confirm_completion(actor_id, now=utcnow())
            apply_entity(model, ride)

        if completed:
            logger.info("Ride %s completed", ride_id)
            self._publish(
                self._notify_both(
                    ride,
                    f"Your ride from {ride.from_location} to {ride.to_location} "
                    "is complete.",
                    NotificationType.RIDE_COMPLETED,
                )
            )
        return ride

    @staticmethod
    def _notify_both(
        ride: Ride, message: str, type_: NotificationType
    ) -> list[Notification]:
        return [
            Notification(user_id=user_id, ride_id=ride.id, message=message, type=type_)
            for user_id in (ride.driver_id, ride.passenger_id)
            if user_id
        ]

    # ── Cancellation ──────────────────────────────────────────────

    async def cancel_ride(self, actor_id: str, ride_id: int) -> Ride:
        """
        Cancel or reopen a ride depending on its stage.

        Refused attempts raise before anything is written, so the stored
        ride is left exactly as it was.
        """
        notifications: list[Notification] = []
        async with self._unit_of_work() as session:
            model, ride = await self._load_ride(session, ride_id)
            requests = RideRequestRepository(session)
            previous = ride.status
            counterpart = ride.other_participant(actor_id)

            ride.cancel(actor_id, now=utcnow())

            if previous in (RideStatus.OFFERING, RideStatus.PENDING):
                for pending_model in await requests.get_for_ride(
                    ride.id, RequestStatus.PENDING, for_update=True
                ):
                    pending = to_entity(pending_model, RideRequest)
                    pending.transition_to(RequestStatus.REJECTED)
                    apply_entity(pending_model, pending)
                    notifications.append(
                        Notification(
                            user_id=pending.requester_id,
                            ride_id=ride.id,
                            message=(
                                f"The ride from {ride.from_location} has been "
                                "cancelled by its owner."
                            ),
                            type=NotificationType.RIDE_CANCELLED,
                        )
                    )
            elif previous is RideStatus.CONFIRMED:
                by_requester = actor_id != ride.created_by
                outcome = (
                    RequestStatus.CANCELLED if by_requester else RequestStatus.REJECTED
                )
                for accepted_model in await requests.get_for_ride(
                    ride.id, RequestStatus.ACCEPTED, for_update=True
                ):
                    accepted = to_entity(accepted_model, RideRequest)
                    accepted.transition_to(outcome)
                    apply_entity(accepted_model, accepted)
                if counterpart:
                    notifications.append(
                        Notification(
                            user_id=counterpart,
                            ride_id=ride.id,
                            message=(
                                f"The match for the ride from {ride.from_location} "
                                "was cancelled; the ride is open again."
                            ),
                            type=NotificationType.RIDE_REOPENED,
                        )
                    )
            elif counterpart:
                notifications.append(
                    Notification(
                        user_id=counterpart,
                        ride_id=ride.id,
                        message=(
                            f"The ride from {ride.from_location} was cancelled "
                            "while in progress."
                        ),
                        type=NotificationType.RIDE_CANCELLED,
                    )
                )

            apply_entity(model, ride)

        logger.info(
            "Ride %s cancelled by %s: %s -> %s",
            ride_id,
            actor_id,
            previous.value,
            ride.status.value,
        )
        self._publish(notifications)
        return ride

    # ── Safety ────────────────────────────────────────────────────

    async def raise_emergency_alert(
        self, actor_id: str, ride_id: int, message: Optional[str] = None
    ) -> EmergencyAlert:
        text = (message or "").strip() or DEFAULT_SOS_MESSAGE
        async with self._unit_of_work() as session:
            _, ride = await self._load_ride(session, ride_id)
            if not ride.can_access(actor_id):
                raise NotAuthorizedError("You are not a participant of this ride")
            if ride.status not in ACTIVE_STATUSES:
                raise InvalidStateTransition(
                    f"SOS is only available on an active ride, not {ride.status.value}"
                )
            profile = await UserRepository(session).get_by_id(actor_id)
            model = await EmergencyAlertRepository(session).create(
                ride_id=ride_id, user_id=actor_id, message=text
            )
            alert = EmergencyAlert(
                id=model.id,
                ride_id=ride_id,
                user_id=actor_id,
                message=text,
                emergency_contact=profile.emergency_contact if profile else None,
                notified_user_id=ride.other_participant(actor_id),
                created_at=model.created_at,
            )

        logger.warning(
            "SOS raised on ride %s by %s (contact=%s)",
            ride_id,
            actor_id,
            alert.emergency_contact or "none",
        )
        if alert.notified_user_id:
            self._publish(
                [
                    Notification(
                        user_id=alert.notified_user_id,
                        ride_id=ride_id,
                        message=f"Emergency alert from your co-rider: {text}",
                        type=NotificationType.EMERGENCY_ALERT,
                    )
                ]
            )
        return alert
