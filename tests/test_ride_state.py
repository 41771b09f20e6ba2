"""Unit tests for ride entity state transitions (State Pattern)."""

import pytest

from src.domain.entities import Ride, RideRequest, generate_otp
from src.domain.enums import RequestStatus, RideStatus
from src.domain.exceptions import (
    InvalidStateTransition,
    NotAuthorizedError,
    OtpValidationError,
)

DRIVER = "uid-driver"
PASSENGER = "uid-passenger"
STRANGER = "uid-stranger"


def _offer() -> Ride:
    return Ride.offer(DRIVER, from_location="Gate 1", to_location="Library")


def _confirmed() -> Ride:
    ride = _offer()
    ride.confirm_match(DRIVER, PASSENGER)
    return ride


def _in_progress() -> Ride:
    ride = _confirmed()
    ride.verify_otp(DRIVER, ride.ride_otp)
    ride.confirm_start(DRIVER)
    ride.confirm_start(PASSENGER)
    return ride


class TestRideStateMachine:
    def test_offer_starts_as_offering(self):
        ride = _offer()
        assert ride.status == RideStatus.OFFERING
        assert ride.participant_ids == [DRIVER]
        assert ride.created_by == DRIVER
        assert ride.passenger_id is None

    def test_request_starts_as_pending(self):
        ride = Ride.request(PASSENGER, from_location="Gate 1", to_location="Library")
        assert ride.status == RideStatus.PENDING
        assert ride.participant_ids == [PASSENGER]
        assert ride.driver_id is None

    # ── Valid transitions ─────────────────────────────────────────

    def test_offering_to_confirmed(self):
        ride = Ride(status=RideStatus.OFFERING)
        ride.transition_to(RideStatus.CONFIRMED)
        assert ride.status == RideStatus.CONFIRMED

    def test_confirmed_back_to_pending(self):
        ride = Ride(status=RideStatus.CONFIRMED)
        ride.transition_to(RideStatus.PENDING)
        assert ride.status == RideStatus.PENDING

    def test_in_progress_to_cancelled(self):
        ride = Ride(status=RideStatus.IN_PROGRESS)
        ride.transition_to(RideStatus.CANCELLED)
        assert ride.status == RideStatus.CANCELLED

    # ── Invalid transitions ───────────────────────────────────────

    def test_offering_to_in_progress_fails(self):
        ride = Ride(status=RideStatus.OFFERING)
        with pytest.raises(InvalidStateTransition):
            ride.transition_to(RideStatus.IN_PROGRESS)

    def test_confirmed_to_completed_fails(self):
        ride = Ride(status=RideStatus.CONFIRMED)
        with pytest.raises(InvalidStateTransition):
            ride.transition_to(RideStatus.COMPLETED)

    @pytest.mark.parametrize("terminal", [RideStatus.COMPLETED, RideStatus.CANCELLED])
    def test_terminal_states_are_final(self, terminal):
        ride = Ride(status=terminal)
        with pytest.raises(InvalidStateTransition):
            ride.transition_to(RideStatus.OFFERING)


class TestConfirmMatch:
    def test_owner_accepts_passenger(self):
        ride = _confirmed()
        assert ride.status == RideStatus.CONFIRMED
        assert ride.passenger_id == PASSENGER
        assert ride.participant_ids == [DRIVER, PASSENGER]
        assert ride.ride_otp is not None and len(ride.ride_otp) == 4
        assert ride.accepted_at is not None
        assert not ride.otp_verified

    def test_passenger_owner_accepts_driver(self):
        ride = Ride.request(PASSENGER, from_location="A", to_location="B")
        ride.confirm_match(PASSENGER, DRIVER)
        assert ride.driver_id == DRIVER
        assert ride.participant_ids == [DRIVER, PASSENGER]

    def test_non_owner_cannot_accept(self):
        ride = _offer()
        with pytest.raises(NotAuthorizedError):
            ride.confirm_match(STRANGER, PASSENGER)
        assert ride.status == RideStatus.OFFERING

    def test_cannot_accept_on_confirmed_ride(self):
        ride = _confirmed()
        with pytest.raises(InvalidStateTransition):
            ride.confirm_match(DRIVER, STRANGER)
        assert ride.passenger_id == PASSENGER

    def test_owner_cannot_match_with_self(self):
        ride = _offer()
        with pytest.raises(InvalidStateTransition):
            ride.confirm_match(DRIVER, DRIVER)


class TestOtpHandshake:
    def test_driver_verifies_matching_code(self):
        ride = _confirmed()
        ride.verify_otp(DRIVER, ride.ride_otp)
        assert ride.otp_verified

    def test_mismatch_leaves_ride_unverified(self):
        ride = _confirmed()
        wrong = "1000" if ride.ride_otp != "1000" else "1001"
        with pytest.raises(OtpValidationError) as exc_info:
            ride.verify_otp(DRIVER, wrong)
        assert exc_info.value.code == "otp_mismatch"
        assert not ride.otp_verified

    @pytest.mark.parametrize("code", ["", "12", "12345", "12a4", "    "])
    def test_malformed_code(self, code):
        ride = _confirmed()
        with pytest.raises(OtpValidationError) as exc_info:
            ride.verify_otp(DRIVER, code)
        assert exc_info.value.code == "otp_malformed"

    def test_passenger_cannot_verify(self):
        ride = _confirmed()
        with pytest.raises(NotAuthorizedError):
            ride.verify_otp(PASSENGER, ride.ride_otp)

    def test_cannot_verify_twice(self):
        ride = _confirmed()
        ride.verify_otp(DRIVER, ride.ride_otp)
        with pytest.raises(InvalidStateTransition):
            ride.verify_otp(DRIVER, ride.ride_otp)

    def test_cannot_verify_open_ride(self):
        ride = _offer()
        with pytest.raises(InvalidStateTransition):
            ride.verify_otp(DRIVER, "1234")


class TestStartAndCompletion:
    def test_start_requires_verified_otp(self):
        ride = _confirmed()
        with pytest.raises(InvalidStateTransition):
            ride.confirm_start(DRIVER)
        assert not ride.rider_started

    def test_one_sided_start_waits_for_other_party(self):
        ride = _confirmed()
        ride.verify_otp(DRIVER, ride.ride_otp)
        assert ride.confirm_start(DRIVER) is False
        assert ride.status == RideStatus.CONFIRMED
        assert ride.rider_started and not ride.passenger_started

    def test_repeated_start_is_idempotent(self):
        ride = _confirmed()
        ride.verify_otp(DRIVER, ride.ride_otp)
        ride.confirm_start(PASSENGER)
        ride.confirm_start(PASSENGER)
        assert ride.status == RideStatus.CONFIRMED
        assert ride.passenger_started and not ride.rider_started

    def test_both_start_moves_to_in_progress(self):
        ride = _in_progress()
        assert ride.status == RideStatus.IN_PROGRESS

    def test_cannot_complete_before_start(self):
        ride = _confirmed()
        with pytest.raises(InvalidStateTransition):
            ride.confirm_completion(DRIVER)

    def test_both_complete_moves_to_completed(self):
        ride = _in_progress()
        assert ride.confirm_completion(PASSENGER) is False
        assert ride.status == RideStatus.IN_PROGRESS
        assert ride.confirm_completion(DRIVER) is True
        assert ride.status == RideStatus.COMPLETED
        assert ride.completed_at is not None

    def test_stranger_cannot_confirm(self):
        ride = _in_progress()
        with pytest.raises(NotAuthorizedError):
            ride.confirm_completion(STRANGER)


class TestCancellationPolicy:
    def test_owner_cancels_open_ride(self):
        ride = _offer()
        assert ride.cancel(DRIVER) == RideStatus.CANCELLED
        assert ride.cancelled_by == DRIVER
        assert ride.cancelled_at is not None

    def test_non_participant_cannot_cancel_open_ride(self):
        ride = _offer()
        with pytest.raises(NotAuthorizedError):
            ride.cancel(STRANGER)
        assert ride.status == RideStatus.OFFERING

    @pytest.mark.parametrize("actor", [DRIVER, PASSENGER])
    def test_cancel_confirmed_offer_reopens(self, actor):
        ride = _confirmed()
        assert ride.cancel(actor) == RideStatus.OFFERING
        assert ride.passenger_id is None
        assert ride.participant_ids == [DRIVER]
        assert ride.ride_otp is None
        assert ride.accepted_at is None

    def test_reconfirmation_issues_a_fresh_otp(self):
        ride = _confirmed()
        first = ride.ride_otp
        ride.cancel(PASSENGER)
        ride.confirm_match(DRIVER, STRANGER)
        assert ride.ride_otp != first
        assert ride.passenger_id == STRANGER

    def test_cancel_confirmed_request_reopens_as_pending(self):
        ride = Ride.request(PASSENGER, from_location="A", to_location="B")
        ride.confirm_match(PASSENGER, DRIVER)
        assert ride.cancel(DRIVER) == RideStatus.PENDING
        assert ride.driver_id is None
        assert ride.participant_ids == [PASSENGER]

    def test_cancel_in_progress(self):
        ride = _in_progress()
        assert ride.cancel(PASSENGER) == RideStatus.CANCELLED
        assert ride.cancelled_by == PASSENGER
        assert not ride.rider_started

    def test_cancel_completed_fails(self):
        ride = _in_progress()
        ride.confirm_completion(DRIVER)
        ride.confirm_completion(PASSENGER)
        with pytest.raises(InvalidStateTransition):
            ride.cancel(DRIVER)
        assert ride.status == RideStatus.COMPLETED


class TestAccess:
    def test_participants_can_access(self):
        ride = _confirmed()
        assert ride.can_access(DRIVER)
        assert ride.can_access(PASSENGER)
        assert not ride.can_access(STRANGER)
        assert not ride.can_access(None)

    def test_chat_only_on_active_rides(self):
        ride = _offer()
        assert not ride.can_chat(DRIVER)
        ride.confirm_match(DRIVER, PASSENGER)
        assert ride.can_chat(PASSENGER)

    def test_reopened_ride_drops_former_counterpart(self):
        ride = _confirmed()
        ride.cancel(PASSENGER)
        assert not ride.can_access(PASSENGER)

    def test_other_participant(self):
        ride = _confirmed()
        assert ride.other_participant(DRIVER) == PASSENGER
        assert ride.other_participant(PASSENGER) == DRIVER
        assert ride.other_participant(STRANGER) is None


class TestOtpGeneration:
    def test_range(self):
        for _ in range(200):
            otp = generate_otp()
            assert len(otp) == 4
            assert 1000 <= int(otp) <= 9999

    def test_differs_from_previous(self):
        for _ in range(200):
            assert generate_otp(previous="1234") != "1234"


class TestRideRequestTransitions:
    def test_pending_to_accepted(self):
        request = RideRequest(ride_id=1, requester_id=PASSENGER)
        request.transition_to(RequestStatus.ACCEPTED)
        assert request.status == RequestStatus.ACCEPTED

    def test_rejected_is_final(self):
        request = RideRequest(ride_id=1, requester_id=PASSENGER, status=RequestStatus.REJECTED)
        with pytest.raises(InvalidStateTransition):
            request.transition_to(RequestStatus.ACCEPTED)
