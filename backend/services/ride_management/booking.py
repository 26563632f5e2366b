"""
Booking request workflow.

A passenger asks for seats on a published ride; the ride owner accepts or
rejects. Accepting takes the seats through RideInventory in the same
transaction as the status change, so a request is never ``accepted`` without
its seats and a failed reservation leaves it ``pending``.

    pending --accept-->  accepted --cancel (before departure)--> cancelled
    pending --reject-->  rejected
    pending --cancel-->  cancelled
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.utils import timezone

from rides.models import BookingRequest, Ride
from .exceptions import ConflictError, EngineError, ForbiddenError, NotFoundError, ValidationError
from .inventory import RideInventory
from .repository import RideRepository, normalize_user_id

logger = logging.getLogger(__name__)

ACCEPT = 'accept'
REJECT = 'reject'
DECISION_ALIASES = {
    'accept': ACCEPT,
    'accepted': ACCEPT,
    'reject': REJECT,
    'rejected': REJECT,
    'decline': REJECT,
}


def parse_decision(value) -> str:
    decision = DECISION_ALIASES.get(str(value or '').lower())
    if decision is None:
        raise ValidationError("Action must be 'accept' or 'reject'", action=value)
    return decision


@dataclass
class BookingResult:
    """Result object for booking operations."""
    request: BookingRequest
    ride: Ride
    message: str = ""


class BookingRequestWorkflow:

    def __init__(self, repository: RideRepository, inventory: RideInventory, notifier):
        self.repository = repository
        self.inventory = inventory
        self.notifier = notifier

    def _notify(self, user_id, event_type, request: BookingRequest, ride: Ride, **extra):
        self.notifier.notify(user_id, event_type, {
            "ride_id": ride.pk,
            "request_id": request.pk,
            "status": request.status,
            "seats_requested": request.seats_requested,
            "seats_available": ride.seats_available,
            "ride_status": ride.status,
            **extra,
        })

    def create(
        self,
        ride: Ride,
        passenger,
        seats_requested: int = 1,
        message: str = "",
        timeout: Optional[float] = None,
    ) -> BookingResult:
        """
        Ask for seats on ``ride``.

        Raises:
            ValidationError: seats_requested is not a positive integer
            ConflictError: own ride, ride not open, not enough seats, or an
                active request already exists for this passenger
        """
        passenger_id = normalize_user_id(passenger)
        if isinstance(seats_requested, bool) or not isinstance(seats_requested, int) or seats_requested < 1:
            raise ValidationError("seats_requested must be a positive integer")
        if ride.owner_id == passenger_id:
            raise ConflictError("You cannot request seats on your own ride")
        if ride.status != Ride.OPEN:
            raise ConflictError("Ride is not open for booking", status=ride.status)
        if seats_requested > ride.seats_available:
            raise ConflictError(
                "Not enough seats available",
                seats_available=ride.seats_available,
                seats_requested=seats_requested,
            )

        with self.repository.atomic(timeout):
            if self.repository.has_active_request(ride, passenger_id):
                raise ConflictError("You already have an active request for this ride")
            request = self.repository.create_request(ride, passenger_id, seats_requested, message)
            self._notify(ride.owner_id, 'booking_requested', request, ride, passenger_id=passenger_id)

        logger.info(f"Booking request {request.pk} created for ride {ride.pk} by user {passenger_id}")
        return BookingResult(request=request, ride=ride, message="Request sent to the driver")

    def decide(
        self,
        ride: Ride,
        request: BookingRequest,
        actor,
        decision,
        timeout: Optional[float] = None,
    ) -> BookingResult:
        """
        Accept or reject a pending request.

        Raises:
            ForbiddenError: actor does not own the ride
            NotFoundError: the request belongs to a different ride
            ConflictError: request already decided, or the seats are gone
        """
        actor_id = normalize_user_id(actor)
        decision = parse_decision(decision)
        if ride.owner_id != actor_id:
            raise ForbiddenError("Only the ride owner can decide on requests")
        if request.ride_id != ride.pk:
            raise NotFoundError("Request does not belong to this ride", request_id=request.pk)
        if request.status != BookingRequest.PENDING:
            raise ConflictError(f"Request is already {request.status}", status=request.status)

        now = timezone.now()
        try:
            with self.repository.atomic(timeout):
                if decision == ACCEPT:
                    if not self.repository.transition_request(
                        request, BookingRequest.PENDING, BookingRequest.ACCEPTED, now
                    ):
                        raise ConflictError("Request was already decided")
                    self.inventory.reserve_if_open(ride, request.seats_requested)
                    self.repository.add_participant(ride, request.passenger_id)
                    self._notify(request.passenger_id, 'booking_accepted', request, ride)
                else:
                    if not self.repository.transition_request(
                        request, BookingRequest.PENDING, BookingRequest.REJECTED, now
                    ):
                        raise ConflictError("Request was already decided")
                    self._notify(request.passenger_id, 'booking_rejected', request, ride)
        except EngineError:
            # The transaction rolled back; put the instances back in step with the row.
            self.repository.refresh_request(request)
            self.repository.refresh_ride(ride)
            raise

        logger.info(f"Booking request {request.pk} {request.status} by owner {actor_id}")
        return BookingResult(request=request, ride=ride, message=f"Request {request.status}")

    def cancel(self, request: BookingRequest, actor, now=None, timeout: Optional[float] = None) -> BookingResult:
        """
        Withdraw a request.

        A pending request is simply cancelled. An accepted one may be withdrawn
        until the ride departs; its seats go back to the ride and the passenger
        leaves the participant list.
        """
        actor_id = normalize_user_id(actor)
        if request.passenger_id != actor_id:
            raise ForbiddenError("Only the requesting passenger can cancel this request")

        ride = request.ride
        now = now or timezone.now()
        previous = request.status

        if previous == BookingRequest.ACCEPTED:
            if ride.is_terminal:
                raise ConflictError(f"Ride is already {ride.status}", status=ride.status)
            if now >= ride.departure_time:
                raise ConflictError("Cannot cancel a booking after the ride has departed")
        elif previous != BookingRequest.PENDING:
            raise ConflictError(f"Request is already {previous}", status=previous)

        try:
            with self.repository.atomic(timeout):
                if not self.repository.transition_request(request, previous, BookingRequest.CANCELLED, now):
                    raise ConflictError("Request changed while cancelling, please retry")
                if previous == BookingRequest.ACCEPTED:
                    self.inventory.release(ride, request.seats_requested)
                    self.repository.remove_participant(ride, request.passenger_id)
                self._notify(ride.owner_id, 'booking_cancelled', request, ride, passenger_id=actor_id)
        except EngineError:
            self.repository.refresh_request(request)
            self.repository.refresh_ride(ride)
            raise

        logger.info(f"Booking request {request.pk} cancelled by passenger {actor_id} (was {previous})")
        return BookingResult(request=request, ride=ride, message="Request cancelled")

    def close_ride(self, ride: Ride, actor, outcome: str, now=None, timeout: Optional[float] = None) -> Ride:
        """
        Complete or cancel a ride and tell everyone on it.

        Cancelling also rejects pending booking requests and declines pending
        offers that proposed this ride.
        """
        actor_id = normalize_user_id(actor)
        now = now or timezone.now()
        with self.repository.atomic(timeout):
            self.inventory.terminate(ride, outcome, actor_id, now=now)
            recipients = set(self.repository.participant_ids(ride))
            recipients.add(ride.owner_id)
            if outcome == Ride.CANCELLED:
                recipients.update(self.repository.reject_pending_requests(ride, now))
                self.repository.decline_pending_offers_for_ride(ride, now)
            recipients.discard(actor_id)
            event_type = 'ride_cancelled' if outcome == Ride.CANCELLED else 'ride_completed'
            for user_id in sorted(recipients):
                self.notifier.notify(user_id, event_type, {"ride_id": ride.pk, "status": ride.status})
        return ride
