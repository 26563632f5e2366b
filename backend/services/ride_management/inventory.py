"""
Seat inventory state machine for a Ride.

    open  --reserve (seats -> 0)-->  full
    full  --release-------------->   open
    open/full --terminate-------->   completed | cancelled   (final)

This is the only code that writes ``seats_available`` and ``status``. Every
write is a compare-and-swap on the ride's version; a lost race is retried
against fresh state a few times and then surfaces as ConflictError.
"""

import logging

from django.utils import timezone

from common.utils.geo import invalid_route_vertices, is_valid_coordinate
from rides.models import Ride
from .exceptions import ConflictError, ForbiddenError, InternalError, ValidationError
from .repository import RideRepository, normalize_user_id

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 3

RIDE_FIELDS = (
    'title',
    'origin_address',
    'destination_address',
    'route',
    'stops',
    'price',
    'notes',
)


def _status_for(seats_available: int) -> str:
    return Ride.FULL if seats_available == 0 else Ride.OPEN


class RideInventory:

    def __init__(self, repository: RideRepository):
        self.repository = repository

    def open_ride(
        self,
        owner,
        origin_latitude,
        origin_longitude,
        destination_latitude,
        destination_longitude,
        departure_time,
        seats_total: int,
        **fields,
    ) -> Ride:
        """
        Publish a new ride with every seat available.

        Raises:
            ValidationError: bad seat count, coordinates or route vertices
        """
        owner_id = normalize_user_id(owner)
        if not isinstance(seats_total, int) or seats_total < 1:
            raise ValidationError("seats_total must be a positive integer", seats_total=seats_total)
        if departure_time is None:
            raise ValidationError("departure_time is required")
        if not is_valid_coordinate(origin_latitude, origin_longitude):
            raise ValidationError("Invalid origin coordinates")
        if not is_valid_coordinate(destination_latitude, destination_longitude):
            raise ValidationError("Invalid destination coordinates")

        route = fields.get('route') or []
        bad_vertices = invalid_route_vertices(route)
        if bad_vertices:
            raise ValidationError("Invalid route coordinates", vertices=bad_vertices)

        extra = {name: value for name, value in fields.items() if name in RIDE_FIELDS}
        ride = self.repository.create_ride(
            owner_id,
            origin_latitude=origin_latitude,
            origin_longitude=origin_longitude,
            destination_latitude=destination_latitude,
            destination_longitude=destination_longitude,
            departure_time=departure_time,
            seats_total=seats_total,
            seats_available=seats_total,
            status=Ride.OPEN,
            **extra,
        )
        logger.info(f"Ride {ride.pk} opened by user {owner_id} with {seats_total} seats")
        return ride

    def reserve_if_open(self, ride: Ride, seats_requested: int) -> Ride:
        """
        Take ``seats_requested`` seats from an open ride.

        Raises:
            ValidationError: seats_requested < 1
            ConflictError: ride not open, not enough seats, or lost every CAS attempt
        """
        if seats_requested < 1:
            raise ValidationError("seats_requested must be at least 1")

        for _ in range(MAX_CAS_ATTEMPTS):
            if ride.status != Ride.OPEN:
                raise ConflictError("Ride is not open for booking", status=ride.status)
            if seats_requested > ride.seats_available:
                raise ConflictError(
                    "Not enough seats available",
                    seats_available=ride.seats_available,
                    seats_requested=seats_requested,
                )
            remaining = ride.seats_available - seats_requested
            if self.repository.update_ride_if_unchanged(
                ride, seats_available=remaining, status=_status_for(remaining)
            ):
                self.ensure_invariants(ride)
                return ride
            logger.info(f"Seat reservation on ride {ride.pk} lost a race; reloading")
            self.repository.refresh_ride(ride)

        raise ConflictError("Ride was modified concurrently, please retry")

    def release(self, ride: Ride, seats: int) -> Ride:
        """
        Return ``seats`` to a non-terminal ride; a full ride reopens.

        Raises:
            ConflictError: ride is terminal or the release would exceed seats_total
        """
        if seats < 1:
            raise ValidationError("seats must be at least 1")

        for _ in range(MAX_CAS_ATTEMPTS):
            if ride.is_terminal:
                raise ConflictError("Cannot release seats on a finished ride", status=ride.status)
            restored = ride.seats_available + seats
            if restored > ride.seats_total:
                raise ConflictError(
                    "Release would exceed the ride's seat total",
                    seats_available=ride.seats_available,
                    seats_total=ride.seats_total,
                )
            if self.repository.update_ride_if_unchanged(
                ride, seats_available=restored, status=_status_for(restored)
            ):
                self.ensure_invariants(ride)
                return ride
            self.repository.refresh_ride(ride)

        raise ConflictError("Ride was modified concurrently, please retry")

    def terminate(self, ride: Ride, outcome: str, actor, now=None) -> Ride:
        """
        Move the ride to ``completed`` or ``cancelled``.

        Only the owner may cancel, at any time. The owner or a participant may
        mark it completed once the departure time has passed.
        """
        if outcome not in Ride.TERMINAL_STATUSES:
            raise ValidationError("Outcome must be 'completed' or 'cancelled'", outcome=outcome)
        actor_id = normalize_user_id(actor)
        now = now or timezone.now()

        if outcome == Ride.CANCELLED:
            if ride.owner_id != actor_id:
                raise ForbiddenError("Only the ride owner can cancel the ride")
        else:
            if not self.repository.is_ride_member(ride, actor_id):
                raise ForbiddenError("Only the owner or a participant can complete the ride")
            if now < ride.departure_time:
                raise ConflictError("Cannot complete a ride before its departure time")

        for _ in range(MAX_CAS_ATTEMPTS):
            if ride.is_terminal:
                raise ConflictError(f"Ride is already {ride.status}", status=ride.status)
            if self.repository.update_ride_if_unchanged(ride, status=outcome):
                logger.info(f"Ride {ride.pk} {outcome} by user {actor_id}")
                return ride
            self.repository.refresh_ride(ride)

        raise ConflictError("Ride was modified concurrently, please retry")

    def ensure_invariants(self, ride: Ride):
        """Raise InternalError if the seat/status predicate does not hold."""
        ok = 0 <= ride.seats_available <= ride.seats_total
        if ok and not ride.is_terminal:
            ok = ride.status == _status_for(ride.seats_available)
        if not ok:
            logger.error(
                f"Inventory invariant broken on ride {ride.pk}: "
                f"status={ride.status} seats={ride.seats_available}/{ride.seats_total}"
            )
            raise InternalError("Ride inventory is inconsistent", ride_id=ride.pk)
