"""
Persistence boundary for the booking and matching services.

Every write that has to be linearised against concurrent callers goes through
a conditional UPDATE here (compare-and-swap on ``version`` or ``status``), so
the workflows never do an unguarded read-modify-write. Database failures are
translated into service exceptions at this boundary.
"""

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from django.db import DatabaseError, IntegrityError, connection, transaction
from django.db.models import F, Q
from django.utils import timezone

from accounts.models import Review, User
from common.utils.geo import is_valid_coordinate
from rides.models import BookingRequest, Ride, RideDemand, RideOffer
from services.matching.compatibility import GeoPoint
from services.matching.preferences import RideHistoryEntry
from services.matching.ranking import CandidateRide, MatchCriteria
from .exceptions import ConflictError, InternalError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def normalize_user_id(value) -> int:
    """Accept a User instance, an int or a numeric string; return the integer pk."""
    if isinstance(value, User):
        value = value.pk
    if isinstance(value, bool):
        raise ValidationError("Invalid user id")
    try:
        user_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid user id", value=value)
    if user_id <= 0:
        raise ValidationError("Invalid user id", value=value)
    return user_id


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


class RideRepository:
    """Django ORM implementation of the ride store."""

    # ===================== Transactions =====================

    @contextmanager
    def atomic(self, timeout: Optional[float] = None):
        """
        Run the block in one database transaction.

        Args:
            timeout: Optional per-statement limit in seconds (PostgreSQL only)

        Raises:
            ConflictError: A uniqueness/check constraint rejected the write
            InternalError: Any other database failure
        """
        try:
            with transaction.atomic():
                if timeout:
                    self._apply_statement_timeout(timeout)
                yield
        except IntegrityError as exc:
            logger.info(f"Constraint rejected write: {exc}")
            raise ConflictError("The operation conflicts with the current state") from exc
        except DatabaseError as exc:
            logger.exception("Database error in ride transaction")
            raise InternalError("Persistence failure") from exc

    def _apply_statement_timeout(self, timeout: float):
        if connection.vendor != 'postgresql':
            return
        with connection.cursor() as cursor:
            cursor.execute("SET LOCAL statement_timeout = %s", [int(timeout * 1000)])

    # ===================== Lookups =====================

    def get_user(self, user_id) -> User:
        try:
            return User.objects.get(pk=normalize_user_id(user_id))
        except User.DoesNotExist:
            raise NotFoundError("User not found", user_id=user_id)

    def get_ride(self, ride_id) -> Ride:
        try:
            return Ride.objects.select_related('owner').get(pk=ride_id)
        except (Ride.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Ride not found", ride_id=ride_id)

    def get_request(self, request_id) -> BookingRequest:
        try:
            return BookingRequest.objects.select_related('ride').get(pk=request_id)
        except (BookingRequest.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Booking request not found", request_id=request_id)

    def get_demand(self, demand_id, for_update: bool = False) -> RideDemand:
        qs = RideDemand.objects.all()
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=demand_id)
        except (RideDemand.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Ride demand not found", demand_id=demand_id)

    def get_offer(self, offer_id) -> RideOffer:
        try:
            return RideOffer.objects.select_related('carpool_ride').get(pk=offer_id)
        except (RideOffer.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Offer not found", offer_id=offer_id)

    def refresh_ride(self, ride: Ride) -> Ride:
        ride.refresh_from_db(fields=['status', 'seats_available', 'seats_total', 'version', 'updated_at'])
        return ride

    def refresh_request(self, request: BookingRequest) -> BookingRequest:
        request.refresh_from_db(fields=['status', 'decided_at'])
        return request

    def refresh_offer(self, offer: RideOffer) -> RideOffer:
        offer.refresh_from_db(fields=['status', 'responded_at'])
        return offer

    def refresh_demand(self, demand: RideDemand) -> RideDemand:
        demand.refresh_from_db(fields=['status', 'version', 'updated_at'])
        return demand

    # ===================== Rides =====================

    def create_ride(self, owner_id: int, **fields) -> Ride:
        return Ride.objects.create(owner_id=owner_id, **fields)

    def update_ride_if_unchanged(self, ride: Ride, **changes) -> bool:
        """
        Compare-and-swap on ``(pk, version)``.

        Applies ``changes`` and bumps ``version`` only if nobody else has
        written the row since ``ride`` was loaded. The in-memory instance is
        updated on success.
        """
        now = timezone.now()
        updated = Ride.objects.filter(pk=ride.pk, version=ride.version).update(
            version=F('version') + 1,
            updated_at=now,
            **changes,
        )
        if not updated:
            return False
        for name, value in changes.items():
            setattr(ride, name, value)
        ride.version += 1
        ride.updated_at = now
        return True

    def add_participant(self, ride: Ride, user_id: int):
        ride.participants.add(user_id)

    def remove_participant(self, ride: Ride, user_id: int):
        ride.participants.remove(user_id)

    def participant_ids(self, ride: Ride) -> List[int]:
        return list(ride.participants.values_list('id', flat=True))

    def is_ride_member(self, ride: Ride, user_id: int) -> bool:
        return ride.owner_id == user_id or ride.participants.filter(pk=user_id).exists()

    def reject_pending_requests(self, ride: Ride, now) -> List[int]:
        """Reject every pending request on ``ride``; returns the affected passenger ids."""
        pending = BookingRequest.objects.filter(ride=ride, status=BookingRequest.PENDING)
        passenger_ids = list(pending.values_list('passenger_id', flat=True))
        pending.update(status=BookingRequest.REJECTED, decided_at=now)
        return passenger_ids

    def decline_pending_offers_for_ride(self, ride: Ride, now) -> int:
        return RideOffer.objects.filter(carpool_ride=ride, status=RideOffer.PENDING).update(
            status=RideOffer.DECLINED, responded_at=now
        )

    # ===================== Booking requests =====================

    def has_active_request(self, ride: Ride, passenger_id: int) -> bool:
        return BookingRequest.objects.filter(
            ride=ride,
            passenger_id=passenger_id,
            status__in=BookingRequest.ACTIVE_STATUSES,
        ).exists()

    def create_request(self, ride: Ride, passenger_id: int, seats_requested: int, message: str = "") -> BookingRequest:
        return BookingRequest.objects.create(
            ride=ride,
            passenger_id=passenger_id,
            seats_requested=seats_requested,
            message=message,
        )

    def transition_request(self, request: BookingRequest, from_status: str, to_status: str, now) -> bool:
        """Move ``request`` from ``from_status`` to ``to_status`` if it is still in ``from_status``."""
        updated = BookingRequest.objects.filter(pk=request.pk, status=from_status).update(
            status=to_status, decided_at=now
        )
        if updated:
            request.status = to_status
            request.decided_at = now
        return bool(updated)

    # ===================== Demands & offers =====================

    def create_demand(self, passenger_id: int, **fields) -> RideDemand:
        return RideDemand.objects.create(passenger_id=passenger_id, **fields)

    def update_demand_if_unchanged(self, demand: RideDemand, expected_status: str, **changes) -> bool:
        now = timezone.now()
        updated = RideDemand.objects.filter(
            pk=demand.pk, version=demand.version, status=expected_status
        ).update(version=F('version') + 1, updated_at=now, **changes)
        if not updated:
            return False
        for name, value in changes.items():
            setattr(demand, name, value)
        demand.version += 1
        demand.updated_at = now
        return True

    def has_open_offer(self, demand: RideDemand, driver_id: int, ride_id) -> bool:
        return RideOffer.objects.filter(
            demand=demand,
            driver_id=driver_id,
            carpool_ride_id=ride_id,
            status__in=[RideOffer.PENDING, RideOffer.ACCEPTED],
        ).exists()

    def create_offer(self, demand: RideDemand, driver_id: int, ride: Ride, message: str = "") -> RideOffer:
        return RideOffer.objects.create(
            demand=demand, driver_id=driver_id, carpool_ride=ride, message=message
        )

    def transition_offer(self, offer: RideOffer, from_status: str, to_status: str, now) -> bool:
        updated = RideOffer.objects.filter(pk=offer.pk, status=from_status).update(
            status=to_status, responded_at=now
        )
        if updated:
            offer.status = to_status
            offer.responded_at = now
        return bool(updated)

    def decline_sibling_offers(self, demand: RideDemand, keep_offer_id, now) -> List[int]:
        """Decline every non-declined offer on ``demand`` except ``keep_offer_id``; returns driver ids."""
        siblings = RideOffer.objects.filter(demand=demand).exclude(
            status=RideOffer.DECLINED
        )
        if keep_offer_id is not None:
            siblings = siblings.exclude(pk=keep_offer_id)
        driver_ids = list(siblings.values_list('driver_id', flat=True))
        siblings.update(status=RideOffer.DECLINED, responded_at=now)
        return driver_ids

    def list_offers(self, demand: RideDemand) -> List[RideOffer]:
        return list(demand.offers.select_related('carpool_ride').order_by('offered_at', 'id'))

    # ===================== Matching inputs =====================

    def to_candidate(self, ride: Ride) -> CandidateRide:
        return CandidateRide(
            ride_id=ride.pk,
            owner_id=ride.owner_id,
            origin=GeoPoint(float(ride.origin_latitude), float(ride.origin_longitude)),
            destination=GeoPoint(float(ride.destination_latitude), float(ride.destination_longitude)),
            departure_time=ride.departure_time,
            route=ride.route or None,
            price=float(ride.price or 0),
            seats_available=ride.seats_available,
            ride=ride,
        )

    def criteria_for_demand(self, demand: RideDemand) -> MatchCriteria:
        return MatchCriteria(
            passenger_id=demand.passenger_id,
            origin=GeoPoint(float(demand.origin_latitude), float(demand.origin_longitude)),
            destination=GeoPoint(float(demand.destination_latitude), float(demand.destination_longitude)),
            desired_time=demand.desired_time,
            seats_needed=demand.seats_needed,
            max_price=_as_float(demand.max_price),
        )

    def candidate_rides_for(self, criteria: MatchCriteria, window_hours: float) -> List[CandidateRide]:
        """Open rides with enough seats departing within ``window_hours`` of the desired time."""
        window = timedelta(hours=window_hours)
        rides = (
            Ride.objects.filter(
                status=Ride.OPEN,
                seats_available__gte=criteria.seats_needed,
                departure_time__gte=criteria.desired_time - window,
                departure_time__lte=criteria.desired_time + window,
            )
            .exclude(owner_id=criteria.passenger_id)
            .order_by('departure_time', 'id')
        )
        candidates = []
        for ride in rides:
            if not (
                is_valid_coordinate(ride.origin_latitude, ride.origin_longitude)
                and is_valid_coordinate(ride.destination_latitude, ride.destination_longitude)
            ):
                logger.warning(f"Skipping ride {ride.pk} with invalid coordinates")
                continue
            candidates.append(self.to_candidate(ride))
        return candidates

    def upcoming_rides_for(self, user_id: int, now, limit: int = 50) -> List[CandidateRide]:
        rides = (
            Ride.objects.filter(status=Ride.OPEN, departure_time__gt=now)
            .exclude(owner_id=user_id)
            .exclude(participants__id=user_id)
            .order_by('departure_time', 'id')[:limit]
        )
        return [self.to_candidate(ride) for ride in rides]

    def rating_history(self, user_ids: Iterable[int]) -> Dict[int, List[float]]:
        """Ratings received, keyed by user id. Users without reviews are absent."""
        ratings: Dict[int, List[float]] = {}
        rows = Review.objects.filter(subject_id__in=set(user_ids)).values_list('subject_id', 'rating')
        for subject_id, rating in rows:
            ratings.setdefault(subject_id, []).append(float(rating))
        return ratings

    def ratings_for(self, user_id: int) -> List[float]:
        return [float(r) for r in Review.objects.filter(subject_id=user_id).values_list('rating', flat=True)]

    def passenger_ride_history(self, user_id: int, limit: int = 10) -> List[RideHistoryEntry]:
        """Accepted bookings (most recent departure first) as profiler input."""
        bookings = (
            BookingRequest.objects.filter(passenger_id=user_id, status=BookingRequest.ACCEPTED)
            .exclude(ride__status=Ride.CANCELLED)
            .select_related('ride')
            .order_by('-ride__departure_time', '-id')[:limit]
        )
        history = []
        for booking in bookings:
            ride = booking.ride
            history.append(RideHistoryEntry(
                departure_time=ride.departure_time,
                origin=GeoPoint(float(ride.origin_latitude), float(ride.origin_longitude)),
                destination=GeoPoint(float(ride.destination_latitude), float(ride.destination_longitude)),
                price=_as_float(ride.price),
            ))
        return history

    def ride_statuses_for(self, user_id: int) -> List[str]:
        """Status of every ride the user drove or joined, one entry per ride."""
        joined = Ride.objects.filter(participants__id=user_id).values('pk')
        return list(
            Ride.objects.filter(Q(owner_id=user_id) | Q(pk__in=joined))
            .order_by('pk')
            .values_list('status', flat=True)
        )

    # ===================== Reviews =====================

    def review_exists(self, author_id: int, subject_id: int, ride: Ride) -> bool:
        return Review.objects.filter(
            author_id=author_id, subject_id=subject_id, related_ride=ride
        ).exists()

    def create_review(self, author_id: int, subject_id: int, ride: Ride, rating: int, comment: str = "") -> Review:
        return Review.objects.create(
            author_id=author_id,
            subject_id=subject_id,
            related_ride=ride,
            rating=rating,
            comment=comment,
        )
