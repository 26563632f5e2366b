"""
Ride demand / driver offer workflow.

A passenger publishes a demand; drivers answer with offers that point at one
of their own rides. The passenger accepts at most one offer: accepting marks
the demand ``matched`` and declines every sibling offer in one transaction.

All writes for a demand run under a row lock on the demand plus a version
check, so two acceptances for the same demand cannot both win. Accepting an
offer does not touch the offered ride's seats.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.utils import timezone

from common.utils.geo import is_valid_coordinate
from rides.models import Ride, RideDemand, RideOffer
from .exceptions import ConflictError, EngineError, ForbiddenError, NotFoundError, ValidationError
from .repository import RideRepository, normalize_user_id

logger = logging.getLogger(__name__)

ACCEPT = 'accept'
DECLINE = 'decline'
OFFER_DECISION_ALIASES = {
    'accept': ACCEPT,
    'accepted': ACCEPT,
    'decline': DECLINE,
    'declined': DECLINE,
    'reject': DECLINE,
}


@dataclass
class OfferResult:
    """Result object for offer decisions."""
    demand: RideDemand
    offer: RideOffer
    message: str = ""


def parse_offer_decision(value) -> str:
    decision = OFFER_DECISION_ALIASES.get(str(value or '').lower())
    if decision is None:
        raise ValidationError("Action must be 'accept' or 'decline'", action=value)
    return decision


class DemandOfferWorkflow:

    def __init__(self, repository: RideRepository, notifier):
        self.repository = repository
        self.notifier = notifier

    def create_demand(
        self,
        passenger,
        origin_address: str,
        origin_latitude,
        origin_longitude,
        destination_address: str,
        destination_latitude,
        destination_longitude,
        desired_time,
        seats_needed: int = 1,
        max_price=None,
        title: str = "",
        notes: str = "",
    ) -> RideDemand:
        """
        Publish a ride demand.

        Raises:
            ValidationError: missing addresses or time, bad coordinates,
                seats_needed < 1 or a negative max_price
        """
        passenger_id = normalize_user_id(passenger)
        if not (origin_address or "").strip() or not (destination_address or "").strip():
            raise ValidationError("Origin and destination addresses are required")
        if desired_time is None:
            raise ValidationError("desired_time is required")
        if not is_valid_coordinate(origin_latitude, origin_longitude):
            raise ValidationError("Invalid origin coordinates")
        if not is_valid_coordinate(destination_latitude, destination_longitude):
            raise ValidationError("Invalid destination coordinates")
        if isinstance(seats_needed, bool) or not isinstance(seats_needed, int) or seats_needed < 1:
            raise ValidationError("seats_needed must be a positive integer")
        if max_price is not None:
            try:
                max_price = Decimal(str(max_price))
            except InvalidOperation:
                raise ValidationError("max_price must be a number", max_price=max_price)
            if max_price < 0:
                raise ValidationError("max_price cannot be negative")

        demand = self.repository.create_demand(
            passenger_id,
            title=title,
            notes=notes,
            origin_address=origin_address.strip(),
            origin_latitude=origin_latitude,
            origin_longitude=origin_longitude,
            destination_address=destination_address.strip(),
            destination_latitude=destination_latitude,
            destination_longitude=destination_longitude,
            desired_time=desired_time,
            seats_needed=seats_needed,
            max_price=max_price,
        )
        logger.info(f"Ride demand {demand.pk} created by user {passenger_id}")
        return demand

    def make_offer(
        self,
        demand: RideDemand,
        driver,
        carpool_ride: Ride,
        message: str = "",
        timeout: Optional[float] = None,
    ) -> RideOffer:
        """
        Offer one of the driver's rides for a demand.

        Raises:
            ForbiddenError: the ride is not the driver's
            ConflictError: demand not open, driver is the demand's passenger,
                ride already finished, or the same offer is still open
        """
        driver_id = normalize_user_id(driver)
        if carpool_ride.owner_id != driver_id:
            raise ForbiddenError("You can only offer your own rides")
        if demand.passenger_id == driver_id:
            raise ConflictError("You cannot offer a ride for your own demand")
        if carpool_ride.is_terminal:
            raise ConflictError(f"Ride is already {carpool_ride.status}", status=carpool_ride.status)

        with self.repository.atomic(timeout):
            locked = self.repository.get_demand(demand.pk, for_update=True)
            if locked.status != RideDemand.OPEN:
                raise ConflictError(f"Demand is {locked.status}", status=locked.status)
            if self.repository.has_open_offer(locked, driver_id, carpool_ride.pk):
                raise ConflictError("You already offered this ride for this demand")
            offer = self.repository.create_offer(locked, driver_id, carpool_ride, message)
            self.notifier.notify(locked.passenger_id, 'offer_received', {
                "demand_id": locked.pk,
                "offer_id": offer.pk,
                "ride_id": carpool_ride.pk,
                "driver_id": driver_id,
            })

        self._sync(demand, locked)
        logger.info(f"Offer {offer.pk} on demand {demand.pk} from driver {driver_id}")
        return offer

    def decide(
        self,
        demand: RideDemand,
        offer: RideOffer,
        actor,
        decision,
        timeout: Optional[float] = None,
    ) -> OfferResult:
        """
        Accept or decline one offer on the actor's demand.

        Raises:
            ForbiddenError: actor is not the demand's passenger
            NotFoundError: offer is not on this demand
            ConflictError: offer already decided, or the demand is no longer open
        """
        actor_id = normalize_user_id(actor)
        decision = parse_offer_decision(decision)
        if demand.passenger_id != actor_id:
            raise ForbiddenError("Only the passenger who posted the demand can decide on offers")
        if offer.demand_id != demand.pk:
            raise NotFoundError("Offer does not belong to this demand", offer_id=offer.pk)
        if offer.status != RideOffer.PENDING:
            raise ConflictError(f"Offer is already {offer.status}", status=offer.status)

        now = timezone.now()
        try:
            with self.repository.atomic(timeout):
                locked = self.repository.get_demand(demand.pk, for_update=True)
                if decision == ACCEPT:
                    if locked.status != RideDemand.OPEN:
                        raise ConflictError(f"Demand is {locked.status}", status=locked.status)
                    if not self.repository.transition_offer(offer, RideOffer.PENDING, RideOffer.ACCEPTED, now):
                        raise ConflictError("Offer was already decided")
                    if not self.repository.update_demand_if_unchanged(
                        locked, RideDemand.OPEN, status=RideDemand.MATCHED
                    ):
                        raise ConflictError("Demand changed while accepting, please retry")
                    declined_driver_ids = self.repository.decline_sibling_offers(locked, offer.pk, now)
                    self.notifier.notify(offer.driver_id, 'offer_accepted', {
                        "demand_id": locked.pk,
                        "offer_id": offer.pk,
                        "ride_id": offer.carpool_ride_id,
                    })
                    for driver_id in sorted(set(declined_driver_ids)):
                        self.notifier.notify(driver_id, 'offer_declined', {"demand_id": locked.pk})
                else:
                    if not self.repository.transition_offer(offer, RideOffer.PENDING, RideOffer.DECLINED, now):
                        raise ConflictError("Offer was already decided")
                    self.notifier.notify(offer.driver_id, 'offer_declined', {
                        "demand_id": locked.pk,
                        "offer_id": offer.pk,
                    })
        except EngineError:
            self.repository.refresh_offer(offer)
            self.repository.refresh_demand(demand)
            raise

        self._sync(demand, locked)
        logger.info(f"Offer {offer.pk} {offer.status} on demand {demand.pk}")
        return OfferResult(
            demand=demand,
            offer=offer,
            message=f"Offer {offer.status}",
        )

    def cancel_demand(self, demand: RideDemand, actor, timeout: Optional[float] = None) -> RideDemand:
        """Withdraw an open demand and decline every offer still pending on it."""
        actor_id = normalize_user_id(actor)
        if demand.passenger_id != actor_id:
            raise ForbiddenError("Only the passenger who posted the demand can cancel it")

        now = timezone.now()
        with self.repository.atomic(timeout):
            locked = self.repository.get_demand(demand.pk, for_update=True)
            if locked.status != RideDemand.OPEN:
                raise ConflictError(f"Demand is {locked.status}", status=locked.status)
            if not self.repository.update_demand_if_unchanged(
                locked, RideDemand.OPEN, status=RideDemand.CANCELLED
            ):
                raise ConflictError("Demand changed while cancelling, please retry")
            driver_ids = self.repository.decline_sibling_offers(locked, None, now)
            for driver_id in sorted(set(driver_ids)):
                self.notifier.notify(driver_id, 'demand_cancelled', {"demand_id": locked.pk})

        self._sync(demand, locked)
        logger.info(f"Ride demand {demand.pk} cancelled by passenger {actor_id}")
        return demand

    @staticmethod
    def _sync(demand: RideDemand, locked: RideDemand):
        demand.status = locked.status
        demand.version = locked.version
        demand.updated_at = locked.updated_at
