"""
Ride management service - Booking and negotiation workflows.

This module handles:
    - Seat inventory for published rides (RideInventory)
    - Booking requests on rides (BookingRequestWorkflow)
    - Ride demands and driver offers (DemandOfferWorkflow)
    - Post-ride reviews
    - Persistence boundary (RideRepository)
"""

from .booking import BookingRequestWorkflow, BookingResult
from .demands import DemandOfferWorkflow, OfferResult
from .inventory import RideInventory
from .repository import RideRepository, normalize_user_id
from .reviews import submit_review

from .exceptions import (
    EngineError,
    ValidationError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    InternalError,
)

__all__ = [
    # Workflows
    "BookingRequestWorkflow",
    "BookingResult",
    "DemandOfferWorkflow",
    "OfferResult",
    "RideInventory",
    "RideRepository",
    "normalize_user_id",
    "submit_review",
    # Exceptions
    "EngineError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "InternalError",
]
