"""Post-ride reviews between participants of a completed ride."""

import logging
from typing import Optional

from accounts.models import Review
from rides.models import Ride
from .exceptions import ConflictError, ValidationError
from .repository import RideRepository, normalize_user_id

logger = logging.getLogger(__name__)


def submit_review(
    author,
    subject,
    ride: Ride,
    rating,
    comment: str = "",
    repository: Optional[RideRepository] = None,
) -> Review:
    """
    Record ``author``'s rating of ``subject`` for a completed ride.

    Raises:
        ValidationError: self-review or rating outside 1..5
        ConflictError: ride not completed, either user did not take part,
            or the author already reviewed this subject for this ride
    """
    repository = repository or RideRepository()
    author_id = normalize_user_id(author)
    subject_id = normalize_user_id(subject)

    if author_id == subject_id:
        raise ValidationError("You cannot review yourself")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5", rating=rating)
    if ride.status != Ride.COMPLETED:
        raise ConflictError("Reviews are only allowed after the ride is completed")
    if not repository.is_ride_member(ride, author_id) or not repository.is_ride_member(ride, subject_id):
        raise ConflictError("Both users must have taken part in the ride")

    with repository.atomic():
        if repository.review_exists(author_id, subject_id, ride):
            raise ConflictError("You already reviewed this user for this ride")
        review = repository.create_review(author_id, subject_id, ride, rating, comment)

    logger.info(f"Review {review.pk}: user {author_id} rated user {subject_id} {rating}/5 for ride {ride.pk}")
    return review
