"""
Read-side helpers that feed stored rides, bookings and reviews into the pure
scorers in ``services.matching`` and ``services.trust``.
"""

from typing import List, Optional, Tuple

from django.utils import timezone

from rides.models import RideDemand
from services.matching import (
    MatchingConfig,
    RideMatch,
    RideRecommendation,
    analyze_user_preferences,
    get_matching_config,
    rank_rides_for_demand,
    recommend_rides,
)
from services.trust import (
    BehaviorRisk,
    TrustConfig,
    TrustProfile,
    TrustScoreResult,
    calculate_behavior_risk,
    calculate_user_trust_score,
    get_trust_config,
)
from .repository import RideRepository, normalize_user_id


def match_rides_for_demand(
    repository: RideRepository,
    demand: RideDemand,
    config: Optional[MatchingConfig] = None,
) -> List[RideMatch]:
    """Rank open rides around the demand's desired time, best first."""
    config = config or get_matching_config()
    criteria = repository.criteria_for_demand(demand)
    candidates = repository.candidate_rides_for(criteria, config.max_time_difference_hours)
    ratings = repository.rating_history(
        [criteria.passenger_id] + [c.owner_id for c in candidates]
    )
    return rank_rides_for_demand(criteria, candidates, ratings, config)


def recommend_rides_for_user(
    repository: RideRepository,
    user,
    now=None,
    config: Optional[MatchingConfig] = None,
) -> List[RideRecommendation]:
    """Upcoming rides that resemble the user's recent bookings."""
    config = config or get_matching_config()
    user_id = normalize_user_id(user)
    now = now or timezone.now()

    history = repository.passenger_ride_history(user_id, limit=config.history_limit)
    preferences = analyze_user_preferences(history, config)
    candidates = repository.upcoming_rides_for(user_id, now)
    ratings = repository.rating_history(c.owner_id for c in candidates)
    return recommend_rides(preferences, candidates, ratings, now, config)


def trust_score_for_user(
    repository: RideRepository,
    user,
    now=None,
    config: Optional[TrustConfig] = None,
) -> Tuple[TrustScoreResult, BehaviorRisk]:
    config = config or get_trust_config()
    account = repository.get_user(user)
    now = now or timezone.now()

    profile = TrustProfile(
        account_created_at=account.date_joined,
        is_verified=account.is_verified,
        has_profile_photo=bool(account.profile_picture),
    )
    statuses = repository.ride_statuses_for(account.pk)
    ratings = repository.ratings_for(account.pk)
    return (
        calculate_user_trust_score(profile, statuses, ratings, now, config),
        calculate_behavior_risk(statuses, ratings),
    )
