"""
Rank candidate rides for a passenger.

Two entry points:
    - rank_rides_for_demand: compatibility ranking against an explicit request
      (a RideDemand or an ad-hoc search)
    - recommend_rides: history-based suggestions built on UserPreferences
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from common.utils.geo import calculate_distance
from .compatibility import (
    GeoPoint,
    RouteMatch,
    TimeMatch,
    UserMatch,
    calculate_overall_match_score,
    calculate_price_compatibility,
    calculate_route_compatibility,
    calculate_time_compatibility,
    calculate_user_compatibility,
)
from .config import MatchingConfig
from .preferences import UserPreferences

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchCriteria:
    """What the passenger is looking for."""
    passenger_id: int
    origin: GeoPoint
    destination: GeoPoint
    desired_time: datetime
    seats_needed: int = 1
    max_price: Optional[float] = None


@dataclass(frozen=True)
class CandidateRide:
    """Scoring view of a ride; ``ride`` carries the caller's own object through ranking."""
    ride_id: Any
    owner_id: int
    origin: GeoPoint
    destination: GeoPoint
    departure_time: datetime
    route: Optional[Sequence[Sequence[float]]] = None
    price: float = 0.0
    seats_available: int = 0
    ride: Any = None


@dataclass(frozen=True)
class RideMatch:
    candidate: CandidateRide
    match_score: int
    breakdown: Dict[str, float]
    route_match: RouteMatch
    time_match: TimeMatch
    user_match: UserMatch
    price_score: float
    recommendation: str


@dataclass(frozen=True)
class RideRecommendation:
    candidate: CandidateRide
    recommendation_score: int
    factors: List[str] = field(default_factory=list)


def get_recommendation(score: int) -> str:
    if score >= 90:
        return "Perfect match! Highly recommended."
    if score >= 75:
        return "Great match! Strong recommendation."
    if score >= 60:
        return "Good match. Worth considering."
    if score >= 45:
        return "Moderate match. Some deviation expected."
    return "Low match. Significant route or time differences."


def score_candidate(
    criteria: MatchCriteria,
    candidate: CandidateRide,
    driver_ratings: Sequence[float],
    passenger_ratings: Sequence[float],
    config: MatchingConfig = MatchingConfig(),
) -> RideMatch:
    """Full compatibility breakdown for one candidate ride."""
    route_match = calculate_route_compatibility(
        candidate.origin,
        candidate.destination,
        candidate.route,
        criteria.origin,
        criteria.destination,
        config,
    )
    time_match = calculate_time_compatibility(candidate.departure_time, criteria.desired_time, config)
    user_match = calculate_user_compatibility(driver_ratings, passenger_ratings, config)
    price_score = calculate_price_compatibility(candidate.price, criteria.max_price, config)

    overall = calculate_overall_match_score(
        route_match.score, time_match.score, user_match.score, price_score, config
    )
    return RideMatch(
        candidate=candidate,
        match_score=overall.total_score,
        breakdown=overall.breakdown,
        route_match=route_match,
        time_match=time_match,
        user_match=user_match,
        price_score=price_score,
        recommendation=get_recommendation(overall.total_score),
    )


def rank_rides_for_demand(
    criteria: MatchCriteria,
    candidates: Sequence[CandidateRide],
    ratings: Mapping[int, Sequence[float]],
    config: MatchingConfig = MatchingConfig(),
) -> List[RideMatch]:
    """
    Score and order candidate rides for a passenger.

    Args:
        criteria: Passenger origin/destination/time/price
        candidates: Rides to consider (already filtered for seats and status)
        ratings: Rating history per user id; missing users are neutral
        config: Weights and thresholds

    Returns:
        Best ``config.max_results`` matches, highest score first
    """
    passenger_ratings = ratings.get(criteria.passenger_id, ())
    matches = [
        score_candidate(criteria, candidate, ratings.get(candidate.owner_id, ()), passenger_ratings, config)
        for candidate in candidates
    ]
    matches.sort(key=lambda m: -m.match_score)
    logger.debug(
        "Ranked %d candidate rides for passenger %s", len(matches), criteria.passenger_id
    )
    return matches[: config.max_results]


def _near_any(point: GeoPoint, areas: Sequence[GeoPoint], radius_km: float) -> bool:
    return any(
        calculate_distance(area.lat, area.lng, point.lat, point.lng) < radius_km
        for area in areas
    )


def recommend_rides(
    preferences: UserPreferences,
    candidates: Sequence[CandidateRide],
    ratings: Mapping[int, Sequence[float]],
    now: datetime,
    config: MatchingConfig = MatchingConfig(),
) -> List[RideRecommendation]:
    """Suggest upcoming rides that look like what the passenger usually books."""
    recommendations = []
    for candidate in candidates:
        score = 0
        factors = []

        if candidate.departure_time.hour in preferences.preferred_hours:
            score += 20
            factors.append("Matches your preferred time")

        if preferences.has_route_history:
            origin_match = _near_any(candidate.origin, preferences.common_origins, config.cluster_radius_km)
            dest_match = _near_any(candidate.destination, preferences.common_destinations, config.cluster_radius_km)
            if origin_match or dest_match:
                score += 30
                factors.append("Similar to your previous routes")

        driver_ratings = ratings.get(candidate.owner_id, ())
        if driver_ratings:
            avg = sum(driver_ratings) / len(driver_ratings)
            if avg >= 4.5:
                score += 25
                factors.append("Highly rated driver")
            elif avg >= 4.0:
                score += 15
                factors.append("Well-rated driver")

        if preferences.avg_price > 0:
            if abs((candidate.price or 0) - preferences.avg_price) < preferences.avg_price * 0.2:
                score += 15
                factors.append("Price matches your budget")

        days_until = (candidate.departure_time - now).total_seconds() / 86400
        if days_until <= 7:
            score += 10
            factors.append("Upcoming ride")

        recommendations.append(RideRecommendation(candidate, min(100, score), factors))

    recommendations.sort(key=lambda r: -r.recommendation_score)
    return recommendations[: config.max_results]
