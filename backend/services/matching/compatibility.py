"""
Ride compatibility scoring.

Ranks a candidate ride against a passenger's desired origin, destination,
departure time and price, and the ratings of both parties. Everything here is
a pure function of its inputs: no ORM access, no clock reads.

Score components (0-100 each):
    - route: endpoint distances plus nearest-vertex deviation from the polyline
    - time:  linear decay over the allowed departure window
    - user:  average driver/passenger rating with bonuses and penalties
    - price: neutral without a cap, rewarded under it, penalised over it
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from common.utils.geo import calculate_distance, find_closest_point_on_route
from .config import MatchingConfig

MATCH_EXACT = "exact"
MATCH_ON_ROUTE = "on-route"
MATCH_NEARBY = "nearby"


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class RouteMatch:
    score: int
    origin_deviation: float
    destination_deviation: float
    route_deviation: Optional[float]  # None when the ride has no polyline
    match_type: str


@dataclass(frozen=True)
class TimeMatch:
    score: int
    time_difference_hours: float


@dataclass(frozen=True)
class UserMatch:
    score: int
    driver_rating: float
    passenger_rating: float
    factors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class OverallScore:
    total_score: int
    breakdown: Dict[str, float]


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round .5 away from zero for positive values (``round()`` rounds half to even)."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _decay(distance_km: float, config: MatchingConfig) -> float:
    return _clamp(100 - (distance_km / config.max_deviation_km) * config.route_decay_factor)


def calculate_route_compatibility(
    ride_origin: GeoPoint,
    ride_destination: GeoPoint,
    ride_route: Optional[Sequence[Sequence[float]]],
    user_origin: GeoPoint,
    user_destination: GeoPoint,
    config: MatchingConfig = MatchingConfig(),
) -> RouteMatch:
    """
    Score how well a ride's route serves the passenger's origin and destination.

    Args:
        ride_origin: Ride start point
        ride_destination: Ride end point
        ride_route: Optional ``[lng, lat]`` polyline published by the driver
        user_origin: Passenger pickup point
        user_destination: Passenger dropoff point
        config: Thresholds and weights

    Returns:
        RouteMatch with the score, deviations (km, 1 decimal) and match type
    """
    origin_distance = calculate_distance(ride_origin.lat, ride_origin.lng, user_origin.lat, user_origin.lng)
    destination_distance = calculate_distance(
        ride_destination.lat, ride_destination.lng, user_destination.lat, user_destination.lng
    )

    route_deviation = None
    if ride_route:
        origin_on_route = find_closest_point_on_route(ride_route, user_origin.lat, user_origin.lng)
        dest_on_route = find_closest_point_on_route(ride_route, user_destination.lat, user_destination.lng)
        route_deviation = max(origin_on_route.distance, dest_on_route.distance)

    if origin_distance < config.exact_match_km and destination_distance < config.exact_match_km:
        match_type = MATCH_EXACT
    elif route_deviation is not None and route_deviation < config.max_deviation_km:
        match_type = MATCH_ON_ROUTE
    else:
        match_type = MATCH_NEARBY

    origin_score = _decay(origin_distance, config)
    dest_score = _decay(destination_distance, config)

    if route_deviation is not None:
        route_score = _decay(route_deviation, config)
        score = route_score * 0.5 + origin_score * 0.25 + dest_score * 0.25
    else:
        score = origin_score * 0.5 + dest_score * 0.5

    return RouteMatch(
        score=int(round_half_up(score)),
        origin_deviation=round_half_up(origin_distance, 1),
        destination_deviation=round_half_up(destination_distance, 1),
        route_deviation=round_half_up(route_deviation, 1) if route_deviation is not None else None,
        match_type=match_type,
    )


def calculate_time_compatibility(
    ride_time: datetime,
    user_time: datetime,
    config: MatchingConfig = MatchingConfig(),
) -> TimeMatch:
    """Linear decay from 100 at the same time to 0 at the edge of the window."""
    hours = abs((ride_time - user_time).total_seconds()) / 3600.0
    score = _clamp(100 - (hours / config.max_time_difference_hours) * 100)
    return TimeMatch(score=int(round_half_up(score)), time_difference_hours=round_half_up(hours, 1))


def _average(ratings: Sequence[float], default: float) -> float:
    if not ratings:
        return default
    return sum(float(r or 0) for r in ratings) / len(ratings)


def calculate_user_compatibility(
    driver_ratings: Sequence[float],
    passenger_ratings: Sequence[float],
    config: MatchingConfig = MatchingConfig(),
) -> UserMatch:
    """
    Score the pairing of a driver and a passenger from their rating histories.

    Users without reviews are treated as neutral (``config.neutral_rating``).
    """
    driver_avg = _average(driver_ratings, config.neutral_rating)
    passenger_avg = _average(passenger_ratings, config.neutral_rating)

    score = ((driver_avg + passenger_avg) / 2) * 20
    factors = []

    if driver_avg >= config.high_rating:
        score += config.high_rating_bonus
        factors.append("Highly rated driver")
    if passenger_avg >= config.high_rating:
        score += config.high_rating_bonus
        factors.append("Highly rated passenger")

    if driver_avg < config.low_rating:
        score -= config.low_rating_penalty
        factors.append("Driver has low ratings")
    if passenger_avg < config.low_rating:
        score -= config.low_rating_penalty
        factors.append("Passenger has low ratings")

    if len(driver_ratings) >= config.experience_min_reviews:
        score += config.experience_bonus
        factors.append("Experienced driver")
    if len(passenger_ratings) >= config.experience_min_reviews:
        score += config.experience_bonus
        factors.append("Experienced passenger")

    return UserMatch(
        score=int(round_half_up(_clamp(score))),
        driver_rating=round_half_up(driver_avg, 1),
        passenger_rating=round_half_up(passenger_avg, 1),
        factors=factors,
    )


def calculate_price_compatibility(
    ride_price: Optional[float],
    max_price: Optional[float],
    config: MatchingConfig = MatchingConfig(),
) -> float:
    """Neutral without a cap; proportional reward under it and penalty over it."""
    if not max_price:
        return config.neutral_price_score
    ride_price = float(ride_price or 0)
    max_price = float(max_price)
    if ride_price <= max_price:
        savings = (max_price - ride_price) / max_price
        return _clamp(50 + savings * 50)
    excess = (ride_price - max_price) / max_price
    return _clamp(50 - excess * 50)


def calculate_overall_match_score(
    route_score: float,
    time_score: float,
    user_score: float,
    price_score: float,
    config: MatchingConfig = MatchingConfig(),
) -> OverallScore:
    total = (
        route_score * config.route_weight
        + time_score * config.time_weight
        + user_score * config.user_weight
        + price_score * config.price_weight
    )
    return OverallScore(
        total_score=int(round_half_up(total)),
        breakdown={
            "route": route_score,
            "time": time_score,
            "user": user_score,
            "price": price_score,
        },
    )
