"""
Ride matching and ranking service.

This module handles:
    - Route/time/user/price compatibility scoring
    - Passenger preference profiling from ride history
    - Ranking candidate rides for a demand and history-based recommendations
"""

from .config import MatchingConfig, get_matching_config
from .compatibility import (
    GeoPoint,
    calculate_overall_match_score,
    calculate_price_compatibility,
    calculate_route_compatibility,
    calculate_time_compatibility,
    calculate_user_compatibility,
)
from .preferences import RideHistoryEntry, UserPreferences, analyze_user_preferences, cluster_locations
from .ranking import (
    CandidateRide,
    MatchCriteria,
    RideMatch,
    RideRecommendation,
    rank_rides_for_demand,
    recommend_rides,
)

__all__ = [
    "MatchingConfig",
    "get_matching_config",
    "GeoPoint",
    "calculate_overall_match_score",
    "calculate_price_compatibility",
    "calculate_route_compatibility",
    "calculate_time_compatibility",
    "calculate_user_compatibility",
    "RideHistoryEntry",
    "UserPreferences",
    "analyze_user_preferences",
    "cluster_locations",
    "CandidateRide",
    "MatchCriteria",
    "RideMatch",
    "RideRecommendation",
    "rank_rides_for_demand",
    "recommend_rides",
]
