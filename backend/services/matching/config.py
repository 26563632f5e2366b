"""
Matching configuration.

Scoring weights and thresholds are product constants. Defaults live here and
can be overridden per deployment with the ``RIDE_MATCHING`` settings dict, e.g.::

    RIDE_MATCHING = {"MAX_DEVIATION_KM": 3, "ROUTE_WEIGHT": 0.5}
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class MatchingConfig:
    # Route
    max_deviation_km: float = 5.0
    exact_match_km: float = 0.5
    route_decay_factor: float = 50.0

    # Time
    max_time_difference_hours: float = 2.0

    # Ratings
    neutral_rating: float = 3.0
    high_rating: float = 4.5
    low_rating: float = 3.0
    high_rating_bonus: float = 10.0
    experience_bonus: float = 5.0
    experience_min_reviews: int = 5
    low_rating_penalty: float = 15.0

    # Price
    neutral_price_score: float = 50.0

    # Overall weights
    route_weight: float = 0.4
    time_weight: float = 0.2
    user_weight: float = 0.3
    price_weight: float = 0.1

    # Ranking / recommendations
    max_results: int = 10
    cluster_radius_km: float = 5.0
    history_limit: int = 10

    @classmethod
    def from_dict(cls, overrides: Optional[Dict[str, Any]] = None) -> "MatchingConfig":
        """Build a config from an upper- or lower-case keyed dict; unknown keys are ignored."""
        config = cls()
        if not overrides:
            return config
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in overrides.items():
            name = key.lower()
            if name in known:
                values[name] = value
        return replace(config, **values)


def get_matching_config() -> MatchingConfig:
    """Config from Django settings (``RIDE_MATCHING``), or defaults outside Django."""
    from django.conf import settings
    from django.core.exceptions import ImproperlyConfigured

    try:
        overrides = getattr(settings, "RIDE_MATCHING", None)
    except ImproperlyConfigured:
        overrides = None
    return MatchingConfig.from_dict(overrides)
