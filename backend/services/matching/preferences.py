"""
Implicit passenger preferences derived from booking history.

Given the passenger's most recent accepted/completed bookings (most recent
first), works out preferred departure hours, frequent origin and destination
areas, and the average price paid.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from common.utils.geo import calculate_distance
from .compatibility import GeoPoint
from .config import MatchingConfig

DEFAULT_PREFERRED_HOURS = [8, 12, 17]  # commute hours


@dataclass(frozen=True)
class RideHistoryEntry:
    departure_time: datetime
    origin: Optional[GeoPoint] = None
    destination: Optional[GeoPoint] = None
    price: Optional[float] = None


@dataclass
class LocationCluster:
    lat: float
    lng: float
    count: int = 1

    def as_point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)


@dataclass(frozen=True)
class UserPreferences:
    preferred_hours: List[int] = field(default_factory=lambda: list(DEFAULT_PREFERRED_HOURS))
    common_origins: List[GeoPoint] = field(default_factory=list)
    common_destinations: List[GeoPoint] = field(default_factory=list)
    avg_price: float = 0.0

    @property
    def has_route_history(self) -> bool:
        return bool(self.common_origins or self.common_destinations)


def cluster_locations(points: Sequence[GeoPoint], max_distance_km: float = 5.0, top: int = 3) -> List[GeoPoint]:
    """
    Greedy single-pass clustering.

    Each point joins the first cluster whose centroid is closer than
    ``max_distance_km`` (the centroid becomes the running average of its
    members), otherwise it starts a new cluster. Returns the centroids of the
    ``top`` largest clusters; equal sizes keep creation order.
    """
    clusters: List[LocationCluster] = []
    for point in points:
        for cluster in clusters:
            if calculate_distance(point.lat, point.lng, cluster.lat, cluster.lng) < max_distance_km:
                total = cluster.count + 1
                cluster.lat = (cluster.lat * cluster.count + point.lat) / total
                cluster.lng = (cluster.lng * cluster.count + point.lng) / total
                cluster.count = total
                break
        else:
            clusters.append(LocationCluster(point.lat, point.lng))

    ranked = sorted(clusters, key=lambda c: -c.count)
    return [c.as_point() for c in ranked[:top]]


def analyze_user_preferences(
    history: Sequence[RideHistoryEntry],
    config: MatchingConfig = MatchingConfig(),
) -> UserPreferences:
    """Profile a passenger from up to ``config.history_limit`` recent rides."""
    recent = list(history)[: config.history_limit]

    hour_counts = Counter(entry.departure_time.hour for entry in recent)
    # most frequent first, earlier hour on ties
    ranked_hours = sorted(hour_counts.items(), key=lambda item: (-item[1], item[0]))
    preferred_hours = [hour for hour, _ in ranked_hours[:3]] or list(DEFAULT_PREFERRED_HOURS)

    origins = [e.origin for e in recent if e.origin is not None]
    destinations = [e.destination for e in recent if e.destination is not None]

    prices = [float(e.price) for e in recent if e.price and e.price > 0]
    avg_price = sum(prices) / len(prices) if prices else 0.0

    return UserPreferences(
        preferred_hours=preferred_hours,
        common_origins=cluster_locations(origins, config.cluster_radius_km),
        common_destinations=cluster_locations(destinations, config.cluster_radius_km),
        avg_price=avg_price,
    )
