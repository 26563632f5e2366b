"""
User trust and behaviour-risk scoring.

Trust score (0-100) is the sum of five independently capped components:

    reviews       avg rating / 5 * 40          (max 40)
    activity      2 points per completed ride  (max 20)
    account_age   1 point per 30 days          (max 10)
    verification  10 verified email + 5 photo  (max 15)
    behavior      15 minus cancellation penalty (min 0)

Risk score (0-100, higher is riskier) looks only at cancellations and
persistently low ratings.
"""

import math
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

RIDE_COMPLETED = "completed"
RIDE_CANCELLED = "cancelled"

LEVEL_EXCELLENT = "excellent"
LEVEL_GOOD = "good"
LEVEL_FAIR = "fair"
LEVEL_POOR = "poor"
LEVEL_NEW = "new"

RISK_HIGH = "high"
RISK_MEDIUM = "medium"
RISK_LOW = "low"


@dataclass(frozen=True)
class TrustConfig:
    review_points: int = 40
    no_review_points: int = 12
    activity_points_per_ride: int = 2
    activity_cap: int = 20
    account_age_days_per_point: int = 30
    account_age_cap: int = 10
    verified_email_points: int = 10
    profile_photo_points: int = 5
    behavior_points: int = 15
    high_cancellation_rate: float = 0.3
    some_cancellation_rate: float = 0.1
    high_cancellation_penalty: int = 10
    some_cancellation_penalty: int = 5

    @classmethod
    def from_dict(cls, overrides: Optional[Dict[str, Any]] = None) -> "TrustConfig":
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        return replace(cls(), **{k.lower(): v for k, v in overrides.items() if k.lower() in known})


def get_trust_config() -> TrustConfig:
    """Config from Django settings (``TRUST_SCORING``), or defaults outside Django."""
    from django.conf import settings
    from django.core.exceptions import ImproperlyConfigured

    try:
        overrides = getattr(settings, "TRUST_SCORING", None)
    except ImproperlyConfigured:
        overrides = None
    return TrustConfig.from_dict(overrides)


@dataclass(frozen=True)
class TrustProfile:
    """The account facts the score needs."""
    account_created_at: Optional[datetime] = None
    is_verified: bool = False
    has_profile_photo: bool = False


@dataclass
class TrustBreakdown:
    reviews: int = 0
    activity: int = 0
    account_age: int = 0
    verification: int = 0
    behavior: int = 0

    def total(self) -> int:
        return self.reviews + self.activity + self.account_age + self.verification + self.behavior

    def as_dict(self) -> Dict[str, int]:
        return {
            "reviews": self.reviews,
            "activity": self.activity,
            "accountAge": self.account_age,
            "verification": self.verification,
            "behavior": self.behavior,
        }


@dataclass
class TrustScoreResult:
    score: int
    breakdown: TrustBreakdown
    level: str
    factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class BehaviorRisk:
    risk_score: int
    risk_level: str
    indicators: List[str] = field(default_factory=list)


def trust_level(score: float) -> str:
    if score >= 80:
        return LEVEL_EXCELLENT
    if score >= 65:
        return LEVEL_GOOD
    if score >= 50:
        return LEVEL_FAIR
    if score >= 30:
        return LEVEL_POOR
    return LEVEL_NEW


def _cancellation_rate(ride_statuses: Sequence[str]) -> float:
    if not ride_statuses:
        return 0.0
    return sum(1 for s in ride_statuses if s == RIDE_CANCELLED) / len(ride_statuses)


def calculate_user_trust_score(
    profile: TrustProfile,
    ride_statuses: Sequence[str],
    ratings: Sequence[float],
    now: datetime,
    config: TrustConfig = TrustConfig(),
) -> TrustScoreResult:
    """
    Compute the trust score for one user.

    Args:
        profile: Account creation time and verification flags
        ride_statuses: Status of every ride in the user's history
        ratings: Ratings (1-5) the user has received
        now: Reference time for account age
        config: Component weights

    Returns:
        TrustScoreResult with score, breakdown, level, factors and recommendations
    """
    breakdown = TrustBreakdown()
    factors: List[str] = []
    recommendations: List[str] = []

    # 1. Reviews
    if ratings:
        avg_rating = sum(float(r or 0) for r in ratings) / len(ratings)
        breakdown.reviews = min(config.review_points, int(math.floor(avg_rating / 5 * config.review_points + 0.5)))
        if avg_rating >= 4.5:
            factors.append("Highly rated by other users")
        elif avg_rating >= 4.0:
            factors.append("Well-rated user")
        elif avg_rating < 3.0:
            factors.append("Low ratings - may need attention")
            recommendations.append("Consider reaching out to improve experience")
        if len(ratings) >= 10:
            factors.append("Established reputation")
    else:
        breakdown.reviews = config.no_review_points
        factors.append("No reviews yet")
        recommendations.append("Complete rides to build your reputation")

    # 2. Activity
    completed = sum(1 for s in ride_statuses if s == RIDE_COMPLETED)
    breakdown.activity = min(config.activity_cap, completed * config.activity_points_per_ride)
    if completed >= 10:
        factors.append("Experienced user with many completed rides")
    elif completed >= 5:
        factors.append("Active user")
    elif completed == 0 and ride_statuses:
        factors.append("No completed rides yet")
        recommendations.append("Complete your first ride to build trust")

    # 3. Account age
    age_days = 0.0
    if profile.account_created_at is not None:
        age_days = max(0.0, (now - profile.account_created_at).total_seconds() / 86400)
    breakdown.account_age = min(config.account_age_cap, int(age_days // config.account_age_days_per_point))
    if age_days >= 180:
        factors.append("Long-term member")
    elif age_days < 30:
        factors.append("New account")
        recommendations.append("Build your profile to increase trust")

    # 4. Verification
    if profile.is_verified:
        breakdown.verification += config.verified_email_points
        factors.append("Email verified")
    else:
        recommendations.append("Verify your email to increase trust score")
    if profile.has_profile_photo:
        breakdown.verification += config.profile_photo_points
        factors.append("Profile photo added")
    else:
        recommendations.append("Add a profile photo to build trust")

    # 5. Behavior
    breakdown.behavior = config.behavior_points
    if ride_statuses:
        rate = _cancellation_rate(ride_statuses)
        if rate > config.high_cancellation_rate:
            breakdown.behavior -= config.high_cancellation_penalty
            factors.append("High cancellation rate")
            recommendations.append("Try to avoid last-minute cancellations")
        elif rate > config.some_cancellation_rate:
            breakdown.behavior -= config.some_cancellation_penalty
            factors.append("Some cancellations")
    breakdown.behavior = max(0, breakdown.behavior)

    total = breakdown.total()
    return TrustScoreResult(
        score=max(0, min(100, total)),
        breakdown=breakdown,
        level=trust_level(total),
        factors=factors,
        recommendations=recommendations,
    )


def calculate_behavior_risk(ride_statuses: Sequence[str], ratings: Sequence[float]) -> BehaviorRisk:
    """Risk score from cancellations and persistently low ratings."""
    if not ride_statuses:
        return BehaviorRisk(50, RISK_MEDIUM, ["No ride history"])

    risk = 0
    indicators = []

    rate = _cancellation_rate(ride_statuses)
    if rate > 0.5:
        risk += 40
        indicators.append("Very high cancellation rate")
    elif rate > 0.3:
        risk += 25
        indicators.append("High cancellation rate")

    avg_rating = sum(float(r or 0) for r in ratings) / len(ratings) if ratings else 3.0
    if avg_rating < 2.5 and len(ratings) >= 3:
        risk += 30
        indicators.append("Consistently low ratings")
    elif avg_rating < 3.0 and len(ratings) >= 5:
        risk += 15
        indicators.append("Below average ratings")

    if risk >= 50:
        level = RISK_HIGH
    elif risk >= 25:
        level = RISK_MEDIUM
    else:
        level = RISK_LOW

    return BehaviorRisk(min(100, risk), level, indicators)
