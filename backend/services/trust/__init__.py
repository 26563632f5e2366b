"""User trust and safety scoring."""

from .scoring import (
    BehaviorRisk,
    TrustConfig,
    TrustProfile,
    TrustScoreResult,
    calculate_behavior_risk,
    calculate_user_trust_score,
    get_trust_config,
    trust_level,
)

__all__ = [
    "BehaviorRisk",
    "TrustConfig",
    "TrustProfile",
    "TrustScoreResult",
    "calculate_behavior_risk",
    "calculate_user_trust_score",
    "get_trust_config",
    "trust_level",
]
