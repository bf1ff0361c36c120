"""Business logic services for the Nosedive reputation engine."""

from .brigade import maybe_flag_brigade
from .gate import ReputationGate
from .identity import IdentityRef, canonical_identity, claim_session, resolve_handle
from .quotas import Quota, Tier, quotas_for_score
from .rate_limit import FixedWindowRateLimiter, RedisRateLimiter, get_rate_limiter
from .results import GateAllowed, GateDenied, GateRule, QuotaAllowed, RatingOutcome
from .scoring import ScoreAggregator, aggregate, recency_factor, weight_from_rater_score

__all__ = [
    "maybe_flag_brigade",
    "ReputationGate",
    "IdentityRef", "canonical_identity", "claim_session", "resolve_handle",
    "Quota", "Tier", "quotas_for_score",
    "FixedWindowRateLimiter", "RedisRateLimiter", "get_rate_limiter",
    "GateAllowed", "GateDenied", "GateRule", "QuotaAllowed", "RatingOutcome",
    "ScoreAggregator", "aggregate", "recency_factor", "weight_from_rater_score",
]
