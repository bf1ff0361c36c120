"""Posting quota tiers derived from reputation."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Final


class Tier(str, Enum):
    """Quota bands, lowest first."""

    C = "C"
    B = "B"
    A = "A"
    A_PLUS = "A+"


@dataclass(frozen=True)
class Quota:
    """Daily allowances granted to a tier."""

    posts_per_day: int
    replies_per_day: int
    per_thread_daily: int
    tier: Tier

    def as_dict(self) -> dict[str, int | str]:
        data = asdict(self)
        data["tier"] = self.tier.value
        return data


# Inclusive lower thresholds, evaluated highest first.
QUOTA_TABLE: Final[tuple[tuple[float, Quota], ...]] = (
    (4.5, Quota(posts_per_day=4, replies_per_day=24, per_thread_daily=12, tier=Tier.A_PLUS)),
    (4.0, Quota(posts_per_day=3, replies_per_day=18, per_thread_daily=9, tier=Tier.A)),
    (3.0, Quota(posts_per_day=2, replies_per_day=12, per_thread_daily=6, tier=Tier.B)),
)
FLOOR_QUOTA: Final[Quota] = Quota(
    posts_per_day=1, replies_per_day=6, per_thread_daily=3, tier=Tier.C
)


def quotas_for_score(bayesian_mean: float | None) -> Quota:
    """Return the quota band for a Bayesian mean."""
    if bayesian_mean is None or math.isnan(bayesian_mean):
        return FLOOR_QUOTA
    for threshold, quota in QUOTA_TABLE:
        if bayesian_mean >= threshold:
            return quota
    return FLOOR_QUOTA
