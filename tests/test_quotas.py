"""Tests for reputation quota tiers."""

import pytest

from nosedive.services.quotas import FLOOR_QUOTA, Tier, quotas_for_score


@pytest.mark.parametrize(
    ("score", "tier"),
    [
        (5.0, Tier.A_PLUS),
        (4.5, Tier.A_PLUS),
        (4.499, Tier.A),
        (4.0, Tier.A),
        (3.999, Tier.B),
        (3.0, Tier.B),
        (2.999, Tier.C),
        (1.0, Tier.C),
        (0.0, Tier.C),
    ],
)
def test_tier_boundaries(score: float, tier: Tier) -> None:
    assert quotas_for_score(score).tier is tier


def test_tier_allowances() -> None:
    a_plus = quotas_for_score(4.8)
    assert (a_plus.posts_per_day, a_plus.replies_per_day, a_plus.per_thread_daily) == (4, 24, 12)
    a = quotas_for_score(4.2)
    assert (a.posts_per_day, a.replies_per_day, a.per_thread_daily) == (3, 18, 9)
    b = quotas_for_score(3.5)
    assert (b.posts_per_day, b.replies_per_day, b.per_thread_daily) == (2, 12, 6)
    c = quotas_for_score(1.5)
    assert (c.posts_per_day, c.replies_per_day, c.per_thread_daily) == (1, 6, 3)


def test_missing_score_gets_floor() -> None:
    assert quotas_for_score(None) == FLOOR_QUOTA
    assert quotas_for_score(float("nan")) == FLOOR_QUOTA


def test_quota_as_dict_uses_tier_label() -> None:
    assert quotas_for_score(4.7).as_dict() == {
        "posts_per_day": 4,
        "replies_per_day": 24,
        "per_thread_daily": 12,
        "tier": "A+",
    }
