"""Typed outcomes returned by the reputation gate.

Business-rule failures are values, not exceptions: every gate call returns
either ``GateAllowed`` or ``GateDenied`` and the HTTP layer decides how to
render a denial.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from fastapi import status

from nosedive.models import ReputationFlag, ReputationScore
from nosedive.services.quotas import Quota


class GateRule(str, Enum):
    """Which check refused an action."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    NOT_RATEABLE = "not_rateable"
    SELF_ACTION = "self_action"
    INTERACTION_REQUIRED = "interaction_required"
    DAILY_POST_QUOTA = "daily_post_quota"
    DAILY_REPLY_QUOTA = "daily_reply_quota"
    THREAD_REPLY_QUOTA = "thread_reply_quota"
    HOURLY_RATING_CAP = "hourly_rating_cap"
    PAIR_COOLDOWN = "pair_cooldown"
    REQUEST_BURST = "request_burst"


RULE_STATUS: dict[GateRule, int] = {
    GateRule.VALIDATION: status.HTTP_400_BAD_REQUEST,
    GateRule.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    GateRule.NOT_RATEABLE: status.HTTP_400_BAD_REQUEST,
    GateRule.SELF_ACTION: status.HTTP_403_FORBIDDEN,
    GateRule.INTERACTION_REQUIRED: status.HTTP_403_FORBIDDEN,
    GateRule.DAILY_POST_QUOTA: status.HTTP_429_TOO_MANY_REQUESTS,
    GateRule.DAILY_REPLY_QUOTA: status.HTTP_429_TOO_MANY_REQUESTS,
    GateRule.THREAD_REPLY_QUOTA: status.HTTP_429_TOO_MANY_REQUESTS,
    GateRule.HOURLY_RATING_CAP: status.HTTP_429_TOO_MANY_REQUESTS,
    GateRule.PAIR_COOLDOWN: status.HTTP_429_TOO_MANY_REQUESTS,
    GateRule.REQUEST_BURST: status.HTTP_429_TOO_MANY_REQUESTS,
}


@dataclass(frozen=True)
class GateAllowed:
    """The action may proceed; ``quota`` is the band that was applied."""

    quota: Quota | None = None
    used: int | None = None
    limit: int | None = None
    ok: Literal[True] = True

    @property
    def remaining(self) -> int | None:
        """Allowance left after this action goes through."""
        if self.limit is None or self.used is None:
            return None
        return max(0, self.limit - self.used - 1)


@dataclass(frozen=True, kw_only=True)
class QuotaAllowed(GateAllowed):
    """A quota-gated write may proceed; the applied band and usage are always set."""

    quota: Quota
    used: int
    limit: int


@dataclass(frozen=True)
class GateDenied:
    """The action was refused by ``rule``."""

    rule: GateRule
    error: str
    retry_after: int | None = None
    ok: Literal[False] = False

    @property
    def status(self) -> int:
        return RULE_STATUS[self.rule]

    def as_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"ok": False, "error": self.error, "rule": self.rule.value}
        if self.retry_after is not None:
            detail["retry_after"] = self.retry_after
        return detail


def deny(rule: GateRule, error: str, retry_after: int | None = None) -> GateDenied:
    return GateDenied(rule=rule, error=error, retry_after=retry_after)


GateResult = GateAllowed | GateDenied
QuotaResult = QuotaAllowed | GateDenied


@dataclass
class RatingOutcome:
    """A rating was recorded, or had already been recorded (``locked``)."""

    bayesian_mean: float | None
    score_percent: float | None
    score: ReputationScore | None = None
    locked: bool = False
    created: bool = True
    flag: ReputationFlag | None = field(default=None, repr=False)
    ok: Literal[True] = True
