"""Reputation scoring: rater weighting, recency decay and Bayesian aggregation.

A target's score is a Bayesian mean pulled toward ``prior_mean`` by a
virtual sample of ``prior_weight`` ratings::

    bayesian_mean = (prior_mean * prior_weight + sum(value * w)) / (prior_weight + sum(w))

In weighted mode each rating's weight ``w`` is the rater's standing mapped
linearly onto ``[weight_min, weight_max]`` times an exponential recency
decay. The unweighted fast path uses ``w = 1`` for every rating.

Unknown raters count at ``prior_mean``; a rater's own score is never
recomputed while aggregating someone else's.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from nosedive.core.settings import ReputationSettings, get_reputation_settings
from nosedive.db.time import as_utc, utcnow
from nosedive.models import (
    Post,
    PostRating,
    Profile,
    ReputationRating,
    ReputationScore,
    SessionProfile,
)
from nosedive.models.score import SURFACE_PEER, SURFACE_POST
from nosedive.services.identity import IdentityRef, identities_matching

logger = logging.getLogger(__name__)

EPSILON = 1e-6
SECONDS_PER_DAY = 86_400
SURFACES = (SURFACE_PEER, SURFACE_POST)


@dataclass(frozen=True)
class RatingSample:
    """The parts of a rating the aggregator needs."""

    rater: IdentityRef
    value: int
    updated_at: datetime


@dataclass(frozen=True)
class ScoreSnapshot:
    """Result of aggregating one ratings snapshot."""

    count: int
    sum: float
    mean: float
    bayesian_mean: float


def weight_from_rater_score(
    rater_bayesian_mean: float | None,
    config: ReputationSettings | None = None,
) -> float:
    """Map a rater's Bayesian mean onto a rating weight.

    Missing or NaN standings count as ``prior_mean``; anything outside
    ``[1, 5]`` is clamped first, so the result always lies in
    ``[weight_min, weight_max]``.
    """
    cfg = config or get_reputation_settings()
    score = rater_bayesian_mean
    if score is None or math.isnan(score):
        score = cfg.prior_mean
    clamped = min(5.0, max(1.0, float(score)))
    t = (clamped - 1.0) / 4.0
    return cfg.weight_min + t * (cfg.weight_max - cfg.weight_min)


def recency_factor(
    timestamp: datetime,
    now: datetime | None = None,
    config: ReputationSettings | None = None,
) -> float:
    """Return the half-life decay for a rating last touched at ``timestamp``.

    Returns 1 when decay is disabled (half-life <= 0) or the timestamp is not
    in the past.
    """
    cfg = config or get_reputation_settings()
    half_life = cfg.rating_halflife_days
    if half_life <= 0:
        return 1.0
    current = as_utc(now) if now is not None else utcnow()
    age_days = (current - as_utc(timestamp)).total_seconds() / SECONDS_PER_DAY
    if age_days <= 0:
        return 1.0
    return math.pow(0.5, age_days / half_life)


def aggregate(
    samples: Sequence[RatingSample],
    rater_means: Mapping[IdentityRef, float] | None = None,
    *,
    weighted: bool = True,
    config: ReputationSettings | None = None,
    now: datetime | None = None,
) -> ScoreSnapshot:
    """Aggregate a ratings snapshot into raw and Bayesian means.

    Pure: reads nothing but its arguments.
    """
    cfg = config or get_reputation_settings()
    count = len(samples)
    total = float(sum(sample.value for sample in samples))
    mean = total / count if count else 0.0

    if not count:
        return ScoreSnapshot(count=0, sum=0.0, mean=0.0, bayesian_mean=cfg.prior_mean)

    means = rater_means or {}
    weighted_sum = 0.0
    weight_total = 0.0
    for sample in samples:
        if weighted:
            rater_bayes = means.get(sample.rater, cfg.prior_mean)
            weight = weight_from_rater_score(rater_bayes, cfg) * recency_factor(
                sample.updated_at, now, cfg
            )
        else:
            weight = 1.0
        weighted_sum += sample.value * weight
        weight_total += weight

    denominator = cfg.prior_weight + (weight_total or EPSILON)
    if denominator <= 0:
        denominator = EPSILON
    bayesian_mean = (cfg.prior_mean * cfg.prior_weight + weighted_sum) / denominator
    return ScoreSnapshot(count=count, sum=total, mean=mean, bayesian_mean=bayesian_mean)


def score_percent(bayesian_mean: float) -> float:
    """Express a Bayesian mean on a 0-100 scale with one decimal."""
    clamped = max(0.0, min(5.0, bayesian_mean))
    return round(clamped / 5.0 * 100.0, 1)


class ScoreAggregator:
    """Recompute and cache reputation scores against the rating ledger.

    The aggregator never commits; it flushes its writes so the caller can
    make the rating write and the cache update one transaction.
    """

    def __init__(self, db: Session, config: ReputationSettings | None = None) -> None:
        self.db = db
        self.config = config or get_reputation_settings()

    def default_weighted(self, surface: str) -> bool:
        if surface == SURFACE_POST:
            return self.config.post_rating_weighted
        return True

    def load_samples(self, target: IdentityRef, surface: str = SURFACE_PEER) -> list[RatingSample]:
        """Return every rating that feeds ``target``'s score on ``surface``."""
        if surface == SURFACE_PEER:
            rows = self.db.execute(
                select(
                    ReputationRating.rater_kind,
                    ReputationRating.rater_id,
                    ReputationRating.value,
                    ReputationRating.updated_at,
                )
                .where(
                    ReputationRating.target_kind == target.kind,
                    ReputationRating.target_id == target.id,
                )
                .order_by(ReputationRating.updated_at.desc())
            ).all()
        elif surface == SURFACE_POST:
            rows = self.db.execute(
                select(
                    PostRating.rater_kind,
                    PostRating.rater_id,
                    PostRating.value,
                    PostRating.created_at,
                )
                .join(Post, Post.id == PostRating.post_id)
                .where(
                    Post.author_kind == target.kind,
                    Post.author_id == target.id,
                    Post.deleted.is_(False),
                )
                .order_by(PostRating.created_at.desc())
            ).all()
        else:
            raise ValueError(f"Unknown score surface: {surface!r}")

        return [
            RatingSample(rater=IdentityRef(kind, rater_id), value=int(value), updated_at=at)
            for kind, rater_id, value, at in rows
        ]

    def rater_means(self, raters: Iterable[IdentityRef]) -> dict[IdentityRef, float]:
        """Look up cached peer standings for ``raters`` in one query."""
        unique = list(set(raters))
        if not unique:
            return {}
        rows = self.db.execute(
            select(
                ReputationScore.identity_kind,
                ReputationScore.identity_id,
                ReputationScore.bayesian_mean,
            ).where(
                ReputationScore.surface == SURFACE_PEER,
                identities_matching(
                    ReputationScore.identity_kind, ReputationScore.identity_id, unique
                ),
            )
        ).all()
        return {
            IdentityRef(kind, identity_id): (
                bayes if bayes is not None else self.config.prior_mean
            )
            for kind, identity_id, bayes in rows
        }

    def _store(
        self, target: IdentityRef, surface: str, snapshot: ScoreSnapshot
    ) -> ReputationScore:
        score = self.db.get(ReputationScore, (target.kind, target.id, surface))
        if score is None:
            score = ReputationScore(
                identity_kind=target.kind,
                identity_id=target.id,
                surface=surface,
            )
            self.db.add(score)
        score.count = snapshot.count
        score.sum = snapshot.sum
        score.mean = snapshot.mean
        score.bayesian_mean = snapshot.bayesian_mean
        score.updated_at = utcnow()
        self.db.flush()
        return score

    def recompute(
        self,
        target: IdentityRef,
        surface: str = SURFACE_PEER,
        weighted: bool | None = None,
        *,
        now: datetime | None = None,
    ) -> ReputationScore:
        """Recompute ``target``'s score on ``surface`` and upsert the cache row."""
        use_weights = self.default_weighted(surface) if weighted is None else weighted
        samples = self.load_samples(target, surface)
        means = self.rater_means(s.rater for s in samples) if use_weights else {}
        snapshot = aggregate(
            samples, means, weighted=use_weights, config=self.config, now=now
        )
        logger.debug(
            "Recomputed %s score for %s: count=%d bayes=%.4f weighted=%s",
            surface,
            target,
            snapshot.count,
            snapshot.bayesian_mean,
            use_weights,
        )
        return self._store(target, surface, snapshot)

    def get_score(
        self,
        target: IdentityRef,
        surface: str = SURFACE_PEER,
        *,
        now: datetime | None = None,
    ) -> ReputationScore:
        """Return the cached score, computing it on first read."""
        cached = self.db.get(ReputationScore, (target.kind, target.id, surface))
        if cached is not None:
            return cached
        return self.recompute(target, surface, now=now)

    def reset_score(self, target: IdentityRef, surface: str = SURFACE_PEER) -> ReputationScore:
        """Put ``target`` back to the prior-only state.

        Used when everything the identity was rated on has been removed.
        """
        snapshot = ScoreSnapshot(
            count=0, sum=0.0, mean=0.0, bayesian_mean=self.config.prior_mean
        )
        return self._store(target, surface, snapshot)

    def known_identities(self) -> set[tuple[IdentityRef, str]]:
        """Every (identity, surface) pair that has or could have a score."""
        pairs: set[tuple[IdentityRef, str]] = set()

        for kind, identity_id, surface in self.db.execute(
            select(
                ReputationScore.identity_kind,
                ReputationScore.identity_id,
                ReputationScore.surface,
            )
        ):
            pairs.add((IdentityRef(kind, identity_id), surface))

        for kind, identity_id in self.db.execute(
            select(ReputationRating.target_kind, ReputationRating.target_id).distinct()
        ):
            pairs.add((IdentityRef(kind, identity_id), SURFACE_PEER))

        for kind, identity_id in self.db.execute(
            select(Post.author_kind, Post.author_id).distinct()
        ):
            pairs.add((IdentityRef(kind, identity_id), SURFACE_POST))

        for (session_id,) in self.db.execute(
            select(SessionProfile.session_id).where(
                SessionProfile.claimed_profile_id.is_(None)
            )
        ):
            pairs.add((IdentityRef.session(session_id), SURFACE_PEER))

        for (profile_id,) in self.db.execute(select(Profile.id)):
            pairs.add((IdentityRef.profile(profile_id), SURFACE_PEER))

        return pairs

    def recompute_all(self, *, now: datetime | None = None) -> int:
        """Recompute every known score; used for backfills after tuning.

        Returns the number of cache rows written. The caller commits.
        """
        pairs = sorted(self.known_identities(), key=lambda p: (p[1], p[0].kind, p[0].id))
        for target, surface in pairs:
            self.recompute(target, surface, now=now)
        logger.info("Recomputed %d reputation scores", len(pairs))
        return len(pairs)
