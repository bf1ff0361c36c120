"""The reputation gate: quota, rate-limit and rating decisions for request handlers.

Every public check returns ``GateAllowed`` or ``GateDenied``. Only store
failures raise. Daily quotas count from UTC midnight; the hourly rating cap
and the pairwise cooldown are sliding windows ending at ``now``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Collection
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nosedive.core.settings import ReputationSettings, get_reputation_settings
from nosedive.db.time import as_utc, start_of_utc_day, utcnow
from nosedive.models import Post, PostRating, Reply, ReputationFlag, ReputationRating, ReputationScore
from nosedive.models.score import SURFACE_PEER, SURFACE_POST
from nosedive.services.brigade import maybe_flag_brigade
from nosedive.services.identity import IdentityRef, canonical_identity
from nosedive.services.quotas import Quota, quotas_for_score
from nosedive.services.results import (
    GateAllowed,
    GateDenied,
    GateResult,
    GateRule,
    QuotaAllowed,
    QuotaResult,
    RatingOutcome,
    deny,
)
from nosedive.services.scoring import ScoreAggregator, score_percent

logger = logging.getLogger(__name__)

RATING_MIN = 1
RATING_MAX = 5
HOURLY_WINDOW = timedelta(hours=1)


def is_valid_rating_value(value: object) -> bool:
    """Ratings are whole stars from 1 to 5; booleans are not integers here."""
    return isinstance(value, int) and not isinstance(value, bool) and (
        RATING_MIN <= value <= RATING_MAX
    )


def _retry_seconds(window_end: datetime, now: datetime) -> int:
    return max(1, math.ceil((as_utc(window_end) - now).total_seconds()))


class ReputationGate:
    """Answers "may this identity post, reply or rate right now?"."""

    def __init__(self, db: Session, config: ReputationSettings | None = None) -> None:
        self.db = db
        self.config = config or get_reputation_settings()
        self.aggregator = ScoreAggregator(db, self.config)

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        return as_utc(now) if now is not None else utcnow()

    def _is_self(
        self, rater: IdentityRef, acting_as: Collection[IdentityRef], other: IdentityRef
    ) -> bool:
        """True when ``other`` is the rater or another identity the caller holds."""
        if other == rater:
            return True
        return any(canonical_identity(self.db, ref) == other for ref in acting_as)

    # --- Scores and quotas ---------------------------------------------------------
    def score_for(
        self, identity: IdentityRef, *, now: datetime | None = None
    ) -> tuple[ReputationScore, Quota]:
        """Return the identity's peer score (computed lazily) and its quota band."""
        identity = canonical_identity(self.db, identity)
        score = self.aggregator.get_score(identity, SURFACE_PEER, now=self._now(now))
        return score, quotas_for_score(score.bayesian_mean)

    def count_posts_today(self, identity: IdentityRef, now: datetime) -> int:
        return self.db.execute(
            select(func.count(Post.id)).where(
                Post.author_kind == identity.kind,
                Post.author_id == identity.id,
                Post.created_at >= start_of_utc_day(now),
            )
        ).scalar_one()

    def count_replies_today(
        self, identity: IdentityRef, now: datetime, thread_id: int | None = None
    ) -> int:
        stmt = select(func.count(Reply.id)).where(
            Reply.author_kind == identity.kind,
            Reply.author_id == identity.id,
            Reply.created_at >= start_of_utc_day(now),
        )
        if thread_id is not None:
            stmt = stmt.where(Reply.post_id == thread_id)
        return self.db.execute(stmt).scalar_one()

    def can_create_post(
        self, identity: IdentityRef | None, *, now: datetime | None = None
    ) -> QuotaResult:
        """Check the daily post quota for ``identity``."""
        if identity is None:
            return deny(GateRule.VALIDATION, "Identity required")
        current = self._now(now)
        identity = canonical_identity(self.db, identity)
        _, quota = self.score_for(identity, now=current)

        used = self.count_posts_today(identity, current)
        if used >= quota.posts_per_day:
            return deny(GateRule.DAILY_POST_QUOTA, "Daily post limit reached")
        return QuotaAllowed(quota=quota, used=used, limit=quota.posts_per_day)

    def can_create_reply(
        self,
        identity: IdentityRef | None,
        thread_id: int | None,
        *,
        now: datetime | None = None,
    ) -> QuotaResult:
        """Check the daily reply quota and the per-thread cap."""
        if identity is None:
            return deny(GateRule.VALIDATION, "Identity required")
        if thread_id is None:
            return deny(GateRule.VALIDATION, "Thread required")
        current = self._now(now)
        identity = canonical_identity(self.db, identity)
        _, quota = self.score_for(identity, now=current)

        used_day = self.count_replies_today(identity, current)
        if used_day >= quota.replies_per_day:
            return deny(GateRule.DAILY_REPLY_QUOTA, "Daily reply limit reached")
        used_thread = self.count_replies_today(identity, current, thread_id)
        if used_thread >= quota.per_thread_daily:
            return deny(GateRule.THREAD_REPLY_QUOTA, "Thread reply limit reached")
        return QuotaAllowed(quota=quota, used=used_day, limit=quota.replies_per_day)

    # --- Rating checks ---------------------------------------------------------------
    def _recent_rating_times(self, rater: IdentityRef, since: datetime) -> list[datetime]:
        peer = self.db.execute(
            select(ReputationRating.updated_at).where(
                ReputationRating.rater_kind == rater.kind,
                ReputationRating.rater_id == rater.id,
                ReputationRating.updated_at >= since,
            )
        ).scalars().all()
        posts = self.db.execute(
            select(PostRating.created_at).where(
                PostRating.rater_kind == rater.kind,
                PostRating.rater_id == rater.id,
                PostRating.created_at >= since,
            )
        ).scalars().all()
        return [as_utc(at) for at in (*peer, *posts)]

    def _check_hourly_cap(self, rater: IdentityRef, now: datetime) -> GateDenied | None:
        cap = self.config.rating_global_per_hour
        if cap <= 0:
            return None
        recent = self._recent_rating_times(rater, now - HOURLY_WINDOW)
        if len(recent) < cap:
            return None
        retry = _retry_seconds(min(recent) + HOURLY_WINDOW, now)
        logger.warning("Hourly rating cap hit by %s (%d in window)", rater, len(recent))
        return deny(GateRule.HOURLY_RATING_CAP, "Rating limit reached, try later", retry)

    def _cooldown(self) -> timedelta | None:
        hours = self.config.rating_pair_cooldown_hours
        return timedelta(hours=hours) if hours > 0 else None

    def _check_pair_cooldown(
        self, rater: IdentityRef, target: IdentityRef, now: datetime
    ) -> GateDenied | None:
        cooldown = self._cooldown()
        if cooldown is None:
            return None
        last = self.db.execute(
            select(func.max(ReputationRating.updated_at)).where(
                ReputationRating.rater_kind == rater.kind,
                ReputationRating.rater_id == rater.id,
                ReputationRating.target_kind == target.kind,
                ReputationRating.target_id == target.id,
                ReputationRating.updated_at >= now - cooldown,
            )
        ).scalar_one_or_none()
        if last is None:
            return None
        retry = _retry_seconds(as_utc(last) + cooldown, now)
        return deny(GateRule.PAIR_COOLDOWN, "Cooldown before rating this identity again", retry)

    def _check_author_cooldown(
        self, rater: IdentityRef, author: IdentityRef, now: datetime
    ) -> GateDenied | None:
        cooldown = self._cooldown()
        if cooldown is None:
            return None
        last = self.db.execute(
            select(func.max(PostRating.created_at))
            .join(Post, Post.id == PostRating.post_id)
            .where(
                PostRating.rater_kind == rater.kind,
                PostRating.rater_id == rater.id,
                Post.author_kind == author.kind,
                Post.author_id == author.id,
                PostRating.created_at >= now - cooldown,
            )
        ).scalar_one_or_none()
        if last is None:
            return None
        retry = _retry_seconds(as_utc(last) + cooldown, now)
        return deny(GateRule.PAIR_COOLDOWN, "Cooldown before rating this author again", retry)

    def _check_interaction(
        self, rater: IdentityRef, target: IdentityRef, now: datetime
    ) -> GateDenied | None:
        days = self.config.require_interaction_days
        if days <= 0:
            return None
        since = now - timedelta(days=days)
        replied = self.db.execute(
            select(Reply.id)
            .join(Post, Post.id == Reply.post_id)
            .where(
                Reply.author_kind == rater.kind,
                Reply.author_id == rater.id,
                Post.author_kind == target.kind,
                Post.author_id == target.id,
                Reply.created_at >= since,
            )
            .limit(1)
        ).first()
        if replied is None:
            return deny(GateRule.INTERACTION_REQUIRED, "Interact (reply) before rating")
        return None

    def can_submit_rating(
        self,
        rater: IdentityRef | None,
        target: IdentityRef | None,
        *,
        now: datetime | None = None,
        acting_as: Collection[IdentityRef] = (),
    ) -> GateResult:
        """Run every rating check for a peer rating of ``target`` by ``rater``.

        ``acting_as`` holds the caller's other identities in the same request,
        such as the cookie session of a signed-in user. Rating any of them is
        a self-action.
        """
        if rater is None or target is None:
            return deny(GateRule.VALIDATION, "Rater and target are required")
        current = self._now(now)
        rater = canonical_identity(self.db, rater)
        target = canonical_identity(self.db, target)
        if self._is_self(rater, acting_as, target):
            return deny(GateRule.SELF_ACTION, "You cannot rate yourself")

        for check in (
            lambda: self._check_hourly_cap(rater, current),
            lambda: self._check_pair_cooldown(rater, target, current),
            lambda: self._check_interaction(rater, target, current),
        ):
            denied = check()
            if denied is not None:
                return denied
        return GateAllowed()

    # --- Rating submission -----------------------------------------------------------
    def _locked(self, target: IdentityRef | None, surface: str, now: datetime) -> RatingOutcome:
        if target is None:
            return RatingOutcome(None, None, locked=True, created=False)
        score = self.aggregator.get_score(target, surface, now=now)
        self.db.commit()
        return RatingOutcome(
            bayesian_mean=score.bayesian_mean,
            score_percent=score_percent(score.bayesian_mean),
            score=score,
            locked=True,
            created=False,
        )

    def _flag_brigade(
        self, target: IdentityRef, surface: str, now: datetime
    ) -> ReputationFlag | None:
        try:
            flag = maybe_flag_brigade(
                self.db, target, surface=surface, config=self.config, now=now
            )
            if flag is not None:
                self.db.commit()
            return flag
        except Exception:  # advisory; never undo the rating
            self.db.rollback()
            logger.warning("Brigade check failed for %s", target, exc_info=True)
            return None

    def submit_rating(
        self,
        rater: IdentityRef | None,
        target: IdentityRef | None,
        value: object,
        *,
        now: datetime | None = None,
        acting_as: Collection[IdentityRef] = (),
    ) -> RatingOutcome | GateDenied:
        """Record (or overwrite) ``rater``'s rating of ``target`` and refresh the score.

        The rating upsert, the recompute and the cache upsert commit together.
        Losing a race to the uniqueness constraint answers with the current
        score and ``locked=True``.
        """
        if not is_valid_rating_value(value):
            return deny(GateRule.VALIDATION, "value must be an integer from 1 to 5")
        check = self.can_submit_rating(rater, target, now=now, acting_as=acting_as)
        if isinstance(check, GateDenied):
            return check

        current = self._now(now)
        rater = canonical_identity(self.db, rater)  # type: ignore[arg-type]
        target = canonical_identity(self.db, target)  # type: ignore[arg-type]

        try:
            existing = self.db.query(ReputationRating).filter(
                ReputationRating.rater_kind == rater.kind,
                ReputationRating.rater_id == rater.id,
                ReputationRating.target_kind == target.kind,
                ReputationRating.target_id == target.id,
            ).first()
            if existing is not None:
                existing.value = int(value)  # type: ignore[arg-type]
                existing.updated_at = current
            else:
                self.db.add(
                    ReputationRating(
                        rater_kind=rater.kind,
                        rater_id=rater.id,
                        target_kind=target.kind,
                        target_id=target.id,
                        value=int(value),  # type: ignore[arg-type]
                        created_at=current,
                        updated_at=current,
                    )
                )
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                logger.info("Concurrent rating of %s by %s; returning locked score", target, rater)
                return self._locked(target, SURFACE_PEER, current)

            score = self.aggregator.recompute(target, SURFACE_PEER, now=current)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        flag = self._flag_brigade(target, SURFACE_PEER, current)
        return RatingOutcome(
            bayesian_mean=score.bayesian_mean,
            score_percent=score_percent(score.bayesian_mean),
            score=score,
            locked=False,
            created=existing is None,
            flag=flag,
        )

    def submit_post_rating(
        self,
        rater: IdentityRef | None,
        post_id: int,
        value: object,
        *,
        now: datetime | None = None,
        acting_as: Collection[IdentityRef] = (),
    ) -> RatingOutcome | GateDenied:
        """Rate a single post; one rating per (post, rater), then the vote locks.

        The author's ``post`` surface score absorbs the rating. Hourly cap,
        author cooldown and interaction checks match peer ratings. Posts by
        any identity in ``acting_as`` count as the rater's own.
        """
        if not is_valid_rating_value(value):
            return deny(GateRule.VALIDATION, "value must be an integer from 1 to 5")
        if rater is None:
            return deny(GateRule.VALIDATION, "Rater is required")
        current = self._now(now)
        rater = canonical_identity(self.db, rater)

        post = self.db.get(Post, post_id)
        if post is None:
            return deny(GateRule.NOT_FOUND, "Post not found")
        if post.deleted:
            return deny(GateRule.NOT_RATEABLE, "Cannot rate this post")
        author = canonical_identity(self.db, IdentityRef(post.author_kind, post.author_id))
        if self._is_self(rater, acting_as, author):
            return deny(GateRule.SELF_ACTION, "You cannot rate your own post")

        already = self.db.query(PostRating.id).filter(
            PostRating.post_id == post_id,
            PostRating.rater_kind == rater.kind,
            PostRating.rater_id == rater.id,
        ).first()
        if already is not None:
            return self._locked(author, SURFACE_POST, current)

        for check in (
            lambda: self._check_hourly_cap(rater, current),
            lambda: self._check_author_cooldown(rater, author, current),
            lambda: self._check_interaction(rater, author, current),
        ):
            denied = check()
            if denied is not None:
                return denied

        try:
            self.db.add(
                PostRating(
                    post_id=post_id,
                    rater_kind=rater.kind,
                    rater_id=rater.id,
                    value=int(value),  # type: ignore[arg-type]
                    created_at=current,
                )
            )
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                return self._locked(author, SURFACE_POST, current)

            score = self.aggregator.recompute(author, SURFACE_POST, now=current)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        flag = self._flag_brigade(author, SURFACE_POST, current)
        return RatingOutcome(
            bayesian_mean=score.bayesian_mean,
            score_percent=score_percent(score.bayesian_mean),
            score=score,
            locked=True,
            created=True,
            flag=flag,
        )
