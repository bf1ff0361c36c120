"""Brigade detection: many distinct raters hitting one target in a short window."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from nosedive.core.settings import ReputationSettings, get_reputation_settings
from nosedive.db.time import as_utc, utcnow
from nosedive.models import Post, PostRating, ReputationFlag, ReputationRating
from nosedive.models.flag import FLAG_REASON_BRIGADE
from nosedive.models.score import SURFACE_PEER, SURFACE_POST
from nosedive.services.identity import IdentityRef

logger = logging.getLogger(__name__)


def count_distinct_raters(
    db: Session,
    target: IdentityRef,
    since: datetime,
    surface: str = SURFACE_PEER,
) -> int:
    """Count distinct raters who rated ``target`` at or after ``since``."""
    if surface == SURFACE_POST:
        stmt = (
            select(PostRating.rater_kind, PostRating.rater_id)
            .join(Post, Post.id == PostRating.post_id)
            .where(
                Post.author_kind == target.kind,
                Post.author_id == target.id,
                PostRating.created_at >= since,
            )
            .distinct()
        )
    else:
        stmt = (
            select(ReputationRating.rater_kind, ReputationRating.rater_id)
            .where(
                ReputationRating.target_kind == target.kind,
                ReputationRating.target_id == target.id,
                ReputationRating.updated_at >= since,
            )
            .distinct()
        )
    return db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()


def maybe_flag_brigade(
    db: Session,
    target: IdentityRef,
    *,
    surface: str = SURFACE_PEER,
    config: ReputationSettings | None = None,
    now: datetime | None = None,
) -> ReputationFlag | None:
    """Record a flag if ``target`` drew ``brigade_min_raters`` raters in the window.

    Advisory only: the flag never blocks the rating and never touches the
    score. Every qualifying call writes a new flag, so overlapping windows
    produce repeated flags. The caller commits.
    """
    cfg = config or get_reputation_settings()
    if cfg.brigade_window_minutes <= 0 or cfg.brigade_min_raters <= 0:
        return None

    window_end = as_utc(now) if now is not None else utcnow()
    window_start = window_end - timedelta(minutes=cfg.brigade_window_minutes)
    distinct = count_distinct_raters(db, target, window_start, surface)
    if distinct < cfg.brigade_min_raters:
        return None

    flag = ReputationFlag(
        target_kind=target.kind,
        target_id=target.id,
        window_start=window_start,
        window_end=window_end,
        reason=FLAG_REASON_BRIGADE,
        count=distinct,
    )
    db.add(flag)
    db.flush()
    logger.info(
        "Brigade suspected on %s: %d distinct raters since %s",
        target,
        distinct,
        window_start.isoformat(),
    )
    return flag
