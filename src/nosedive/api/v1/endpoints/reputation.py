"""Reputation endpoints: peer ratings, public scores and the admin backfill."""

import logging
import secrets

from fastapi import APIRouter, HTTPException, status

from nosedive.core.settings import settings
from nosedive.schemas.reputation import (
    RatingCreate,
    RatingResponse,
    RecomputeResponse,
    ReputationResponse,
    ScoreSummary,
)
from nosedive.services.identity import resolve_handle
from nosedive.services.results import GateDenied, GateRule, deny
from nosedive.services.scoring import ScoreAggregator, score_percent

from ..dependencies import (
    ActingIdentitiesDep,
    CurrentIdentityDep,
    GateDep,
    LimiterDep,
    SessionDep,
    enforce_bucket,
    raise_denied,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reputation", tags=["reputation"])


@router.post("/rate", response_model=RatingResponse)
async def rate_identity(
    payload: RatingCreate,
    identity: CurrentIdentityDep,
    actors: ActingIdentitiesDep,
    gate: GateDep,
    limiter: LimiterDep,
    db: SessionDep,
) -> RatingResponse:
    """Rate another identity, addressed by its public handle."""
    enforce_bucket(
        limiter,
        "rating",
        identity,
        limit=settings.rate_limit_rating_requests,
        window_seconds=settings.rate_limit_rating_window_seconds,
    )
    target = resolve_handle(db, payload.target_handle)
    if target is None:
        raise_denied(deny(GateRule.NOT_FOUND, "Unknown handle"))

    outcome = gate.submit_rating(identity, target, payload.value, acting_as=actors)
    if isinstance(outcome, GateDenied):
        raise_denied(outcome)
    return RatingResponse(
        bayesian_mean=outcome.bayesian_mean,
        score_percent=outcome.score_percent,
        locked=outcome.locked,
    )


@router.get("/{handle}", response_model=ReputationResponse)
async def get_reputation(handle: str, gate: GateDep, db: SessionDep) -> ReputationResponse:
    """Return an identity's peer score and quota tier."""
    target = resolve_handle(db, handle)
    if target is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"ok": False, "error": "Unknown handle", "rule": GateRule.NOT_FOUND.value},
        )
    score, quota = gate.score_for(target)
    db.commit()
    return ReputationResponse(
        handle=handle.strip().lower(),
        score=ScoreSummary(
            count=score.count,
            mean=score.mean,
            bayesian_mean=score.bayesian_mean,
            score_percent=score_percent(score.bayesian_mean),
            tier=quota.tier.value,
        ),
    )


@router.post("/recompute", response_model=RecomputeResponse)
async def recompute_scores(key: str, db: SessionDep) -> RecomputeResponse:
    """Recompute every cached score after tuning; requires ``ADMIN_KEY``."""
    if not settings.admin_key or not secrets.compare_digest(key, settings.admin_key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    try:
        updated = ScoreAggregator(db).recompute_all()
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Admin recompute rewrote %d scores", updated)
    return RecomputeResponse(updated=updated)
