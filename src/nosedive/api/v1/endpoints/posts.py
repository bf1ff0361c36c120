"""Post endpoints: quota-gated writes and post ratings."""

from fastapi import APIRouter, Response, status
from sqlalchemy.orm import Session

from nosedive.core.settings import settings
from nosedive.models import Post, Reply
from nosedive.schemas.post import (
    PostCreate,
    PostCreated,
    PostResponse,
    QuotaResponse,
    ReplyCreate,
    ReplyCreated,
    ReplyResponse,
)
from nosedive.schemas.reputation import PostRatingCreate, RatingResponse
from nosedive.services.identity import IdentityRef, handle_for
from nosedive.services.rate_limit import RateLimiter
from nosedive.services.results import GateDenied, GateRule, QuotaAllowed, deny

from ..dependencies import (
    ActingIdentitiesDep,
    CurrentIdentityDep,
    GateDep,
    LimiterDep,
    SessionDep,
    enforce_bucket,
    raise_denied,
)

router = APIRouter(prefix="/posts", tags=["posts"])


def _quota_response(allowed: QuotaAllowed) -> QuotaResponse:
    quota = allowed.quota
    return QuotaResponse(
        tier=quota.tier.value,
        posts_per_day=quota.posts_per_day,
        replies_per_day=quota.replies_per_day,
        per_thread_daily=quota.per_thread_daily,
        used=allowed.used,
        remaining=allowed.remaining,
    )


def _get_post_or_404(db: Session, post_id: int) -> Post:
    post = db.query(Post).filter(Post.id == post_id, Post.deleted.is_(False)).first()
    if post is None:
        raise_denied(deny(GateRule.NOT_FOUND, "Post not found"))
    return post


def _write_bucket(limiter: RateLimiter, identity: IdentityRef) -> None:
    enforce_bucket(
        limiter,
        "write",
        identity,
        limit=settings.rate_limit_write_requests,
        window_seconds=settings.rate_limit_write_window_seconds,
    )


@router.post("", response_model=PostCreated, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    identity: CurrentIdentityDep,
    gate: GateDep,
    limiter: LimiterDep,
    db: SessionDep,
) -> PostCreated:
    """Create a post if the author's daily quota allows it."""
    _write_bucket(limiter, identity)
    check = gate.can_create_post(identity)
    if isinstance(check, GateDenied):
        raise_denied(check)

    post = Post(author_kind=identity.kind, author_id=identity.id, body=payload.body)
    db.add(post)
    db.commit()
    db.refresh(post)

    response = PostResponse.model_validate(post)
    response.author_handle = handle_for(db, identity)
    return PostCreated(post=response, quota=_quota_response(check))


@router.post(
    "/{post_id}/replies",
    response_model=ReplyCreated,
    status_code=status.HTTP_201_CREATED,
)
async def create_reply(
    post_id: int,
    payload: ReplyCreate,
    identity: CurrentIdentityDep,
    gate: GateDep,
    limiter: LimiterDep,
    db: SessionDep,
) -> ReplyCreated:
    """Reply in a thread within the daily and per-thread reply quotas."""
    _write_bucket(limiter, identity)
    post = _get_post_or_404(db, post_id)
    check = gate.can_create_reply(identity, post.id)
    if isinstance(check, GateDenied):
        raise_denied(check)

    reply = Reply(
        post_id=post.id,
        author_kind=identity.kind,
        author_id=identity.id,
        body=payload.body,
    )
    db.add(reply)
    db.commit()
    db.refresh(reply)

    response = ReplyResponse.model_validate(reply)
    response.author_handle = handle_for(db, identity)
    return ReplyCreated(reply=response, quota=_quota_response(check))


@router.post(
    "/{post_id}/rate",
    response_model=RatingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def rate_post(
    post_id: int,
    payload: PostRatingCreate,
    identity: CurrentIdentityDep,
    actors: ActingIdentitiesDep,
    gate: GateDep,
    limiter: LimiterDep,
    response: Response,
) -> RatingResponse:
    """Rate a post once; later attempts answer 409 with the locked score."""
    enforce_bucket(
        limiter,
        "rating",
        identity,
        limit=settings.rate_limit_rating_requests,
        window_seconds=settings.rate_limit_rating_window_seconds,
    )
    outcome = gate.submit_post_rating(identity, post_id, payload.value, acting_as=actors)
    if isinstance(outcome, GateDenied):
        raise_denied(outcome)
    if not outcome.created:
        response.status_code = status.HTTP_409_CONFLICT
    return RatingResponse(
        bayesian_mean=outcome.bayesian_mean,
        score_percent=outcome.score_percent,
        locked=outcome.locked,
    )
