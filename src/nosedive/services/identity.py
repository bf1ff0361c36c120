"""Identity handling for raters and rated actors.

Two identity forms coexist: an anonymous *session* identity bound to the
``sid`` cookie and a durable *profile* identity bound to an account. Both are
represented by ``IdentityRef`` so ledger queries never need nullable
"session or profile" column pairs.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from nosedive.db.time import as_utc, utcnow
from nosedive.models import (
    Post,
    PostRating,
    Profile,
    Reply,
    ReputationFlag,
    ReputationRating,
    ReputationScore,
    SessionProfile,
)
from nosedive.models.identity import IDENTITY_KIND_PROFILE, IDENTITY_KIND_SESSION

logger = logging.getLogger(__name__)

_HANDLE_PREFIX = "nab-"
_HANDLE_ATTEMPTS = 8


@dataclass(frozen=True)
class IdentityRef:
    """Tagged reference to a session or profile identity."""

    kind: str
    id: str

    def __post_init__(self) -> None:
        if self.kind not in (IDENTITY_KIND_SESSION, IDENTITY_KIND_PROFILE):
            raise ValueError(f"Unknown identity kind: {self.kind!r}")
        if not self.id:
            raise ValueError("Identity id must not be empty")

    @classmethod
    def session(cls, session_id: str) -> IdentityRef:
        return cls(IDENTITY_KIND_SESSION, session_id)

    @classmethod
    def profile(cls, profile_id: str) -> IdentityRef:
        return cls(IDENTITY_KIND_PROFILE, profile_id)

    @property
    def is_session(self) -> bool:
        return self.kind == IDENTITY_KIND_SESSION

    @property
    def key(self) -> str:
        """Stable string form used for limiter buckets and log lines."""
        return f"{self.kind}:{self.id}"

    def __str__(self) -> str:
        return self.key


def generate_handle() -> str:
    """Return a short throwaway handle such as ``nab-k3f9``."""
    return f"{_HANDLE_PREFIX}{secrets.token_hex(2)}"


def ensure_session_profile(db: Session, session_id: str) -> SessionProfile:
    """Return the session's backing row, creating it with a fresh handle if needed."""
    existing = db.get(SessionProfile, session_id)
    if existing is not None:
        return existing

    handle = generate_handle()
    for _ in range(_HANDLE_ATTEMPTS):
        taken = (
            db.query(SessionProfile).filter(SessionProfile.handle == handle).first()
            or db.query(Profile).filter(Profile.handle == handle).first()
        )
        if taken is None:
            break
        handle = generate_handle()
    else:
        handle = f"{_HANDLE_PREFIX}{secrets.token_hex(6)}"

    row = SessionProfile(session_id=session_id, handle=handle)
    db.add(row)
    db.flush()
    return row


def canonical_identity(db: Session, ref: IdentityRef) -> IdentityRef:
    """Return the identity ``ref`` currently stands for.

    A session claimed by an account resolves to that account's profile.
    """
    if not ref.is_session:
        return ref
    row = db.get(SessionProfile, ref.id)
    if row is not None and row.claimed_profile_id:
        return IdentityRef.profile(row.claimed_profile_id)
    return ref


def resolve_handle(db: Session, handle: str) -> IdentityRef | None:
    """Resolve a public handle, preferring profiles over legacy session handles."""
    normalized = (handle or "").strip().lower()
    if not normalized:
        return None

    profile = db.query(Profile).filter(Profile.handle == normalized).first()
    if profile is not None:
        return IdentityRef.profile(profile.id)

    session_row = (
        db.query(SessionProfile).filter(SessionProfile.handle == normalized).first()
    )
    if session_row is not None:
        return canonical_identity(db, IdentityRef.session(session_row.session_id))
    return None


def handle_for(db: Session, ref: IdentityRef) -> str | None:
    """Return the public handle of an identity, if it has one."""
    if ref.is_session:
        row = db.get(SessionProfile, ref.id)
        return row.handle if row is not None else None
    profile = db.get(Profile, ref.id)
    return profile.handle if profile is not None else None


def identity_exists(db: Session, ref: IdentityRef) -> bool:
    if ref.is_session:
        return db.get(SessionProfile, ref.id) is not None
    return db.get(Profile, ref.id) is not None


@dataclass
class ClaimResult:
    """Summary of a session-to-profile merge."""

    session: IdentityRef
    profile: IdentityRef
    moved_ratings: int = 0
    dropped_ratings: int = 0
    moved_content: int = 0
    recomputed: set[IdentityRef] = field(default_factory=set)


def _newer(a: datetime, b: datetime) -> bool:
    return as_utc(a) >= as_utc(b)


def _merge_peer_ratings(
    db: Session,
    session_ref: IdentityRef,
    profile_ref: IdentityRef,
    result: ClaimResult,
) -> set[IdentityRef]:
    """Re-key the session's peer ratings onto the profile.

    Returns the targets whose aggregate changed.
    """
    touched: set[IdentityRef] = set()

    given = db.query(ReputationRating).filter(
        ReputationRating.rater_kind == session_ref.kind,
        ReputationRating.rater_id == session_ref.id,
    ).all()
    for rating in given:
        target = IdentityRef(rating.target_kind, rating.target_id)
        touched.add(target)
        if target == profile_ref:
            db.delete(rating)
            result.dropped_ratings += 1
            continue
        twin = db.query(ReputationRating).filter(
            ReputationRating.rater_kind == profile_ref.kind,
            ReputationRating.rater_id == profile_ref.id,
            ReputationRating.target_kind == target.kind,
            ReputationRating.target_id == target.id,
        ).first()
        if twin is not None:
            if _newer(twin.updated_at, rating.updated_at):
                db.delete(rating)
                result.dropped_ratings += 1
                continue
            db.delete(twin)
            db.flush()
            result.dropped_ratings += 1
        rating.rater_kind = profile_ref.kind
        rating.rater_id = profile_ref.id
        result.moved_ratings += 1
        db.flush()

    received = db.query(ReputationRating).filter(
        ReputationRating.target_kind == session_ref.kind,
        ReputationRating.target_id == session_ref.id,
    ).all()
    for rating in received:
        rater = IdentityRef(rating.rater_kind, rating.rater_id)
        if rater == profile_ref:
            db.delete(rating)
            result.dropped_ratings += 1
            continue
        twin = db.query(ReputationRating).filter(
            ReputationRating.rater_kind == rater.kind,
            ReputationRating.rater_id == rater.id,
            ReputationRating.target_kind == profile_ref.kind,
            ReputationRating.target_id == profile_ref.id,
        ).first()
        if twin is not None:
            if _newer(twin.updated_at, rating.updated_at):
                db.delete(rating)
                result.dropped_ratings += 1
                continue
            db.delete(twin)
            db.flush()
            result.dropped_ratings += 1
        rating.target_kind = profile_ref.kind
        rating.target_id = profile_ref.id
        result.moved_ratings += 1
        db.flush()

    touched.add(profile_ref)
    return touched


def _merge_content(
    db: Session,
    session_ref: IdentityRef,
    profile_ref: IdentityRef,
    result: ClaimResult,
) -> set[IdentityRef]:
    """Move posts, replies, post ratings and flags; return affected post authors."""
    authors: set[IdentityRef] = {profile_ref}

    for model in (Post, Reply):
        rows = db.query(model).filter(
            model.author_kind == session_ref.kind,
            model.author_id == session_ref.id,
        ).all()
        for row in rows:
            row.author_kind = profile_ref.kind
            row.author_id = profile_ref.id
            result.moved_content += 1
    db.flush()

    post_ratings = db.query(PostRating).filter(
        PostRating.rater_kind == session_ref.kind,
        PostRating.rater_id == session_ref.id,
    ).all()
    for rating in post_ratings:
        post = db.get(Post, rating.post_id)
        if post is not None:
            authors.add(IdentityRef(post.author_kind, post.author_id))
        own_post = post is not None and (
            post.author_kind == profile_ref.kind and post.author_id == profile_ref.id
        )
        duplicate = db.query(PostRating).filter(
            PostRating.post_id == rating.post_id,
            PostRating.rater_kind == profile_ref.kind,
            PostRating.rater_id == profile_ref.id,
        ).first()
        if own_post or duplicate is not None:
            db.delete(rating)
            result.dropped_ratings += 1
            continue
        rating.rater_kind = profile_ref.kind
        rating.rater_id = profile_ref.id
        result.moved_ratings += 1
    db.flush()

    db.query(ReputationFlag).filter(
        ReputationFlag.target_kind == session_ref.kind,
        ReputationFlag.target_id == session_ref.id,
    ).update(
        {ReputationFlag.target_kind: profile_ref.kind, ReputationFlag.target_id: profile_ref.id},
        synchronize_session=False,
    )
    return authors


def claim_session(
    db: Session,
    session_id: str,
    profile_id: str,
    *,
    now: datetime | None = None,
) -> ClaimResult:
    """Merge an anonymous session identity into a profile identity.

    Ratings, posts, replies and brigade flags recorded under the session are
    re-keyed to the profile. Where both identities rated the same target the
    most recent rating wins; ratings that would become self-ratings are
    dropped. Scores of every affected identity are recomputed and the whole
    merge is committed as one unit.

    Raises:
        ValueError: If either identity is unknown or the session already
            belongs to a different profile.
    """
    from nosedive.models.score import SURFACE_PEER, SURFACE_POST
    from nosedive.services.scoring import ScoreAggregator

    session_row = db.get(SessionProfile, session_id)
    if session_row is None:
        raise ValueError(f"Unknown session {session_id!r}")
    if db.get(Profile, profile_id) is None:
        raise ValueError(f"Unknown profile {profile_id!r}")
    if session_row.claimed_profile_id and session_row.claimed_profile_id != profile_id:
        raise ValueError("Session already claimed by another profile")

    session_ref = IdentityRef.session(session_id)
    profile_ref = IdentityRef.profile(profile_id)
    result = ClaimResult(session=session_ref, profile=profile_ref)
    current = now or utcnow()

    try:
        session_row.claimed_profile_id = profile_id
        peer_targets = _merge_peer_ratings(db, session_ref, profile_ref, result)
        post_authors = _merge_content(db, session_ref, profile_ref, result)

        db.query(ReputationScore).filter(
            ReputationScore.identity_kind == session_ref.kind,
            ReputationScore.identity_id == session_ref.id,
        ).delete(synchronize_session=False)
        db.flush()

        aggregator = ScoreAggregator(db)
        for target in peer_targets:
            aggregator.recompute(target, SURFACE_PEER, now=current)
            result.recomputed.add(target)
        for author in post_authors:
            aggregator.recompute(author, SURFACE_POST, now=current)
            result.recomputed.add(author)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Claimed %s into %s: moved=%d dropped=%d content=%d",
        session_ref,
        profile_ref,
        result.moved_ratings,
        result.dropped_ratings,
        result.moved_content,
    )
    return result


def identities_matching(column_kind, column_id, refs: list[IdentityRef]):  # type: ignore[no-untyped-def]
    """Build an ``OR`` filter matching any of ``refs`` on a (kind, id) column pair."""
    return or_(*(and_(column_kind == ref.kind, column_id == ref.id) for ref in refs))
