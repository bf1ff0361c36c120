"""Tests for identity references, handle resolution and session claims."""

from datetime import UTC, datetime, timedelta

import pytest

from nosedive.models import (
    Post,
    PostRating,
    ReputationFlag,
    ReputationRating,
    ReputationScore,
    SessionProfile,
)
from nosedive.models.score import SURFACE_PEER
from nosedive.services.identity import (
    IdentityRef,
    canonical_identity,
    claim_session,
    ensure_session_profile,
    handle_for,
    resolve_handle,
)

T0 = datetime(2026, 3, 14, 12, 0, 0, tzinfo=UTC)


def _rate(db_session, rater, target, value: int, at: datetime) -> None:
    db_session.add(
        ReputationRating(
            rater_kind=rater.kind,
            rater_id=rater.id,
            target_kind=target.kind,
            target_id=target.id,
            value=value,
            created_at=at,
            updated_at=at,
        )
    )
    db_session.commit()


def test_identity_ref_validates_kind() -> None:
    with pytest.raises(ValueError):
        IdentityRef("robot", "x")
    with pytest.raises(ValueError):
        IdentityRef.session("")


def test_identity_ref_key_and_equality() -> None:
    assert IdentityRef.session("abc").key == "session:abc"
    assert IdentityRef.profile("abc") != IdentityRef.session("abc")
    assert IdentityRef.profile("abc") == IdentityRef("profile", "abc")


def test_ensure_session_profile_is_idempotent(db_session) -> None:
    first = ensure_session_profile(db_session, "sid-1")
    second = ensure_session_profile(db_session, "sid-1")
    db_session.commit()

    assert first is second
    assert first.handle.startswith("nab-")
    assert db_session.query(SessionProfile).count() == 1


def test_resolve_handle_prefers_profile(db_session, make_profile, make_session) -> None:
    profile = make_profile("zed")
    session = make_session(handle="nab-beef")

    assert resolve_handle(db_session, "ZED ") == profile
    assert resolve_handle(db_session, "nab-beef") == session
    assert resolve_handle(db_session, "nobody") is None
    assert resolve_handle(db_session, "") is None
    assert handle_for(db_session, profile) == "zed"


def test_canonical_identity_follows_claim(db_session, make_profile, make_session) -> None:
    session = make_session(handle="nab-c0de")
    profile = make_profile()
    assert canonical_identity(db_session, session) == session

    claim_session(db_session, session.id, profile.id, now=T0)

    assert canonical_identity(db_session, session) == profile
    assert resolve_handle(db_session, "nab-c0de") == profile


def test_claim_keeps_newest_rating_per_target(db_session, make_profile, make_session) -> None:
    session, profile, target = make_session(), make_profile(), make_session()
    _rate(db_session, profile, target, 2, T0)
    _rate(db_session, session, target, 5, T0 + timedelta(hours=1))

    result = claim_session(db_session, session.id, profile.id, now=T0 + timedelta(hours=2))

    ratings = db_session.query(ReputationRating).all()
    assert len(ratings) == 1
    assert (ratings[0].rater_kind, ratings[0].rater_id) == (profile.kind, profile.id)
    assert ratings[0].value == 5
    assert result.moved_ratings == 1
    assert result.dropped_ratings == 1
    assert target in result.recomputed
    target_score = db_session.get(ReputationScore, (target.kind, target.id, SURFACE_PEER))
    assert target_score.count == 1
    assert target_score.sum == 5.0


def test_claim_drops_ratings_that_become_self_ratings(
    db_session, make_profile, make_session
) -> None:
    session, profile = make_session(), make_profile()
    _rate(db_session, session, profile, 5, T0)
    _rate(db_session, profile, session, 5, T0)

    result = claim_session(db_session, session.id, profile.id, now=T0)

    assert db_session.query(ReputationRating).count() == 0
    assert result.dropped_ratings == 2
    profile_score = db_session.get(ReputationScore, (profile.kind, profile.id, SURFACE_PEER))
    assert profile_score.count == 0


def test_claim_moves_content_and_received_ratings(
    db_session, make_profile, make_session, make_post
) -> None:
    session, profile, fan = make_session(), make_profile(), make_session()
    post = make_post(session)
    db_session.add(
        PostRating(post_id=post.id, rater_kind=fan.kind, rater_id=fan.id, value=4, created_at=T0)
    )
    db_session.add(
        ReputationFlag(
            target_kind=session.kind,
            target_id=session.id,
            window_start=T0 - timedelta(hours=1),
            window_end=T0,
            reason="BRIGADE_SUSPECT",
            count=6,
        )
    )
    db_session.commit()
    _rate(db_session, fan, session, 3, T0)

    result = claim_session(db_session, session.id, profile.id, now=T0)
    db_session.expire_all()

    moved_post = db_session.get(Post, post.id)
    assert (moved_post.author_kind, moved_post.author_id) == (profile.kind, profile.id)
    rating = db_session.query(ReputationRating).one()
    assert (rating.target_kind, rating.target_id) == (profile.kind, profile.id)
    flag = db_session.query(ReputationFlag).one()
    assert (flag.target_kind, flag.target_id) == (profile.kind, profile.id)
    assert result.moved_content == 1
    assert db_session.get(ReputationScore, (session.kind, session.id, SURFACE_PEER)) is None


def test_claim_rejects_unknown_or_foreign_sessions(db_session, make_profile, make_session) -> None:
    session = make_session()
    owner, other = make_profile(), make_profile()

    with pytest.raises(ValueError):
        claim_session(db_session, "missing", owner.id)
    with pytest.raises(ValueError):
        claim_session(db_session, session.id, "missing")

    claim_session(db_session, session.id, owner.id, now=T0)
    with pytest.raises(ValueError):
        claim_session(db_session, session.id, other.id)
