"""Tests for identity endpoints and request identity resolution."""

from fastapi import status

from nosedive.core.security import create_access_token, decode_profile_id
from nosedive.models import ReputationRating, SessionProfile


def test_whoami_anonymous(client, db_session) -> None:
    response = client.get("/api/v1/identity/me")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["kind"] == "session"
    assert body["handle"].startswith("nab-")
    assert db_session.query(SessionProfile).count() == 1


def test_whoami_profile(client, make_profile, auth_headers) -> None:
    me = make_profile("ivan")

    body = client.get("/api/v1/identity/me", headers=auth_headers(me)).json()

    assert body == {"kind": "profile", "handle": "ivan"}


def test_token_for_unknown_profile_is_rejected(client) -> None:
    headers = {"Authorization": f"Bearer {create_access_token('no-such-profile')}"}
    response = client.get("/api/v1/identity/me", headers=headers)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_token_round_trip() -> None:
    assert decode_profile_id(create_access_token("abc123")) == "abc123"
    assert decode_profile_id(create_access_token("abc123", expires_minutes=-1)) is None
    assert decode_profile_id("garbage") is None


def test_claim_session_through_api(
    client, db_session, make_profile, make_session, auth_headers
) -> None:
    session = make_session(session_id="sid-judy", handle="nab-1234")
    profile = make_profile("judy")
    target = make_profile("kim")
    db_session.add(
        ReputationRating(
            rater_kind=session.kind,
            rater_id=session.id,
            target_kind=target.kind,
            target_id=target.id,
            value=4,
        )
    )
    db_session.commit()

    headers = {**auth_headers(profile), "Cookie": "sid=sid-judy"}
    response = client.post("/api/v1/identity/claim", headers=headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "ok": True,
        "moved_ratings": 1,
        "dropped_ratings": 0,
        "moved_content": 0,
    }
    me = client.get("/api/v1/identity/me", headers={"Cookie": "sid=sid-judy"}).json()
    assert me == {"kind": "profile", "handle": "judy"}


def test_claim_requires_authentication(client) -> None:
    response = client.post("/api/v1/identity/claim", headers={"Cookie": "sid=whatever"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_claim_requires_session_cookie(client, make_profile, auth_headers) -> None:
    response = client.post("/api/v1/identity/claim", headers=auth_headers(make_profile()))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_claim_unknown_session_conflicts(client, make_profile, auth_headers) -> None:
    headers = {**auth_headers(make_profile()), "Cookie": "sid=never-seen"}
    response = client.post("/api/v1/identity/claim", headers=headers)
    assert response.status_code == status.HTTP_409_CONFLICT
