"""Tests for reputation endpoints."""

import pytest
from fastapi import status

from nosedive.core.settings import settings


def test_rate_identity_by_handle(client, make_profile, auth_headers) -> None:
    rater = make_profile("alice")
    make_profile("bob")

    response = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "bob", "value": 5},
        headers=auth_headers(rater),
    )

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["ok"] is True
    assert body["locked"] is False
    assert body["bayesian_mean"] == pytest.approx((4.0 * 5 + 5) / 6.0)
    assert body["score_percent"] == 83.3


def test_rate_self_is_forbidden(client, make_profile, auth_headers) -> None:
    me = make_profile("narcissus")

    response = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "narcissus", "value": 5},
        headers=auth_headers(me),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == {
        "ok": False,
        "error": "You cannot rate yourself",
        "rule": "self_action",
    }


@pytest.mark.parametrize("value", [0, 6])
def test_rate_out_of_range_value(client, make_profile, auth_headers, value) -> None:
    rater = make_profile()
    make_profile("target-range")

    response = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "target-range", "value": value},
        headers=auth_headers(rater),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"]["rule"] == "validation"


def test_rate_unknown_handle(client, make_profile, auth_headers) -> None:
    response = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "ghost", "value": 3},
        headers=auth_headers(make_profile()),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_rate_twice_hits_pair_cooldown(client, make_profile, auth_headers) -> None:
    rater = make_profile()
    make_profile("carol")
    payload = {"target_handle": "carol", "value": 4}

    first = client.post("/api/v1/reputation/rate", json=payload, headers=auth_headers(rater))
    second = client.post("/api/v1/reputation/rate", json=payload, headers=auth_headers(rater))

    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    detail = second.json()["detail"]
    assert detail["rule"] == "pair_cooldown"
    assert 0 < detail["retry_after"] <= 24 * 3600
    assert second.headers["Retry-After"] == str(detail["retry_after"])


def test_request_bucket_limits_bursts(client, make_profile, auth_headers, monkeypatch) -> None:
    monkeypatch.setattr(settings, "rate_limit_rating_requests", 1)
    rater = make_profile()
    make_profile("dave")
    make_profile("erin")

    first = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "dave", "value": 4},
        headers=auth_headers(rater),
    )
    second = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "erin", "value": 4},
        headers=auth_headers(rater),
    )

    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert second.json()["detail"]["rule"] == "request_burst"
    assert "Retry-After" in second.headers


def test_get_reputation_defaults_to_prior(client, make_profile) -> None:
    make_profile("frank")

    response = client.get("/api/v1/reputation/frank")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["handle"] == "frank"
    assert body["score"] == {
        "count": 0,
        "mean": 0.0,
        "bayesian_mean": 4.0,
        "score_percent": 80.0,
        "tier": "A",
    }


def test_get_reputation_reflects_ratings(client, make_profile, auth_headers) -> None:
    make_profile("grace")
    for _ in range(3):
        client.post(
            "/api/v1/reputation/rate",
            json={"target_handle": "grace", "value": 1},
            headers=auth_headers(make_profile()),
        )

    score = client.get("/api/v1/reputation/grace").json()["score"]

    assert score["count"] == 3
    assert score["mean"] == 1.0
    assert score["bayesian_mean"] == pytest.approx((4.0 * 5 + 3) / 8.0)
    assert score["tier"] == "C"


def test_get_reputation_unknown_handle(client) -> None:
    response = client.get("/api/v1/reputation/nobody")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_recompute_requires_admin_key(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "admin_key", "s3cret")

    assert client.post("/api/v1/reputation/recompute", params={"key": "nope"}).status_code == 403

    response = client.post("/api/v1/reputation/recompute", params={"key": "s3cret"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"ok": True, "updated": 0}


def test_recompute_disabled_without_admin_key(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "admin_key", None)
    response = client.post("/api/v1/reputation/recompute", params={"key": ""})
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_recompute_rewrites_scores(client, db_session, make_profile, auth_headers, monkeypatch) -> None:
    monkeypatch.setattr(settings, "admin_key", "s3cret")
    make_profile("heidi")
    client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "heidi", "value": 5},
        headers=auth_headers(make_profile()),
    )

    response = client.post("/api/v1/reputation/recompute", params={"key": "s3cret"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["updated"] >= 2


def test_invalid_token_is_rejected(client) -> None:
    response = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "anyone", "value": 3},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_signed_in_user_cannot_rate_own_cookie_session(
    client, make_profile, make_session, auth_headers
) -> None:
    owner = make_profile("owner")
    make_session(session_id="my-own-sid", handle="mysess")
    make_profile("stranger")
    headers = {**auth_headers(owner), "Cookie": "sid=my-own-sid"}

    own = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "mysess", "value": 5},
        headers=headers,
    )
    other = client.post(
        "/api/v1/reputation/rate",
        json={"target_handle": "stranger", "value": 5},
        headers=headers,
    )

    assert own.status_code == status.HTTP_403_FORBIDDEN
    assert own.json()["detail"]["rule"] == "self_action"
    assert other.status_code == status.HTTP_200_OK
