# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")

from nosedive.api.v1.dependencies import get_limiter
from nosedive.core.security import create_access_token
from nosedive.core.settings import ReputationSettings
from nosedive.db.session import Base
from nosedive.db.session import get_db as app_get_session
from nosedive.main import app as fastapi_app
from nosedive.models import Post, Profile, ReputationScore, SessionProfile
from nosedive.models.score import SURFACE_PEER
from nosedive.services.identity import IdentityRef
from nosedive.services.rate_limit import FixedWindowRateLimiter

TEST_DB_URL = "sqlite://"

# A fixed instant away from midnight so daily windows never straddle a test.
T0 = datetime(2026, 3, 14, 12, 0, 0, tzinfo=UTC)

_HANDLE_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def limiter() -> FixedWindowRateLimiter:
    """A fresh request bucket limiter for each test."""
    return FixedWindowRateLimiter()


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    limiter: FixedWindowRateLimiter,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_limiter] = lambda: limiter
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_limiter, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def rep_config() -> ReputationSettings:
    """Default tunables, independent of the caller's environment."""
    return ReputationSettings(
        prior_mean=4.0,
        prior_weight=5,
        weight_min=0.25,
        weight_max=1.25,
        rating_halflife_days=180,
        require_interaction_days=0,
        rating_global_per_hour=8,
        rating_pair_cooldown_hours=24,
        brigade_window_minutes=60,
        brigade_min_raters=6,
        post_rating_weighted=False,
    )


@pytest.fixture(autouse=True)
def clean_reputation_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep REP_* variables from the outer shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("REP_"):
            monkeypatch.delenv(name, raising=False)


def _next_handle(prefix: str) -> str:
    return f"{prefix}-{next(_HANDLE_COUNTER)}"


@pytest.fixture()
def make_profile(db_session: Session) -> Callable[..., IdentityRef]:
    """Create and return a persisted profile identity."""

    def _make(handle: str | None = None) -> IdentityRef:
        profile = Profile(handle=handle or _next_handle("prof"))
        db_session.add(profile)
        db_session.commit()
        return IdentityRef.profile(profile.id)

    return _make


@pytest.fixture()
def make_session(db_session: Session) -> Callable[..., IdentityRef]:
    """Create and return a persisted anonymous session identity."""

    def _make(session_id: str | None = None, handle: str | None = None) -> IdentityRef:
        sid = session_id or _next_handle("sid")
        db_session.add(SessionProfile(session_id=sid, handle=handle or _next_handle("nab")))
        db_session.commit()
        return IdentityRef.session(sid)

    return _make


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Persist a post authored by ``author``."""

    def _make(author: IdentityRef, *, created_at: datetime | None = None, body: str = "hello") -> Post:
        post = Post(
            author_kind=author.kind,
            author_id=author.id,
            body=body,
            created_at=created_at or T0,
        )
        db_session.add(post)
        db_session.commit()
        return post

    return _make


@pytest.fixture()
def seed_score(db_session: Session) -> Callable[..., ReputationScore]:
    """Write a cached peer score row directly."""

    def _seed(identity: IdentityRef, bayesian_mean: float, count: int = 10) -> ReputationScore:
        score = ReputationScore(
            identity_kind=identity.kind,
            identity_id=identity.id,
            surface=SURFACE_PEER,
            count=count,
            sum=bayesian_mean * count,
            mean=bayesian_mean,
            bayesian_mean=bayesian_mean,
        )
        db_session.add(score)
        db_session.commit()
        return score

    return _seed


@pytest.fixture()
def auth_headers() -> Callable[[IdentityRef], dict[str, str]]:
    """Build bearer headers for a profile identity."""

    def _headers(identity: IdentityRef) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(identity.id)}"}

    return _headers
