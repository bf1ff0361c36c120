"""Shared API dependencies for identity resolution and the reputation gate."""

import logging
import secrets
from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from nosedive.core.security import decode_profile_id
from nosedive.core.settings import settings
from nosedive.db.session import get_db
from nosedive.models import Profile
from nosedive.services.gate import ReputationGate
from nosedive.services.identity import IdentityRef, canonical_identity, ensure_session_profile
from nosedive.services.rate_limit import RateLimiter, get_rate_limiter
from nosedive.services.results import GateDenied, GateRule, deny

logger = logging.getLogger(__name__)

# Bearer tokens are optional; anonymous callers fall back to the session cookie
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
BearerDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]

_MAX_SESSION_ID_LENGTH = 64


def _issue_session_cookie(response: Response) -> str:
    session_id = secrets.token_urlsafe(24)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_id,
        max_age=settings.session_cookie_max_age,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return session_id


def get_profile_identity(credentials: BearerDep, db: SessionDep) -> IdentityRef | None:
    """Return the profile identity behind a bearer token, if one was sent.

    Raises:
        HTTPException: If a token was sent but is invalid or names no profile
    """
    if credentials is None:
        return None
    profile_id = decode_profile_id(credentials.credentials)
    if profile_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    if db.get(Profile, profile_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Profile not found",
        )
    return IdentityRef.profile(profile_id)


ProfileIdentityDep = Annotated[IdentityRef | None, Depends(get_profile_identity)]


def get_session_id(request: Request, response: Response, db: SessionDep) -> str:
    """Return the caller's session id, issuing a ``sid`` cookie when missing."""
    session_id = request.cookies.get(settings.session_cookie_name)
    if not session_id or len(session_id) > _MAX_SESSION_ID_LENGTH:
        session_id = _issue_session_cookie(response)
    ensure_session_profile(db, session_id)
    db.commit()
    return session_id


SessionIdDep = Annotated[str, Depends(get_session_id)]


def get_current_identity(
    profile: ProfileIdentityDep,
    request: Request,
    response: Response,
    db: SessionDep,
) -> IdentityRef:
    """Resolve the acting identity: bearer profile first, else the session cookie.

    A session that has been claimed by an account acts as that account.
    """
    if profile is not None:
        return profile
    session_id = get_session_id(request, response, db)
    return canonical_identity(db, IdentityRef.session(session_id))


CurrentIdentityDep = Annotated[IdentityRef, Depends(get_current_identity)]


def get_acting_identities(
    identity: CurrentIdentityDep,
    request: Request,
) -> frozenset[IdentityRef]:
    """Return every identity the caller holds: the acting one plus its cookie session.

    A signed-in user keeps their ``sid`` cookie, so ratings aimed at that
    session are self-ratings even though the bearer profile is acting.
    """
    actors = {identity}
    session_id = request.cookies.get(settings.session_cookie_name)
    if session_id and len(session_id) <= _MAX_SESSION_ID_LENGTH:
        actors.add(IdentityRef.session(session_id))
    return frozenset(actors)


ActingIdentitiesDep = Annotated[frozenset[IdentityRef], Depends(get_acting_identities)]


def get_gate(db: SessionDep) -> ReputationGate:
    """Return a gate bound to the request session and current tunables."""
    return ReputationGate(db)


def get_limiter() -> RateLimiter:
    """Return the process-wide request bucket limiter."""
    return get_rate_limiter()


GateDep = Annotated[ReputationGate, Depends(get_gate)]
LimiterDep = Annotated[RateLimiter, Depends(get_limiter)]


def raise_denied(denied: GateDenied) -> NoReturn:
    """Raise the HTTP error for a gate denial.

    Raises:
        HTTPException: Always, carrying ``{ok, error, rule[, retry_after]}``
    """
    headers = None
    if denied.retry_after is not None:
        headers = {"Retry-After": str(denied.retry_after)}
    raise HTTPException(status_code=denied.status, detail=denied.as_detail(), headers=headers)


def enforce_bucket(
    limiter: RateLimiter,
    name: str,
    identity: IdentityRef,
    *,
    limit: int,
    window_seconds: int,
) -> None:
    """Spend one request from ``identity``'s ``name`` bucket or raise 429."""
    decision = limiter.hit(name, identity.key, limit=limit, window_seconds=window_seconds)
    if not decision.ok:
        logger.warning("Request bucket %s exhausted for %s", name, identity)
        raise_denied(
            deny(GateRule.REQUEST_BURST, "Too many requests, slow down", decision.retry_after)
        )
