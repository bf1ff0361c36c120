"""JWT helpers for profile-bound requests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from nosedive.core.settings import settings


def create_access_token(
    profile_id: str,
    extra_claims: dict[str, str] | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Create a JWT whose subject is ``profile_id``."""
    to_encode: dict[str, object] = {"sub": profile_id}
    if extra_claims:
        to_encode.update(extra_claims)
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    to_encode["exp"] = datetime.now(UTC) + timedelta(minutes=minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_profile_id(token: str) -> str | None:
    """Return the profile id carried by ``token``, or ``None`` if it is invalid."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) and subject else None
