"""Identity endpoints: who am I, and claiming an anonymous session."""

from fastapi import APIRouter, HTTPException, Request, status

from nosedive.core.settings import settings
from nosedive.services.identity import claim_session, handle_for

from ..dependencies import CurrentIdentityDep, ProfileIdentityDep, SessionDep


router = APIRouter(prefix="/identity", tags=["identity"])


@router.get("/me")
async def whoami(identity: CurrentIdentityDep, db: SessionDep) -> dict[str, str | None]:
    """Return the acting identity and its public handle."""
    return {"kind": identity.kind, "handle": handle_for(db, identity)}


@router.post("/claim")
async def claim(
    profile: ProfileIdentityDep,
    request: Request,
    db: SessionDep,
) -> dict[str, object]:
    """Merge the caller's anonymous session into their authenticated profile."""
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    session_id = request.cookies.get(settings.session_cookie_name)
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No session to claim",
        )

    try:
        result = claim_session(db, session_id, profile.id)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(err)) from err

    return {
        "ok": True,
        "moved_ratings": result.moved_ratings,
        "dropped_ratings": result.dropped_ratings,
        "moved_content": result.moved_content,
    }
