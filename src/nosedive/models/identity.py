# src/nosedive/models/identity.py
"""SQLAlchemy models for the two identity forms that can rate and be rated."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from nosedive.db.session import Base
from nosedive.db.time import utcnow

IDENTITY_KIND_SESSION = "session"
IDENTITY_KIND_PROFILE = "profile"


def _new_profile_id() -> str:
    return uuid.uuid4().hex


class Profile(Base):
    """Durable, account-bound identity."""

    __tablename__ = "profile"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_profile_id)
    handle: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class SessionProfile(Base):
    """Anonymous identity bound to the ``sid`` cookie.

    Once an account claims the session, ``claimed_profile_id`` points at the
    profile and every lookup resolves to that profile instead.
    """

    __tablename__ = "session_profile"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    handle: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    claimed_profile_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("profile.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
