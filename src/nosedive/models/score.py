# src/nosedive/models/score.py
"""Denormalised reputation cache."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from nosedive.db.session import Base
from nosedive.db.time import utcnow

SURFACE_PEER = "peer"
SURFACE_POST = "post"


class ReputationScore(Base):
    """Cached aggregate of an identity's ratings on one surface.

    Fully derived from the rating ledger; any reader may overwrite it with a
    fresh recompute.
    """

    __tablename__ = "reputation_score"

    identity_kind: Mapped[str] = mapped_column(String(16), primary_key=True)
    identity_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    surface: Mapped[str] = mapped_column(String(16), primary_key=True, default=SURFACE_PEER)

    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sum: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    mean: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bayesian_mean: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
