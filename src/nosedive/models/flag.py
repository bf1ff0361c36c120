# src/nosedive/models/flag.py
"""Audit records raised by the brigade detector."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from nosedive.db.session import Base
from nosedive.db.time import utcnow

FLAG_REASON_BRIGADE = "BRIGADE_SUSPECT"


class ReputationFlag(Base):
    """Append-only note that a target drew a suspicious burst of raters."""

    __tablename__ = "reputation_flag"
    __table_args__ = (
        Index("ix_reputation_flag_target", "target_kind", "target_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    target_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[str] = mapped_column(String(64), nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    window_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
