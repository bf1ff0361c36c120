# src/nosedive/models/rating.py
"""Models capturing individual ratings (the reputation ledger)."""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from nosedive.db.session import Base
from nosedive.db.time import utcnow


class ReputationRating(Base):
    """Peer rating of one identity by another.

    The unique constraint is the source of truth for "one rating per
    (rater, target)"; a repeat rating updates ``value`` and ``updated_at``.
    """

    __tablename__ = "reputation_rating"
    __table_args__ = (
        CheckConstraint("value BETWEEN 1 AND 5", name="ck_reputation_rating_value"),
        UniqueConstraint(
            "rater_kind", "rater_id", "target_kind", "target_id",
            name="uq_reputation_rating_pair",
        ),
        Index("ix_reputation_rating_target", "target_kind", "target_id", "updated_at"),
        Index("ix_reputation_rating_rater", "rater_kind", "rater_id", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rater_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    rater_id: Mapped[str] = mapped_column(String(64), nullable=False)
    target_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class PostRating(Base):
    """Star rating left on a single post; one per (post, rater)."""

    __tablename__ = "post_rating"
    __table_args__ = (
        CheckConstraint("value BETWEEN 1 AND 5", name="ck_post_rating_value"),
        UniqueConstraint("post_id", "rater_kind", "rater_id", name="uq_post_rating_rater"),
        Index("ix_post_rating_rater", "rater_kind", "rater_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
    )
    rater_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    rater_id: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
