# src/nosedive/models/post.py
"""SQLAlchemy models for posts and replies.

Only the columns the quota and interaction checks need are modelled here.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nosedive.db.session import Base
from nosedive.db.time import utcnow


class Post(Base):
    """Top-level content authored by a session or profile identity."""

    __tablename__ = "post"
    __table_args__ = (
        Index("ix_post_author_created", "author_kind", "author_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    deleted: Mapped[bool] = mapped_column(default=False, nullable=False)


class Reply(Base):
    """Reply in a post's thread."""

    __tablename__ = "reply"
    __table_args__ = (
        Index("ix_reply_author_created", "author_kind", "author_id", "created_at"),
        Index("ix_reply_post_id", "post_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
