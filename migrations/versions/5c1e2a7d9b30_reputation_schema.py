"""reputation schema

Revision ID: 5c1e2a7d9b30
Revises:
Create Date: 2026-10-19 09:12:41.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e2a7d9b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    """Create identities, content, the rating ledger, score cache and flags."""
    op.create_table(
        "profile",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("handle", sa.String(length=64), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("handle"),
    )
    op.create_table(
        "session_profile",
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("handle", sa.String(length=64), nullable=False),
        sa.Column("claimed_profile_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["claimed_profile_id"], ["profile.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("session_id"),
        sa.UniqueConstraint("handle"),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("author_kind", sa.String(length=16), nullable=False),
        sa.Column("author_id", sa.String(length=64), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_post_author_created", "post", ["author_kind", "author_id", "created_at"])

    op.create_table(
        "reply",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("author_kind", sa.String(length=16), nullable=False),
        sa.Column("author_id", sa.String(length=64), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reply_author_created", "reply", ["author_kind", "author_id", "created_at"])
    op.create_index("ix_reply_post_id", "reply", ["post_id"])

    op.create_table(
        "reputation_rating",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("rater_kind", sa.String(length=16), nullable=False),
        sa.Column("rater_id", sa.String(length=64), nullable=False),
        sa.Column("target_kind", sa.String(length=16), nullable=False),
        sa.Column("target_id", sa.String(length=64), nullable=False),
        sa.Column("value", sa.SmallInteger(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("value BETWEEN 1 AND 5", name="ck_reputation_rating_value"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "rater_kind", "rater_id", "target_kind", "target_id",
            name="uq_reputation_rating_pair",
        ),
    )
    op.create_index(
        "ix_reputation_rating_target",
        "reputation_rating",
        ["target_kind", "target_id", "updated_at"],
    )
    op.create_index(
        "ix_reputation_rating_rater",
        "reputation_rating",
        ["rater_kind", "rater_id", "updated_at"],
    )

    op.create_table(
        "post_rating",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("rater_kind", sa.String(length=16), nullable=False),
        sa.Column("rater_id", sa.String(length=64), nullable=False),
        sa.Column("value", sa.SmallInteger(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("value BETWEEN 1 AND 5", name="ck_post_rating_value"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("post_id", "rater_kind", "rater_id", name="uq_post_rating_rater"),
    )
    op.create_index(
        "ix_post_rating_rater", "post_rating", ["rater_kind", "rater_id", "created_at"]
    )

    op.create_table(
        "reputation_score",
        sa.Column("identity_kind", sa.String(length=16), nullable=False),
        sa.Column("identity_id", sa.String(length=64), nullable=False),
        sa.Column("surface", sa.String(length=16), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("sum", sa.Float(), nullable=False),
        sa.Column("mean", sa.Float(), nullable=False),
        sa.Column("bayesian_mean", sa.Float(), nullable=False),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("identity_kind", "identity_id", "surface"),
    )

    op.create_table(
        "reputation_flag",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("target_kind", sa.String(length=16), nullable=False),
        sa.Column("target_id", sa.String(length=64), nullable=False),
        _timestamp("window_start"),
        _timestamp("window_end"),
        sa.Column("reason", sa.String(length=64), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reputation_flag_target", "reputation_flag", ["target_kind", "target_id"])


def downgrade() -> None:
    """Drop every reputation table."""
    op.drop_index("ix_reputation_flag_target", table_name="reputation_flag")
    op.drop_table("reputation_flag")
    op.drop_table("reputation_score")
    op.drop_index("ix_post_rating_rater", table_name="post_rating")
    op.drop_table("post_rating")
    op.drop_index("ix_reputation_rating_rater", table_name="reputation_rating")
    op.drop_index("ix_reputation_rating_target", table_name="reputation_rating")
    op.drop_table("reputation_rating")
    op.drop_index("ix_reply_post_id", table_name="reply")
    op.drop_index("ix_reply_author_created", table_name="reply")
    op.drop_table("reply")
    op.drop_index("ix_post_author_created", table_name="post")
    op.drop_table("post")
    op.drop_table("session_profile")
    op.drop_table("profile")
