"""Post-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    body: str = Field(..., min_length=1, max_length=5000, description="Post text")


class ReplyCreate(BaseModel):
    """Schema for replying in a post's thread."""

    body: str = Field(..., min_length=1, max_length=5000, description="Reply text")


class QuotaResponse(BaseModel):
    """Quota band applied to a write, with what is left today."""

    tier: str
    posts_per_day: int
    replies_per_day: int
    per_thread_daily: int
    used: int | None = None
    remaining: int | None = None


class PostResponse(BaseModel):
    """Schema for post information returned by the API."""

    id: int
    author_handle: str | None = None
    body: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReplyResponse(BaseModel):
    """Schema for reply information returned by the API."""

    id: int
    post_id: int
    author_handle: str | None = None
    body: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PostCreated(BaseModel):
    post: PostResponse
    quota: QuotaResponse


class ReplyCreated(BaseModel):
    reply: ReplyResponse
    quota: QuotaResponse
