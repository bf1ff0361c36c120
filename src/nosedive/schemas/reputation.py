"""Reputation-related Pydantic schemas."""

from pydantic import BaseModel, Field


class RatingCreate(BaseModel):
    """Schema for rating another identity by handle.

    ``value`` is range-checked by the gate so out-of-range stars get the
    same ``{ok, error, rule}`` body as every other refusal.
    """

    target_handle: str = Field(..., min_length=1, max_length=64)
    value: int = Field(..., description="Stars from 1 to 5")


class PostRatingCreate(BaseModel):
    """Schema for rating a single post."""

    value: int = Field(..., description="Stars from 1 to 5")


class RatingResponse(BaseModel):
    """Result of a recorded (or already locked) rating."""

    ok: bool = True
    bayesian_mean: float | None
    score_percent: float | None
    locked: bool = False


class ScoreSummary(BaseModel):
    """Public view of an identity's peer score."""

    count: int
    mean: float
    bayesian_mean: float
    score_percent: float
    tier: str


class ReputationResponse(BaseModel):
    """Schema for ``GET /reputation/{handle}``."""

    ok: bool = True
    handle: str
    score: ScoreSummary


class RecomputeResponse(BaseModel):
    ok: bool = True
    updated: int
