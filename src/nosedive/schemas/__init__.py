"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .post import (
    PostCreate,
    PostCreated,
    PostResponse,
    QuotaResponse,
    ReplyCreate,
    ReplyCreated,
    ReplyResponse,
)
from .reputation import (
    PostRatingCreate,
    RatingCreate,
    RatingResponse,
    RecomputeResponse,
    ReputationResponse,
    ScoreSummary,
)

__all__ = [
    "PostCreate", "PostCreated", "PostResponse",
    "QuotaResponse",
    "ReplyCreate", "ReplyCreated", "ReplyResponse",
    "PostRatingCreate", "RatingCreate", "RatingResponse",
    "RecomputeResponse", "ReputationResponse", "ScoreSummary",
]
