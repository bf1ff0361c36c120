# src/nosedive/models/__init__.py
"""SQLAlchemy models for the Nosedive service."""

from .flag import ReputationFlag
from .identity import Profile, SessionProfile
from .post import Post, Reply
from .rating import PostRating, ReputationRating
from .score import ReputationScore

__all__ = [
    "ReputationFlag",
    "Profile", "SessionProfile",
    "Post", "Reply",
    "PostRating", "ReputationRating",
    "ReputationScore",
]
