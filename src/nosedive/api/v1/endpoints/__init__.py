"""API endpoint modules for version 1."""

from .identity import router as identity_router
from .posts import router as posts_router
from .reputation import router as reputation_router

__all__ = [
    "identity_router",
    "posts_router",
    "reputation_router",
]
