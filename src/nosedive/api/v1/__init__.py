"""Version 1 API endpoints."""

from .endpoints import identity_router, posts_router, reputation_router

__all__ = [
    "identity_router",
    "posts_router",
    "reputation_router",
]
