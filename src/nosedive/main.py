"""Main entry point for the Nosedive application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nosedive import __version__
from nosedive.api.v1 import identity_router, posts_router, reputation_router
from nosedive.core.settings import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize FastAPI app
app = FastAPI(
    title="Nosedive API",
    description="Reputation scoring, posting quotas and abuse control",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(reputation_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")
app.include_router(identity_router, prefix="/api/v1")


@app.get("/health")
@app.get("/api/v1/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("nosedive.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
