# src/jugger_connect/main.py
"""Main entry point for the Jugger Connect messaging service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from jugger_connect.api.v1 import chat_router, realtime_router, users_router
from jugger_connect.core.logging_config import configure_logging
from jugger_connect.core.settings import settings
from jugger_connect.realtime.router import get_event_router

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Jugger Connect API",
    description="Direct messaging and presence for the Jugger Connect social network",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(chat_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    logger.info(
        "%s %s starting (presence directory: %s)",
        settings.app_name,
        settings.app_version,
        "redis" if settings.presence_redis_enabled else "local",
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    directory = get_event_router().directory
    if directory is not None:
        await directory.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("jugger_connect.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
