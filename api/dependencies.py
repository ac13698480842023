#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
FastAPI dependency injection functions for Playlist Stats services.

The dependency function hands the stats engine to the route handlers.
The API client is kept here for the lifespan, and the rate limiter is
read by the throttle middleware.
"""

from typing import Optional

from fastapi import HTTPException, status

from services.engine import PlaylistStatsEngine
from services.rate_limiter import CooldownRateLimiter
from services.youtube_api import YouTubeAPIClient
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

# --- Global Service Instances ---
# Populated during the application lifespan startup.
api_client: Optional[YouTubeAPIClient] = None
rate_limiter: Optional[CooldownRateLimiter] = None
stats_engine: Optional[PlaylistStatsEngine] = None


# --- Dependency Injection Functions ---

def get_stats_engine() -> PlaylistStatsEngine:
    """Dependency function to get the initialized PlaylistStatsEngine instance.

    Raises:
        HTTPException: 503 Service Unavailable if the engine is not initialized.
    """
    if not stats_engine:
        logger.critical("Dependency Error: Playlist Stats Engine not initialized.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service Initialization Error: Playlist Stats Engine is not available.",
            headers={"X-Error-Code": "SERVICE_UNAVAILABLE_STATS_ENGINE"}
        )
    return stats_engine

