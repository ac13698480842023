#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
API Routes for the Playlist Stats application using FastAPI.

Defines the playlist aggregation endpoint and the health check.
"""

import html
import json
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response, status

from models import ErrorResponse, PlaylistStatsRequest, PlaylistStatsResponse
from exceptions import InvalidInputError, handle_exception
from services.engine import PlaylistStatsEngine
from api import dependencies
from api.dependencies import get_stats_engine
from logging_config import StructuredLogger

# Import version directly from root __init__.py
from __init__ import __version__ as app_version


logger = StructuredLogger(__name__)

router = APIRouter()

# Common error responses for OpenAPI documentation
ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid or unsupported URL, or playlist too large"},
    403: {"model": ErrorResponse, "description": "YouTube API quota exceeded"},
    404: {"model": ErrorResponse, "description": "Playlist not found"},
    429: {"model": ErrorResponse, "description": "Too many requests from this client"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
    502: {"model": ErrorResponse, "description": "YouTube API failure"},
    503: {"model": ErrorResponse, "description": "Service unavailable (e.g., initialization failed)"},
    504: {"model": ErrorResponse, "description": "YouTube API timeout"},
}


@router.post(
    "/api/playlist",
    response_model=PlaylistStatsResponse,
    response_model_by_alias=True,
    responses=ERROR_RESPONSES,
    summary="Aggregate playlist statistics",
    description="Resolves a public YouTube playlist URL and returns total duration, views, likes and comments over all of its videos."
)
async def get_playlist_stats(
    request: PlaylistStatsRequest,
    engine: PlaylistStatsEngine = Depends(get_stats_engine)
):
    """API endpoint computing the totals of one playlist.

    Raises:
        HTTPException: Mapped from the engine's exceptions (400, 403, 404, 502, 504).
    """
    safe_url = html.escape(request.playlist_url[:100]) + ("..." if len(request.playlist_url) > 100 else "")
    logger.info(f"Received /api/playlist request for: {safe_url}")

    try:
        if not request.playlist_url:
            raise InvalidInputError("Playlist URL is required")

        stats = await engine.process_url(request.playlist_url)
        return stats.to_response()

    except Exception as e:
        if isinstance(e, HTTPException):
            logger.error(f"HTTPException caught processing /api/playlist for '{safe_url}': Status={e.status_code}, Detail='{e.detail}'")
        elif hasattr(e, "error_code"):
            logger.info(f"{type(e).__name__} processing /api/playlist for '{safe_url}': {e}")
        else:
            logger.critical(f"Unexpected error processing /api/playlist for '{safe_url}': {e}", exc_info=True)
        raise handle_exception(e)


@router.get(
    "/health",
    summary="Health Check",
    description="Provides the operational status of the service with engine, API client and throttle statistics.",
    response_description="JSON object containing the health status and statistics."
)
async def health_check(engine: PlaylistStatsEngine = Depends(get_stats_engine)):
    """Endpoint to check system health and retrieve operational statistics."""
    logger.debug("Health check endpoint requested.")

    health_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service_version": app_version,
        "components": {
            "api_client": "ready",
            "stats_engine": "ready",
            "rate_limiter": "ready" if dependencies.rate_limiter is not None else "disabled",
        }
    }

    try:
        health_data["statistics"] = await engine.get_global_stats()
        if dependencies.rate_limiter is not None:
            health_data["statistics"]["rate_limiter_stats"] = dependencies.rate_limiter.get_stats()
    except Exception as e:
        logger.error(f"Error collecting statistics for /health endpoint: {e}", exc_info=True)
        health_data["statistics"] = {"error": f"Failed to collect detailed stats: {str(e)}"}

    return Response(
        content=json.dumps(health_data, default=str),
        status_code=status.HTTP_200_OK,
        media_type="application/json"
    )
