#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Main FastAPI application setup for Playlist Stats.

Initializes the FastAPI application, sets up lifespan management for services,
registers middleware and error handlers, and includes API routes.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

# Import version directly from __init__.py
from __init__ import __version__

from api import dependencies, routes
from config import config
from exceptions import APIConfigurationError
from middleware import ThrottleMiddleware
from services.engine import PlaylistStatsEngine
from services.rate_limiter import CooldownRateLimiter
from services.youtube_api import YouTubeAPIClient
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


def _reset_services() -> None:
    dependencies.api_client = None
    dependencies.rate_limiter = None
    dependencies.stats_engine = None


# --- Lifespan Management ---

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Creates the services on startup and populates the global instances
    defined in api.dependencies; logs final statistics on shutdown.
    """
    logger.info("Starting Playlist Stats FastAPI application lifespan...")

    try:
        logger.info("Initializing services...")
        dependencies.api_client = YouTubeAPIClient()
        dependencies.stats_engine = PlaylistStatsEngine(api_client=dependencies.api_client)
        dependencies.rate_limiter = CooldownRateLimiter()
        logger.info("Playlist Stats services initialized successfully.")

        if not dependencies.api_client.validate_api_key_format():
            logger.warning("API key format validation failed (heuristic check). Application might not function correctly.")

    except APIConfigurationError as api_err:
        logger.critical(f"API configuration error during startup: {api_err}")
        _reset_services()
    except Exception as e:
        logger.critical(f"Critical unexpected error during service initialization: {e}", exc_info=True)
        _reset_services()

    yield

    # --- Shutdown ---
    logger.info("Shutting down Playlist Stats FastAPI application lifespan...")
    if dependencies.stats_engine:
        try:
            await dependencies.stats_engine.shutdown()
        except Exception as e:
            logger.error(f"Error during stats engine shutdown: {e}", exc_info=True)
    else:
        logger.info("Stats engine was not initialized, skipping shutdown.")

    logger.info("Lifespan cleanup finished.")


# --- FastAPI Application Instantiation ---

app = FastAPI(
    lifespan=lifespan,
    title="Playlist Stats API",
    description="API computing total duration, views, likes and comments of a public YouTube playlist.",
    version=__version__
)

# --- Middleware Registration ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"]
)
logger.debug(f"CORS Middleware added. Allowed origins: {config.ALLOWED_ORIGINS}")

# Throttling runs before the request body is parsed
app.add_middleware(ThrottleMiddleware)


# --- Error Handlers ---

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"detail", "error_code"}``."""
    headers = dict(exc.headers or {})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": headers.get("X-Error-Code")},
        headers=headers or None
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported as invalid input (400), not 422."""
    logger.info(f"Request validation failed for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid or unsupported YouTube Playlist URL", "error_code": "INVALID_INPUT"},
        headers={"X-Error-Code": "INVALID_INPUT"}
    )


# --- API Router Inclusion ---
app.include_router(routes.router)
logger.info("FastAPI application setup complete.")
