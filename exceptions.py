#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Custom exception classes and error handling utilities for Playlist Stats.

Every failure of an aggregation run surfaces as one of these exceptions,
each carrying a stable machine-readable error code and an HTTP status for
the transport layer.
"""

from typing import Optional
from fastapi import HTTPException, status


GENERIC_UPSTREAM_MESSAGE = "Failed to fetch playlist data."


# --- Base Exception Class ---

class AppBaseError(Exception):
    """Base class for all application-specific exceptions.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        http_status_code: HTTP status code to use in API responses
        retry_after: Optional seconds to wait before retrying (for throttling)
    """

    def __init__(self, message: str, error_code: Optional[str] = None,
                 http_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
                 retry_after: Optional[int] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.http_status_code = http_status_code
        self.retry_after = retry_after
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        """Convert this exception to a FastAPI HTTPException.

        Returns:
            HTTPException: FastAPI exception with appropriate status and headers
        """
        headers = {"X-Error-Code": self.error_code}
        if self.retry_after:
            headers["Retry-After"] = str(self.retry_after)

        return HTTPException(
            status_code=self.http_status_code,
            detail=self.message,
            headers=headers
        )


# --- Input and Lookup Errors ---

class InvalidInputError(AppBaseError):
    """Raised when the input cannot be resolved to a playlist identifier."""

    def __init__(self, message: str = "Invalid or unsupported YouTube Playlist URL"):
        super().__init__(
            message=message,
            error_code="INVALID_INPUT",
            http_status_code=status.HTTP_400_BAD_REQUEST
        )


class ResourceNotFoundError(AppBaseError):
    """Raised when the playlist does not exist upstream."""

    def __init__(self, message: str = "Playlist not found."):
        super().__init__(
            message=message,
            error_code="RESOURCE_NOT_FOUND",
            http_status_code=status.HTTP_404_NOT_FOUND
        )


class PlaylistTooLargeError(AppBaseError):
    """Raised when a playlist holds more items than the configured maximum."""

    def __init__(self, item_count: int, max_items: int,
                 message: str = "Playlist is too large to process"):
        self.item_count = item_count
        self.max_items = max_items
        super().__init__(
            message=message,
            error_code="PLAYLIST_TOO_LARGE",
            http_status_code=status.HTTP_400_BAD_REQUEST
        )


class ThrottledError(AppBaseError):
    """Raised when a client sends requests faster than the cooldown allows."""

    def __init__(self, message: str = "Please wait before making another request",
                 retry_after: int = 1):
        super().__init__(
            message=message,
            error_code="THROTTLED",
            http_status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            retry_after=retry_after
        )


# --- Upstream Errors ---

class UpstreamError(AppBaseError):
    """Raised for any transport, quota or API error from the catalog service.

    The upstream message is passed through when one is available.
    """

    def __init__(self, message: Optional[str] = None, error_code: str = "UPSTREAM_FAILURE",
                 http_status_code: int = status.HTTP_502_BAD_GATEWAY,
                 retry_after: Optional[int] = None):
        super().__init__(
            message=message or GENERIC_UPSTREAM_MESSAGE,
            error_code=error_code,
            http_status_code=http_status_code,
            retry_after=retry_after
        )


class QuotaExceededError(UpstreamError):
    """Raised when the YouTube API quota has been exhausted."""

    def __init__(self, message: str = "YouTube API quota exceeded"):
        super().__init__(
            message=message,
            error_code="QUOTA_EXCEEDED",
            http_status_code=status.HTTP_403_FORBIDDEN,
            retry_after=3600  # Suggest retry after 1 hour
        )


class TimeoutExceededError(UpstreamError):
    """Raised when a single upstream call exceeds its timeout."""

    def __init__(self, message: str = "YouTube API request timed out"):
        super().__init__(
            message=message,
            error_code="TIMEOUT",
            http_status_code=status.HTTP_504_GATEWAY_TIMEOUT
        )


class APIConfigurationError(AppBaseError):
    """Raised when there's an issue with the API configuration."""

    def __init__(self, message: str = "API configuration error"):
        super().__init__(
            message=message,
            error_code="API_CONFIG_ERROR",
            http_status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


# --- Error Handling Utilities ---

def handle_exception(exception: Exception) -> HTTPException:
    """Convert any exception to an appropriate HTTPException.

    Args:
        exception: The exception to handle

    Returns:
        HTTPException: FastAPI exception with appropriate status and headers
    """
    if isinstance(exception, AppBaseError):
        return exception.to_http_exception()

    elif isinstance(exception, ValueError):
        return InvalidInputError(str(exception)).to_http_exception()

    elif isinstance(exception, HTTPException):
        return exception

    else:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {type(exception).__name__}",
            headers={"X-Error-Code": "INTERNAL_SERVER_ERROR"}
        )
