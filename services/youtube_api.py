#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
YouTube Data API v3 Client for Playlist Stats.

Wraps the three catalog calls the aggregation needs (playlist metadata,
playlist item pages, video details) and maps every API failure onto the
application's exception taxonomy. Calls are executed once, without retries.
"""

import asyncio
import functools
import json
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import httplib2
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError
from googleapiclient.http import build_http

from config import config
from exceptions import (APIConfigurationError, QuotaExceededError,
                        ResourceNotFoundError, TimeoutExceededError,
                        UpstreamError)
from models import PlaylistMetadata, PlaylistPage
from utils import SecureApiKeyManager
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class YouTubeAPIClient:
    """Client for the parts of the YouTube Data API v3 used by the engine.

    Every public method either returns parsed data or raises an
    ``UpstreamError`` (``QuotaExceededError``, ``TimeoutExceededError``) or
    ``ResourceNotFoundError``. The underlying client library is synchronous,
    so each request runs in the default executor with its own HTTP object.
    """

    # API quota costs for the endpoints used
    API_COST = {
        "videos.list": 1,
        "playlists.list": 1,
        "playlistItems.list": 1,
    }

    # Error reasons reported with HTTP 403 when the quota is exhausted
    QUOTA_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded",
                               "rateLimitExceeded", "userRateLimitExceeded"})

    MAX_IDS_PER_DETAILS_CALL = 50

    def __init__(self, api_key: Optional[str] = None,
                 timeout_seconds: float = config.API_TIMEOUT_SECONDS):
        """Initialize the YouTube API client.

        Args:
            api_key: YouTube Data API key. If None, it is loaded from the environment.
            timeout_seconds: Timeout for a single API request.

        Raises:
            APIConfigurationError: If the API key is missing or the client cannot be built.
        """
        logger.info("Initializing YouTube API Client...")
        self.key_manager = SecureApiKeyManager()
        self.api_key = api_key if api_key is not None else self.key_manager.get_key()
        self.timeout_seconds = timeout_seconds
        self.quota_reached = False
        self._build_lock = threading.Lock()

        if not self.api_key:
            logger.critical("YouTube API key is missing.")
            raise APIConfigurationError("YouTube API Key is not configured.")

        if not self.key_manager.validate_key(self.api_key):
            logger.warning("API key format validation failed (heuristic check).")

        try:
            # cache_discovery=False prevents issues with stale discovery documents
            self.youtube: Resource = build("youtube", "v3", developerKey=self.api_key, cache_discovery=False)
        except Exception as e:
            logger.critical(f"Error initializing YouTube API client build: {e}", error=str(e), exc_info=True)
            raise APIConfigurationError(f"Could not initialize YouTube API service: {e}") from e

        # Statistics tracking
        self.api_calls_count = 0
        self.api_quota_used = 0
        self.api_errors_count = 0
        logger.info("YouTube API Client initialized.", api_key=self.key_manager.obfuscate_key(self.api_key))

    async def _execute_api_call(self, request_factory: Callable[[], Any], operation: str) -> dict:
        """Build and execute one API request off the event loop.

        Args:
            request_factory: Zero-argument callable returning a googleapiclient request.
            operation: Endpoint name (e.g. ``"videos.list"``) for stats and logs.

        Returns:
            dict: The parsed JSON response.

        Raises:
            QuotaExceededError: On quota related 403 responses.
            ResourceNotFoundError: On 404 responses.
            TimeoutExceededError: If the call exceeds ``timeout_seconds``.
            UpstreamError: For every other HTTP or transport failure.
        """
        def _run() -> dict:
            with self._build_lock:
                request = request_factory()
            # httplib2.Http is not thread safe, so every call gets its own
            return request.execute(http=build_http())

        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, _run),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            self.api_errors_count += 1
            logger.error(f"{operation} timed out after {self.timeout_seconds}s", operation=operation)
            raise TimeoutExceededError(f"YouTube API request timed out after {self.timeout_seconds} seconds") from e
        except HttpError as http_err:
            self.api_errors_count += 1
            raise self._map_http_error(http_err, operation) from http_err
        except (httplib2.HttpLib2Error, OSError) as transport_err:
            self.api_errors_count += 1
            logger.error(f"Transport error during {operation}: {transport_err}", operation=operation, error=str(transport_err))
            raise UpstreamError() from transport_err

        self.api_calls_count += 1
        self.api_quota_used += self.API_COST.get(operation, 1)
        return response

    @staticmethod
    def _parse_error_content(http_err: HttpError) -> Tuple[Optional[str], List[str]]:
        """Extract the API's error message and reasons from an HttpError body."""
        content = getattr(http_err, "content", b"") or b""
        if isinstance(content, bytes):
            content = content.decode(config.DEFAULT_ENCODING, errors="replace")
        try:
            error = json.loads(content).get("error") or {}
        except (ValueError, AttributeError):
            return None, []
        if not isinstance(error, dict):
            return None, []
        reasons = [e.get("reason") for e in error.get("errors") or [] if isinstance(e, dict) and e.get("reason")]
        return error.get("message") or None, reasons

    def _map_http_error(self, http_err: HttpError, operation: str) -> Exception:
        """Translate an HttpError into the matching application exception."""
        status_code = getattr(getattr(http_err, "resp", None), "status", None)
        try:
            status_code = int(status_code)
        except (TypeError, ValueError):
            status_code = None
        message, reasons = self._parse_error_content(http_err)

        if status_code == 403 and self.QUOTA_REASONS.intersection(reasons):
            self.quota_reached = True
            logger.critical(f"YouTube API quota exceeded during {operation}", operation=operation, reasons=reasons)
            return QuotaExceededError(message or "YouTube API quota exceeded")

        # Only the metadata lookup can report a missing playlist
        if status_code == 404 and operation == "playlists.list":
            logger.warning(f"YouTube resource not found during {operation}", operation=operation)
            return ResourceNotFoundError(message or "Playlist not found.")

        logger.error(
            f"YouTube API error {status_code} during {operation}: {message or http_err}",
            operation=operation, status=status_code, reasons=reasons
        )
        return UpstreamError(message)

    async def get_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistMetadata]:
        """Fetch title and owner of a playlist.

        Args:
            playlist_id: The YouTube Playlist ID.

        Returns:
            PlaylistMetadata, or None if the playlist does not exist (or is private).
        """
        request_factory = functools.partial(
            self.youtube.playlists().list,
            part="snippet",
            id=playlist_id,
            fields="items(snippet(title,channelTitle))"
        )
        try:
            resp = await self._execute_api_call(request_factory, "playlists.list")
        except ResourceNotFoundError:
            return None

        items = resp.get("items")
        if not items or not isinstance(items, list):
            logger.info(f"No playlist returned for ID {playlist_id}", playlist_id=playlist_id)
            return None
        return PlaylistMetadata.from_api_response(items[0])

    async def list_playlist_items(self, playlist_id: str, page_size: int = config.PAGE_SIZE,
                                  page_token: Optional[str] = None) -> PlaylistPage:
        """Fetch one page of video IDs from a playlist.

        Args:
            playlist_id: The YouTube Playlist ID.
            page_size: Items per page (API maximum is 50).
            page_token: Continuation token from the previous page, None for the first.

        Returns:
            PlaylistPage: The page's video IDs and the next page token, if any.
        """
        request_factory = functools.partial(
            self.youtube.playlistItems().list,
            part="contentDetails",
            playlistId=playlist_id,
            maxResults=page_size,
            pageToken=page_token,
            fields="items(contentDetails/videoId),nextPageToken"
        )
        resp = await self._execute_api_call(request_factory, "playlistItems.list")
        return PlaylistPage.from_api_response(resp)

    async def get_item_details(self, video_ids: List[str]) -> List[Dict[str, Any]]:
        """Fetch duration and statistics for up to 50 videos.

        Args:
            video_ids: Video IDs for a single batch.

        Returns:
            list: ``videos.list`` items with ``contentDetails`` and ``statistics``.
                  Deleted or private videos are simply absent.

        Raises:
            ValueError: If more than 50 IDs are passed.
        """
        if not video_ids:
            return []
        if len(video_ids) > self.MAX_IDS_PER_DETAILS_CALL:
            raise ValueError(f"At most {self.MAX_IDS_PER_DETAILS_CALL} video IDs per details call, got {len(video_ids)}")

        request_factory = functools.partial(
            self.youtube.videos().list,
            part="contentDetails,statistics",
            id=",".join(video_ids),
            fields="items(id,contentDetails/duration,statistics(viewCount,likeCount,commentCount))"
        )
        logger.debug(f"Calling videos.list API for {len(video_ids)} IDs starting with {video_ids[0]}")
        resp = await self._execute_api_call(request_factory, "videos.list")
        return resp.get("items") or []

    async def get_api_stats(self) -> Dict[str, Any]:
        """Returns current API usage statistics."""
        return {
            "api_calls_count": self.api_calls_count,
            "api_quota_used_estimated": self.api_quota_used,
            "api_errors_count": self.api_errors_count,
            "quota_reached_flag": self.quota_reached,
            "api_key_info": {
                "available": bool(self.api_key),
                "obfuscated": self.key_manager.obfuscate_key(self.api_key)
            }
        }

    def validate_api_key_format(self) -> bool:
        """Performs a basic heuristic check on the API key format."""
        return self.key_manager.validate_key(self.api_key)
