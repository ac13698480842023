#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pydantic models and dataclasses for Playlist Stats API requests, responses,
and internal aggregation state.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import config
from logging_config import StructuredLogger
from utils import parse_count, parse_duration_seconds

logger = StructuredLogger(__name__)


# --- Transport models ---

class PlaylistStatsRequest(BaseModel):
    """Body of a ``POST /api/playlist`` request."""

    model_config = ConfigDict(populate_by_name=True)

    playlist_url: str = Field(
        "",
        alias="playlistUrl",
        description="Public YouTube playlist URL (watch?...&list=... or playlist?list=...)."
    )

    @field_validator("playlist_url", mode="before")
    @classmethod
    def strip_url(cls, v: Any) -> str:
        """Normalise the URL; null and non-string values become an empty string."""
        if not isinstance(v, str):
            return ""
        cleaned = v.strip()
        if len(cleaned) > 2048:
            raise ValueError("Playlist URL too long (max 2048 characters)")
        return cleaned


class PlaylistStatsResponse(BaseModel):
    """Aggregated playlist totals returned to the caller."""

    model_config = ConfigDict(populate_by_name=True)

    playlist_title: str = Field(..., alias="playlistTitle")
    channel_title: str = Field(..., alias="channelTitle")
    total_videos: int = Field(..., alias="totalVideos", ge=0)
    total_duration_seconds: int = Field(..., alias="totalDurationSeconds", ge=0)
    total_views: int = Field(..., alias="totalViews", ge=0)
    total_likes: int = Field(..., alias="totalLikes", ge=0)
    total_comments: int = Field(..., alias="totalComments", ge=0)


class ErrorResponse(BaseModel):
    """Error body used in the OpenAPI documentation."""

    detail: str
    error_code: Optional[str] = None


# --- Internal records ---

@dataclass(frozen=True)
class PlaylistMetadata:
    """Playlist-level metadata, fixed once per aggregation run."""

    title: str
    channel_title: str

    @classmethod
    def from_api_response(cls, item: dict) -> "PlaylistMetadata":
        """Build metadata from a ``playlists.list`` item, filling placeholders."""
        snippet = item.get("snippet") or {}
        return cls(
            title=snippet.get("title") or config.DEFAULT_PLAYLIST_TITLE,
            channel_title=snippet.get("channelTitle") or config.DEFAULT_CHANNEL_TITLE,
        )


@dataclass(frozen=True)
class PlaylistPage:
    """One page of a ``playlistItems.list`` listing."""

    item_ids: List[str]
    next_page_token: Optional[str] = None

    @classmethod
    def from_api_response(cls, resp: dict) -> "PlaylistPage":
        item_ids = []
        for item in resp.get("items") or []:
            video_id = (item.get("contentDetails") or {}).get("videoId")
            if not video_id:
                logger.debug("Skipping playlist item without a video ID", item_id=item.get("id"))
                continue
            item_ids.append(video_id)
        return cls(item_ids=item_ids, next_page_token=resp.get("nextPageToken") or None)


@dataclass(frozen=True)
class PlaylistStats:
    """Final, immutable result of one aggregation run."""

    playlist_title: str
    channel_title: str
    total_videos: int = 0
    total_duration_seconds: int = 0
    total_views: int = 0
    total_likes: int = 0
    total_comments: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation with stable key order."""
        return {
            "playlistTitle": self.playlist_title,
            "channelTitle": self.channel_title,
            "totalVideos": self.total_videos,
            "totalDurationSeconds": self.total_duration_seconds,
            "totalViews": self.total_views,
            "totalLikes": self.total_likes,
            "totalComments": self.total_comments,
        }

    def to_response(self) -> PlaylistStatsResponse:
        return PlaylistStatsResponse(**self.to_dict())


@dataclass
class AggregationTotals:
    """Running totals for an aggregation run.

    Values only ever grow: items are folded in with ``add_item`` and partial
    totals from independent batches are combined with ``merge``.
    """

    total_videos: int = 0
    total_duration_seconds: int = 0
    total_views: int = 0
    total_likes: int = 0
    total_comments: int = 0
    items_seen: int = field(default=0, compare=False)

    def add_item(self, item: dict) -> None:
        """Fold one ``videos.list`` item into the totals.

        Malformed durations and missing or non-numeric statistics count as zero.
        """
        content_details = item.get("contentDetails") or {}
        statistics = item.get("statistics") or {}

        self.total_duration_seconds += parse_duration_seconds(content_details.get("duration"))
        self.total_views += parse_count(statistics.get("viewCount"))
        self.total_likes += parse_count(statistics.get("likeCount"))
        self.total_comments += parse_count(statistics.get("commentCount"))
        self.items_seen += 1

    def merge(self, other: "AggregationTotals") -> None:
        """Add another set of totals into this one."""
        self.total_videos += other.total_videos
        self.total_duration_seconds += other.total_duration_seconds
        self.total_views += other.total_views
        self.total_likes += other.total_likes
        self.total_comments += other.total_comments
        self.items_seen += other.items_seen

    def freeze(self, metadata: PlaylistMetadata) -> PlaylistStats:
        """Produce the immutable result record for ``metadata``."""
        return PlaylistStats(
            playlist_title=metadata.title,
            channel_title=metadata.channel_title,
            total_videos=self.total_videos,
            total_duration_seconds=self.total_duration_seconds,
            total_views=self.total_views,
            total_likes=self.total_likes,
            total_comments=self.total_comments,
        )
