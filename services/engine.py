#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Playlist Stats Engine.

Orchestrates one aggregation run: resolve the playlist ID, fetch playlist
metadata, enumerate the items, enforce the size limit and aggregate the
per-video details into a result record.
"""

import enum
import time
import uuid
from collections import Counter
from typing import Any, Dict

from config import config
from exceptions import (AppBaseError, InvalidInputError, PlaylistTooLargeError,
                        ResourceNotFoundError, UpstreamError)
from models import AggregationTotals, PlaylistStats
from services.aggregation import BatchDetailAggregator, PlaylistItemEnumerator
from services.youtube_api import YouTubeAPIClient
from utils import extract_playlist_id, performance_timer
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class RunState(enum.Enum):
    """Steps of an aggregation run. DONE and ERROR are terminal."""

    RESOLVING = "resolving"
    METADATA_FETCH = "metadata_fetch"
    ENUMERATING = "enumerating"
    SIZE_CHECK = "size_check"
    AGGREGATING = "aggregating"
    DONE = "done"
    ERROR = "error"


class _RunContext:
    """Per-run bookkeeping: request id, current state and timing."""

    def __init__(self, url: str):
        self.request_id = str(uuid.uuid4())[:8]
        self.state = RunState.RESOLVING
        self.start_time_mono = time.monotonic()
        self.log = logger.bind(request_id=self.request_id)
        self.log.info(f"[REQ-{self.request_id}] Processing playlist request: '{url[:100]}'", url=url[:100])

    def transition(self, new_state: RunState) -> None:
        self.log.debug(f"[REQ-{self.request_id}] {self.state.value} -> {new_state.value}")
        self.state = new_state

    @property
    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.start_time_mono) * 1000, 2)


class PlaylistStatsEngine:
    """Computes playlist-level totals for a raw playlist URL.

    The engine keeps no state between runs apart from operational
    counters, so concurrent runs are independent.
    """

    def __init__(self, api_client: YouTubeAPIClient,
                 page_size: int = config.PAGE_SIZE,
                 max_items: int = config.MAX_PLAYLIST_ITEMS,
                 batch_size: int = config.BATCH_SIZE,
                 concurrency: int = config.DETAIL_FETCH_CONCURRENCY):
        """Initialize the engine.

        Args:
            api_client: Catalog client used for every upstream call.
            page_size: Items requested per playlist page.
            max_items: Largest playlist that will be aggregated.
            batch_size: Video IDs per details request.
            concurrency: Detail batches fetched at once.
        """
        self.api_client = api_client
        self.max_items = max_items
        self.enumerator = PlaylistItemEnumerator(api_client, page_size=page_size, max_items=max_items)
        self.aggregator = BatchDetailAggregator(api_client, batch_size=batch_size, concurrency=concurrency)

        self._global_stats = {
            "runs_started": 0,
            "runs_succeeded": 0,
            "videos_aggregated_total": 0,
            "total_processing_time_ms": 0.0,
            "engine_start_time": time.monotonic(),
        }
        self._failures_by_code: Counter = Counter()
        logger.info("PlaylistStatsEngine initialized.", max_items=max_items, batch_size=batch_size,
                    concurrency=concurrency)

    async def process_url(self, playlist_url: str) -> PlaylistStats:
        """Run the full aggregation pipeline for ``playlist_url``.

        Args:
            playlist_url: Raw URL supplied by the caller.

        Returns:
            PlaylistStats: Totals for the playlist; all zero for an empty playlist.

        Raises:
            InvalidInputError: The URL carries no playlist ID.
            ResourceNotFoundError: The playlist does not exist upstream.
            PlaylistTooLargeError: The playlist has more than ``max_items`` items.
            UpstreamError: Any failure talking to the catalog API.
        """
        run = _RunContext(playlist_url or "")
        self._global_stats["runs_started"] += 1

        try:
            result = await self._run(run, playlist_url)
        except AppBaseError as e:
            self._record_failure(run, e)
            raise
        except Exception as e:
            run.log.critical(f"[REQ-{run.request_id}] Unexpected error in state {run.state.value}: {e}", exc_info=True)
            wrapped = UpstreamError()
            self._record_failure(run, wrapped)
            raise wrapped from e

        run.transition(RunState.DONE)
        self._global_stats["runs_succeeded"] += 1
        self._global_stats["videos_aggregated_total"] += result.total_videos
        self._global_stats["total_processing_time_ms"] += run.elapsed_ms
        run.log.info(
            f"[REQ-{run.request_id}] Aggregated {result.total_videos} video(s) for '{result.playlist_title}'",
            processing_time_ms=run.elapsed_ms, **result.to_dict()
        )
        return result

    async def _run(self, run: _RunContext, playlist_url: str) -> PlaylistStats:
        playlist_id = extract_playlist_id(playlist_url)
        if not playlist_id:
            raise InvalidInputError()
        run.log.info(f"[REQ-{run.request_id}] Resolved playlist ID '{playlist_id}'", playlist_id=playlist_id)

        run.transition(RunState.METADATA_FETCH)
        metadata = await self.api_client.get_playlist_metadata(playlist_id)
        if metadata is None:
            raise ResourceNotFoundError()

        run.transition(RunState.ENUMERATING)
        with performance_timer("enumerate_playlist_items"):
            video_ids = await self.enumerator.collect(playlist_id)
        if not video_ids:
            run.log.info(f"[REQ-{run.request_id}] Playlist '{playlist_id}' is empty.")
            return AggregationTotals().freeze(metadata)

        run.transition(RunState.SIZE_CHECK)
        if len(video_ids) > self.max_items:
            raise PlaylistTooLargeError(item_count=len(video_ids), max_items=self.max_items)

        run.transition(RunState.AGGREGATING)
        with performance_timer("aggregate_video_details"):
            totals = await self.aggregator.aggregate(video_ids)
        return totals.freeze(metadata)

    def _record_failure(self, run: _RunContext, error: AppBaseError) -> None:
        failed_in = run.state
        run.transition(RunState.ERROR)
        self._failures_by_code[error.error_code] += 1
        self._global_stats["total_processing_time_ms"] += run.elapsed_ms

        message = f"[REQ-{run.request_id}] {type(error).__name__} while {failed_in.value}: {error.message}"
        if isinstance(error, UpstreamError):
            run.log.error(message, error_code=error.error_code)
        else:
            run.log.warning(message, error_code=error.error_code)

    @property
    def quota_reached(self) -> bool:
        return self.api_client.quota_reached

    async def get_global_stats(self) -> Dict[str, Any]:
        """Get global operational statistics for the engine instance."""
        uptime = time.monotonic() - self._global_stats["engine_start_time"]
        runs = self._global_stats["runs_started"]

        return {
            "engine_uptime_seconds": round(uptime, 1),
            "runs_started": runs,
            "runs_succeeded": self._global_stats["runs_succeeded"],
            "runs_failed_by_error_code": dict(self._failures_by_code),
            "videos_aggregated_total": self._global_stats["videos_aggregated_total"],
            "avg_processing_time_ms": round(self._global_stats["total_processing_time_ms"] / runs, 2) if runs else 0.0,
            "quota_reached_flag": self.quota_reached,
            "api_client_stats": await self.api_client.get_api_stats(),
        }

    async def shutdown(self) -> None:
        """Log final statistics. The engine owns no resources that need closing."""
        logger.info("Shutting down PlaylistStatsEngine...")
        stats = await self.get_global_stats()
        logger.info(
            f"Engine shutdown: {stats['runs_succeeded']}/{stats['runs_started']} run(s) succeeded, "
            f"{stats['videos_aggregated_total']} video(s) aggregated.",
            runs_failed_by_error_code=stats["runs_failed_by_error_code"]
        )
