#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Playlist enumeration and detail aggregation for Playlist Stats.

``PlaylistItemEnumerator`` walks the paginated playlist item listing and
``BatchDetailAggregator`` folds per-video details into playlist totals.
Both fail fast: any upstream error aborts the step and nothing partial is
returned.
"""

import asyncio
from typing import List, Optional

from config import config
from exceptions import PlaylistTooLargeError
from models import AggregationTotals
from services.youtube_api import YouTubeAPIClient
from utils import chunked
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class PlaylistItemEnumerator:
    """Collects every video ID of a playlist, page by page."""

    def __init__(self, api_client: YouTubeAPIClient,
                 page_size: int = config.PAGE_SIZE,
                 max_items: int = config.MAX_PLAYLIST_ITEMS):
        if page_size <= 0:
            raise ValueError("page_size must be greater than 0")
        if max_items < 0:
            raise ValueError("max_items must be >= 0")
        self.api_client = api_client
        self.page_size = page_size
        self.max_items = max_items

    async def collect(self, playlist_id: str) -> List[str]:
        """Return the ordered video IDs of ``playlist_id``.

        The size limit is checked after every page so a huge playlist costs
        at most one page beyond the limit.

        Raises:
            PlaylistTooLargeError: As soon as more than ``max_items`` IDs are seen.
            UpstreamError: If any page request fails.
        """
        video_ids: List[str] = []
        page_token: Optional[str] = None
        page_count = 0

        while True:
            page_count += 1
            page = await self.api_client.list_playlist_items(playlist_id, self.page_size, page_token)
            video_ids.extend(page.item_ids)
            logger.debug(
                f"Playlist {playlist_id} page {page_count}: {len(page.item_ids)} item(s), {len(video_ids)} total",
                playlist_id=playlist_id, page=page_count
            )

            if len(video_ids) > self.max_items:
                logger.warning(
                    f"Playlist {playlist_id} exceeds {self.max_items} items after {page_count} page(s); stopping.",
                    playlist_id=playlist_id, item_count=len(video_ids), limit=self.max_items
                )
                raise PlaylistTooLargeError(item_count=len(video_ids), max_items=self.max_items)

            page_token = page.next_page_token
            if not page_token:
                break

        logger.info(
            f"Collected {len(video_ids)} video ID(s) from playlist {playlist_id} in {page_count} page(s).",
            playlist_id=playlist_id, item_count=len(video_ids), pages=page_count
        )
        return video_ids


class BatchDetailAggregator:
    """Sums duration and statistics over a list of video IDs.

    IDs are requested in chunks of ``batch_size``. With ``concurrency`` > 1
    several chunks are fetched at once; each chunk is folded into its own
    totals and the partial totals are merged in list order at the end.
    """

    def __init__(self, api_client: YouTubeAPIClient,
                 batch_size: int = config.BATCH_SIZE,
                 concurrency: int = config.DETAIL_FETCH_CONCURRENCY):
        if not 0 < batch_size <= YouTubeAPIClient.MAX_IDS_PER_DETAILS_CALL:
            raise ValueError(f"batch_size must be between 1 and {YouTubeAPIClient.MAX_IDS_PER_DETAILS_CALL}")
        if concurrency <= 0:
            raise ValueError("concurrency must be greater than 0")
        self.api_client = api_client
        self.batch_size = batch_size
        self.concurrency = concurrency

    async def _aggregate_chunk(self, chunk: List[str]) -> AggregationTotals:
        totals = AggregationTotals()
        for item in await self.api_client.get_item_details(chunk):
            totals.add_item(item)
        return totals

    async def aggregate(self, video_ids: List[str]) -> AggregationTotals:
        """Fetch details for ``video_ids`` and return the summed totals.

        ``total_videos`` is the number of IDs given, including videos the
        details call no longer returns (deleted or private).

        Raises:
            UpstreamError: If any chunk request fails; no partial totals are kept.
        """
        chunks = list(chunked(video_ids, self.batch_size))
        logger.debug(f"Aggregating {len(video_ids)} video(s) in {len(chunks)} batch(es), concurrency {self.concurrency}")

        if self.concurrency == 1:
            partials = [await self._aggregate_chunk(chunk) for chunk in chunks]
        else:
            partials = await self._aggregate_concurrently(chunks)

        totals = AggregationTotals(total_videos=len(video_ids))
        for partial in partials:
            totals.merge(partial)

        missing = len(video_ids) - totals.items_seen
        if missing > 0:
            logger.info(f"{missing} video(s) returned no details (deleted or private).", missing=missing)
        return totals

    async def _aggregate_concurrently(self, chunks: List[List[str]]) -> List[AggregationTotals]:
        """Run chunk requests with bounded concurrency, cancelling the rest on the first failure."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _guarded(chunk: List[str]) -> AggregationTotals:
            async with semaphore:
                return await self._aggregate_chunk(chunk)

        tasks = [asyncio.create_task(_guarded(chunk), name=f"details_batch_{i}") for i, chunk in enumerate(chunks)]
        try:
            # Results come back in task order regardless of completion order
            return await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
