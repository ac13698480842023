"""
Tests for request/response models and the aggregation records.
"""
import unittest
import sys
import os
import json

from pydantic import ValidationError

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from models import (AggregationTotals, PlaylistMetadata, PlaylistPage, PlaylistStats,
                    PlaylistStatsRequest)


class TestPlaylistStatsRequest(unittest.TestCase):
    """Test cases for the request body model."""

    def test_alias_and_strip(self):
        request = PlaylistStatsRequest.model_validate({"playlistUrl": "  https://x/?list=PL1  "})
        self.assertEqual(request.playlist_url, "https://x/?list=PL1")

    def test_missing_or_null_url_becomes_empty(self):
        self.assertEqual(PlaylistStatsRequest.model_validate({}).playlist_url, "")
        self.assertEqual(PlaylistStatsRequest.model_validate({"playlistUrl": None}).playlist_url, "")
        self.assertEqual(PlaylistStatsRequest.model_validate({"playlistUrl": 42}).playlist_url, "")

    def test_overlong_url_rejected(self):
        with self.assertRaises(ValidationError):
            PlaylistStatsRequest.model_validate({"playlistUrl": "https://x/?list=" + "a" * 3000})


class TestPlaylistRecords(unittest.TestCase):
    """Test cases for metadata, pages and result records."""

    def test_metadata_placeholders(self):
        metadata = PlaylistMetadata.from_api_response({"snippet": {"title": "", "channelTitle": None}})
        self.assertEqual(metadata, PlaylistMetadata("Untitled Playlist", "Unknown Channel"))

    def test_page_skips_items_without_video_id(self):
        page = PlaylistPage.from_api_response({
            "items": [{"contentDetails": {"videoId": "a"}}, {"id": "no-details"}, {"contentDetails": {"videoId": ""}}],
            "nextPageToken": "",
        })
        self.assertEqual(page.item_ids, ["a"])
        self.assertIsNone(page.next_page_token)

    def test_stats_wire_format(self):
        stats = PlaylistStats("T", "C", 3, 180, 30, 2, 1)
        self.assertEqual(list(stats.to_dict()), [
            "playlistTitle", "channelTitle", "totalVideos", "totalDurationSeconds",
            "totalViews", "totalLikes", "totalComments",
        ])
        self.assertEqual(
            json.dumps(stats.to_dict()),
            json.dumps(PlaylistStats("T", "C", 3, 180, 30, 2, 1).to_dict())
        )
        response = stats.to_response()
        self.assertEqual(response.model_dump(by_alias=True), stats.to_dict())


class TestAggregationTotals(unittest.TestCase):
    """Test cases for the running totals."""

    def test_add_item_and_merge(self):
        left = AggregationTotals()
        left.add_item({"contentDetails": {"duration": "PT1M"},
                       "statistics": {"viewCount": "10", "likeCount": "2", "commentCount": "1"}})
        right = AggregationTotals()
        right.add_item({"contentDetails": {"duration": "PT30S"}, "statistics": {"viewCount": "5"}})
        right.add_item({})

        left.merge(right)

        self.assertEqual(left.total_duration_seconds, 90)
        self.assertEqual(left.total_views, 15)
        self.assertEqual(left.total_likes, 2)
        self.assertEqual(left.total_comments, 1)
        self.assertEqual(left.items_seen, 3)

    def test_freeze(self):
        totals = AggregationTotals(total_videos=2, total_duration_seconds=10)
        stats = totals.freeze(PlaylistMetadata("T", "C"))
        self.assertEqual(stats, PlaylistStats("T", "C", total_videos=2, total_duration_seconds=10))


if __name__ == '__main__':
    unittest.main()
