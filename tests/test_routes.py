"""
Tests for the HTTP routes, using FastAPI's TestClient with dependency overrides.
"""
import unittest
import sys
import os
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from starlette.datastructures import Headers

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from main import app
from api import dependencies
from api.dependencies import get_stats_engine
from middleware import ThrottleMiddleware
from services.engine import PlaylistStatsEngine
from services.rate_limiter import CooldownRateLimiter
from services.youtube_api import YouTubeAPIClient
from models import PlaylistMetadata, PlaylistPage
from exceptions import QuotaExceededError, UpstreamError

PLAYLIST_URL = "https://www.youtube.com/playlist?list=PLroute1"


class TestPlaylistRoute(unittest.TestCase):
    """Test cases for POST /api/playlist and GET /health."""

    def setUp(self):
        self.api_client = MagicMock(spec=YouTubeAPIClient)
        self.api_client.quota_reached = False
        self.api_client.get_playlist_metadata = AsyncMock(return_value=PlaylistMetadata("Route Mix", "Route Channel"))
        self.api_client.list_playlist_items = AsyncMock(return_value=PlaylistPage(item_ids=["a", "b"]))
        self.api_client.get_item_details = AsyncMock(return_value=[
            {"contentDetails": {"duration": "PT2M"}, "statistics": {"viewCount": "100", "likeCount": "5", "commentCount": "2"}},
            {"contentDetails": {"duration": "PT1M"}, "statistics": {"viewCount": "50"}},
        ])
        self.api_client.get_api_stats = AsyncMock(return_value={"api_calls_count": 0})

        self.engine = PlaylistStatsEngine(self.api_client)
        self._saved_limiter = dependencies.rate_limiter
        dependencies.rate_limiter = CooldownRateLimiter(cooldown_ms=60_000)
        app.dependency_overrides[get_stats_engine] = lambda: self.engine
        # Lifespan is not started without the context manager, so no real client is built
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        dependencies.rate_limiter = self._saved_limiter

    def test_success(self):
        response = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            "playlistTitle": "Route Mix",
            "channelTitle": "Route Channel",
            "totalVideos": 2,
            "totalDurationSeconds": 180,
            "totalViews": 150,
            "totalLikes": 5,
            "totalComments": 2,
        })

    def test_missing_url(self):
        bodies = ({}, {"playlistUrl": ""}, {"playlistUrl": "   "}, {"playlistUrl": None})
        for i, body in enumerate(bodies):
            with self.subTest(body=body):
                response = self.client.post("/api/playlist", json=body, headers={"X-Forwarded-For": f"192.0.2.{i}"})
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json(), {"detail": "Playlist URL is required", "error_code": "INVALID_INPUT"})

    def test_invalid_url(self):
        response = self.client.post("/api/playlist", json={"playlistUrl": "https://www.youtube.com/watch?v=abc"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Invalid or unsupported YouTube Playlist URL")
        self.assertEqual(response.json()["error_code"], "INVALID_INPUT")

    def test_malformed_body(self):
        response = self.client.post("/api/playlist", content=b"{not json", headers={"Content-Type": "application/json"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "INVALID_INPUT")

    def test_not_found(self):
        self.api_client.get_playlist_metadata.return_value = None

        response = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"detail": "Playlist not found.", "error_code": "RESOURCE_NOT_FOUND"})

    def test_too_large(self):
        self.engine = PlaylistStatsEngine(self.api_client, max_items=1)

        response = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"detail": "Playlist is too large to process", "error_code": "PLAYLIST_TOO_LARGE"})

    def test_throttled(self):
        headers = {"X-Forwarded-For": "203.0.113.9"}
        first = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL}, headers=headers)
        second = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL}, headers=headers)
        other = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL},
                                 headers={"X-Forwarded-For": "198.51.100.3"})

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 429)
        self.assertEqual(second.json(), {"detail": "Please wait before making another request", "error_code": "THROTTLED"})
        self.assertEqual(second.headers["Retry-After"], "60")
        self.assertEqual(other.status_code, 200)

    def test_upstream_failure(self):
        self.api_client.get_item_details.side_effect = UpstreamError("Backend Error")

        response = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL})

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json(), {"detail": "Backend Error", "error_code": "UPSTREAM_FAILURE"})

    def test_quota_exceeded(self):
        self.api_client.list_playlist_items.side_effect = QuotaExceededError()

        response = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL})

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error_code"], "QUOTA_EXCEEDED")
        self.assertEqual(response.headers["Retry-After"], "3600")

    def test_engine_not_initialized(self):
        app.dependency_overrides.clear()
        dependencies.stats_engine = None

        response = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error_code"], "SERVICE_UNAVAILABLE_STATS_ENGINE")

    def test_health(self):
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["components"]["rate_limiter"], "ready")
        self.assertEqual(body["statistics"]["runs_started"], 0)


class TestThrottleMiddleware(unittest.TestCase):
    """Test cases for the throttle middleware."""

    def setUp(self):
        self.api_client = MagicMock(spec=YouTubeAPIClient)
        self.api_client.quota_reached = False
        self.api_client.get_playlist_metadata = AsyncMock(return_value=None)
        self.api_client.get_api_stats = AsyncMock(return_value={"api_calls_count": 0})
        self.engine = PlaylistStatsEngine(self.api_client)
        app.dependency_overrides[get_stats_engine] = lambda: self.engine
        self._saved_limiter = dependencies.rate_limiter
        dependencies.rate_limiter = CooldownRateLimiter(cooldown_ms=60_000)
        self.client = TestClient(app)
        self.middleware = ThrottleMiddleware(MagicMock())

    def tearDown(self):
        app.dependency_overrides.clear()
        dependencies.rate_limiter = self._saved_limiter

    def _request(self, headers=None, host="10.0.0.1"):
        request = MagicMock()
        request.headers = Headers(headers or {})
        request.client = MagicMock(host=host) if host else None
        return request

    def test_throttled_request_never_reaches_engine(self):
        headers = {"X-Forwarded-For": "192.0.2.44"}
        self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL}, headers=headers)
        response = self.client.post("/api/playlist", content=b"{not json",
                                    headers={**headers, "Content-Type": "application/json"})

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.headers["X-Error-Code"], "THROTTLED")
        self.assertEqual(self.api_client.get_playlist_metadata.await_count, 1)

    def test_invalid_url_consumes_slot(self):
        headers = {"X-Forwarded-For": "192.0.2.45"}
        first = self.client.post("/api/playlist", json={"playlistUrl": "not a url"}, headers=headers)
        second = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL}, headers=headers)

        self.assertEqual(first.status_code, 400)
        self.assertEqual(second.status_code, 429)

    def test_health_is_not_throttled(self):
        for _ in range(3):
            response = self.client.get("/health", headers={"X-Forwarded-For": "192.0.2.46"})
            self.assertEqual(response.status_code, 200)

    def test_no_limiter_passes_through(self):
        dependencies.rate_limiter = None
        headers = {"X-Forwarded-For": "192.0.2.47"}

        for _ in range(2):
            response = self.client.post("/api/playlist", json={"playlistUrl": PLAYLIST_URL}, headers=headers)
            self.assertEqual(response.status_code, 404)

    def test_forwarded_for_first_entry(self):
        request = self._request({"X-Forwarded-For": "203.0.113.1, 10.0.0.2"})
        self.assertEqual(self.middleware._get_client_ip(request), "203.0.113.1")

    def test_real_ip(self):
        request = self._request({"X-Real-IP": "198.51.100.7"})
        self.assertEqual(self.middleware._get_client_ip(request), "198.51.100.7")

    def test_socket_peer(self):
        self.assertEqual(self.middleware._get_client_ip(self._request()), "10.0.0.1")

    def test_unknown(self):
        self.assertEqual(self.middleware._get_client_ip(self._request(host=None)), "unknown")

if __name__ == '__main__':
    unittest.main()
