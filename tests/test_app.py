import unittest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

import app as app_module
from lib.capture.models import ScrapeResult
from lib.capture.normalizer import normalize_fragments

from fakes import PLAYLIST_URL

TRACK = {
    "trackId": "abc",
    "isrc": "USUM71703861",
    "name": "Song A",
    "artists": ["A"],
    "album": None,
    "albumArt": None,
    "addedAt": "2024-03-01T12:00:00.000Z",
    "popularity": None,
    "durationMs": 200000,
    "spotifyUrl": "https://open.spotify.com/track/abc",
}


class ScrapeEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app_module.app)

    def _post(self, result, body=None):
        mock = AsyncMock(return_value=result)
        with patch.object(app_module, "scrape_playlist", mock):
            response = self.client.post("/scrape-playlist", json=body if body is not None else {"playlistUrl": PLAYLIST_URL})
        return response, mock

    def test_success_contract(self):
        result = ScrapeResult(
            success=True,
            tracks=[TRACK],
            duration_seconds=12.5,
            memory_mb=210.4,
            playlist={"name": "Fresh Finds", "followers": 10},
        )
        response, mock = self._post(result)
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["tracks"], [TRACK])
        self.assertEqual(data["totalCaptured"], 1)
        self.assertEqual(data["method"], "network-capture")
        self.assertEqual(data["duration"], 12.5)
        self.assertEqual(data["memoryUsed"], 210.4)
        self.assertEqual(data["playlist"]["name"], "Fresh Finds")
        mock.assert_awaited_once_with(PLAYLIST_URL, None)

    def test_missing_url_is_400(self):
        result = ScrapeResult(success=False, outcome="input", error="Missing playlistUrl in request body")
        response, _ = self._post(result, body={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"success": False, "error": "Missing playlistUrl in request body"})

    def test_auth_redirect_is_403(self):
        result = ScrapeResult(success=False, outcome="auth", error="Spotify login required.")
        response, _ = self._post(result)
        self.assertEqual(response.status_code, 403)
        data = response.json()
        self.assertFalse(data["success"])
        self.assertEqual(data["tracks"], [])
        self.assertEqual(data["totalCaptured"], 0)
        self.assertIn("login required", data["error"])

    def test_internal_failure_is_500_with_diagnostics(self):
        result = ScrapeResult(success=False, outcome="internal", error="Navigation timed out", duration_seconds=60.1, memory_mb=300.0)
        response, _ = self._post(result)
        self.assertEqual(response.status_code, 500)
        data = response.json()
        self.assertEqual(data["error"], "Navigation timed out")
        self.assertEqual(data["tracks"], [])
        self.assertEqual(data["totalCaptured"], 0)
        self.assertEqual(data["duration"], 60.1)
        self.assertEqual(data["memoryUsed"], 300.0)

    def test_url_is_sanitized_and_cookies_forwarded(self):
        cookies = [{"name": "sp_dc", "value": "v", "domain": ".spotify.com", "path": "/"}]
        result = ScrapeResult(success=True)
        _, mock = self._post(result, body={"playlistUrl": f"  <{PLAYLIST_URL}> ", "cookies": cookies})
        mock.assert_awaited_once_with(PLAYLIST_URL, cookies)

    def test_empty_url_reaches_input_guard(self):
        response = self.client.post("/scrape-playlist", json={"playlistUrl": ""})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_non_string_url_is_400_not_422(self):
        response = self.client.post("/scrape-playlist", json={"playlistUrl": 42})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"success": False, "error": "Missing playlistUrl in request body"})

    def test_malformed_cookies_are_400(self):
        for cookies in ("sp_dc=abc", [1, 2], {"name": "sp_dc"}):
            response = self.client.post("/scrape-playlist", json={"playlistUrl": PLAYLIST_URL, "cookies": cookies})
            self.assertEqual(response.status_code, 400, cookies)
            self.assertEqual(response.json()["error"], "cookies must be an array of cookie objects")

    def test_non_object_body_is_400(self):
        response = self.client.post("/scrape-playlist", json=[PLAYLIST_URL])
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_odd_upstream_field_types_still_serialize(self):
        fragment = {
            "track": {
                "id": "a",
                "name": "S",
                "external_ids": {"isrc": 12345},
                "album": {"name": 7},
                "external_urls": {"spotify": 9},
            }
        }
        result = ScrapeResult(success=True, tracks=normalize_fragments([fragment]), duration_seconds=1.0)
        response, _ = self._post(result)
        self.assertEqual(response.status_code, 200)
        [track] = response.json()["tracks"]
        self.assertIsNone(track["isrc"])
        self.assertIsNone(track["album"])
        self.assertEqual(track["spotifyUrl"], "https://open.spotify.com/track/a")


class HealthTests(unittest.TestCase):
    def test_health(self):
        client = TestClient(app_module.app)
        data = client.get("/health").json()
        self.assertTrue(data["ok"])
        self.assertEqual(data["service"], "spotify-playlist-scraper")
        self.assertEqual(client.get("/").json(), {"ok": True, "status": "ok"})


if __name__ == "__main__":
    unittest.main()
