"""In-memory stand-ins for the few Playwright objects the capture engine touches."""
from __future__ import annotations

from types import SimpleNamespace

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from lib.capture.settings import ScrapeSettings

FAST_SETTINGS = ScrapeSettings(
    nav_timeout_ms=1000,
    consent_wait_ms=0,
    consent_settle_ms=0,
    initial_settle_ms=0,
    scroll_ticks=3,
    scroll_pause_ms=0,
    final_settle_ms=0,
    block_assets=False,
)

PLAYLIST_URL = "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M"
API_URL = "https://api-partner.spotify.com/v1/playlists/37i9dQZF1DXcBWIGoYBM5M/tracks"


def track_item(name, track_id="t1", **extra):
    track = {"id": track_id, "name": name, "artists": [{"name": "Artist"}]}
    track.update(extra)
    return {"added_at": "2024-03-01T12:00:00Z", "track": track}


class FakeResponse:
    def __init__(self, url, body=None, content_type="application/json", request_url=None, bad_json=False, post_data=None):
        self.url = url
        self.headers = {"content-type": content_type}
        self.request = SimpleNamespace(url=request_url or url, post_data=post_data)
        self._body = body
        self._bad_json = bad_json
        self.json_calls = 0

    async def json(self):
        self.json_calls += 1
        if self._bad_json:
            raise ValueError("Unexpected token < in JSON at position 0")
        return self._body


class FakeLocator:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    @property
    def first(self):
        return self

    async def wait_for(self, state="visible", timeout=None):
        self.page.events.append(("wait_for", self.selector))
        if self.selector not in self.page.visible_selectors:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")

    async def click(self):
        self.page.events.append(("click", self.selector))


class FakeMouse:
    def __init__(self, page):
        self.page = page

    async def wheel(self, delta_x, delta_y):
        self.page.wheel_calls.append((delta_x, delta_y))
        self.page.events.append(("wheel", delta_y))
        for response in self.page.responses_per_tick.get(len(self.page.wheel_calls), []):
            await self.page.emit("response", response)


class FakePage:
    def __init__(
        self,
        final_url=None,
        goto_error=None,
        visible_selectors=(),
        responses_on_goto=(),
        responses_per_tick=None,
        html="<html><head><title>Playlist | Spotify</title></head><body></body></html>",
    ):
        self.url = "about:blank"
        self.final_url = final_url
        self.goto_error = goto_error
        self.visible_selectors = set(visible_selectors)
        self.responses_on_goto = list(responses_on_goto)
        self.responses_per_tick = responses_per_tick or {}
        self.html = html
        self.handlers = {}
        self.events = []
        self.waits = []
        self.wheel_calls = []
        self.routes = []
        self.mouse = FakeMouse(self)

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    async def emit(self, event, payload):
        for handler in self.handlers.get(event, []):
            await handler(payload)

    async def goto(self, url, wait_until=None, timeout=None):
        self.events.append(("goto", url, wait_until, timeout))
        if self.goto_error is not None:
            raise self.goto_error
        for response in self.responses_on_goto:
            await self.emit("response", response)
        self.url = self.final_url or url

    async def wait_for_timeout(self, ms):
        self.waits.append(ms)

    def locator(self, selector):
        return FakeLocator(self, selector)

    async def route(self, pattern, handler):
        self.routes.append(pattern)

    async def content(self):
        return self.html

    async def title(self):
        return "Playlist | Spotify"

    async def screenshot(self, path=None, full_page=False):
        return b""


class FakeContext:
    def __init__(self, page):
        self.page = page
        self.cookies = []

    async def add_cookies(self, cookies):
        self.cookies.extend(cookies)
        self.page.events.append(("add_cookies", len(cookies)))


class FakeSession:
    def __init__(self, page=None, close_error=None):
        self.page = page or FakePage()
        self.context = FakeContext(self.page)
        self.close_calls = 0
        self.close_error = close_error

    async def close(self):
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


def launcher_for(session):
    """Launcher returning ``session``; ``launcher.calls`` counts acquisitions."""
    async def launcher(settings):
        launcher.calls += 1
        return session

    launcher.calls = 0
    return launcher


def pathfinder_row(name, track_id, *, typename="Track", isrc=None):
    data = {
        "__typename": typename,
        "uri": f"spotify:track:{track_id}",
        "name": name,
        "artists": {"items": [{"profile": {"name": "Artist"}}]},
        "albumOfTrack": {"name": "Album", "coverArt": {"sources": [{"url": "https://i.scdn.co/image/cover"}]}},
        "trackDuration": {"totalMilliseconds": 180000},
    }
    if isrc:
        data["trackUnion"] = {"isrc": isrc}
    return {"addedAt": {"isoString": "2024-05-01T08:00:00Z"}, "itemV2": {"data": data}}


def pathfinder_body(rows, **playlist):
    return {"data": {"playlistV2": {"content": {"items": rows}, **playlist}}}
