#!/usr/bin/env python3
"""
Playlist page -> track list, by listening to the web player's own API traffic.

Flow for one request:
  launch an isolated browser -> inject cookies -> navigate (network idle) ->
  login-redirect check -> consent banner -> scroll loop while responses are
  captured -> normalize -> release the browser.

``scrape_playlist`` never raises: every failure comes back as a
``ScrapeResult`` with ``success=False`` and an ``outcome`` the HTTP layer maps
to a status code.
"""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from browser_session import Launcher, browser_session
from lib.capture.consent import dismiss_consent
from lib.capture.diagnostics import finalize_timings, process_memory_mb, save_failure_artifacts
from lib.capture.errors import AuthRequiredError, InputError, NavigationError, ScrapeError
from lib.capture.metadata import extract_dom_metadata, is_complete, merge_metadata
from lib.capture.models import PlaylistMeta, ScrapeResult
from lib.capture.network import CaptureContext
from lib.capture.normalizer import normalize_fragments
from lib.capture.pagination import drive_pagination, policy_from_settings
from lib.capture.settings import ScrapeSettings

logger = logging.getLogger(__name__)

CAPTURE_METHOD = "network-capture"
LOGIN_PATH_MARKERS = ("/login", "/authorize")
BLOCKED_RESOURCE_TYPES = ("image", "media", "font")


def needs_login(url: str | None) -> bool:
    u = (url or "").lower()
    return any(marker in u for marker in LOGIN_PATH_MARKERS)


def validate_request(playlist_url: Any, cookies: Any) -> tuple[str, List[Dict[str, Any]]]:
    if not isinstance(playlist_url, str) or not playlist_url.strip():
        raise InputError("Missing playlistUrl in request body")
    if cookies is None:
        return playlist_url.strip(), []
    if not isinstance(cookies, list) or not all(isinstance(c, dict) for c in cookies):
        raise InputError("cookies must be an array of cookie objects")
    return playlist_url.strip(), cookies


async def _block_heavy_assets(page) -> None:
    async def route_handler(route):
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    await page.route("**/*", route_handler)
    logger.info("[Scrape] resource blocking enabled (image/media/font)")


async def navigate(session, playlist_url: str, cookies: List[Dict[str, Any]], settings: ScrapeSettings) -> str:
    """Inject cookies, load the page until network idle, reject login redirects."""
    page = session.page
    if cookies:
        # passed through as given; the caller owns the cookie jar format
        await session.context.add_cookies(cookies)
        logger.info(f"[Scrape] injected {len(cookies)} cookie(s)")

    logger.info(f"[Scrape] navigating to {playlist_url}")
    try:
        await page.goto(playlist_url, wait_until="networkidle", timeout=settings.nav_timeout_ms)
    except PlaywrightTimeoutError as e:
        raise NavigationError(
            f"Navigation timed out after {settings.nav_timeout_ms}ms waiting for network idle: {e}"
        ) from e
    except PlaywrightError as e:
        raise NavigationError(f"Navigation failed: {e}") from e

    final_url = page.url
    logger.info(f"[Scrape] page loaded: {final_url}")
    if needs_login(final_url):
        logger.warning(f"[Scrape] redirected to login: {final_url}")
        raise AuthRequiredError(
            "Spotify login required. This service needs an authenticated session (cookies).",
            meta={"final_url": final_url},
        )
    return final_url


async def collect_metadata(page, capture: CaptureContext) -> PlaylistMeta:
    """Network metadata first; fill gaps from the rendered DOM."""
    meta = dict(capture.playlist_meta)
    if is_complete(meta):
        return meta
    try:
        html = await page.content()
    except PlaywrightError as e:
        logger.warning(f"[Scrape] DOM metadata unavailable: {e}")
        return meta
    try:
        dom = extract_dom_metadata(html)
    except Exception as e:
        logger.warning(f"[Scrape] DOM metadata parse failed: {e}")
        return meta
    return merge_metadata(meta, dom)


async def scrape_playlist(
    playlist_url: Any,
    cookies: Any = None,
    *,
    settings: ScrapeSettings | None = None,
    launcher: Launcher | None = None,
) -> ScrapeResult:
    """Run one capture. Always returns a ScrapeResult."""
    overall_start = perf_counter()
    memory_start = process_memory_mb()
    timings: Dict[str, float] = {}
    meta: Dict[str, Any] = {"method": CAPTURE_METHOD, "memory_start_mb": memory_start}
    capture = CaptureContext()

    def _finish(result: ScrapeResult) -> ScrapeResult:
        result.duration_seconds = round(perf_counter() - overall_start, 2)
        result.memory_mb = process_memory_mb()
        meta.update(
            {
                "offsets": capture.offsets,
                "fragments": len(capture.fragments),
                "responses_seen": capture.responses_seen,
                "batches_discarded": capture.batches_discarded,
                "timings": finalize_timings(timings, overall_start),
            }
        )
        result.meta = {**meta, **result.meta}
        return result

    try:
        url, cookie_list = validate_request(playlist_url, cookies)
    except InputError as e:
        logger.warning(f"[Scrape] rejected request: {e}")
        return _finish(ScrapeResult(success=False, outcome=e.outcome, error=str(e)))

    final_url: Optional[str] = None
    try:
        settings = settings or ScrapeSettings.from_env()
        setup_start = perf_counter()
        async with browser_session(settings, launcher) as session:
            page = session.page
            try:
                if settings.block_assets:
                    await _block_heavy_assets(page)
                capture.attach(page)
                timings["setup_ms"] = (perf_counter() - setup_start) * 1000

                goto_start = perf_counter()
                final_url = await navigate(session, url, cookie_list, settings)
                timings["goto_ms"] = (perf_counter() - goto_start) * 1000
                meta["final_url"] = final_url

                consent_start = perf_counter()
                meta["consent_selector"] = await dismiss_consent(page, settings)
                timings["consent_ms"] = (perf_counter() - consent_start) * 1000

                scroll_start = perf_counter()
                policy = policy_from_settings(settings)
                meta["pagination_policy"] = policy.name
                meta["pagination_ticks"] = await drive_pagination(page, capture, settings, policy)
                timings["scroll_ms"] = (perf_counter() - scroll_start) * 1000

                playlist_meta = await collect_metadata(page, capture)
            except Exception as e:
                if settings.artifacts and not isinstance(e, AuthRequiredError):
                    await save_failure_artifacts(
                        page, settings.artifacts_dir, final_url or url, str(e), {**meta, "timings": dict(timings)}
                    )
                raise

        normalize_start = perf_counter()
        tracks = normalize_fragments(capture.snapshot())
        timings["normalize_ms"] = (perf_counter() - normalize_start) * 1000
        logger.info(f"[Scrape] success: {len(tracks)} tracks from {len(capture.fragments)} fragments")
        return _finish(ScrapeResult(success=True, tracks=tracks, playlist=playlist_meta))

    except AuthRequiredError as e:
        return _finish(ScrapeResult(success=False, outcome=e.outcome, error=str(e), meta=dict(e.meta)))
    except ScrapeError as e:
        logger.error(f"[Scrape] failed for {url}: {e}")
        return _finish(ScrapeResult(success=False, outcome=e.outcome, error=str(e), meta=dict(e.meta)))
    except Exception as e:
        logger.exception(f"[Scrape] unexpected error for {url}: {e}")
        return _finish(ScrapeResult(success=False, outcome="internal", error=str(e) or type(e).__name__))
