"""
Per-request Chromium sessions.

Every scrape gets its own Playwright driver, browser and context; nothing is
pooled or shared between requests. ``browser_session`` is the scoped form used
by the orchestrator: the session is closed exactly once on every exit path.
"""
from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from lib.capture.settings import ScrapeSettings

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1440, "height": 900}


def _launch_args() -> list[str]:
    args: list[str] = ["--disable-gpu", "--window-size=1440,900"]
    # container hosts: no sandbox, no /dev/shm
    if sys.platform.startswith("linux"):
        args += ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]
    return args


class BrowserSession:
    """Handle owning one driver + browser + context + page."""

    def __init__(
        self,
        pw: Playwright,
        browser: Browser,
        context: Optional[BrowserContext] = None,
        page: Optional[Page] = None,
    ):
        self.pw = pw
        self.browser = browser
        self.context = context
        self.page = page
        self._closed = False

    async def close(self) -> None:
        """Tear everything down. Never raises; failures are logged."""
        if self._closed:
            return
        self._closed = True
        if self.context is not None:
            try:
                await self.context.close()
            except Exception as e:
                logger.warning(f"[Browser] context close failed: {e}")
        try:
            await self.browser.close()
            logger.info("[Browser] close browser")
        except Exception as e:
            logger.warning(f"[Browser] browser close failed: {e}")
        try:
            await self.pw.stop()
        except Exception as e:
            logger.warning(f"[Browser] playwright stop failed: {e}")


async def launch_session(settings: ScrapeSettings) -> BrowserSession:
    """Start a fresh driver and browser with one context and page."""
    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.launch(headless=settings.headless, args=_launch_args())
    except Exception:
        await pw.stop()
        raise
    logger.info(f"[Browser] launch browser headless={settings.headless}")

    session = BrowserSession(pw, browser)
    try:
        session.context = await browser.new_context(
            user_agent=USER_AGENT,
            viewport=VIEWPORT,
            locale="en-US",
        )
        session.page = await session.context.new_page()
    except Exception:
        await session.close()
        raise
    return session


Launcher = Callable[[ScrapeSettings], Awaitable[Any]]


@asynccontextmanager
async def browser_session(settings: ScrapeSettings, launcher: Launcher | None = None) -> AsyncIterator[Any]:
    """Acquire a session from ``launcher`` and release it on exit, whatever happens."""
    session = await (launcher or launch_session)(settings)
    try:
        yield session
    finally:
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"[Browser] session release failed: {e}")
