"""
Cookie-consent banner dismissal.

Best effort: each candidate gets a short visibility wait; the first one that
shows up is clicked and the search stops. No banner at all is a normal outcome.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from lib.capture.settings import ScrapeSettings

logger = logging.getLogger(__name__)

CONSENT_SELECTORS: tuple[str, ...] = (
    "#onetrust-accept-btn-handler",
    "button[id*='onetrust-accept']",
    "button[aria-label*='Accept']",
    "button[aria-label*='accept']",
    "[data-testid='accept-all-cookies']",
    "button[id*='accept']",
    "button[id*='agree']",
)


async def dismiss_consent(
    page,
    settings: ScrapeSettings,
    selectors: Sequence[str] = CONSENT_SELECTORS,
) -> Optional[str]:
    """Click the first consent control that appears. Returns its selector or None."""
    for sel in selectors:
        try:
            locator = page.locator(sel).first
            await locator.wait_for(state="visible", timeout=settings.consent_wait_ms)
        except PlaywrightError:
            continue
        try:
            await locator.click()
        except PlaywrightError as e:
            logger.debug(f"[Consent] {sel} appeared but click failed: {e}")
            continue
        logger.info(f"[Consent] accepted cookie consent using: {sel}")
        await page.wait_for_timeout(settings.consent_settle_ms)
        return sel

    logger.info("[Consent] no cookie consent banner found (already accepted or not shown)")
    return None
