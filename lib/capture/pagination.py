"""
Scroll-driven pagination.

The web player's track list is virtualized and only requests the next batch
when scrolled. The default policy is blind: a fixed number of wheel ticks with a
fixed pause, regardless of what the capture has seen.
"""
from __future__ import annotations

import logging
from typing import Optional

from lib.capture.network import CaptureContext
from lib.capture.settings import ScrapeSettings

logger = logging.getLogger(__name__)


class FixedTicks:
    """Never stops early; the configured tick count alone bounds the loop."""

    name = "fixed"

    def should_stop(self, capture: CaptureContext) -> bool:
        return False


class StopWhenIdle:
    """Stop after ``idle_ticks`` consecutive ticks that brought no new offset."""

    name = "idle"

    def __init__(self, idle_ticks: int):
        self.idle_ticks = max(1, idle_ticks)
        self._last_count: Optional[int] = None
        self._idle = 0

    def should_stop(self, capture: CaptureContext) -> bool:
        count = len(capture.ledger)
        if self._last_count is not None and count <= self._last_count:
            self._idle += 1
        else:
            self._idle = 0
        self._last_count = count
        return self._idle >= self.idle_ticks


def policy_from_settings(settings: ScrapeSettings):
    if settings.stop_after_idle_ticks > 0:
        return StopWhenIdle(settings.stop_after_idle_ticks)
    return FixedTicks()


async def drive_pagination(
    page,
    capture: CaptureContext,
    settings: ScrapeSettings,
    policy=None,
) -> int:
    """Run the scroll loop, then the final settle wait. Returns ticks issued."""
    policy = policy or policy_from_settings(settings)

    await page.wait_for_timeout(settings.initial_settle_ms)
    logger.info(f"[Pagination] {len(capture.fragments)} items captured from initial load")

    ticks = 0
    for _ in range(settings.scroll_ticks):
        await page.mouse.wheel(0, settings.scroll_delta_y)
        await page.wait_for_timeout(settings.scroll_pause_ms)
        ticks += 1
        if policy.should_stop(capture):
            logger.info(f"[Pagination] policy={policy.name} stopped after {ticks} tick(s)")
            break

    await page.wait_for_timeout(settings.final_settle_ms)
    logger.info(
        f"[Pagination] done ticks={ticks} offsets={capture.offsets} items={len(capture.fragments)}"
    )
    return ticks
