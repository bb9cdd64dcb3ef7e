"""Environment-driven knobs for the capture engine."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, "1" if default else "0") != "0"


@dataclass(frozen=True)
class ScrapeSettings:
    headless: bool = True
    nav_timeout_ms: int = 60000
    consent_wait_ms: int = 3000
    consent_settle_ms: int = 2000
    initial_settle_ms: int = 3000
    scroll_ticks: int = 20
    scroll_pause_ms: int = 700
    scroll_delta_y: int = 800
    final_settle_ms: int = 2000
    # 0 keeps the blind fixed-tick loop
    stop_after_idle_ticks: int = 0
    block_assets: bool = True
    artifacts: bool = False
    artifacts_dir: str = "/tmp"

    @classmethod
    def from_env(cls) -> "ScrapeSettings":
        return cls(
            headless=_env_flag("SCRAPER_HEADLESS", True),
            nav_timeout_ms=_env_int("SCRAPER_NAV_TIMEOUT_MS", 60000),
            consent_wait_ms=_env_int("SCRAPER_CONSENT_WAIT_MS", 3000),
            consent_settle_ms=_env_int("SCRAPER_CONSENT_SETTLE_MS", 2000),
            initial_settle_ms=_env_int("SCRAPER_INITIAL_SETTLE_MS", 3000),
            scroll_ticks=_env_int("SCRAPER_SCROLL_TICKS", 20),
            scroll_pause_ms=_env_int("SCRAPER_SCROLL_PAUSE_MS", 700),
            scroll_delta_y=_env_int("SCRAPER_SCROLL_DELTA_Y", 800),
            final_settle_ms=_env_int("SCRAPER_FINAL_SETTLE_MS", 2000),
            stop_after_idle_ticks=_env_int("SCRAPER_STOP_AFTER_IDLE_TICKS", 0),
            block_assets=_env_flag("SCRAPER_BLOCK_ASSETS", True),
            artifacts=_env_flag("SCRAPER_ARTIFACTS", False),
            artifacts_dir=os.getenv("SCRAPER_ARTIFACTS_DIR", "/tmp"),
        )
