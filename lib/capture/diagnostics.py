"""Timing and memory helpers attached to every scrape result."""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from time import perf_counter
from typing import Any, Dict, Optional

import psutil

logger = logging.getLogger(__name__)

PHASE_KEYS = ("setup_ms", "goto_ms", "consent_ms", "scroll_ms", "normalize_ms")

_process: Optional[psutil.Process] = None


def process_memory_mb() -> Optional[float]:
    """Resident set size of this process in MB, None if it cannot be read."""
    global _process
    try:
        if _process is None:
            _process = psutil.Process(os.getpid())
        return round(_process.memory_info().rss / (1024 * 1024), 2)
    except (psutil.Error, OSError) as e:
        logger.debug(f"[Diagnostics] memory read failed: {e}")
        return None


def finalize_timings(timings: Dict[str, Any], overall_start: float) -> Dict[str, int]:
    """Coerce to int ms and add ``overall_ms`` plus the unaccounted ``other_ms``."""
    out: Dict[str, int] = {}
    for k, v in timings.items():
        try:
            out[k] = int(v)
        except (TypeError, ValueError):
            out[k] = 0
    out["overall_ms"] = int((perf_counter() - overall_start) * 1000)
    known = sum(out.get(k, 0) for k in PHASE_KEYS)
    out["other_ms"] = max(0, out["overall_ms"] - known)
    return out


async def save_failure_artifacts(page, base_dir: str, final_url: str, error: str, meta: Dict[str, Any]) -> Optional[str]:
    """Screenshot, HTML and meta.json for a failed scrape. Best effort."""
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    base = os.path.join(base_dir, f"scrape_fail_{ts}")
    try:
        os.makedirs(base, exist_ok=True)
    except OSError as e:
        logger.warning(f"[Diagnostics] cannot create artifact dir {base}: {e}")
        return None
    try:
        await page.screenshot(path=os.path.join(base, "screenshot.png"), full_page=True)
    except Exception as e:
        logger.debug(f"[Diagnostics] screenshot failed: {e}")
    try:
        html = await page.content()
        with open(os.path.join(base, "page.html"), "w", encoding="utf-8") as f:
            f.write(html or "")
    except Exception as e:
        logger.debug(f"[Diagnostics] html dump failed: {e}")
    try:
        with open(os.path.join(base, "meta.json"), "w", encoding="utf-8") as f:
            json.dump({"url": final_url, "error": error, "meta": meta}, f, ensure_ascii=False, indent=2, default=str)
    except (OSError, TypeError) as e:
        logger.debug(f"[Diagnostics] meta dump failed: {e}")
    logger.info(f"[Diagnostics] saved failure artifacts to {base}")
    return base
