"""
Browser-driven playlist capture.

Public API:
  - normalize_fragments(fragments, now=None) -> list[NormalizedTrack]
  - CaptureContext: per-request network response observer
  - dismiss_consent(page, settings) -> str | None
  - drive_pagination(page, capture, settings, policy=None) -> int
  - ScrapeSettings.from_env()
"""
from lib.capture.errors import ScrapeError, InputError, AuthRequiredError, NavigationError
from lib.capture.models import NormalizedTrack, PlaylistMeta, ScrapeResult
from lib.capture.settings import ScrapeSettings
from lib.capture.network import CaptureContext
from lib.capture.normalizer import normalize_fragments
from lib.capture.consent import dismiss_consent
from lib.capture.pagination import drive_pagination, FixedTicks, StopWhenIdle

__all__ = [
    "ScrapeError",
    "InputError",
    "AuthRequiredError",
    "NavigationError",
    "NormalizedTrack",
    "PlaylistMeta",
    "ScrapeResult",
    "ScrapeSettings",
    "CaptureContext",
    "normalize_fragments",
    "dismiss_consent",
    "drive_pagination",
    "FixedTicks",
    "StopWhenIdle",
]
