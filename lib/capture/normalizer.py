"""
Captured fragment -> NormalizedTrack mapping.

Fragments are either playlist "added item" wrappers (``{"added_at": ..., "track": {...}}``)
or bare track objects. Pure: no I/O, output order follows input order.
"""
from __future__ import annotations

import logging
import unicodedata
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from lib.capture.models import NormalizedTrack

logger = logging.getLogger(__name__)

TRACK_URL_TEMPLATE = "https://open.spotify.com/track/{track_id}"


def _nfc(s: str) -> str:
    return unicodedata.normalize("NFC", s)


def _text(value: Any) -> Optional[str]:
    """Non-empty string or None; other JSON types are not coerced."""
    if isinstance(value, str) and value:
        return _nfc(value)
    return None


def resolve_track(fragment: Any) -> Optional[dict]:
    """Descend through ``track`` wrappers to the innermost track-shaped dict."""
    node = fragment
    while isinstance(node, dict) and isinstance(node.get("track"), dict):
        node = node["track"]
    return node if isinstance(node, dict) else None


def to_iso8601(value: datetime) -> str:
    """Fixed form: UTC, millisecond precision, ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_added_at(raw: Any) -> Optional[datetime]:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        # epoch milliseconds
        try:
            return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(raw, str) or not raw.strip():
        return None
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def _artist_names(artists: Any) -> List[str]:
    if not isinstance(artists, list):
        return []
    names: List[str] = []
    for a in artists:
        if not isinstance(a, dict):
            continue
        an = _text(a.get("name"))
        if an:
            names.append(an)
    return names


def _album_art(album: Any) -> Optional[str]:
    # second image is the mid-size cover; fall back to the first
    images = album.get("images") if isinstance(album, dict) else None
    if not isinstance(images, list):
        return None
    for idx in (1, 0):
        if idx < len(images) and isinstance(images[idx], dict):
            url = _text(images[idx].get("url"))
            if url:
                return url
    return None


def _positive_int(value: Any) -> Optional[int]:
    """Zero, negatives and non-finite numbers count as unknown."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        n = int(value)
    except (OverflowError, ValueError):
        return None
    return n if n > 0 else None


def normalize_fragment(fragment: Any, now: datetime) -> Optional[NormalizedTrack]:
    """Map one fragment; None when it does not resolve to a named track."""
    track = resolve_track(fragment)
    if track is None:
        return None
    name = track.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    track_id = track.get("id") or ""
    if not isinstance(track_id, str):
        track_id = str(track_id)

    external_ids = track.get("external_ids")
    isrc = _text(external_ids.get("isrc")) if isinstance(external_ids, dict) else None

    album = track.get("album")
    album_name = _text(album.get("name")) if isinstance(album, dict) else None

    added_raw = fragment.get("added_at") if isinstance(fragment, dict) else None
    added = parse_added_at(added_raw) if added_raw is not None else None
    if added_raw is not None and added is None:
        logger.debug(f"[Normalize] unparseable added_at={added_raw!r}; using processing time")

    external_urls = track.get("external_urls")
    spotify_url = _text(external_urls.get("spotify")) if isinstance(external_urls, dict) else None

    return {
        "trackId": track_id,
        "isrc": isrc,
        "name": _nfc(name),
        "artists": _artist_names(track.get("artists")),
        "album": album_name,
        "albumArt": _album_art(album),
        "addedAt": to_iso8601(added or now),
        "popularity": _positive_int(track.get("popularity")),
        "durationMs": _positive_int(track.get("duration_ms")),
        "spotifyUrl": spotify_url or TRACK_URL_TEMPLATE.format(track_id=track_id),
    }


def normalize_fragments(fragments: Iterable[Any], now: datetime | None = None) -> List[NormalizedTrack]:
    """Normalize captured fragments, dropping those without a usable name."""
    now = now or datetime.now(timezone.utc)
    tracks: List[NormalizedTrack] = []
    dropped = 0
    for fragment in fragments:
        try:
            t = normalize_fragment(fragment, now)
        except Exception as e:
            logger.debug(f"[Normalize] fragment skipped: {type(e).__name__}: {e}")
            t = None
        if t is None:
            dropped += 1
            continue
        tracks.append(t)
    if dropped:
        logger.info(f"[Normalize] dropped {dropped} fragment(s) without a usable track")
    return tracks
