"""
Data models for one scrape request.

Wire-facing records keep the camelCase keys the downstream ingest expects.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict


class NormalizedTrack(TypedDict):
    """Canonical track record. ``name`` is never empty."""
    trackId: str
    isrc: Optional[str]
    name: str
    artists: List[str]
    album: Optional[str]
    albumArt: Optional[str]
    addedAt: str  # ISO-8601, UTC, millisecond precision
    popularity: Optional[int]
    durationMs: Optional[int]
    spotifyUrl: str


class PlaylistMeta(TypedDict, total=False):
    """Playlist-level metadata, from the GraphQL payload or the DOM fallback."""
    name: Optional[str]
    curator: Optional[str]
    followers: Optional[int]
    imageUrl: Optional[str]
    totalTracks: Optional[int]


@dataclass
class ScrapeResult:
    """Outcome of a scrape. ``outcome`` is one of ok / input / auth / internal."""
    success: bool
    outcome: str = "ok"
    tracks: List[NormalizedTrack] = field(default_factory=list)
    error: Optional[str] = None
    duration_seconds: float = 0.0
    memory_mb: Optional[float] = None
    playlist: PlaylistMeta = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_captured(self) -> int:
        return len(self.tracks)
