"""
Network response capture.

A ``CaptureContext`` is created per request and registered as the page's
``response`` listener. Playwright schedules the async handler on the same event
loop as the scroll loop, so the ledger and fragment list are only ever touched
from one thread and need no lock.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, parse_qs

from lib.capture.models import PlaylistMeta

logger = logging.getLogger(__name__)

# Host substrings of the web player's API traffic
SERVICE_HOST_MARKERS = ("spotify.com", "spclient")
JSON_CONTENT_TYPE = "application/json"
# Checked in order; first present wins
OFFSET_PARAMS = ("offset", "fromRow")
# GraphQL requests carry paging inside a JSON ``variables`` object
GRAPHQL_VARIABLES_PARAM = "variables"
PATHFINDER_TRACK_TYPE = "Track"


def is_candidate(url: str, content_type: str | None) -> bool:
    """Cheap reject before touching the body: service host and JSON payload."""
    try:
        host = (urlparse(url or "").netloc or "").lower()
    except ValueError:
        return False
    if not any(marker in host for marker in SERVICE_HOST_MARKERS):
        return False
    return JSON_CONTENT_TYPE in (content_type or "").lower()


def locate_items(body: Any) -> Optional[List[Any]]:
    """
    Find the item list in a parsed body.

    Order: ``items``, ``tracks.items``, ``content.items``. The first list found
    wins even when it is empty.
    """
    if not isinstance(body, dict):
        return None
    if isinstance(body.get("items"), list):
        return body["items"]
    for wrapper in ("tracks", "content"):
        inner = body.get(wrapper)
        if isinstance(inner, dict) and isinstance(inner.get("items"), list):
            return inner["items"]
    return None


def _parse_offset(raw: Any) -> Optional[int]:
    """Int from a query value or JSON number; None when it cannot be read."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        pass
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return None


def _variables_offset(raw: Any) -> Optional[int]:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    # POST bodies wrap them: {"operationName", "variables", "extensions"}
    if isinstance(payload, dict) and isinstance(payload.get(GRAPHQL_VARIABLES_PARAM), dict):
        payload = payload[GRAPHQL_VARIABLES_PARAM]
    if not isinstance(payload, dict) or payload.get("offset") is None:
        return None
    return _parse_offset(payload["offset"])


def extract_offset(url: str, post_data: str | None = None) -> int:
    """
    Pagination offset of the originating request, 0 when absent.

    Query ``offset`` then ``fromRow``; for GraphQL requests the ``offset`` in
    the ``variables`` query parameter, then in the POST body.
    """
    try:
        query = parse_qs(urlparse(url or "").query)
    except ValueError:
        return 0
    for name in OFFSET_PARAMS:
        values = query.get(name)
        if not values or not values[0]:
            continue
        offset = _parse_offset(values[0])
        if offset is None:
            logger.debug(f"[Network Capture] unparseable {name}={values[0]!r}; using 0")
            return 0
        return offset

    for raw in ((query.get(GRAPHQL_VARIABLES_PARAM) or [None])[0], post_data):
        offset = _variables_offset(raw)
        if offset is not None:
            return offset
    return 0


def _graphql_playlist(body: Any) -> Optional[dict]:
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    playlist = data.get("playlistV2") if isinstance(data, dict) else None
    return playlist if isinstance(playlist, dict) else None


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def extract_playlist_meta(body: Any) -> Optional[PlaylistMeta]:
    """Playlist metadata from a GraphQL ``data.playlistV2`` payload, if present."""
    playlist = _graphql_playlist(body)
    if playlist is None:
        return None

    owner_v2 = _dict(_dict(playlist.get("ownerV2")).get("data"))
    owner = _dict(playlist.get("owner"))
    curator = owner_v2.get("name") or owner.get("name")

    followers_raw = playlist.get("followers")
    if isinstance(followers_raw, dict):
        followers = followers_raw.get("totalCount")
    else:
        followers = followers_raw
    if not isinstance(followers, int) or isinstance(followers, bool):
        followers = None

    image_url = None
    images = playlist.get("images")
    try:
        if isinstance(images, dict):
            image_url = images["items"][0]["sources"][0]["url"]
        elif isinstance(images, list) and images:
            image_url = images[0].get("url")
    except (KeyError, IndexError, TypeError, AttributeError):
        image_url = None

    total = _dict(playlist.get("content")).get("totalCount")

    name = playlist.get("name")
    return {
        "name": name if isinstance(name, str) and name else None,
        "curator": curator if isinstance(curator, str) and curator else None,
        "followers": followers,
        "imageUrl": image_url if isinstance(image_url, str) else None,
        "totalTracks": total if isinstance(total, int) and not isinstance(total, bool) else None,
    }


def pathfinder_track(item: Any) -> Optional[dict]:
    """
    Rewrite one GraphQL playlist row into the REST added-item shape.

    ``{"addedAt": {"isoString"}, "itemV2": {"data": {"__typename": "Track", "uri", ...}}}``
    becomes ``{"added_at", "track": {"id", "name", "artists", "album", ...}}`` so the
    normalizer needs no second mapping. Non-track rows and rows without an id
    give None.
    """
    data = _dict(_dict(_dict(item).get("itemV2")).get("data"))
    if data.get("__typename") != PATHFINDER_TRACK_TYPE:
        return None
    uri = data.get("uri")
    track_id = uri.split(":")[-1] if isinstance(uri, str) else ""
    if not track_id:
        return None

    artist_items = _dict(data.get("artists")).get("items")
    artists = [
        {"name": _dict(a.get("profile")).get("name")}
        for a in (artist_items if isinstance(artist_items, list) else [])
        if isinstance(a, dict)
    ]

    album = _dict(data.get("albumOfTrack"))
    sources = _dict(album.get("coverArt")).get("sources")

    isrc = (
        _dict(data.get("trackUnion")).get("isrc")
        or _dict(data.get("externalIds")).get("isrc")
        or data.get("isrc")
    )

    return {
        "added_at": _dict(_dict(item).get("addedAt")).get("isoString"),
        "track": {
            "id": track_id,
            "uri": uri,
            "name": data.get("name"),
            "artists": artists,
            "album": {
                "name": album.get("name"),
                "images": sources if isinstance(sources, list) else [],
            },
            "external_ids": {"isrc": isrc},
            "duration_ms": _dict(data.get("trackDuration")).get("totalMilliseconds"),
        },
    }


def locate_pathfinder_items(body: Any) -> Optional[List[dict]]:
    """Track rows of a GraphQL ``playlistV2.content.items`` page, converted."""
    playlist = _graphql_playlist(body)
    items = _dict(playlist.get("content")).get("items") if playlist else None
    if not isinstance(items, list):
        return None
    converted = []
    for item in items:
        t = pathfinder_track(item)
        if t is not None:
            converted.append(t)
    return converted


class CaptureContext:
    """Owns the offset ledger and accumulated fragments for one page lifetime."""

    def __init__(self) -> None:
        # offset -> batch size, insertion ordered
        self.ledger: Dict[int, int] = {}
        self.fragments: List[Any] = []
        self.playlist_meta: PlaylistMeta = {}
        self.responses_seen = 0
        self.batches_discarded = 0

    @property
    def offsets(self) -> List[int]:
        return list(self.ledger)

    def attach(self, page) -> None:
        page.on("response", self.on_response)

    async def on_response(self, response) -> None:
        url = response.url
        try:
            content_type = (response.headers or {}).get("content-type", "")
        except Exception as e:
            logger.debug(f"[Network Capture] headers unavailable for {url[:120]}: {e}")
            return
        if not is_candidate(url, content_type):
            return

        self.responses_seen += 1
        try:
            body = await response.json()
        except Exception as e:
            # unrelated or truncated traffic; expected
            logger.debug(f"[Network Capture] JSON parse failed for {url[:120]}: {e}")
            return

        try:
            request_url = response.request.url
            post_data = response.request.post_data
        except Exception:
            request_url, post_data = url, None
        try:
            self.ingest(request_url, body, post_data)
        except Exception as e:
            logger.debug(f"[Network Capture] unusable payload from {url[:120]}: {type(e).__name__}: {e}")

    def ingest(self, request_url: str, body: Any, post_data: str | None = None) -> bool:
        """Apply one parsed response. Returns True when a batch was accepted."""
        if not self.playlist_meta:
            meta = extract_playlist_meta(body)
            if meta:
                self.playlist_meta = meta
                logger.info(
                    f"[Network Capture] playlist meta name={meta.get('name')!r} "
                    f"curator={meta.get('curator')!r} followers={meta.get('followers')} "
                    f"totalTracks={meta.get('totalTracks')}"
                )

        items = locate_items(body)
        if items is None:
            items = locate_pathfinder_items(body)
        if not items:
            return False

        offset = extract_offset(request_url, post_data)
        if offset in self.ledger:
            self.batches_discarded += 1
            logger.debug(f"[Network Capture] duplicate offset={offset} count={len(items)}; discarded")
            return False

        self.ledger[offset] = len(items)
        self.fragments.extend(items)
        logger.info(
            f"[Network Capture] captured offset={offset} count={len(items)} total={len(self.fragments)}"
        )
        return True

    def snapshot(self) -> tuple:
        """Read-only hand-off of the accumulated fragments."""
        return tuple(self.fragments)
