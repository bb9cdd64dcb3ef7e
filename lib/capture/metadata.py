"""
Playlist metadata fallback from the rendered page.

Used only when the GraphQL payload did not supply everything. Selectors follow
the web player's markup and change often, so every lookup is optional.
"""
from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup

from lib.capture.models import PlaylistMeta

_FOLLOWER_RE = re.compile(r"^([0-9][0-9,.]*)\s*([KMB])?$", re.IGNORECASE)
_FOLLOWER_TEXT_RE = re.compile(r"(\d[\d,.]*\s*[KMB]?\s*followers?)", re.IGNORECASE)
_SUFFIX = {"K": 1e3, "M": 1e6, "B": 1e9}


def parse_follower_count(text: str | None) -> Optional[int]:
    """'1.2M followers' -> 1200000, '12,345 followers' -> 12345."""
    if not text:
        return None
    cleaned = re.sub(r"followers?", "", text, flags=re.IGNORECASE).strip()
    m = _FOLLOWER_RE.match(cleaned)
    if not m:
        return None
    try:
        value = float(m.group(1).replace(",", ""))
    except ValueError:
        return None
    suffix = (m.group(2) or "").upper()
    value *= _SUFFIX.get(suffix, 1)
    return int(value)


def _text(el) -> Optional[str]:
    if el is None:
        return None
    s = el.get_text(" ", strip=True)
    return s or None


def extract_dom_metadata(html: str) -> PlaylistMeta:
    soup = BeautifulSoup(html or "", "html.parser")

    name = (
        _text(soup.select_one('[data-testid="playlist-page"] h1[data-encore-id="type"]'))
        or _text(soup.select_one('main h1[data-encore-id="type"]'))
        or _text(soup.select_one('h1[data-encore-id="type"]'))
    )
    if not name or name in ("null", "Your Library"):
        title = _text(soup.title)
        name = title.split("|")[0].strip() if title else None

    curator = (
        _text(soup.select_one('[data-testid="entityHeaderSubtitle"] a'))
        or _text(soup.select_one('[data-testid="entityHeaderSubtitle"] span'))
        or _text(soup.select_one('div[data-testid="entity-subtitle"]'))
    )

    follower_text = None
    for sel in (
        'button[data-testid="followers-count"]',
        '[data-testid="playlist-followers"]',
        '[aria-label*="follower"]',
    ):
        t = _text(soup.select_one(sel))
        if t and re.search(r"\d.*follow", t, re.IGNORECASE):
            follower_text = t
            break
    if follower_text is None:
        m = _FOLLOWER_TEXT_RE.search(soup.get_text(" ", strip=True))
        if m:
            follower_text = m.group(1)

    image_url = None
    for sel in (
        '[data-testid="playlist-image"] img',
        '[data-testid="entity-image"] img',
        'img[alt*="playlist"]',
        "main img",
    ):
        img = soup.select_one(sel)
        if img is not None and img.get("src"):
            image_url = img.get("src")
            break

    return {
        "name": name or None,
        "curator": curator,
        "followers": parse_follower_count(follower_text),
        "imageUrl": image_url,
    }


def merge_metadata(network: PlaylistMeta, dom: PlaylistMeta) -> PlaylistMeta:
    """Network values win; DOM only fills the gaps."""
    merged: PlaylistMeta = dict(network or {})
    for key, value in (dom or {}).items():
        if merged.get(key) is None and value is not None:
            merged[key] = value
    return merged


def is_complete(meta: PlaylistMeta) -> bool:
    return all(meta.get(k) is not None for k in ("name", "curator", "followers", "imageUrl"))
