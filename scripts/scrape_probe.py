#!/usr/bin/env python3
"""
Scrape probe.

Posts a playlist URL (and optionally a cookie jar exported as JSON) to a running
scraper service and prints timing, outcome and a few sample tracks.

Usage:
    python scripts/scrape_probe.py "https://open.spotify.com/playlist/..." [cookies.json]

Env:
    SCRAPER_BASE_URL (default http://127.0.0.1:8000)
"""
import json
import os
import sys
import time

import requests

BACKEND_URL = os.getenv("SCRAPER_BASE_URL", "http://127.0.0.1:8000")


def load_cookies(path):
    with open(path, encoding="utf-8") as f:
        cookies = json.load(f)
    if not isinstance(cookies, list):
        raise SystemExit(f"{path}: expected a JSON array of cookie objects")
    return cookies


def probe(playlist_url, cookies=None):
    payload = {"playlistUrl": playlist_url}
    if cookies:
        payload["cookies"] = cookies

    print(f"\n{'='*60}")
    print(f"POST {BACKEND_URL}/scrape-playlist")
    print(f"  url={playlist_url} cookies={len(cookies or [])}")
    print(f"{'='*60}")

    t0 = time.time()
    try:
        response = requests.post(f"{BACKEND_URL}/scrape-playlist", json=payload, timeout=180)
    except requests.exceptions.ConnectionError:
        print("\n⚠ Server not running (connection refused)")
        print("  Start server with: uvicorn app:app --host 127.0.0.1 --port 8000")
        return 2
    elapsed_ms = (time.time() - t0) * 1000

    try:
        data = response.json()
    except ValueError:
        print(f"❌ Non-JSON response ({response.status_code}): {response.text[:300]}")
        return 1

    print(f"\nStatus Code: {response.status_code}  client_ms={elapsed_ms:.1f}")
    print(f"  success={data.get('success')} totalCaptured={data.get('totalCaptured')}")
    print(f"  duration={data.get('duration')}s memoryUsed={data.get('memoryUsed')}MB")
    if data.get("error"):
        print(f"  error={data['error']}")
    playlist = data.get("playlist") or {}
    if playlist:
        print(f"  playlist name={playlist.get('name')!r} curator={playlist.get('curator')!r} followers={playlist.get('followers')}")
    for t in (data.get("tracks") or [])[:5]:
        print(f"  - {t.get('name')} / {', '.join(t.get('artists') or [])} ({t.get('isrc') or 'no isrc'})")
    return 0 if data.get("success") else 1


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    jar = load_cookies(sys.argv[2]) if len(sys.argv) > 2 else None
    sys.exit(probe(sys.argv[1], jar))
