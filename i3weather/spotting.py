"""
Spotting collaborator: ISS pass predictions from Open Notify.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Final
from urllib.parse import urlencode

from .levels import Spot
from .polling import INVALID, FetchError, fetch_json

API_URL: Final[str] = "http://api.open-notify.org/iss-pass.json"
MAX_PREDICTIONS: Final[int] = 100


def build_api_url(lat: float, lon: float, alt: float, count: int) -> str:
    params = {
        "lat": lat,
        "lon": lon,
        "alt": alt,
        "n": max(1, min(count, MAX_PREDICTIONS)),
    }
    return f"{API_URL}?{urlencode(params)}"


def parse_spots(data: Any) -> list[Spot]:
    """Decode a pass list, sorted by rise time; raises FetchError when malformed."""
    try:
        if data["message"] != "success":
            raise FetchError(INVALID, f"Prediction service says: {data['message']}")
        spots = [
            Spot(
                rise_time=datetime.fromtimestamp(int(item["risetime"])).astimezone(),
                duration=timedelta(seconds=int(item["duration"])),
            )
            for item in data["response"]
        ]
    except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
        raise FetchError(INVALID, f"Invalid spotting data: {e!r}") from e
    return sorted(spots, key=lambda s: s.rise_time)


def fetch_spots(url: str) -> list[Spot]:
    return parse_spots(fetch_json(url))
