"""Shared fixtures for i3weather tests."""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from datetime import datetime, timezone

import pytest


@pytest.fixture
def now():
    return datetime(2024, 6, 1, 22, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def raw_weather():
    """A realistic OpenWeatherMap /weather response."""
    return {
        "coord": {"lon": 13.41, "lat": 52.52},
        "weather": [
            {"id": 802, "main": "Clouds", "description": "scattered clouds", "icon": "03n"}
        ],
        "base": "stations",
        "main": {
            "temp": 17.6,
            "feels_like": 16.9,
            "temp_min": 15.2,
            "temp_max": 19.4,
            "pressure": 1015,
            "humidity": 62,
        },
        "visibility": 10000,
        "wind": {"speed": 3.6, "deg": 90},
        "rain": {"1h": 0.3},
        "clouds": {"all": 20},
        "dt": 1717272000,
        "sys": {"country": "DE", "sunrise": 1717210000, "sunset": 1717269000},
        "timezone": 7200,
        "id": 2950159,
        "name": "Berlin",
        "cod": 200,
    }


@pytest.fixture
def raw_spots():
    """A realistic Open Notify iss-pass response (unsorted on purpose)."""
    return {
        "message": "success",
        "request": {"altitude": 0, "datetime": 1717270000, "latitude": 52.52,
                    "longitude": 13.41, "passes": 3},
        "response": [
            {"duration": 614, "risetime": 1717290000},
            {"duration": 355, "risetime": 1717280000},
            {"duration": 488, "risetime": 1717300000},
        ],
    }
