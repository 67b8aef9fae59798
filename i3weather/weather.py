"""
Weather collaborator: OpenWeatherMap current conditions.

Builds the request URL, decodes the response into a fixed record and
maps that record onto the ``{key}`` values a bar template can use.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Final, Optional
from urllib.parse import urlencode

from .levels import DayTime
from .polling import INVALID, FetchError, fetch_json

API_URL: Final[str] = "https://api.openweathermap.org/data/2.5/weather"
UNITS: Final[tuple[str, ...]] = ("standard", "metric", "imperial")


# ============================================================================
# DATA MODELS
# ============================================================================

@dataclass(frozen=True)
class Coord:
    lat: float
    lon: float


@dataclass(frozen=True)
class Condition:
    main: str
    description: str
    icon: str


@dataclass(frozen=True)
class Volume:
    """Precipitation volume in mm; either span may be missing."""
    h1: Optional[float] = None
    h3: Optional[float] = None

    @classmethod
    def from_json(cls, data: Optional[dict]) -> Optional[Volume]:
        if data is None:
            return None
        return cls(h1=_opt_float(data.get("1h")), h3=_opt_float(data.get("3h")))


@dataclass(frozen=True)
class CurrentWeather:
    """Decoded current-conditions record."""
    name: str
    coord: Coord
    condition: Condition
    pressure: float
    humidity: float
    temp: float
    feels_like: float
    temp_min: float
    temp_max: float
    wind_speed: float
    wind_deg: float
    visibility: int
    rain: Optional[Volume]
    snow: Optional[Volume]
    clouds: float
    sunrise: int
    sunset: int
    dt: int

    @classmethod
    def from_json(cls, data: Any) -> CurrentWeather:
        """Decode an OWM response, raising FetchError on a malformed body."""
        try:
            main = data["main"]
            weather = data["weather"][0]
            wind = data.get("wind", {})
            record = cls(
                name=str(data.get("name", "")),
                coord=Coord(float(data["coord"]["lat"]), float(data["coord"]["lon"])),
                condition=Condition(
                    main=str(weather["main"]),
                    description=str(weather["description"]),
                    icon=str(weather["icon"]),
                ),
                pressure=float(main["pressure"]),
                humidity=float(main["humidity"]),
                temp=float(main["temp"]),
                feels_like=float(main.get("feels_like", main["temp"])),
                temp_min=float(main["temp_min"]),
                temp_max=float(main["temp_max"]),
                wind_speed=float(wind.get("speed", 0.0)),
                wind_deg=float(wind.get("deg", 0.0)),
                visibility=int(data.get("visibility", 0)),
                rain=Volume.from_json(data.get("rain")),
                snow=Volume.from_json(data.get("snow")),
                clouds=float(data["clouds"]["all"]),
                sunrise=int(data["sys"]["sunrise"]),
                sunset=int(data["sys"]["sunset"]),
                dt=int(data["dt"]),
            )
            # rendered later as local clock times
            for epoch in (record.sunrise, record.sunset, record.dt):
                _local(epoch)
            return record
        except (KeyError, IndexError, TypeError, ValueError, AttributeError,
                OverflowError, OSError) as e:
            raise FetchError(INVALID, f"Invalid weather data: {e!r}") from e

    @property
    def daytime(self) -> DayTime:
        return DayTime(_local(self.sunrise), _local(self.sunset))

    def sky_visible(self, max_cloudiness: float) -> bool:
        return self.clouds <= max_cloudiness


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _local(epoch: int) -> datetime:
    return datetime.fromtimestamp(epoch).astimezone()


# ============================================================================
# API
# ============================================================================

def build_api_url(location: str, units: str, lang: str, apikey: str) -> str:
    """Numeric locations are OWM city ids, anything else is a city query."""
    params = {
        "id" if location.isdigit() else "q": location,
        "units": units,
        "lang": lang,
        "appid": apikey,
    }
    return f"{API_URL}?{urlencode(params)}"


def fetch_weather(url: str) -> CurrentWeather:
    return CurrentWeather.from_json(fetch_json(url))


# ============================================================================
# TEMPLATE KEYS
# ============================================================================

ICONS: Final[dict[str, str]] = {
    "01d": "🌞", "01n": "🌛",
    "02d": "🌤", "02n": "🌤",
    "03d": "⛅", "03n": "⛅",
    "04d": "⛅", "04n": "⛅",
    "09d": "🌧", "09n": "🌧",
    "10d": "🌦", "10n": "🌦",
    "11d": "🌩", "11n": "🌩",
    "13d": "❄",  "13n": "❄",
    "50d": "🌫", "50n": "🌫",
}

WIND_DIRECTIONS: Final[list[str]] = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]

# Meteorological direction is where the wind comes from; arrows show where it blows.
WIND_ARROWS: Final[list[str]] = ["↓", "↙", "←", "↖", "↑", "↗", "→", "↘"]

TEMP_UNITS: Final[dict[str, str]] = {"standard": "K", "metric": "°C", "imperial": "°F"}
SPEED_UNITS: Final[dict[str, str]] = {"standard": "m/s", "metric": "m/s", "imperial": "mi/h"}


def _octant(w: CurrentWeather) -> int:
    return int(((w.wind_deg % 360) + 22.5) // 45) % 8


def _num(value: float) -> str:
    return f"{value:g}"


def _rounded(value: float) -> str:
    return str(round(value))


def _volume(volume: Optional[Volume], span: str) -> str:
    if volume is None:
        return "-"
    value = getattr(volume, span)
    return _num(value if value is not None else 0.0)


def _clock(epoch: int) -> str:
    return _local(epoch).strftime("%H:%M")


Extractor = Callable[[CurrentWeather, str], str]

WEATHER_KEYS: Final[dict[str, Extractor]] = {
    "{city}":          lambda w, u: w.name,
    "{main}":          lambda w, u: w.condition.main,
    "{description}":   lambda w, u: w.condition.description,
    "{icon}":          lambda w, u: ICONS.get(w.condition.icon, "🚫"),
    "{pressure}":      lambda w, u: _num(w.pressure),
    "{humidity}":      lambda w, u: _num(w.humidity),
    "{wind}":          lambda w, u: WIND_DIRECTIONS[_octant(w)],
    "{wind_deg}":      lambda w, u: _num(w.wind_deg),
    "{wind_icon}":     lambda w, u: WIND_ARROWS[_octant(w)],
    "{wind_speed}":    lambda w, u: _rounded(w.wind_speed),
    "{deg_unit}":      lambda w, u: "°",
    "{visibility}":    lambda w, u: str(w.visibility),
    "{visibility_km}": lambda w, u: str(w.visibility // 1000),
    "{rain.1h}":       lambda w, u: _volume(w.rain, "h1"),
    "{rain.3h}":       lambda w, u: _volume(w.rain, "h3"),
    "{snow.1h}":       lambda w, u: _volume(w.snow, "h1"),
    "{snow.3h}":       lambda w, u: _volume(w.snow, "h3"),
    "{temp_min}":      lambda w, u: _rounded(w.temp_min),
    "{temp_max}":      lambda w, u: _rounded(w.temp_max),
    "{feels_like}":    lambda w, u: _rounded(w.feels_like),
    "{temp}":          lambda w, u: _rounded(w.temp),
    "{temp_unit}":     lambda w, u: TEMP_UNITS.get(u, ""),
    "{speed_unit}":    lambda w, u: SPEED_UNITS.get(u, ""),
    "{clouds}":        lambda w, u: _rounded(w.clouds),
    "{sunrise}":       lambda w, u: _clock(w.sunrise),
    "{sunset}":        lambda w, u: _clock(w.sunset),
    "{update}":        lambda w, u: _clock(w.dt),
}

KEY_HELP: Final[dict[str, str]] = {
    "{city}":          "City name",
    "{main}":          "Group of weather parameters (Rain, Snow, Extreme etc.)",
    "{description}":   "Weather condition within the group",
    "{icon}":          "Weather icon",
    "{pressure}":      "Atmospheric pressure, hPa",
    "{humidity}":      "Humidity, %",
    "{wind}":          "Wind direction as N, NE, E, SE, S, SW, W or NW",
    "{wind_deg}":      "Wind direction, degrees (meteorological)",
    "{wind_icon}":     "Wind direction as arrow icon",
    "{wind_speed}":    "Wind speed, {speed_unit}",
    "{deg_unit}":      "Degree symbol",
    "{visibility}":    "Visibility, meter",
    "{visibility_km}": "Visibility, kilometer",
    "{rain.1h}":       "Rain volume for the last 1 hour, mm",
    "{rain.3h}":       "Rain volume for the last 3 hours, mm",
    "{snow.1h}":       "Snow volume for the last 1 hour, mm",
    "{snow.3h}":       "Snow volume for the last 3 hours, mm",
    "{temp_min}":      "Minimum temperature at the moment, {temp_unit}",
    "{temp_max}":      "Maximum temperature at the moment, {temp_unit}",
    "{feels_like}":    "Temperature as perceived by humans, {temp_unit}",
    "{temp}":          "Temperature, {temp_unit}",
    "{temp_unit}":     "Temperature unit (standard=K, metric=°C, imperial=°F)",
    "{speed_unit}":    "Wind speed unit (standard=m/s, metric=m/s, imperial=mi/h)",
    "{clouds}":        "Cloudiness, %",
    "{sunrise}":       "Local time of sunrise, HH:MM",
    "{sunset}":        "Local time of sunset, HH:MM",
    "{update}":        "Local time of last update, HH:MM",
}


def weather_properties(weather: CurrentWeather, units: str) -> dict[str, str]:
    """Evaluate every weather key against one record."""
    return {key: extract(weather, units) for key, extract in WEATHER_KEYS.items()}
