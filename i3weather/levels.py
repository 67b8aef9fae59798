"""
Visibility Level Engine

Decides from a list of predicted spotting windows how much the status
bar should say about the next ISS pass: nothing, a running clock while
it is overhead, a countdown, the rise time, or a rough day count.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Final, NamedTuple, Optional, Sequence


# ============================================================================
# CONSTANTS
# ============================================================================

ICON_SATELLITE: Final[str] = "🛰"
ICON_EYE:       Final[str] = "👁"

ONE_DAY: Final[timedelta] = timedelta(days=1)


# ============================================================================
# DATA MODELS
# ============================================================================

class Level(IntEnum):
    """How much spotting detail may be shown, least to most verbose."""
    NONE  = 0
    WATCH = 1   # only while the ISS is visible
    SOON  = 2   # countdown until the next pass (includes WATCH)
    RISE  = 3   # time of the next pass (includes SOON and WATCH)
    FAR   = 4   # days until the last known pass (includes all)

    @classmethod
    def from_name(cls, name: str) -> Level:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"unknown level: {name!r}") from None


@dataclass(frozen=True)
class Spot:
    """One predicted pass: when it rises and how long it stays visible."""
    rise_time: datetime
    duration: timedelta

    @property
    def set_time(self) -> datetime:
        return self.rise_time + self.duration

    def is_visible_at(self, now: datetime) -> bool:
        return self.rise_time <= now < self.set_time


@dataclass(frozen=True)
class DayTime:
    """Sunrise and sunset used to skip passes hidden by daylight."""
    sunrise: datetime
    sunset: datetime

    def excludes(self, spot: Spot) -> bool:
        # Compared by time of day so one sunrise/sunset pair covers passes
        # predicted for the following days as well.
        rise = spot.rise_time.time()
        sunrise, sunset = self.sunrise.time(), self.sunset.time()
        if sunrise <= sunset:
            return sunrise < rise < sunset
        # daylight wraps midnight on the local clock (location far from our timezone)
        return rise > sunrise or rise < sunset


class Evaluation(NamedTuple):
    level: Level
    icon: str
    text: str


NOTHING: Final = Evaluation(Level.NONE, "", "")


# ============================================================================
# WINDOW SELECTION
# ============================================================================

def visible_spots(spots: Sequence[Spot], daytime: Optional[DayTime]) -> list[Spot]:
    if daytime is None:
        return list(spots)
    return [s for s in spots if not daytime.excludes(s)]


def find_current(
    spots: Sequence[Spot], now: datetime, daytime: Optional[DayTime] = None
) -> Optional[Spot]:
    """Return the pass that is overhead right now, if any."""
    for spot in visible_spots(spots, daytime):
        if spot.is_visible_at(now):
            return spot
    return None


def find_upcoming(
    spots: Sequence[Spot], now: datetime, daytime: Optional[DayTime] = None
) -> Optional[Spot]:
    """Return the earliest pass that has not risen yet, if any."""
    upcoming = [s for s in visible_spots(spots, daytime) if s.rise_time > now]
    return min(upcoming, key=lambda s: s.rise_time, default=None)


# ============================================================================
# FORMATTING
# ============================================================================

def format_span(sign: str, span: timedelta) -> str:
    """
    Format a time span as ``[[HH:]MM:]SS`` behind the given sign.

    Leading groups are dropped while they are zero; the seconds group
    always stays, so five seconds read ``+05`` and never an empty string.
    """
    total = max(int(span.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{sign}{hours:02}:{minutes:02}:{seconds:02}"
    if minutes:
        return f"{sign}{minutes:02}:{seconds:02}"
    return f"{sign}{seconds:02}"


def format_rise_time(rise_time: datetime, now: datetime) -> str:
    """Local ``HH:MM``, prefixed with the locale date when more than a day away."""
    if rise_time - now > ONE_DAY:
        return rise_time.strftime("%x %H:%M")
    return rise_time.strftime("%H:%M")


# ============================================================================
# EVALUATION
# ============================================================================

def evaluate(
    spots: Sequence[Spot],
    now: datetime,
    sky_visible: bool,
    daytime: Optional[DayTime],
    blink_phase: bool,
    max_level: Level,
    soon: timedelta,
) -> Evaluation:
    """Pick the richest level allowed by ``max_level`` for the given passes."""
    if not sky_visible or max_level < Level.WATCH:
        return NOTHING

    current = find_current(spots, now, daytime)
    if current is not None:
        icon = ICON_EYE if blink_phase else ICON_SATELLITE
        return Evaluation(Level.WATCH, icon, format_span("+", now - current.rise_time))

    upcoming = find_upcoming(spots, now, daytime)
    if upcoming is not None:
        until = upcoming.rise_time - now
        if until < soon and max_level >= Level.SOON:
            return Evaluation(Level.SOON, ICON_SATELLITE, format_span("-", until))
        if max_level >= Level.RISE:
            return Evaluation(
                Level.RISE, ICON_SATELLITE, format_rise_time(upcoming.rise_time, now)
            )

    if max_level == Level.FAR and spots:
        last = max(spots, key=lambda s: s.rise_time)
        if last.rise_time <= now:
            return NOTHING
        days = (last.rise_time - now) // ONE_DAY
        return Evaluation(Level.FAR, ICON_SATELLITE, f">{days}")

    return NOTHING


def event_duration(spots: Sequence[Spot], now: datetime, level: Level,
                   daytime: Optional[DayTime] = None) -> timedelta:
    """
    Time span that belongs to the evaluated level: the remaining visible
    time while watching, the time until rise while a pass is soon.
    """
    if level == Level.WATCH:
        current = find_current(spots, now, daytime)
        if current is not None:
            return current.set_time - now
    elif level == Level.SOON:
        upcoming = find_upcoming(spots, now, daytime)
        if upcoming is not None:
            return upcoming.rise_time - now
    return timedelta(0)
