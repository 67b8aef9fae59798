"""
i3weather: inject weather and ISS spotting info into the i3status stream.

Typical i3 bar command::

    status_command i3status | i3weather -l "Berlin,DE" -k <OWM API key> --notify
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from functools import partial
from typing import Callable, Optional, Protocol, TextIO

from . import __version__
from .config import Config, DEFAULTS, load_config_file
from .i3status import Splicer
from .levels import Level, Spot, evaluate, event_duration
from .notify import Debouncer
from .polling import LOADING, Failure, Mailbox, Message, Poller, Success
from .render import SPOT_KEYS, apply_evaluation, new_properties, render
from .spotting import build_api_url as spot_url, fetch_spots
from .weather import (
    KEY_HELP,
    UNITS,
    Coord,
    CurrentWeather,
    build_api_url as weather_url,
    fetch_weather,
    weather_properties,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEST_CADENCE = 1.0  # seconds between renders in --test mode


class Source(Protocol):
    mailbox: Mailbox[Message]

    def start(self) -> None: ...


# ============================================================================
# MAIN LOOP STATE
# ============================================================================

class Runtime:
    """Everything the main loop owns between two rendered lines."""

    def __init__(
        self,
        config: Config,
        weather_source: Source,
        spot_source_factory: Callable[[Coord], Source],
        debouncer: Optional[Debouncer] = None,
    ) -> None:
        self.config = config
        self.weather_source = weather_source
        self.spot_source_factory = spot_source_factory
        self.spot_source: Optional[Source] = None
        self.debouncer = debouncer or Debouncer(suppressed=not config.notify)
        self.props = new_properties()
        self.template = LOADING
        self.weather: Optional[CurrentWeather] = None
        self.spots: list[Spot] = []
        self.blink_phase = False
        self.level = Level.NONE

    def _drain_weather(self) -> None:
        message = self.weather_source.mailbox.take()
        if isinstance(message, Success):
            self.weather = message.value
            self.props.update(weather_properties(self.weather, self.config.units))
            self.template = self.config.format
            if self.spot_source is None:
                self.spot_source = self.spot_source_factory(self.weather.coord)
                self.spot_source.start()
        elif isinstance(message, Failure):
            self.template = message.status

    def _drain_spots(self) -> None:
        if self.spot_source is None:
            return
        message = self.spot_source.mailbox.take()
        if isinstance(message, Success):
            self.spots = message.value
            self.template = self.config.format
        elif isinstance(message, Failure) and message.status != LOADING:
            self.template = message.status

    def step(self, now: datetime) -> str:
        """Run one cycle and return the text for the injected block."""
        self._drain_weather()
        self._drain_spots()

        weather = self.weather
        sky_visible = weather is not None and weather.sky_visible(self.config.cloudiness)
        daytime = weather.daytime if weather is not None and self.config.daytime else None

        evaluation = evaluate(
            self.spots, now, sky_visible, daytime,
            self.blink_phase, self.config.max_level, self.config.soon_threshold,
        )
        if evaluation.level != self.level:
            logger.info(f"Spotting level {self.level.name} -> {evaluation.level.name}")
            self.level = evaluation.level
        apply_evaluation(self.props, evaluation)
        self.debouncer.observe(
            event_duration(self.spots, now, evaluation.level, daytime), evaluation.level
        )
        if self.config.blink:
            self.blink_phase = not self.blink_phase

        return render(self.template, self.props)


def make_runtime(config: Config) -> Runtime:
    url = weather_url(config.location, config.units, config.lang, config.apikey)
    weather = Poller("weather", partial(fetch_weather, url), config.poll_interval)

    def spot_source(coord: Coord) -> Poller:
        logger.info(f"Start spotting at {coord.lat}, {coord.lon}")
        url = spot_url(coord.lat, coord.lon, 0.0, config.predictions)
        return Poller("spotting", partial(fetch_spots, url), config.poll_interval)

    weather.start()
    return Runtime(config, weather, spot_source)


# ============================================================================
# LOOPS
# ============================================================================

def run_protocol(runtime: Runtime, inp: Optional[TextIO] = None, out: Optional[TextIO] = None) -> None:
    """Wrap the i3status stream until it ends."""
    inp = inp or sys.stdin
    out = out or sys.stdout
    config = runtime.config
    splicer = Splicer(out, config.name, config.position, config.reverse)
    splicer.begin(inp)
    while True:
        text = runtime.step(datetime.now().astimezone())
        if not splicer.update(inp, text):
            logger.info("i3status input closed")
            return


def run_test(runtime: Runtime) -> None:
    """Print the rendered text once per second instead of wrapping i3status."""
    while True:
        print(runtime.step(datetime.now().astimezone()), flush=True)
        time.sleep(TEST_CADENCE)


# ============================================================================
# COMMAND LINE
# ============================================================================

def key_help() -> str:
    lines = ["available keys are:"]
    for key, text in {**KEY_HELP, **SPOT_KEYS}.items():
        lines.append(f"  {key:<16}{text}")
    return "\n".join(lines)


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def _positive(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return number


def _percent(value: str) -> int:
    number = int(value)
    if not 0 <= number <= 100:
        raise argparse.ArgumentTypeError(f"must be between 0 and 100: {value}")
    return number


def check_config(config: Config) -> Optional[str]:
    """Validate merged values, which may come from the config file unchecked."""
    if config.units not in UNITS:
        return f"unknown units: {config.units!r}"
    try:
        config.max_level
    except ValueError as e:
        return str(e)
    if config.poll <= 0:
        return f"poll interval must be positive: {config.poll}"
    if config.predictions <= 0:
        return f"predictions must be positive: {config.predictions}"
    if config.soon < 0:
        return f"soon must not be negative: {config.soon}"
    if config.position < 0:
        return f"position must not be negative: {config.position}"
    if not 0 <= config.cloudiness <= 100:
        return f"cloudiness must be between 0 and 100: {config.cloudiness}"
    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="i3weather",
        description="Inserts current weather and ISS spotting info into the i3status stream",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=key_help(),
    )
    parser.add_argument("-l", "--location", default=DEFAULTS.location,
                        help="city name (e.g. 'Berlin,DE') or OpenWeatherMap city id")
    parser.add_argument("-k", "--apikey", default=DEFAULTS.apikey,
                        help="OpenWeatherMap API key (or set OWM_API_KEY)")
    parser.add_argument("-u", "--units", default=DEFAULTS.units, choices=UNITS,
                        help="units of measurement (default: %(default)s)")
    parser.add_argument("-g", "--lang", default=DEFAULTS.lang,
                        help="language of descriptions (default: %(default)s)")
    parser.add_argument("-f", "--format", default=DEFAULTS.format,
                        help="template with {keys} to render (default: %(default)s)")
    parser.add_argument("-n", "--name", default=DEFAULTS.name,
                        help="name of the inserted status block (default: %(default)s)")
    parser.add_argument("-p", "--position", type=_non_negative, default=DEFAULTS.position,
                        help="position of the inserted block (default: %(default)s)")
    parser.add_argument("-r", "--reverse", action="store_true", default=DEFAULTS.reverse,
                        help="count --position from the right")
    parser.add_argument("-P", "--poll", type=_positive, default=DEFAULTS.poll,
                        help="poll interval in minutes (default: %(default)s)")
    parser.add_argument("-s", "--soon", type=_non_negative, default=DEFAULTS.soon,
                        help="minutes before a pass that count as soon (default: %(default)s)")
    parser.add_argument("-c", "--cloudiness", type=_percent, default=DEFAULTS.cloudiness,
                        help="maximum cloudiness in percent for spotting (default: %(default)s)")
    parser.add_argument("-N", "--notify", action="store_true", default=DEFAULTS.notify,
                        help="show desktop notifications for ISS passes")
    parser.add_argument("-b", "--blink", action="store_true", default=DEFAULTS.blink,
                        help="blink the ISS icon while it is visible")
    parser.add_argument("-L", "--level", default=DEFAULTS.level,
                        choices=[lvl.name.lower() for lvl in Level if lvl != Level.NONE],
                        help="most verbose spotting info to show (default: %(default)s)")
    parser.add_argument("-d", "--daytime", action="store_true", default=DEFAULTS.daytime,
                        help="skip passes between sunrise and sunset")
    parser.add_argument("--predictions", type=_positive, default=DEFAULTS.predictions,
                        help="number of passes to request (default: %(default)s)")
    parser.add_argument("-t", "--test", action="store_true", default=DEFAULTS.test,
                        help="print the rendered text every second instead of wrapping i3status")
    parser.add_argument("-v", "--verbose", action="store_true", default=DEFAULTS.verbose,
                        help="log debug output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.set_defaults(**load_config_file())
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    config = Config.from_namespace(parser.parse_args(argv))
    problem = check_config(config)
    if problem:
        parser.error(problem)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if not config.apikey:
        logger.warning("No OpenWeatherMap API key given, requests will fail")

    try:
        runtime = make_runtime(config)
        if config.test:
            run_test(runtime)
        else:
            run_protocol(runtime)
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
