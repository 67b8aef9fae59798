"""
Configuration: defaults, the optional TOML file and the frozen runtime config.

The file at ``$XDG_CONFIG_HOME/i3weather/config.toml`` may set any
command line option by its long name (dashes or underscores), e.g.::

    location = "Berlin,DE"
    apikey = "..."
    level = "rise"
    notify = true
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Final, Optional

from .levels import Level

logger = logging.getLogger(__name__)

DEFAULT_FORMAT: Final[str] = (
    "{city} {icon} {temp}{temp_unit} {humidity}% {iss_icon}{iss_space}{iss}"
)
APIKEY_ENV: Final[str] = "OWM_API_KEY"


@dataclass(frozen=True)
class Config:
    """Immutable runtime configuration."""
    location: str = "Berlin,DE"
    apikey: str = ""
    units: str = "metric"
    lang: str = "en"
    format: str = DEFAULT_FORMAT
    name: str = "i3weather"
    position: int = 0
    reverse: bool = False
    poll: int = 10              # minutes
    soon: int = 15              # minutes
    cloudiness: int = 25        # percent
    notify: bool = False
    blink: bool = False
    level: str = "soon"
    daytime: bool = False
    predictions: int = 10
    test: bool = False
    verbose: bool = False

    @property
    def max_level(self) -> Level:
        return Level.from_name(self.level)

    @property
    def poll_interval(self) -> float:
        return float(self.poll * 60)

    @property
    def soon_threshold(self) -> timedelta:
        return timedelta(minutes=self.soon)

    @classmethod
    def from_namespace(cls, ns: Any) -> Config:
        values = {f.name: getattr(ns, f.name) for f in fields(cls) if hasattr(ns, f.name)}
        if not values.get("apikey"):
            values["apikey"] = os.environ.get(APIKEY_ENV, "")
        return cls(**values)


DEFAULTS: Final = Config()


def config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "i3weather" / "config.toml"


def load_config_file(path: Optional[Path] = None) -> dict[str, Any]:
    """
    Read option defaults from the TOML file.

    A missing file yields no defaults. Unreadable files, unknown keys and
    values of the wrong type are reported and skipped.
    """
    path = path or config_path()
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError, OSError) as e:
        logger.warning(f"Ignoring config file {path}: {e}")
        return {}

    types = {f.name: type(getattr(DEFAULTS, f.name)) for f in fields(Config)}
    result: dict[str, Any] = {}
    for raw_key, value in data.items():
        key = raw_key.replace("-", "_")
        expected = types.get(key)
        if expected is None:
            logger.warning(f"Unknown option {raw_key!r} in {path}")
            continue
        # bool is a subclass of int, so reject it for integer options explicitly
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            logger.warning(f"Option {raw_key!r} in {path} must be {expected.__name__}")
            continue
        result[key] = value
    return result
