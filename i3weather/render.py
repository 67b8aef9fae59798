"""
Property store and template renderer.
"""

from __future__ import annotations

from typing import Final

from .levels import Evaluation
from .weather import WEATHER_KEYS

SPOT_PREFIX: Final[str] = "{iss"
SPACE_KEY: Final[str] = "{iss_space}"

SPOT_KEYS: Final[dict[str, str]] = {
    "{iss}":       "ISS spotting duration, countdown, rise time or days to last pass",
    "{iss_icon}":  "ISS icon, shown whenever {iss} has a value",
    "{iss_space}": "A single space if any ISS key has a value, else nothing",
}

PropertySet = dict[str, str]


def new_properties() -> PropertySet:
    """Every key a template may use, preset to the empty string."""
    props = {key: "" for key in WEATHER_KEYS}
    props.update({key: "" for key in SPOT_KEYS if key != SPACE_KEY})
    return props


def apply_evaluation(props: PropertySet, evaluation: Evaluation) -> None:
    """Overwrite the spotting keys; cleared keys never keep stale values."""
    props["{iss_icon}"] = evaluation.icon
    props["{iss}"] = evaluation.text


def render(fmt: str, props: PropertySet) -> str:
    """Replace every known key in ``fmt`` and resolve ``{iss_space}``."""
    result = fmt
    spotted = False
    for key, value in props.items():
        if key == SPACE_KEY or key not in result:
            continue
        result = result.replace(key, value)
        if value and key.startswith(SPOT_PREFIX):
            spotted = True
    return result.replace(SPACE_KEY, " " if spotted else "")
