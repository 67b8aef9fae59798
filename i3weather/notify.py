"""
Desktop notifications for ISS passes.

The debouncer turns a stream of evaluated levels into at most one
notification per contiguous run of SOON or WATCH.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Final, Optional

from .levels import Level

logger = logging.getLogger(__name__)

APP_NAME: Final[str] = "i3weather"
SEND_TIMEOUT: Final[int] = 5


def send_notification(
    summary: str,
    body: str,
    urgency: Optional[str] = None,
    timeout: Optional[timedelta] = None,
) -> bool:
    """Send a desktop notification via notify-send; failures are only logged."""
    if not shutil.which("notify-send"):
        logger.warning("notify-send not found, notification dropped")
        return False

    cmd = ["notify-send", "-a", APP_NAME]
    if urgency:
        cmd += ["-u", urgency]
    if timeout is not None:
        cmd += ["-t", str(max(int(timeout.total_seconds() * 1000), 0))]
    cmd += [summary, body]

    try:
        result = subprocess.run(cmd, capture_output=True, check=False, timeout=SEND_TIMEOUT)
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning(f"Notification failed: {e}")
        return False
    if result.returncode != 0:
        logger.warning(f"notify-send exited with {result.returncode}: "
                       f"{result.stderr.decode(errors='replace').strip()}")
        return False
    return True


Sink = Callable[..., bool]


@dataclass
class Debouncer:
    """Remembers which notifications are still owed for the current pass."""
    suppressed: bool = False
    sink: Sink = send_notification
    pending_soon: bool = True
    pending_watch: bool = True

    def observe(self, duration: timedelta, level: Level) -> None:
        """
        Feed one evaluated level. ``duration`` is the time until rise for
        SOON and the remaining visible time for WATCH.
        """
        if level == Level.SOON:
            if not self.suppressed and self.pending_soon:
                self.sink("Upcoming: ISS spotting", "ISS will be visible soon!", urgency="low")
                self.pending_soon = False
                self.pending_watch = True
        elif level == Level.WATCH:
            if not self.suppressed and self.pending_watch:
                self.sink(
                    "NOW: ISS spotting",
                    "ISS is visible NOW\nLook at the sky, weather seems ok!",
                    timeout=duration,
                )
                self.pending_watch = False
        else:
            self.pending_soon = True
            self.pending_watch = True
