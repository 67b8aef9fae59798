"""
Background pollers for the external data sources.

Each poller owns one thread that keeps fetching from its service and
drops the newest result into a single-slot mailbox. The main loop
takes from the mailbox without ever blocking on the network.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from http.client import HTTPException
from typing import Any, Callable, Final, Generic, Optional, TypeVar, Union
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import psutil

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOADING: Final[str] = "loading..."
OFFLINE: Final[str] = "[offline]"
INVALID: Final[str] = "[invalid]"

USER_AGENT: Final[str] = "i3weather/1.0"
API_TIMEOUT: Final[int] = 10
BACKOFF_START: Final[float] = 1.0
BACKOFF_LIMIT: Final[float] = 60.0


# ============================================================================
# ERRORS & MESSAGES
# ============================================================================

class FetchError(Exception):
    """Transport or decode failure; ``status`` is shown in the bar as is."""

    def __init__(self, status: str, detail: str = "") -> None:
        super().__init__(detail or status)
        self.status = status


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    status: str


Message = Union[Success[Any], Failure]


# ============================================================================
# MAILBOX
# ============================================================================

class Mailbox(Generic[T]):
    """Single-slot mailbox: a newer value replaces an unread older one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._full = False

    def put(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._full = True

    def take(self) -> Optional[T]:
        """Return the pending value and clear the slot, or None when empty."""
        with self._lock:
            if not self._full:
                return None
            value, self._value, self._full = self._value, None, False
            return value


# ============================================================================
# HTTP
# ============================================================================

def network_available() -> bool:
    """True when at least one non-loopback interface is up."""
    try:
        stats = psutil.net_if_stats()
    except OSError as e:
        logger.debug(f"Cannot read interface stats: {e}")
        return True
    return any(st.isup for name, st in stats.items() if name != "lo")


def fetch_json(url: str, timeout: int = API_TIMEOUT) -> Any:
    """GET ``url`` and decode the JSON body, mapping failures to FetchError."""
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }
    req = Request(url, headers=headers, method="GET")
    try:
        with urlopen(req, timeout=timeout) as response:
            raw = response.read()
    except HTTPError as e:
        raise FetchError(f"[{e.code}]", str(e)) from e
    except (URLError, TimeoutError, OSError, HTTPException) as e:
        raise FetchError(OFFLINE, repr(e)) from e
    try:
        return json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FetchError(INVALID, f"Invalid JSON response: {e}") from e


# ============================================================================
# POLLER
# ============================================================================

class Poller(threading.Thread, Generic[T]):
    """
    Daemon thread that keeps a mailbox filled with the latest fetch result.

    A ``Failure(LOADING)`` is posted before the first request. After a
    success the thread sleeps ``interval`` seconds; after a failure it
    retries with a bounded exponential backoff (1 s doubling up to
    ``min(interval, 60 s)``), which resets on the next success.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], T],
        interval: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"poll interval must be positive: {interval}")
        super().__init__(name=name, daemon=True)
        self.mailbox: Mailbox[Message] = Mailbox()
        self._fetch = fetch
        self._interval = interval
        self._sleep = sleep
        self._backoff = BACKOFF_START

    def poll_once(self) -> float:
        """Fetch once, post the outcome and return the delay before the next try."""
        if not network_available():
            return self._fail(FetchError(OFFLINE, "no network interface is up"))
        try:
            value = self._fetch()
        except FetchError as e:
            return self._fail(e)
        except Exception as e:
            logger.exception(f"{self.name}: unexpected fetch failure")
            return self._fail(FetchError(INVALID, repr(e)))
        self.mailbox.put(Success(value))
        self._backoff = BACKOFF_START
        return self._interval

    def _fail(self, error: FetchError) -> float:
        logger.warning(f"{self.name}: {error}")
        self.mailbox.put(Failure(error.status))
        delay = self._backoff
        self._backoff = min(self._backoff * 2, max(min(self._interval, BACKOFF_LIMIT), BACKOFF_START))
        return delay

    def run(self) -> None:
        self.mailbox.put(Failure(LOADING))
        while True:
            self._sleep(self.poll_once())
