"""
i3bar protocol splicer.

i3status writes a header (``{"version":1}`` and ``[``) followed by one
JSON array of status blocks per line, every line after the first
prefixed with a comma. We insert one block per line and pass every
other line through untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Final, Optional, TextIO

logger = logging.getLogger(__name__)

HEADER: Final[tuple[str, ...]] = ('{"version":1}', "[")
SEPARATOR: Final[str] = ","


class NotStatusLine(ValueError):
    """Raised when a line does not hold an array of status blocks."""


@dataclass(frozen=True)
class StatusRecord:
    """One status block; optional fields are left out of the wire form."""
    name: str
    full_text: str
    markup: str = "none"
    instance: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def from_json(cls, data: Any) -> StatusRecord:
        if not isinstance(data, dict):
            raise NotStatusLine(f"block is not an object: {data!r}")
        for key in ("name", "markup", "full_text"):
            if not isinstance(data.get(key), str):
                raise NotStatusLine(f"block without string {key!r}")
        for key in ("instance", "color"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise NotStatusLine(f"block with non-string {key!r}")
        return cls(
            name=data["name"],
            full_text=data["full_text"],
            markup=data["markup"],
            instance=data.get("instance"),
            color=data.get("color"),
        )

    def to_json(self) -> dict[str, str]:
        out = {"name": self.name}
        if self.instance is not None:
            out["instance"] = self.instance
        out["markup"] = self.markup
        if self.color is not None:
            out["color"] = self.color
        out["full_text"] = self.full_text
        return out


def parse_records(payload: str) -> list[StatusRecord]:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise NotStatusLine(str(e)) from e
    if not isinstance(data, list):
        raise NotStatusLine(f"not an array: {type(data).__name__}")
    return [StatusRecord.from_json(item) for item in data]


def dump_records(records: list[StatusRecord]) -> str:
    return json.dumps([r.to_json() for r in records], ensure_ascii=False, separators=(",", ":"))


def split_line_end(line: str) -> tuple[str, str]:
    """Split ``line`` into its body and its line terminator (possibly empty)."""
    body = line.rstrip("\r\n")
    return body, line[len(body):]


class Splicer:
    """Inserts a named block into every status line read from i3status."""

    def __init__(self, out: TextIO, name: str, position: int = 0, reverse: bool = False) -> None:
        self.out = out
        self.name = name
        self.position = position
        self.reverse = reverse
        self._clamp_reported = False

    def begin(self, inp: TextIO) -> None:
        """Copy the two protocol header lines to the output verbatim."""
        for expected in HEADER:
            line = inp.readline()
            if not line:
                return
            if split_line_end(line)[0] != expected:
                logger.warning(f"Unexpected protocol header line: {line.rstrip()!r}")
            self._emit(line)

    def insertion_index(self, count: int) -> int:
        """Index for the new block in a list of ``count`` blocks, clamped into range."""
        if self.reverse:
            index = count - self.position
        else:
            index = self.position
        if 0 <= index <= count:
            return index
        if not self._clamp_reported:
            side = "right" if self.reverse else "left"
            logger.warning(
                f"Position {self.position} from the {side} is out of range for "
                f"{count} status blocks, clamping"
            )
            self._clamp_reported = True
        return max(0, min(index, count))

    def splice(self, line: str, text: str) -> str:
        """Return ``line`` with the block inserted, or unchanged if it is no status array."""
        body, end = split_line_end(line)
        prefix = ""
        payload = body
        if payload.startswith(SEPARATOR):
            prefix, payload = SEPARATOR, payload[1:]
        try:
            records = parse_records(payload)
        except NotStatusLine as e:
            logger.debug(f"Passing line through: {e}")
            return line
        block = StatusRecord(name=self.name, full_text=text, markup="none")
        records.insert(self.insertion_index(len(records)), block)
        return f"{prefix}{dump_records(records)}{end}"

    def update(self, inp: TextIO, text: str) -> bool:
        """Read, splice and emit one line; False once the input is exhausted."""
        line = inp.readline()
        if not line:
            return False
        self._emit(self.splice(line, text))
        return True

    def _emit(self, line: str) -> None:
        self.out.write(line)
        self.out.flush()
