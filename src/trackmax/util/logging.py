# trackmax/util/logging.py
"""
Diagnostic output for trackmax.

Everything here goes to stderr: stdout is reserved for the rendered
output document.
"""

from __future__ import annotations

import datetime
import sys
from dataclasses import dataclass, field

INFO = "INFO"
WARNING = "WARNING"
SPONG = "SPONG"


def log(msg: str) -> None:
    """Print a timestamped log line (local time with timezone) to stderr."""
    ts = datetime.datetime.now().astimezone().isoformat(timespec="seconds")
    print(f"{ts}  {msg}", file=sys.stderr)


@dataclass
class Diagnostics:
    """
    Collects the diagnostics emitted while processing one track.

    Every message is kept in `messages` so callers (and tests) can see
    what happened after the fact. Unless `quiet` is set, each message is
    also logged as it is emitted. SPONG messages flag internal invariant
    violations and are logged even in quiet mode.
    """

    quiet: bool = False
    messages: list[tuple[str, str]] = field(default_factory=list)

    def _emit(self, level: str, msg: str, *, force: bool = False) -> None:
        self.messages.append((level, msg))
        if force or not self.quiet:
            log(f"{level}: {msg}")

    def info(self, msg: str) -> None:
        self._emit(INFO, msg)

    def warn(self, msg: str) -> None:
        self._emit(WARNING, msg)

    def spong(self, msg: str, dump: str = "") -> None:
        self._emit(SPONG, f"{msg}\n{dump}" if dump else msg, force=True)

    def count(self, level: str) -> int:
        return sum(1 for lvl, _ in self.messages if lvl == level)
