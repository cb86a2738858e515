# trackmax/formats/options.py
"""
Options and small helpers shared by every writer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from trackmax.analyze.track import ActivityType, SensorData, Track, TrackPoint
from trackmax.config import OutputFormat, TimeFormat


@dataclass(frozen=True)
class OutputOptions:
    """
    How to render a finalized Track.

    - out_mask: the optional channels to include (a channel is written
      only if it is also present in the input)
    - activity_type: overrides the one read from the input
    - command_line: echoed in the GPX <desc>
    - now: epoch seconds used for metadata times (defaults to the clock)
    """

    format: OutputFormat = OutputFormat.GPX
    name: Optional[str] = None
    activity_type: Optional[ActivityType] = None
    out_mask: SensorData = SensorData.ALL
    rel_time: TimeFormat = TimeFormat.NONE
    command_line: str = ""
    now: Optional[float] = None

    def now_ts(self) -> float:
        return self.now if self.now is not None else time.time()


def channel_enabled(track: Track, opts: OutputOptions, bit: SensorData) -> bool:
    return bool((track.in_mask & bit) and (opts.out_mask & bit))


def resolve_activity_type(track: Track, opts: OutputOptions) -> ActivityType:
    """CLI override, then the input's type, then ride."""
    if opts.activity_type is not None and opts.activity_type is not ActivityType.UNDEF:
        return opts.activity_type
    if track.activity_type is not ActivityType.UNDEF:
        return track.activity_type
    return ActivityType.RIDE


def point_time(track: Track, p: TrackPoint) -> float:
    """Absolute timestamp of `p`, shifted to the requested start time."""
    return p.timestamp + track.time_offset


def fmt_hms(seconds: float) -> str:
    total = int(seconds)
    hr = total // 3600
    mins = (total - hr * 3600) // 60
    sec = total - hr * 3600 - mins * 60
    return f"{hr:02d}:{mins:02d}:{sec:02d}"


def fmt_rel_time(seconds: float, fmt: TimeFormat) -> str:
    if fmt is TimeFormat.HMS:
        return fmt_hms(seconds)
    return str(int(seconds))


def m_to_km(meters: Optional[float]) -> float:
    return (meters or 0.0) / 1000.0


def mps_to_kph(mps: Optional[float]) -> float:
    return (mps or 0.0) * 3.6


def int_or_zero(v: Optional[int]) -> int:
    return int(v) if v is not None else 0
