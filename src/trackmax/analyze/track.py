# trackmax/analyze/track.py
"""
Track data model for trackmax.

A Track owns an ordered sequence of TrackPoint records. The sequence is
arena-backed: points live in a list in ingestion order and are linked by
prev/next indices, so a point can be unlinked in O(1) while a forward
sweep keeps going from its successor.

Consecutive points define a pseudo-triangle:

                     + P2
                    /|
              dist /  | rise
                  /   |
              P1 +----+
                  run

    grade = rise / run * 100
    dist^2 = run^2 + rise^2
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, Optional


class SensorData(enum.IntFlag):
    """Bitmask of the optional sensor channels present in the input."""

    NONE = 0x00
    ATEMP = 0x01
    CADENCE = 0x02
    HR = 0x04
    POWER = 0x08
    ALL = 0x0F


class ActivityType(enum.IntEnum):
    UNDEF = 0
    RIDE = 1
    HIKE = 4
    RUN = 9
    WALK = 10
    VRIDE = 17
    OTHER = 99

    @classmethod
    def from_name(cls, name: str) -> "ActivityType":
        return cls[name.strip().upper()]


@dataclass
class TrackPoint:
    """
    One recorded (or derived) sample.

    Raw fields are set by the readers and are None when the input did not
    carry them. Derived fields are filled in by the pipeline passes.
    """

    index: int
    source_file: str = ""
    source_line: int = 0

    # Raw fields
    timestamp: Optional[float] = None   # seconds since the Epoch
    latitude: float = 0.0               # decimal degrees
    longitude: float = 0.0              # decimal degrees
    elevation: Optional[float] = None   # meters
    temperature: Optional[int] = None   # ambient, degrees C
    cadence: Optional[int] = None       # RPM
    heart_rate: Optional[int] = None    # BPM
    power: Optional[int] = None         # watts
    speed: Optional[float] = None       # m/s
    distance: Optional[float] = None    # meters from start
    grade: Optional[float] = None       # percent

    # Derived fields
    delta_time: float = 0.0
    dist: float = 0.0
    rise: float = 0.0
    run: float = 0.0
    bearing: float = 0.0
    grade_adjusted: bool = False
    grade_delta: float = 0.0

    def label(self) -> str:
        """Point reference used in diagnostics, e.g. '#12 (ride.gpx:104)'."""
        return f"#{self.index} ({self.source_file}:{self.source_line})"

    def describe(self) -> str:
        return (
            f"TrkPt {self.label()}: time={self.timestamp} lat={self.latitude:.10f} "
            f"lon={self.longitude:.10f} ele={self.elevation} distance={self.distance} "
            f"dist={self.dist:.3f} run={self.run:.3f} rise={self.rise:.3f} "
            f"deltaT={self.delta_time:.3f} speed={self.speed} grade={self.grade}"
        )


@dataclass
class Extremum:
    """A max/min value and the index of the point holding it."""

    value: float
    index: int


@dataclass
class Track:
    """
    The whole-activity aggregate.

    Counters and running totals are folded in by the pipeline orchestrator
    from the per-pass results; extrema are only set by the aggregation pass.
    """

    # Counters
    num_dup_points: int = 0
    num_trim_points: int = 0
    num_disc_points: int = 0
    num_elev_adj: int = 0
    num_speed_adj: int = 0

    in_mask: SensorData = SensorData.NONE
    activity_type: ActivityType = ActivityType.UNDEF

    # Times
    start_time: float = 0.0
    end_time: float = 0.0
    base_time: float = 0.0
    time_offset: float = 0.0

    # Running totals
    distance: float = 0.0
    time: float = 0.0
    stopped_time: float = 0.0
    elev_gain: float = 0.0
    elev_loss: float = 0.0

    # Paranoia values maintained by metrics derivation
    max_delta_d: Optional[Extremum] = None
    max_delta_t: Optional[Extremum] = None

    # Set by the aggregation pass
    maxima: dict[str, Extremum] = field(default_factory=dict)
    minima: dict[str, Extremum] = field(default_factory=dict)
    sums: dict[str, float] = field(default_factory=dict)
    counts: dict[str, int] = field(default_factory=dict)

    _points: list[TrackPoint] = field(default_factory=list, repr=False)
    _prev: list[int] = field(default_factory=list, repr=False)
    _next: list[int] = field(default_factory=list, repr=False)
    _alive: list[bool] = field(default_factory=list, repr=False)
    _head: int = field(default=-1, repr=False)
    _tail: int = field(default=-1, repr=False)
    _size: int = field(default=0, repr=False)

    # ------------------------------------------------------------------
    # Sequence primitives
    # ------------------------------------------------------------------
    def new_point(self, source_file: str = "", source_line: int = 0) -> TrackPoint:
        """Create a point with the next dense index and append it."""
        p = TrackPoint(index=len(self._points), source_file=source_file, source_line=source_line)
        self.append(p)
        return p

    def append(self, point: TrackPoint) -> None:
        if point.index != len(self._points):
            raise ValueError(
                f"TrackPoint index {point.index} does not match arena slot {len(self._points)}"
            )
        slot = point.index
        self._points.append(point)
        self._prev.append(self._tail)
        self._next.append(-1)
        self._alive.append(True)
        if self._tail >= 0:
            self._next[self._tail] = slot
        else:
            self._head = slot
        self._tail = slot
        self._size += 1

    def remove(self, point: TrackPoint) -> Optional[TrackPoint]:
        """Unlink `point` and return its successor (successor-first removal)."""
        slot = point.index
        if not self._alive[slot]:
            raise ValueError(f"TrackPoint {point.label()} was already removed")
        prv, nxt = self._prev[slot], self._next[slot]
        if prv >= 0:
            self._next[prv] = nxt
        else:
            self._head = nxt
        if nxt >= 0:
            self._prev[nxt] = prv
        else:
            self._tail = prv
        self._alive[slot] = False
        self._size -= 1
        return self._points[nxt] if nxt >= 0 else None

    def first(self) -> Optional[TrackPoint]:
        return self._points[self._head] if self._head >= 0 else None

    def last(self) -> Optional[TrackPoint]:
        return self._points[self._tail] if self._tail >= 0 else None

    def next(self, point: TrackPoint) -> Optional[TrackPoint]:
        nxt = self._next[point.index]
        return self._points[nxt] if nxt >= 0 else None

    def prev(self, point: TrackPoint) -> Optional[TrackPoint]:
        prv = self._prev[point.index]
        return self._points[prv] if prv >= 0 else None

    def point(self, index: int) -> TrackPoint:
        """Resolve a back-reference (point index) to its TrackPoint."""
        return self._points[index]

    def is_alive(self, point: TrackPoint) -> bool:
        return self._alive[point.index]

    def __iter__(self) -> Iterator[TrackPoint]:
        slot = self._head
        while slot >= 0:
            yield self._points[slot]
            slot = self._next[slot]

    def __len__(self) -> int:
        return self._size

    @property
    def num_points(self) -> int:
        return self._size

    @property
    def num_points_read(self) -> int:
        """Points ingested, including the ones removed since."""
        return len(self._points)

    # ------------------------------------------------------------------
    # Derived summary values
    # ------------------------------------------------------------------
    @property
    def moving_time(self) -> float:
        return self.time - self.stopped_time

    @property
    def avg_speed(self) -> float:
        return (self.distance / self.time) if self.time else 0.0

    def average(self, channel: str) -> Optional[float]:
        """Average of a channel over the points that carried it."""
        n = self.counts.get(channel, 0)
        if not n:
            return None
        return self.sums.get(channel, 0.0) / n


def dump_points(track: Track, point: TrackPoint, before: int = 2, after: int = 0) -> str:
    """Render `point` and its neighbours, one per line, for SPONG diagnostics."""
    start = point
    for _ in range(before):
        prv = track.prev(start)
        if prv is None:
            break
        start = prv

    lines = []
    p: Optional[TrackPoint] = start
    while p is not None:
        lines.append(p.describe())
        if p is point:
            break
        p = track.next(p)

    p = track.next(point)
    for _ in range(after):
        if p is None:
            break
        lines.append(p.describe())
        p = track.next(p)

    return "\n".join(lines)
