# trackmax/analyze/aggregate.py
"""
Final aggregation sweep.

Runs once, after every mutating pass, and collects per-channel extrema
(as point indices), elevation gain/loss and the running sums used for
averages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from trackmax.analyze.track import Extremum, SensorData, Track, TrackPoint

# (channel, sensor bit required, zero excluded from the minimum)
RAW_CHANNELS = (
    ("elevation", SensorData.NONE, False),
    ("temperature", SensorData.ATEMP, False),
    ("cadence", SensorData.CADENCE, True),
    ("heart_rate", SensorData.HR, True),
    ("power", SensorData.POWER, True),
)

DERIVED_CHANNELS = ("grade", "speed", "dist", "delta_time", "grade_delta")

AVERAGED_CHANNELS = ("temperature", "cadence", "heart_rate", "power", "grade")


@dataclass
class AggregateResult:
    maxima: dict[str, Extremum] = field(default_factory=dict)
    minima: dict[str, Extremum] = field(default_factory=dict)
    sums: dict[str, float] = field(default_factory=dict)
    counts: dict[str, int] = field(default_factory=dict)
    elev_gain: float = 0.0
    elev_loss: float = 0.0


def _track_value(res: AggregateResult, channel: str, value, p: TrackPoint, skip_zero_min: bool) -> None:
    best = res.maxima.get(channel)
    if best is None or value > best.value:
        res.maxima[channel] = Extremum(value, p.index)
    if skip_zero_min and value == 0:
        return
    best = res.minima.get(channel)
    if best is None or value < best.value:
        res.minima[channel] = Extremum(value, p.index)


def _accumulate(res: AggregateResult, channel: str, value) -> None:
    if channel in AVERAGED_CHANNELS:
        res.sums[channel] = res.sums.get(channel, 0.0) + value
        res.counts[channel] = res.counts.get(channel, 0) + 1


def aggregate(track: Track) -> AggregateResult:
    res = AggregateResult()
    prev: Optional[TrackPoint] = None

    for p in track:
        for channel, bit, skip_zero_min in RAW_CHANNELS:
            if bit and not (track.in_mask & bit):
                continue
            value = getattr(p, channel)
            if value is None:
                continue
            _track_value(res, channel, value, p, skip_zero_min)
            _accumulate(res, channel, value)

        # Derived values only mean something relative to a predecessor
        if prev is not None:
            for channel in DERIVED_CHANNELS:
                value = getattr(p, channel)
                if value is None:
                    continue
                _track_value(res, channel, value, p, False)
                _accumulate(res, channel, value)

            if p.rise >= 0.0:
                res.elev_gain += p.rise
            else:
                res.elev_loss += abs(p.rise)

        prev = p

    return res
