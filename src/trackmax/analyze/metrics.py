# trackmax/analyze/metrics.py
"""
Metrics derivation pass.

For each (previous, current) pair this computes rise, run, dist, the
cumulative distance, deltaT (synthesizing timestamps for routes), speed,
grade, bearing and the grade change. Every value depends on the
predecessor's derived values, so this is a strict left-to-right sweep.

Two input shapes are handled:
- distance-aware: the device reported a cumulative distance (TCX), so
  dist comes from it and run is derived with Pythagoras;
- GPS-only: run is the great-circle distance and dist is derived from it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from trackmax.analyze.geodesy import bearing, distance
from trackmax.analyze.track import Extremum, Track, TrackPoint, dump_points
from trackmax.config import PipelineConfig
from trackmax.util.logging import Diagnostics

GRADE_LIMIT = 99.9


@dataclass
class MetricsResult:
    num_disc: int = 0
    distance: float = 0.0
    time: float = 0.0
    stopped_time: float = 0.0
    end_time: float = 0.0
    max_delta_d: Optional[Extremum] = None
    max_delta_t: Optional[Extremum] = None


def compute_grade(rise: float, run: float, prev_grade: float) -> float:
    """rise/run in percent; carry over the previous grade when run is 0."""
    if run != 0.0:
        return (rise * 100.0) / run
    return prev_grade


def clamp_grade(p: TrackPoint, diag: Diagnostics) -> None:
    if p.grade > GRADE_LIMIT or p.grade < -GRADE_LIMIT:
        diag.warn(f"TrkPt {p.label()} has an implausible grade of {p.grade:.2f}% (clamped)")
        p.grade = max(-GRADE_LIMIT, min(GRADE_LIMIT, p.grade))


def _anchor(p: TrackPoint) -> None:
    """Give the first point zero-valued derived fields to build on."""
    if p.distance is None:
        p.distance = 0.0
    if p.speed is None:
        p.speed = 0.0
    if p.grade is None:
        p.grade = 0.0


def _carry_over(p1: TrackPoint, p2: TrackPoint) -> None:
    p2.bearing = p1.bearing
    p2.distance = p1.distance
    p2.grade = p1.grade
    p2.speed = p1.speed
    p2.dist = 0.0
    p2.run = 0.0


def derive_metrics(track: Track, cfg: PipelineConfig, diag: Diagnostics) -> MetricsResult:
    """Compute the derived fields of every point in place."""
    res = MetricsResult()
    p1 = track.first()
    if p1 is None:
        return res
    _anchor(p1)
    if p1.timestamp is not None:
        res.end_time = p1.timestamp
    p2 = track.next(p1)

    while p2 is not None:
        # Elevation difference (can be negative)
        p2.rise = p2.elevation - p1.elevation
        abs_rise = abs(p2.rise)

        stopped = False
        # A zero cumulative distance is treated as unset
        if p2.distance:
            p2.dist = p2.distance - p1.distance
            if p2.dist == 0.0:
                stopped = True
                what = "distance"
            elif p2.dist > abs_rise:
                p2.run = math.sqrt((p2.dist * p2.dist) - (abs_rise * abs_rise))
            else:
                # GPS elevation noise: assume a near-zero grade
                diag.warn(
                    f"TrkPt {p2.label()} has inconsistent dist={p2.dist:.3f} and rise={abs_rise:.3f} values"
                )
                p2.run = p2.dist
        else:
            p2.run = distance(p1, p2)
            if p2.run == 0.0:
                stopped = True
                what = "run"
            else:
                if abs_rise == 0.0:
                    p2.dist = p2.run
                else:
                    p2.dist = math.sqrt((p2.run * p2.run) + (abs_rise * abs_rise))
                p2.distance = p1.distance + p2.dist

        if stopped:
            if not cfg.verbatim:
                diag.warn(f"TrkPt {p2.label()} has a null {what} value")
                res.num_disc += 1
                p2 = track.remove(p2)
                continue

            # Keep the stopped sample, carrying over the previous values
            _carry_over(p1, p2)
            if p2.timestamp is None:
                p2.timestamp = p1.timestamp
            p2.delta_time = p2.timestamp - p1.timestamp
            p2.grade_delta = 0.0
            res.time += p2.delta_time
            res.stopped_time += p2.delta_time
            res.end_time = p2.timestamp
            p1, p2 = p2, track.next(p2)
            continue

        # Paranoia?
        if p2.distance < p1.distance:
            diag.spong(
                f"TrkPt {p2.label()} has a non-increasing distance ! "
                f"dist={p2.dist:.10f} run={p2.run:.10f} absRise={abs_rise:.10f}",
                dump_points(track, p2, 2, 0),
            )

        if res.max_delta_d is None or p2.dist > res.max_delta_d.value:
            res.max_delta_d = Extremum(p2.dist, p2.index)

        # Route into ride: time the point from the desired average speed
        if p2.timestamp is None:
            p2.delta_time = p2.dist / cfg.set_speed
            p2.timestamp = p1.timestamp + p2.delta_time

        p2.delta_time = p2.timestamp - p1.timestamp

        # Paranoia?
        if p2.delta_time <= 0.0:
            diag.spong(
                f"TrkPt {p2.label()} has a non-increasing timestamp ! "
                f"dist={p2.dist:.10f} deltaT={p2.delta_time:.3f}",
                dump_points(track, p2, 2, 0),
            )

        if res.max_delta_t is None or p2.delta_time > res.max_delta_t.value:
            res.max_delta_t = Extremum(p2.delta_time, p2.index)

        if not p2.speed:
            if p2.delta_time > 0.0:
                p2.speed = p2.dist / p2.delta_time
            else:
                p2.speed = p1.speed
            if p2.speed > cfg.speed_warn_threshold:
                diag.warn(
                    f"TrkPt {p2.label()} has an implausible speed of {p2.speed * 3.6:.3f} km/h "
                    f"(dist={p2.dist:.3f} deltaT={p2.delta_time:.3f})"
                )

        res.distance += p2.dist
        res.time += p2.delta_time

        # Grade as rise over run; the value may get updated later
        if p2.grade is None:
            p2.grade = compute_grade(p2.rise, p2.run, p1.grade)
        clamp_grade(p2, diag)

        p2.bearing = bearing(p1, p2)
        p2.grade_delta = abs(p2.grade - p1.grade)

        res.end_time = p2.timestamp

        p1, p2 = p2, track.next(p2)

    return res
