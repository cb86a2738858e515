# trackmax/analyze/smoothing.py
"""
Moving-average (SMA/WMA) smoothing of one point metric.

The average at a point uses the (W-1)/2 points before it, the point
itself, and the (W-1)/2 points after it, truncating at either end of the
track. Averages are computed from a snapshot of the raw values, so a
window never sees values that were smoothed earlier in the same pass.

Weights:
- simple:   1 for every point in the window
- weighted: n+1 for the center point, n-i for the i-th neighbour on
            either side (i = 0 for the nearest), where n = (W-1)/2
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from trackmax.analyze.metrics import clamp_grade, compute_grade
from trackmax.analyze.ranges import point_within_range
from trackmax.analyze.track import Track, TrackPoint
from trackmax.config import PipelineConfig, XmaMethod, XmaMetric
from trackmax.util.logging import Diagnostics


@dataclass
class SmoothResult:
    num_changed: int = 0


def get_value(p: TrackPoint, metric: XmaMetric) -> Optional[float]:
    if metric is XmaMetric.ELEVATION:
        return p.elevation
    if metric is XmaMetric.GRADE:
        return p.grade
    if metric is XmaMetric.POWER:
        return None if p.power is None else float(p.power)
    return p.speed


def set_value(p: TrackPoint, metric: XmaMetric, value: float) -> bool:
    """Store `value` into the metric; return True if it changed."""
    if metric is XmaMetric.ELEVATION:
        old, p.elevation = p.elevation, value
    elif metric is XmaMetric.GRADE:
        old, p.grade = p.grade, value
    elif metric is XmaMetric.POWER:
        old, p.power = p.power, int(value)
        value = p.power
    else:
        old, p.speed = p.speed, value
    return value != old


def moving_average(
    values: Sequence[Optional[float]], pos: int, window: int, method: XmaMethod,
) -> Optional[float]:
    """
    SMA/WMA of `values` centered at `pos`.

    Unset (None) values don't take part in the average. Returns None if
    the center value itself is unset.
    """
    center = values[pos]
    if center is None:
        return None

    n = (window - 1) // 2
    weighted = method is XmaMethod.WEIGHTED
    summ = 0.0
    denom = 0

    for i in range(n):
        for j in (pos - 1 - i, pos + 1 + i):
            if j < 0 or j >= len(values) or values[j] is None:
                continue
            weight = (n - i) if weighted else 1
            summ += values[j] * weight
            denom += weight

    weight = (n + 1) if weighted else 1
    summ += center * weight
    denom += weight

    return summ / denom


def smooth(
    track: Track, cfg: PipelineConfig, diag: Diagnostics, *, derived: bool = True,
) -> SmoothResult:
    """
    Replace `cfg.xma_metric` by its moving average at every point in range.

    The first point anchors the track and is left alone. When elevation
    changes on a track whose metrics were already derived (`derived`),
    the point's rise and grade are recomputed from the unchanged run. When
    grade changes, the point is flagged for elevation reconciliation.
    """
    res = SmoothResult()
    metric = cfg.xma_metric
    points = list(track)
    values = [get_value(p, metric) for p in points]

    for pos in range(1, len(points)):
        p = points[pos]
        if not point_within_range(cfg.range, p):
            continue
        avg = moving_average(values, pos, cfg.xma_window, cfg.xma_method)
        if avg is None or not set_value(p, metric, avg):
            continue

        res.num_changed += 1
        if metric is XmaMetric.ELEVATION and derived:
            prev = points[pos - 1]
            if p.run != 0.0:
                p.rise = p.elevation - prev.elevation
            p.grade = compute_grade(p.rise, p.run, prev.grade)
            clamp_grade(p, diag)
        elif metric is XmaMetric.GRADE:
            p.grade_adjusted = True

    if res.num_changed:
        diag.info(
            f"Smoothed {metric.value} at {res.num_changed} TrkPts "
            f"({cfg.xma_method.value} moving average, window={cfg.xma_window})"
        )
    return res
