# trackmax/analyze/grade.py
"""
Grade/speed limiting and elevation reconciliation.

limit_grades() clamps grades (and optionally speed changes) inside the
correction range and flags every point whose grade it touched.

reconcile_elevation() then rebuilds the elevation of each flagged point
from its new grade. The horizontal run computed during metrics
derivation is held fixed; only the vertical component moves:

    rise = run * grade / 100
    dist = sqrt(run^2 + rise^2)
    elevation = previous.elevation + rise
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from trackmax.analyze.ranges import point_within_range
from trackmax.analyze.track import Track
from trackmax.config import PipelineConfig
from trackmax.util.logging import Diagnostics


@dataclass
class LimitResult:
    num_grade_adj: int = 0
    num_speed_adj: int = 0


@dataclass
class ReconcileResult:
    num_elev_adj: int = 0


def limit_grades(track: Track, cfg: PipelineConfig, diag: Diagnostics) -> LimitResult:
    res = LimitResult()
    p1 = track.first()
    p2 = track.next(p1) if p1 is not None else None

    while p2 is not None:
        if not point_within_range(cfg.range, p2):
            p1, p2 = p2, track.next(p2)
            continue

        adjusted = False

        if cfg.max_grade is not None and p2.grade > cfg.max_grade:
            diag.warn(
                f"TrkPt {p2.label()} has a grade of {p2.grade:.2f}% "
                f"that is above the max value {cfg.max_grade:.2f}% !"
            )
            p2.grade = cfg.max_grade
            adjusted = True

        if cfg.min_grade is not None and p2.grade < cfg.min_grade:
            diag.warn(
                f"TrkPt {p2.label()} has a grade of {p2.grade:.2f}% "
                f"that is below the min value {cfg.min_grade:.2f}% !"
            )
            p2.grade = cfg.min_grade
            adjusted = True

        if cfg.max_grade_change:
            delta = abs(p2.grade - p1.grade)
            if delta > cfg.max_grade_change:
                diag.warn(
                    f"TrkPt {p2.label()} has a grade change of {delta:.2f}% "
                    f"that is above the limit {cfg.max_grade_change:.2f}% !"
                )
                if p2.grade > p1.grade:
                    p2.grade = p1.grade + cfg.max_grade_change
                else:
                    p2.grade = p1.grade - cfg.max_grade_change
                adjusted = True

        if adjusted:
            p2.grade_adjusted = True
            res.num_grade_adj += 1

        if cfg.max_speed_change and p2.speed is not None and p1.speed is not None:
            delta = abs(p2.speed - p1.speed)
            if delta > cfg.max_speed_change:
                diag.warn(
                    f"TrkPt {p2.label()} has a speed change of {delta * 3.6:.3f} km/h "
                    f"that is above the limit {cfg.max_speed_change * 3.6:.3f} km/h !"
                )
                if p2.speed > p1.speed:
                    p2.speed = p1.speed + cfg.max_speed_change
                else:
                    p2.speed = p1.speed - cfg.max_speed_change
                res.num_speed_adj += 1

        p1, p2 = p2, track.next(p2)

    return res


def reconcile_elevation(track: Track, diag: Diagnostics) -> ReconcileResult:
    """Make the elevation of every grade-adjusted point agree with its grade."""
    res = ReconcileResult()
    p1 = track.first()
    p2 = track.next(p1) if p1 is not None else None

    while p2 is not None:
        if p2.grade_adjusted:
            p2.rise = p2.run * (p2.grade / 100.0)
            p2.dist = math.sqrt((p2.run * p2.run) + (p2.rise * p2.rise))
            elevation = p1.elevation + p2.rise
            if elevation != p2.elevation:
                p2.elevation = elevation
                res.num_elev_adj += 1
        p1, p2 = p2, track.next(p2)

    if res.num_elev_adj:
        diag.info(f"Adjusted the elevation of {res.num_elev_adj} TrkPts")
    return res


def refresh_grade_deltas(track: Track) -> None:
    """Recompute each point's grade change after the grades settled."""
    p1 = track.first()
    p2 = track.next(p1) if p1 is not None else None
    while p2 is not None:
        p2.grade_delta = abs(p2.grade - p1.grade)
        p1, p2 = p2, track.next(p2)
