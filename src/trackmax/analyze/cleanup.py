# trackmax/analyze/cleanup.py
"""
Validation / cleanup passes.

check_points() sweeps (previous, current) pairs and removes duplicate,
non-monotonic and trimmed-out points. Each removed point is counted under
exactly one reason, so that:

    points in == points out + duplicates + trimmed + discarded

close_time_gap() splices an idle period out of the timeline without
removing any points.
"""

from __future__ import annotations

from dataclasses import dataclass

from trackmax.analyze.track import Track, TrackPoint
from trackmax.config import PipelineConfig
from trackmax.errors import MissingElevationError, MissingTimestampError
from trackmax.util.logging import Diagnostics

# Nominal time between samples left in place when a gap is closed
NOMINAL_SAMPLE_INTERVAL = 1.0


@dataclass
class CleanupResult:
    num_dup: int = 0
    num_trim: int = 0
    num_disc: int = 0
    trimmed_time: float = 0.0
    trimmed_distance: float = 0.0


def _is_duplicate(p1: TrackPoint, p2: TrackPoint) -> bool:
    return (
        p2.latitude == p1.latitude
        and p2.longitude == p1.longitude
        and p2.elevation == p1.elevation
    )


def check_points(track: Track, cfg: PipelineConfig, diag: Diagnostics) -> CleanupResult:
    """
    Validate and clean up the raw point sequence in place.

    Raises MissingElevationError / MissingTimestampError on points the
    pipeline can't work with. Everything else is handled by discarding
    the offending point.
    """
    res = CleanupResult()
    p1 = track.first()
    p2 = track.next(p1) if p1 is not None else None

    trimming = False
    trim_done = False
    baseline = None     # last point before the trim range

    while p2 is not None:
        # Without elevation data, there isn't much we can do!
        if p2.elevation is None:
            raise MissingElevationError(f"TrkPt {p2.label()} is missing its elevation data")

        # Points without a timestamp are only allowed when turning a
        # route into a ride, where the average speed drives the timing.
        if p2.timestamp is None and not cfg.set_speed:
            raise MissingTimestampError(f"TrkPt {p2.label()} is missing its date/time data")

        # Close the gap left by a completed trim before comparing
        if trim_done:
            if p2.timestamp is not None:
                p2.timestamp -= res.trimmed_time
            if p2.distance:
                p2.distance -= res.trimmed_distance

        reason = None
        if not cfg.verbatim:
            # Multi-lap files often repeat the last point of lap N as
            # the first point of lap N+1.
            if _is_duplicate(p1, p2):
                reason = "dup"
                diag.info(f"Discarding duplicate TrkPt {p2.label()}")
            elif (p2.timestamp is not None and p1.timestamp is not None
                  and p2.timestamp <= p1.timestamp):
                reason = "disc"
                diag.info(f"TrkPt {p2.label()} has a non-increasing timestamp value: {p2.timestamp:.3f}")
            # A zero distance means the device had no value to report
            elif (p2.distance and p1.distance is not None
                  and p2.distance <= p1.distance):
                reason = "disc"
                diag.info(f"TrkPt {p2.label()} has a non-increasing distance value: {p2.distance:.3f}")

        if cfg.trim is not None:
            trim_from, trim_to = cfg.trim
            in_trim = False
            if p2.index == trim_from:
                diag.info(f"Start trimming at TrkPt {p2.label()}")
                trimming = True
                in_trim = True
                baseline = p1
            elif p2.index == trim_to and trimming:
                diag.info(f"Stop trimming at TrkPt {p2.label()}")
                trimming = False
                trim_done = True
                in_trim = True
                if p2.timestamp is not None and baseline.timestamp is not None:
                    res.trimmed_time = p2.timestamp - baseline.timestamp
                if p2.distance and baseline.distance is not None:
                    res.trimmed_distance = p2.distance - baseline.distance
            elif trimming:
                in_trim = True
            if in_trim and reason is None:
                reason = "trim"

        if reason is None:
            p1, p2 = p2, track.next(p2)
            continue

        if reason == "dup":
            res.num_dup += 1
        elif reason == "trim":
            res.num_trim += 1
        else:
            res.num_disc += 1
        p2 = track.remove(p2)

    return res


def close_time_gap(track: Track, cfg: PipelineConfig, diag: Diagnostics) -> float:
    """
    Close the time gap in front of point `cfg.close_gap`.

    The gap minus one nominal sample interval is subtracted from the
    timestamp of the target point and every point after it. Returns the
    amount of time removed.
    """
    p1 = track.first()
    p2 = track.next(p1) if p1 is not None else None
    gap = None

    while p2 is not None:
        if gap is None and p2.index == cfg.close_gap:
            if p1.timestamp is None or p2.timestamp is None:
                diag.warn(f"Can't close the time gap at TrkPt {p2.label()}: no timestamps")
                return 0.0
            gap = p2.timestamp - p1.timestamp - NOMINAL_SAMPLE_INTERVAL
            if gap <= 0.0:
                diag.info(f"No time gap to close at TrkPt {p2.label()}")
                return 0.0
            diag.info(f"Closing {gap:.3f} s time gap at TrkPt {p2.label()}")

        if gap is not None and p2.timestamp is not None:
            p2.timestamp -= gap

        p1, p2 = p2, track.next(p2)

    if gap is None:
        diag.warn(f"TrkPt #{cfg.close_gap} not found; no time gap closed")
        return 0.0
    return gap
