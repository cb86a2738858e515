# trackmax/analyze/ranges.py
"""
Point-range predicate used to scope corrections to part of a track.
"""

from __future__ import annotations

from typing import Optional

from trackmax.analyze.track import TrackPoint


def point_within_range(bounds: Optional[tuple[int, int]], p: TrackPoint) -> bool:
    """True if no range was given, or if `p.index` lies in the inclusive range."""
    if bounds is None:
        return True
    lo, hi = bounds
    return lo <= p.index <= hi
