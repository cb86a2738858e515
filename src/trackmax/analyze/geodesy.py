# trackmax/analyze/geodesy.py
"""
Great-circle helpers for trackmax.

Distances use the haversine package for the central angle and scale it by
a fixed Earth mean radius, so results are reproducible across haversine
releases (which use a different default radius).

See:
  https://en.wikipedia.org/wiki/Haversine_formula
  https://www.movable-type.co.uk/scripts/latlong.html
"""

from __future__ import annotations

import math

from haversine import Unit, haversine

EARTH_MEAN_RADIUS_M = 6372797.560856
DEG_TO_RAD = math.pi / 180.0


def distance(p1, p2) -> float:
    """
    Great-circle distance (in meters) between two points.

    `p1` and `p2` are anything with `latitude`/`longitude` attributes in
    decimal degrees. The haversine term is a sum of squares and of products
    of cosines of latitudes in [-90, 90], so it can't go negative.
    """
    central_angle = haversine(
        (p1.latitude, p1.longitude),
        (p2.latitude, p2.longitude),
        unit=Unit.RADIANS,
    )
    return EARTH_MEAN_RADIUS_M * central_angle


def bearing(p1, p2) -> float:
    """Initial bearing (forward azimuth) from p1 to p2, in degrees [0, 360)."""
    phi1 = p1.latitude * DEG_TO_RAD
    phi2 = p2.latitude * DEG_TO_RAD
    delta_lambda = (p2.longitude - p1.longitude) * DEG_TO_RAD
    x = math.sin(delta_lambda) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    theta = math.atan2(x, y)
    return math.fmod(theta / DEG_TO_RAD + 360.0, 360.0)
