"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import Coordinates

EARTH_RADIUS_MILES = 3959.0
METERS_PER_MILE = 1609.34


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle miles between two coordinate pairs."""
    return haversine_miles(a.latitude, a.longitude, b.latitude, b.longitude)


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def seconds_to_minutes(seconds: float) -> float:
    return seconds / 60.0
