import math

import pytest

from route_engine.models.domain import Coordinates
from route_engine.services.geospatial import (
    EARTH_RADIUS_MILES,
    distance,
    haversine_miles,
    meters_to_miles,
    seconds_to_minutes,
)


def test_haversine_zero_for_same_point():
    assert haversine_miles(42.28, -71.23, 42.28, -71.23) == 0.0


def test_haversine_one_degree_of_latitude():
    expected = EARTH_RADIUS_MILES * math.pi / 180
    assert haversine_miles(42.0, -71.0, 43.0, -71.0) == pytest.approx(expected, rel=1e-9)


def test_distance_is_symmetric():
    needham = Coordinates(42.2809, -71.2378)
    boston = Coordinates(42.3601, -71.0589)
    assert distance(needham, boston) == pytest.approx(distance(boston, needham))
    assert 10 < distance(needham, boston) < 12


def test_unit_conversions():
    assert meters_to_miles(1609.34) == pytest.approx(1.0)
    assert seconds_to_minutes(90) == pytest.approx(1.5)
