import math

from app.domain.common.geo import EARTH_RADIUS_M, distance_meters, offset_coordinates
from app.store.models import Coordinates


def test_distance_to_self_is_zero():
    for lat, lon in [(0, 0), (45.0, -75.0), (89.9999, 179.9999), (-33.86, 151.2)]:
        p = Coordinates(latitude=lat, longitude=lon)
        assert distance_meters(p, p) == 0.0


def test_distance_is_symmetric():
    a = Coordinates(latitude=45.4215, longitude=-75.6972)
    b = Coordinates(latitude=43.6532, longitude=-79.3832)
    assert distance_meters(a, b) == distance_meters(b, a)
    # Ottawa -> Toronto, roughly 352 km
    assert 345_000 < distance_meters(a, b) < 360_000


def test_near_identical_points_are_not_nan():
    a = Coordinates(latitude=45.0, longitude=-75.0)
    b = Coordinates(latitude=45.0 + 1e-12, longitude=-75.0)
    d = distance_meters(a, b)
    assert not math.isnan(d)
    assert d < 1e-3


def test_antipodal_points_give_half_circumference():
    a = Coordinates(latitude=0.0, longitude=0.0)
    b = Coordinates(latitude=0.0, longitude=180.0)
    d = distance_meters(a, b)
    assert not math.isnan(d)
    assert math.isclose(d, math.pi * EARTH_RADIUS_M, rel_tol=1e-9)


def test_offset_round_trips_through_distance():
    origin = Coordinates(latitude=45.0, longitude=-75.0)
    moved = offset_coordinates(origin, 10.0, 0.0)
    assert math.isclose(distance_meters(origin, moved), 10.0, rel_tol=1e-6)
    moved = offset_coordinates(origin, 0.0, 40.0)
    assert math.isclose(distance_meters(origin, moved), 40.0, rel_tol=1e-4)
