# app/domain/common/geo.py
from __future__ import annotations

import math
from typing import Tuple

from app.store.models import Coordinates

EARTH_RADIUS_M = 6_371_000.0


def distance_meters(a: Coordinates, b: Coordinates) -> float:
    """
    Great-circle distance (Haversine).
    Clamps the intermediate term to [0, 1] so identical points give 0.0 and
    antipodal points give half the circumference instead of NaN.
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def offset_coordinates(origin: Coordinates, north_m: float, east_m: float) -> Coordinates:
    """
    Move `origin` by a small planar offset in meters.
    Good enough for zone-sized distances (hundreds of meters).
    """
    dlat = math.degrees(north_m / EARTH_RADIUS_M)
    cos_lat = math.cos(math.radians(origin.latitude))
    # avoid blowing up at the poles
    dlon = math.degrees(east_m / (EARTH_RADIUS_M * max(cos_lat, 1e-9)))
    lon = origin.longitude + dlon
    lon = ((lon + 180.0) % 360.0) - 180.0
    lat = max(-90.0, min(90.0, origin.latitude + dlat))
    return Coordinates(latitude=lat, longitude=lon)


def polar_offset(origin: Coordinates, distance_m: float, bearing_rad: float) -> Coordinates:
    return offset_coordinates(origin, distance_m * math.cos(bearing_rad), distance_m * math.sin(bearing_rad))


def interpolate(a: Coordinates, b: Coordinates, frac: float) -> Coordinates:
    frac = min(1.0, max(0.0, frac))
    return Coordinates(
        latitude=a.latitude + (b.latitude - a.latitude) * frac,
        longitude=a.longitude + (b.longitude - a.longitude) * frac,
    )


def planar_vector(a: Coordinates, b: Coordinates) -> Tuple[float, float]:
    """
    Planar (north_m, east_m) vector from a to b.
    """
    north = math.radians(b.latitude - a.latitude) * EARTH_RADIUS_M
    east = math.radians(b.longitude - a.longitude) * EARTH_RADIUS_M * math.cos(math.radians(a.latitude))
    return north, east
