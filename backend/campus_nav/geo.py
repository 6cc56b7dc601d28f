# Distance helpers used by the A* heuristic and graph validation.
from math import asin, cos, radians, sin, sqrt

from .models import Location, TransportMode

EARTH_RADIUS_M = 6371000.0

# minutes per kilometre
WALKING_MIN_PER_KM = 12.0  # ~5 km/h
DRIVING_MIN_PER_KM = 3.0  # ~20 km/h campus speed


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(sqrt(a))


def distance_between(a: Location, b: Location) -> float:
    return haversine_m(a.lat, a.lon, b.lat, b.lon)


def estimate_walking_min(distance_m: float) -> float:
    return (distance_m / 1000.0) * WALKING_MIN_PER_KM


def estimate_driving_min(distance_m: float) -> float:
    return (distance_m / 1000.0) * DRIVING_MIN_PER_KM


def estimate_travel_min(distance_m: float, mode: TransportMode) -> float:
    if mode is TransportMode.WALKING:
        return estimate_walking_min(distance_m)
    if mode is TransportMode.DRIVING:
        return estimate_driving_min(distance_m)
    raise ValueError(f"Unknown transport mode: {mode!r}")
