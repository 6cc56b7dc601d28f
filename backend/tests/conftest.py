from datetime import datetime

import pytest

from backend.campus_nav.graph import CampusGraph
from backend.campus_nav.models import Edge, Location
from backend.campus_nav.settings import Settings

# Small grid campus around (5.650, -0.190). Grid steps are ~111 m, every
# edge is at least that long and no faster than 12 min/km walking or
# 3 min/km driving, so the A* heuristic stays admissible.
LOCATIONS = [
    ("LIB001", "Balme Library", 5.650, -0.190, "academic", ["library", "books", "study"]),
    ("GH001", "Great Hall", 5.650, -0.189, "academic", ["hall", "ceremony"]),
    ("CBAS001", "CBAS Building", 5.651, -0.190, "academic", ["computer science", "cbas"]),
    ("BANK001", "GCB Bank", 5.651, -0.189, "service", ["bank", "atm"]),
    ("CLINIC001", "University Clinic", 5.652, -0.189, "service", ["clinic", "medical"]),
    ("SPORT001", "Sports Complex", 5.652, -0.190, "recreational", ["sports", "gym"]),
]

EDGES = [
    ("LIB001", "GH001", 120.0, 1.5, 0.40, "University Avenue"),
    ("LIB001", "CBAS001", 130.0, 1.7, 0.45, "Library Road"),
    ("GH001", "BANK001", 120.0, 1.5, 0.40, "University Avenue"),
    ("CBAS001", "BANK001", 125.0, 1.6, 0.42, "Service Lane"),
    ("BANK001", "CLINIC001", 120.0, 1.5, 0.40, "Health Center Road"),
    ("CBAS001", "SPORT001", 140.0, 1.8, 0.50, "Sports Road"),
    ("SPORT001", "CLINIC001", 150.0, 1.9, 0.50, "Sports Road"),
]

FIXED_NOW = datetime(2026, 3, 2, 10, 0, 0)


def build_campus() -> CampusGraph:
    g = CampusGraph()
    for loc_id, name, lat, lon, category, keywords in LOCATIONS:
        g.add_location(Location(loc_id, name, lat, lon, category, list(keywords)))
    for u, v, dist, walk, drive, road in EDGES:
        g.add_edge(Edge(g.get_location_by_id(u), g.get_location_by_id(v), dist, walk, drive, road))
    return g


@pytest.fixture
def campus() -> CampusGraph:
    return build_campus()


@pytest.fixture
def quiet_settings() -> Settings:
    # No simulated traffic: edge state only changes when a test changes it
    return Settings(
        traffic_simulation=False,
        task_timeout_s=2.0,
        shutdown_timeout_s=2.0,
        worker_pool_size=4,
    )


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def campus_factory():
    return build_campus
