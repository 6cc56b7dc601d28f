import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from backend.campus_nav.engine import DEFAULT_HUBS, HubRule, RouteEngine
from backend.campus_nav.models import Location, QueryStatus, RouteFilter, RoutePreferences
from backend.campus_nav.settings import Settings

OPTIMAL = ["LIB001", "GH001", "BANK001", "CLINIC001"]
VIA_SPORTS = ["LIB001", "CBAS001", "SPORT001", "CLINIC001"]


@pytest.fixture
def engine(campus, quiet_settings, fixed_clock):
    eng = RouteEngine(campus, settings=quiet_settings, clock=fixed_clock)
    yield eng
    eng.shutdown()


def test_walking_query_finds_optimal_route(engine):
    result = engine.query("LIB001", "CLINIC001", RoutePreferences(mode="walking", sort="time", max_routes=3))

    assert result.status is QueryStatus.OK
    assert result.message == "Routes found successfully from Balme Library to University Clinic"
    assert len(result.routes) == 1
    route = result.routes[0]
    assert route.path_ids == OPTIMAL
    assert route.total_time == pytest.approx(4.5)
    assert route.distance_m == pytest.approx(360.0)
    assert result.duration_ms >= 0.0
    assert result.error is None


def test_second_identical_query_is_served_from_cache(engine):
    first = engine.query("LIB001", "CLINIC001")
    second = engine.query("LIB001", "CLINIC001")

    assert second.status is QueryStatus.CACHED
    assert second.cached
    assert second.message == "Routes found (cached) - 1 options available"
    assert [r.signature for r in second.routes] == [r.signature for r in first.routes]
    assert engine.cache.snapshot()["hits"] == 1
    assert engine.monitor.count("dijkstra") == 1


def test_unknown_location_is_invalid_input(engine):
    result = engine.query("LIB001", "NOPE")

    assert result.status is QueryStatus.INVALID_INPUT
    assert "NOPE" in result.message
    assert result.routes == []
    assert len(engine.cache) == 0


def test_same_location_gives_trivial_route(engine):
    result = engine.query("LIB001", "LIB001")

    assert result.status is QueryStatus.OK
    assert result.message == "Source and destination are the same location: Balme Library"
    assert len(result.routes) == 1
    assert result.routes[0].path_ids == ["LIB001"]
    assert result.routes[0].total_time == 0.0


def test_unreachable_destination_is_no_route(campus, engine):
    clinic = campus.get_location_by_id("CLINIC001")
    campus.set_road_closure(campus.get_location_by_id("BANK001"), clinic, True)
    campus.set_road_closure(campus.get_location_by_id("SPORT001"), clinic, True)

    result = engine.query("LIB001", "CLINIC001")

    assert result.status is QueryStatus.NO_ROUTE
    assert result.message == "No route found from Balme Library to University Clinic"
    assert result.routes == []
    # the empty answer is cached too
    again = engine.query("LIB001", "CLINIC001")
    assert again.status is QueryStatus.CACHED
    assert again.message == "No route found from Balme Library to University Clinic"
    assert again.routes == []


def test_closing_a_road_changes_the_route(campus, engine):
    campus.set_road_closure(campus.get_location_by_id("GH001"), campus.get_location_by_id("BANK001"), True)

    result = engine.query("LIB001", "CLINIC001")

    assert result.routes[0].path_ids == ["LIB001", "CBAS001", "BANK001", "CLINIC001"]
    assert result.routes[0].total_time == pytest.approx(4.8)


def test_landmark_query_adds_a_landmark_route(engine):
    result = engine.query("LIB001", "CLINIC001", RoutePreferences(landmarks=("sports",), max_routes=3))

    assert result.status is QueryStatus.OK
    assert [r.path_ids for r in result.routes] == [OPTIMAL, VIA_SPORTS]
    assert result.routes[1].landmarks == ["sports"]


def test_diversity_selection_prefers_composite_score(engine):
    # the landmark bonus outweighs the extra 0.9 min
    result = engine.query("LIB001", "CLINIC001", RoutePreferences(landmarks=("sports",), max_routes=1))

    assert len(result.routes) == 1
    assert result.routes[0].path_ids == VIA_SPORTS


def test_score_weights_are_part_of_the_cache_key(engine):
    balanced = engine.query("LIB001", "CLINIC001", RoutePreferences(landmarks=("sports",), max_routes=1))
    time_only = engine.query(
        "LIB001",
        "CLINIC001",
        RoutePreferences(landmarks=("sports",), max_routes=1, time_weight=1.0, distance_weight=0.0, landmark_weight=0.0),
    )

    assert balanced.routes[0].path_ids == VIA_SPORTS
    assert time_only.status is QueryStatus.OK
    assert time_only.routes[0].path_ids == OPTIMAL


def test_sort_by_landmarks(engine):
    result = engine.query("LIB001", "CLINIC001", RoutePreferences(landmarks=("sports",), sort="landmarks"))

    assert result.routes[0].landmarks == ["sports"]


def test_filter_is_applied_after_selection(engine):
    prefs = RoutePreferences(landmarks=("sports",), filter=RouteFilter(required_landmarks=("sports",)))
    result = engine.query("LIB001", "CLINIC001", prefs)

    assert [r.path_ids for r in result.routes] == [VIA_SPORTS]


def test_filter_accepts_landmark_lists(engine):
    prefs = RoutePreferences(landmarks=["sports"], filter=RouteFilter(required_landmarks=["sports"]))

    result = engine.query("LIB001", "CLINIC001", prefs)

    assert result.status is QueryStatus.OK
    assert [r.path_ids for r in result.routes] == [VIA_SPORTS]
    assert engine.query("LIB001", "CLINIC001", prefs).status is QueryStatus.CACHED


def test_filter_that_rejects_everything_is_no_route(engine):
    result = engine.query("LIB001", "CLINIC001", RoutePreferences(filter=RouteFilter(max_time_min=1.0)))

    assert result.status is QueryStatus.NO_ROUTE


def test_hub_routes_are_dispatched_for_matching_categories(campus, quiet_settings, fixed_clock):
    hub = HubRule("SPORT001", "gym access", frozenset({"service"}))
    with RouteEngine(campus, settings=quiet_settings, hubs=(hub,), clock=fixed_clock) as eng:
        result = eng.query("LIB001", "CLINIC001", RoutePreferences(max_routes=3))

    assert [r.path_ids for r in result.routes] == [OPTIMAL, VIA_SPORTS]
    assert result.routes[1].landmarks == ["gym access"]
    assert eng.closed


def test_hub_rule_matching():
    by_category, library = DEFAULT_HUBS[0], DEFAULT_HUBS[2]
    hostel = Location("H1", "Volta Hall", 0.0, 0.0, "residential", ["hall"])
    office = Location("O1", "Registry", 0.0, 0.0, "administrative", ["faculty"])

    assert by_category.applies_to(hostel)
    assert not by_category.applies_to(office)
    assert library.applies_to(office)


def test_missing_hub_location_is_skipped(campus, quiet_settings, fixed_clock):
    hub = HubRule("NOWHERE", "ghost", frozenset({"academic"}))
    with RouteEngine(campus, settings=quiet_settings, hubs=(hub,), clock=fixed_clock) as eng:
        result = eng.query("LIB001", "CLINIC001")

    assert [r.path_ids for r in result.routes] == [OPTIMAL]


def test_slow_task_is_dropped_after_timeout(campus, fixed_clock, monkeypatch):
    release = threading.Event()

    def slow_astar(*args, **kwargs):
        release.wait(5)
        return None

    monkeypatch.setattr("backend.campus_nav.engine.astar", slow_astar)
    settings = Settings(traffic_simulation=False, task_timeout_s=0.2, shutdown_timeout_s=2.0)
    eng = RouteEngine(campus, settings=settings, hubs=(), clock=fixed_clock)
    try:
        result = eng.query("LIB001", "CLINIC001")
    finally:
        release.set()
        eng.shutdown()

    assert result.status is QueryStatus.OK
    assert [r.path_ids for r in result.routes] == [OPTIMAL]


def test_task_failure_reports_failed(campus, quiet_settings, fixed_clock, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("backend.campus_nav.engine.find_multiple_paths", broken)
    with RouteEngine(campus, settings=quiet_settings, hubs=(), clock=fixed_clock) as eng:
        result = eng.query("LIB001", "CLINIC001")

        assert result.status is QueryStatus.FAILED
        assert result.message == "Error calculating routes: boom"
        assert result.error == "RuntimeError: boom"
        assert result.routes == []
        assert len(eng.cache) == 0


def test_failed_precompute_does_not_stop_the_engine(campus, quiet_settings, fixed_clock, monkeypatch):
    def broken(*args, **kwargs):
        raise MemoryError("matrix too large")

    monkeypatch.setattr("backend.campus_nav.engine.floyd_warshall", broken)
    with RouteEngine(campus, settings=quiet_settings, clock=fixed_clock) as eng:
        assert eng.precomputed is None
        assert eng.precomputed_route("LIB001", "CLINIC001") is None
        result = eng.query("LIB001", "CLINIC001")

    assert result.status is QueryStatus.OK
    assert result.routes[0].path_ids == OPTIMAL


def test_traffic_simulation_refreshes_before_searching(campus, fixed_clock):
    settings = Settings(traffic_simulation=True, closure_probability=0.0, traffic_seed=42)
    with RouteEngine(campus, settings=settings, clock=fixed_clock) as eng:
        result = eng.query("LIB001", "CLINIC001")
        update = eng.get_route_update("current")

    assert result.status is QueryStatus.OK
    # 10:00 is a busy hour: base 1.2 with +/-20% jitter
    assert result.routes[0].total_time >= 4.5 * 1.2 * 0.8 - 1e-9
    assert all(0.96 - 1e-9 <= e.traffic_multiplier <= 1.44 for e in campus.all_edges())
    assert update.update_time == "10:00:00"
    assert update.conditions


def test_route_update_without_traffic(engine):
    update = engine.get_route_update("r7")

    assert update.route_id == "r7"
    assert update.conditions == {}
    assert update.alerts == []
    assert update.update_time == "10:00:00"


def test_stats_and_clear_cache(engine):
    assert engine.get_stats().cached_route_count == 0

    engine.query("LIB001", "CLINIC001")
    stats = engine.get_stats()

    assert stats.location_count == 6
    assert stats.connection_count == 7
    assert stats.cached_route_count == 1

    engine.clear_cache()
    assert engine.get_stats().cached_route_count == 0
    assert engine.query("LIB001", "CLINIC001").status is QueryStatus.OK


def test_precomputed_walking_route(engine):
    route = engine.precomputed_route("LIB001", "CLINIC001")

    assert route.path_ids == OPTIMAL
    assert route.total_time == pytest.approx(4.5)
    assert engine.precomputed_route("LIB001", "NOPE") is None


def test_precompute_can_be_disabled(campus, fixed_clock):
    settings = Settings(traffic_simulation=False, precompute_all_pairs=False)
    with RouteEngine(campus, settings=settings, clock=fixed_clock) as eng:
        assert eng.precomputed is None
        assert eng.precomputed_route("LIB001", "CLINIC001") is None


def test_search_and_nearest(engine):
    assert [loc.id for loc in engine.search_locations("libary")] == ["LIB001"]
    assert engine.nearest_location(5.6519, -0.1901).id == "SPORT001"


def test_monitor_counts_queries_and_tasks(engine):
    engine.query("LIB001", "CLINIC001")
    snap = engine.monitor.snapshot()

    assert snap["query"]["count"] == 1
    assert snap["dijkstra"]["count"] == 1
    assert snap["astar"]["count"] == 1
    assert snap["floyd_warshall"]["count"] == 1


def test_concurrent_queries_agree(engine):
    pairs = [("LIB001", "CLINIC001"), ("SPORT001", "LIB001"), ("CBAS001", "BANK001"), ("CLINIC001", "LIB001")] * 3

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(lambda p: engine.query(*p), pairs))

    assert all(r.status in (QueryStatus.OK, QueryStatus.CACHED) for r in results)
    by_pair = {}
    for pair, r in zip(pairs, results):
        by_pair.setdefault(pair, set()).add(tuple(r.routes[0].path_ids))
    assert all(len(paths) == 1 for paths in by_pair.values())


def test_shutdown_is_idempotent_and_blocks_new_work(engine):
    engine.shutdown()
    engine.shutdown()

    assert engine.closed
    result = engine.query("LIB001", "CLINIC001")
    assert result.status is QueryStatus.FAILED
