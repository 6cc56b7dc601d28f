# backend/campus_nav/engine.py
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from .cache import RouteCache, make_cache_key
from .graph import CampusGraph
from .logging_utils import get_logger, log_event
from .metrics import PerformanceMonitor
from .models import (
    CampusStats,
    Location,
    QueryStatus,
    Route,
    RoutePreferences,
    RouteResult,
    TransportMode,
)
from .routing import AllPairsResult, astar, find_multiple_paths, floyd_warshall
from .scoring import ScoreScale, dedupe_routes, select_diverse
from .search import LandmarkSearchEngine
from .settings import Settings
from .settings import settings as default_settings
from .sorting import sort_routes
from .traffic import RouteUpdate, TrafficManager


@dataclass(frozen=True)
class HubRule:
    """Route via a well-known location when either endpoint fits the rule."""

    hub_id: str
    label: str
    categories: FrozenSet[str] = frozenset()
    keywords: FrozenSet[str] = frozenset()

    def applies_to(self, location: Location) -> bool:
        if location.category.lower() in self.categories:
            return True
        return any(k in self.keywords for k in location.keywords)


DEFAULT_HUBS: Tuple[HubRule, ...] = (
    HubRule("SQUARE001", "central hub", frozenset({"residential"}), frozenset({"hall", "hostel"})),
    HubRule("FOOD001", "food court access", frozenset({"residential"}), frozenset({"hall", "hostel"})),
    HubRule("LIB001", "library access", frozenset({"academic"}), frozenset({"department", "faculty"})),
    HubRule("BANK001", "banking access", frozenset({"service"}), frozenset({"bank", "hospital", "clinic"})),
)

Task = Tuple[str, Callable[[], List[Route]]]


class RouteEngine:
    """Answers route queries against one campus graph.

    On a cache miss the engine refreshes traffic, fans the pathfinders out to
    a fixed worker pool, and collects whatever finishes before the deadline.
    Edge state is only written by the refresh, which runs under the compute
    lock before any task is submitted.
    """

    def __init__(
        self,
        graph: CampusGraph,
        settings: Optional[Settings] = None,
        traffic: Optional[TrafficManager] = None,
        cache: Optional[RouteCache] = None,
        monitor: Optional[PerformanceMonitor] = None,
        hubs: Sequence[HubRule] = DEFAULT_HUBS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.graph = graph
        self.settings = settings or default_settings
        self._clock = clock

        if traffic is None and self.settings.traffic_simulation:
            traffic = TrafficManager(
                rng=np.random.default_rng(self.settings.traffic_seed),
                closure_probability=self.settings.closure_probability,
                clock=clock,
                calendar_adjustments=self.settings.calendar_adjustments,
            )
        self.traffic = traffic
        self.cache = cache if cache is not None else RouteCache()
        self.monitor = monitor if monitor is not None else PerformanceMonitor()
        self.hubs = tuple(hubs)
        self.scale = ScoreScale(
            max_time_min=self.settings.score_max_time_min,
            max_distance_m=self.settings.score_max_distance_m,
            max_landmarks=self.settings.score_max_landmarks,
        )

        self.search_engine = LandmarkSearchEngine(graph, route_limit=self.settings.landmark_route_limit)
        self._pool = ThreadPoolExecutor(
            max_workers=self.settings.worker_pool_size,
            thread_name_prefix="campus-nav",
        )
        self._compute_lock = threading.Lock()
        self._closed = False
        self.precomputed: Optional[AllPairsResult] = self._precompute()

        log_event(
            "engine_ready",
            locations=graph.location_count,
            connections=graph.edge_count,
            workers=self.settings.worker_pool_size,
        )

    def _precompute(self) -> Optional[AllPairsResult]:
        if not self.settings.precompute_all_pairs:
            return None
        try:
            with self.monitor.timed("floyd_warshall"):
                return floyd_warshall(self.graph, TransportMode.WALKING)
        except Exception as exc:
            log_event("precompute_failed", level=logging.WARNING, error=str(exc))
            return None

    # Queries

    def query(self, source_id: str, destination_id: str, preferences: Optional[RoutePreferences] = None) -> RouteResult:
        prefs = preferences if preferences is not None else RoutePreferences()
        started = time.perf_counter()
        now = self._clock()
        try:
            result = self._query(source_id, destination_id, prefs, started, now)
        except Exception as exc:
            get_logger().exception(
                "query_failed",
                extra={"event": "query_failed", "source_id": source_id, "destination_id": destination_id},
            )
            result = self._result(
                [], f"Error calculating routes: {exc}", QueryStatus.FAILED, now, started, error=f"{type(exc).__name__}: {exc}"
            )
        self.monitor.record("query", result.duration_ms)
        log_event(
            "query",
            source_id=source_id,
            destination_id=destination_id,
            status=result.status.value,
            routes=len(result.routes),
            duration_ms=round(result.duration_ms, 3),
        )
        return result

    def _query(
        self,
        source_id: str,
        destination_id: str,
        prefs: RoutePreferences,
        started: float,
        now: datetime,
    ) -> RouteResult:
        source = self.graph.get_location_by_id(source_id)
        destination = self.graph.get_location_by_id(destination_id)
        if source is None or destination is None:
            missing = [i for i, loc in ((source_id, source), (destination_id, destination)) if loc is None]
            return self._result(
                [], f"Invalid source or destination location: {', '.join(missing)}", QueryStatus.INVALID_INPUT, now, started
            )
        if source == destination:
            return self._result(
                [Route.trivial(source, prefs.mode)],
                f"Source and destination are the same location: {source.name}",
                QueryStatus.OK,
                now,
                started,
            )

        key = make_cache_key(source_id, destination_id, prefs, now if self.settings.cache_time_bucketing else None)
        cached = self.cache.get(key)
        if cached is not None:
            if not cached:
                return self._result(
                    [], f"No route found from {source.name} to {destination.name}", QueryStatus.CACHED, now, started
                )
            return self._result(
                cached, f"Routes found (cached) - {len(cached)} options available", QueryStatus.CACHED, now, started
            )

        with self._compute_lock:
            if self.traffic is not None:
                with self.monitor.timed("traffic_refresh"):
                    self.traffic.refresh(self.graph)
            candidates = self._collect(self._dispatch(source, destination, prefs))

        routes = dedupe_routes(candidates)
        routes = select_diverse(routes, prefs, self.settings.diversity_threshold, self.scale)
        if prefs.filter is not None:
            routes = self.search_engine.filter_routes(routes, prefs.filter)
        sort_routes(routes, prefs.sort)
        routes = routes[: prefs.max_routes]

        self.cache.set(key, routes)

        if not routes:
            return self._result(
                [], f"No route found from {source.name} to {destination.name}", QueryStatus.NO_ROUTE, now, started
            )
        return self._result(
            routes, f"Routes found successfully from {source.name} to {destination.name}", QueryStatus.OK, now, started
        )

    def _result(
        self,
        routes: List[Route],
        message: str,
        status: QueryStatus,
        now: datetime,
        started: float,
        error: Optional[str] = None,
    ) -> RouteResult:
        return RouteResult(
            routes=routes,
            message=message,
            status=status,
            timestamp=now,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            error=error,
        )

    # Parallel phase

    def _heuristic_weight(self) -> float:
        if self.traffic is None:
            return 1.0
        return min(1.0, self.traffic.min_multiplier)

    def _tasks(self, source: Location, destination: Location, prefs: RoutePreferences) -> List[Task]:
        mode = prefs.mode
        hw = self._heuristic_weight()
        tasks: List[Task] = [
            ("dijkstra", partial(find_multiple_paths, self.graph, source, destination, mode, self.settings.dijkstra_max_paths)),
            ("astar", partial(self._astar_task, source, destination, mode, hw)),
        ]
        if prefs.landmarks:
            tasks.append((
                "landmarks",
                partial(self.search_engine.find_routes_with_landmarks, source, destination, mode, prefs.landmarks, hw),
            ))
        for hub in self.hubs:
            if hub.applies_to(source) or hub.applies_to(destination):
                tasks.append((f"hub:{hub.hub_id}", partial(self._via_hub, hub, source, destination, mode, hw)))
        return tasks

    def _dispatch(self, source: Location, destination: Location, prefs: RoutePreferences) -> List[Tuple[str, Future]]:
        return [(name, self._pool.submit(self._run_task, name, fn)) for name, fn in self._tasks(source, destination, prefs)]

    def _run_task(self, name: str, fn: Callable[[], List[Route]]) -> List[Route]:
        with self.monitor.timed(name):
            return list(fn())

    def _collect(self, futures: List[Tuple[str, Future]]) -> List[Route]:
        # One shared deadline: every task was submitted at the same moment
        deadline = time.monotonic() + self.settings.task_timeout_s
        routes: List[Route] = []
        for name, fut in futures:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                routes.extend(fut.result(timeout=remaining))
            except FutureTimeout:
                fut.cancel()
                log_event("task_timeout", level=logging.WARNING, task=name, timeout_s=self.settings.task_timeout_s)
        return routes

    def _astar_task(self, source: Location, destination: Location, mode: TransportMode, heuristic_weight: float) -> List[Route]:
        route = astar(self.graph, source, destination, mode, heuristic_weight)
        return [route] if route is not None else []

    def _via_hub(
        self,
        hub: HubRule,
        source: Location,
        destination: Location,
        mode: TransportMode,
        heuristic_weight: float,
    ) -> List[Route]:
        via = self.graph.get_location_by_id(hub.hub_id)
        if via is None:
            return []
        first = astar(self.graph, source, via, mode, heuristic_weight)
        if first is None:
            return []
        second = astar(self.graph, via, destination, mode, heuristic_weight)
        if second is None:
            return []
        route = first.concat(second)
        route.add_landmark(hub.label)
        return [route]

    # Everything else

    def search_locations(self, keyword: str) -> List[Location]:
        return self.search_engine.search(keyword)

    def nearest_location(self, lat: float, lon: float) -> Optional[Location]:
        return self.graph.nearest_location(lat, lon)

    def precomputed_route(self, source_id: str, destination_id: str) -> Optional[Route]:
        """Walking route from the construction-time all-pairs table, ignoring later traffic."""
        if self.precomputed is None:
            return None
        source = self.graph.get_location_by_id(source_id)
        destination = self.graph.get_location_by_id(destination_id)
        if source is None or destination is None:
            return None
        return self.precomputed.route(source, destination, self.graph)

    def get_stats(self) -> CampusStats:
        return CampusStats(
            location_count=self.graph.location_count,
            connection_count=self.graph.edge_count,
            cached_route_count=len(self.cache),
        )

    def clear_cache(self) -> None:
        cleared = self.cache.clear()
        log_event("cache_cleared", entries=cleared)

    def get_route_update(self, route_id: str) -> RouteUpdate:
        if self.traffic is None:
            return RouteUpdate(route_id=route_id, conditions={}, update_time=self._clock().strftime("%H:%M:%S"))
        return self.traffic.route_update(route_id)

    def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Bounded wait for in-flight tasks, then drop whatever is still queued
        waiter = threading.Thread(target=self._pool.shutdown, kwargs={"wait": True}, daemon=True)
        waiter.start()
        waiter.join(self.settings.shutdown_timeout_s)
        if waiter.is_alive():
            self._pool.shutdown(wait=False, cancel_futures=True)
            log_event("shutdown_forced", level=logging.WARNING, timeout_s=self.settings.shutdown_timeout_s)
        else:
            log_event("shutdown")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "RouteEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
