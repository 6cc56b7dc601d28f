import heapq
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from .geo import distance_between, estimate_travel_min
from .graph import CampusGraph
from .models import Edge, Location, Route, TransportMode

INF = float("inf")

# Upper bound on Dijkstra attempts made by find_multiple_paths.
MAX_ALTERNATIVE_ATTEMPTS = 3

# Cost model helpers

def edge_cost(edge: Edge, mode: TransportMode) -> float:
    # Closed roads are treated as absent
    if edge.closed:
        return INF
    return edge.travel_time(mode)


def heuristic(current: Location, destination: Location, mode: TransportMode, weight: float = 1.0) -> float:
    return weight * estimate_travel_min(distance_between(current, destination), mode)


def _build_route(source: Location, destination: Location, prev_edge: Dict[Location, Edge], mode: TransportMode) -> Optional[Route]:
    # Walk the relaxing edges back from the destination
    edges_rev: List[Edge] = []
    cur = destination
    while cur != source:
        e = prev_edge.get(cur)
        if e is None:
            return None
        edges_rev.append(e)
        cur = e.source

    route = Route(mode=mode)
    route.add_location(source)
    for e in reversed(edges_rev):
        route.add_location(e.destination)
        route.add_edge(e)
    return route


def dijkstra_costs(
    graph: CampusGraph,
    source: Location,
    mode: TransportMode,
    destination: Optional[Location] = None,
) -> Tuple[Dict[Location, float], Dict[Location, Edge]]:
    """Single-source travel-time table. Stops early once ``destination`` settles."""
    dist: Dict[Location, float] = {source: 0.0}
    prev_edge: Dict[Location, Edge] = {}
    settled = set()

    # (cost, location id) keeps ties deterministic
    pq: List[Tuple[float, str]] = [(0.0, source.id)]

    while pq:
        d, uid = heapq.heappop(pq)
        u = graph.get_location_by_id(uid)
        if u is None or u in settled:
            continue
        if d > dist.get(u, INF):
            continue
        settled.add(u)
        if destination is not None and u == destination:
            break
        for e in graph.get_neighbors(u):
            w = edge_cost(e, mode)
            if not np.isfinite(w):
                continue
            v = e.destination
            nd = d + w
            if nd < dist.get(v, INF):
                dist[v] = nd
                prev_edge[v] = e
                heapq.heappush(pq, (nd, v.id))

    return dist, prev_edge


def dijkstra(graph: CampusGraph, source: Location, destination: Location, mode: TransportMode) -> Optional[Route]:
    if source not in graph or destination not in graph:
        return None
    if source == destination:
        return Route.trivial(source, mode)

    dist, prev_edge = dijkstra_costs(graph, source, mode, destination=destination)
    if destination not in dist:
        return None
    return _build_route(source, destination, prev_edge, mode)


def find_multiple_paths(
    graph: CampusGraph,
    source: Location,
    destination: Location,
    mode: TransportMode,
    max_paths: int = 3,
) -> List[Route]:
    """Optimal route plus "alternatives" from re-running the same search.

    The re-runs see the same edge state, so every alternative repeats the
    first result. Callers dedupe by signature; this is not a k-shortest-paths
    search.
    """
    routes: List[Route] = []
    first = dijkstra(graph, source, destination, mode)
    if first is None:
        return routes
    routes.append(first)

    for _ in range(1, min(max_paths, MAX_ALTERNATIVE_ATTEMPTS)):
        alternative = dijkstra(graph, source, destination, mode)
        if alternative is not None:
            routes.append(alternative)
    return routes


def astar(
    graph: CampusGraph,
    source: Location,
    destination: Location,
    mode: TransportMode,
    heuristic_weight: float = 1.0,
) -> Optional[Route]:
    """A* over travel time with a great-circle heuristic.

    ``heuristic_weight`` scales the estimate; keep it at or below the lowest
    traffic multiplier in effect so the heuristic stays admissible.
    """
    if source not in graph or destination not in graph:
        return None
    if source == destination:
        return Route.trivial(source, mode)

    g_score: Dict[Location, float] = {source: 0.0}
    prev_edge: Dict[Location, Edge] = {}
    closed = set()

    open_set: List[Tuple[float, str]] = [(heuristic(source, destination, mode, heuristic_weight), source.id)]

    while open_set:
        _, uid = heapq.heappop(open_set)
        u = graph.get_location_by_id(uid)
        if u is None:
            continue
        if u == destination:
            return _build_route(source, destination, prev_edge, mode)
        # stale duplicate push
        if u in closed:
            continue
        closed.add(u)

        for e in graph.get_neighbors(u):
            v = e.destination
            if v in closed:
                continue
            w = edge_cost(e, mode)
            if not np.isfinite(w):
                continue
            tentative = g_score[u] + w
            if tentative < g_score.get(v, INF):
                prev_edge[v] = e
                g_score[v] = tentative
                f = tentative + heuristic(v, destination, mode, heuristic_weight)
                heapq.heappush(open_set, (f, v.id))

    return None


@dataclass(eq=False)
class AllPairsResult:
    locations: List[Location]
    distances: np.ndarray  # (n, n) travel minutes, inf where unreachable
    next_hop: np.ndarray  # (n, n) index of the next location, -1 where none
    mode: TransportMode

    def __post_init__(self) -> None:
        self._index = {loc: i for i, loc in enumerate(self.locations)}

    def distance(self, source: Location, destination: Location) -> float:
        i = self._index.get(source)
        j = self._index.get(destination)
        if i is None or j is None:
            return INF
        return float(self.distances[i, j])

    def path(self, source: Location, destination: Location) -> Optional[List[Location]]:
        i = self._index.get(source)
        j = self._index.get(destination)
        if i is None or j is None or not np.isfinite(self.distances[i, j]):
            return None
        path = [source]
        cur = i
        while cur != j:
            cur = int(self.next_hop[cur, j])
            if cur < 0:
                return None
            path.append(self.locations[cur])
        return path

    def route(self, source: Location, destination: Location, graph: CampusGraph) -> Optional[Route]:
        path = self.path(source, destination)
        if path is None:
            return None
        route = Route(mode=self.mode)
        route.add_location(path[0])
        for a, b in zip(path, path[1:]):
            e = _cheapest_open_edge(graph, a, b, self.mode)
            if e is None:
                return None
            route.add_location(b)
            route.add_edge(e)
        return route


def _cheapest_open_edge(graph: CampusGraph, a: Location, b: Location, mode: TransportMode) -> Optional[Edge]:
    best: Optional[Edge] = None
    for e in graph.get_neighbors(a):
        if e.destination != b or e.closed:
            continue
        if best is None or e.travel_time(mode) < best.travel_time(mode):
            best = e
    return best


def floyd_warshall(graph: CampusGraph, mode: TransportMode) -> AllPairsResult:
    """All-pairs travel times, O(V^3). Meant for precompute on small campuses."""
    locations = graph.locations
    n = len(locations)
    index = {loc: i for i, loc in enumerate(locations)}

    dist = np.full((n, n), INF, dtype=float)
    nxt = np.full((n, n), -1, dtype=np.int64)
    np.fill_diagonal(dist, 0.0)
    for i in range(n):
        nxt[i, i] = i

    for i, loc in enumerate(locations):
        for e in graph.get_neighbors(loc):
            w = edge_cost(e, mode)
            if not np.isfinite(w):
                continue
            j = index[e.destination]
            if w < dist[i, j]:
                dist[i, j] = w
                nxt[i, j] = j

    for k in range(n):
        via = dist[:, k, None] + dist[None, k, :]
        better = via < dist
        if better.any():
            dist = np.where(better, via, dist)
            nxt = np.where(better, nxt[:, k, None], nxt)

    return AllPairsResult(locations=locations, distances=dist, next_hop=nxt, mode=mode)
