# backend/campus_nav/search.py
from typing import Dict, Iterable, List, Sequence, Set

from .graph import CampusGraph
from .models import Location, Route, RouteFilter, TransportMode
from .routing import astar, find_multiple_paths
from .sorting import by_time, mergesort

MIN_NAME_WORD = 3
MIN_FUZZY_KEY = 4
MAX_EDIT_DISTANCE = 2
DEFAULT_ROUTE_LIMIT = 3


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur[j] = prev[j - 1]
            else:
                cur[j] = 1 + min(prev[j], cur[j - 1], prev[j - 1])
        prev = cur
    return prev[-1]


def location_matches_term(location: Location, term: str) -> bool:
    t = term.lower()
    return t in location.keywords or t in location.name.lower() or t in location.category.lower()


def dedupe_by_path(routes: Iterable[Route]) -> List[Route]:
    seen: Set[str] = set()
    unique: List[Route] = []
    for r in routes:
        sig = "->".join(r.path_ids)
        if sig not in seen:
            seen.add(sig)
            unique.append(r)
    return unique


class LandmarkSearchEngine:
    """Inverted keyword index with substring and edit-distance lookup."""

    def __init__(self, graph: CampusGraph, route_limit: int = DEFAULT_ROUTE_LIMIT) -> None:
        self.graph = graph
        self.route_limit = route_limit
        self._index: Dict[str, Set[Location]] = {}
        self._build_index()

    def _build_index(self) -> None:
        for loc in self.graph.locations:
            for kw in loc.keywords:
                self._index.setdefault(kw.lower(), set()).add(loc)
            if loc.category:
                self._index.setdefault(loc.category.lower(), set()).add(loc)
            for word in loc.name.lower().split():
                if len(word) >= MIN_NAME_WORD:
                    self._index.setdefault(word, set()).add(loc)

    @property
    def indexed_terms(self) -> List[str]:
        return sorted(self._index)

    def find_locations(self, term: str) -> Set[Location]:
        needle = term.lower().strip()
        if not needle:
            return set()

        results: Set[Location] = set()
        exact = self._index.get(needle)
        if exact:
            results |= exact
        for key, locs in self._index.items():
            if key in needle or needle in key:
                results |= locs
            elif len(key) >= MIN_FUZZY_KEY and levenshtein(needle, key) <= MAX_EDIT_DISTANCE:
                results |= locs
        return results

    def search(self, term: str) -> List[Location]:
        return sorted(self.find_locations(term), key=lambda loc: (loc.name, loc.id))

    def find_routes_with_landmarks(
        self,
        source: Location,
        destination: Location,
        mode: TransportMode,
        terms: Sequence[str],
        heuristic_weight: float = 1.0,
    ) -> List[Route]:
        candidates: Set[Location] = set()
        for term in terms:
            candidates |= self.find_locations(term)

        if not candidates:
            # nothing resolved, fall back to direct routes
            return find_multiple_paths(self.graph, source, destination, mode, self.route_limit)

        routes: List[Route] = []
        for landmark in sorted(candidates, key=lambda loc: loc.id):
            to_landmark = astar(self.graph, source, landmark, mode, heuristic_weight)
            if to_landmark is None:
                continue
            from_landmark = astar(self.graph, landmark, destination, mode, heuristic_weight)
            if from_landmark is None:
                continue
            combined = to_landmark.concat(from_landmark)
            for term in terms:
                if location_matches_term(landmark, term):
                    combined.add_landmark(term)
            routes.append(combined)

        routes = dedupe_by_path(routes)
        mergesort(routes, by_time)
        return routes[: self.route_limit]

    def filter_routes(self, routes: Iterable[Route], route_filter: RouteFilter) -> List[Route]:
        return [r for r in routes if route_passes(r, route_filter)]


def route_passes(route: Route, f: RouteFilter) -> bool:
    if f.max_distance_m > 0 and route.distance_m > f.max_distance_m:
        return False
    if f.max_time_min > 0 and route.total_time > f.max_time_min:
        return False
    if f.min_landmarks > 0 and len(route.landmarks) < f.min_landmarks:
        return False
    if any(req not in route.landmarks for req in f.required_landmarks):
        return False
    if any(avoid in route.landmarks for avoid in f.avoided_landmarks):
        return False
    if f.accessible_only and not route.is_accessible:
        return False
    return True
