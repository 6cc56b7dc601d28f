# backend/campus_nav/graph.py
from typing import Dict, Iterator, List, Optional

import numpy as np
from scipy.spatial import cKDTree

from .models import Edge, Location


class CampusGraph:
    """Adjacency-list road network.

    Every ``add_edge`` also stores an independent reverse record, so the
    network is logically undirected while closures and traffic stay
    per-direction.
    """

    def __init__(self) -> None:
        self._adjacency: Dict[Location, List[Edge]] = {}
        self._by_id: Dict[str, Location] = {}
        self._by_keyword: Dict[str, List[Location]] = {}
        # built lazily for coordinate snapping
        self._kdtree: Optional[cKDTree] = None
        self._kdtree_order: List[Location] = []

    def add_location(self, location: Location) -> None:
        if location.id in self._by_id:
            return
        self._adjacency[location] = []
        self._by_id[location.id] = location
        for keyword in location.keywords:
            self._by_keyword.setdefault(keyword.lower(), []).append(location)
        self._kdtree = None

    def add_edge(self, edge: Edge) -> None:
        for end in (edge.source, edge.destination):
            if end.id not in self._by_id:
                raise ValueError(f"Location '{end.id}' is not registered in the graph")
        self._adjacency[edge.source].append(edge)
        self._adjacency[edge.destination].append(edge.reversed())

    def get_neighbors(self, location: Location) -> List[Edge]:
        return self._adjacency.get(location, [])

    def get_location_by_id(self, location_id: str) -> Optional[Location]:
        return self._by_id.get(location_id)

    def get_locations_by_keyword(self, keyword: str) -> List[Location]:
        return list(self._by_keyword.get(keyword.lower(), []))

    def find_edge(self, source: Location, destination: Location) -> Optional[Edge]:
        for e in self.get_neighbors(source):
            if e.destination == destination:
                return e
        return None

    def update_traffic_conditions(self, source: Location, destination: Location, multiplier: float) -> bool:
        e = self.find_edge(source, destination)
        if e is None:
            return False
        e.traffic_multiplier = multiplier
        return True

    def set_road_closure(self, source: Location, destination: Location, closed: bool) -> bool:
        e = self.find_edge(source, destination)
        if e is None:
            return False
        e.closed = closed
        return True

    @property
    def locations(self) -> List[Location]:
        return list(self._adjacency.keys())

    def all_edges(self) -> Iterator[Edge]:
        for edges in self._adjacency.values():
            yield from edges

    @property
    def location_count(self) -> int:
        return len(self._adjacency)

    @property
    def edge_count(self) -> int:
        # each road is stored once per direction
        return sum(len(edges) for edges in self._adjacency.values()) // 2

    def nearest_location(self, lat: float, lon: float) -> Optional[Location]:
        if not self._adjacency:
            return None
        if self._kdtree is None:
            self._kdtree_order = self.locations
            pts = np.array([[loc.lat, loc.lon] for loc in self._kdtree_order], dtype=float)
            self._kdtree = cKDTree(pts)
        _, idx = self._kdtree.query([lat, lon], k=1)
        return self._kdtree_order[int(idx)]

    def __contains__(self, location: object) -> bool:
        return location in self._adjacency
