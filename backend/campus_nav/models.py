# backend/campus_nav/models.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class TransportMode(str, Enum):
    WALKING = "walking"
    DRIVING = "driving"


class SortCriterion(str, Enum):
    TIME = "time"
    DISTANCE = "distance"
    LANDMARKS = "landmarks"
    COMPOSITE = "composite"
    ADAPTIVE = "adaptive"


class QueryStatus(str, Enum):
    OK = "ok"
    CACHED = "cached"
    INVALID_INPUT = "invalid_input"
    NO_ROUTE = "no_route"
    FAILED = "failed"


@dataclass(eq=False)
class Location:
    id: str
    name: str
    lat: float
    lon: float
    category: str = ""
    keywords: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.keywords = [k.lower() for k in self.keywords]

    def add_keyword(self, keyword: str) -> None:
        self.keywords.append(keyword.lower())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"{self.name} ({self.category})"


@dataclass(eq=False)
class Edge:
    source: Location
    destination: Location
    distance_m: float
    base_walking_min: float
    base_driving_min: float
    road_name: str = ""
    accessible: bool = True
    closed: bool = False
    traffic_multiplier: float = 1.0

    @property
    def walking_min(self) -> float:
        return self.base_walking_min * self.traffic_multiplier

    @property
    def driving_min(self) -> float:
        return self.base_driving_min * self.traffic_multiplier

    def travel_time(self, mode: TransportMode) -> float:
        if mode is TransportMode.WALKING:
            return self.walking_min
        if mode is TransportMode.DRIVING:
            return self.driving_min
        raise ValueError(f"Unknown transport mode: {mode!r}")

    def reversed(self) -> "Edge":
        # Independent record: closing one direction must not close the other.
        return Edge(
            source=self.destination,
            destination=self.source,
            distance_m=self.distance_m,
            base_walking_min=self.base_walking_min,
            base_driving_min=self.base_driving_min,
            road_name=self.road_name,
            accessible=self.accessible,
            traffic_multiplier=self.traffic_multiplier,
        )

    def __str__(self) -> str:
        return f"{self.source.name} -> {self.destination.name} ({self.distance_m:.0f}m, {self.road_name})"


@dataclass(eq=False)
class Route:
    """An ordered walk through the graph plus its accumulated cost.

    Totals are summed as edges are appended, so a route keeps the traffic
    state that was current when it was built even if the graph is refreshed
    afterwards.
    """

    mode: TransportMode
    path: List[Location] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    distance_m: float = 0.0
    walking_min: float = 0.0
    driving_min: float = 0.0
    landmarks: List[str] = field(default_factory=list)

    @classmethod
    def trivial(cls, location: Location, mode: TransportMode) -> "Route":
        return cls(mode=mode, path=[location])

    def add_location(self, location: Location) -> None:
        self.path.append(location)

    def add_edge(self, edge: Edge) -> None:
        self.edges.append(edge)
        self.distance_m += edge.distance_m
        self.walking_min += edge.walking_min
        self.driving_min += edge.driving_min

    def add_landmark(self, landmark: str) -> None:
        if landmark not in self.landmarks:
            self.landmarks.append(landmark)

    @property
    def total_time(self) -> float:
        if self.mode is TransportMode.WALKING:
            return self.walking_min
        if self.mode is TransportMode.DRIVING:
            return self.driving_min
        raise ValueError(f"Unknown transport mode: {self.mode!r}")

    @property
    def path_ids(self) -> List[str]:
        return [loc.id for loc in self.path]

    @property
    def signature(self) -> str:
        return f"{self.mode.value}:" + "->".join(self.path_ids)

    @property
    def is_accessible(self) -> bool:
        return all(e.accessible for e in self.edges)

    @property
    def formatted_distance(self) -> str:
        if self.distance_m >= 1000:
            return f"{self.distance_m / 1000:.2f} km"
        return f"{self.distance_m:.0f} m"

    @property
    def formatted_time(self) -> str:
        t = self.total_time
        hours = int(t // 60)
        minutes = int(t % 60)
        if hours > 0:
            return f"{hours} hr {minutes} min"
        return f"{minutes} min"

    def concat(self, other: "Route") -> "Route":
        """Join two legs that meet at ``other.path[0]``."""
        if self.path and other.path and self.path[-1] != other.path[0]:
            raise ValueError("Route legs do not share a junction location")
        combined = Route(mode=self.mode)
        for loc in self.path:
            combined.add_location(loc)
        for loc in other.path[1:]:
            combined.add_location(loc)
        for e in self.edges + other.edges:
            combined.add_edge(e)
        return combined

    def __str__(self) -> str:
        names = " -> ".join(loc.name for loc in self.path)
        return f"Route ({self.mode.value}): {self.formatted_distance}, {self.formatted_time} via {names}"


@dataclass
class RouteFilter:
    # Zero disables a numeric bound.
    max_distance_m: float = 0.0
    max_time_min: float = 0.0
    min_landmarks: int = 0
    required_landmarks: Tuple[str, ...] = ()
    avoided_landmarks: Tuple[str, ...] = ()
    accessible_only: bool = False

    def __post_init__(self) -> None:
        # tuples keep the filter hashable as part of a cache key
        self.required_landmarks = tuple(self.required_landmarks or ())
        self.avoided_landmarks = tuple(self.avoided_landmarks or ())


@dataclass
class RoutePreferences:
    mode: TransportMode = TransportMode.WALKING
    sort: SortCriterion = SortCriterion.TIME
    max_routes: int = 3
    landmarks: Tuple[str, ...] = ()
    filter: Optional[RouteFilter] = None
    time_weight: float = 0.5
    distance_weight: float = 0.3
    landmark_weight: float = 0.2

    def __post_init__(self) -> None:
        # Accept raw strings from callers; unknown values raise ValueError.
        self.mode = TransportMode(self.mode)
        self.sort = SortCriterion(self.sort)
        self.landmarks = tuple(self.landmarks or ())


@dataclass
class RouteResult:
    routes: List[Route]
    message: str
    status: QueryStatus
    timestamp: datetime = field(default_factory=datetime.now)
    duration_ms: float = 0.0
    error: Optional[str] = None

    @property
    def has_routes(self) -> bool:
        return bool(self.routes)

    @property
    def cached(self) -> bool:
        return self.status is QueryStatus.CACHED


@dataclass(frozen=True)
class CampusStats:
    location_count: int
    connection_count: int
    cached_route_count: int
