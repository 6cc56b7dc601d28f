from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .models import (
    CampusStats,
    Location,
    QueryStatus,
    Route,
    RouteFilter,
    RoutePreferences,
    RouteResult,
    SortCriterion,
    TransportMode,
)


class Weights(BaseModel):
    time: float = 0.5
    distance: float = 0.3
    landmarks: float = 0.2


class FilterIn(BaseModel):
    max_distance_m: float = Field(default=0.0, ge=0)
    max_time_min: float = Field(default=0.0, ge=0)
    min_landmarks: int = Field(default=0, ge=0)
    required_landmarks: List[str] = []
    avoided_landmarks: List[str] = []
    accessible_only: bool = False

    def to_filter(self) -> RouteFilter:
        return RouteFilter(
            max_distance_m=self.max_distance_m,
            max_time_min=self.max_time_min,
            min_landmarks=self.min_landmarks,
            required_landmarks=tuple(self.required_landmarks),
            avoided_landmarks=tuple(self.avoided_landmarks),
            accessible_only=self.accessible_only,
        )


class Prefs(BaseModel):
    mode: TransportMode = TransportMode.WALKING
    sort: SortCriterion = SortCriterion.TIME
    max_routes: int = Field(default=3, ge=1, le=10)
    landmarks: List[str] = []
    filter: Optional[FilterIn] = None
    weights: Weights = Field(default_factory=Weights)

    def to_preferences(self) -> RoutePreferences:
        return RoutePreferences(
            mode=self.mode,
            sort=self.sort,
            max_routes=self.max_routes,
            landmarks=tuple(self.landmarks),
            filter=self.filter.to_filter() if self.filter else None,
            time_weight=self.weights.time,
            distance_weight=self.weights.distance,
            landmark_weight=self.weights.landmarks,
        )


class RouteRequest(BaseModel):
    campus_key: str
    source_id: str
    destination_id: str
    prefs: Prefs = Field(default_factory=Prefs)


class LocationOut(BaseModel):
    id: str
    name: str
    lat: float
    lon: float
    category: str
    keywords: List[str] = []

    @classmethod
    def from_location(cls, loc: Location) -> "LocationOut":
        return cls(id=loc.id, name=loc.name, lat=loc.lat, lon=loc.lon, category=loc.category, keywords=list(loc.keywords))


class Step(BaseModel):
    from_id: str
    to_id: str
    road_name: str
    distance_m: float
    time_min: float


class RouteOut(BaseModel):
    mode: TransportMode
    path: List[str]
    steps: List[Step]
    distance_m: float
    time_min: float
    formatted_distance: str
    formatted_time: str
    landmarks: List[str]
    accessible: bool
    # GeoJSON LineString, [lon, lat] pairs
    geometry: Dict

    @classmethod
    def from_route(cls, r: Route) -> "RouteOut":
        return cls(
            mode=r.mode,
            path=r.path_ids,
            steps=[
                Step(
                    from_id=e.source.id,
                    to_id=e.destination.id,
                    road_name=e.road_name,
                    distance_m=e.distance_m,
                    time_min=e.travel_time(r.mode),
                )
                for e in r.edges
            ],
            distance_m=r.distance_m,
            time_min=r.total_time,
            formatted_distance=r.formatted_distance,
            formatted_time=r.formatted_time,
            landmarks=list(r.landmarks),
            accessible=r.is_accessible,
            geometry={"type": "LineString", "coordinates": [[loc.lon, loc.lat] for loc in r.path]},
        )


class RouteResponse(BaseModel):
    routes: List[RouteOut]
    message: str
    status: QueryStatus
    timestamp: datetime
    duration_ms: float
    error: Optional[str] = None
    meta: Dict = {}

    @classmethod
    def from_result(cls, result: RouteResult, meta: Optional[Dict] = None) -> "RouteResponse":
        return cls(
            routes=[RouteOut.from_route(r) for r in result.routes],
            message=result.message,
            status=result.status,
            timestamp=result.timestamp,
            duration_ms=result.duration_ms,
            error=result.error,
            meta=meta or {},
        )


class StatsOut(BaseModel):
    location_count: int
    connection_count: int
    cached_route_count: int
    performance: Dict[str, Dict[str, float]] = {}

    @classmethod
    def from_stats(cls, stats: CampusStats, performance: Dict[str, Dict[str, float]]) -> "StatsOut":
        return cls(
            location_count=stats.location_count,
            connection_count=stats.connection_count,
            cached_route_count=stats.cached_route_count,
            performance=performance,
        )


class TrafficOut(BaseModel):
    route_id: str
    update_time: str
    conditions: Dict[str, float]
    alerts: List[str]
