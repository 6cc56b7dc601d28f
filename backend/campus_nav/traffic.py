# backend/campus_nav/traffic.py
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .graph import CampusGraph
from .logging_utils import log_event
from .models import Edge

PEAK_MULTIPLIER = 1.5
BUSY_MULTIPLIER = 1.2
OFF_PEAK_MULTIPLIER = 1.0

JITTER_LOW = 0.8
JITTER_HIGH = 1.2

DEFAULT_CLOSURE_PROBABILITY = 0.02
HEAVY_TRAFFIC_THRESHOLD = 1.3

# Campus calendar
WEEKEND_FACTOR = 0.7
EXAM_MONTHS = (4, 5, 11, 12)
EXAM_LIBRARY_FACTOR = 1.5
EVENT_DAY_INTERVAL = 15
EVENT_CLOSURE_PROBABILITY = 0.3
LIBRARY_ID = "LIB001"
EVENT_VENUE_ID = "GH001"


def base_multiplier(hour: int) -> float:
    # Peak: 8-9 AM and 5-6 PM
    if 8 <= hour <= 9 or 17 <= hour <= 18:
        return PEAK_MULTIPLIER
    # Busy: 7-11 AM and 2-7 PM
    if 7 <= hour <= 11 or 14 <= hour <= 19:
        return BUSY_MULTIPLIER
    return OFF_PEAK_MULTIPLIER


@dataclass
class RouteUpdate:
    route_id: str
    conditions: Dict[str, float]
    update_time: str
    alerts: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.alerts:
            self.alerts = [
                f"Heavy traffic on {road}"
                for road, multiplier in sorted(self.conditions.items())
                if multiplier > HEAVY_TRAFFIC_THRESHOLD
            ]


class TrafficManager:
    """Simulated congestion and closures, applied once per query cycle.

    With ``calendar_adjustments`` on, the hourly profile is further shaped by
    the campus calendar: lighter traffic at weekends, a busier library in exam
    months and occasional closures around the event venue on event days.
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        closure_probability: float = DEFAULT_CLOSURE_PROBABILITY,
        clock: Callable[[], datetime] = datetime.now,
        calendar_adjustments: bool = True,
        library_id: str = LIBRARY_ID,
        event_venue_id: str = EVENT_VENUE_ID,
    ) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()
        self.closure_probability = closure_probability
        self._clock = clock
        self.calendar_adjustments = calendar_adjustments
        self.library_id = library_id
        self.event_venue_id = event_venue_id
        self._conditions: Dict[str, float] = {}
        self._min_multiplier = 1.0
        self._lock = threading.Lock()

    def refresh(self, graph: CampusGraph) -> int:
        """Rewrite every directed edge's multiplier and re-roll its closure."""
        now = self._clock()
        base = base_multiplier(now.hour)
        edges = list(graph.all_edges())
        if not edges:
            return 0

        jitter = self._rng.uniform(JITTER_LOW, JITTER_HIGH, size=len(edges))
        rolls = self._rng.random(size=len(edges))
        multipliers = base * jitter
        closed = rolls < self.closure_probability
        if self.calendar_adjustments:
            multipliers, closed = self._apply_calendar(now, edges, multipliers, closed)

        conditions: Dict[str, float] = {}
        for e, m, shut in zip(edges, multipliers, closed):
            e.traffic_multiplier = float(m)
            # closures are not sticky
            e.closed = bool(shut)
            if e.road_name:
                conditions[e.road_name] = float(m)

        with self._lock:
            self._conditions.update(conditions)
            self._min_multiplier = float(multipliers.min())

        log_event(
            "traffic_refresh",
            edges=len(edges),
            base_multiplier=base,
            closed=int(closed.sum()),
        )
        return len(edges)

    def _apply_calendar(
        self,
        now: datetime,
        edges: List[Edge],
        multipliers: np.ndarray,
        closed: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        if now.isoweekday() >= 6:
            multipliers = multipliers * WEEKEND_FACTOR
        if now.month in EXAM_MONTHS:
            from_library = np.array([e.source.id == self.library_id for e in edges])
            multipliers = np.where(from_library, multipliers * EXAM_LIBRARY_FACTOR, multipliers)
        if now.day % EVENT_DAY_INTERVAL == 0:
            from_venue = np.array([e.source.id == self.event_venue_id for e in edges])
            event_rolls = self._rng.random(size=len(edges))
            closed = closed | (from_venue & (event_rolls < EVENT_CLOSURE_PROBABILITY))
        return multipliers, closed

    def current_conditions(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._conditions)

    @property
    def min_multiplier(self) -> float:
        with self._lock:
            return self._min_multiplier

    def route_update(self, route_id: str) -> RouteUpdate:
        return RouteUpdate(
            route_id=route_id,
            conditions=self.current_conditions(),
            update_time=self._clock().strftime("%H:%M:%S"),
        )
