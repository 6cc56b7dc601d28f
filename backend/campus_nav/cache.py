from dataclasses import astuple
from datetime import datetime
from threading import Lock
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .models import Route, RoutePreferences, SortCriterion, TransportMode


class CacheKey(NamedTuple):
    source_id: str
    destination_id: str
    mode: TransportMode
    sort: SortCriterion
    max_routes: int
    landmarks: Tuple[str, ...]
    time_bucket: Optional[Tuple[int, int]]
    route_filter: Optional[Tuple[Any, ...]] = None
    weights: Tuple[float, float, float] = (0.5, 0.3, 0.2)


def time_bucket(now: datetime) -> Tuple[int, int]:
    # (ISO weekday, hour): entries turn over as the traffic profile changes
    return (now.isoweekday(), now.hour)


def make_cache_key(
    source_id: str,
    destination_id: str,
    prefs: RoutePreferences,
    now: Optional[datetime] = None,
) -> CacheKey:
    return CacheKey(
        source_id=source_id,
        destination_id=destination_id,
        mode=prefs.mode,
        sort=prefs.sort,
        max_routes=prefs.max_routes,
        landmarks=tuple(prefs.landmarks),
        time_bucket=time_bucket(now) if now is not None else None,
        route_filter=astuple(prefs.filter) if prefs.filter is not None else None,
        weights=(prefs.time_weight, prefs.distance_weight, prefs.landmark_weight),
    )


class RouteCache:
    """Lock-protected route store. No TTL; entries leave only on ``clear``."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._items: Dict[CacheKey, List[Route]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: CacheKey) -> Optional[List[Route]]:
        with self._lock:
            routes = self._items.get(key)
            if routes is None:
                self._misses += 1
                return None
            self._hits += 1
            return list(routes)

    def set(self, key: CacheKey, routes: List[Route]) -> None:
        # last writer wins
        with self._lock:
            self._items[key] = list(routes)

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._items)
            self._items.clear()
            return cleared

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {"size": len(self._items), "hits": self._hits, "misses": self._misses}
