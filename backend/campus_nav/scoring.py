from dataclasses import dataclass
from typing import Dict, Iterable, List

from .models import Route, RoutePreferences


@dataclass(frozen=True)
class ScoreScale:
    # Values at or beyond these bounds contribute nothing to the score.
    max_time_min: float = 60.0
    max_distance_m: float = 5000.0
    max_landmarks: int = 5


def dedupe_routes(routes: Iterable[Route]) -> List[Route]:
    """Collapse routes sharing a signature, keeping the faster one in first-seen position."""
    unique: Dict[str, Route] = {}
    for r in routes:
        sig = r.signature
        kept = unique.get(sig)
        if kept is None or r.total_time < kept.total_time:
            unique[sig] = r
    return list(unique.values())


def composite_score(route: Route, prefs: RoutePreferences, scale: ScoreScale = ScoreScale()) -> float:
    time_factor = max(0.0, (scale.max_time_min - route.total_time) / scale.max_time_min)
    distance_factor = max(0.0, (scale.max_distance_m - route.distance_m) / scale.max_distance_m)
    landmark_factor = min(1.0, len(route.landmarks) / scale.max_landmarks)
    return (
        time_factor * prefs.time_weight
        + distance_factor * prefs.distance_weight
        + landmark_factor * prefs.landmark_weight
    )


def path_similarity(a: Route, b: Route) -> float:
    # Jaccard over the sets of visited location ids
    ids_a = set(a.path_ids)
    ids_b = set(b.path_ids)
    union = ids_a | ids_b
    if not union:
        return 0.0
    return len(ids_a & ids_b) / len(union)


def select_diverse(
    routes: List[Route],
    prefs: RoutePreferences,
    threshold: float = 0.7,
    scale: ScoreScale = ScoreScale(),
) -> List[Route]:
    """Greedy top-K by composite score, skipping near-duplicates of picks so far."""
    if len(routes) <= prefs.max_routes:
        return list(routes)
    if prefs.max_routes <= 0:
        return []

    # sorted() is stable, so equal scores keep candidate order
    ranked = sorted(routes, key=lambda r: composite_score(r, prefs, scale), reverse=True)
    selected = [ranked[0]]
    for candidate in ranked[1:]:
        if len(selected) >= prefs.max_routes:
            break
        if all(path_similarity(candidate, s) <= threshold for s in selected):
            selected.append(candidate)
    return selected
