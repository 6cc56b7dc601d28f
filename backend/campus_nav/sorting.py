"""Comparator-driven route ordering.

All sorts take a key extractor and order ascending by it. ``quicksort`` is
the Lomuto variant and is not stable; ``mergesort`` and ``insertion_sort``
are stable, which is what ``adaptive_sort`` relies on so that its two large
input branches produce the same order.
"""
from bisect import bisect_right
from typing import Any, Callable, List

from .models import Route, SortCriterion

RouteKey = Callable[[Route], Any]

SMALL_INPUT = 10
NEARLY_SORTED_FRACTION = 0.25


def by_distance(route: Route) -> float:
    return route.distance_m


def by_time(route: Route) -> float:
    return route.total_time


def by_landmarks(route: Route) -> int:
    # more landmarks first
    return -len(route.landmarks)


def by_composite(route: Route):
    return (route.total_time, route.distance_m)


def key_for(criterion: SortCriterion) -> RouteKey:
    if criterion is SortCriterion.TIME:
        return by_time
    if criterion is SortCriterion.DISTANCE:
        return by_distance
    if criterion is SortCriterion.LANDMARKS:
        return by_landmarks
    if criterion in (SortCriterion.COMPOSITE, SortCriterion.ADAPTIVE):
        return by_composite
    raise ValueError(f"Unknown sort criterion: {criterion!r}")


# Quicksort

def quicksort(routes: List[Route], key: RouteKey) -> None:
    if len(routes) <= 1:
        return
    keys = [key(r) for r in routes]
    _quicksort(routes, keys, 0, len(routes) - 1)


def _quicksort(routes: List[Route], keys: List[Any], low: int, high: int) -> None:
    # Recurse on the smaller side to keep the stack shallow on bad pivots
    while low < high:
        p = _partition(routes, keys, low, high)
        if p - low < high - p:
            _quicksort(routes, keys, low, p - 1)
            low = p + 1
        else:
            _quicksort(routes, keys, p + 1, high)
            high = p - 1


def _partition(routes: List[Route], keys: List[Any], low: int, high: int) -> int:
    pivot = keys[high]
    i = low - 1
    for j in range(low, high):
        if keys[j] <= pivot:
            i += 1
            routes[i], routes[j] = routes[j], routes[i]
            keys[i], keys[j] = keys[j], keys[i]
    routes[i + 1], routes[high] = routes[high], routes[i + 1]
    keys[i + 1], keys[high] = keys[high], keys[i + 1]
    return i + 1


# Mergesort

def mergesort(routes: List[Route], key: RouteKey) -> None:
    if len(routes) <= 1:
        return
    pairs = [(key(r), r) for r in routes]
    routes[:] = [r for _, r in _mergesort(pairs)]


def _mergesort(pairs):
    if len(pairs) <= 1:
        return pairs
    mid = len(pairs) // 2
    left = _mergesort(pairs[:mid])
    right = _mergesort(pairs[mid:])

    merged = []
    i = j = 0
    while i < len(left) and j < len(right):
        # <= takes from the left first, which keeps equal keys in input order
        if left[i][0] <= right[j][0]:
            merged.append(left[i])
            i += 1
        else:
            merged.append(right[j])
            j += 1
    merged.extend(left[i:])
    merged.extend(right[j:])
    return merged


def insertion_sort(routes: List[Route], key: RouteKey) -> None:
    keys = [key(r) for r in routes]
    for i in range(1, len(routes)):
        r, k = routes[i], keys[i]
        j = i - 1
        while j >= 0 and keys[j] > k:
            routes[j + 1] = routes[j]
            keys[j + 1] = keys[j]
            j -= 1
        routes[j + 1] = r
        keys[j + 1] = k


def count_adjacent_inversions(routes: List[Route], key: RouteKey) -> int:
    keys = [key(r) for r in routes]
    return sum(1 for a, b in zip(keys, keys[1:]) if a > b)


def is_nearly_sorted(routes: List[Route], key: RouteKey) -> bool:
    return count_adjacent_inversions(routes, key) <= len(routes) * NEARLY_SORTED_FRACTION


def adaptive_sort(routes: List[Route], key: RouteKey) -> None:
    if len(routes) <= SMALL_INPUT:
        insertion_sort(routes, key)
        return
    if is_nearly_sorted(routes, key):
        # few inversions, so insertion sort runs close to linear
        insertion_sort(routes, key)
        return
    mergesort(routes, key)


def sort_routes(routes: List[Route], criterion: SortCriterion) -> None:
    """Sort in place with the algorithm assigned to each criterion."""
    key = key_for(criterion)
    if criterion is SortCriterion.DISTANCE:
        quicksort(routes, key)
    elif criterion is SortCriterion.TIME:
        mergesort(routes, key)
    elif criterion is SortCriterion.LANDMARKS:
        quicksort(routes, key)
    elif criterion is SortCriterion.COMPOSITE:
        mergesort(routes, key)
    elif criterion is SortCriterion.ADAPTIVE:
        adaptive_sort(routes, key)
    else:
        raise ValueError(f"Unknown sort criterion: {criterion!r}")


# Binary-search cuts over already sorted lists

def routes_within_distance(sorted_routes: List[Route], max_distance_m: float) -> List[Route]:
    idx = bisect_right(sorted_routes, max_distance_m, key=by_distance)
    return sorted_routes[:idx]


def routes_within_time(sorted_routes: List[Route], max_time_min: float) -> List[Route]:
    idx = bisect_right(sorted_routes, max_time_min, key=by_time)
    return sorted_routes[:idx]
