"""Priority-first, nearest-neighbour stop ordering."""

from __future__ import annotations

import math
from typing import Sequence

from .models import DistanceMatrix, RouteStop

METERS_TO_MILES = 0.000621371

# Stops at or below this priority (emergency, initial) are visited first.
URGENT_PRIORITY = 2


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def order_stops(stops: Sequence[RouteStop], matrix: DistanceMatrix) -> list[int]:
    """Return stop positions (0-based, into ``stops``) in visiting order.

    Urgent stops come first, by ascending priority and then input order. The
    rest follow a greedy nearest-neighbour walk from wherever the route ends,
    with ties going to the stop that appears first in ``stops``. Matrix index
    ``k + 1`` corresponds to ``stops[k]``.
    """
    urgent = sorted(
        (position for position, stop in enumerate(stops) if stop.priority <= URGENT_PRIORITY),
        key=lambda position: stops[position].priority,
    )
    order = list(urgent)
    visited = set(urgent)
    current = order[-1] + 1 if order else 0

    remaining = [position for position in range(len(stops)) if position not in visited]
    while remaining:
        nearest = remaining[0]
        nearest_distance = matrix.distance(current, nearest + 1)
        for position in remaining[1:]:
            distance = matrix.distance(current, position + 1)
            if distance < nearest_distance:
                nearest, nearest_distance = position, distance
        order.append(nearest)
        remaining.remove(nearest)
        current = nearest + 1

    return order


def route_metrics(order: Sequence[int], stops: Sequence[RouteStop], matrix: DistanceMatrix) -> tuple[int, int]:
    """Total miles and minutes for driving the route and servicing every stop."""
    total_meters = 0
    total_seconds = 0
    current = 0
    for position in order:
        index = position + 1
        total_meters += matrix.distance(current, index)
        total_seconds += matrix.duration(current, index)
        total_seconds += stops[position].estimated_duration_minutes * 60
        current = index

    return _round_half_up(total_meters * METERS_TO_MILES), _round_half_up(total_seconds / 60)
