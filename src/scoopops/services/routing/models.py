"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ...models.domain import Job, LatLng


@dataclass(frozen=True, slots=True)
class RouteStop:
    job_id: str
    location: LatLng
    estimated_duration_minutes: int
    priority: int


@dataclass(frozen=True, slots=True)
class DistanceCell:
    distance_meters: int
    duration_seconds: int


@dataclass(slots=True)
class DistanceMatrix:
    """Square matrix over the start location (index 0) and each stop (1..n)."""

    size: int
    cells: Dict[tuple[int, int], DistanceCell]

    def __getitem__(self, key: tuple[int, int]) -> DistanceCell:
        return self.cells[key]

    def distance(self, origin: int, destination: int) -> int:
        return self.cells[(origin, destination)].distance_meters

    def duration(self, origin: int, destination: int) -> int:
        return self.cells[(origin, destination)].duration_seconds


@dataclass(slots=True)
class OptimizedRoute:
    stops: List[RouteStop]
    total_distance_miles: int
    estimated_duration_minutes: int

    @property
    def job_ids(self) -> list[str]:
        return [stop.job_id for stop in self.stops]


@dataclass(slots=True)
class PlannedRoute:
    route_id: str
    technician_id: str
    route: OptimizedRoute
    unrouted_job_ids: List[str] = field(default_factory=list)


@dataclass(slots=True)
class BatchRouteResult:
    routes: List[PlannedRoute]
    failures: Dict[str, str]


@dataclass(slots=True)
class Directions:
    distance_meters: int
    duration_seconds: int
    steps: list
    polyline: str


@dataclass(slots=True)
class Navigation:
    job: Job
    directions: Directions
    estimated_arrival: datetime
    stop_number: int
    remaining_stops: int
    route_id: Optional[str] = None
