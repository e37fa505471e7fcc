"""Routing request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import LatLng
from ..services.routing.models import Navigation, OptimizedRoute, PlannedRoute, RouteStop


class LatLngModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> LatLng:
        return LatLng(lat=self.lat, lng=self.lng)


class RouteStopModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_id: str
    location: LatLngModel
    estimated_duration_minutes: int = Field(..., ge=0)
    priority: int = Field(3, ge=1, le=3, description="1 emergency, 2 initial, 3 regular")

    def to_domain(self) -> RouteStop:
        return RouteStop(
            job_id=self.job_id,
            location=self.location.to_domain(),
            estimated_duration_minutes=self.estimated_duration_minutes,
            priority=self.priority,
        )

    @classmethod
    def from_domain(cls, stop: RouteStop) -> "RouteStopModel":
        return cls(
            job_id=stop.job_id,
            location=LatLngModel(lat=stop.location.lat, lng=stop.location.lng),
            estimated_duration_minutes=stop.estimated_duration_minutes,
            priority=stop.priority,
        )


class OptimizeRequest(BaseModel):
    start_location: LatLngModel
    stops: List[RouteStopModel] = Field(default_factory=list)


class OptimizedRouteModel(BaseModel):
    stops: List[RouteStopModel]
    total_distance_miles: int
    estimated_duration_minutes: int

    @classmethod
    def from_domain(cls, route: OptimizedRoute) -> "OptimizedRouteModel":
        return cls(
            stops=[RouteStopModel.from_domain(stop) for stop in route.stops],
            total_distance_miles=route.total_distance_miles,
            estimated_duration_minutes=route.estimated_duration_minutes,
        )


class PlanRouteRequest(BaseModel):
    route_date: Optional[date] = Field(default=None, description="Defaults to today.")


class PlannedRouteModel(BaseModel):
    route_id: str
    technician_id: str
    route: OptimizedRouteModel
    unrouted_job_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, planned: PlannedRoute) -> "PlannedRouteModel":
        return cls(
            route_id=planned.route_id,
            technician_id=planned.technician_id,
            route=OptimizedRouteModel.from_domain(planned.route),
            unrouted_job_ids=list(planned.unrouted_job_ids),
        )


class BatchRouteRequest(BaseModel):
    route_date: Optional[date] = None
    technician_ids: Optional[List[str]] = Field(
        default=None, description="Defaults to every active field technician."
    )


class BatchRouteResponse(BaseModel):
    route_date: date
    routes: List[PlannedRouteModel]
    failures: Dict[str, str]


class NavigationResponse(BaseModel):
    route_id: Optional[str] = None
    job_id: str
    client_id: str
    destination: LatLngModel
    distance_meters: int
    duration_seconds: int
    polyline: str
    steps: list
    estimated_arrival: datetime
    stop_number: int
    remaining_stops: int

    @classmethod
    def from_domain(cls, navigation: Navigation) -> "NavigationResponse":
        location = navigation.job.location
        return cls(
            route_id=navigation.route_id,
            job_id=navigation.job.id,
            client_id=navigation.job.client_id,
            destination=LatLngModel(lat=location.lat, lng=location.lng),
            distance_meters=navigation.directions.distance_meters,
            duration_seconds=navigation.directions.duration_seconds,
            polyline=navigation.directions.polyline,
            steps=navigation.directions.steps,
            estimated_arrival=navigation.estimated_arrival,
            stop_number=navigation.stop_number,
            remaining_stops=navigation.remaining_stops,
        )
