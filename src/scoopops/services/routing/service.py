"""Routing orchestration service."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence

from ...config import settings
from ...errors import InvalidRequest, NotFound
from ...models.domain import Job, LatLng, Technician
from ...persistence.repository import RoutingRepository
from .maps_client import MapsClient
from .matrix import build_coordinate_list, build_distance_matrix
from .models import BatchRouteResult, Navigation, OptimizedRoute, PlannedRoute, RouteStop
from .ordering import order_stops, route_metrics

logger = logging.getLogger(__name__)

JOB_TYPE_PRIORITIES = {
    "emergency": 1,
    "initial": 2,
}
DEFAULT_PRIORITY = 3


def priority_for_job_type(job_type: str | None) -> int:
    return JOB_TYPE_PRIORITIES.get((job_type or "").strip().lower(), DEFAULT_PRIORITY)


def stops_from_jobs(jobs: Sequence[Job]) -> tuple[list[RouteStop], list[str]]:
    """Convert jobs to route stops; jobs without a geocoded location are returned as unrouted."""
    stops: list[RouteStop] = []
    unrouted: list[str] = []
    for job in jobs:
        if job.location is None:
            logger.warning(f"Job {job.id} has no client location; leaving it off the route")
            unrouted.append(job.id)
            continue
        stops.append(
            RouteStop(
                job_id=job.id,
                location=job.location,
                estimated_duration_minutes=job.estimated_duration_minutes or settings.default_job_duration_minutes,
                priority=priority_for_job_type(job.job_type),
            )
        )
    return stops, unrouted


async def optimize_route(
    start_location: LatLng,
    stops: Sequence[RouteStop],
    *,
    maps_client: MapsClient,
    batch_size: int | None = None,
) -> OptimizedRoute:
    """Order stops for one technician and total up distance and time.

    An empty stop list is a finished route, not an error, and does not touch
    the mapping provider.
    """
    if not stops:
        return OptimizedRoute(stops=[], total_distance_miles=0, estimated_duration_minutes=0)

    coordinates = build_coordinate_list(start_location, [stop.location for stop in stops])
    matrix = await build_distance_matrix(maps_client, coordinates, batch_size=batch_size)

    order = order_stops(stops, matrix)
    total_miles, total_minutes = route_metrics(order, stops, matrix)

    return OptimizedRoute(
        stops=[stops[position] for position in order],
        total_distance_miles=total_miles,
        estimated_duration_minutes=total_minutes,
    )


def _load_technician(technician_id: str, repository: RoutingRepository) -> Technician:
    technician = repository.get_technician(technician_id)
    if technician is None:
        raise NotFound("Field technician", technician_id)
    if technician.current_location is None:
        raise InvalidRequest(f"Field technician '{technician_id}' has no current location")
    return technician


async def plan_technician_route(
    technician_id: str,
    route_date: date,
    *,
    repository: RoutingRepository,
    maps_client: MapsClient,
    jobs: Optional[Sequence[Job]] = None,
) -> PlannedRoute:
    """Optimise and persist a technician's route for the day.

    Repository calls are blocking, so they run in worker threads.
    """
    technician = await asyncio.to_thread(_load_technician, technician_id, repository)
    if jobs is None:
        jobs = await asyncio.to_thread(repository.get_jobs_for_technician, technician_id, route_date)

    stops, unrouted = stops_from_jobs(jobs)
    route = await optimize_route(technician.current_location, stops, maps_client=maps_client)

    record = await asyncio.to_thread(
        repository.save_route,
        technician_id,
        route_date,
        route.job_ids,
        route.total_distance_miles,
        route.estimated_duration_minutes,
    )
    logger.info(
        f"Planned route {record.id} for technician {technician_id} on {route_date}: "
        f"{len(route.stops)} stop(s), {route.total_distance_miles} mi, {route.estimated_duration_minutes} min"
    )
    return PlannedRoute(route_id=record.id, technician_id=technician_id, route=route, unrouted_job_ids=unrouted)


async def reoptimize_route(
    route_id: str,
    *,
    repository: RoutingRepository,
    maps_client: MapsClient,
) -> PlannedRoute:
    """Recompute a stored route from its current jobs and replace its order."""
    record = await asyncio.to_thread(repository.get_route, route_id)
    if record is None:
        raise NotFound("Route", route_id)

    technician = await asyncio.to_thread(_load_technician, record.technician_id, repository)
    jobs = await asyncio.to_thread(repository.get_jobs_by_ids, record.job_ids)

    found = {job.id for job in jobs}
    missing = [job_id for job_id in record.job_ids if job_id not in found]
    for job_id in missing:
        logger.warning(f"Job {job_id} on route {route_id} no longer exists; leaving it off the route")

    stops, unrouted = stops_from_jobs(jobs)
    route = await optimize_route(technician.current_location, stops, maps_client=maps_client)

    await asyncio.to_thread(
        repository.update_route,
        route_id,
        route.job_ids,
        route.total_distance_miles,
        route.estimated_duration_minutes,
    )
    return PlannedRoute(
        route_id=route_id,
        technician_id=record.technician_id,
        route=route,
        unrouted_job_ids=missing + unrouted,
    )


async def batch_optimize_routes(
    route_date: date,
    technician_ids: Optional[Sequence[str]] = None,
    *,
    repository: RoutingRepository,
    maps_client: MapsClient,
) -> BatchRouteResult:
    """Plan routes for several technicians; one technician's failure does not stop the rest."""
    if technician_ids is None:
        technician_ids = await asyncio.to_thread(repository.get_active_technician_ids)

    results = await asyncio.gather(
        *(
            plan_technician_route(technician_id, route_date, repository=repository, maps_client=maps_client)
            for technician_id in technician_ids
        ),
        return_exceptions=True,
    )

    routes: list[PlannedRoute] = []
    failures: dict[str, str] = {}
    for technician_id, result in zip(technician_ids, results):
        if isinstance(result, Exception):
            logger.error(f"Error optimizing route for technician {technician_id}: {result}")
            failures[technician_id] = str(result)
        elif isinstance(result, BaseException):
            raise result
        else:
            routes.append(result)
    return BatchRouteResult(routes=routes, failures=failures)


async def navigation_to_next_job(
    technician_id: str,
    route_date: date,
    current_job_id: Optional[str] = None,
    *,
    repository: RoutingRepository,
    maps_client: MapsClient,
    now: Optional[datetime] = None,
) -> Optional[Navigation]:
    """Directions from the technician's position to the next stop, or None when done."""
    technician = await asyncio.to_thread(_load_technician, technician_id, repository)
    record = await asyncio.to_thread(repository.get_route_for_technician, technician_id, route_date)
    if record is None or not record.job_ids:
        return None

    next_index = 0
    if current_job_id is not None:
        if current_job_id not in record.job_ids:
            raise NotFound("Job on route", current_job_id)
        next_index = record.job_ids.index(current_job_id) + 1
    if next_index >= len(record.job_ids):
        return None

    next_job_id = record.job_ids[next_index]
    jobs = await asyncio.to_thread(repository.get_jobs_by_ids, [next_job_id])
    if not jobs:
        raise NotFound("Job", next_job_id)
    job = jobs[0]
    if job.location is None:
        raise InvalidRequest(f"Job '{job.id}' has no client location")

    directions = await maps_client.directions(technician.current_location, job.location)
    now = now or datetime.now(timezone.utc)
    return Navigation(
        job=job,
        directions=directions,
        estimated_arrival=now + timedelta(seconds=directions.duration_seconds),
        stop_number=next_index + 1,
        remaining_stops=len(record.job_ids) - next_index - 1,
        route_id=record.id,
    )
