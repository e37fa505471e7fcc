import threading
from datetime import date, datetime, timezone

import pytest

from conftest import FakeMapsClient, FakeRepository
from scoopops.errors import IncompleteDistanceData, InvalidRequest, NotFound, UpstreamProviderError
from scoopops.models.domain import Job, LatLng, Technician
from scoopops.services.routing.matrix import build_distance_matrix
from scoopops.services.routing.models import RouteStop
from scoopops.services.routing.service import (
    batch_optimize_routes,
    navigation_to_next_job,
    optimize_route,
    plan_technician_route,
    priority_for_job_type,
    reoptimize_route,
    stops_from_jobs,
)

DEPOT = LatLng(lat=39.70, lng=-104.90)
ROUTE_DATE = date(2024, 6, 12)


def _by_latitude(origin: LatLng, destination: LatLng) -> int:
    return int(round(abs(origin.lat - destination.lat) * 100000))


def _stop(job_id: str, lat: float, priority: int = 3, minutes: int = 30) -> RouteStop:
    return RouteStop(
        job_id=job_id,
        location=LatLng(lat=lat, lng=-104.90),
        estimated_duration_minutes=minutes,
        priority=priority,
    )


def _job(job_id: str, lat: float | None, technician_id: str = "tech-1", job_type: str = "regular") -> Job:
    return Job(
        id=job_id,
        client_id=f"client-{job_id}",
        technician_id=technician_id,
        job_type=job_type,
        scheduled_date=ROUTE_DATE,
        estimated_duration_minutes=None,
        location=LatLng(lat=lat, lng=-104.90) if lat is not None else None,
    )


@pytest.fixture
def routing_repo() -> FakeRepository:
    repo = FakeRepository()
    repo.technicians["tech-1"] = Technician(id="tech-1", name="Sam", current_location=DEPOT)
    repo.add_job(_job("far", 39.80))
    repo.add_job(_job("near", 39.71))
    repo.add_job(_job("mid", 39.75))
    return repo


def test_priority_for_job_type():
    assert priority_for_job_type("emergency") == 1
    assert priority_for_job_type("Initial") == 2
    assert priority_for_job_type("regular") == 3
    assert priority_for_job_type(None) == 3


def test_stops_from_jobs_reports_jobs_without_location():
    stops, unrouted = stops_from_jobs([_job("a", 39.71), _job("b", None)])

    assert [stop.job_id for stop in stops] == ["a"]
    assert stops[0].estimated_duration_minutes == 30
    assert unrouted == ["b"]


@pytest.mark.asyncio
async def test_optimize_empty_route_skips_provider():
    client = FakeMapsClient()

    route = await optimize_route(DEPOT, [], maps_client=client)

    assert route.stops == []
    assert route.total_distance_miles == 0
    assert route.estimated_duration_minutes == 0
    assert client.matrix_calls == []


@pytest.mark.asyncio
async def test_optimize_route_orders_by_distance():
    client = FakeMapsClient(distance=_by_latitude, duration=lambda o, d: 60)
    stops = [_stop("far", 39.80), _stop("near", 39.71), _stop("mid", 39.75)]

    route = await optimize_route(DEPOT, stops, maps_client=client)

    assert route.job_ids == ["near", "mid", "far"]
    # 1000 + 4000 + 5000 metres; three 1-minute legs plus 90 minutes on site.
    assert route.total_distance_miles == 6
    assert route.estimated_duration_minutes == 93


@pytest.mark.asyncio
async def test_optimize_route_puts_urgent_jobs_first():
    client = FakeMapsClient(distance=_by_latitude)
    stops = [_stop("near", 39.71), _stop("emergency", 39.80, priority=1)]

    route = await optimize_route(DEPOT, stops, maps_client=client)

    assert route.job_ids == ["emergency", "near"]


@pytest.mark.asyncio
async def test_incomplete_matrix_is_rejected():
    stops = [_stop("a", 39.71), _stop("b", 39.75)]
    client = FakeMapsClient(statuses={(DEPOT, stops[1].location): "ZERO_RESULTS"})

    with pytest.raises(IncompleteDistanceData) as exc_info:
        await optimize_route(DEPOT, stops, maps_client=client)

    assert exc_info.value.failed_cells == [(0, 2, "ZERO_RESULTS")]


@pytest.mark.asyncio
async def test_upstream_error_propagates():
    client = FakeMapsClient(fail_with=UpstreamProviderError("google_maps", "quota exceeded"))

    with pytest.raises(UpstreamProviderError):
        await optimize_route(DEPOT, [_stop("a", 39.71)], maps_client=client)


@pytest.mark.asyncio
async def test_matrix_is_assembled_across_blocks():
    locations = [LatLng(lat=39.0 + i / 100, lng=-104.9) for i in range(12)]
    client = FakeMapsClient(distance=_by_latitude)

    matrix = await build_distance_matrix(client, locations, batch_size=5, max_parallel=2)

    assert len(client.matrix_calls) == 9
    assert all(len(origins) <= 5 and len(destinations) <= 5 for origins, destinations in client.matrix_calls)
    assert matrix.size == 12
    assert len(matrix.cells) == 144
    assert matrix.distance(0, 11) == 11000
    assert matrix.distance(7, 2) == 5000


@pytest.mark.asyncio
async def test_plan_technician_route_saves_order(routing_repo):
    routing_repo.add_job(_job("no-geo", None))
    client = FakeMapsClient(distance=_by_latitude)

    planned = await plan_technician_route("tech-1", ROUTE_DATE, repository=routing_repo, maps_client=client)

    assert planned.route.job_ids == ["near", "mid", "far"]
    assert planned.unrouted_job_ids == ["no-geo"]
    record = routing_repo.get_route(planned.route_id)
    assert record.job_ids == ["near", "mid", "far"]
    assert record.technician_id == "tech-1"
    assert record.total_distance_miles == planned.route.total_distance_miles


@pytest.mark.asyncio
async def test_plan_requires_known_technician_with_location(routing_repo):
    routing_repo.technicians["tech-2"] = Technician(id="tech-2", name="Alex", current_location=None)
    client = FakeMapsClient()

    with pytest.raises(NotFound):
        await plan_technician_route("ghost", ROUTE_DATE, repository=routing_repo, maps_client=client)
    with pytest.raises(InvalidRequest):
        await plan_technician_route("tech-2", ROUTE_DATE, repository=routing_repo, maps_client=client)


@pytest.mark.asyncio
async def test_reoptimize_route_replaces_order(routing_repo):
    record = routing_repo.save_route("tech-1", ROUTE_DATE, ["far", "mid", "near"], 0, 0)
    client = FakeMapsClient(distance=_by_latitude)

    planned = await reoptimize_route(record.id, repository=routing_repo, maps_client=client)

    assert planned.route_id == record.id
    assert routing_repo.get_route(record.id).job_ids == ["near", "mid", "far"]


@pytest.mark.asyncio
async def test_reoptimize_reports_jobs_that_no_longer_exist(routing_repo):
    record = routing_repo.save_route("tech-1", ROUTE_DATE, ["near", "gone", "mid"], 0, 0)
    client = FakeMapsClient(distance=_by_latitude)

    planned = await reoptimize_route(record.id, repository=routing_repo, maps_client=client)

    assert planned.unrouted_job_ids == ["gone"]
    assert routing_repo.get_route(record.id).job_ids == ["near", "mid"]


@pytest.mark.asyncio
async def test_reoptimize_unknown_route(routing_repo):
    with pytest.raises(NotFound):
        await reoptimize_route("route-missing", repository=routing_repo, maps_client=FakeMapsClient())


@pytest.mark.asyncio
async def test_batch_reports_failures_per_technician(routing_repo):
    client = FakeMapsClient(distance=_by_latitude)

    result = await batch_optimize_routes(
        ROUTE_DATE, ["tech-1", "ghost"], repository=routing_repo, maps_client=client
    )

    assert [planned.technician_id for planned in result.routes] == ["tech-1"]
    assert list(result.failures) == ["ghost"]
    assert "ghost" in result.failures["ghost"]


@pytest.mark.asyncio
async def test_batch_defaults_to_active_technicians(routing_repo):
    result = await batch_optimize_routes(ROUTE_DATE, repository=routing_repo, maps_client=FakeMapsClient())

    assert [planned.technician_id for planned in result.routes] == ["tech-1"]
    assert result.failures == {}


@pytest.mark.asyncio
async def test_navigation_walks_the_stored_route(routing_repo):
    routing_repo.save_route("tech-1", ROUTE_DATE, ["near", "mid", "far"], 6, 93)
    client = FakeMapsClient(distance=_by_latitude, duration=lambda o, d: 600)
    now = datetime(2024, 6, 12, 9, 0, tzinfo=timezone.utc)

    first = await navigation_to_next_job(
        "tech-1", ROUTE_DATE, repository=routing_repo, maps_client=client, now=now
    )
    second = await navigation_to_next_job(
        "tech-1", ROUTE_DATE, "near", repository=routing_repo, maps_client=client, now=now
    )
    done = await navigation_to_next_job(
        "tech-1", ROUTE_DATE, "far", repository=routing_repo, maps_client=client, now=now
    )

    assert first.job.id == "near"
    assert first.stop_number == 1
    assert first.remaining_stops == 2
    assert first.estimated_arrival == datetime(2024, 6, 12, 9, 10, tzinfo=timezone.utc)
    assert second.job.id == "mid"
    assert second.remaining_stops == 1
    assert done is None


@pytest.mark.asyncio
async def test_navigation_without_route_returns_none(routing_repo):
    result = await navigation_to_next_job(
        "tech-1", ROUTE_DATE, repository=routing_repo, maps_client=FakeMapsClient()
    )
    assert result is None


@pytest.mark.asyncio
async def test_navigation_rejects_job_not_on_route(routing_repo):
    routing_repo.save_route("tech-1", ROUTE_DATE, ["near"], 1, 31)

    with pytest.raises(NotFound):
        await navigation_to_next_job(
            "tech-1", ROUTE_DATE, "mid", repository=routing_repo, maps_client=FakeMapsClient()
        )


class ThreadRecordingRepository(FakeRepository):
    def __init__(self) -> None:
        super().__init__()
        self.threads: list[int] = []

    def get_technician(self, technician_id):
        self.threads.append(threading.get_ident())
        return super().get_technician(technician_id)

    def save_route(self, technician_id, route_date, job_ids, total_distance_miles, estimated_duration_minutes):
        self.threads.append(threading.get_ident())
        return super().save_route(
            technician_id, route_date, job_ids, total_distance_miles, estimated_duration_minutes
        )


@pytest.mark.asyncio
async def test_plan_runs_repository_calls_off_the_event_loop():
    repo = ThreadRecordingRepository()
    repo.technicians["tech-1"] = Technician(id="tech-1", name="Sam", current_location=DEPOT)
    repo.add_job(_job("near", 39.71))

    await plan_technician_route(
        "tech-1", ROUTE_DATE, repository=repo, maps_client=FakeMapsClient(distance=_by_latitude)
    )

    assert len(repo.threads) == 2
    assert threading.get_ident() not in repo.threads
