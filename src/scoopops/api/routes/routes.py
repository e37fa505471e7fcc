"""Employee-portal routing endpoints."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...errors import ScoopOpsError
from ...persistence.repository import RoutingRepository
from ...schemas.routing import (
    BatchRouteRequest,
    BatchRouteResponse,
    NavigationResponse,
    OptimizedRouteModel,
    OptimizeRequest,
    PlannedRouteModel,
    PlanRouteRequest,
)
from ...services.routing.maps_client import MapsClient
from ...services.routing.service import (
    batch_optimize_routes,
    navigation_to_next_job,
    optimize_route,
    plan_technician_route,
    reoptimize_route,
)
from ..deps import get_maps_client, get_repository
from ..errors import to_http_exception

router = APIRouter(prefix="/routes", tags=["routes"])


def _failed(action: str, exc: Exception) -> HTTPException:
    logging.exception(f"Error trying to {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    )


@router.post("/optimize", response_model=OptimizedRouteModel, status_code=status.HTTP_200_OK)
async def optimize(
    payload: OptimizeRequest,
    maps_client: MapsClient = Depends(get_maps_client),
) -> OptimizedRouteModel:
    try:
        route = await optimize_route(
            payload.start_location.to_domain(),
            [stop.to_domain() for stop in payload.stops],
            maps_client=maps_client,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("optimize route", exc) from exc
    return OptimizedRouteModel.from_domain(route)


@router.post(
    "/technicians/{technician_id}/plan",
    response_model=PlannedRouteModel,
    status_code=status.HTTP_200_OK,
)
async def plan_route(
    technician_id: str,
    payload: PlanRouteRequest,
    repository: RoutingRepository = Depends(get_repository),
    maps_client: MapsClient = Depends(get_maps_client),
) -> PlannedRouteModel:
    try:
        planned = await plan_technician_route(
            technician_id,
            payload.route_date or date.today(),
            repository=repository,
            maps_client=maps_client,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("plan technician route", exc) from exc
    return PlannedRouteModel.from_domain(planned)


@router.put("/{route_id}/reoptimize", response_model=PlannedRouteModel, status_code=status.HTTP_200_OK)
async def reoptimize(
    route_id: str,
    repository: RoutingRepository = Depends(get_repository),
    maps_client: MapsClient = Depends(get_maps_client),
) -> PlannedRouteModel:
    try:
        planned = await reoptimize_route(route_id, repository=repository, maps_client=maps_client)
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("re-optimize route", exc) from exc
    return PlannedRouteModel.from_domain(planned)


@router.post("/batch", response_model=BatchRouteResponse, status_code=status.HTTP_200_OK)
async def batch(
    payload: BatchRouteRequest,
    repository: RoutingRepository = Depends(get_repository),
    maps_client: MapsClient = Depends(get_maps_client),
) -> BatchRouteResponse:
    route_date = payload.route_date or date.today()
    try:
        result = await batch_optimize_routes(
            route_date,
            payload.technician_ids,
            repository=repository,
            maps_client=maps_client,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("batch optimize routes", exc) from exc
    return BatchRouteResponse(
        route_date=route_date,
        routes=[PlannedRouteModel.from_domain(planned) for planned in result.routes],
        failures=result.failures,
    )


@router.get(
    "/navigation/{technician_id}",
    response_model=NavigationResponse,
    status_code=status.HTTP_200_OK,
    responses={204: {"description": "No stops left on today's route"}},
)
async def navigation(
    technician_id: str,
    current_job_id: str | None = Query(default=None, description="Job the technician just finished"),
    route_date: date | None = Query(default=None, description="Defaults to today"),
    repository: RoutingRepository = Depends(get_repository),
    maps_client: MapsClient = Depends(get_maps_client),
):
    try:
        result = await navigation_to_next_job(
            technician_id,
            route_date or date.today(),
            current_job_id,
            repository=repository,
            maps_client=maps_client,
        )
    except ScoopOpsError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        raise _failed("get navigation", exc) from exc
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return NavigationResponse.from_domain(result)
