"""Distance matrix construction over batched mapping-provider requests."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence

from ...config import settings
from ...errors import IncompleteDistanceData
from ...models.domain import LatLng
from .maps_client import MapsClient
from .models import DistanceCell, DistanceMatrix

logger = logging.getLogger(__name__)


def build_coordinate_list(start: LatLng, stops: Sequence[LatLng]) -> list[LatLng]:
    """Start location first, then each stop in input order."""
    return [start, *stops]


def _batch_ranges(count: int, batch_size: int) -> list[tuple[int, int]]:
    return [(i, min(i + batch_size, count)) for i in range(0, count, batch_size)]


def _cell_from_element(element: dict) -> DistanceCell | None:
    try:
        return DistanceCell(
            distance_meters=int(element["distance"]["value"]),
            duration_seconds=int(element["duration"]["value"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


async def build_distance_matrix(
    client: MapsClient,
    locations: Sequence[LatLng],
    *,
    batch_size: int | None = None,
    max_parallel: int | None = None,
) -> DistanceMatrix:
    """Request every origin/destination block and assemble the full matrix.

    Blocks are fetched concurrently and all of them must finish before the
    matrix is returned. Any cell the provider could not resolve makes the
    whole matrix unusable for ranking.

    Raises:
        IncompleteDistanceData: if any cell is missing or has a non-OK status.
        UpstreamProviderError: if a provider request fails outright.
    """
    batch_size = batch_size or settings.maps_batch_size
    max_parallel = max_parallel or settings.maps_max_parallel_requests
    size = len(locations)
    ranges = _batch_ranges(size, batch_size)
    semaphore = asyncio.Semaphore(max_parallel)
    start_time = time.monotonic()

    async def fetch_block(origin_range: tuple[int, int], destination_range: tuple[int, int]):
        async with semaphore:
            rows = await client.distance_matrix(
                locations[origin_range[0] : origin_range[1]],
                locations[destination_range[0] : destination_range[1]],
            )
        return origin_range, destination_range, rows

    blocks = [(origin_range, destination_range) for origin_range in ranges for destination_range in ranges]
    logger.info(f"Requesting distance matrix for {size} locations in {len(blocks)} block(s)")

    results = await asyncio.gather(*(fetch_block(*block) for block in blocks), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result

    cells: dict[tuple[int, int], DistanceCell] = {}
    failed: list[tuple[int, int, str]] = []
    for (origin_start, origin_end), (destination_start, destination_end), rows in results:
        for local_origin, global_origin in enumerate(range(origin_start, origin_end)):
            elements = rows[local_origin] if local_origin < len(rows) else []
            for local_destination, global_destination in enumerate(range(destination_start, destination_end)):
                if local_destination >= len(elements):
                    failed.append((global_origin, global_destination, "MISSING"))
                    continue
                element = elements[local_destination]
                status = element.get("status", "MISSING")
                cell = _cell_from_element(element) if status == "OK" else None
                if cell is None:
                    failed.append((global_origin, global_destination, status if status != "OK" else "INVALID"))
                    continue
                cells[(global_origin, global_destination)] = cell

    if failed:
        logger.warning(f"Distance matrix has {len(failed)} unusable cell(s) out of {size * size}")
        raise IncompleteDistanceData(failed)

    logger.info(f"Distance matrix completed in {time.monotonic() - start_time:.2f}s")
    return DistanceMatrix(size=size, cells=cells)
