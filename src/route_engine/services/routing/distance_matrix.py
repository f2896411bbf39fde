"""Batched origin-to-many distance lookups."""

from __future__ import annotations

import logging
import time
from typing import Protocol, Sequence

from ...config import settings
from ...models.domain import Coordinates, Stop
from .exceptions import ProviderError
from .google_client import MAX_MATRIX_DESTINATIONS
from .models import DistanceEstimate

logger = logging.getLogger(__name__)


class MatrixProvider(Protocol):
    async def distance_matrix(self, origin: Coordinates, destinations: Sequence[Coordinates]) -> dict: ...


def _parse_elements(batch: Sequence[Stop], elements: Sequence[dict]) -> dict[str, DistanceEstimate]:
    parsed: dict[str, DistanceEstimate] = {}
    for stop, element in zip(batch, elements):
        if not isinstance(element, dict) or element.get("status") != "OK":
            continue
        try:
            distance = element["distance"]["value"]
            traffic = element.get("duration_in_traffic")
            duration = traffic["value"] if traffic and traffic.get("value") else element["duration"]["value"]
        except (KeyError, TypeError):
            continue
        parsed[stop.id] = DistanceEstimate(distance_meters=float(distance), duration_seconds=float(duration))
    return parsed


class DistanceMatrixClient:
    """Splits destinations into provider-sized chunks and merges the answers.

    Chunks are requested one after another. A chunk that fails outright is
    logged and skipped, so its stops are simply missing from the result; a
    missing key means "unknown", never zero.
    """

    def __init__(self, provider: MatrixProvider, batch_size: int | None = None) -> None:
        self.provider = provider
        self.batch_size = min(batch_size or settings.distance_matrix_batch_size, MAX_MATRIX_DESTINATIONS)

    async def batch_distances(
        self, origin: Coordinates, destinations: Sequence[Stop]
    ) -> dict[str, DistanceEstimate]:
        results: dict[str, DistanceEstimate] = {}
        if not destinations:
            return results

        start_time = time.time()
        failed_chunks = 0
        total_chunks = 0
        for i in range(0, len(destinations), self.batch_size):
            batch = list(destinations[i : i + self.batch_size])
            total_chunks += 1
            try:
                data = await self.provider.distance_matrix(origin, [stop.coordinates for stop in batch])
                elements = data["rows"][0]["elements"]
            except (ProviderError, KeyError, IndexError, TypeError) as exc:
                failed_chunks += 1
                logger.warning(f"Distance matrix chunk [{i}:{i + len(batch)}] failed: {exc}")
                continue
            results.update(_parse_elements(batch, elements))

        elapsed = time.time() - start_time
        if failed_chunks:
            logger.warning(
                f"Partial failure: {failed_chunks}/{total_chunks} distance matrix chunks failed; "
                f"{len(results)}/{len(destinations)} destinations resolved in {elapsed:.2f}s"
            )
        else:
            logger.info(
                f"Resolved {len(results)}/{len(destinations)} destinations in "
                f"{total_chunks} chunk(s), {elapsed:.2f}s"
            )
        return results
