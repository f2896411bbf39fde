"""Single-driver route ordering: dedup, nearest neighbour, scoring, provider refinement.

The optimizer never fails because of the mapping provider. Any provider error
degrades to the input order with flat per-stop estimates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, Sequence
from uuid import uuid4

from ...config import settings
from ...models.domain import Coordinates, Stop
from ..geospatial import METERS_PER_MILE, distance, meters_to_miles, seconds_to_minutes
from .distance_matrix import DistanceMatrixClient
from .exceptions import ProviderError
from .google_client import MAX_DIRECTIONS_WAYPOINTS
from .models import DistanceEstimate, Leg, OptimizedRoute, Route, RouteStop, ScoredStop

logger = logging.getLogger(__name__)


class DirectionsProvider(Protocol):
    async def directions(
        self,
        origin: Coordinates,
        destination: Coordinates,
        waypoints: Sequence[Coordinates] = (),
        optimize: bool = True,
    ) -> dict: ...


@dataclass(slots=True)
class OptimizerParameters:
    max_candidates: int = field(default_factory=lambda: settings.max_optimization_candidates)
    max_waypoints: int = field(default_factory=lambda: settings.max_waypoints)
    priority_weight: float = field(default_factory=lambda: settings.priority_weight)
    proximity_weight: float = field(default_factory=lambda: settings.proximity_weight)
    proximity_scale: float = field(default_factory=lambda: settings.proximity_scale)
    minutes_per_mile: float = field(default_factory=lambda: settings.minutes_per_mile)
    service_minutes_per_stop: float = field(default_factory=lambda: settings.service_minutes_per_stop)
    fallback_miles_per_stop: float = field(default_factory=lambda: settings.fallback_miles_per_stop)
    fallback_minutes_per_stop: float = field(default_factory=lambda: settings.fallback_minutes_per_stop)

    def __post_init__(self) -> None:
        # The directions endpoint rejects more intermediate waypoints than this.
        self.max_waypoints = max(0, min(self.max_waypoints, MAX_DIRECTIONS_WAYPOINTS))


def deduplicate_stops(stops: Sequence[Stop]) -> list[Stop]:
    """Keep the first stop for each normalized (address, city) pair."""
    seen: set[tuple[str, str]] = set()
    unique: list[Stop] = []
    for stop in stops:
        key = stop.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(stop)
    return unique


def nearest_neighbor_order(stops: Sequence[Stop]) -> list[Stop]:
    """Greedy tour anchored at the first stop.

    The anchor is the first stop rather than the driver's origin, which may
    only be known as a free-text address.
    """
    if len(stops) <= 2:
        return list(stops)

    remaining = list(stops)
    current = remaining.pop(0)
    ordered = [current]
    while remaining:
        nearest_index = min(
            range(len(remaining)),
            key=lambda i: distance(current.coordinates, remaining[i].coordinates),
        )
        current = remaining.pop(nearest_index)
        ordered.append(current)
    return ordered


def estimate_leg(miles: float, to_stop_id: str | None, parameters: OptimizerParameters) -> Leg:
    minutes = miles * parameters.minutes_per_mile + parameters.service_minutes_per_stop
    return Leg(to_stop_id=to_stop_id, distance_miles=miles, duration_minutes=minutes, estimated=True)


def estimate_legs(ordered: Sequence[Stop], parameters: OptimizerParameters) -> list[Leg]:
    """Haversine legs between consecutive stops; the first stop has no inbound drive."""
    legs: list[Leg] = []
    for index, stop in enumerate(ordered):
        miles = distance(ordered[index - 1].coordinates, stop.coordinates) if index else 0.0
        legs.append(estimate_leg(miles, stop.id, parameters))
    return legs


def composite_score(priority_score: float, duration_seconds: float, parameters: OptimizerParameters) -> float:
    proximity = parameters.proximity_scale / (duration_seconds + 1)
    return parameters.priority_weight * priority_score + parameters.proximity_weight * proximity


def score_stops(
    origin: Coordinates,
    stops: Sequence[Stop],
    distances: dict[str, DistanceEstimate],
    parameters: OptimizerParameters,
) -> list[ScoredStop]:
    """Attach origin distance/duration and composite score to each stop.

    Stops the matrix could not resolve get a great-circle estimate instead.
    """
    scored: list[ScoredStop] = []
    for stop in stops:
        estimate = distances.get(stop.id)
        if estimate is None:
            miles = distance(origin, stop.coordinates)
            estimate = DistanceEstimate(
                distance_meters=miles * METERS_PER_MILE,
                duration_seconds=miles * parameters.minutes_per_mile * 60,
            )
        scored.append(
            ScoredStop(
                stop=stop,
                distance_meters=estimate.distance_meters,
                duration_seconds=estimate.duration_seconds,
                composite_score=composite_score(stop.priority_score, estimate.duration_seconds, parameters),
            )
        )
    return scored


def rank_candidates(scored: Sequence[ScoredStop], limit: int) -> list[ScoredStop]:
    """Highest composite score first; ties keep their incoming order."""
    return sorted(scored, key=lambda item: item.composite_score, reverse=True)[:limit]


def _summarize(stops: list[Stop], legs: list[Leg], metadata: dict) -> OptimizedRoute:
    return OptimizedRoute(
        stops=stops,
        total_distance_miles=sum(leg.distance_miles for leg in legs),
        total_duration_minutes=sum(leg.duration_minutes for leg in legs),
        legs=legs,
        metadata=metadata,
    )


def _provider_leg(to_stop_id: str | None, payload: dict) -> Leg:
    return Leg(
        to_stop_id=to_stop_id,
        distance_miles=meters_to_miles(payload["distance"]["value"]),
        duration_minutes=seconds_to_minutes(payload["duration"]["value"]),
    )


class RouteOptimizer:
    def __init__(
        self,
        directions_provider: DirectionsProvider | None = None,
        matrix_client: DistanceMatrixClient | None = None,
        parameters: OptimizerParameters | None = None,
    ) -> None:
        self.directions_provider = directions_provider
        self.matrix_client = matrix_client
        self.parameters = parameters or OptimizerParameters()

    def plan_local(self, stops: Sequence[Stop]) -> OptimizedRoute:
        """Offline route: dedup plus nearest neighbour with heuristic leg estimates."""
        unique = deduplicate_stops(stops)
        ordered = nearest_neighbor_order(unique)
        metadata = {"strategy": "local", "dropped_duplicates": len(stops) - len(unique)}
        return _summarize(ordered, estimate_legs(ordered, self.parameters), metadata)

    async def optimize(
        self,
        origin: Coordinates,
        stops: Sequence[Stop],
        return_to_origin: bool = True,
    ) -> OptimizedRoute:
        if not stops:
            return _summarize([], [], {"strategy": "empty"})

        unique = deduplicate_stops(stops)
        metadata = {
            "dropped_duplicates": len(stops) - len(unique),
            "dropped_candidates": 0,
            "overflow": 0,
            "return_to_origin": return_to_origin,
        }
        if metadata["dropped_duplicates"]:
            logger.info(f"Removed {metadata['dropped_duplicates']} duplicate stop(s) by address")

        if len(unique) <= 2:
            candidates = unique
        else:
            candidates = await self._select_candidates(origin, nearest_neighbor_order(unique))
            metadata["dropped_candidates"] = len(unique) - len(candidates)

        if len(candidates) == 1:
            only = candidates[0]
            miles = distance(origin, only.coordinates)
            metadata["strategy"] = "trivial"
            return _summarize([only], [estimate_leg(miles, only.id, self.parameters)], metadata)

        if self.directions_provider is None:
            logger.warning("No directions provider configured; using fallback ordering")
            return self._fallback(stops, candidates, metadata)

        try:
            return await self._optimize_with_provider(origin, candidates, return_to_origin, metadata)
        except ProviderError as exc:
            logger.warning(f"Waypoint optimization failed, falling back to input order: {exc}")
            return self._fallback(stops, candidates, metadata)

    async def _select_candidates(self, origin: Coordinates, baseline: list[Stop]) -> list[Stop]:
        distances: dict[str, DistanceEstimate] = {}
        if self.matrix_client is not None:
            distances = await self.matrix_client.batch_distances(origin, baseline)
        scored = score_stops(origin, baseline, distances, self.parameters)
        ranked = rank_candidates(scored, self.parameters.max_candidates)
        dropped = len(scored) - len(ranked)
        if dropped:
            logger.info(f"Kept top {len(ranked)} stops by composite score, dropped {dropped}")
        return [item.stop for item in ranked]

    async def _optimize_with_provider(
        self,
        origin: Coordinates,
        candidates: list[Stop],
        return_to_origin: bool,
        metadata: dict,
    ) -> OptimizedRoute:
        pool = list(candidates)
        # The fixed destination is taken out before the waypoint cap is applied.
        destination_stop = None if return_to_origin else pool.pop()
        destination = origin if destination_stop is None else destination_stop.coordinates
        waypoints = pool[: self.parameters.max_waypoints]
        overflow = pool[self.parameters.max_waypoints :]

        data = await self.directions_provider.directions(
            origin, destination, [stop.coordinates for stop in waypoints], optimize=True
        )
        try:
            route = data["routes"][0]
            order = route.get("waypoint_order", list(range(len(waypoints))))
            provider_legs = route["legs"]
            if sorted(order) != list(range(len(waypoints))):
                raise ProviderError(f"waypoint_order {order} is not a permutation of {len(waypoints)} waypoints")
            if len(provider_legs) != len(waypoints) + 1:
                raise ProviderError(f"expected {len(waypoints) + 1} legs, got {len(provider_legs)}")

            routed = [waypoints[index] for index in order]
            if destination_stop is not None:
                routed.append(destination_stop)
            legs = [_provider_leg(stop.id, payload) for stop, payload in zip(routed, provider_legs)]
            return_leg = _provider_leg(None, provider_legs[-1]) if destination_stop is None else None
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ProviderError(f"malformed directions response: {exc!r}") from exc

        previous = routed[-1]
        for stop in overflow:
            legs.append(estimate_leg(distance(previous.coordinates, stop.coordinates), stop.id, self.parameters))
            previous = stop
        if return_leg is not None and overflow:
            # The provider's return leg starts at the last waypoint, not at the last overflow stop.
            miles = distance(previous.coordinates, origin)
            return_leg = Leg(
                to_stop_id=None,
                distance_miles=miles,
                duration_minutes=miles * self.parameters.minutes_per_mile,
                estimated=True,
            )
        if return_leg is not None:
            legs.append(return_leg)

        if overflow:
            logger.info(f"Appended {len(overflow)} stop(s) beyond the waypoint cap without optimization")
        metadata.update(strategy="provider", overflow=len(overflow))
        return _summarize(routed + overflow, legs, metadata)

    def _fallback(self, original: Sequence[Stop], candidates: list[Stop], metadata: dict) -> OptimizedRoute:
        position = {id(stop): index for index, stop in enumerate(original)}
        ordered = sorted(candidates, key=lambda stop: position[id(stop)])
        legs = [
            Leg(
                to_stop_id=stop.id,
                distance_miles=self.parameters.fallback_miles_per_stop,
                duration_minutes=self.parameters.fallback_minutes_per_stop,
                estimated=True,
            )
            for stop in ordered
        ]
        metadata["strategy"] = "fallback"
        return _summarize(ordered, legs, metadata)


def to_route(
    optimized: OptimizedRoute,
    start_address: str,
    end_address: str,
    now: datetime | None = None,
) -> Route:
    """Freeze an optimizer result into a trackable route with 1-based stop order."""
    stop_legs = [leg for leg in optimized.legs if leg.to_stop_id is not None]
    stops = [
        RouteStop(
            stop=stop,
            order=index,
            distance_from_previous=round(max(leg.distance_miles, 0.0), 1),
            estimated_minutes_from_previous=max(round(leg.duration_minutes), 0),
        )
        for index, (stop, leg) in enumerate(zip(optimized.stops, stop_legs), start=1)
    ]
    started = now or datetime.now(timezone.utc)
    return Route(
        id=f"route-{uuid4().hex[:12]}",
        stops=stops,
        start_address=start_address,
        end_address=end_address,
        total_distance=round(optimized.total_distance_miles, 1),
        total_duration=round(optimized.total_duration_minutes),
        started_at=started.isoformat(),
    )
