"""Routing orchestration service."""

from __future__ import annotations

import logging
from dataclasses import asdict

from ...config import settings
from ...models.domain import Coordinates, Stop
from ...schemas.routing import (
    ActiveRouteResponse,
    LegModel,
    OptimizeRequest,
    OptimizeResponse,
    RouteModel,
    RouteStopModel,
    StopModel,
)
from .distance_matrix import DistanceMatrixClient
from .exceptions import UnconfirmedDiscardError
from .google_client import GoogleMapsClient
from .models import Route
from .optimizer import RouteOptimizer, to_route
from .tracker import ActiveRouteTracker

logger = logging.getLogger(__name__)


def build_optimizer() -> RouteOptimizer:
    """Wire the optimizer to the mapping provider when an API key is configured."""
    if not settings.provider_configured:
        logger.warning("Mapping provider not configured; optimization will use local fallbacks")
        return RouteOptimizer()
    client = GoogleMapsClient()
    return RouteOptimizer(directions_provider=client, matrix_client=DistanceMatrixClient(client))


def _to_domain_stop(model: StopModel) -> Stop:
    priority = model.priority_score if model.priority_score is not None else settings.default_priority_score
    return Stop(
        id=model.id,
        latitude=model.latitude,
        longitude=model.longitude,
        address=model.address,
        city=model.city,
        state=model.state,
        zip_code=model.zip_code,
        priority_score=priority,
    )


def route_to_model(route: Route) -> RouteModel:
    return RouteModel(
        id=route.id,
        start_address=route.start_address,
        end_address=route.end_address,
        total_distance=route.total_distance,
        total_duration=route.total_duration,
        started_at=route.started_at,
        completed_at=route.completed_at,
        current_stop_index=route.current_stop_index,
        stops=[
            RouteStopModel(
                order=item.order,
                visited=item.visited,
                distance_from_previous=item.distance_from_previous,
                estimated_minutes_from_previous=item.estimated_minutes_from_previous,
                stop=StopModel(**asdict(item.stop)),
            )
            for item in route.stops
        ],
    )


def active_route_response(tracker: ActiveRouteTracker) -> ActiveRouteResponse:
    progress = tracker.progress()
    return ActiveRouteResponse(
        state=progress.state.value,
        visited=progress.visited,
        remaining=progress.remaining,
        percent_complete=progress.percent_complete,
        elapsed_minutes=progress.elapsed_minutes,
        timer_running=progress.timer_running,
        route=route_to_model(tracker.route),
    )


async def optimize_route(
    payload: OptimizeRequest,
    optimizer: RouteOptimizer,
    tracker: ActiveRouteTracker,
) -> OptimizeResponse:
    stops = [_to_domain_stop(model) for model in payload.stops]
    origin = Coordinates(payload.origin.latitude, payload.origin.longitude)

    if payload.use_provider:
        result = await optimizer.optimize(origin, stops, return_to_origin=payload.return_to_origin)
    else:
        result = optimizer.plan_local(stops)

    route = to_route(result, payload.start_address, payload.end_address or payload.start_address)
    logger.info(
        f"Planned route {route.id}: {len(route.stops)} stops, "
        f"{route.total_distance} mi, {route.total_duration} min ({result.metadata.get('strategy')})"
    )

    activated = False
    if payload.activate:
        activated = tracker.load(route, confirm=lambda: payload.confirm_replace)
        if not activated:
            raise UnconfirmedDiscardError(
                "An unfinished route is active. Resubmit with confirm_replace=true to discard it."
            )

    return OptimizeResponse(
        total_distance=result.total_distance_miles,
        total_duration=result.total_duration_minutes,
        legs=[LegModel(**asdict(leg)) for leg in result.legs],
        metadata=result.metadata,
        route=route_to_model(route),
        activated=activated,
        active_route=active_route_response(tracker) if activated else None,
    )
