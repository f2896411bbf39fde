"""Routing endpoints."""

from __future__ import annotations

from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...persistence.active_route import JsonRouteStore
from ...schemas.routing import ActiveRouteResponse, OptimizeRequest, OptimizeResponse
from ...services.outputs.route_formatter import route_to_csv
from ...services.routing.exceptions import RouteEngineError, UnconfirmedDiscardError
from ...services.routing.optimizer import RouteOptimizer
from ...services.routing.service import active_route_response, build_optimizer, optimize_route
from ...services.routing.tracker import ActiveRouteTracker

router = APIRouter(prefix="/routes", tags=["routes"])


@lru_cache()
def get_tracker() -> ActiveRouteTracker:
    return ActiveRouteTracker(JsonRouteStore())


@lru_cache()
def get_optimizer() -> RouteOptimizer:
    return build_optimizer()


def _http_error(exc: RouteEngineError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.post("/optimize", response_model=OptimizeResponse, status_code=status.HTTP_200_OK)
async def optimize(
    payload: OptimizeRequest,
    optimizer: RouteOptimizer = Depends(get_optimizer),
    tracker: ActiveRouteTracker = Depends(get_tracker),
) -> OptimizeResponse:
    try:
        return await optimize_route(payload, optimizer, tracker)
    except RouteEngineError as exc:
        raise _http_error(exc) from exc


@router.get("/active", response_model=ActiveRouteResponse)
async def get_active_route(tracker: ActiveRouteTracker = Depends(get_tracker)) -> ActiveRouteResponse:
    try:
        return active_route_response(tracker)
    except RouteEngineError as exc:
        raise _http_error(exc) from exc


@router.post("/active/stops/{stop_index}/visited", response_model=ActiveRouteResponse)
async def mark_visited(stop_index: int, tracker: ActiveRouteTracker = Depends(get_tracker)) -> ActiveRouteResponse:
    try:
        tracker.mark_visited(stop_index)
        return active_route_response(tracker)
    except RouteEngineError as exc:
        raise _http_error(exc) from exc
    except IndexError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/active/stops/{stop_index}/visited", response_model=ActiveRouteResponse)
async def mark_unvisited(stop_index: int, tracker: ActiveRouteTracker = Depends(get_tracker)) -> ActiveRouteResponse:
    try:
        tracker.mark_unvisited(stop_index)
        return active_route_response(tracker)
    except RouteEngineError as exc:
        raise _http_error(exc) from exc
    except IndexError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/active/reset", response_model=ActiveRouteResponse)
async def reset(tracker: ActiveRouteTracker = Depends(get_tracker)) -> ActiveRouteResponse:
    try:
        tracker.reset()
        return active_route_response(tracker)
    except RouteEngineError as exc:
        raise _http_error(exc) from exc


@router.post("/active/timer/{action}", response_model=ActiveRouteResponse)
async def timer(action: str, tracker: ActiveRouteTracker = Depends(get_tracker)) -> ActiveRouteResponse:
    handlers = {"start": tracker.start_timer, "pause": tracker.pause_timer, "tick": tracker.tick}
    handler = handlers.get(action)
    if handler is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown timer action: {action}")
    try:
        handler()
        return active_route_response(tracker)
    except RouteEngineError as exc:
        raise _http_error(exc) from exc


@router.get("/active/stops/{stop_index}/navigation")
async def navigation(stop_index: int, tracker: ActiveRouteTracker = Depends(get_tracker)) -> dict:
    try:
        return {"url": tracker.navigation_url(stop_index)}
    except RouteEngineError as exc:
        raise _http_error(exc) from exc
    except IndexError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/active/export.csv")
async def export_csv(tracker: ActiveRouteTracker = Depends(get_tracker)) -> Response:
    try:
        content = route_to_csv(tracker.route)
    except RouteEngineError as exc:
        raise _http_error(exc) from exc
    return Response(content=content, media_type="text/csv")


@router.delete("/active", status_code=status.HTTP_200_OK)
async def close(
    confirm: bool = Query(default=False, description="Discard the route even if it is unfinished."),
    tracker: ActiveRouteTracker = Depends(get_tracker),
) -> dict:
    try:
        if not tracker.close(confirm=lambda: confirm):
            raise UnconfirmedDiscardError()
    except RouteEngineError as exc:
        raise _http_error(exc) from exc
    return {"success": True, "message": "Active route closed"}
