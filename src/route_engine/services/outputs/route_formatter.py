"""Serializers for the active route record."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict

from ...models.domain import Stop
from ..routing.models import Route, RouteStop, TrackerSnapshot


def route_to_json(route: Route) -> dict:
    return {
        "id": route.id,
        "startAddress": route.start_address,
        "endAddress": route.end_address,
        "totalDistance": route.total_distance,
        "totalDuration": route.total_duration,
        "startedAt": route.started_at,
        "completedAt": route.completed_at,
        "currentStopIndex": route.current_stop_index,
        "stops": [
            {
                "stop": asdict(item.stop),
                "order": item.order,
                "visited": item.visited,
                "distanceFromPrevious": item.distance_from_previous,
                "estimatedMinutesFromPrevious": item.estimated_minutes_from_previous,
            }
            for item in route.stops
        ],
    }


def route_from_json(data: dict) -> Route:
    stops = [
        RouteStop(
            stop=Stop(**item["stop"]),
            order=int(item["order"]),
            visited=bool(item["visited"]),
            distance_from_previous=float(item["distanceFromPrevious"]),
            estimated_minutes_from_previous=int(item["estimatedMinutesFromPrevious"]),
        )
        for item in data["stops"]
    ]
    return Route(
        id=data["id"],
        stops=stops,
        start_address=data["startAddress"],
        end_address=data["endAddress"],
        total_distance=float(data["totalDistance"]),
        total_duration=int(data["totalDuration"]),
        started_at=data["startedAt"],
        completed_at=data.get("completedAt"),
        current_stop_index=int(data.get("currentStopIndex", 0)),
    )


def snapshot_to_json(snapshot: TrackerSnapshot) -> dict:
    return {
        "route": route_to_json(snapshot.route),
        "elapsedMinutes": snapshot.elapsed_minutes,
        "timerRunning": snapshot.timer_running,
        "timerAnchor": snapshot.timer_anchor,
    }


def snapshot_from_json(data: dict) -> TrackerSnapshot:
    return TrackerSnapshot(
        route=route_from_json(data["route"]),
        elapsed_minutes=int(data.get("elapsedMinutes", 0)),
        timer_running=bool(data.get("timerRunning", False)),
        timer_anchor=data.get("timerAnchor"),
    )


def route_to_csv(route: Route) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "order",
        "stop_id",
        "address",
        "city",
        "priority_score",
        "visited",
        "distance_from_previous_mi",
        "estimated_minutes_from_previous",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for item in route.stops:
        writer.writerow(
            {
                "order": item.order,
                "stop_id": item.stop.id,
                "address": item.stop.address,
                "city": item.stop.city or "",
                "priority_score": item.stop.priority_score,
                "visited": item.visited,
                "distance_from_previous_mi": item.distance_from_previous,
                "estimated_minutes_from_previous": item.estimated_minutes_from_previous,
            }
        )
    return buffer.getvalue()
