"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ...models.domain import Stop


class RouteState(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(slots=True)
class DistanceEstimate:
    distance_meters: float
    duration_seconds: float


@dataclass(slots=True)
class ScoredStop:
    stop: Stop
    distance_meters: float
    duration_seconds: float
    composite_score: float


@dataclass(slots=True)
class Leg:
    """Travel segment arriving at ``to_stop_id``; ``None`` marks the return to origin."""

    to_stop_id: Optional[str]
    distance_miles: float
    duration_minutes: float
    estimated: bool = False


@dataclass(slots=True)
class OptimizedRoute:
    stops: List[Stop]
    total_distance_miles: float
    total_duration_minutes: float
    legs: List[Leg]
    metadata: dict = field(default_factory=dict)


@dataclass(slots=True)
class RouteStop:
    stop: Stop
    order: int
    visited: bool = False
    distance_from_previous: float = 0.0
    estimated_minutes_from_previous: int = 0


@dataclass(slots=True)
class Route:
    id: str
    stops: List[RouteStop]
    start_address: str
    end_address: str
    total_distance: float
    total_duration: int
    started_at: str
    completed_at: Optional[str] = None
    current_stop_index: int = 0

    @property
    def last_index(self) -> int:
        return max(len(self.stops) - 1, 0)

    @property
    def visited_count(self) -> int:
        return sum(1 for stop in self.stops if stop.visited)

    @property
    def all_visited(self) -> bool:
        return bool(self.stops) and all(stop.visited for stop in self.stops)

    @property
    def state(self) -> RouteState:
        if self.completed_at is not None:
            return RouteState.COMPLETED
        if self.visited_count:
            return RouteState.IN_PROGRESS
        return RouteState.PLANNING


@dataclass(slots=True)
class TrackerSnapshot:
    """Everything the tracker persists: the route plus timer bookkeeping."""

    route: Route
    elapsed_minutes: int = 0
    timer_running: bool = False
    timer_anchor: Optional[str] = None
