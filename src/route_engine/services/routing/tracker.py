"""Live progress tracking for the single active route.

The tracker is the only thing that mutates a ``Route`` after it has been
built. State is read from the store once, at construction, and written back
wholesale after every mutating call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...persistence.active_route import RouteStore
from .exceptions import NoActiveRouteError
from .google_client import build_navigation_url
from .models import Route, RouteState, RouteStop, TrackerSnapshot

logger = logging.getLogger(__name__)

Confirm = Callable[[], bool]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class RouteProgress:
    state: RouteState
    visited: int
    remaining: int
    total: int
    percent_complete: float
    current_stop_index: int
    current_stop: Optional[RouteStop]
    elapsed_minutes: int
    timer_running: bool


class ActiveRouteTracker:
    def __init__(
        self,
        store: RouteStore,
        clock: Callable[[], datetime] | None = None,
        on_visit: Callable[[str], None] | None = None,
    ) -> None:
        self.store = store
        self._clock = clock or _utcnow
        self.on_visit = on_visit
        self._snapshot: TrackerSnapshot | None = store.load()
        if self._snapshot is not None:
            logger.info(f"Resumed active route {self._snapshot.route.id}")

    # -- accessors ---------------------------------------------------------

    @property
    def has_route(self) -> bool:
        return self._snapshot is not None

    @property
    def route(self) -> Route:
        return self._require().route

    @property
    def snapshot(self) -> TrackerSnapshot:
        return self._require()

    @property
    def state(self) -> RouteState:
        return self.route.state

    @property
    def elapsed_minutes(self) -> int:
        return self._require().elapsed_minutes

    @property
    def timer_running(self) -> bool:
        return self._require().timer_running

    def current_stop(self) -> RouteStop | None:
        route = self.route
        if not route.stops:
            return None
        return route.stops[route.current_stop_index]

    def incomplete_stops(self) -> list[RouteStop]:
        return [stop for stop in self.route.stops if not stop.visited]

    def progress(self) -> RouteProgress:
        snapshot = self._require()
        route = snapshot.route
        total = len(route.stops)
        visited = route.visited_count
        return RouteProgress(
            state=route.state,
            visited=visited,
            remaining=total - visited,
            total=total,
            percent_complete=round(visited / total * 100, 1) if total else 0.0,
            current_stop_index=route.current_stop_index,
            current_stop=self.current_stop(),
            elapsed_minutes=snapshot.elapsed_minutes,
            timer_running=snapshot.timer_running,
        )

    def navigation_url(self, stop_index: int) -> str:
        stop = self._stop(stop_index).stop
        locality = " ".join(part for part in (stop.state, stop.zip_code) if part)
        address = ", ".join(part for part in (stop.address, stop.city, locality) if part)
        return build_navigation_url(address)

    # -- lifecycle ---------------------------------------------------------

    def load(self, route: Route, confirm: Confirm | None = None) -> bool:
        """Install a freshly optimized route.

        Replacing a route that is not completed needs ``confirm`` to return
        True; otherwise nothing changes and False is returned.
        """
        current = self._snapshot
        if current is not None and current.route.state is not RouteState.COMPLETED:
            if confirm is None or not confirm():
                logger.info(f"Kept unfinished route {current.route.id}; replacement not confirmed")
                return False
            logger.info(f"Discarding unfinished route {current.route.id}")
        route.current_stop_index = min(max(route.current_stop_index, 0), route.last_index)
        self._snapshot = TrackerSnapshot(route=route)
        self._persist()
        return True

    def close(self, confirm: Confirm | None = None) -> bool:
        """Discard the active route and its persisted record.

        An unfinished route is only closed when ``confirm`` returns True.
        """
        snapshot = self._require()
        if snapshot.route.state is not RouteState.COMPLETED:
            if confirm is None or not confirm():
                return False
        self.store.clear()
        self._snapshot = None
        logger.info(f"Closed route {snapshot.route.id}")
        return True

    # -- visit progress ----------------------------------------------------

    def mark_visited(self, stop_index: int) -> Route:
        snapshot = self._require()
        route = snapshot.route
        stop = self._stop(stop_index)
        stop.visited = True
        route.current_stop_index = min(stop_index + 1, route.last_index)

        if route.all_visited and route.completed_at is None:
            now = self._clock()
            route.completed_at = now.isoformat()
            self._halt_timer(snapshot, now)
            logger.info(f"Route {route.id} completed with {len(route.stops)} stops")

        self._persist()
        if self.on_visit is not None:
            self.on_visit(stop.stop.id)
        return route

    def mark_unvisited(self, stop_index: int) -> Route:
        route = self.route
        self._stop(stop_index).visited = False
        route.completed_at = None
        self._persist()
        return route

    def reset(self) -> Route:
        snapshot = self._require()
        route = snapshot.route
        for stop in route.stops:
            stop.visited = False
        route.current_stop_index = 0
        route.completed_at = None
        snapshot.elapsed_minutes = 0
        snapshot.timer_running = False
        snapshot.timer_anchor = None
        self._persist()
        logger.info(f"Route {route.id} progress reset")
        return route

    # -- timer ---------------------------------------------------------------

    def start_timer(self) -> None:
        snapshot = self._require()
        if snapshot.timer_running:
            return
        snapshot.timer_running = True
        snapshot.timer_anchor = self._clock().isoformat()
        self._persist()

    def pause_timer(self) -> None:
        snapshot = self._require()
        if not snapshot.timer_running:
            return
        self._halt_timer(snapshot, self._clock())
        self._persist()

    def tick(self, now: datetime | None = None) -> int:
        """Fold whole minutes elapsed since the last tick into the accumulator."""
        snapshot = self._require()
        if snapshot.timer_running and self._accumulate(snapshot, now or self._clock()):
            self._persist()
        return snapshot.elapsed_minutes

    # -- internals -------------------------------------------------------

    def _require(self) -> TrackerSnapshot:
        if self._snapshot is None:
            raise NoActiveRouteError()
        return self._snapshot

    def _stop(self, stop_index: int) -> RouteStop:
        stops = self.route.stops
        if not 0 <= stop_index < len(stops):
            raise IndexError(f"Stop index {stop_index} out of range for {len(stops)} stops")
        return stops[stop_index]

    def _persist(self) -> None:
        self.store.save(self._require())

    @staticmethod
    def _accumulate(snapshot: TrackerSnapshot, now: datetime) -> int:
        if snapshot.timer_anchor is None:
            snapshot.timer_anchor = now.isoformat()
            return 0
        anchor = datetime.fromisoformat(snapshot.timer_anchor)
        minutes = int((now - anchor).total_seconds() // 60)
        if minutes <= 0:
            return 0
        snapshot.elapsed_minutes += minutes
        # Sub-minute remainder carries over to the next tick.
        snapshot.timer_anchor = (anchor + timedelta(minutes=minutes)).isoformat()
        return minutes

    def _halt_timer(self, snapshot: TrackerSnapshot, now: datetime) -> None:
        if snapshot.timer_running:
            self._accumulate(snapshot, now)
        snapshot.timer_running = False
        snapshot.timer_anchor = None
