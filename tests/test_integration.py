import inspect
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from route_engine.api.routes import routes
from route_engine.api.routes.routes import get_optimizer, get_tracker
from route_engine.main import create_app
from route_engine.persistence.active_route import JsonRouteStore
from route_engine.services.routing.exceptions import ProviderError
from route_engine.services.routing.optimizer import RouteOptimizer
from route_engine.services.routing.tracker import ActiveRouteTracker


class DummyDirections:
    def __init__(self, error=None) -> None:
        self.error = error

    async def directions(self, origin, destination, waypoints=(), optimize=True):
        if self.error is not None:
            raise self.error
        order = list(range(len(waypoints)))[::-1]
        legs = [{"distance": {"value": 3218.68}, "duration": {"value": 480}} for _ in range(len(waypoints) + 1)]
        return {"status": "OK", "routes": [{"waypoint_order": order, "legs": legs}]}


def _payload(**overrides) -> dict:
    payload = {
        "origin": {"latitude": 42.2809, "longitude": -71.2378},
        "start_address": "1 Depot Way, Needham, MA",
        "stops": [
            {"id": "P1", "latitude": 42.29, "longitude": -71.24, "address": "12 Oak St", "city": "Needham", "priority_score": 80},
            {"id": "P2", "latitude": 42.30, "longitude": -71.25, "address": "40 Elm Rd", "city": "Needham"},
            {"id": "P3", "latitude": 42.31, "longitude": -71.23, "address": "7 Birch Ln", "city": "Needham"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def tracker(tmp_path: Path) -> ActiveRouteTracker:
    return ActiveRouteTracker(JsonRouteStore(root=tmp_path))


def _client(tracker: ActiveRouteTracker, optimizer: RouteOptimizer) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_tracker] = lambda: tracker
    app.dependency_overrides[get_optimizer] = lambda: optimizer
    return TestClient(app)


@pytest.fixture
def api_client(tracker: ActiveRouteTracker) -> TestClient:
    return _client(tracker, RouteOptimizer(directions_provider=DummyDirections()))


def test_health(api_client: TestClient):
    assert api_client.get("/api/health").json() == {"status": "ok"}


def test_optimize_activates_route(api_client: TestClient):
    response = api_client.post("/api/routes/optimize", json=_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["activated"] is True
    assert body["metadata"]["strategy"] == "provider"
    assert [stop["order"] for stop in body["route"]["stops"]] == [1, 2, 3]
    assert body["route"]["end_address"] == "1 Depot Way, Needham, MA"
    assert body["active_route"]["state"] == "planning"
    assert body["total_distance"] == pytest.approx(sum(leg["distance_miles"] for leg in body["legs"]))

    active = api_client.get("/api/routes/active").json()
    assert active["route"]["id"] == body["route"]["id"]


def test_default_priority_is_applied(api_client: TestClient):
    body = api_client.post("/api/routes/optimize", json=_payload()).json()
    priorities = {stop["stop"]["id"]: stop["stop"]["priority_score"] for stop in body["route"]["stops"]}
    assert priorities["P1"] == 80
    assert priorities["P2"] == 50


def test_provider_failure_still_returns_route(tracker: ActiveRouteTracker):
    client = _client(tracker, RouteOptimizer(directions_provider=DummyDirections(error=ProviderError("DOWN"))))

    body = client.post("/api/routes/optimize", json=_payload()).json()

    assert body["metadata"]["strategy"] == "fallback"
    assert [stop["stop"]["id"] for stop in body["route"]["stops"]] == ["P1", "P2", "P3"]
    assert body["route"]["total_distance"] == 15
    assert body["route"]["total_duration"] == 60


def test_field_progress_flow(api_client: TestClient):
    api_client.post("/api/routes/optimize", json=_payload())

    assert api_client.post("/api/routes/active/timer/start").json()["timer_running"] is True
    for index in range(3):
        response = api_client.post(f"/api/routes/active/stops/{index}/visited")
        assert response.status_code == 200
    done = response.json()
    assert done["state"] == "completed"
    assert done["timer_running"] is False
    assert done["route"]["completed_at"] is not None

    reopened = api_client.delete("/api/routes/active/stops/0/visited").json()
    assert reopened["state"] == "in_progress"
    assert reopened["route"]["completed_at"] is None

    reset = api_client.post("/api/routes/active/reset").json()
    assert reset["state"] == "planning"
    assert reset["visited"] == 0


def test_replacing_unfinished_route_requires_confirmation(api_client: TestClient):
    first = api_client.post("/api/routes/optimize", json=_payload()).json()
    api_client.post("/api/routes/active/stops/0/visited")

    conflict = api_client.post("/api/routes/optimize", json=_payload())
    assert conflict.status_code == 409
    assert api_client.get("/api/routes/active").json()["route"]["id"] == first["route"]["id"]

    replaced = api_client.post("/api/routes/optimize", json=_payload(confirm_replace=True))
    assert replaced.status_code == 200
    assert replaced.json()["route"]["id"] != first["route"]["id"]


def test_close_route(api_client: TestClient):
    api_client.post("/api/routes/optimize", json=_payload())

    assert api_client.delete("/api/routes/active").status_code == 409
    assert api_client.delete("/api/routes/active", params={"confirm": True}).status_code == 200
    assert api_client.get("/api/routes/active").status_code == 404


def test_missing_route_and_bad_index(api_client: TestClient):
    assert api_client.post("/api/routes/active/stops/0/visited").status_code == 404

    api_client.post("/api/routes/optimize", json=_payload())
    assert api_client.post("/api/routes/active/stops/9/visited").status_code == 404


def test_export_and_navigation(api_client: TestClient):
    api_client.post("/api/routes/optimize", json=_payload(use_provider=False))

    csv_response = api_client.get("/api/routes/active/export.csv")
    assert csv_response.status_code == 200
    assert csv_response.text.splitlines()[0].startswith("order,stop_id")

    nav = api_client.get("/api/routes/active/stops/0/navigation").json()
    assert nav["url"].startswith("https://www.google.com/maps/dir/")


def test_tracker_endpoints_share_the_event_loop():
    tracker_routes = [route for route in routes.router.routes if "/active" in route.path]

    assert len(tracker_routes) == 8
    assert all(inspect.iscoroutinefunction(route.endpoint) for route in tracker_routes)
