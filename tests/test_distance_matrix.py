import httpx
import pytest

from route_engine.models.domain import Coordinates, Stop
from route_engine.services.routing.distance_matrix import DistanceMatrixClient
from route_engine.services.routing.exceptions import ProviderError
from route_engine.services.routing.google_client import GoogleMapsClient

ORIGIN = Coordinates(42.2809, -71.2378)


def _stop(sid: str, offset: float = 0.0) -> Stop:
    return Stop(id=sid, latitude=42.3 + offset, longitude=-71.2, address=f"{sid} Main St", city="Needham")


def _element(meters: int = 1000, seconds: int = 600, **extra) -> dict:
    return {"status": "OK", "distance": {"value": meters}, "duration": {"value": seconds}, **extra}


class DummyMatrix:
    def __init__(self, fail_calls: set[int] | None = None, elements=None) -> None:
        self.calls: list[int] = []
        self.fail_calls = fail_calls or set()
        self.elements = elements

    async def distance_matrix(self, origin, destinations):
        self.calls.append(len(destinations))
        if len(self.calls) - 1 in self.fail_calls:
            raise ProviderError("OVER_QUERY_LIMIT", provider_status="OVER_QUERY_LIMIT")
        elements = self.elements or [_element() for _ in destinations]
        return {"status": "OK", "rows": [{"elements": elements}]}


@pytest.mark.asyncio
async def test_batches_destinations_in_chunks_of_25():
    provider = DummyMatrix()
    stops = [_stop(f"P{i}", i * 0.001) for i in range(60)]

    result = await DistanceMatrixClient(provider).batch_distances(ORIGIN, stops)

    assert provider.calls == [25, 25, 10]
    assert set(result) == {stop.id for stop in stops}
    assert result["P0"].distance_meters == 1000
    assert result["P0"].duration_seconds == 600


@pytest.mark.asyncio
async def test_prefers_traffic_aware_duration():
    provider = DummyMatrix(
        elements=[
            _element(seconds=600, duration_in_traffic={"value": 900}),
            _element(seconds=300),
        ]
    )

    result = await DistanceMatrixClient(provider).batch_distances(ORIGIN, [_stop("A"), _stop("B", 0.01)])

    assert result["A"].duration_seconds == 900
    assert result["B"].duration_seconds == 300


@pytest.mark.asyncio
async def test_failed_elements_are_omitted_not_zeroed():
    provider = DummyMatrix(elements=[_element(), {"status": "ZERO_RESULTS"}, _element(meters=5000)])
    stops = [_stop("A"), _stop("B", 0.01), _stop("C", 0.02)]

    result = await DistanceMatrixClient(provider).batch_distances(ORIGIN, stops)

    assert "B" not in result
    assert result["C"].distance_meters == 5000


@pytest.mark.asyncio
async def test_failed_chunk_does_not_abort_remaining_chunks():
    provider = DummyMatrix(fail_calls={1})
    stops = [_stop(f"P{i}", i * 0.001) for i in range(60)]

    result = await DistanceMatrixClient(provider).batch_distances(ORIGIN, stops)

    assert provider.calls == [25, 25, 10]
    assert set(result) == {f"P{i}" for i in range(25)} | {f"P{i}" for i in range(50, 60)}


@pytest.mark.asyncio
async def test_no_destinations_means_no_requests():
    provider = DummyMatrix()
    assert await DistanceMatrixClient(provider).batch_distances(ORIGIN, []) == {}
    assert provider.calls == []


def _client(handler) -> GoogleMapsClient:
    return GoogleMapsClient(api_key="test-key", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_google_client_builds_distance_matrix_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"status": "OK", "rows": [{"elements": [_element(), _element()]}]})

    data = await _client(handler).distance_matrix(
        ORIGIN, [Coordinates(42.3, -71.2), Coordinates(42.31, -71.21)]
    )

    assert seen["path"].endswith("/distancematrix/json")
    assert seen["params"]["origins"] == "42.2809,-71.2378"
    assert seen["params"]["destinations"] == "42.3,-71.2|42.31,-71.21"
    assert seen["params"]["departure_time"] == "now"
    assert seen["params"]["key"] == "test-key"
    assert len(data["rows"][0]["elements"]) == 2


@pytest.mark.asyncio
async def test_google_client_directions_flags_waypoint_optimization():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"status": "OK", "routes": [{"waypoint_order": [1, 0], "legs": []}]})

    await _client(handler).directions(
        ORIGIN, ORIGIN, [Coordinates(42.3, -71.2), Coordinates(42.31, -71.21)]
    )

    assert seen["params"]["waypoints"] == "optimize:true|42.3,-71.2|42.31,-71.21"
    assert seen["params"]["destination"] == seen["params"]["origin"]


@pytest.mark.asyncio
async def test_google_client_raises_provider_error_on_bad_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "OVER_QUERY_LIMIT", "error_message": "quota exceeded"})

    with pytest.raises(ProviderError) as excinfo:
        await _client(handler).distance_matrix(ORIGIN, [Coordinates(42.3, -71.2)])
    assert excinfo.value.provider_status == "OVER_QUERY_LIMIT"


@pytest.mark.asyncio
async def test_google_client_raises_provider_error_on_http_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(ProviderError):
        await _client(handler).directions(ORIGIN, ORIGIN, [Coordinates(42.3, -71.2)])


@pytest.mark.asyncio
async def test_google_client_treats_empty_routes_as_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "OK", "routes": []})

    with pytest.raises(ProviderError):
        await _client(handler).directions(ORIGIN, ORIGIN, [Coordinates(42.3, -71.2)])


@pytest.mark.asyncio
async def test_google_client_rejects_oversized_batches():
    client = _client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(ValueError):
        await client.distance_matrix(ORIGIN, [Coordinates(42.3, -71.2)] * 26)


def test_google_client_requires_api_key(monkeypatch):
    from route_engine.config import settings

    monkeypatch.setattr(settings, "google_maps_api_key", None)
    with pytest.raises(ValueError):
        GoogleMapsClient()
