"""E2E tests for the streamable HTTP transport.

Tests the full stack: create_app → DispatchFront → StreamableHTTPTransport →
ServerSession → LowLevelServer, exercised via httpx's ASGI transport (real HTTP
semantics, no running server) with the weather APIs replaced by a mock.
"""

import json
from typing import Any

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request

from mcp_weather.app import create_app
from mcp_weather.registry import SessionRegistry
from mcp_weather.runner import RunningServer
from mcp_weather.server import LowLevelServer
from mcp_weather.settings import Settings
from mcp_weather.transport.streamable_http import StreamableHTTPTransport
from mcp_weather.types import INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND, PARSE_ERROR

pytestmark = pytest.mark.anyio

PARIS_SUMMARY = "Weather in Paris (FR): 15.2°C, 70% humidity, wind 11.5 km/h."


def _init_request(request_id: int = 1) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": "2025-06-18",
            "capabilities": {},
            "clientInfo": {"name": "test-client", "version": "1.0"},
        },
    }


def _weather_call(request_id: int, city: str, progress_token: str | None = None, **arguments: Any) -> dict[str, Any]:
    params: dict[str, Any] = {"name": "realtime_weather", "arguments": {"city": city, **arguments}}
    if progress_token is not None:
        params["_meta"] = {"progressToken": progress_token}
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": params}


async def _do_init(client: httpx.AsyncClient) -> str:
    """Perform init handshake, return session_id."""
    resp = await client.post("/mcp", json=_init_request())
    assert resp.status_code == 200
    session_id = resp.headers["mcp-session-id"]

    resp = await client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "method": "notifications/initialized"},
        headers={"mcp-session-id": session_id},
    )
    assert resp.status_code == 202
    return session_id


def _sse_data(resp: httpx.Response) -> list[dict[str, Any]]:
    return [json.loads(line[6:]) for line in resp.text.splitlines() if line.startswith("data: ")]


def _registry(app: Starlette):
    return app.state.front.streamable.registry


async def test_initialize_creates_session(client: httpx.AsyncClient, app: Starlette) -> None:
    resp = await client.post("/mcp", json=_init_request())

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"
    session_id = resp.headers["mcp-session-id"]
    assert _registry(app).session_ids() == [session_id]

    result = resp.json()["result"]
    assert result["protocolVersion"] == "2025-06-18"
    assert result["serverInfo"] == {"name": "mcp-http", "version": "1.0.0"}
    assert result["capabilities"]["tools"] == {"listChanged": False}


async def test_weather_session_lifecycle(client: httpx.AsyncClient, app: Starlette, weather_api) -> None:
    session_id = await _do_init(client)

    resp = await client.post("/mcp", json=_weather_call(2, "Paris"), headers={"mcp-session-id": session_id})
    assert resp.status_code == 200
    assert resp.headers["mcp-session-id"] == session_id
    data = resp.json()
    assert data["id"] == 2
    assert data["result"]["content"] == [{"type": "text", "text": PARIS_SUMMARY}]
    assert data["result"]["isError"] is False
    assert data["result"]["structuredContent"]["country"] == "FR"
    assert len(weather_api.forecast_requests) == 1

    resp = await client.delete("/mcp", headers={"mcp-session-id": session_id})
    assert resp.status_code == 200
    assert session_id not in _registry(app)

    resp = await client.get("/mcp", headers={"mcp-session-id": session_id})
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Bad Request: No valid session ID provided"

    resp = await client.post("/mcp", json=_weather_call(3, "Paris"), headers={"mcp-session-id": session_id})
    assert resp.status_code == 400
    assert len(weather_api.forecast_requests) == 1


async def test_post_without_session_id_creates_exactly_one(client: httpx.AsyncClient, app: Starlette) -> None:
    resp = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})

    assert resp.status_code == 200
    assert resp.json() == {"jsonrpc": "2.0", "id": 1, "result": {}}
    assert _registry(app).session_ids() == [resp.headers["mcp-session-id"]]


async def test_sessions_get_distinct_ids(client: httpx.AsyncClient, app: Starlette) -> None:
    first = await _do_init(client)
    second = await _do_init(client)

    assert first != second
    assert len(_registry(app)) == 2

    resp = await client.delete("/mcp", headers={"mcp-session-id": first})
    assert resp.status_code == 200

    resp = await client.post(
        "/mcp", json={"jsonrpc": "2.0", "id": 5, "method": "ping"}, headers={"mcp-session-id": second}
    )
    assert resp.status_code == 200
    assert _registry(app).session_ids() == [second]


@pytest.mark.parametrize("method", ["GET", "DELETE"])
@pytest.mark.parametrize("headers", [{}, {"mcp-session-id": "nonexistent"}, {"mcp-session-id": ""}])
async def test_invalid_session_id_rejected(
    client: httpx.AsyncClient, app: Starlette, method: str, headers: dict[str, str]
) -> None:
    resp = await client.request(method, "/mcp", headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == INVALID_REQUEST
    assert len(_registry(app)) == 0


async def test_post_with_unknown_session_id_creates_nothing(client: httpx.AsyncClient, app: Starlette) -> None:
    resp = await client.post("/mcp", json=_init_request(), headers={"mcp-session-id": "0" * 32})

    assert resp.status_code == 400
    assert "mcp-session-id" not in resp.headers
    assert len(_registry(app)) == 0


@pytest.mark.parametrize(
    ("body", "code"),
    [
        (b"{not json", PARSE_ERROR),
        (b'[{"jsonrpc": "2.0", "id": 1, "method": "ping"}]', INVALID_REQUEST),
        (b'{"jsonrpc": "2.0", "id": 1, "method": "resources/list"}', METHOD_NOT_FOUND),
        (b'{"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"arguments": {}}}', INVALID_PARAMS),
    ],
)
async def test_undecodable_body_is_a_client_error(
    client: httpx.AsyncClient, app: Starlette, body: bytes, code: int
) -> None:
    resp = await client.post("/mcp", content=body, headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == code
    assert len(_registry(app)) == 0


async def test_wrong_content_type(client: httpx.AsyncClient, app: Starlette) -> None:
    resp = await client.post("/mcp", content=json.dumps(_init_request()), headers={"content-type": "text/plain"})

    assert resp.status_code == 415
    assert len(_registry(app)) == 0


async def test_list_tools(client: httpx.AsyncClient) -> None:
    session_id = await _do_init(client)

    resp = await client.post(
        "/mcp", json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"}, headers={"mcp-session-id": session_id}
    )

    tools = resp.json()["result"]["tools"]
    assert [tool["name"] for tool in tools] == ["realtime_weather"]
    schema = tools[0]["inputSchema"]
    assert schema["type"] == "object"
    assert schema["required"] == ["city"]
    assert set(schema["properties"]) == {"city", "country", "lang"}


async def test_unknown_arguments_are_ignored(client: httpx.AsyncClient, weather_api) -> None:
    session_id = await _do_init(client)

    resp = await client.post(
        "/mcp", json=_weather_call(2, "Paris", units="metric"), headers={"mcp-session-id": session_id}
    )

    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["isError"] is False
    assert result["content"][0]["text"] == PARIS_SUMMARY
    assert "units" not in weather_api.geocoding_requests[0].url.params


async def test_unknown_city(client: httpx.AsyncClient, weather_api) -> None:
    session_id = await _do_init(client)

    resp = await client.post("/mcp", json=_weather_call(2, "Atlantis"), headers={"mcp-session-id": session_id})

    result = resp.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "City not found: Atlantis"
    assert len(weather_api.forecast_requests) == 0


async def test_collaborator_failure_keeps_session_usable(
    client: httpx.AsyncClient, app: Starlette, weather_api
) -> None:
    session_id = await _do_init(client)
    weather_api.fail_forecast = True

    resp = await client.post("/mcp", json=_weather_call(2, "Paris"), headers={"mcp-session-id": session_id})
    result = resp.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Error while fetching weather data."
    assert _registry(app).get(session_id).is_active

    weather_api.fail_forecast = False
    resp = await client.post("/mcp", json=_weather_call(3, "Paris"), headers={"mcp-session-id": session_id})
    assert resp.json()["result"]["content"][0]["text"] == PARIS_SUMMARY


async def test_unknown_tool_and_bad_arguments(client: httpx.AsyncClient) -> None:
    session_id = await _do_init(client)

    resp = await client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"name": "forecast", "arguments": {}}},
        headers={"mcp-session-id": session_id},
    )
    assert resp.status_code == 200
    assert resp.json()["error"]["code"] == INVALID_PARAMS

    resp = await client.post(
        "/mcp", json=_weather_call(3, ""), headers={"mcp-session-id": session_id}
    )
    assert resp.status_code == 200
    assert resp.json()["error"]["code"] == INVALID_PARAMS


async def test_progress_streams_as_sse(client: httpx.AsyncClient) -> None:
    session_id = await _do_init(client)

    resp = await client.post(
        "/mcp", json=_weather_call(2, "Paris", progress_token="tok"), headers={"mcp-session-id": session_id}
    )

    assert resp.status_code == 200
    assert "text/event-stream" in resp.headers["content-type"]
    assert resp.headers["mcp-session-id"] == session_id

    events = _sse_data(resp)
    assert [event.get("method") for event in events] == ["notifications/progress", "notifications/progress", None]
    assert [event["params"]["progress"] for event in events[:2]] == [0, 1]
    assert all(event["params"]["progressToken"] == "tok" for event in events[:2])
    assert events[2]["id"] == 2
    assert events[2]["result"]["content"][0]["text"] == PARIS_SUMMARY


@pytest.mark.parametrize("settings", [Settings(json_response=True)])
async def test_json_response_defers_progress_to_poll(client: httpx.AsyncClient) -> None:
    session_id = await _do_init(client)

    resp = await client.post(
        "/mcp", json=_weather_call(2, "Paris", progress_token=7), headers={"mcp-session-id": session_id}
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"
    assert resp.json()["result"]["content"][0]["text"] == PARIS_SUMMARY

    resp = await client.get("/mcp", headers={"mcp-session-id": session_id})
    assert resp.status_code == 200
    pending = resp.json()
    assert [message["method"] for message in pending] == ["notifications/progress", "notifications/progress"]
    assert pending[0]["params"]["progressToken"] == 7

    resp = await client.get("/mcp", headers={"mcp-session-id": session_id})
    assert resp.json() == []


@pytest.mark.parametrize("settings", [Settings(json_response=True)])
async def test_poll_as_event_stream(client: httpx.AsyncClient) -> None:
    session_id = await _do_init(client)
    await client.post("/mcp", json=_weather_call(2, "Paris", progress_token=7), headers={"mcp-session-id": session_id})

    headers = {"mcp-session-id": session_id, "accept": "text/event-stream"}
    resp = await client.get("/mcp", headers=headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["mcp-session-id"] == session_id
    assert [event["params"]["progress"] for event in _sse_data(resp)] == [0, 1]

    resp = await client.get("/mcp", headers=headers)
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.text == ""

async def test_notification_is_accepted(client: httpx.AsyncClient, app: Starlette) -> None:
    session_id = await _do_init(client)

    resp = await client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "method": "notifications/cancelled", "params": {"requestId": 1}},
        headers={"mcp-session-id": session_id},
    )

    assert resp.status_code == 202
    assert resp.headers["mcp-session-id"] == session_id

    # Messages of one session are processed in order, so the ping answers last
    resp = await client.post(
        "/mcp", json={"jsonrpc": "2.0", "id": 3, "method": "ping"}, headers={"mcp-session-id": session_id}
    )
    assert resp.status_code == 200
    assert _registry(app).get(session_id).client_initialized


async def test_shutdown_closes_every_session(weather_api) -> None:
    app = create_app(Settings(), http_client_factory=weather_api.client)

    async with app.router.lifespan_context(app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            session_id = await _do_init(client)
        session = _registry(app).get(session_id)
        assert session.is_active

    assert session.is_closed
    assert len(_registry(app)) == 0


async def test_run_can_only_be_called_once() -> None:
    transport = StreamableHTTPTransport(SessionRegistry("streamable-http"))
    running = RunningServer(LowLevelServer(name="test-server", version="0.1.0"), {})

    async with transport.run(running):
        pass

    with pytest.raises(RuntimeError) as excinfo:
        async with transport.run(running):
            pass

    assert "StreamableHTTPTransport .run() can only be called once per instance" in str(excinfo.value)


async def test_handle_request_without_run_raises_error() -> None:
    transport = StreamableHTTPTransport(SessionRegistry("streamable-http"))
    request = Request({"type": "http", "method": "GET", "path": "/mcp", "headers": []})

    with pytest.raises(RuntimeError) as excinfo:
        await transport.handle_get(request, None)

    assert "Task group is not initialized. Make sure to use run()." in str(excinfo.value)


async def test_sessions_live_until_deleted_or_shut_down(weather_api) -> None:
    app = create_app(Settings(), http_client_factory=weather_api.client)
    transport = app.state.front.streamable

    async with app.router.lifespan_context(app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            session_ids = []
            for request_id in range(5):
                resp = await client.post("/mcp", json={"jsonrpc": "2.0", "id": request_id, "method": "ping"})
                session_ids.append(resp.headers["mcp-session-id"])

            resp = await client.delete("/mcp", headers={"mcp-session-id": session_ids[0]})
            assert resp.status_code == 200

        assert sorted(transport.registry.session_ids()) == sorted(session_ids[1:])
        signals = list(transport._signals.values())
        assert len(signals) == 4
        assert not any(signal.fired for signal in signals)

    assert all(signal.fired for signal in signals)
    assert transport._signals == {}
    assert len(transport.registry) == 0
