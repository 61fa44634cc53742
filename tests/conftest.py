from collections.abc import AsyncIterator
from typing import Any

import anyio
import httpx
import pytest
import sse_starlette
from packaging import version
from starlette.applications import Starlette

from mcp_weather.app import create_app
from mcp_weather.settings import Settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


SSE_STARLETTE_VERSION = version.parse(sse_starlette.__version__)
NEEDS_RESET = SSE_STARLETTE_VERSION < version.parse("3.0.0")


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """Reset sse-starlette's global AppStatus singleton before each test.

    AppStatus.should_exit_event is a global asyncio.Event that gets bound to
    an event loop. This ensures each test gets a fresh Event and prevents
    RuntimeError("bound to a different event loop") during parallel test
    execution with pytest-xdist.

    NOTE: This fixture is only necessary for sse-starlette < 3.0.0.
    Version 3.0+ eliminated the global state issue entirely by using
    context-local events instead of module-level singletons.
    """
    if not NEEDS_RESET:
        yield
        return

    # lazy import to avoid import errors
    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]

    yield

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Any):
    """Keep the developer's MCP_WEATHER_* variables and .env file out of the tests."""
    for name in ("PORT", "MCP_WEATHER_PORT", "MCP_WEATHER_HOST", "MCP_WEATHER_JSON_RESPONSE", "MCP_WEATHER_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


PARIS = {"name": "Paris", "country_code": "FR", "latitude": 48.85341, "longitude": 2.3488}
TOKYO = {"name": "Tokyo", "country_code": "JP", "latitude": 35.6895, "longitude": 139.69171}
# Places outside any country come back without a country code
MCMURDO = {"name": "McMurdo Station", "latitude": -77.846, "longitude": 166.676}

PARIS_CURRENT = {
    "time": "2026-10-19T14:00",
    "temperature_2m": 15.2,
    "relative_humidity_2m": 70,
    "wind_speed_10m": 11.5,
    "weather_code": 3,
}

PARIS_SUMMARY = "Weather in Paris (FR): 15.2°C, 70% humidity, wind 11.5 km/h."


class FakeOpenMeteo:
    """In-memory stand-in for the Open-Meteo geocoding and forecast APIs."""

    def __init__(self) -> None:
        self.places: dict[str, dict[str, Any]] = {"paris": PARIS, "tokyo": TOKYO, "mcmurdo station": MCMURDO}
        self.current = PARIS_CURRENT
        self.geocoding_requests: list[httpx.Request] = []
        self.forecast_requests: list[httpx.Request] = []
        self.fail_forecast = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "geocoding-api.open-meteo.com":
            self.geocoding_requests.append(request)
            place = self.places.get(request.url.params["name"].lower())
            return httpx.Response(200, json={"results": [place]} if place else {"generationtime_ms": 0.1})

        if request.url.host == "api.open-meteo.com":
            self.forecast_requests.append(request)
            if self.fail_forecast:
                return httpx.Response(502, text="Bad Gateway")
            return httpx.Response(200, json={"current": self.current})

        return httpx.Response(404)

    def client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), **kwargs)


@pytest.fixture
def weather_api() -> FakeOpenMeteo:
    return FakeOpenMeteo()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
async def app(settings: Settings, weather_api: FakeOpenMeteo) -> AsyncIterator[Starlette]:
    """The application with its lifespan entered, as a server would run it."""
    app = create_app(settings, http_client_factory=weather_api.client)
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(app: Starlette) -> AsyncIterator[httpx.AsyncClient]:
    # httpx ASGITransport doesn't trigger lifespan, the app fixture enters it
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
