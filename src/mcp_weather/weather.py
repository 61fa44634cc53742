"""Realtime weather lookup backed by the Open-Meteo geocoding and forecast APIs.

The lookup is a two step call: the city name is resolved to coordinates by the
geocoding API, then the current conditions for those coordinates are fetched
from the forecast API. The first geocoding match wins.

``lookup_weather`` never raises for an expected outcome. An unknown city and a
collaborator failure are both reported as a failed ``CallToolResult`` so that
the protocol layer can hand them back to the client as a normal tool result.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic import BaseModel, ConfigDict, Field

from mcp_weather.settings import Settings
from mcp_weather.types.tools import CallToolResult

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

CURRENT_VARIABLES = ("temperature_2m", "relative_humidity_2m", "wind_speed_10m", "weather_code")

GENERIC_ERROR_MESSAGE = "Error while fetching weather data."

ProgressCallback = Callable[[float, str], Awaitable[None]]


class WeatherArguments(BaseModel):
    """Arguments accepted by the realtime_weather tool."""

    # Clients may send keys the tool does not know about; they are dropped
    model_config = ConfigDict(extra="ignore")

    city: str = Field(min_length=1, description="City (e.g. Paris)")
    country: str | None = Field(default=None, description="Country code (e.g. FR)")
    lang: str | None = Field(default=None, description="Language (e.g. fr)")


class GeocodedLocation(BaseModel):
    """A candidate place returned by the geocoding API."""

    model_config = ConfigDict(extra="ignore")

    name: str
    country_code: str | None = None
    latitude: float
    longitude: float


class _GeocodingResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # The API omits the key entirely when nothing matches
    results: list[GeocodedLocation] = Field(default_factory=list)


class CurrentConditions(BaseModel):
    """The instantaneous variables of a forecast response."""

    model_config = ConfigDict(extra="ignore")

    time: str
    temperature_2m: float
    relative_humidity_2m: float
    wind_speed_10m: float | None = None
    weather_code: int | None = None


class _ForecastResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current: CurrentConditions


class WeatherReport(BaseModel):
    """Structured payload of a successful lookup."""

    city: str
    country: str | None
    latitude: float
    longitude: float
    time: str
    temperature: float
    humidity: float
    wind_speed: float | None = None
    weather_code: int | None = None

    def summary(self) -> str:
        parts = [f"{self.temperature:g}°C", f"{self.humidity:g}% humidity"]
        if self.wind_speed is not None:
            parts.append(f"wind {self.wind_speed:g} km/h")
        return f"Weather in {self.city} ({self.country or '??'}): {', '.join(parts)}."


async def geocode(
    client: httpx.AsyncClient,
    city: str,
    country: str | None = None,
    language: str | None = None,
    *,
    url: str = GEOCODING_URL,
) -> list[GeocodedLocation]:
    """Resolve a place name into candidate locations, best match first."""
    params = {"name": city}
    if country:
        params["country_code"] = country
    if language:
        params["language"] = language

    response = await client.get(url, params=params)
    response.raise_for_status()
    return _GeocodingResponse.model_validate(response.json()).results


async def fetch_current_conditions(
    client: httpx.AsyncClient,
    latitude: float,
    longitude: float,
    *,
    url: str = FORECAST_URL,
) -> CurrentConditions:
    """Fetch the current conditions at a coordinate, in the location's own timezone."""
    params = {
        "latitude": str(latitude),
        "longitude": str(longitude),
        "current": ",".join(CURRENT_VARIABLES),
        "timezone": "auto",
    }
    response = await client.get(url, params=params)
    response.raise_for_status()
    return _ForecastResponse.model_validate(response.json()).current


async def lookup_weather(
    client: httpx.AsyncClient,
    city: str,
    country: str | None = None,
    language: str | None = None,
    *,
    settings: Settings | None = None,
    progress: ProgressCallback | None = None,
) -> CallToolResult:
    """Look up the current weather for a city.

    Args:
        client: HTTP client used for both collaborator calls
        city: Place name to resolve, must not be empty
        country: Optional ISO country code narrowing the geocoding search
        language: Optional language for the geocoding search and resolved name
        settings: Source of the collaborator URLs, defaults apply when omitted
        progress: Optional coroutine called before each collaborator call

    Returns:
        A successful result with the summary sentence and a WeatherReport as
        structured content, or a failed result when the city is unknown or a
        collaborator call fails.
    """
    geocoding_url = settings.geocoding_url if settings else GEOCODING_URL
    forecast_url = settings.forecast_url if settings else FORECAST_URL

    logger.info("Weather lookup for city=%r country=%r", city, country)
    try:
        if progress is not None:
            await progress(0, f"Resolving {city}")
        matches = await geocode(client, city, country, language, url=geocoding_url)
        if not matches:
            logger.info("City not found by the geocoding API: %s", city)
            return CallToolResult.failure(f"City not found: {city}")

        location = matches[0]

        if progress is not None:
            await progress(1, f"Fetching current conditions for {location.name}")
        current = await fetch_current_conditions(client, location.latitude, location.longitude, url=forecast_url)
    except Exception:
        logger.exception("Weather API error for %s", city)
        return CallToolResult.failure(GENERIC_ERROR_MESSAGE)

    report = WeatherReport(
        city=location.name,
        country=location.country_code,
        latitude=location.latitude,
        longitude=location.longitude,
        time=current.time,
        temperature=current.temperature_2m,
        humidity=current.relative_humidity_2m,
        wind_speed=current.wind_speed_10m,
        weather_code=current.weather_code,
    )
    message = report.summary()
    logger.info("Weather lookup result: %s", message)
    return CallToolResult.success(message, structured_content=report.model_dump())
