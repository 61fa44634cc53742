"""Utilities for creating standardized httpx AsyncClient instances."""

from typing import Any, Protocol

import httpx

__all__ = ["HttpClientFactory", "create_http_client"]

USER_AGENT = "mcp-weather (+https://open-meteo.com)"


class HttpClientFactory(Protocol):
    def __call__(self, **kwargs: Any) -> httpx.AsyncClient: ...


def create_http_client(**kwargs: Any) -> httpx.AsyncClient:
    """Create an httpx AsyncClient for the weather collaborators.

    Defaults:
    - follow_redirects=True
    - a 10 second timeout, so a stalled collaborator cannot pin a session task
    - a descriptive User-Agent header

    Any keyword argument accepted by httpx.AsyncClient overrides the defaults.

    Note:
        The returned AsyncClient must be closed (or used as a context manager)
        to release its connection pool.

    Examples:
        async with create_http_client(timeout=httpx.Timeout(5.0)) as client:
            response = await client.get("https://api.open-meteo.com/v1/forecast", params=...)
    """
    default_kwargs: dict[str, Any] = {
        "follow_redirects": True,
        "timeout": httpx.Timeout(10.0),
        "headers": {"User-Agent": USER_AGENT},
    }
    default_kwargs.update(kwargs)
    return httpx.AsyncClient(**default_kwargs)
