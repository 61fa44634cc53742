"""RequestContext and the ResponseSink protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from mcp_weather.types.base import ProgressNotificationParams, ProgressToken
from mcp_weather.types.json_rpc import (
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCResponse,
    RequestId,
)

if TYPE_CHECKING:
    from mcp_weather.session import ServerSession


@runtime_checkable
class ResponseSink(Protocol):
    """Transport-specific sink for outgoing messages during request processing.

    One per incoming request. The transports provide different implementations:
    - ChannelSink (streamable HTTP): writes events to a channel, the adapter decides SSE vs JSON
    - DeferredSink (streamable HTTP, JSON mode): result on the channel, intermediates to the outbox
    - OutboxSink (SSE): everything goes to the session's downstream stream
    """

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        """Send a notification during processing."""
        ...

    async def send_result(self, response: JSONRPCResponse) -> None:
        """Send the final result. After this, the sink is done."""
        ...

    async def close(self) -> None:
        """Ensure the sink is closed (e.g., on handler error)."""
        ...


@dataclass
class RequestContext:
    """What handlers receive. Provides server→client communication.

    Handlers do not know which transport carries the request; notifications
    sent here reach the client over whatever channel the sink wraps.
    """

    server_state: Any
    session: ServerSession | None
    request_id: RequestId
    _sink: ResponseSink
    progress_token: ProgressToken | None = None

    async def send_notification(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification to the client during request processing.

        In streamable HTTP this forces the response to be an SSE stream, unless
        JSON responses are enabled, in which case it waits for the next poll.
        """
        notification = JSONRPCNotification(method=method, params=params)
        await self._sink.send_intermediate(notification)

    async def report_progress(self, progress: float, total: float | None = None, message: str | None = None) -> None:
        """Send a progress notification if the client asked for one."""
        if self.progress_token is None:
            return
        params = ProgressNotificationParams(
            progress_token=self.progress_token,
            progress=progress,
            total=total,
            message=message,
        )
        await self.send_notification(
            "notifications/progress",
            params.model_dump(by_alias=True, exclude_none=True),
        )
