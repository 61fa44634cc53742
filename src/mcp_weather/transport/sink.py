"""ResponseSink implementations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from mcp_weather.types.json_rpc import JSONRPCMessage, JSONRPCResponse

if TYPE_CHECKING:
    from mcp_weather.session import ServerSession


@dataclass
class SinkEvent:
    """An event produced by a ResponseSink for the transport layer to consume."""

    message: JSONRPCMessage
    event_id: str | None = None
    is_final: bool = False


class ChannelSink:
    """ResponseSink that writes events to a memory channel.

    Used by the streamable HTTP transport. The adapter reads from the other end
    of the channel to decide SSE vs JSON response format.
    """

    def __init__(self, send_stream: MemoryObjectSendStream[SinkEvent]) -> None:
        self._send = send_stream
        self._closed = False

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        """Send an intermediate message (notification)."""
        if self._closed:
            return
        await self._send.send(SinkEvent(message=message))

    async def send_result(self, response: JSONRPCResponse) -> None:
        """Send the final result and close the channel."""
        if self._closed:
            return
        await self._send.send(SinkEvent(message=response, is_final=True))
        self._closed = True
        await self._send.aclose()

    async def close(self) -> None:
        """Close the channel without sending a result (e.g., on handler error)."""
        if self._closed:
            return
        self._closed = True
        with anyio.CancelScope(shield=True):
            await self._send.aclose()


class DeferredSink(ChannelSink):
    """ChannelSink that parks intermediate messages in the session outbox.

    Used when JSON responses are enabled: the POST answers with the result
    alone, and notifications wait for the client's next poll.
    """

    def __init__(self, send_stream: MemoryObjectSendStream[SinkEvent], session: ServerSession) -> None:
        super().__init__(send_stream)
        self._session = session

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        await self._session.deliver(message)


class OutboxSink:
    """ResponseSink that writes everything to the session's downstream stream (SSE)."""

    def __init__(self, session: ServerSession) -> None:
        self._session = session

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        await self._session.deliver(message)

    async def send_result(self, response: JSONRPCResponse) -> None:
        await self._session.deliver(response)

    async def close(self) -> None:
        pass


class NullSink:
    """A sink that does nothing. Used for notifications which don't produce responses."""

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        pass

    async def send_result(self, response: JSONRPCResponse) -> None:
        pass

    async def close(self) -> None:
        pass
