"""
ServerSession Module

A ServerSession is the protocol instance behind one client session. It owns the
handshake, turns decoded client messages into dispatches on the shared
RunningServer, keeps the outbox of messages waiting for delivery, and tracks its
own lifecycle:

```
    Initializing --attach()--> Active --close()/terminate()/fail()--> Closed
```

Transports create sessions through a SessionRegistry, attach them to a
ClosureSignal, and feed them messages:

```
    session = registry.create(
        lambda session_id: ServerSession(session_id, running, transport=kind, on_close=registry.remove)
    )
    session.attach(signal)
    await session.handle_message(sink, message)
```

Closing is idempotent and unregisters the session exactly once.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import anyio

from mcp_weather.context import RequestContext, ResponseSink
from mcp_weather.runner import RunningServer
from mcp_weather.transport.base import ClosureSignal, TransportKind
from mcp_weather.types.base import EmptyResult
from mcp_weather.types.initialize import ClientCapabilities, Implementation
from mcp_weather.types.initialize import (
    CancelledNotification,
    InitializedNotification,
    InitializeRequest,
    PingRequest,
)
from mcp_weather.types.json_rpc import (
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCResponse,
    JSONRPCResultResponse,
    NotificationBase,
    RequestBase,
)
from mcp_weather.types.messages import ClientMessage

logger = logging.getLogger(__name__)


class SessionState(Enum):
    Initializing = 1
    Active = 2
    Closed = 3


_VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.Initializing: {SessionState.Active, SessionState.Closed},
    SessionState.Active: {SessionState.Closed},
    SessionState.Closed: set(),
}


class ServerSession:
    def __init__(
        self,
        session_id: str,
        running: RunningServer,
        *,
        transport: TransportKind,
        single_flight: bool = False,
        max_pending_messages: int = 100,
        on_close: Callable[[str], Any] | None = None,
    ) -> None:
        self.session_id = session_id
        self.transport = transport
        self.created_at = datetime.now(timezone.utc)

        self.client_info: Implementation | None = None
        self.client_capabilities: ClientCapabilities | None = None
        self.protocol_version: str | None = None
        self.client_initialized = False

        self._running = running
        self._on_close = on_close
        self._state = SessionState.Initializing
        self._state_lock = threading.Lock()
        # anyio locks are fair, so queued messages are processed in arrival order
        self._dispatch_lock = anyio.Lock() if single_flight else None
        self._outbox_writer, self._outbox_reader = anyio.create_memory_object_stream[JSONRPCMessage](
            max_pending_messages
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.Active

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.Closed

    def _transition_state(self, new_state: SessionState) -> None:
        if new_state not in _VALID_TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid session state transition {self._state.name} -> {new_state.name}")
        logger.debug("Session %s: %s -> %s", self.session_id, self._state.name, new_state.name)
        self._state = new_state

    # --- lifecycle ---

    def attach(self, signal: ClosureSignal) -> None:
        """Activate the session on its transport and subscribe to the connection's closure."""
        with self._state_lock:
            self._transition_state(SessionState.Active)
        signal.subscribe(self.close)

    def terminate(self) -> None:
        """Handle the client's termination request."""
        logger.info("Session %s terminated by the client", self.session_id)
        self.close()

    def fail(self, exc: BaseException) -> None:
        """Close the session after an unrecoverable protocol failure."""
        logger.error("Session %s failed", self.session_id, exc_info=exc)
        self.close()

    def close(self) -> None:
        with self._state_lock:
            if self._state is SessionState.Closed:
                return
            self._transition_state(SessionState.Closed)

        self._outbox_writer.close()
        self._outbox_reader.close()
        if self._on_close is not None:
            self._on_close(self.session_id)
        logger.info("Session %s closed", self.session_id)

    # --- inbound ---

    async def handle_message(self, sink: ResponseSink, message: ClientMessage) -> None:
        """Process one decoded client message, answering through ``sink``."""
        if self._dispatch_lock is None:
            await self._handle_message(sink, message)
            return

        async with self._dispatch_lock:
            await self._handle_message(sink, message)

    async def _handle_message(self, sink: ResponseSink, message: ClientMessage) -> None:
        if not self.is_active:
            logger.debug("Discarding message for session %s in state %s", self.session_id, self._state.name)
            await sink.close()
            return

        match message:
            case InitializeRequest():
                result = self._running.initialize(message.params)
                self.client_info = message.params.client_info
                self.client_capabilities = message.params.capabilities
                self.protocol_version = result.protocol_version
                logger.info(
                    "Session %s initialized by %s %s (protocol %s)",
                    self.session_id,
                    self.client_info.name,
                    self.client_info.version,
                    self.protocol_version,
                )
                await self._respond(
                    sink,
                    JSONRPCResultResponse(id=message.id, result=result.model_dump(by_alias=True, exclude_none=True)),
                )
            case PingRequest():
                await self._respond(
                    sink,
                    JSONRPCResultResponse(id=message.id, result=EmptyResult().model_dump(exclude_none=True)),
                )
            case InitializedNotification():
                self.client_initialized = True
                await sink.close()
            case CancelledNotification():
                # Requests run to completion; a late result is harmless to the client
                logger.debug("Client cancelled request %s: %s", message.params.request_id, message.params.reason)
                await sink.close()
            case RequestBase():
                ctx = RequestContext(
                    server_state=self._running.server_state,
                    session=self,
                    request_id=message.id,
                    _sink=sink,
                    progress_token=_progress_token(message),
                )
                response = await self._running.dispatch_request(ctx, message)
                await self._respond(sink, response)
            case NotificationBase():
                ctx = RequestContext(
                    server_state=self._running.server_state,
                    session=self,
                    request_id="notification",
                    _sink=sink,
                )
                await self._running.dispatch_notification(ctx, message)
                await sink.close()
            case JSONRPCResultResponse() | JSONRPCErrorResponse():
                # The server never sends requests, so there is nothing to correlate
                logger.debug("Ignoring response %s from client on session %s", message.id, self.session_id)
                await sink.close()

    async def _respond(self, sink: ResponseSink, response: JSONRPCResponse) -> None:
        if self.is_closed:
            logger.debug("Discarding response %s: session %s closed in flight", response.id, self.session_id)
            await sink.close()
            return
        await sink.send_result(response)

    # --- outbound ---

    async def deliver(self, message: JSONRPCMessage) -> bool:
        """Queue a message for the client. Returns False if it was dropped.

        On the SSE transport the outbox is the downstream stream and delivery
        waits for room. On the streamable HTTP transport the outbox is drained by
        polling, so a full outbox drops the message instead of stalling the
        handler.
        """
        if self.is_closed:
            return False
        try:
            if self.transport is TransportKind.SSE:
                await self._outbox_writer.send(message)
            else:
                self._outbox_writer.send_nowait(message)
        except anyio.WouldBlock:
            logger.warning("Outbox of session %s is full, dropping message", self.session_id)
            return False
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug("Session %s closed before a message could be delivered", self.session_id)
            return False
        return True

    def drain(self) -> list[JSONRPCMessage]:
        """Take every message currently waiting in the outbox without blocking."""
        messages: list[JSONRPCMessage] = []
        while True:
            try:
                messages.append(self._outbox_reader.receive_nowait())
            except (anyio.WouldBlock, anyio.EndOfStream, anyio.ClosedResourceError):
                return messages

    async def outgoing(self) -> AsyncIterator[JSONRPCMessage]:
        """Yield outbox messages as they arrive until the session closes."""
        try:
            async for message in self._outbox_reader:
                yield message
        except anyio.ClosedResourceError:
            pass

    def __repr__(self) -> str:
        return (
            f"ServerSession(session_id={self.session_id!r}, transport={self.transport.value}, "
            f"state={self._state.name})"
        )


def _progress_token(message: RequestBase[Any, Any]) -> str | int | None:
    meta = getattr(message.params, "meta", None)
    return meta.progress_token if meta is not None else None
