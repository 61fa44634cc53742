"""A weather lookup MCP server reachable over streamable HTTP and SSE at the same time."""

from .app import create_app
from .registry import SessionRegistry
from .server import LowLevelServer
from .session import ServerSession, SessionState
from .settings import Settings

__all__ = [
    "LowLevelServer",
    "ServerSession",
    "SessionRegistry",
    "SessionState",
    "Settings",
    "create_app",
]
