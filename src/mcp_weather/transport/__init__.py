"""Transport adapters.

- streamable_http: request/response transport keyed by the ``mcp-session-id`` header
- sse: push-stream transport with a separate message submission endpoint
"""
