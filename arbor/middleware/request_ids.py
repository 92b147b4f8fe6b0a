"""Request ID and correlation ID middleware (raw ASGI).

RequestIDMiddleware forwards a sanitized client X-Request-ID or generates
one. CorrelationIDMiddleware forwards X-Correlation-ID, falling back to the
request id. Both put the value on scope["state"] (request.state in routes)
and echo it on the response.
"""

import re
import uuid
from typing import Any, Awaitable, Callable

Scope = dict[str, Any]
Message = dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

ID_MAX_LENGTH = 64
_SAFE_ID = re.compile(r"^[a-zA-Z0-9_-]{1,%d}$" % ID_MAX_LENGTH)


def header_value(scope: Scope, name: str) -> str | None:
    """First value of header name (case-insensitive), decoded."""
    want = name.lower().encode()
    for key, value in scope.get("headers", []):
        if key.lower() == want:
            return value.decode("utf-8", errors="replace")
    return None


def safe_id(raw: str | None) -> str | None:
    """raw stripped if it is safe to log, else None."""
    if raw is None:
        return None
    raw = raw.strip()
    return raw if _SAFE_ID.match(raw) else None


class _EchoHeaderMiddleware:
    """Resolves one id per HTTP request, stores it on scope state and echoes it."""

    state_key = ""

    def __init__(self, app: ASGIApp, header_name: str) -> None:
        self.app = app
        self.header_name = header_name

    def resolve(self, scope: Scope) -> str:
        raise NotImplementedError

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        value = self.resolve(scope)
        scope.setdefault("state", {})[self.state_key] = value
        header = (self.header_name.lower().encode(), value.encode())

        async def send_with_header(message: Message) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [*message.get("headers", []), header]
            await send(message)

        await self.app(scope, receive, send_with_header)


class RequestIDMiddleware(_EchoHeaderMiddleware):
    state_key = "request_id"

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app, header_name)

    def resolve(self, scope: Scope) -> str:
        return safe_id(header_value(scope, self.header_name)) or str(uuid.uuid4())


class CorrelationIDMiddleware(_EchoHeaderMiddleware):
    state_key = "correlation_id"

    def __init__(self, app: ASGIApp, header_name: str = "X-Correlation-ID") -> None:
        super().__init__(app, header_name)

    def resolve(self, scope: Scope) -> str:
        return (
            safe_id(header_value(scope, self.header_name))
            or scope.get("state", {}).get("request_id")
            or str(uuid.uuid4())
        )
