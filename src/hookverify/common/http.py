"""Request accessors and request-id middleware."""

from __future__ import annotations

import contextvars
import ipaddress
import uuid

import structlog

from starlette.requests import Request
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "hookverify_request_id",
    default=None,
)


def set_request_id(value: str | None) -> None:
    """Set request id in context."""
    _request_id_var.set(value)
    if value is not None:
        structlog.contextvars.bind_contextvars(request_id=value)


def get_request_id() -> str | None:
    """Get current request id."""
    return _request_id_var.get()


def get_header_values(request: Request, name: str) -> list[str]:
    """Return every value sent for header ``name`` (case-insensitive)."""
    return request.headers.getlist(name)


async def read_raw_body(request: Request) -> bytes:
    """Read the unparsed request body.

    Starlette caches the body on the request, so later readers (including the
    downstream endpoint) see the same bytes.
    """
    return await request.body()


def is_secure(request: Request) -> bool:
    """Whether the request arrived over HTTPS."""
    return request.url.scheme == "https"


def is_local(request: Request) -> bool:
    """Whether the request came from a loopback client."""
    if request.client is None:
        return False
    host = request.client.host
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to each request/response and context."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self._header_name) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers.setdefault(self._header_name, request_id)
            return response
        finally:
            structlog.contextvars.clear_contextvars()
