"""Route-level middleware that gates deliveries on signature verification."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from hookverify.common.errors import error_response
from hookverify.receivers.verification import Reject, SignatureVerifier


class WebHookVerifyMiddleware(BaseHTTPMiddleware):
    """Verify the delivery signature before the endpoint runs.

    Mounted per route so that ``request.path_params`` (the receiver id) is
    already populated. The body read during verification is replayed to the
    endpoint.
    """

    def __init__(self, app: ASGIApp, verifier: SignatureVerifier) -> None:
        super().__init__(app)
        self._verifier = verifier

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        outcome = await self._verifier.verify(request)
        if isinstance(outcome, Reject):
            return error_response(outcome.reason, outcome.message, outcome.status_code)
        return await call_next(request)
