"""Webhook receiver service - verifies deliveries and hands them to a handler."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
import uvicorn

from hookverify.common.http import RequestIdMiddleware
from hookverify.common.logging import get_logger, setup_logging
from hookverify.common.metrics import MetricsMiddleware, metrics_endpoint
from hookverify.common.settings import Settings, get_settings
from hookverify.receivers.middleware import WebHookVerifyMiddleware
from hookverify.receivers.profiles import ReceiverProfile, build_receiver_table
from hookverify.receivers.secrets import SecretResolver
from hookverify.receivers.verification import SignatureVerifier

logger = get_logger(__name__)

WEBHOOK_ROUTE_PREFIX = "/api/webhooks/incoming"


@dataclass(frozen=True)
class WebHookDelivery:
    """A verified webhook delivery."""

    receiver: str
    receiver_id: str
    headers: dict[str, str]
    body: bytes


DeliveryHandler = Callable[[WebHookDelivery], Awaitable[dict[str, Any] | None]]


async def acknowledge(delivery: WebHookDelivery) -> dict[str, Any] | None:
    """Default handler: log the delivery and accept it."""
    logger.info(
        "WebHook delivery accepted",
        receiver=delivery.receiver,
        receiver_id=delivery.receiver_id,
        size=len(delivery.body),
    )
    return None


class WebHookServer:
    """HTTP endpoints for verified webhook deliveries."""

    def __init__(
        self,
        settings: Settings,
        handler: DeliveryHandler,
        resolver: SecretResolver,
        receivers: Iterable[ReceiverProfile],
    ):
        """Initialize server."""
        self._settings = settings
        self._handler = handler
        self._resolver = resolver
        self._receivers = tuple(receivers)

    async def startup(self) -> None:
        """Report the receivers and secret scopes this process will accept."""
        scopes = self._resolver.scopes()
        logger.info(
            "Starting webhook receiver service...",
            receivers=[profile.name for profile in self._receivers],
            scopes=[f"{receiver}/{receiver_id}" for receiver, receiver_id in scopes],
            https_required=not self._settings.disable_https_check,
        )
        configured = {receiver for receiver, _ in scopes}
        for profile in self._receivers:
            if profile.name.lower() not in configured:
                logger.warning("Receiver has no secret keys configured", receiver=profile.name)
        if self._settings.disable_https_check:
            logger.warning("HTTPS check is disabled; deliveries over plain HTTP are accepted")

    def delivery_endpoint(self, profile: ReceiverProfile) -> Callable[[Request], Awaitable[JSONResponse]]:
        """Build the delivery endpoint for ``profile``."""

        async def handle_delivery(request: Request) -> JSONResponse:
            delivery = WebHookDelivery(
                receiver=profile.name,
                receiver_id=request.path_params.get("id") or self._settings.default_receiver_id,
                headers=dict(request.headers),
                body=await request.body(),
            )
            result = await self._handler(delivery)
            return JSONResponse(result if result is not None else {"status": "accepted"})

        return handle_delivery

    async def handle_health(self, request: Request) -> JSONResponse:
        """Health check."""
        return JSONResponse({"status": "healthy"})


def create_app(
    settings: Settings | None = None,
    handler: DeliveryHandler | None = None,
    receivers: Iterable[ReceiverProfile] | None = None,
    resolver: SecretResolver | None = None,
) -> Starlette:
    """Create the Starlette application."""
    settings = settings or get_settings()
    resolver = resolver or SecretResolver.from_settings(settings)
    receiver_table = build_receiver_table(receivers)
    server = WebHookServer(settings, handler or acknowledge, resolver, receiver_table.values())

    @asynccontextmanager
    async def lifespan(app: Starlette):
        await server.startup()
        yield

    routes = []
    for profile in receiver_table.values():
        verifier = SignatureVerifier(profile, resolver, settings)
        middleware = [Middleware(WebHookVerifyMiddleware, verifier=verifier)]
        endpoint = server.delivery_endpoint(profile)
        base = f"{WEBHOOK_ROUTE_PREFIX}/{profile.name}"
        routes.append(Route(base, endpoint, methods=[profile.method], middleware=middleware))
        routes.append(Route(f"{base}/{{id}}", endpoint, methods=[profile.method], middleware=middleware))

    routes += [
        Route("/health", server.handle_health, methods=["GET"]),
        Route("/metrics", metrics_endpoint, methods=["GET"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)

    app.add_middleware(
        MetricsMiddleware,
        exclude_paths=list(settings.exempt_paths),
    )
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    return app


def main():
    """Entry point for the webhook receiver service."""
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.log_json)
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
