"""Pytest configuration and fixtures."""

from typing import Any, Awaitable, Callable

import pytest
from starlette.requests import Request
from starlette.testclient import TestClient

from hookverify.common.settings import Settings
from hookverify.receivers.secrets import SecretResolver
from hookverify.server.main import WebHookDelivery, create_app

APP_KEY = "app-key-1"
APP_SECRET = "super-secret-value"
SHORT_KEY = "short-key"
TENANT_KEY = "tenant-key"
TENANT_SECRET = "tenant-secret-value"


@pytest.fixture
def secrets() -> dict[str, dict[str, dict[str, str]]]:
    """Sample secret configuration."""
    return {
        "pusher": {
            "default": {
                APP_KEY: APP_SECRET,
                SHORT_KEY: "tiny",
            },
            "tenant-a": {
                TENANT_KEY: TENANT_SECRET,
            },
            "empty": {},
        }
    }


@pytest.fixture
def settings(secrets) -> Settings:
    """Create test settings."""
    return Settings(
        webhook_secrets=secrets,
        disable_https_check=False,
        https_allow_local=True,
    )


@pytest.fixture
def resolver(settings) -> SecretResolver:
    return SecretResolver.from_settings(settings)


@pytest.fixture
def deliveries() -> list[WebHookDelivery]:
    """Deliveries that reached the handler."""
    return []


@pytest.fixture
def handler(deliveries) -> Callable[[WebHookDelivery], Awaitable[dict[str, Any] | None]]:
    async def record(delivery: WebHookDelivery) -> dict[str, Any] | None:
        deliveries.append(delivery)
        return {"status": "received", "size": len(delivery.body)}

    return record


@pytest.fixture
def client(settings, handler):
    """HTTPS test client for the webhook service."""
    app = create_app(settings, handler=handler)
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client


@pytest.fixture
def insecure_client(settings, handler):
    """Plain HTTP test client for the webhook service."""
    app = create_app(settings, handler=handler)
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


def make_request(
    method: str = "POST",
    scheme: str = "https",
    headers: list[tuple[str, str]] | None = None,
    body: bytes = b"",
    path_params: dict[str, str] | None = None,
    client: tuple[str, int] = ("203.0.113.10", 50000),
) -> Request:
    """Build a raw Starlette request for direct verifier tests."""
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": "/api/webhooks/incoming/pusher",
        "raw_path": b"/api/webhooks/incoming/pusher",
        "query_string": b"",
        "root_path": "",
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in headers or []
        ],
        "path_params": path_params or {},
        "client": client,
        "server": ("testserver", 443 if scheme == "https" else 80),
    }
    sent = False

    async def receive() -> dict[str, Any]:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)
