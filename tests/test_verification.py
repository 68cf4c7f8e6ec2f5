"""Tests for the webhook signature verification stage."""

import pytest
import structlog
from prometheus_client import REGISTRY
from structlog.testing import capture_logs

from hookverify.common.settings import Settings
from hookverify.common.signing import sign
from hookverify.receivers.profiles import PUSHER
from hookverify.receivers.secrets import SecretResolver
from hookverify.receivers.verification import Forward, Reject, SignatureVerifier

from conftest import APP_KEY, APP_SECRET, SHORT_KEY, TENANT_KEY, TENANT_SECRET, make_request

URL = "/api/webhooks/incoming/pusher"
BODY = b'{"time_ms":1327078148132,"events":[{"name":"channel_occupied","channel":"test"}]}'


def _headers(signature: str | None = None, app_key: str | None = APP_KEY, body: bytes = BODY) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    headers["X-Pusher-Signature"] = signature if signature is not None else sign(APP_SECRET, body)
    if app_key is not None:
        headers["X-Pusher-Key"] = app_key
    return headers


def _error(response) -> dict:
    return response.json()["error"]


class TestForward:
    """Valid deliveries reach the endpoint unchanged."""

    def test_valid_signature_is_forwarded(self, client, deliveries):
        response = client.post(URL, content=BODY, headers=_headers())

        assert response.status_code == 200
        assert response.json() == {"status": "received", "size": len(BODY)}
        assert len(deliveries) == 1
        assert deliveries[0].body == BODY
        assert deliveries[0].receiver == "pusher"
        assert deliveries[0].receiver_id == "default"

    def test_tenant_route_uses_tenant_secrets(self, client, deliveries):
        headers = _headers(signature=sign(TENANT_SECRET, BODY), app_key=TENANT_KEY)
        response = client.post(f"{URL}/tenant-a", content=BODY, headers=headers)

        assert response.status_code == 200
        assert deliveries[0].receiver_id == "tenant-a"

    def test_empty_body_is_signed_too(self, client, deliveries):
        response = client.post(URL, content=b"", headers=_headers(body=b""))
        assert response.status_code == 200
        assert deliveries[0].body == b""

    def test_uppercase_hex_accepted(self, client):
        response = client.post(URL, content=BODY, headers=_headers(signature=sign(APP_SECRET, BODY).upper()))
        assert response.status_code == 200

    def test_header_names_are_case_insensitive(self, client):
        headers = {
            "x-pusher-signature": sign(APP_SECRET, BODY),
            "x-pusher-key": APP_KEY,
        }
        response = client.post(URL, content=BODY, headers=headers)
        assert response.status_code == 200


class TestTransportGate:
    def test_insecure_transport_is_forbidden(self, insecure_client, deliveries):
        response = insecure_client.post(URL, content=BODY, headers=_headers())

        assert response.status_code == 403
        assert _error(response)["code"] == "forbidden"
        assert "https" in _error(response)["message"]
        assert deliveries == []

    def test_transport_checked_before_headers(self, insecure_client):
        response = insecure_client.post(URL, content=BODY)
        assert response.status_code == 403

    def test_check_can_be_disabled(self, secrets, handler):
        from starlette.testclient import TestClient

        from hookverify.server.main import create_app

        settings = Settings(webhook_secrets=secrets, disable_https_check=True)
        with TestClient(create_app(settings, handler=handler), base_url="http://testserver") as client:
            response = client.post(URL, content=BODY, headers=_headers())
        assert response.status_code == 200


class TestSignatureHeaderGate:
    def test_missing_signature_header(self, client):
        response = client.post(URL, content=BODY, headers={"X-Pusher-Key": APP_KEY})

        assert response.status_code == 400
        assert _error(response)["code"] == "missing_header"
        assert "X-Pusher-Signature" in _error(response)["message"]

    def test_empty_signature_header(self, client):
        response = client.post(URL, content=BODY, headers=_headers(signature=""))

        assert response.status_code == 400
        assert _error(response)["code"] == "missing_header"
        assert "X-Pusher-Signature" in _error(response)["message"]

    def test_repeated_signature_header(self, client):
        signature = sign(APP_SECRET, BODY)
        headers = [
            ("X-Pusher-Signature", signature),
            ("X-Pusher-Signature", signature),
            ("X-Pusher-Key", APP_KEY),
        ]
        response = client.post(URL, content=BODY, headers=headers)

        assert response.status_code == 400
        assert _error(response)["code"] == "missing_header"
        assert "found 2" in _error(response)["message"]


class TestHexDecodeGate:
    @pytest.mark.parametrize("signature", ["abc", "zz" * 32, "5d41402abc4b2a76b9719d911017c59"])
    def test_bad_encoding(self, client, signature):
        response = client.post(URL, content=b"hello", headers=_headers(signature=signature))

        assert response.status_code == 400
        assert _error(response)["code"] == "bad_encoding"
        assert "X-Pusher-Signature" in _error(response)["message"]


class TestSecretGates:
    def test_unconfigured_receiver_id_is_not_found(self, client):
        response = client.post(f"{URL}/unknown-tenant", content=BODY, headers=_headers())

        assert response.status_code == 404
        assert _error(response)["code"] == "not_found"

    def test_unconfigured_checked_before_application_key(self, client):
        response = client.post(f"{URL}/unknown-tenant", content=BODY, headers=_headers(app_key=None))
        assert response.status_code == 404

    def test_empty_secret_set_is_bad_request(self, client):
        response = client.post(f"{URL}/empty", content=BODY, headers=_headers())

        assert response.status_code == 400
        assert _error(response)["code"] == "unknown_application_key"

    def test_missing_application_key_header(self, client):
        response = client.post(URL, content=BODY, headers=_headers(app_key=None))

        assert response.status_code == 400
        assert _error(response)["code"] == "missing_header"
        assert "X-Pusher-Key" in _error(response)["message"]

    def test_unknown_application_key(self, client):
        response = client.post(URL, content=BODY, headers=_headers(app_key="who-is-this"))

        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "unknown_application_key"
        assert "X-Pusher-Key" in error["message"]
        assert "who-is-this" in error["message"]

    def test_short_secret_is_rejected(self, client):
        headers = _headers(signature=sign("tiny", BODY), app_key=SHORT_KEY)
        response = client.post(URL, content=BODY, headers=headers)

        assert response.status_code == 400
        assert _error(response)["code"] == "unknown_application_key"
        assert SHORT_KEY in _error(response)["message"]

    def test_unknown_key_logs_key_not_secret(self, client):
        with capture_logs() as logs:
            client.post(URL, content=BODY, headers=_headers(app_key=SHORT_KEY))

        warnings = [entry for entry in logs if entry.get("application_key") == SHORT_KEY]
        assert warnings
        assert warnings[0]["log_level"] == "warning"
        assert all("tiny" not in str(value) for entry in logs for value in entry.values())


class TestCompareGate:
    def test_wrong_secret_is_bad_signature(self, client, deliveries):
        response = client.post(
            URL,
            content=b"hello",
            headers=_headers(signature="5d41402abc4b2a76b9719d911017c592"),
        )

        assert response.status_code == 400
        assert _error(response)["code"] == "bad_signature"
        assert deliveries == []

    def test_tampered_body_is_bad_signature(self, client):
        response = client.post(URL, content=BODY + b" ", headers=_headers())
        assert response.status_code == 400
        assert _error(response)["code"] == "bad_signature"

    def test_mismatch_does_not_leak_digests(self, client):
        expected = sign(APP_SECRET, BODY)
        wrong = sign("other-secret-value", BODY)
        with capture_logs() as logs:
            response = client.post(URL, content=BODY, headers=_headers(signature=wrong))

        message = _error(response)["message"]
        assert expected not in message
        assert wrong not in message
        for entry in logs:
            for value in entry.values():
                assert expected not in str(value)
                assert APP_SECRET not in str(value)


class TestMetrics:
    def test_outcomes_are_counted(self, client):
        def sample(outcome: str) -> float:
            value = REGISTRY.get_sample_value(
                "hookverify_verifications_total",
                {"receiver": "pusher", "outcome": outcome},
            )
            return value or 0.0

        forwarded = sample("forward")
        rejected = sample("bad_signature")

        client.post(URL, content=BODY, headers=_headers())
        client.post(URL, content=BODY, headers=_headers(signature=sign("nope-nope-nope", BODY)))

        assert sample("forward") == forwarded + 1
        assert sample("bad_signature") == rejected + 1


class TestSignatureVerifier:
    """Direct verifier tests on raw requests."""

    @pytest.fixture
    def verifier(self, resolver, settings) -> SignatureVerifier:
        return SignatureVerifier(PUSHER, resolver, settings)

    @pytest.mark.asyncio
    async def test_forward(self, verifier):
        request = make_request(
            headers=[("X-Pusher-Signature", sign(APP_SECRET, BODY)), ("X-Pusher-Key", APP_KEY)],
            body=BODY,
        )
        assert await verifier.verify(request) == Forward()

    @pytest.mark.asyncio
    async def test_body_still_readable_after_verification(self, verifier):
        request = make_request(
            headers=[("X-Pusher-Signature", sign(APP_SECRET, BODY)), ("X-Pusher-Key", APP_KEY)],
            body=BODY,
        )
        await verifier.verify(request)
        assert await request.body() == BODY

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["GET", "HEAD", "PUT", "DELETE"])
    async def test_other_methods_pass_through(self, verifier, method):
        request = make_request(method=method, scheme="http")
        assert await verifier.verify(request) == Forward()

    @pytest.mark.asyncio
    async def test_reject_outcome(self, verifier):
        request = make_request(headers=[("X-Pusher-Key", APP_KEY)], body=BODY)
        outcome = await verifier.verify(request)

        assert isinstance(outcome, Reject)
        assert outcome.status_code == 400
        assert outcome.reason == "missing_header"

    @pytest.mark.asyncio
    async def test_loopback_client_may_use_http(self, verifier):
        request = make_request(
            scheme="http",
            headers=[("X-Pusher-Signature", sign(APP_SECRET, BODY)), ("X-Pusher-Key", APP_KEY)],
            body=BODY,
            client=("127.0.0.1", 40000),
        )
        assert await verifier.verify(request) == Forward()

    @pytest.mark.asyncio
    async def test_loopback_exemption_can_be_disabled(self, secrets):
        settings = Settings(webhook_secrets=secrets, https_allow_local=False)
        verifier = SignatureVerifier(PUSHER, SecretResolver.from_settings(settings), settings)
        request = make_request(scheme="http", client=("::1", 40000))

        outcome = await verifier.verify(request)
        assert isinstance(outcome, Reject)
        assert outcome.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signature", [sign(APP_SECRET, BODY), "zz"])
    async def test_receiver_context_is_unbound_afterwards(self, verifier, signature):
        structlog.contextvars.clear_contextvars()
        request = make_request(
            headers=[("X-Pusher-Signature", signature), ("X-Pusher-Key", APP_KEY)],
            body=BODY,
        )

        await verifier.verify(request)

        assert "receiver" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_none_request_fails_loudly(self, verifier):
        with pytest.raises(TypeError):
            await verifier.verify(None)  # type: ignore[arg-type]
