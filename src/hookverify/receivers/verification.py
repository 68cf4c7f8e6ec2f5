"""Webhook signature verification stage.

The stage walks a fixed sequence of gates for each delivery:

1. method: only the receiver's delivery method is verified
2. transport: HTTPS is required unless relaxed by configuration
3. signature header: present once, non-empty, valid hex
4. secret set: the receiver/id must be configured at all (404 otherwise)
5. application key header and its secret
6. HMAC-SHA-256 of the raw body, compared in constant time

Any gate may end verification with a ``Reject``. Only a request that clears
every gate is forwarded.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from starlette.requests import Request

from hookverify.common.errors import (
    MalformedEncodingError,
    MissingHeaderError,
    SignatureMismatchError,
    TransportError,
    UnconfiguredReceiverError,
    UnknownApplicationKeyError,
    VerificationError,
)
from hookverify.common.http import get_header_values, is_local, is_secure, read_raw_body
from hookverify.common.logging import get_logger
from hookverify.common.metrics import record_verification
from hookverify.common.settings import Settings
from hookverify.common.signing import compute_sha256, from_hex, secret_equal
from hookverify.receivers.profiles import ReceiverProfile
from hookverify.receivers.secrets import SecretResolver

logger = get_logger(__name__)

FORWARD_OUTCOME = "forward"


@dataclass(frozen=True)
class Forward:
    """Verification passed; the pipeline continues unmodified."""


@dataclass(frozen=True)
class Reject:
    """Verification failed; the request is answered with an error."""

    reason: str
    status_code: int
    message: str

    @classmethod
    def from_error(cls, error: VerificationError) -> "Reject":
        return cls(reason=error.code, status_code=error.status_code, message=error.message)


VerificationOutcome = Forward | Reject


class SignatureVerifier:
    """Verify webhook deliveries for one receiver profile."""

    def __init__(
        self,
        profile: ReceiverProfile,
        resolver: SecretResolver,
        settings: Settings,
    ) -> None:
        self._profile = profile
        self._resolver = resolver
        self._settings = settings

    @property
    def profile(self) -> ReceiverProfile:
        return self._profile

    async def verify(self, request: Request) -> VerificationOutcome:
        """Run every gate against ``request`` and return the outcome."""
        if request is None:
            raise TypeError("request is required")

        if request.method.upper() != self._profile.method:
            return Forward()

        try:
            with structlog.contextvars.bound_contextvars(receiver=self._profile.name):
                await self._check(request)
        except VerificationError as exc:
            record_verification(self._profile.name, exc.code)
            return Reject.from_error(exc)

        record_verification(self._profile.name, FORWARD_OUTCOME)
        return Forward()

    async def _check(self, request: Request) -> None:
        profile = self._profile

        self._ensure_secure_connection(request)

        header = self._get_request_header(request, profile.signature_header)
        expected_hash = from_hex(header)
        if expected_hash is None:
            logger.warning(
                "Signature header is not valid hex",
                header=profile.signature_header,
            )
            raise MalformedEncodingError(
                f"The '{profile.signature_header}' header value is invalid. "
                "It must be a valid hex-encoded string."
            )

        receiver_id = request.path_params.get("id")
        secret_keys = self._resolver.get_secret_keys(profile.name, receiver_id)
        if secret_keys is None:
            effective_id = receiver_id or self._settings.default_receiver_id
            logger.warning(
                "No secret keys configured for receiver",
                receiver_id=effective_id,
            )
            raise UnconfiguredReceiverError(
                f"No secret keys are configured for the '{profile.name}' receiver "
                f"with id '{effective_id}'."
            )

        application_key = self._get_request_header(request, profile.key_header)
        secret_key = secret_keys.secret_for(application_key)
        if secret_key is None or len(secret_key) < profile.secret_min_length:
            logger.warning(
                f"The '{profile.key_header}' header value is not recognized as a valid "
                "application key. Ensure the correct application key / secret key "
                "pairs have been configured.",
                application_key=application_key,
            )
            raise UnknownApplicationKeyError(
                f"Could not find a valid configuration for the '{profile.key_header}' "
                f"header value '{application_key}'."
            )

        body = await read_raw_body(request)
        actual_hash = compute_sha256(secret_key.encode("utf-8"), body)

        if not secret_equal(expected_hash, actual_hash):
            logger.warning(
                "Signature does not match the value expected by the receiver",
                header=profile.signature_header,
                application_key=application_key,
            )
            raise SignatureMismatchError(
                f"The WebHook signature provided by the '{profile.signature_header}' header "
                f"field does not match the value expected by the '{profile.name}' receiver. "
                "WebHook request is invalid."
            )

    def _ensure_secure_connection(self, request: Request) -> None:
        if self._settings.disable_https_check:
            return
        if is_secure(request):
            return
        if self._settings.https_allow_local and is_local(request):
            return

        logger.error(
            "The WebHook receiver requires HTTPS in order to be secure",
            scheme=request.url.scheme,
        )
        raise TransportError(
            f"The WebHook receiver '{self._profile.name}' requires HTTPS in order to be "
            "secure. Please register a WebHook URI of type 'https'."
        )

    def _get_request_header(self, request: Request, name: str) -> str:
        values = get_header_values(request, name)
        if len(values) == 1 and not values[0]:
            logger.warning("Header is empty", header=name)
            raise MissingHeaderError(
                f"The '{name}' header field in the WebHook request is empty. "
                f"Please ensure the request contains a value for the '{name}' header field."
            )
        if len(values) != 1:
            logger.warning("Expected exactly one header", header=name, count=len(values))
            raise MissingHeaderError(
                f"Expecting exactly one '{name}' header field in the WebHook request but "
                f"found {len(values)}. Please ensure the request contains exactly one "
                f"'{name}' header field."
            )
        return values[0]
