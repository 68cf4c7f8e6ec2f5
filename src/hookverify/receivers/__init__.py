"""Webhook receivers and signature verification."""

from hookverify.receivers.middleware import WebHookVerifyMiddleware
from hookverify.receivers.profiles import PUSHER, ReceiverProfile
from hookverify.receivers.secrets import SecretKeySet, SecretResolver
from hookverify.receivers.verification import (
    Forward,
    Reject,
    SignatureVerifier,
    VerificationOutcome,
)

__all__ = [
    "PUSHER",
    "Forward",
    "ReceiverProfile",
    "Reject",
    "SecretKeySet",
    "SecretResolver",
    "SignatureVerifier",
    "VerificationOutcome",
    "WebHookVerifyMiddleware",
]
