"""Common utilities for hookverify."""

from hookverify.common.settings import Settings, get_settings
from hookverify.common.signing import from_hex, secret_equal, sign

__all__ = [
    "Settings",
    "get_settings",
    "from_hex",
    "secret_equal",
    "sign",
]
