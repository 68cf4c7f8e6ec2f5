"""
hookverify: signature verification for inbound webhook deliveries.

Authenticates vendor webhooks (HMAC-SHA-256 over the raw body) before they
reach application code.
"""

__version__ = "1.0.0"
