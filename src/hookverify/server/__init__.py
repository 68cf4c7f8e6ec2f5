"""Webhook receiver HTTP service."""
