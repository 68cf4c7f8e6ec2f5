"""Secret key resolution per receiver and receiver id."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator, Mapping

from hookverify.common.settings import Settings

SecretConfig = Mapping[str, Mapping[str, Mapping[str, str]]]


class SecretKeySet(Mapping[str, str]):
    """Read-only, ordered mapping of application key to secret."""

    def __init__(self, receiver: str, receiver_id: str, secrets: Mapping[str, str]) -> None:
        self.receiver = receiver
        self.receiver_id = receiver_id
        self._secrets = dict(secrets)

    def __getitem__(self, key: str) -> str:
        return self._secrets[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._secrets)

    def __len__(self) -> int:
        return len(self._secrets)

    def secret_for(self, application_key: str) -> str | None:
        """Return the secret for ``application_key``, or None."""
        return self._secrets.get(application_key)

    def __repr__(self) -> str:
        # Secrets never appear in reprs or logs.
        return (
            f"SecretKeySet(receiver={self.receiver!r}, id={self.receiver_id!r}, "
            f"keys={list(self._secrets)!r})"
        )


class SecretResolver:
    """Resolve the secret key set for a receiver.

    Built once from configuration and shared read-only across requests.
    """

    def __init__(self, secrets: SecretConfig, default_receiver_id: str = "default") -> None:
        self._default_id = default_receiver_id.lower()
        self._sets: dict[tuple[str, str], SecretKeySet] = {}
        for receiver, by_id in _merge({}, secrets).items():
            for receiver_id, keys in by_id.items():
                self._sets[(receiver, receiver_id)] = SecretKeySet(receiver, receiver_id, keys)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecretResolver":
        """Build a resolver from settings, merging the optional secrets file."""
        merged: dict[str, dict[str, dict[str, str]]] = {}
        if settings.webhook_secrets_file:
            merged = _merge(merged, load_secrets_file(settings.webhook_secrets_file))
        merged = _merge(merged, settings.webhook_secrets)
        return cls(merged, default_receiver_id=settings.default_receiver_id)

    def scopes(self) -> list[tuple[str, str]]:
        """Return every configured (receiver, receiver_id) pair."""
        return list(self._sets)

    def get_secret_keys(self, receiver: str, receiver_id: str | None = None) -> SecretKeySet | None:
        """Return the key set for ``receiver``/``receiver_id``, or None if unconfigured."""
        scope = (receiver.lower(), (receiver_id or self._default_id).lower())
        return self._sets.get(scope)


def load_secrets_file(path: str) -> dict[str, dict[str, dict[str, str]]]:
    """Load a JSON secrets file of shape receiver -> id -> app key -> secret."""
    raw = Path(path).expanduser().read_text(encoding="utf-8")
    data: Any = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Secrets file must contain a JSON object: {path}")
    for receiver, by_id in data.items():
        if not isinstance(by_id, dict) or not all(
            isinstance(keys, dict) and all(isinstance(v, str) for v in keys.values())
            for keys in by_id.values()
        ):
            raise ValueError(f"Invalid secrets for receiver '{receiver}' in {path}")
    return data


def _merge(base: SecretConfig, override: SecretConfig) -> dict[str, dict[str, dict[str, str]]]:
    """Merge two secret configs, folding receiver and id case so scopes combine."""
    result: dict[str, dict[str, dict[str, str]]] = {}
    for config in (base, override):
        for receiver, by_id in config.items():
            target = result.setdefault(receiver.lower(), {})
            for receiver_id, keys in by_id.items():
                target.setdefault(receiver_id.lower(), {}).update(keys)
    return result
