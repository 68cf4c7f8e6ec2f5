"""Receiver profiles: header conventions and secret scope per webhook source."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping


@dataclass(frozen=True)
class ReceiverProfile:
    """Everything the verification stage needs to know about a receiver."""

    name: str
    signature_header: str
    key_header: str
    secret_min_length: int = 8
    method: str = "POST"


PUSHER = ReceiverProfile(
    name="pusher",
    signature_header="X-Pusher-Signature",
    key_header="X-Pusher-Key",
    secret_min_length=8,
)

DEFAULT_RECEIVERS: Mapping[str, ReceiverProfile] = MappingProxyType({PUSHER.name: PUSHER})


def build_receiver_table(
    receivers: Iterable[ReceiverProfile] | None = None,
) -> Mapping[str, ReceiverProfile]:
    """Index receiver profiles by lower-cased name."""
    if receivers is None:
        return DEFAULT_RECEIVERS
    table: dict[str, ReceiverProfile] = {}
    for profile in receivers:
        key = profile.name.lower()
        if key in table:
            raise ValueError(f"Duplicate receiver profile: {profile.name}")
        table[key] = profile
    return MappingProxyType(table)
