"""Outbound message envelope.

An :class:`ErrorMessage` embeds an :class:`~faultline.tree.ErrorNode` tree
together with the details the client knows about itself and the caller
supplied (tags, custom data, version, user).  ``to_json`` renders it with
orjson for transports that ship bytes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import orjson

from faultline.tree import ErrorNode


@dataclass(frozen=True)
class ClientDetails:
    name: str
    version: str


@dataclass(frozen=True)
class MessageDetails:
    error: ErrorNode
    client: ClientDetails
    machine_name: str | None = None
    version: str | None = None
    tags: tuple[str, ...] = ()
    user_custom_data: dict[str, Any] = field(default_factory=dict)
    user: str | None = None


@dataclass(frozen=True)
class ErrorMessage:
    """A single error report, ready to hand to a transport."""

    details: MessageDetails
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        details = self.details
        return {
            "occurred_on": self.occurred_on,
            "details": {
                "machine_name": details.machine_name,
                "version": details.version,
                "client": {"name": details.client.name, "version": details.client.version},
                "error": details.error.to_dict(),
                "tags": list(details.tags),
                "user_custom_data": dict(details.user_custom_data),
                "user": {"identifier": details.user} if details.user is not None else None,
            },
        }

    def to_json(self) -> bytes:
        """Serialize with orjson; values it cannot encode fall back to ``repr``."""
        return orjson.dumps(
            self.to_dict(),
            default=repr,
            option=orjson.OPT_NON_STR_KEYS | orjson.OPT_UTC_Z,
        )


def normalize_tags(tags: Sequence[str] | None) -> tuple[str, ...]:
    """Coerce *tags* to a tuple of strings."""
    if not tags:
        return ()
    return tuple(str(tag) for tag in tags)
