"""structlog processors.

:class:`ErrorTreeProcessor` replaces ``exc_info`` in an event dict with the
serialized error tree, so log records carry the same structure the collector
receives.  :class:`ReportingProcessor` forwards error-level events that carry
an exception to a :class:`~faultline.client.Client`.

Usage::

    structlog.configure(
        processors=[
            ...,
            ReportingProcessor(client),
            ErrorTreeProcessor(client.wrapper_types),
            ...,
        ],
    )
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

from faultline.tree import ErrorTreeBuilder
from faultline.unwrap import WrapperTypeSet

if TYPE_CHECKING:
    from faultline.client import Client

#: Event-dict key set on faultline's own diagnostics; such events are never reported.
INTERNAL_EVENT_KEY = "faultline_internal"

_OWN_LOGGER_PREFIX = "faultline"

_METHOD_TO_LEVEL: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "exception": logging.ERROR,
    "critical": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}


def exception_from_exc_info(exc_info: Any) -> BaseException | None:
    """Return the exception described by a structlog ``exc_info`` value.

    Accepts an exception instance, ``True`` (the exception being handled) or
    a ``sys.exc_info()`` tuple; anything else yields ``None``.
    """
    if not exc_info:
        return None
    if isinstance(exc_info, BaseException):
        return exc_info
    if exc_info is True:
        exc_info = sys.exc_info()
    if not isinstance(exc_info, tuple) or len(exc_info) != 3:
        return None
    exc_value = exc_info[1]
    return exc_value if isinstance(exc_value, BaseException) else None


def _is_own_event(logger: Any, event_dict: dict[str, Any]) -> bool:
    """Return ``True`` for events logged by faultline itself."""
    if event_dict.get(INTERNAL_EVENT_KEY):
        return True
    name = event_dict.get("logger") or getattr(logger, "name", None)
    if not isinstance(name, str):
        return False
    return name == _OWN_LOGGER_PREFIX or name.startswith(_OWN_LOGGER_PREFIX + ".")


class ErrorTreeProcessor:
    """Convert ``exc_info`` to a serialized error tree under ``"error"``.

    Parameters
    ----------
    wrapper_types:
        Wrapper types stripped before building the tree.
    max_depth:
        Maximum number of nested errors.
    key:
        Event-dict key receiving the tree.
    """

    def __init__(
        self,
        wrapper_types: WrapperTypeSet | None = None,
        *,
        max_depth: int | None = None,
        key: str = "error",
    ) -> None:
        self._builder = ErrorTreeBuilder(wrapper_types, max_depth=max_depth)
        self._key = key

    def __call__(
        self,
        _logger: Any,
        _method_name: str,
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        exc = exception_from_exc_info(event_dict.get("exc_info"))
        if exc is None:
            return event_dict

        event_dict[self._key] = self._builder.build(exc).to_dict()
        event_dict.pop("exc_info", None)
        return event_dict


class ReportingProcessor:
    """Send exceptions logged at or above *event_level* to *client*.

    Reports go through :meth:`Client.send_in_background`, so logging never
    waits on delivery.  Place it **before** :class:`ErrorTreeProcessor`, which
    consumes ``exc_info``.  Events from faultline's own loggers, or marked
    with :data:`INTERNAL_EVENT_KEY`, are skipped so that a failing transport
    cannot report its own delivery failures.

    Parameters
    ----------
    client:
        The reporting client.
    event_level:
        Minimum :mod:`logging` level that triggers a report.
    tag_keys:
        Event-dict keys whose values are attached as ``"key:value"`` tags.
    """

    def __init__(
        self,
        client: Client,
        *,
        event_level: int = logging.ERROR,
        tag_keys: frozenset[str] | None = None,
    ) -> None:
        self._client = client
        self._event_level = event_level
        self._tag_keys = tag_keys or frozenset()

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        level = _METHOD_TO_LEVEL.get(method_name.lower(), logging.INFO)
        if level < self._event_level or _is_own_event(logger, event_dict):
            return event_dict

        exc = exception_from_exc_info(event_dict.get("exc_info"))
        if exc is None:
            return event_dict

        tags = [f"{key}:{event_dict[key]}" for key in sorted(self._tag_keys) if key in event_dict]
        self._client.send_in_background(
            exc,
            tags=tags,
            user_custom_data={"event": str(event_dict.get("event", ""))},
        )
        return event_dict
