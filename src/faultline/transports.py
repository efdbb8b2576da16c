"""Delivery of error messages.

Network delivery, retries and authentication belong to the application; a
transport is anything callable with an :class:`~faultline.messages.ErrorMessage`.
:class:`LogTransport` is the one shipped here: it writes the JSON payload to
a structlog logger, which is handy during development and in tests.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from faultline.messages import ErrorMessage


class Transport(Protocol):
    def __call__(self, message: ErrorMessage) -> None: ...


class LogTransport:
    """Log every message as a structured event.

    Parameters
    ----------
    logger_name:
        Name of the structlog logger to write to.
    event:
        Event name of the emitted records.
    """

    def __init__(
        self,
        *,
        logger_name: str = "faultline.reports",
        event: str = "error_report",
    ) -> None:
        self._logger_name = logger_name
        self._event = event

    def __call__(self, message: ErrorMessage) -> None:
        log: Any = structlog.get_logger(self._logger_name)
        log.error(
            self._event,
            error_class=message.details.error.class_name,
            payload=message.to_json().decode(),
        )
