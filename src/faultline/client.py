"""Error reporting client.

A :class:`Client` owns its wrapper type set and settings, turns exceptions
into :class:`~faultline.messages.ErrorMessage` objects and hands them to a
transport, either synchronously or on a background thread::

    from faultline import Client

    client = Client(transport=post_to_collector)
    client.register_wrapper_type(PluginCallError)

    try:
        run_plugin()
    except Exception as exc:
        client.send_in_background(exc, tags=["plugins"])
"""

from __future__ import annotations

import socket
import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import structlog

from faultline.config import ClientSettings
from faultline.exceptions import TransportError
from faultline.messages import ClientDetails, ErrorMessage, MessageDetails, normalize_tags
from faultline.processors import INTERNAL_EVENT_KEY
from faultline.transports import LogTransport, Transport
from faultline.tree import ErrorNode, ErrorTreeBuilder
from faultline.unwrap import WrapperTypeSet

logger = structlog.get_logger(__name__)


def _client_details() -> ClientDetails:
    """Name and version of this library."""
    from faultline import __version__

    return ClientDetails(name="faultline", version=__version__)


class Client:
    """Build and deliver error reports.

    Parameters
    ----------
    transport:
        Callable receiving each :class:`ErrorMessage`.  Defaults to
        :class:`~faultline.transports.LogTransport`.
    settings:
        Client settings; see :class:`~faultline.config.ClientSettings`.
    user:
        Identifier of the current user, attached to every message.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        settings: ClientSettings | None = None,
        user: str | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._transport: Transport = transport if transport is not None else LogTransport()
        self.wrapper_types = WrapperTypeSet()
        self.wrapper_types.update(self._settings.wrapper_types)
        self.user = user
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    # -- configuration ------------------------------------------------------

    def register_wrapper_type(self, exc_type: type[BaseException]) -> None:
        """Treat *exc_type* as a transparent wrapper from now on."""
        self.wrapper_types.register(exc_type)

    def add_wrapper_types(self, exc_types: Iterable[type[BaseException]]) -> None:
        """Register every type in *exc_types*."""
        self.wrapper_types.update(exc_types)

    # -- building -----------------------------------------------------------

    def build_error_tree(self, exc: BaseException) -> ErrorNode:
        """Build the error tree for *exc* with this client's wrapper types."""
        builder = ErrorTreeBuilder(
            self.wrapper_types,
            max_depth=self._settings.max_chain_depth,
        )
        return builder.build(exc)

    def build_message(
        self,
        exc: BaseException,
        *,
        tags: Sequence[str] | None = None,
        user_custom_data: Mapping[str, Any] | None = None,
        version: str | None = None,
    ) -> ErrorMessage:
        """Assemble the message for *exc*; *version* overrides the settings."""
        details = MessageDetails(
            error=self.build_error_tree(exc),
            client=_client_details(),
            machine_name=socket.gethostname(),
            version=version if version is not None else self._settings.version,
            tags=normalize_tags(tags),
            user_custom_data=dict(user_custom_data or {}),
            user=self.user,
        )
        return ErrorMessage(details=details)

    # -- delivery -----------------------------------------------------------

    def send(
        self,
        exc: BaseException,
        *,
        tags: Sequence[str] | None = None,
        user_custom_data: Mapping[str, Any] | None = None,
        version: str | None = None,
    ) -> None:
        """Report *exc* synchronously.

        Transport failures are logged, and re-raised as
        :class:`~faultline.exceptions.TransportError` when
        ``settings.throw_on_error`` is set.
        """
        message = self.build_message(
            exc,
            tags=tags,
            user_custom_data=user_custom_data,
            version=version,
        )
        self.send_message(message)

    def send_message(self, message: ErrorMessage) -> None:
        """Deliver an already built *message*; failures as in :meth:`send`."""
        try:
            self._transport(message)
        except Exception as exc:
            logger.warning(
                "error_report_delivery_failed",
                error_class=message.details.error.class_name,
                exc_info=True,
                **{INTERNAL_EVENT_KEY: True},
            )
            if self._settings.throw_on_error:
                msg = f"Failed to deliver error report: {exc}"
                raise TransportError(msg) from exc

    def send_in_background(
        self,
        exc: BaseException,
        *,
        tags: Sequence[str] | None = None,
        user_custom_data: Mapping[str, Any] | None = None,
        version: str | None = None,
    ) -> Future[None]:
        """Build the message now and deliver it on a worker thread.

        Delivery failures are only logged.
        """
        message = self.build_message(
            exc,
            tags=tags,
            user_custom_data=user_custom_data,
            version=version,
        )
        return self.send_message_in_background(message)

    def send_message_in_background(self, message: ErrorMessage) -> Future[None]:
        """Deliver *message* on a worker thread."""
        return self._get_executor().submit(self._deliver_quietly, message)

    def _deliver_quietly(self, message: ErrorMessage) -> None:
        """Deliver *message*, logging instead of raising on failure."""
        try:
            self._transport(message)
        except Exception:
            logger.exception(
                "error_report_delivery_failed",
                error_class=message.details.error.class_name,
                background=True,
                **{INTERNAL_EVENT_KEY: True},
            )

    def _get_executor(self) -> ThreadPoolExecutor:
        """Return the worker pool, creating it on first use."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._settings.background_workers,
                    thread_name_prefix="faultline",
                )
            return self._executor

    def close(self, *, wait: bool = True) -> None:
        """Shut down the background worker, waiting for pending sends."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
