"""Exception types used and recognized by faultline."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any


class FaultlineError(Exception):
    """Base class for errors raised by faultline itself."""


class ConfigurationError(FaultlineError):
    """Invalid client settings."""


class TransportError(FaultlineError):
    """A transport failed to deliver a message."""


class _WrapperError(Exception):
    """An exception whose only reporting-relevant content is its cause."""

    default_message = "An error occurred"

    def __init__(self, inner: BaseException | None = None, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.inner = inner
        if inner is not None:
            self.__cause__ = inner


class InvocationError(_WrapperError):
    """Raised when a dynamically invoked callable fails.

    Registered as a wrapper by default, so the failure of the target is
    reported instead.
    """

    default_message = "Exception has been thrown by the target of an invocation."


class UnhandledRequestError(_WrapperError):
    """Raised by request handlers for errors nothing else handled.

    Registered as a wrapper by default.
    """

    default_message = "An unhandled error occurred while processing the request."


def invoke(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call *func*, re-raising any :class:`Exception` as :class:`InvocationError`."""
    try:
        return func(*args, **kwargs)
    except Exception as exc:
        raise InvocationError(exc) from exc


@dataclass(frozen=True)
class NativeError:
    """An error reported by a foreign (non-Python) runtime."""

    name: str
    reason: str
    call_stack_symbols: tuple[str, ...] = ()


class ForeignError(Exception):
    """A Python exception carrying a :class:`NativeError`.

    Reported under the native error's name and reason rather than its own.
    """

    def __init__(
        self,
        name: str,
        reason: str,
        call_stack_symbols: Iterable[str] = (),
    ) -> None:
        super().__init__(f"{name}: {reason}")
        self.native_error = NativeError(name, reason, tuple(call_stack_symbols))
