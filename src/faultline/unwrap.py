"""Stripping transparent wrapper exceptions.

Some exceptions only exist to carry another one (an error raised from a
dynamically invoked callable, an unhandled error surfaced by a request
handler).  Reporting them would group every failure under the wrapper, so the
outermost wrappers are discarded before the error tree is built.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from faultline.exceptions import InvocationError, UnhandledRequestError

DEFAULT_WRAPPER_TYPES: tuple[type[BaseException], ...] = (
    InvocationError,
    UnhandledRequestError,
)


def inner_cause(exc: BaseException) -> BaseException | None:
    """Return the exception *exc* was raised from, if any.

    An explicit ``raise ... from`` cause wins; otherwise the implicit context
    is used unless it was suppressed with ``from None``.
    """
    cause = exc.__cause__
    if cause is None and not exc.__suppress_context__:
        cause = exc.__context__
    return cause


class WrapperTypeSet:
    """Append-only set of exception types treated as transparent wrappers.

    Matching is by exact type: subclasses of a registered type are not
    wrappers unless registered themselves.  Registration is not synchronized;
    callers registering from several threads must serialize it.
    """

    def __init__(
        self,
        types: Iterable[type[BaseException]] = DEFAULT_WRAPPER_TYPES,
    ) -> None:
        self._types: dict[type[BaseException], None] = {}
        for exc_type in types:
            self.register(exc_type)

    def register(self, exc_type: type[BaseException]) -> None:
        """Add *exc_type*.  Registering a type twice is a no-op."""
        if not isinstance(exc_type, type) or not issubclass(exc_type, BaseException):
            msg = f"Wrapper types must be exception classes, got {exc_type!r}"
            raise TypeError(msg)
        self._types.setdefault(exc_type, None)

    def update(self, types: Iterable[type[BaseException]]) -> None:
        """Register every type in *types*."""
        for exc_type in types:
            self.register(exc_type)

    def __contains__(self, exc_type: object) -> bool:
        return exc_type in self._types

    def __iter__(self) -> Iterator[type[BaseException]]:
        return iter(tuple(self._types))

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        names = ", ".join(t.__qualname__ for t in self._types)
        return f"WrapperTypeSet({names})"


def unwrap(
    exc: BaseException,
    wrapper_types: WrapperTypeSet | None = None,
) -> BaseException:
    """Discard outer wrapper exceptions and return the first meaningful one.

    Stops at the first exception whose exact type is not registered, or at a
    wrapper with no inner cause.  A chain of wrappers that loops back on
    itself has no meaningful inner exception and is returned unchanged.
    """
    if wrapper_types is None:
        wrapper_types = WrapperTypeSet()
    seen: set[int] = set()
    current = exc
    while type(current) in wrapper_types:
        seen.add(id(current))
        cause = inner_cause(current)
        if cause is None:
            break
        if id(cause) in seen:
            return exc
        current = cause
    return current
