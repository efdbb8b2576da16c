"""Error tree construction.

Converts a live exception into a chain of :class:`ErrorNode` objects, one per
level of its cause chain, after discarding outer wrapper exceptions::

    from faultline import build_error_tree

    try:
        load_config()
    except Exception as exc:
        tree = build_error_tree(exc)
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from faultline.exceptions import NativeError
from faultline.frames import SENTINEL_FRAME, Frame
from faultline.parsing import FrameParser
from faultline.reflection import CallFrame, call_frames_from_traceback, resolve_frames
from faultline.unwrap import WrapperTypeSet, inner_cause, unwrap

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ErrorNode:
    """One level of a reported error's cause chain."""

    class_name: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    frames: tuple[Frame, ...] = (SENTINEL_FRAME,)
    inner_error: ErrorNode | None = None

    def chain(self) -> Iterator[ErrorNode]:
        """Yield this node followed by each nested inner error."""
        node: ErrorNode | None = self
        while node is not None:
            yield node
            node = node.inner_error

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] | None = None
        for node in reversed(list(self.chain())):
            result = {
                "class_name": node.class_name,
                "message": node.message,
                "data": dict(node.data),
                "stack_trace": [frame.to_dict() for frame in node.frames],
                "inner_error": result,
            }
        assert result is not None
        return result


def qualified_name(exc_type: type) -> str:
    """``module.QualName`` of *exc_type*, without the ``builtins`` prefix."""
    module = getattr(exc_type, "__module__", None)
    if not module or module == "builtins":
        return exc_type.__qualname__
    return f"{module}.{exc_type.__qualname__}"


def _safe_str(exc: BaseException) -> str:
    """``str(exc)``, or a placeholder when that raises."""
    try:
        return str(exc)
    except Exception:
        return f"<unprintable {type(exc).__name__} object>"


def _native_error(exc: BaseException) -> NativeError | None:
    """The ``native_error`` attached to *exc*, if it looks like one."""
    native = getattr(exc, "native_error", None)
    if native is None or not hasattr(native, "name") or not hasattr(native, "reason"):
        return None
    return native


def _data(exc: BaseException) -> dict[str, Any]:
    """Shallow copy of the ``data`` mapping of *exc*."""
    data = getattr(exc, "data", None)
    if isinstance(data, Mapping):
        return dict(data)
    return {}


def _call_frames(exc: BaseException) -> list[CallFrame] | None:
    """Structured frames from the traceback, else a ``call_frames`` attribute."""
    if exc.__traceback__ is not None:
        try:
            return call_frames_from_traceback(exc.__traceback__)
        except Exception:
            logger.debug("traceback_introspection_failed", exc_info=True)
            return None
    precomputed = getattr(exc, "call_frames", None)
    if precomputed:
        return list(precomputed)
    return None


def _stack_trace_text(exc: BaseException) -> str | None:
    """The ``stack_trace`` attribute, else a ``message`` string in ``data``."""
    text = getattr(exc, "stack_trace", None)
    if isinstance(text, str) and text:
        return text
    data = _data(exc)
    for key in ("message", "Message"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class ErrorTreeBuilder:
    """Build :class:`ErrorNode` trees from exceptions.

    Parameters
    ----------
    wrapper_types:
        Types stripped from the outermost level.  Defaults to a fresh
        :class:`~faultline.unwrap.WrapperTypeSet`.
    parser:
        Text parser used when an exception has no structured frames.
    max_depth:
        Maximum number of nodes in a tree; ``None`` follows the whole chain.
    """

    def __init__(
        self,
        wrapper_types: WrapperTypeSet | None = None,
        *,
        parser: FrameParser | None = None,
        max_depth: int | None = None,
    ) -> None:
        if max_depth is not None and max_depth < 1:
            msg = f"max_depth must be at least 1, got {max_depth}"
            raise ValueError(msg)
        self._wrapper_types = wrapper_types if wrapper_types is not None else WrapperTypeSet()
        self._parser = parser or FrameParser()
        self._max_depth = max_depth

    def build(self, exc: BaseException) -> ErrorNode:
        """Unwrap *exc* once, then convert its cause chain."""
        levels: list[BaseException] = []
        seen: set[int] = set()
        current: BaseException | None = unwrap(exc, self._wrapper_types)
        while current is not None:
            if id(current) in seen:
                logger.debug("error_chain_cycle", class_name=qualified_name(type(current)))
                break
            if self._max_depth is not None and len(levels) >= self._max_depth:
                logger.debug("error_chain_truncated", depth=len(levels))
                break
            seen.add(id(current))
            levels.append(current)
            current = inner_cause(current)

        node: ErrorNode | None = None
        for level in reversed(levels):
            node = self.build_node(level, node)
        assert node is not None
        return node

    def build_node(self, exc: BaseException, inner_error: ErrorNode | None = None) -> ErrorNode:
        """Convert a single exception, without following its cause."""
        native = _native_error(exc)
        if native is not None:
            class_name = str(native.name)
            message = f"{native.name}: {native.reason}"
        else:
            class_name = qualified_name(type(exc))
            message = f"{type(exc).__name__}: {_safe_str(exc)}"
        return ErrorNode(
            class_name=class_name,
            message=message,
            data=_data(exc),
            frames=self.frames_for(exc),
            inner_error=inner_error,
        )

    def frames_for(self, exc: BaseException) -> tuple[Frame, ...]:
        """Frames for *exc*: native symbols, structured frames, then text."""
        native = _native_error(exc)
        symbols = getattr(native, "call_stack_symbols", None) if native is not None else None
        if symbols:
            return tuple(Frame(file_name=str(symbol)) for symbol in symbols)

        call_frames = _call_frames(exc)
        if call_frames:
            frames = resolve_frames(call_frames)
            if frames:
                return frames

        return self._parser.parse(_stack_trace_text(exc))


def build_error_tree(
    exception: BaseException,
    wrapper_types: WrapperTypeSet | None = None,
    *,
    parser: FrameParser | None = None,
    max_depth: int | None = None,
) -> ErrorNode:
    """Build the error tree for *exception*.  See :class:`ErrorTreeBuilder`."""
    return ErrorTreeBuilder(wrapper_types, parser=parser, max_depth=max_depth).build(exception)
