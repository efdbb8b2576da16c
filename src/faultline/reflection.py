"""Frames from structured call-frame introspection.

Walking a live traceback is strictly more reliable than parsing text, so the
tree builder prefers it whenever an exception carries ``__traceback__`` (or a
precomputed sequence of :class:`CallFrame` records).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from types import FrameType, TracebackType

from faultline.frames import Frame, ensure_frames
from faultline.signatures import MethodDescriptor, describe_frame, render_method_name

UNKNOWN_OWNER = "(unknown)"


@dataclass(frozen=True)
class CallFrame:
    """A structured call frame, live or captured ahead of time.

    ``line_number`` is the source line (``0`` if unknown); ``offset`` is the
    instruction offset used in its place.
    """

    method: MethodDescriptor | None
    owner: str | None = None
    file_name: str | None = None
    line_number: int = 0
    offset: int = 0


def owner_name(frame: FrameType) -> str | None:
    """Return the dotted name of the scope enclosing the code in *frame*."""
    module = frame.f_globals.get("__name__")
    if not module:
        return None
    code = frame.f_code
    qualname = getattr(code, "co_qualname", None)
    if qualname is None:
        for owner_arg in ("self", "cls"):
            if owner_arg in frame.f_locals:
                owner = frame.f_locals[owner_arg]
                owner_type = owner if isinstance(owner, type) else type(owner)
                return f"{owner_type.__module__}.{owner_type.__qualname__}"
        return module
    owner = qualname.rpartition(".")[0]
    return f"{module}.{owner}" if owner else module


def call_frames_from_traceback(tb: TracebackType | None) -> list[CallFrame]:
    """Capture *tb* as :class:`CallFrame` records, throw site first."""
    captured: list[CallFrame] = []
    while tb is not None:
        frame = tb.tb_frame
        captured.append(
            CallFrame(
                method=describe_frame(frame),
                owner=owner_name(frame),
                file_name=frame.f_code.co_filename or None,
                line_number=tb.tb_lineno or 0,
                offset=max(tb.tb_lasti, 0),
            )
        )
        tb = tb.tb_next
    captured.reverse()
    return captured


def resolve_frames(call_frames: Iterable[CallFrame]) -> tuple[Frame, ...]:
    """Convert *call_frames* to frames, skipping unresolvable methods.

    May return an empty tuple.
    """
    frames = []
    for call_frame in call_frames:
        if call_frame.method is None:
            continue
        frames.append(
            Frame(
                class_name=call_frame.owner or UNKNOWN_OWNER,
                method_name=render_method_name(call_frame.method),
                file_name=call_frame.file_name,
                line_number=call_frame.line_number or call_frame.offset,
            )
        )
    return tuple(frames)


def extract_frames(call_frames: Iterable[CallFrame] | None) -> tuple[Frame, ...]:
    """Like :func:`resolve_frames`, but never empty."""
    return ensure_frames(resolve_frames(call_frames or ()))


def frames_from_traceback(tb: TracebackType | None) -> tuple[Frame, ...]:
    """Walk a live traceback into a non-empty frame sequence."""
    return extract_frames(call_frames_from_traceback(tb))
