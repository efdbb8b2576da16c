"""Normalized stack frame model.

A :class:`Frame` is the unit every frame source produces, whether it parsed
free text or walked a live traceback.  Sequences of frames are ordered with
the throw site first and are never empty: :data:`SENTINEL_FRAME` stands in
when nothing could be resolved.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Frame:
    """One stack entry.

    ``line_number`` is ``0`` when the line is unknown, or holds an
    instruction offset when no source line was available.
    """

    class_name: str | None = None
    method_name: str | None = None
    file_name: str | None = None
    line_number: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "class_name": self.class_name,
            "method_name": self.method_name,
            "file_name": self.file_name,
            "line_number": self.line_number,
        }


SENTINEL_FRAME = Frame(file_name="none", line_number=0)


def ensure_frames(frames: Iterable[Frame] | None) -> tuple[Frame, ...]:
    """Return *frames* as a tuple, or the sentinel alone if there are none."""
    result = tuple(frames) if frames is not None else ()
    return result or (SENTINEL_FRAME,)
