"""Free-text stack trace parsing.

No single grammar covers every producer of stack trace text, so parsing is
a list of independent strategies tried in order.  A strategy is a plain
function ``text -> tuple[Frame, ...] | None``; returning ``None`` (or an
empty tuple) hands the text to the next one.

Default order:

1. :func:`parse_plain_lines`: one frame per line, the raw line kept as the
   class name.  Only claims text without any richer structure.
2. :func:`parse_python_traceback`: ``File "...", line N, in name`` entries.
3. :func:`parse_rich_lines`: ``at Type.Method (Params) [0x..] in file:line``.

When every strategy abstains, :class:`FrameParser` falls back to structured
call frames if any were supplied, and finally to the sentinel frame.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from typing import TypeAlias

import structlog

from faultline.frames import SENTINEL_FRAME, Frame
from faultline.reflection import CallFrame, resolve_frames
from faultline.signatures import simple_type_name

logger = structlog.get_logger(__name__)

Strategy: TypeAlias = Callable[[str], "tuple[Frame, ...] | None"]

_CALL_MARKER_RE = re.compile(r"(?:^|\s)at\s+")
_FILE_MARKER = "] in "
_OFFSET_MARKER = "[0x"
_LINE_SUFFIX_RE = re.compile(r":\d+$")
_PY_HEADER = "Traceback (most recent call last):"
_PY_FRAME_RE = re.compile(
    r'^File "(?P<file>[^"]*)", line (?P<line>\d+)(?:, in (?P<name>.+))?$',
)
_OPENING = "<[("
_CLOSING = ">])"


def _lines(text: str) -> list[str]:
    """Non-blank lines, stripped."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def _raw_lines(text: str) -> list[str]:
    """Non-blank lines as written."""
    return [line for line in text.splitlines() if line.strip()]


def _has_structure(line: str) -> bool:
    """Return ``True`` if *line* matches any richer grammar."""
    return bool(
        _CALL_MARKER_RE.search(line)
        or _FILE_MARKER in line
        or _LINE_SUFFIX_RE.search(line)
        or _PY_FRAME_RE.match(line)
    )


# -- strategies -------------------------------------------------------------


def parse_plain_lines(text: str) -> tuple[Frame, ...] | None:
    """Low-fidelity fallback: each raw line becomes a frame's ``class_name``."""
    lines = _raw_lines(text)
    if not lines or any(_has_structure(line.strip()) for line in lines):
        return None
    return tuple(Frame(class_name=line) for line in lines)


def parse_python_traceback(text: str) -> tuple[Frame, ...] | None:
    """Parse a formatted Python traceback.

    Only the last ``Traceback (most recent call last):`` section is read, so a
    chained traceback yields the frames of the exception that was printed
    last.  Python lists the most recent call last; frames are reversed to put
    the throw site first.
    """
    if _PY_HEADER in text:
        text = text.rsplit(_PY_HEADER, 1)[1]
    frames = []
    for line in _lines(text):
        match = _PY_FRAME_RE.match(line)
        if match is None:
            continue
        frames.append(
            Frame(
                method_name=match["name"],
                file_name=match["file"],
                line_number=int(match["line"]),
            )
        )
    if not frames:
        return None
    frames.reverse()
    return tuple(frames)


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested inside ``<>``, ``[]`` or ``()``."""
    parts: list[str] = []
    depth = 0
    start = 0
    for i, char in enumerate(text):
        if char in _OPENING:
            depth += 1
        elif char in _CLOSING:
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    parts.append(text[start:])
    return [part.strip() for part in parts if part.strip()]


def _normalize_parameter(param: str) -> str:
    """Render ``System.String path`` as ``String path``."""
    tokens = param.split()
    if len(tokens) == 1:
        return f"{simple_type_name(tokens[0])} "
    return f"{simple_type_name(tokens[-2])} {tokens[-1]}"


def _normalize_method(raw: str) -> str:
    """Turn ``Load<T> (System.String path)`` into ``Load[T](String path)``."""
    name, _, params = raw.partition("(")
    name = name.strip()
    params = params.rpartition(")")[0] if ")" in params else params
    if name.endswith(">") and "<" in name:
        base, _, generics = name[:-1].partition("<")
        name = base + "[" + ",".join(simple_type_name(g) for g in _split_top_level(generics)) + "]"
    rendered = ", ".join(_normalize_parameter(p) for p in _split_top_level(params))
    return f"{name}({rendered})"


def _last_dot_before(text: str, end: int) -> int:
    """Index of the last ``.`` before *end* outside of ``<...>``, or ``-1``."""
    depth = 0
    for i in range(end - 1, -1, -1):
        char = text[i]
        if char == ">":
            depth += 1
        elif char == "<":
            depth = max(depth - 1, 0)
        elif char == "." and depth == 0:
            return i
    return -1


def _split_call(call: str) -> tuple[str | None, str | None]:
    """Split ``Type.Method (Params) [0x..]`` into class and method names."""
    paren = call.rfind("(")
    if paren > 0:
        dot = _last_dot_before(call, paren)
        if dot > 0:
            end = call.find(_OFFSET_MARKER, dot)
            if end < 0:
                end = len(call)
            method = _normalize_method(call[dot + 1 : end].strip())
            return call[:dot].strip() or None, method
    return call.strip() or None, None


def _parse_rich_line(line: str) -> Frame:
    """Parse one ``at ... in file:line`` line."""
    index = line.rfind(":")
    if index <= 0:
        return Frame(file_name=line)
    try:
        line_number = int(line[index + 1 :])
    except ValueError:
        return Frame(file_name=line)
    if line_number < 0:
        return Frame(file_name=line)

    rest = line[:index]
    split = rest.rfind(_FILE_MARKER)
    if split <= 0:
        return Frame(file_name=rest, line_number=line_number)

    head = rest[:split]
    marker = _CALL_MARKER_RE.search(head)
    if marker is None:
        return Frame(file_name=rest, line_number=line_number)

    class_name, method_name = _split_call(head[marker.end() :])
    return Frame(
        class_name=class_name,
        method_name=method_name,
        file_name=rest[split + len(_FILE_MARKER) :],
        line_number=line_number,
    )


def parse_rich_lines(text: str) -> tuple[Frame, ...] | None:
    """Parse ``at Type.Method (Params) [0x..] in file:line`` lines.

    Lines that do not end in ``:<int>`` are kept whole as the file name with
    an unknown line number.  Any failure abandons the strategy.
    """
    try:
        frames = tuple(_parse_rich_line(line) for line in _lines(text))
    except Exception:
        logger.debug("stack_trace_strategy_failed", strategy="rich_lines", exc_info=True)
        return None
    return frames or None


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    parse_plain_lines,
    parse_python_traceback,
    parse_rich_lines,
)


class FrameParser:
    """Run text strategies in order, then structured frames, then the sentinel.

    Parameters
    ----------
    strategies:
        Ordered strategy functions.  Defaults to :data:`DEFAULT_STRATEGIES`.
    """

    def __init__(self, strategies: Sequence[Strategy] | None = None) -> None:
        self._strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    @property
    def strategies(self) -> tuple[Strategy, ...]:
        return self._strategies

    def parse(
        self,
        text: str | None,
        call_frames: Iterable[CallFrame] | None = None,
    ) -> tuple[Frame, ...]:
        """Return a non-empty frame sequence.  Never raises."""
        if text:
            for strategy in self._strategies:
                try:
                    frames = strategy(text)
                except Exception:
                    logger.debug(
                        "stack_trace_strategy_failed",
                        strategy=getattr(strategy, "__name__", repr(strategy)),
                        exc_info=True,
                    )
                    continue
                if frames:
                    return tuple(frames)

        if call_frames is not None:
            try:
                frames = resolve_frames(call_frames)
            except Exception:
                logger.debug("call_frame_resolution_failed", exc_info=True)
                frames = ()
            if frames:
                return frames

        return (SENTINEL_FRAME,)


_default_parser = FrameParser()


def parse_frames(
    text: str | None,
    call_frames: Iterable[CallFrame] | None = None,
) -> tuple[Frame, ...]:
    """Parse with the default strategy order."""
    return _default_parser.parse(text, call_frames)
