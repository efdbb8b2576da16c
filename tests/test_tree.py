"""Tests for faultline.tree."""

from __future__ import annotations

import pytest

from faultline.exceptions import ForeignError, InvocationError
from faultline.frames import SENTINEL_FRAME, Frame
from faultline.parsing import FrameParser, parse_plain_lines
from faultline.reflection import CallFrame
from faultline.signatures import MethodDescriptor
from faultline.tree import ErrorNode, ErrorTreeBuilder, build_error_tree, qualified_name
from faultline.unwrap import WrapperTypeSet


class ConfigError(Exception):
    pass


class DataError(Exception):
    def __init__(self, message: str, **data: object) -> None:
        super().__init__(message)
        self.data = data


class RemoteError(Exception):
    def __init__(self, message: str, stack_trace: str) -> None:
        super().__init__(message)
        self.stack_trace = stack_trace


class BadStr(Exception):
    def __str__(self) -> str:
        raise RuntimeError("no str for you")


def three_level_error() -> BaseException:
    try:
        try:
            try:
                raise KeyError("port")
            except KeyError as exc:
                raise ConfigError("missing setting") from exc
        except ConfigError as exc:
            raise RuntimeError("startup failed") from exc
    except RuntimeError as exc:
        return exc
    raise AssertionError("unreachable")


class TestQualifiedName:
    def test_builtins_are_bare(self) -> None:
        assert qualified_name(ValueError) == "ValueError"

    def test_module_prefix(self) -> None:
        assert qualified_name(ConfigError) == f"{__name__}.ConfigError"


class TestBuildErrorTree:
    def test_three_level_chain(self) -> None:
        tree = build_error_tree(three_level_error())

        levels = list(tree.chain())
        assert len(levels) == 3
        assert levels[0].class_name == "RuntimeError"
        assert levels[0].message == "RuntimeError: startup failed"
        assert levels[1].class_name == f"{__name__}.ConfigError"
        assert levels[1].message == "ConfigError: missing setting"
        assert levels[2].class_name == "KeyError"
        assert levels[2].message == "KeyError: 'port'"
        assert levels[2].inner_error is None

    def test_frames_from_traceback(self) -> None:
        tree = build_error_tree(three_level_error())
        top = tree.frames[0]
        assert top.class_name == __name__
        assert top.method_name == "three_level_error()"
        assert top.line_number > 0

    def test_unraised_exception_gets_sentinel(self) -> None:
        tree = build_error_tree(ValueError("never raised"))
        assert tree.frames == (SENTINEL_FRAME,)
        assert tree.data == {}
        assert tree.inner_error is None

    def test_outer_wrappers_are_stripped_once(self) -> None:
        root = ValueError("root")
        inner_wrapper = InvocationError()
        root.__cause__ = inner_wrapper
        exc = InvocationError(InvocationError(root))

        tree = build_error_tree(exc)
        assert tree.class_name == "ValueError"
        # wrappers below the outermost level are reported verbatim
        assert tree.inner_error is not None
        assert tree.inner_error.class_name == "faultline.exceptions.InvocationError"

    def test_custom_wrapper_types(self) -> None:
        exc = ConfigError("outer")
        exc.__cause__ = KeyError("inner")
        tree = build_error_tree(exc, WrapperTypeSet([ConfigError]))
        assert tree.class_name == "KeyError"

    def test_data_is_shallow_copy(self) -> None:
        nested = {"attempt": 1}
        exc = DataError("bad row", row=7, meta=nested)
        tree = build_error_tree(exc)
        assert tree.data == {"row": 7, "meta": nested}
        assert tree.data is not exc.data
        assert tree.data["meta"] is nested

    def test_non_mapping_data_is_ignored(self) -> None:
        exc = ValueError("x")
        exc.data = ["not", "a", "mapping"]  # type: ignore[attr-defined]
        assert build_error_tree(exc).data == {}

    def test_text_stack_trace_used_without_traceback(self) -> None:
        exc = RemoteError("remote", "  at Foo.Bar (System.String) [0x00001] in /src/Foo.cs:42\n")
        tree = build_error_tree(exc)
        assert tree.frames == (
            Frame(
                class_name="Foo",
                method_name="Bar(String )",
                file_name="/src/Foo.cs",
                line_number=42,
            ),
        )

    def test_data_message_used_without_stack_trace(self) -> None:
        exc = DataError("remote", Message="at Foo.Bar () [0x00000] in /src/Foo.cs:9")
        assert build_error_tree(exc).frames == (
            Frame(class_name="Foo", method_name="Bar()", file_name="/src/Foo.cs", line_number=9),
        )

    def test_stack_trace_wins_over_data_message(self) -> None:
        exc = RemoteError("remote", "frame one")
        exc.data = {"message": "frame two"}  # type: ignore[attr-defined]
        assert build_error_tree(exc).frames == (Frame(class_name="frame one"),)

    def test_non_string_data_message_is_ignored(self) -> None:
        exc = DataError("remote")
        exc.data = {"message": 42}
        assert build_error_tree(exc).frames == (SENTINEL_FRAME,)

    def test_traceback_preferred_over_text(self) -> None:
        try:
            raise RemoteError("remote", "at Foo.Bar () [0x0] in /src/Foo.cs:1")
        except RemoteError as exc:
            tree = build_error_tree(exc)
        assert tree.frames[0].file_name == __file__

    def test_precomputed_call_frames(self) -> None:
        exc = ValueError("aot")
        exc.call_frames = [  # type: ignore[attr-defined]
            CallFrame(
                method=MethodDescriptor("Run", ("T",), (("String", "arg"),)),
                owner="App.Job",
                file_name="job.cs",
                offset=12,
            )
        ]
        tree = build_error_tree(exc)
        assert tree.frames == (
            Frame(
                class_name="App.Job",
                method_name="Run[T](String arg)",
                file_name="job.cs",
                line_number=12,
            ),
        )

    def test_foreign_native_error(self) -> None:
        exc = ForeignError(
            "NSInvalidArgumentException",
            "unrecognized selector",
            ["0 CoreFoundation 0x1", "1 libobjc 0x2"],
        )
        tree = build_error_tree(exc)
        assert tree.class_name == "NSInvalidArgumentException"
        assert tree.message == "NSInvalidArgumentException: unrecognized selector"
        assert tree.frames == (
            Frame(file_name="0 CoreFoundation 0x1"),
            Frame(file_name="1 libobjc 0x2"),
        )

    def test_foreign_error_without_symbols_uses_sentinel(self) -> None:
        tree = build_error_tree(ForeignError("SIGSEGV", "segmentation fault"))
        assert tree.class_name == "SIGSEGV"
        assert tree.frames == (SENTINEL_FRAME,)

    def test_unprintable_message(self) -> None:
        tree = build_error_tree(BadStr())
        assert tree.message == "BadStr: <unprintable BadStr object>"

    def test_cycle_is_broken(self) -> None:
        first = ValueError("first")
        second = KeyError("second")
        first.__cause__ = second
        second.__cause__ = first
        tree = build_error_tree(first)
        assert [node.class_name for node in tree.chain()] == ["ValueError", "KeyError"]

    def test_long_chain_does_not_recurse(self) -> None:
        exc: BaseException = ValueError(0)
        for i in range(1, 3000):
            outer = ValueError(i)
            outer.__cause__ = exc
            exc = outer
        tree = build_error_tree(exc)
        assert sum(1 for _ in tree.chain()) == 3000
        assert tree.to_dict()["message"] == "ValueError: 2999"


class TestErrorTreeBuilder:
    def test_max_depth(self) -> None:
        builder = ErrorTreeBuilder(max_depth=2)
        tree = builder.build(three_level_error())
        assert [node.class_name for node in tree.chain()] == [
            "RuntimeError",
            f"{__name__}.ConfigError",
        ]

    def test_invalid_max_depth(self) -> None:
        with pytest.raises(ValueError, match="max_depth"):
            ErrorTreeBuilder(max_depth=0)

    def test_custom_parser(self) -> None:
        builder = ErrorTreeBuilder(parser=FrameParser([parse_plain_lines]))
        tree = builder.build(RemoteError("r", "frame one\nframe two"))
        assert [f.class_name for f in tree.frames] == ["frame one", "frame two"]


class TestErrorNode:
    def test_to_dict(self) -> None:
        node = ErrorNode(
            class_name="ValueError",
            message="ValueError: x",
            data={"k": 1},
            frames=(Frame(class_name="m", method_name="f()", file_name="m.py", line_number=3),),
            inner_error=ErrorNode(class_name="KeyError", message="KeyError: 'y'"),
        )
        assert node.to_dict() == {
            "class_name": "ValueError",
            "message": "ValueError: x",
            "data": {"k": 1},
            "stack_trace": [
                {"class_name": "m", "method_name": "f()", "file_name": "m.py", "line_number": 3}
            ],
            "inner_error": {
                "class_name": "KeyError",
                "message": "KeyError: 'y'",
                "data": {},
                "stack_trace": [
                    {
                        "class_name": None,
                        "method_name": None,
                        "file_name": "none",
                        "line_number": 0,
                    }
                ],
                "inner_error": None,
            },
        }

    def test_immutable(self) -> None:
        node = ErrorNode(class_name="E", message="E: x")
        with pytest.raises(AttributeError):
            node.message = "changed"  # type: ignore[misc]
