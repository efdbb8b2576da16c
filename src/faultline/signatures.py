"""Method signature descriptors and rendering.

A :class:`MethodDescriptor` carries just enough about a callable to render
the ``method_name`` of a frame: its name, the names of its generic type
parameters, and ``(type, name)`` pairs for its parameters.  Descriptors come
either from live introspection of a Python frame (:func:`describe_frame`) or
are built ahead of time by whoever captured the call frames.

Rendering::

    >>> render_method_name(MethodDescriptor("load", ("T",), (("str", "path"),)))
    'load[T](str path)'
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from types import CodeType, FrameType
from typing import Any

UNKNOWN_TYPE = "<UnknownType>"

_TYPE_SUFFIX_RE = re.compile(r"^(?P<base>[^<\[]*)(?P<suffix>.*)$", re.DOTALL)


@dataclass(frozen=True)
class MethodDescriptor:
    """Name, generic parameter names and ``(type, name)`` parameter pairs.

    A parameter type of ``None`` means it could not be resolved and renders
    as :data:`UNKNOWN_TYPE`.
    """

    name: str
    generic_parameters: tuple[str, ...] = ()
    parameters: tuple[tuple[str | None, str], ...] = ()


def render_method_name(method: MethodDescriptor) -> str:
    """Render ``name[G1,G2](Type1 name1, Type2 name2)``."""
    rendered = method.name
    if method.generic_parameters:
        rendered += "[" + ",".join(method.generic_parameters) + "]"
    params = ", ".join(
        f"{param_type if param_type is not None else UNKNOWN_TYPE} {param_name}"
        for param_type, param_name in method.parameters
    )
    return f"{rendered}({params})"


def simple_type_name(name: str) -> str:
    """Strip the namespace: ``System.Collections.List`1<T>`` -> ``List`1<T>``."""
    match = _TYPE_SUFFIX_RE.match(name)
    if match is None:
        return name
    return match["base"].rsplit(".", 1)[-1] + match["suffix"]


def type_name(annotation: Any) -> str | None:
    """Return the simple display name of a type or annotation."""
    if annotation is inspect.Parameter.empty or annotation is None:
        return None
    if isinstance(annotation, str):
        return simple_type_name(annotation.strip()) or None
    if isinstance(annotation, type):
        return annotation.__name__
    return str(annotation).replace("typing.", "")


def _parameter_names(code: CodeType) -> tuple[str, ...]:
    """Positional, keyword-only and star parameter names of *code*."""
    count = code.co_argcount + code.co_kwonlyargcount
    if code.co_flags & inspect.CO_VARARGS:
        count += 1
    if code.co_flags & inspect.CO_VARKEYWORDS:
        count += 1
    return code.co_varnames[:count]


def _matches(candidate: Any, code: CodeType) -> bool:
    """Return ``True`` if *candidate* is the function compiled from *code*."""
    func = getattr(candidate, "__func__", candidate)
    return getattr(func, "__code__", None) is code


def resolve_function(frame: FrameType) -> Any:
    """Find the function object whose code is executing in *frame*.

    Looks the qualified name up from the frame's globals, then falls back to
    the class of a ``self``/``cls`` argument.  Returns ``None`` for nested
    functions and anything else that cannot be reached by name.
    """
    code = frame.f_code
    qualname = getattr(code, "co_qualname", code.co_name)

    obj: Any = frame.f_globals
    for part in qualname.split("."):
        if part == "<locals>":
            obj = None
            break
        if isinstance(obj, dict):
            obj = obj.get(part)
        else:
            try:
                obj = inspect.getattr_static(obj, part)
            except AttributeError:
                obj = None
        if obj is None:
            break
    if obj is not None and _matches(obj, code):
        return getattr(obj, "__func__", obj)

    for owner_arg in ("self", "cls"):
        if owner_arg not in frame.f_locals:
            continue
        owner = frame.f_locals[owner_arg]
        owner_type = owner if isinstance(owner, type) else type(owner)
        try:
            candidate = inspect.getattr_static(owner_type, code.co_name)
        except AttributeError:
            continue
        if _matches(candidate, code):
            return getattr(candidate, "__func__", candidate)
    return None


def describe_frame(frame: FrameType) -> MethodDescriptor | None:
    """Build a :class:`MethodDescriptor` for the code running in *frame*.

    Parameter types come from the function's annotations, then from the
    runtime type of the value bound to the parameter, and are left unresolved
    otherwise.  Returns ``None`` when the frame has no usable code name.
    """
    code = frame.f_code
    if not code.co_name:
        return None

    try:
        func = resolve_function(frame)
    except Exception:
        func = None
    annotations: dict[str, Any] = getattr(func, "__annotations__", None) or {}
    type_params = getattr(func, "__type_params__", ()) or ()

    parameters: list[tuple[str | None, str]] = []
    frame_locals = frame.f_locals
    for name in _parameter_names(code):
        param_type = type_name(annotations.get(name, inspect.Parameter.empty))
        if param_type is None and name in frame_locals:
            param_type = type(frame_locals[name]).__name__
        parameters.append((param_type, name))

    return MethodDescriptor(
        name=code.co_name,
        generic_parameters=tuple(getattr(tp, "__name__", str(tp)) for tp in type_params),
        parameters=tuple(parameters),
    )
