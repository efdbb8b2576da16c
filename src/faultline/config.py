"""Client settings and diagnostic logging setup.

:class:`ClientSettings` holds the knobs a :class:`~faultline.client.Client`
reads; :meth:`ClientSettings.from_env` loads them from ``FAULTLINE_*``
environment variables:

- ``FAULTLINE_THROW_ON_ERROR`` (``"1"``/``"true"`` re-raises transport errors
  from :meth:`~faultline.client.Client.send`)
- ``FAULTLINE_MAX_CHAIN_DEPTH`` (maximum nodes per error tree)
- ``FAULTLINE_WRAPPER_TYPES`` (comma-separated ``module:QualName`` paths)
- ``FAULTLINE_BACKGROUND_WORKERS`` (threads used by ``send_in_background``)
- ``FAULTLINE_VERSION`` (application version attached to every message)

:func:`configure_logging` routes faultline's own structlog events through the
stdlib root logger, rendered as JSON or for the console.
"""

from __future__ import annotations

import importlib
import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import orjson
import structlog
from structlog.contextvars import merge_contextvars

from faultline.exceptions import ConfigurationError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _orjson_serializer(obj: object, **_kw: object) -> str:
    """Serialize *obj* to a JSON string using orjson."""
    return orjson.dumps(obj, default=repr).decode()


def _to_logging_level(level_name: str) -> int:
    """Convert a level name to a :mod:`logging` level, defaulting to INFO."""
    upper_level = level_name.upper()
    if upper_level == "WARN":
        return logging.WARNING
    result: int = getattr(logging, upper_level, logging.INFO)
    return result


def _stream_isatty(stream: Any) -> bool:
    """Return ``True`` if *stream* is a TTY."""
    try:
        result: bool = stream.isatty()
        return result
    except (AttributeError, ValueError):
        return False


def import_type(path: str) -> type[BaseException]:
    """Resolve ``module:QualName`` (or ``module.QualName``) to an exception class."""
    if ":" in path:
        module_name, _, qualname = path.partition(":")
    else:
        module_name, _, qualname = path.rpartition(".")
    if not module_name or not qualname:
        msg = f"Invalid type path {path!r}"
        raise ConfigurationError(msg)
    try:
        obj: Any = importlib.import_module(module_name)
        for part in qualname.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as exc:
        msg = f"Cannot import {path!r}: {exc}"
        raise ConfigurationError(msg) from exc
    if not isinstance(obj, type) or not issubclass(obj, BaseException):
        msg = f"{path!r} is not an exception class"
        raise ConfigurationError(msg)
    return obj


def _int_setting(env: Mapping[str, str], name: str) -> int | None:
    """Read a positive integer variable; ``None`` when unset."""
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from exc
    if value < 1:
        msg = f"{name} must be at least 1, got {value}"
        raise ConfigurationError(msg)
    return value


@dataclass(frozen=True)
class ClientSettings:
    """Settings for a :class:`~faultline.client.Client`.

    Parameters
    ----------
    throw_on_error:
        Re-raise transport failures from synchronous sends.
    max_chain_depth:
        Maximum number of nodes per error tree; ``None`` for no limit.
    wrapper_types:
        Extra wrapper exception types, on top of the defaults.
    background_workers:
        Worker threads for background sends.
    version:
        Application version attached to messages.
    """

    throw_on_error: bool = False
    max_chain_depth: int | None = None
    wrapper_types: tuple[type[BaseException], ...] = ()
    background_workers: int = 1
    version: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientSettings:
        """Load settings from ``FAULTLINE_*`` variables in *environ*."""
        env = os.environ if environ is None else environ
        wrapper_paths = [
            p.strip() for p in env.get("FAULTLINE_WRAPPER_TYPES", "").split(",") if p.strip()
        ]
        return cls(
            throw_on_error=env.get("FAULTLINE_THROW_ON_ERROR", "").strip().lower() in _TRUE_VALUES,
            max_chain_depth=_int_setting(env, "FAULTLINE_MAX_CHAIN_DEPTH"),
            wrapper_types=tuple(import_type(p) for p in wrapper_paths),
            background_workers=_int_setting(env, "FAULTLINE_BACKGROUND_WORKERS") or 1,
            version=env.get("FAULTLINE_VERSION") or None,
        )


def configure_logging(
    *,
    level: str = "INFO",
    json_logs: bool = True,
    stream: Any = None,
) -> None:
    """Configure structlog and attach a rendering handler to the root logger.

    Parameters
    ----------
    level:
        Minimum log level (e.g. ``"DEBUG"``).
    json_logs:
        ``True`` for JSON lines, ``False`` for the console renderer.
    stream:
        Output stream.  Defaults to ``sys.stderr``.
    """
    if stream is None:
        stream = sys.stderr

    shared_processors: list[structlog.types.Processor] = [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(_to_logging_level(level)),
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(serializer=_orjson_serializer)
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=_stream_isatty(stream))
    )
    formatter_processors: list[structlog.types.Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ]
    if json_logs:
        formatter_processors.append(structlog.processors.format_exc_info)
    formatter_processors.append(renderer)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=formatter_processors,
            foreign_pre_chain=shared_processors,
        )
    )
    root = logging.getLogger()
    root.setLevel(_to_logging_level(level))
    root.addHandler(handler)
