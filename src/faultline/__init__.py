"""faultline: structured exception trees for error reporting."""

from faultline.client import Client
from faultline.config import ClientSettings, configure_logging
from faultline.exceptions import (
    ConfigurationError,
    FaultlineError,
    ForeignError,
    InvocationError,
    NativeError,
    TransportError,
    UnhandledRequestError,
)
from faultline.frames import SENTINEL_FRAME, Frame
from faultline.messages import ErrorMessage
from faultline.parsing import FrameParser, parse_frames
from faultline.processors import ErrorTreeProcessor, ReportingProcessor
from faultline.reflection import CallFrame, extract_frames, frames_from_traceback
from faultline.signatures import MethodDescriptor
from faultline.transports import LogTransport
from faultline.tree import ErrorNode, ErrorTreeBuilder, build_error_tree
from faultline.unwrap import DEFAULT_WRAPPER_TYPES, WrapperTypeSet, unwrap

__version__ = "0.1.0"

__all__ = [
    "CallFrame",
    "Client",
    "ClientSettings",
    "ConfigurationError",
    "DEFAULT_WRAPPER_TYPES",
    "ErrorMessage",
    "ErrorNode",
    "ErrorTreeBuilder",
    "ErrorTreeProcessor",
    "FaultlineError",
    "ForeignError",
    "Frame",
    "FrameParser",
    "InvocationError",
    "LogTransport",
    "MethodDescriptor",
    "NativeError",
    "ReportingProcessor",
    "SENTINEL_FRAME",
    "TransportError",
    "UnhandledRequestError",
    "WrapperTypeSet",
    "build_error_tree",
    "configure_logging",
    "extract_frames",
    "frames_from_traceback",
    "parse_frames",
    "unwrap",
]
