"""
w3r Package

This package provides a command-line HTTP request tool built on top of httpx.
One invocation sends one request, with optional retries, and renders the
response.

Features:
- Settings merged from CLI flags, a TOML preset and environment variables
- Automatic retries with exponential backoff
- JSON pretty-printing and a small path filter (``.data.items[0].id``)
- Timing and throughput report
- Dry-run mode showing the exact outgoing request
- Type validation with Pydantic
- Fast JSON serialization with orjson
"""

__version__ = "0.1.0"

# Pipeline
from .builder import RequestDescriptorBuilder, build_descriptor, format_descriptor
from .config import capture_environment, find_preset, load_presets, resolve, select_preset

# Exceptions
from .exceptions import (
    ConfigError,
    ConflictingBodyError,
    FilterError,
    InvalidPresetError,
    InvalidValueError,
    MissingUrlError,
    OutputError,
    RetryExhaustedError,
    W3rError,
)

# Models
from .models import (
    AttemptOutcome,
    AttemptSuccess,
    CliInputs,
    FailureKind,
    HttpMethod,
    Preset,
    RequestDescriptor,
    ResolvedRequest,
    TimingInfo,
    TransportFailure,
)
from .processor import ResponseProcessor, format_body
from .retry import RetryController, RetryResult, RetryState
from .transport import BaseTransport, HttpxTransport

# Utils
from .utils import deserialize_json, select_json_path, serialize_json

__all__ = [
    # Pipeline
    "resolve",
    "capture_environment",
    "load_presets",
    "select_preset",
    "find_preset",
    "build_descriptor",
    "format_descriptor",
    "RequestDescriptorBuilder",
    "RetryController",
    "RetryResult",
    "RetryState",
    "ResponseProcessor",
    "format_body",
    "BaseTransport",
    "HttpxTransport",
    # Models
    "HttpMethod",
    "CliInputs",
    "Preset",
    "ResolvedRequest",
    "RequestDescriptor",
    "AttemptOutcome",
    "AttemptSuccess",
    "TransportFailure",
    "FailureKind",
    "TimingInfo",
    # Exceptions
    "W3rError",
    "ConfigError",
    "MissingUrlError",
    "ConflictingBodyError",
    "InvalidPresetError",
    "InvalidValueError",
    "FilterError",
    "OutputError",
    "RetryExhaustedError",
    # Utils
    "serialize_json",
    "deserialize_json",
    "select_json_path",
]
