"""
Utility functions for w3r.
"""

import re
from typing import Any, List, Union

import orjson

from .exceptions import FilterError

RETRY_BACKOFF_MULTIPLIER = 2.0
RETRYABLE_STATUS_CODES = frozenset({408, 429})
SERVER_ERROR_START = 500

BYTES_PER_KB = 1024.0

_SEGMENT_RE = re.compile(r"([^.\[\]]*)((?:\[\d+\])*)")
_INDEX_RE = re.compile(r"\[(\d+)\]")

PathStep = Union[str, int]


def serialize_json(obj: Any, pretty: bool = False) -> str:
    """
    Serialize an object to a JSON string using orjson for better performance.

    Key order is preserved. ``pretty`` indents with two spaces.
    """
    option = orjson.OPT_INDENT_2 if pretty else 0
    return orjson.dumps(obj, option=option).decode("utf-8")


def deserialize_json(json_str: Union[str, bytes]) -> Any:
    """
    Deserialize a JSON document using orjson for better performance.

    Raises:
        orjson.JSONDecodeError: If the input is not valid JSON
    """
    return orjson.loads(json_str)


def parse_json_path(path: str) -> List[PathStep]:
    """
    Parse a filter expression such as ``.data.items[0].id``.

    The expression is a leading ``.`` optionally followed by dot-separated
    object keys, each optionally suffixed with ``[index]`` accessors. A bare
    ``.`` selects the whole document.

    Args:
        path: Filter expression

    Returns:
        Steps to follow: ``str`` for object keys, ``int`` for array indices

    Raises:
        FilterError: If the expression is malformed
    """
    expr = path.strip()
    if not expr.startswith("."):
        raise FilterError(f"Invalid filter {path!r}: must start with '.'", path=path)
    if expr == ".":
        return []

    steps: List[PathStep] = []
    for segment in expr[1:].split("."):
        match = _SEGMENT_RE.fullmatch(segment)
        if match is None or not (match.group(1) or match.group(2)):
            raise FilterError(f"Invalid filter {path!r}: bad segment {segment!r}", path=path)
        key, indices = match.groups()
        if key:
            steps.append(key)
        steps.extend(int(index) for index in _INDEX_RE.findall(indices))
    return steps


def select_json_path(data: Any, path: str) -> Any:
    """
    Select the value at a filter expression.

    Args:
        data: Parsed JSON document
        path: Filter expression, see ``parse_json_path``

    Returns:
        The matched sub-value

    Raises:
        FilterError: If the path is malformed or does not resolve
    """
    current = data
    location = ""
    for step in parse_json_path(path):
        here = location or "."
        if isinstance(step, int):
            if not isinstance(current, list):
                raise FilterError(
                    f"Cannot index {json_type_name(current)} with [{step}] at '{here}'", path=path
                )
            if step >= len(current):
                raise FilterError(
                    f"Index [{step}] out of range at '{here}' (length {len(current)})", path=path
                )
            current = current[step]
            location += f"[{step}]"
        else:
            if not isinstance(current, dict):
                raise FilterError(
                    f"Cannot read key '{step}' of {json_type_name(current)} at '{here}'",
                    path=path,
                )
            if step not in current:
                raise FilterError(f"Key '{step}' not found at '{here}'", path=path)
            current = current[step]
            location += f".{step}"
    return current


def json_type_name(value: Any) -> str:
    """Name of a parsed JSON value's type, for error messages."""
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, str):
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if value is None:
        return "null"
    return "number"


def is_retryable_status(status_code: int) -> bool:
    """
    Check whether an HTTP status is worth retrying.

    Request Timeout (408), Too Many Requests (429) and every 5xx are transient.
    """
    return status_code in RETRYABLE_STATUS_CODES or status_code >= SERVER_ERROR_START


def calculate_backoff(retry_number: int, base_delay: float) -> float:
    """
    Calculate the exponential backoff delay before a retry.

    Args:
        retry_number: Retry attempt number (1-based)
        base_delay: Delay before the first retry in seconds

    Returns:
        Delay in seconds: ``base_delay * 2 ** (retry_number - 1)``
    """
    return base_delay * (RETRY_BACKOFF_MULTIPLIER ** (retry_number - 1))


def format_duration(seconds: float) -> str:
    """Format a duration for display, choosing ms below one second."""
    if seconds < 1.0:
        return f"{seconds * 1000:.2f}ms"
    return f"{seconds:.3f}s"


def bytes_to_kb(size: int) -> float:
    """Convert a byte count to KB."""
    return size / BYTES_PER_KB
