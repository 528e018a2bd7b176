"""
Response processing for w3r.

Applies the display flags to the terminal response: JSON pretty-printing,
the ``.path[0].to.value`` filter, the timing report and output routing.
Only responses reach this stage; transport failures are reported by the CLI.
"""

import logging
from typing import Callable, Optional

import click
import orjson
from tabulate import tabulate

from .exceptions import FilterError, OutputError
from .models import AttemptSuccess, ResolvedRequest, TimingInfo
from .utils import (
    bytes_to_kb,
    deserialize_json,
    format_duration,
    select_json_path,
    serialize_json,
)

logger = logging.getLogger("w3r.processor")
trace = logging.getLogger("w3r.trace")

TIMING_HEADER = "--- Timing Information ---"


def format_body(content: bytes, pretty: bool = False, json_filter: Optional[str] = None) -> bytes:
    """
    Format a response body.

    Args:
        content: Raw body bytes
        pretty: Re-indent JSON with two spaces, keeping key order
        json_filter: Filter expression selecting a sub-value

    Returns:
        The formatted body. Without a filter, a body that is not JSON is
        returned unchanged; so is any body when ``pretty`` is off.

    Raises:
        FilterError: If the filter is malformed, the body is not JSON or the
            path does not resolve
    """
    if not pretty and json_filter is None:
        return content

    try:
        data = deserialize_json(content)
    except orjson.JSONDecodeError:
        if json_filter is not None:
            raise FilterError("Response body is not valid JSON", path=json_filter) from None
        return content

    if json_filter is not None:
        data = select_json_path(data, json_filter)
    return serialize_json(data, pretty=pretty).encode("utf-8")


def format_response_head(response: AttemptSuccess) -> str:
    """Render the status line and headers the way curl -v does."""
    lines = [f"< {response.http_version} {response.status_code} {response.reason_phrase}".rstrip()]
    for name, value in response.headers:
        lines.append(f"< {name}: {value}")
    return "\n".join(lines)


def format_timing_report(timing: TimingInfo, size: int) -> str:
    """
    Render timing and throughput of the final attempt.

    Throughput is body size over total time, left out when either is zero.
    """
    rows = [
        ["Response received", format_duration(timing.headers_elapsed)],
        ["Body read time", format_duration(timing.body_elapsed)],
        ["Total time", format_duration(timing.total_elapsed)],
        ["Response size", f"{size} bytes ({bytes_to_kb(size):.2f} KB)"],
    ]
    if size > 0 and timing.total_elapsed > 0:
        throughput = bytes_to_kb(size) / timing.total_elapsed
        rows.append(["Throughput", f"{throughput:.2f} KB/s"])
    return TIMING_HEADER + "\n" + tabulate(rows, tablefmt="plain")


class ResponseProcessor:
    """Render the terminal response according to the display flags."""

    def __init__(self, request: ResolvedRequest, echo: Callable = click.echo):
        self.request = request
        self.echo = echo

    def render(self, response: AttemptSuccess) -> Optional[FilterError]:
        """
        Render a response.

        Verbose and timing output go to stderr; the body goes to the output
        file or stdout. In silent mode nothing but errors reaches the terminal.

        Returns:
            The filter error, if the filter could not be applied. The body is
            omitted in that case.

        Raises:
            OutputError: If the output file cannot be written
        """
        request = self.request

        trace.info(format_response_head(response) + "\n")

        if request.timing and not request.silent:
            self.echo(format_timing_report(response.timing, response.size) + "\n", err=True)

        try:
            body = format_body(response.content, request.pretty_json, request.json_filter)
        except FilterError as e:
            self.echo(f"Filter error: {e.message}", err=True)
            return e

        if request.output is not None:
            self._write_output(body)
        elif not request.silent and body:
            self.echo(body)
        return None

    def _write_output(self, body: bytes):
        path = self.request.output
        try:
            path.write_bytes(body)
        except OSError as e:
            raise OutputError(f"Cannot write response to '{path}': {e.strerror or e}") from e
        logger.debug(f"Wrote {len(body)} bytes to {path}")
