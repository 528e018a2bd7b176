"""
Command-line interface for w3r.

This module provides a CLI for making one HTTP request from the terminal,
similar to tools like curl or httpie, with retries, presets and JSON
post-processing.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import click

from . import __version__
from .builder import build_descriptor, format_descriptor
from .config import capture_environment, find_preset, resolve
from .exceptions import RetryExhaustedError, W3rError
from .models import CliInputs, HttpMethod, ResolvedRequest, TransportFailure
from .processor import ResponseProcessor
from .retry import RetryController
from .transport import BaseTransport, HttpxTransport

EXIT_OK = 0

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("w3r.cli")
trace = logging.getLogger("w3r.trace")


class ClickEchoHandler(logging.Handler):
    """Logging handler writing bare messages to stderr through click."""

    def emit(self, record):
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def configure_logging(debug: bool = False):
    """Configure diagnostic logging; ``--debug`` turns on the w3r loggers."""
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
    logging.getLogger("w3r").setLevel(logging.DEBUG if debug else logging.WARNING)


def configure_trace(enabled: bool):
    """Route verbose traces to stderr, or mute them."""
    trace.propagate = False
    if not any(isinstance(h, ClickEchoHandler) for h in trace.handlers):
        handler = ClickEchoHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        trace.addHandler(handler)
    trace.setLevel(logging.INFO if enabled else logging.WARNING)


def cli_inputs(options: Dict[str, Any]) -> CliInputs:
    """
    Collect the values actually given on the command line.

    Unset flags and empty repeated options count as absent so that a preset
    or the environment can supply them.
    """
    given = {}
    for name, value in options.items():
        if value is None or value is False or value == ():
            continue
        given[name] = value
    return CliInputs(**given)


def execute(
    resolved: ResolvedRequest,
    transport: Optional[BaseTransport] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> int:
    """
    Run the request pipeline for a resolved request.

    Args:
        resolved: The resolved request
        transport: Transport to send attempts with; httpx by default
        sleep: Blocking sleep used between attempts; ``time.sleep`` by default

    Returns:
        Exit code of a successful exchange

    Raises:
        RetryExhaustedError: If the last attempt still failed
        OutputError: If the output file cannot be written
    """
    descriptor = build_descriptor(resolved)

    if resolved.dry_run:
        if not resolved.silent:
            click.echo(format_descriptor(descriptor, include_body=True))
        return EXIT_OK

    trace.info(format_descriptor(descriptor) + "\n")

    with transport or HttpxTransport() as active_transport:
        controller = RetryController(
            active_transport,
            retry=resolved.retry,
            retry_delay=resolved.retry_delay,
            sleep=sleep or time.sleep,
        )
        result = controller.run(descriptor)

    outcome = result.outcome
    if isinstance(outcome, TransportFailure):
        raise RetryExhaustedError(
            f"Request failed after {result.attempts} attempt(s): "
            f"{outcome.kind.value.replace('_', ' ')}: {outcome.message}",
            attempts=result.attempts,
            outcome=outcome,
        )

    ResponseProcessor(resolved).render(outcome)

    if result.failed:
        raise RetryExhaustedError(
            f"HTTP {outcome.status_code} after {result.attempts} attempt(s), giving up",
            attempts=result.attempts,
            outcome=outcome,
        )
    return EXIT_OK


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-u", "--url", help="URL to request")
@click.option(
    "-m",
    "--method",
    type=click.Choice([m.value for m in HttpMethod], case_sensitive=False),
    help="HTTP method (default: GET)",
)
@click.option("-j", "--json", "json_text", help="JSON request body (sent as-is)")
@click.option("-f", "--form-data", help="Pre-encoded form body, e.g. 'a=1&b=2'")
@click.option("--form", multiple=True, help="Form field in the format 'key=value' (repeatable)")
@click.option("--headers", multiple=True, help="Header in the format 'Name: Value' (repeatable)")
@click.option("--cookies", multiple=True, help="Raw cookie, e.g. 'session=abc' (repeatable)")
@click.option("--basic-user", help="Basic auth user [env: BASIC_USER]")
@click.option("--basic-pass", help="Basic auth password [env: BASIC_PASS]")
@click.option("--proxy-host", help="Proxy host [env: PROXY_HOST]")
@click.option("--proxy-port", help="Proxy port [env: PROXY_PORT]")
@click.option("--proxy-user", help="Proxy user [env: PROXY_USER]")
@click.option("--proxy-pass", help="Proxy password [env: PROXY_PASS]")
@click.option(
    "-t", "--timeout", type=click.IntRange(min=1), help="Timeout per attempt in seconds (default: 30)"
)
@click.option("--retry", type=click.IntRange(min=0), help="Number of retries (default: 0)")
@click.option(
    "--retry-delay",
    type=click.FloatRange(min=0, min_open=True),
    help="Delay before the first retry in seconds, doubled each retry (default: 1.0)",
)
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write the body to a file")
@click.option("-v", "--verbose", is_flag=True, help="Show request and response headers")
@click.option("-s", "--silent", is_flag=True, help="Suppress all output except errors")
@click.option("--dry-run", is_flag=True, help="Show the request without sending it")
@click.option("--timing", is_flag=True, help="Show timing and throughput of the final attempt")
@click.option("--pretty-json", is_flag=True, help="Pretty-print JSON responses")
@click.option("--json-filter", help="Select a value from a JSON response, e.g. '.data[0].id'")
@click.option(
    "-c", "--config", "config_file", type=click.Path(dir_okay=False), help="Path to a TOML preset file"
)
@click.option("--preset", help="Preset name in the config file (default: the first one)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="w3r")
@click.pass_context
def cli(ctx, config_file, preset, debug, **options):
    """w3r - send one HTTP request, with retries and JSON post-processing."""
    configure_logging(debug)

    try:
        env = capture_environment()
        resolved = resolve(cli_inputs(options), env, find_preset(config_file, preset))
        configure_trace(resolved.verbose and not resolved.silent)
        exit_code = execute(resolved)
    except W3rError as e:
        click.echo(f"Error: {e.message}", err=True)
        ctx.exit(e.exit_code)
    else:
        ctx.exit(exit_code)


def main():
    """Main CLI entry point."""
    cli(prog_name="w3r")


if __name__ == "__main__":
    main()
