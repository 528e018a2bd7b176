#!/usr/bin/env python
"""
Example script that demonstrates how to use the w3r CLI.
This script runs a handful of commands against httpbin.org.
"""

import os
import subprocess
import sys
import textwrap

import click

CONFIG_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.toml")


def print_title(title):
    """Print a formatted title."""
    click.secho(f"\n{'=' * 60}\n {title}\n{'=' * 60}", fg="cyan")


def print_command(command):
    """Print a formatted command."""
    click.secho(f"\n$ {command}", fg="green")


def run_command(command):
    """Run a command and print its output."""
    print_command(command)
    print()

    process = subprocess.run(
        command, shell=True, text=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT
    )

    print(process.stdout)
    click.secho(f"(exit code {process.returncode})", dim=True)
    return process.returncode


def print_explanation(text):
    """Print a formatted explanation."""
    click.secho(textwrap.fill(text, width=60) + "\n", fg="yellow")


def main():
    """Main function."""
    w3r = f"{sys.executable} -m w3r"

    print_title("w3r CLI Examples")

    print_explanation("Example 1: Basic GET request to httpbin.org/get.")
    run_command(f"{w3r} -u https://httpbin.org/get")

    print_explanation(
        "Example 2: POST with a JSON body and custom headers, showing the "
        "request and response headers on stderr."
    )
    run_command(
        f"{w3r} -u https://httpbin.org/post -m POST "
        "-j '{\"name\": \"w3r\"}' "
        "--headers 'X-Demo: 1' -v"
    )

    print_explanation("Example 3: Form fields, pretty-printed and filtered to the echoed form.")
    run_command(
        f"{w3r} -u https://httpbin.org/post -m POST "
        "--form 'user=alice' --form 'note=hello world' "
        "--pretty-json --json-filter .form"
    )

    print_explanation("Example 4: Basic auth taken from the environment.")
    run_command(
        f"BASIC_USER=alice BASIC_PASS=secret {w3r} "
        "-u https://httpbin.org/basic-auth/alice/secret --json-filter .authenticated"
    )

    print_explanation(
        "Example 5: Retries with exponential backoff. httpbin answers 503, so "
        "w3r waits 0.5s then 1s and gives up with exit code 1."
    )
    run_command(f"{w3r} -u https://httpbin.org/status/503 --retry 2 --retry-delay 0.5 -v")

    print_explanation("Example 6: Timing and throughput of the final attempt.")
    run_command(f"{w3r} -u https://httpbin.org/bytes/4096 --timing -o /dev/null")

    print_explanation("Example 7: Show the request a preset would send, without sending it.")
    run_command(f"{w3r} -c {CONFIG_FILE} --preset create-item --dry-run")

    print_explanation("Example 8: Use a preset but override one value on the command line.")
    run_command(f"{w3r} -c {CONFIG_FILE} --preset httpbin -u https://httpbin.org/uuid")


if __name__ == "__main__":
    main()
