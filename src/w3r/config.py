"""
Configuration resolution for w3r.

Request settings come from three sources that are merged field by field,
highest precedence first:

1. the command line
2. a preset table from a TOML config file
3. environment variables (credentials and proxy only)

Anything still unset falls back to the defaults in ``w3r.models``. The
result is one immutable ``ResolvedRequest``.
"""

import logging
import os
import tomllib
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from .exceptions import (
    ConflictingBodyError,
    InvalidPresetError,
    InvalidValueError,
    MissingUrlError,
)
from .models import (
    DEFAULT_METHOD,
    Header,
    Preset,
    RequestFields,
    ResolvedRequest,
)

# Default configuration file path
DEFAULT_CONFIG_DIR = os.path.expanduser("~/.config/w3r")
DEFAULT_CONFIG_FILE = os.path.join(DEFAULT_CONFIG_DIR, "config.toml")

# Environment variable -> request field
ENVIRONMENT_FIELDS = {
    "BASIC_USER": "basic_user",
    "BASIC_PASS": "basic_pass",
    "PROXY_HOST": "proxy_host",
    "PROXY_PORT": "proxy_port",
    "PROXY_USER": "proxy_user",
    "PROXY_PASS": "proxy_pass",
}

# Request field -> option name used in messages
BODY_FIELDS = {
    "json_text": "json",
    "form_data": "form_data",
    "form": "form",
}

logger = logging.getLogger("w3r.config")


def capture_environment(environ: Optional[Mapping[str, str]] = None) -> Mapping[str, str]:
    """
    Take a read-only snapshot of the environment variables w3r reads.

    Args:
        environ: Source mapping. If None, ``os.environ`` is used.

    Returns:
        Immutable mapping holding only the known, non-empty variables
    """
    source = os.environ if environ is None else environ
    return MappingProxyType(
        {name: source[name] for name in ENVIRONMENT_FIELDS if source.get(name)}
    )


def environment_fields(env: Mapping[str, str]) -> RequestFields:
    """Map captured environment variables onto request fields."""
    return RequestFields(
        **{field: env[name] for name, field in ENVIRONMENT_FIELDS.items() if env.get(name)}
    )


def load_presets(config_file: str) -> Dict[str, Dict[str, Any]]:
    """
    Load the ``[preset.<name>]`` tables of a TOML config file.

    Args:
        config_file: Path to the config file

    Returns:
        Raw preset tables keyed by name, in document order

    Raises:
        InvalidPresetError: If the file cannot be read or parsed, or holds no presets
    """
    path = Path(config_file).expanduser()
    try:
        with open(path, "rb") as f:
            document = tomllib.load(f)
    except OSError as e:
        raise InvalidPresetError(
            f"Cannot read config file '{path}': {e.strerror or e}", path=str(path)
        ) from e
    except tomllib.TOMLDecodeError as e:
        raise InvalidPresetError(
            f"Failed to parse config file '{path}': {e}", path=str(path)
        ) from e

    tables = document.get("preset")
    if not isinstance(tables, dict) or not tables:
        raise InvalidPresetError(f"No presets found in config file '{path}'", path=str(path))

    logger.debug(f"Loaded {len(tables)} preset(s) from {path}")
    return tables


def select_preset(presets: Mapping[str, Any], preset_name: Optional[str] = None) -> Preset:
    """
    Pick and validate one preset.

    Args:
        presets: Raw preset tables as returned by ``load_presets``
        preset_name: Name to pick. If None, the first preset is used.

    Returns:
        The validated preset

    Raises:
        InvalidPresetError: If the preset is missing or malformed
    """
    if preset_name is None:
        if not presets:
            raise InvalidPresetError("No presets found in config file")
        preset_name = next(iter(presets))
    elif preset_name not in presets:
        raise InvalidPresetError(f"Preset '{preset_name}' not found in config file")

    table = presets[preset_name]
    if not isinstance(table, dict):
        raise InvalidPresetError(f"Preset '{preset_name}' must be a table")

    try:
        preset = Preset.model_validate(table)
    except ValidationError as e:
        message, _ = _describe_validation_error(e)
        raise InvalidPresetError(f"Invalid preset '{preset_name}': {message}") from None

    logger.debug(f"Using preset '{preset_name}'")
    return preset


def find_preset(
    config_file: Optional[str] = None, preset_name: Optional[str] = None
) -> Optional[Preset]:
    """
    Load the preset requested on the command line, if any.

    A preset name without a config file looks in ``DEFAULT_CONFIG_FILE``.
    Neither given means no preset.
    """
    if config_file is None:
        if preset_name is None:
            return None
        config_file = DEFAULT_CONFIG_FILE
    return select_preset(load_presets(config_file), preset_name)


def parse_header(header: str) -> Header:
    """Parse a header string in the format 'Name: Value'."""
    name, sep, value = header.partition(":")
    name = name.strip()
    if not sep or not name:
        raise InvalidValueError(
            f"Invalid header {header!r}. Expected format: 'Name: Value'", field="headers"
        )
    _check_header_text(header, "header", "headers")
    return name, value.strip()


def parse_cookie(cookie: str) -> str:
    """Check a raw cookie value for use in the Cookie header."""
    _check_header_text(cookie, "cookie", "cookies")
    return cookie


def _check_header_text(text: str, kind: str, field: str):
    # Header values go on the wire as ASCII
    if not text.isascii() or any(c in text for c in "\r\n\0"):
        raise InvalidValueError(
            f"Invalid {kind} {text!r}: only printable ASCII characters are allowed", field=field
        )


def parse_form_field(item: str) -> Header:
    """Parse a form field in the format 'key=value'."""
    key, sep, value = item.partition("=")
    if not sep:
        raise InvalidValueError(
            f"Invalid form field {item!r}. Expected format: key=value", field="form"
        )
    return key, value


def merge_fields(sources: Sequence[RequestFields]) -> Dict[str, Any]:
    """
    Merge request fields, earlier sources winning.

    Each field is taken from the first source that supplies it, so
    overriding one field never touches the others.
    """
    merged = {}
    for name in RequestFields.model_fields:
        for source in sources:
            value = getattr(source, name)
            if value is not None:
                merged[name] = value
                break
    return merged


def resolve(
    cli: RequestFields,
    env: Mapping[str, str],
    preset: Optional[Preset] = None,
) -> ResolvedRequest:
    """
    Resolve the final request configuration.

    Args:
        cli: Values given on the command line
        env: Environment snapshot from ``capture_environment``
        preset: Preset selected from the config file, if any

    Returns:
        The resolved request

    Raises:
        MissingUrlError: If no source supplies a URL
        ConflictingBodyError: If one source gives more than one body kind
        InvalidValueError: If a value is malformed
    """
    sources = [cli]
    if preset is not None:
        sources.append(preset.as_fields())
    sources.append(environment_fields(env))
    merged = merge_fields(sources)

    url = merged.get("url")
    if url is None or not url.strip():
        raise MissingUrlError()

    values = {
        "url": url.strip(),
        "method": merged.get("method", DEFAULT_METHOD),
        "headers": tuple(parse_header(h) for h in merged.get("headers", ())),
        "cookies": tuple(parse_cookie(c) for c in merged.get("cookies", ())),
        "body": _resolve_body(sources),
        "basic_auth": _resolve_basic_auth(merged),
        "proxy": _resolve_proxy(merged),
    }
    for name in ("timeout", "retry", "retry_delay", "json_filter", "output"):
        if name in merged:
            values[name] = merged[name]
    for name in ("verbose", "silent", "dry_run", "timing", "pretty_json"):
        values[name] = merged.get(name, False)

    try:
        resolved = ResolvedRequest(**values)
    except ValidationError as e:
        message, field = _describe_validation_error(e)
        raise InvalidValueError(message, field=field) from None

    logger.debug(
        f"Resolved {resolved.method.value} {resolved.url} "
        f"(timeout={resolved.timeout}s, retry={resolved.retry}, "
        f"retry_delay={resolved.retry_delay}s)"
    )
    return resolved


def _resolve_body(sources: Sequence[RequestFields]) -> Optional[Dict[str, Any]]:
    given = []
    for source in sources:
        populated = [
            option for field, option in BODY_FIELDS.items() if getattr(source, field) is not None
        ]
        if len(populated) > 1:
            raise ConflictingBodyError(populated)
        if populated:
            given.append(source)
    if not given:
        return None

    # The body is one setting; the highest source giving any body kind wins.
    source = given[0]
    if source.json_text is not None:
        return {"kind": "json", "text": source.json_text}
    if source.form_data is not None:
        return {"kind": "form_encoded", "text": source.form_data}
    return {
        "kind": "form_fields",
        "fields": tuple(parse_form_field(item) for item in source.form),
    }


def _resolve_basic_auth(merged: Dict[str, Any]) -> Optional[Dict[str, str]]:
    user = merged.get("basic_user")
    if user is None:
        if "basic_pass" in merged:
            logger.debug("Basic auth password given without a user, ignoring it")
        return None
    return {"user": user, "pass": merged.get("basic_pass", "")}


def _resolve_proxy(merged: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    host = merged.get("proxy_host")
    if host is None:
        return None

    port = merged.get("proxy_port")
    if port is None:
        raise InvalidValueError(
            f"Proxy host {host!r} given without a proxy port", field="proxy_port"
        )

    proxy = {"host": host, "port": port}
    if "proxy_user" in merged:
        proxy["user"] = merged["proxy_user"]
        proxy["pass"] = merged.get("proxy_pass", "")
    return proxy


def _describe_validation_error(error: ValidationError) -> Tuple[str, Optional[str]]:
    details = error.errors()[0]
    field = ".".join(str(part) for part in details["loc"]) or None
    if field:
        return f"Invalid value for '{field}': {details['msg']}", field
    return details["msg"], None
