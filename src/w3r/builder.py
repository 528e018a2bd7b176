"""
Request builder for w3r.

Turns a ``ResolvedRequest`` into a ``RequestDescriptor``: the exact method,
URL, headers and body bytes that will go on the wire, plus proxy and timeout.

Credentials are not redacted. Dry-run and verbose output print the headers
set here exactly as they are sent, ``Authorization`` included. Headers httpx
derives itself (``Host``, ``Accept``, ``Accept-Encoding``, ``Connection``,
``Content-Length``) are added on send and do not appear in that output.
"""

import base64
from typing import List, Optional
from urllib.parse import quote, urlencode

from . import __version__
from .models import (
    DEFAULT_TIMEOUT,
    BasicAuth,
    FormEncodedBody,
    FormFieldsBody,
    Header,
    HttpMethod,
    JsonBody,
    ProxySettings,
    RequestDescriptor,
    ResolvedRequest,
)

USER_AGENT = f"w3r/{__version__}"

CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
CONTENT_TYPE_JSON = "application/json; charset=utf-8"


class RequestDescriptorBuilder:
    """Builder class for RequestDescriptor with fluent API."""

    def __init__(self):
        """Initialize the builder with default values."""
        self._method = HttpMethod.GET
        self._url = ""
        self._headers: List[Header] = []
        self._content: Optional[bytes] = None
        self._content_type: Optional[str] = None
        self._basic_auth: Optional[BasicAuth] = None
        self._proxy_url: Optional[str] = None
        self._timeout = float(DEFAULT_TIMEOUT)

    def with_method(self, method: HttpMethod) -> "RequestDescriptorBuilder":
        """Set the HTTP method."""
        self._method = HttpMethod(method)
        return self

    def with_url(self, url: str) -> "RequestDescriptorBuilder":
        """Set the target URL."""
        self._url = url
        return self

    def add_header(self, name: str, value: str) -> "RequestDescriptorBuilder":
        """Append a header; repeated names are kept."""
        self._headers.append((name, value))
        return self

    def with_headers(self, headers) -> "RequestDescriptorBuilder":
        """Append headers in order."""
        for name, value in headers:
            self.add_header(name, value)
        return self

    def with_cookies(self, cookies) -> "RequestDescriptorBuilder":
        """Send raw cookie values as one Cookie header."""
        if cookies:
            self.add_header("Cookie", "; ".join(cookies))
        return self

    def with_body(self, body) -> "RequestDescriptorBuilder":
        """Set the request body and its implied content type."""
        if body is None:
            self._content = None
            self._content_type = None
        elif isinstance(body, JsonBody):
            self._content = body.text.encode("utf-8")
            self._content_type = CONTENT_TYPE_JSON
        elif isinstance(body, FormEncodedBody):
            self._content = body.text.encode("utf-8")
            self._content_type = CONTENT_TYPE_FORM
        elif isinstance(body, FormFieldsBody):
            self._content = encode_form_fields(body.fields).encode("utf-8")
            self._content_type = CONTENT_TYPE_FORM
        else:
            raise TypeError(f"Unsupported body type: {type(body).__name__}")
        return self

    def with_basic_auth(self, auth: Optional[BasicAuth]) -> "RequestDescriptorBuilder":
        """Add basic auth unless an Authorization header is given explicitly."""
        self._basic_auth = auth
        return self

    def with_proxy(self, proxy: Optional[ProxySettings]) -> "RequestDescriptorBuilder":
        """Route the request through a proxy."""
        self._proxy_url = format_proxy_url(proxy) if proxy is not None else None
        return self

    def with_timeout(self, timeout: float) -> "RequestDescriptorBuilder":
        """Set the per-attempt timeout in seconds."""
        self._timeout = float(timeout)
        return self

    def _has_header(self, name: str) -> bool:
        lowered = name.lower()
        return any(key.lower() == lowered for key, _ in self._headers)

    def build(self) -> RequestDescriptor:
        """Build the descriptor, filling in headers the caller did not give."""
        headers = list(self._headers)
        if not self._has_header("User-Agent"):
            headers.insert(0, ("User-Agent", USER_AGENT))
        if self._content_type is not None and not self._has_header("Content-Type"):
            headers.append(("Content-Type", self._content_type))
        if self._basic_auth is not None and not self._has_header("Authorization"):
            headers.append(("Authorization", basic_auth_header(self._basic_auth)))

        return RequestDescriptor(
            method=self._method,
            url=self._url,
            headers=tuple(headers),
            content=self._content,
            proxy_url=self._proxy_url,
            timeout=self._timeout,
        )


def build_descriptor(resolved: ResolvedRequest) -> RequestDescriptor:
    """
    Build the request descriptor for a resolved request.

    JSON bodies are sent as given and never validated; a syntax error
    surfaces from the server, not from here.
    """
    return (
        RequestDescriptorBuilder()
        .with_method(resolved.method)
        .with_url(resolved.url)
        .with_headers(resolved.headers)
        .with_cookies(resolved.cookies)
        .with_body(resolved.body)
        .with_basic_auth(resolved.basic_auth)
        .with_proxy(resolved.proxy)
        .with_timeout(resolved.timeout)
        .build()
    )


def encode_form_fields(fields) -> str:
    """Percent-encode form fields, joining them with '&' and '='."""
    return urlencode(list(fields))


def basic_auth_header(auth: BasicAuth) -> str:
    """Value of the Authorization header for basic auth."""
    credentials = f"{auth.user}:{auth.password}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


def format_proxy_url(proxy: ProxySettings) -> str:
    """Proxy URL with percent-encoded credentials, if any."""
    host = f"[{proxy.host}]" if ":" in proxy.host else proxy.host
    userinfo = ""
    if proxy.user is not None:
        userinfo = f"{quote(proxy.user, safe='')}:{quote(proxy.password or '', safe='')}@"
    return f"http://{userinfo}{host}:{proxy.port}"


def format_descriptor(descriptor: RequestDescriptor, include_body: bool = False) -> str:
    """
    Render a descriptor the way curl -v shows a request.

    Args:
        descriptor: Request to show
        include_body: Whether to append the request body

    Returns:
        Multi-line text, without a trailing newline
    """
    lines = [f"> {descriptor.method.value} {descriptor.url}"]
    for name, value in descriptor.headers:
        lines.append(f"> {name}: {value}")
    if descriptor.proxy_url:
        lines.append(f"* Proxy: {descriptor.proxy_url}")
    lines.append(f"* Timeout: {descriptor.timeout:g}s")

    if include_body and descriptor.content:
        lines.append("")
        lines.append(descriptor.content.decode("utf-8", errors="replace"))
    return "\n".join(lines)
