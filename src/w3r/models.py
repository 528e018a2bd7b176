"""
Data models for w3r.

The request side is resolved once into an immutable ``ResolvedRequest`` and
turned into a transport-agnostic ``RequestDescriptor``. Each attempt yields an
``AttemptOutcome``: either an ``AttemptSuccess`` (any HTTP response, whatever
its status) or a ``TransportFailure``.
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, List, Literal, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_METHOD = "GET"
DEFAULT_TIMEOUT = 30
DEFAULT_RETRY = 0
DEFAULT_RETRY_DELAY = 1.0

Header = Tuple[str, str]


class HttpMethod(str, Enum):
    """HTTP methods supported by the client."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    PATCH = "PATCH"


class BasicAuth(BaseModel):
    """Credentials for HTTP basic authentication."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user: str
    password: str = Field(default="", alias="pass")


class ProxySettings(BaseModel):
    """Forward proxy used for every attempt."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)
    user: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")


class JsonBody(BaseModel):
    """Raw JSON text, sent as-is."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["json"] = "json"
    text: str


class FormEncodedBody(BaseModel):
    """Pre-encoded ``application/x-www-form-urlencoded`` text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["form_encoded"] = "form_encoded"
    text: str


class FormFieldsBody(BaseModel):
    """Ordered form fields, percent-encoded by the request builder."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["form_fields"] = "form_fields"
    fields: Tuple[Header, ...] = ()


RequestBody = Annotated[
    Union[JsonBody, FormEncodedBody, FormFieldsBody], Field(discriminator="kind")
]


class RequestFields(BaseModel):
    """
    One source of request settings before merging.

    Every field is optional; ``None`` means the source does not supply it.
    The command line, the environment and a preset all reduce to this shape.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    url: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[Tuple[str, ...]] = None
    cookies: Optional[Tuple[str, ...]] = None
    json_text: Optional[str] = Field(default=None, alias="json")
    form_data: Optional[str] = None
    form: Optional[Tuple[str, ...]] = None
    basic_user: Optional[str] = None
    basic_pass: Optional[str] = None
    proxy_host: Optional[str] = None
    proxy_port: Optional[str] = None
    proxy_user: Optional[str] = None
    proxy_pass: Optional[str] = None
    timeout: Optional[int] = None
    retry: Optional[int] = None
    retry_delay: Optional[float] = None
    output: Optional[str] = None
    verbose: Optional[bool] = None
    silent: Optional[bool] = None
    dry_run: Optional[bool] = None
    timing: Optional[bool] = None
    pretty_json: Optional[bool] = None
    json_filter: Optional[str] = None


class CliInputs(RequestFields):
    """Values given on the command line."""

    pass


class PresetBasicAuth(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    user: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")


class PresetProxy(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    host: Optional[str] = None
    port: Optional[Union[int, str]] = None
    user: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")


class Preset(BaseModel):
    """A named ``[preset.<name>]`` table from a TOML config file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    url: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[List[str]] = None
    cookies: Optional[List[str]] = None
    json_text: Optional[str] = Field(default=None, alias="json")
    form_data: Optional[str] = None
    form: Optional[List[str]] = None
    basic_auth: Optional[PresetBasicAuth] = None
    proxy: Optional[PresetProxy] = None
    timeout: Optional[int] = None
    retry: Optional[int] = None
    retry_delay: Optional[float] = None
    output: Optional[str] = None
    verbose: Optional[bool] = None
    silent: Optional[bool] = None
    dry_run: Optional[bool] = None
    timing: Optional[bool] = None
    pretty_json: Optional[bool] = None
    json_filter: Optional[str] = None

    def as_fields(self) -> RequestFields:
        """Flatten the nested auth and proxy tables into request fields."""
        auth = self.basic_auth or PresetBasicAuth()
        proxy = self.proxy or PresetProxy()
        return RequestFields(
            url=self.url,
            method=self.method,
            headers=tuple(self.headers) if self.headers is not None else None,
            cookies=tuple(self.cookies) if self.cookies is not None else None,
            json_text=self.json_text,
            form_data=self.form_data,
            form=tuple(self.form) if self.form is not None else None,
            basic_user=auth.user,
            basic_pass=auth.password,
            proxy_host=proxy.host,
            proxy_port=str(proxy.port) if proxy.port is not None else None,
            proxy_user=proxy.user,
            proxy_pass=proxy.password,
            timeout=self.timeout,
            retry=self.retry,
            retry_delay=self.retry_delay,
            output=self.output,
            verbose=self.verbose,
            silent=self.silent,
            dry_run=self.dry_run,
            timing=self.timing,
            pretty_json=self.pretty_json,
            json_filter=self.json_filter,
        )


class ResolvedRequest(BaseModel):
    """
    The final, read-only request configuration.

    Built once by ``w3r.config.resolve`` from the command line, a preset and
    the environment.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    method: HttpMethod = HttpMethod.GET
    headers: Tuple[Header, ...] = ()
    cookies: Tuple[str, ...] = ()
    body: Optional[RequestBody] = None
    basic_auth: Optional[BasicAuth] = None
    proxy: Optional[ProxySettings] = None
    timeout: int = Field(default=DEFAULT_TIMEOUT, gt=0)
    retry: int = Field(default=DEFAULT_RETRY, ge=0)
    retry_delay: float = Field(default=DEFAULT_RETRY_DELAY, gt=0)
    verbose: bool = False
    silent: bool = False
    dry_run: bool = False
    timing: bool = False
    pretty_json: bool = False
    json_filter: Optional[str] = None
    output: Optional[Path] = None

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Accept methods in any case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        """Require an absolute http(s) URL."""
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as e:
            raise ValueError(f"Invalid URL {v!r}: {e}") from None
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"URL must start with http:// or https://, got {v!r}")
        return v


class RequestDescriptor(BaseModel):
    """A fully built request, independent of any HTTP library."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    url: str
    headers: Tuple[Header, ...] = ()
    content: Optional[bytes] = None
    proxy_url: Optional[str] = None
    timeout: float = float(DEFAULT_TIMEOUT)

    def get_header(self, name: str) -> Optional[str]:
        """Return the first value of a header, matched case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


class FailureKind(str, Enum):
    """Classification of an attempt that produced no HTTP response."""

    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    OTHER_IO = "other_io"


class TimingInfo(BaseModel):
    """Stopwatch samples of one attempt, in seconds."""

    model_config = ConfigDict(frozen=True)

    headers_elapsed: float = 0.0
    body_elapsed: float = 0.0
    total_elapsed: float = 0.0


class AttemptSuccess(BaseModel):
    """An HTTP response was received, regardless of its status code."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    reason_phrase: str = ""
    http_version: str = "HTTP/1.1"
    headers: Tuple[Header, ...] = ()
    content: bytes = b""
    timing: TimingInfo = Field(default_factory=TimingInfo)

    @property
    def size(self) -> int:
        """Body size in bytes."""
        return len(self.content)


class TransportFailure(BaseModel):
    """No HTTP response: the attempt timed out or the connection failed."""

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str = ""


AttemptOutcome = Union[AttemptSuccess, TransportFailure]
