"""
Transport layer for w3r.

The core only needs one synchronous call, ``send(descriptor)``, returning an
``AttemptOutcome``. ``HttpxTransport`` implements it on top of ``httpx``:
TLS, connection handling, HTTP versions and redirects are left to httpx.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from httpx import Timeout

from .models import (
    AttemptOutcome,
    AttemptSuccess,
    FailureKind,
    RequestDescriptor,
    TimingInfo,
    TransportFailure,
)

logger = logging.getLogger("w3r.transport")


class BaseTransport(ABC):
    """Abstract base class for transport implementations."""

    @abstractmethod
    def send(self, descriptor: RequestDescriptor) -> AttemptOutcome:
        """Send one attempt and report its outcome. Never raises for I/O errors."""
        pass

    @abstractmethod
    def close(self):
        """Close the transport and release resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class HttpxTransport(BaseTransport):
    """Transport implementation using httpx."""

    def __init__(
        self,
        follow_redirects: bool = True,
        verify_ssl: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the httpx transport.

        Args:
            follow_redirects: Whether to follow redirects
            verify_ssl: Whether to verify SSL certificates
            transport: Custom httpx transport, mainly for tests
        """
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl
        self._transport = transport
        self.client: Optional[httpx.Client] = None
        self._proxy_url: Optional[str] = None

    def _get_client(self, proxy_url: Optional[str]) -> httpx.Client:
        if self.client is not None and proxy_url != self._proxy_url:
            self.client.close()
            self.client = None

        if self.client is None:
            self._proxy_url = proxy_url
            self.client = httpx.Client(
                proxy=proxy_url,
                follow_redirects=self.follow_redirects,
                verify=self.verify_ssl,
                transport=self._transport,
            )
        return self.client

    def send(self, descriptor: RequestDescriptor) -> AttemptOutcome:
        """Send the request with httpx, timing headers and body separately."""
        client = self._get_client(descriptor.proxy_url)
        request = client.build_request(
            descriptor.method.value,
            descriptor.url,
            headers=list(descriptor.headers),
            content=descriptor.content,
            timeout=Timeout(descriptor.timeout),
        )

        start = time.perf_counter()
        deadline = start + descriptor.timeout
        try:
            response = client.send(request, stream=True)
            headers_received = time.perf_counter()
            try:
                content = self._read_body(response, request, deadline)
            finally:
                response.close()
            body_read = time.perf_counter()
        except httpx.TimeoutException as e:
            return self._failure(FailureKind.TIMEOUT, e, descriptor)
        except (httpx.NetworkError, httpx.ProxyError) as e:
            return self._failure(FailureKind.CONNECTION_ERROR, e, descriptor)
        except (httpx.RequestError, OSError) as e:
            return self._failure(FailureKind.OTHER_IO, e, descriptor)

        timing = TimingInfo(
            headers_elapsed=headers_received - start,
            body_elapsed=body_read - headers_received,
            total_elapsed=body_read - start,
        )
        logger.debug(
            f"{descriptor.method.value} {descriptor.url} -> {response.status_code} "
            f"({len(content)} bytes in {timing.total_elapsed:.3f}s)"
        )
        return AttemptSuccess(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            http_version=response.http_version,
            headers=tuple(response.headers.multi_items()),
            content=content,
            timing=timing,
        )

    @staticmethod
    def _read_body(response: httpx.Response, request: httpx.Request, deadline: float) -> bytes:
        """Read the streamed body; the whole attempt must finish by ``deadline``."""
        chunks = []
        for chunk in response.iter_bytes():
            chunks.append(chunk)
            if time.perf_counter() > deadline:
                raise httpx.ReadTimeout("Request exceeded its timeout", request=request)
        if time.perf_counter() > deadline:
            raise httpx.ReadTimeout("Request exceeded its timeout", request=request)
        return b"".join(chunks)

    def _failure(
        self, kind: FailureKind, error: Exception, descriptor: RequestDescriptor
    ) -> TransportFailure:
        message = str(error) or type(error).__name__
        logger.debug(f"{descriptor.method.value} {descriptor.url} failed ({kind.value}): {message}")
        return TransportFailure(kind=kind, message=message)

    def close(self):
        """Close the httpx client."""
        if self.client is not None:
            self.client.close()
            self.client = None
