"""
Transport layer for the Esplora client.

A transport only moves bytes: it sends a `Request` to the configured server
and hands back a `RawResponse` (status, headers, body) or raises one of the
`NetworkError` subclasses. Status handling, retries and decoding all live
above this layer, so the blocking (requests) and async (httpx) backends
behave identically for the same server bytes.
"""

import ssl
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import httpx
import requests
import structlog

from esplora_client.core.endpoints import Request
from esplora_client.core.errors import (
    ConfigurationError,
    ConnectionFailed,
    NetworkError,
    TlsFailure,
    TransportTimeout,
)
from esplora_client.models.config import ClientConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RawResponse:
    """HTTP response as received from the server."""
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class BlockingTransport(Protocol):
    """Sends a request on the calling thread."""

    def send(self, request: Request) -> RawResponse:
        ...

    def close(self) -> None:
        ...


class AsyncTransport(Protocol):
    """Sends a request, suspending the calling task during network I/O."""

    async def send(self, request: Request) -> RawResponse:
        ...

    async def aclose(self) -> None:
        ...


def _is_tls_error(error: BaseException) -> bool:
    """Walk the exception chain looking for an SSL failure."""
    seen = set()
    current = error
    while current is not None and id(current) not in seen:
        if isinstance(current, (ssl.SSLError, ssl.CertificateError, requests.exceptions.SSLError)):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def _request_headers(config: ClientConfig, request: Request) -> Dict[str, str]:
    headers = config.request_headers()
    if request.content_type:
        headers["Content-Type"] = request.content_type
    return headers


def _check_scheme(config: ClientConfig) -> None:
    if config.tls_mode == "none" and config.base_url.startswith("https://"):
        raise ConfigurationError("tls_mode 'none' cannot be used with an https:// base_url")


# ==================== Blocking backend (requests) ====================

class RequestsTransport:
    """Blocking transport backed by a `requests.Session`."""

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        _check_scheme(config)
        self.config = config
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(config.request_headers())

        if config.proxy:
            self.session.proxies.update({"http": config.proxy, "https": config.proxy})

        if config.tls_mode == "platform":
            paths = ssl.get_default_verify_paths()
            self.session.verify = paths.cafile or paths.capath or True
        else:
            self.session.verify = True

        logger.debug("Requests transport initialized", **config.get_source_info())

    def send(self, request: Request) -> RawResponse:
        url = f"{self.config.base_url}{request.path}"
        try:
            response = self.session.request(
                request.method,
                url,
                data=request.body,
                headers=_request_headers(self.config, request),
                timeout=self.config.timeout,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout as e:
            raise TransportTimeout(str(e)) from e
        except requests.exceptions.SSLError as e:
            raise TlsFailure(str(e)) from e
        except requests.exceptions.ConnectionError as e:
            if _is_tls_error(e):
                raise TlsFailure(str(e)) from e
            raise ConnectionFailed(str(e)) from e
        except requests.RequestException as e:
            raise NetworkError(str(e)) from e

        return RawResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    def close(self) -> None:
        self.session.close()


# ==================== Async backend (httpx) ====================

class HttpxTransport:
    """Async transport backed by an `httpx.AsyncClient` connection pool."""

    def __init__(self, config: ClientConfig, client: Optional[httpx.AsyncClient] = None):
        _check_scheme(config)
        self.config = config

        if client is None:
            verify = ssl.create_default_context() if config.tls_mode == "platform" else True
            client = httpx.AsyncClient(
                base_url=config.base_url,
                timeout=config.timeout,
                headers=config.request_headers(),
                proxy=config.proxy,
                verify=verify,
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                follow_redirects=True,
            )
        self.client = client

        logger.debug("Httpx transport initialized", **config.get_source_info())

    async def send(self, request: Request) -> RawResponse:
        url = f"{self.config.base_url}{request.path}"
        try:
            response = await self.client.request(
                request.method,
                url,
                content=request.body,
                headers=_request_headers(self.config, request),
                timeout=self.config.timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            raise TransportTimeout(str(e)) from e
        except (httpx.ConnectError, httpx.NetworkError) as e:
            if _is_tls_error(e):
                raise TlsFailure(str(e)) from e
            raise ConnectionFailed(str(e)) from e
        except httpx.HTTPError as e:
            raise NetworkError(str(e)) from e

        return RawResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
