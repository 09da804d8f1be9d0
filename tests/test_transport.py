"""
Tests for the requests and httpx transport backends.

Tests request construction, response capture and mapping of library
exceptions onto the client's network errors.
"""

import asyncio
import ssl
from unittest.mock import MagicMock, Mock

import httpx
import pytest
import requests

from esplora_client.core import endpoints
from esplora_client.core.errors import (
    ConfigurationError,
    ConnectionFailed,
    NetworkError,
    TlsFailure,
    TransportErrorKind,
    TransportTimeout,
)
from esplora_client.core.transport import HttpxTransport, RawResponse, RequestsTransport
from esplora_client.models.config import ClientConfig

from conftest import TXID


class TestRawResponse:

    def test_header_lookup_is_case_insensitive(self):
        response = RawResponse(status=429, headers={"Retry-After": "5"})
        assert response.header("retry-after") == "5"
        assert response.header("RETRY-AFTER") == "5"
        assert response.header("X-Missing") is None


class TestRequestsTransport:
    """Blocking backend with a mocked requests session."""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        session.proxies = {}
        session.request.return_value = Mock(
            status_code=200,
            content=b"800000",
            headers={"Content-Type": "text/plain"},
        )
        return session

    def test_get(self, config, session):
        transport = RequestsTransport(config, session=session)
        response = transport.send(endpoints.tip_height())

        assert response == RawResponse(200, b"800000", {"Content-Type": "text/plain"})
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://esplora.test/api/blocks/tip/height")
        assert kwargs["timeout"] == 5.0
        assert kwargs["data"] is None
        assert session.headers["User-Agent"].startswith("esplora-client/")

    def test_follows_redirects(self, config, session):
        RequestsTransport(config, session=session).send(endpoints.tip_height())
        assert session.request.call_args.kwargs["allow_redirects"] is True

    def test_post_body(self, config, session):
        transport = RequestsTransport(config, session=session)
        transport.send(endpoints.broadcast("0200000001"))

        args, kwargs = session.request.call_args
        assert args == ("POST", "https://esplora.test/api/tx")
        assert kwargs["data"] == b"0200000001"
        assert kwargs["headers"]["Content-Type"] == "text/plain"

    def test_non_2xx_is_returned_not_raised(self, config, session):
        session.request.return_value = Mock(status_code=503, content=b"busy", headers={})
        response = RequestsTransport(config, session=session).send(endpoints.tx(TXID))
        assert response.status == 503
        assert response.body == b"busy"

    def test_proxy(self, session):
        config = ClientConfig(base_url="https://esplora.test/api", proxy="socks5h://127.0.0.1:9050")
        RequestsTransport(config, session=session)
        assert session.proxies == {"http": "socks5h://127.0.0.1:9050", "https": "socks5h://127.0.0.1:9050"}

    @pytest.mark.parametrize("raised, expected, kind", [
        (requests.exceptions.ConnectTimeout("connect timed out"), TransportTimeout, TransportErrorKind.TIMEOUT),
        (requests.exceptions.ReadTimeout("read timed out"), TransportTimeout, TransportErrorKind.TIMEOUT),
        (requests.exceptions.SSLError("certificate verify failed"), TlsFailure, TransportErrorKind.TLS_FAILURE),
        (requests.exceptions.ConnectionError("refused"), ConnectionFailed,
         TransportErrorKind.CONNECTION_FAILED),
        (requests.exceptions.TooManyRedirects("loop"), NetworkError, TransportErrorKind.OTHER),
    ])
    def test_error_mapping(self, config, session, raised, expected, kind):
        session.request.side_effect = raised
        with pytest.raises(expected) as exc_info:
            RequestsTransport(config, session=session).send(endpoints.tip_hash())
        assert exc_info.value.kind is kind
        assert exc_info.value.__cause__ is raised

    def test_close(self, config, session):
        RequestsTransport(config, session=session).close()
        session.close.assert_called_once()

    def test_plain_http_with_https_url_rejected(self, session):
        config = ClientConfig.model_construct(base_url="https://esplora.test/api", tls_mode="none")
        with pytest.raises(ConfigurationError):
            RequestsTransport(config, session=session)


class TestHttpxTransport:
    """Async backend with httpx.MockTransport."""

    def make(self, config, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpxTransport(config, client=client)

    def test_get(self, config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=TXID, headers={"Content-Type": "text/plain"})

        transport = self.make(config, handler)
        response = asyncio.run(transport.send(endpoints.tx_status(TXID)))

        assert response.status == 200
        assert response.body == TXID.encode()
        assert response.header("content-type") == "text/plain"
        assert str(seen[0].url) == f"https://esplora.test/api/tx/{TXID}/status"
        assert seen[0].method == "GET"
        assert seen[0].headers["User-Agent"].startswith("esplora-client/")

    def test_post_body(self, config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=TXID)

        transport = self.make(config, handler)
        asyncio.run(transport.send(endpoints.broadcast(b"\x02\x00")))

        assert seen[0].method == "POST"
        assert seen[0].content == b"0200"
        assert seen[0].headers["Content-Type"] == "text/plain"

    def test_follows_redirects(self, config):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            if request.url.path == "/api/blocks/tip/height":
                return httpx.Response(302, headers={"Location": "/api/real/height"})
            return httpx.Response(200, text="800000")

        transport = self.make(config, handler)
        response = asyncio.run(transport.send(endpoints.tip_height()))

        assert response.status == 200
        assert response.body == b"800000"
        assert seen == ["/api/blocks/tip/height", "/api/real/height"]

    def test_retry_after_header_captured(self, config):
        transport = self.make(config, lambda request: httpx.Response(429, headers={"Retry-After": "9"}))
        response = asyncio.run(transport.send(endpoints.fee_estimates()))
        assert response.status == 429
        assert response.header("Retry-After") == "9"

    @pytest.mark.parametrize("raised, expected", [
        (httpx.ConnectTimeout("connect timed out"), TransportTimeout),
        (httpx.ReadTimeout("read timed out"), TransportTimeout),
        (httpx.ConnectError("connection refused"), ConnectionFailed),
        (httpx.ReadError("connection reset"), ConnectionFailed),
        (httpx.UnsupportedProtocol("ftp"), NetworkError),
    ])
    def test_error_mapping(self, config, raised, expected):
        def handler(request):
            raise raised

        transport = self.make(config, handler)
        with pytest.raises(expected):
            asyncio.run(transport.send(endpoints.tip_hash()))

    def test_tls_failure(self, config):
        def handler(request):
            try:
                raise ssl.SSLCertVerificationError("certificate verify failed")
            except ssl.SSLError as e:
                raise httpx.ConnectError("handshake failed") from e

        transport = self.make(config, handler)
        with pytest.raises(TlsFailure):
            asyncio.run(transport.send(endpoints.tip_hash()))

    def test_aclose(self, config):
        transport = self.make(config, lambda request: httpx.Response(200))
        asyncio.run(transport.aclose())
        assert transport.client.is_closed
