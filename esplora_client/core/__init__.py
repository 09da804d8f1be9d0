"""Core Esplora client components."""

from esplora_client.core.async_client import AsyncClient
from esplora_client.core.blocking_client import BlockingClient
from esplora_client.core.endpoints import EndpointKind, Request, ResponseKind
from esplora_client.core.errors import (
    ConfigurationError,
    ConnectionFailed,
    DecodeError,
    EsploraError,
    ExhaustedRetries,
    HttpStatusError,
    InvalidIdentifier,
    MalformedResponse,
    NetworkError,
    TlsFailure,
    TransportTimeout,
)
from esplora_client.core.retry import ErrorClass, RetryPolicy, classify
from esplora_client.core.transport import HttpxTransport, RawResponse, RequestsTransport

__all__ = [
    "AsyncClient",
    "BlockingClient",
    "EndpointKind",
    "Request",
    "ResponseKind",
    "ConfigurationError",
    "ConnectionFailed",
    "DecodeError",
    "EsploraError",
    "ExhaustedRetries",
    "HttpStatusError",
    "InvalidIdentifier",
    "MalformedResponse",
    "NetworkError",
    "TlsFailure",
    "TransportTimeout",
    "ErrorClass",
    "RetryPolicy",
    "classify",
    "HttpxTransport",
    "RawResponse",
    "RequestsTransport",
]
