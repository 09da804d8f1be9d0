"""Errors raised by the Esplora client."""

from enum import Enum
from typing import Optional


class EsploraError(Exception):
    """Base class for every error the client raises."""
    pass


class ConfigurationError(EsploraError):
    """Client or transport configured with unusable options."""
    pass


class TransportErrorKind(str, Enum):
    """What went wrong below HTTP."""
    TIMEOUT = "timeout"
    CONNECTION_FAILED = "connection_failed"
    TLS_FAILURE = "tls_failure"
    OTHER = "other"


class NetworkError(EsploraError):
    """
    The request never produced an HTTP response.

    Transports raise one of the subclasses for timeouts, refused or dropped
    connections and TLS handshake failures; anything else is reported as a
    plain NetworkError of kind OTHER with the backend's detail message.
    """

    kind = TransportErrorKind.OTHER

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(f"{self.kind.value}: {detail}" if detail else self.kind.value)


class TransportTimeout(NetworkError):
    kind = TransportErrorKind.TIMEOUT


class ConnectionFailed(NetworkError):
    kind = TransportErrorKind.CONNECTION_FAILED


class TlsFailure(NetworkError):
    kind = TransportErrorKind.TLS_FAILURE


class HttpStatusError(EsploraError):
    """Server answered with a non-2xx status."""

    def __init__(self, status: int, body: str = "", retry_after: Optional[str] = None):
        self.status = status
        self.body = body
        self.retry_after = retry_after
        super().__init__(f"HTTP response error {status}: {body}")


class DecodeError(EsploraError):
    """Response payload did not have the expected shape."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"invalid field {field!r}: {reason}")


class MalformedResponse(DecodeError):
    """The server sent a response that fails structural validation."""
    pass


class InvalidIdentifier(EsploraError, ValueError):
    """A query parameter is not a well-formed identifier."""

    def __init__(self, input, reason: str = "malformed identifier"):
        self.input = input
        self.reason = reason
        super().__init__(f"{reason}: {input!r}")


class ExhaustedRetries(EsploraError):
    """Every allowed attempt failed with a retryable error."""

    def __init__(self, last_error: EsploraError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"request failed after {attempts} attempts: {last_error}")
