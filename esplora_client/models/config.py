"""Client configuration using Pydantic settings."""

import re
from typing import Dict, Literal, Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings

from esplora_client import __version__

_HEADER_NAME_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class ClientConfig(BaseSettings):
    """Configuration for the Esplora client and its transports."""

    # ==================== Server ====================
    base_url: str = Field(
        default="https://blockstream.info/api",
        description="Esplora API base URL"
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")

    # ==================== Retry ====================
    max_retries: int = Field(
        default=6,
        ge=0,
        le=100,
        description="Retries after the first attempt for transient failures"
    )
    base_delay: float = Field(default=0.256, gt=0, description="First backoff delay in seconds")
    max_delay: float = Field(default=30.0, gt=0, description="Backoff ceiling in seconds")
    max_retry_after: float = Field(
        default=300.0,
        ge=0,
        description="Ceiling applied to a server Retry-After hint"
    )

    # ==================== Transport ====================
    tls_mode: Literal["none", "native", "platform"] = Field(
        default="native",
        description="none = plain HTTP only, native = bundled CA certificates, platform = system trust store"
    )
    proxy: Optional[str] = Field(default=None, description="Proxy URL for every request")
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    user_agent: str = Field(default=f"esplora-client/{__version__}", description="User-Agent header")

    # ==================== Logging ====================
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Also write logs to this file")

    class Config:
        env_prefix = "ESPLORA_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @validator("base_url")
    def _strip_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http:// or https:// URL")
        return value

    @validator("max_delay")
    def _max_delay_not_below_base(cls, value: float, values) -> float:
        base_delay = values.get("base_delay")
        if base_delay is not None and value < base_delay:
            raise ValueError("max_delay must not be smaller than base_delay")
        return value

    @validator("tls_mode")
    def _tls_mode_matches_scheme(cls, value: str, values) -> str:
        base_url = values.get("base_url") or ""
        if value == "none" and base_url.startswith("https://"):
            raise ValueError("tls_mode 'none' cannot be used with an https:// base_url")
        return value

    @validator("headers")
    def _valid_headers(cls, value: Dict[str, str]) -> Dict[str, str]:
        for name, header_value in value.items():
            if not _HEADER_NAME_PATTERN.match(name):
                raise ValueError(f"invalid HTTP header name: {name!r}")
            if "\r" in header_value or "\n" in header_value:
                raise ValueError(f"invalid HTTP header value for {name!r}")
        return value

    @property
    def max_attempts(self) -> int:
        """Total attempts per call, the first one included."""
        return self.max_retries + 1

    def request_headers(self) -> Dict[str, str]:
        """Headers sent with every request."""
        headers = {"User-Agent": self.user_agent}
        headers.update(self.headers)
        return headers

    def get_source_info(self) -> dict:
        """Summary of the configured server, safe for logging."""
        return {
            "api_url": self.base_url,
            "tls_mode": self.tls_mode,
            "has_proxy": bool(self.proxy),
            "max_retries": self.max_retries,
            "timeout": self.timeout,
        }
