"""Logging configuration for the Esplora client."""

import logging
import sys
import structlog
from structlog.stdlib import LoggerFactory

PACKAGE_LOGGER = "esplora_client"

# HTTP library loggers that repeat every request at INFO/DEBUG
_HTTP_LOGGERS = ("urllib3", "httpx", "httpcore")


def setup_logging(config) -> logging.Logger:
    """
    Setup structured logging for the client.

    Records from `esplora_client.*` go to stderr and, when `config.log_file`
    is set, to that file as well. Only the package logger is configured, the
    root logger of the host application is left alone. The library never
    calls this itself; applications and the CLI do.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if config.log_format == "json" else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(message)s"))
        package_logger.addHandler(handler)

    package_logger.setLevel(level)
    package_logger.propagate = False

    # Request lines from the HTTP libraries only show up when debugging
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    return package_logger
