"""Utility functions and helpers."""

from esplora_client.utils.logging import setup_logging

__all__ = [
    "setup_logging",
]
