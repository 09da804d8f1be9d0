"""
Esplora Client

Blocking and async client for Esplora-compatible Bitcoin block explorer APIs:
transactions, blocks, fee estimates, address and script hash activity, UTXO
sets, merkle inclusion proofs and transaction broadcast.
"""

__version__ = "1.0.0"
__author__ = "Bitcoin Data Engineering Team"
__description__ = "Esplora REST API client for Bitcoin chain data"

from esplora_client.core.async_client import AsyncClient
from esplora_client.core.blocking_client import BlockingClient
from esplora_client.core.merkle import verify, verify_tx_inclusion
from esplora_client.core.retry import RetryPolicy
from esplora_client.models.config import ClientConfig

__all__ = [
    "AsyncClient",
    "BlockingClient",
    "ClientConfig",
    "RetryPolicy",
    "verify",
    "verify_tx_inclusion",
]
