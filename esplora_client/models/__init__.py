"""Data models and configuration."""

from esplora_client.models.config import ClientConfig
from esplora_client.models.chain import (
    ActivityStats,
    BlockHeader,
    BlockStatus,
    FeeEstimateTable,
    Hash256,
    MerkleProof,
    OutPoint,
    OutputStatus,
    ScriptActivityStats,
    Transaction,
    TxIn,
    TxOut,
    TxStatus,
    Utxo,
    convert_fee_rate,
)

__all__ = [
    "ClientConfig",
    "ActivityStats",
    "BlockHeader",
    "BlockStatus",
    "FeeEstimateTable",
    "Hash256",
    "MerkleProof",
    "OutPoint",
    "OutputStatus",
    "ScriptActivityStats",
    "Transaction",
    "TxIn",
    "TxOut",
    "TxStatus",
    "Utxo",
    "convert_fee_rate",
]
