"""
Esplora endpoint catalog.

Every query the client supports is described here as a `Request`: HTTP
method, path, optional body and the kind of payload the server sends back.
Identifiers are validated before a request is built, so a malformed txid or
height fails with `InvalidIdentifier` without touching the network.

API Documentation: https://github.com/Blockstream/esplora/blob/master/API.md
"""

import hashlib
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from urllib.parse import quote

from esplora_client.core.errors import InvalidIdentifier
from esplora_client.models.chain import UINT32_MAX, Hash256

HashLike = Union[Hash256, str]

_HEX_PATTERN = re.compile(r'^(?:[0-9a-fA-F]{2})+$')
_ADDRESS_PATTERN = re.compile(r'^[0-9A-Za-z]{14,90}$')


class ResponseKind(str, Enum):
    """Payload format of an endpoint's successful response."""
    JSON = "json"
    HEX_TEXT = "hex-text"
    TEXT = "text"
    RAW_BYTES = "raw-bytes"


class EndpointKind(str, Enum):
    """Logical query; selects the decoder for the response."""
    TX = "tx"
    TX_RAW = "tx_raw"
    TX_HEX = "tx_hex"
    TX_STATUS = "tx_status"
    MERKLE_PROOF = "merkle_proof"
    OUTPUT_STATUS = "output_status"
    TXID_AT_BLOCK_INDEX = "txid_at_block_index"
    BLOCK = "block"
    BLOCK_HEADER_RAW = "block_header_raw"
    BLOCK_STATUS = "block_status"
    BLOCK_TXIDS = "block_txids"
    BLOCK_HASH_AT_HEIGHT = "block_hash_at_height"
    TIP_HASH = "tip_hash"
    TIP_HEIGHT = "tip_height"
    BLOCKS = "blocks"
    FEE_ESTIMATES = "fee_estimates"
    BROADCAST = "broadcast"
    ADDRESS_STATS = "address_stats"
    ADDRESS_TXS = "address_txs"
    ADDRESS_UTXOS = "address_utxos"
    SCRIPTHASH_STATS = "scripthash_stats"
    SCRIPTHASH_TXS = "scripthash_txs"
    SCRIPTHASH_UTXOS = "scripthash_utxos"


@dataclass(frozen=True)
class Request:
    """
    Wire request descriptor.

    `optional` marks lookups where a 404 means "not found" and decodes to
    None instead of an error.
    """
    endpoint: EndpointKind
    method: str
    path: str
    kind: ResponseKind
    body: Optional[bytes] = None
    optional: bool = False
    content_type: Optional[str] = None


# ==================== Parameter validation ====================

def hash_param(value: HashLike, name: str = "hash") -> str:
    """Validate a hash-typed parameter and return its display hex."""
    if isinstance(value, Hash256):
        return value.to_hex()
    try:
        return Hash256.from_hex(value).to_hex()
    except ValueError:
        raise InvalidIdentifier(value, f"{name} must be a 32-byte hex string") from None


def uint32_param(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT32_MAX:
        raise InvalidIdentifier(value, f"{name} must be an unsigned 32-bit integer")
    return value


def scripthash_param(value: str) -> str:
    """Script hashes are sha256 digests printed without byte reversal."""
    if isinstance(value, (bytes, bytearray)) and len(value) == 32:
        return bytes(value).hex()
    if isinstance(value, str) and len(value) == 64 and _HEX_PATTERN.match(value):
        return value.lower()
    raise InvalidIdentifier(value, "scripthash must be a 32-byte hex string")


def address_param(value: str) -> str:
    if not isinstance(value, str) or not _ADDRESS_PATTERN.match(value):
        raise InvalidIdentifier(value, "address must be a base58 or bech32 string")
    return quote(value, safe="")


def scripthash_for_script(script_pubkey: bytes) -> str:
    """Esplora script hash of a scriptPubKey: hex sha256, not reversed."""
    return hashlib.sha256(bytes(script_pubkey)).hexdigest()


def _raw_tx_hex(raw_tx: Union[bytes, str]) -> str:
    if isinstance(raw_tx, (bytes, bytearray)):
        if not raw_tx:
            raise InvalidIdentifier(raw_tx, "raw transaction must not be empty")
        return bytes(raw_tx).hex()
    if isinstance(raw_tx, str) and _HEX_PATTERN.match(raw_tx.strip()):
        return raw_tx.strip().lower()
    raise InvalidIdentifier(raw_tx, "raw transaction must be bytes or an even-length hex string")


def _get(endpoint: EndpointKind, path: str, kind: ResponseKind, optional: bool = False) -> Request:
    return Request(endpoint=endpoint, method="GET", path=path, kind=kind, optional=optional)


# ==================== Transactions ====================

def tx(txid: HashLike) -> Request:
    return _get(EndpointKind.TX, f"/tx/{hash_param(txid, 'txid')}", ResponseKind.JSON, optional=True)


def tx_raw(txid: HashLike) -> Request:
    return _get(EndpointKind.TX_RAW, f"/tx/{hash_param(txid, 'txid')}/raw",
                ResponseKind.RAW_BYTES, optional=True)


def tx_hex(txid: HashLike) -> Request:
    return _get(EndpointKind.TX_HEX, f"/tx/{hash_param(txid, 'txid')}/hex", ResponseKind.HEX_TEXT)


def tx_status(txid: HashLike) -> Request:
    return _get(EndpointKind.TX_STATUS, f"/tx/{hash_param(txid, 'txid')}/status", ResponseKind.JSON)


def merkle_proof(txid: HashLike) -> Request:
    return _get(EndpointKind.MERKLE_PROOF, f"/tx/{hash_param(txid, 'txid')}/merkle-proof",
                ResponseKind.JSON, optional=True)


def output_status(txid: HashLike, vout: int) -> Request:
    path = f"/tx/{hash_param(txid, 'txid')}/outspend/{uint32_param(vout, 'vout')}"
    return _get(EndpointKind.OUTPUT_STATUS, path, ResponseKind.JSON, optional=True)


def broadcast(raw_tx: Union[bytes, str]) -> Request:
    """POST /tx with the serialized transaction as hex text."""
    return Request(
        endpoint=EndpointKind.BROADCAST,
        method="POST",
        path="/tx",
        kind=ResponseKind.HEX_TEXT,
        body=_raw_tx_hex(raw_tx).encode("ascii"),
        content_type="text/plain",
    )


# ==================== Blocks ====================

def block(block_hash: HashLike) -> Request:
    return _get(EndpointKind.BLOCK, f"/block/{hash_param(block_hash, 'block_hash')}", ResponseKind.JSON)


def block_header_raw(block_hash: HashLike) -> Request:
    return _get(EndpointKind.BLOCK_HEADER_RAW, f"/block/{hash_param(block_hash, 'block_hash')}/header",
                ResponseKind.HEX_TEXT)


def block_status(block_hash: HashLike) -> Request:
    return _get(EndpointKind.BLOCK_STATUS, f"/block/{hash_param(block_hash, 'block_hash')}/status",
                ResponseKind.JSON)


def block_txids(block_hash: HashLike) -> Request:
    return _get(EndpointKind.BLOCK_TXIDS, f"/block/{hash_param(block_hash, 'block_hash')}/txids",
                ResponseKind.JSON)


def txid_at_block_index(block_hash: HashLike, index: int) -> Request:
    path = f"/block/{hash_param(block_hash, 'block_hash')}/txid/{uint32_param(index, 'index')}"
    return _get(EndpointKind.TXID_AT_BLOCK_INDEX, path, ResponseKind.HEX_TEXT, optional=True)


def block_hash_at_height(height: int) -> Request:
    return _get(EndpointKind.BLOCK_HASH_AT_HEIGHT, f"/block-height/{uint32_param(height, 'height')}",
                ResponseKind.HEX_TEXT)


def tip_hash() -> Request:
    return _get(EndpointKind.TIP_HASH, "/blocks/tip/hash", ResponseKind.HEX_TEXT)


def tip_height() -> Request:
    return _get(EndpointKind.TIP_HEIGHT, "/blocks/tip/height", ResponseKind.TEXT)


def blocks(start_height: Optional[int] = None) -> Request:
    """Latest blocks, or the ones ending at `start_height`."""
    if start_height is None:
        return _get(EndpointKind.BLOCKS, "/blocks", ResponseKind.JSON)
    return _get(EndpointKind.BLOCKS, f"/blocks/{uint32_param(start_height, 'height')}", ResponseKind.JSON)


# ==================== Fees ====================

def fee_estimates() -> Request:
    return _get(EndpointKind.FEE_ESTIMATES, "/fee-estimates", ResponseKind.JSON)


# ==================== Addresses / script hashes ====================

def address_stats(address: str) -> Request:
    return _get(EndpointKind.ADDRESS_STATS, f"/address/{address_param(address)}", ResponseKind.JSON)


def address_txs(address: str, last_seen: Optional[HashLike] = None) -> Request:
    path = f"/address/{address_param(address)}/txs"
    if last_seen is not None:
        path += f"/chain/{hash_param(last_seen, 'last_seen')}"
    return _get(EndpointKind.ADDRESS_TXS, path, ResponseKind.JSON)


def address_utxos(address: str) -> Request:
    return _get(EndpointKind.ADDRESS_UTXOS, f"/address/{address_param(address)}/utxo", ResponseKind.JSON)


def scripthash_stats(scripthash: str) -> Request:
    return _get(EndpointKind.SCRIPTHASH_STATS, f"/scripthash/{scripthash_param(scripthash)}",
                ResponseKind.JSON)


def scripthash_txs(scripthash: str, last_seen: Optional[HashLike] = None) -> Request:
    path = f"/scripthash/{scripthash_param(scripthash)}/txs"
    if last_seen is not None:
        path += f"/chain/{hash_param(last_seen, 'last_seen')}"
    return _get(EndpointKind.SCRIPTHASH_TXS, path, ResponseKind.JSON)


def scripthash_utxos(scripthash: str) -> Request:
    return _get(EndpointKind.SCRIPTHASH_UTXOS, f"/scripthash/{scripthash_param(scripthash)}/utxo",
                ResponseKind.JSON)
