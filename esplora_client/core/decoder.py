"""
Response decoding for Esplora endpoints.

Turns raw response bytes into chain models with strict validation: hashes
must be exactly 32 bytes, integers are range checked against their wire
width, and the confirmed/unconfirmed field pairing of a transaction status
is enforced. Any violation raises `MalformedResponse` naming the offending
field. The decoder never performs I/O, so blocking and async clients share
it unchanged.
"""

import json
import math
import re
from typing import Any, Callable, Dict, List, Optional

from esplora_client.core.endpoints import EndpointKind, Request
from esplora_client.core.errors import HttpStatusError, MalformedResponse
from esplora_client.core.transport import RawResponse
from esplora_client.models.chain import (
    MAX_MONEY,
    UINT32_MAX,
    UINT64_MAX,
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
)

INT32_MIN = -2**31
INT32_MAX = 2**31 - 1
BLOCK_HEADER_SIZE = 80

_MISSING = object()


# ==================== Payload helpers ====================

def parse_json(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedResponse("<body>", f"invalid JSON: {e}") from None


def parse_text(body: bytes) -> str:
    try:
        return body.decode("utf-8").strip()
    except UnicodeDecodeError:
        raise MalformedResponse("<body>", "response is not valid UTF-8 text") from None


def _object(value: Any, field: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedResponse(field, f"expected object, got {type(value).__name__}")
    return value


def _list(value: Any, field: str) -> List[Any]:
    if not isinstance(value, list):
        raise MalformedResponse(field, f"expected list, got {type(value).__name__}")
    return value


def _field(obj: Dict[str, Any], key: str, prefix: str, required: bool = True) -> Any:
    value = obj.get(key, _MISSING)
    if value is _MISSING or value is None:
        if required:
            raise MalformedResponse(f"{prefix}{key}", "required field is missing")
        return None
    return value


def _int(value: Any, field: str, low: int, high: int) -> int:
    # bool is an int subclass; JSON true/false is never a valid number here
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedResponse(field, f"expected integer, got {type(value).__name__}")
    if not low <= value <= high:
        raise MalformedResponse(field, f"value {value} out of range [{low}, {high}]")
    return value


def _uint32(obj, key, prefix="", required=True) -> Optional[int]:
    value = _field(obj, key, prefix, required)
    return None if value is None else _int(value, f"{prefix}{key}", 0, UINT32_MAX)


def _uint64(obj, key, prefix="", required=True) -> Optional[int]:
    value = _field(obj, key, prefix, required)
    return None if value is None else _int(value, f"{prefix}{key}", 0, UINT64_MAX)


def _satoshis(obj, key, prefix="", required=True) -> Optional[int]:
    value = _field(obj, key, prefix, required)
    return None if value is None else _int(value, f"{prefix}{key}", 0, MAX_MONEY)


def _bool(obj, key, prefix="") -> bool:
    value = _field(obj, key, prefix)
    if not isinstance(value, bool):
        raise MalformedResponse(f"{prefix}{key}", f"expected boolean, got {type(value).__name__}")
    return value


def _str(obj, key, prefix="", required=True) -> Optional[str]:
    value = _field(obj, key, prefix, required)
    if value is not None and not isinstance(value, str):
        raise MalformedResponse(f"{prefix}{key}", f"expected string, got {type(value).__name__}")
    return value


def _nonneg_float(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(field, f"expected number, got {type(value).__name__}")
    try:
        value = float(value)
    except OverflowError:
        raise MalformedResponse(field, "number too large for a float") from None
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise MalformedResponse(field, f"expected non-negative finite number, got {value}")
    return value


def decode_hash(value: Any, field: str) -> Hash256:
    if not isinstance(value, str):
        raise MalformedResponse(field, f"expected hex string, got {type(value).__name__}")
    try:
        return Hash256.from_hex(value)
    except ValueError:
        raise MalformedResponse(field, "expected 64 hex characters (32 bytes)") from None


def _hash(obj, key, prefix="", required=True) -> Optional[Hash256]:
    value = _field(obj, key, prefix, required)
    return None if value is None else decode_hash(value, f"{prefix}{key}")


def decode_hex_bytes(value: Any, field: str, length: Optional[int] = None) -> bytes:
    if not isinstance(value, str):
        raise MalformedResponse(field, f"expected hex string, got {type(value).__name__}")
    try:
        data = bytes.fromhex(value)
    except ValueError:
        raise MalformedResponse(field, "invalid hex encoding") from None
    # fromhex skips whitespace; the wire format has none
    if len(value) != 2 * len(data):
        raise MalformedResponse(field, "invalid hex encoding")
    if length is not None and len(data) != length:
        raise MalformedResponse(field, f"expected {length} bytes, got {len(data)}")
    return data


def _hex_bytes(obj, key, prefix="", required=True) -> Optional[bytes]:
    value = _field(obj, key, prefix, required)
    return None if value is None else decode_hex_bytes(value, f"{prefix}{key}")


# ==================== Chain models ====================

def decode_tx_status(data: Any, prefix: str = "") -> TxStatus:
    obj = _object(data, prefix.rstrip(".") or "<body>")
    confirmed = _bool(obj, "confirmed", prefix)
    if not confirmed:
        for key in ("block_height", "block_hash", "block_time"):
            if obj.get(key) is not None:
                raise MalformedResponse(f"{prefix}{key}", "must be absent on an unconfirmed transaction")
        return TxStatus(confirmed=False)

    return TxStatus(
        confirmed=True,
        block_height=_uint32(obj, "block_height", prefix),
        block_hash=_hash(obj, "block_hash", prefix),
        block_time=_uint32(obj, "block_time", prefix),
    )


def decode_tx_out(data: Any, prefix: str) -> TxOut:
    obj = _object(data, prefix.rstrip("."))
    return TxOut(
        value=_satoshis(obj, "value", prefix),
        script_pubkey=_hex_bytes(obj, "scriptpubkey", prefix),
        script_type=_str(obj, "scriptpubkey_type", prefix, required=False),
        address=_str(obj, "scriptpubkey_address", prefix, required=False),
    )


def decode_tx_in(data: Any, prefix: str) -> TxIn:
    obj = _object(data, prefix.rstrip("."))
    is_coinbase = obj.get("is_coinbase", False)
    if not isinstance(is_coinbase, bool):
        raise MalformedResponse(f"{prefix}is_coinbase", "expected boolean")

    witness = _field(obj, "witness", prefix, required=False) or []
    witness_items = tuple(
        decode_hex_bytes(item, f"{prefix}witness[{i}]")
        for i, item in enumerate(_list(witness, f"{prefix}witness"))
    )

    prevout = _field(obj, "prevout", prefix, required=False)
    return TxIn(
        previous_output=OutPoint(
            txid=_hash(obj, "txid", prefix),
            vout=_uint32(obj, "vout", prefix),
        ),
        script_sig=_hex_bytes(obj, "scriptsig", prefix, required=False) or b"",
        sequence=_uint32(obj, "sequence", prefix),
        witness=witness_items,
        is_coinbase=is_coinbase,
        prevout=None if prevout is None else decode_tx_out(prevout, f"{prefix}prevout."),
    )


def decode_transaction(data: Any, prefix: str = "") -> Transaction:
    obj = _object(data, prefix.rstrip(".") or "<body>")

    vin = _list(_field(obj, "vin", prefix), f"{prefix}vin")
    if not vin:
        raise MalformedResponse(f"{prefix}vin", "transaction has no inputs")
    vout = _list(_field(obj, "vout", prefix), f"{prefix}vout")

    outputs = tuple(decode_tx_out(item, f"{prefix}vout[{i}].") for i, item in enumerate(vout))
    if sum(output.value for output in outputs) > MAX_MONEY:
        raise MalformedResponse(f"{prefix}vout", "total output value exceeds the money supply")

    version = _field(obj, "version", prefix)
    status = _field(obj, "status", prefix, required=False)
    return Transaction(
        txid=_hash(obj, "txid", prefix),
        version=_int(version, f"{prefix}version", INT32_MIN, INT32_MAX),
        locktime=_uint32(obj, "locktime", prefix),
        inputs=tuple(decode_tx_in(item, f"{prefix}vin[{i}].") for i, item in enumerate(vin)),
        outputs=outputs,
        size=_uint32(obj, "size", prefix, required=False),
        weight=_uint32(obj, "weight", prefix, required=False),
        fee=_satoshis(obj, "fee", prefix, required=False),
        status=None if status is None else decode_tx_status(status, f"{prefix}status."),
    )


def decode_transactions(data: Any) -> List[Transaction]:
    return [decode_transaction(item, f"[{i}].") for i, item in enumerate(_list(data, "<body>"))]


def decode_block(data: Any, prefix: str = "") -> BlockHeader:
    obj = _object(data, prefix.rstrip(".") or "<body>")
    version = _field(obj, "version", prefix)
    difficulty = _field(obj, "difficulty", prefix, required=False)
    return BlockHeader(
        hash=_hash(obj, "id", prefix),
        height=_uint32(obj, "height", prefix),
        version=_int(version, f"{prefix}version", INT32_MIN, UINT32_MAX),
        previous_block_hash=_hash(obj, "previousblockhash", prefix, required=False),
        merkle_root=_hash(obj, "merkle_root", prefix),
        time=_uint32(obj, "timestamp", prefix),
        bits=_uint32(obj, "bits", prefix),
        nonce=_uint32(obj, "nonce", prefix),
        tx_count=_uint32(obj, "tx_count", prefix, required=False),
        size=_uint32(obj, "size", prefix, required=False),
        weight=_uint32(obj, "weight", prefix, required=False),
        median_time=_uint32(obj, "mediantime", prefix, required=False),
        difficulty=None if difficulty is None else _nonneg_float(difficulty, f"{prefix}difficulty"),
    )


def decode_blocks(data: Any) -> List[BlockHeader]:
    items = _list(data, "<body>")
    if not items:
        raise MalformedResponse("<body>", "server returned no blocks")
    return [decode_block(item, f"[{i}].") for i, item in enumerate(items)]


def decode_block_status(data: Any) -> BlockStatus:
    obj = _object(data, "<body>")
    return BlockStatus(
        in_best_chain=_bool(obj, "in_best_chain"),
        height=_uint32(obj, "height", required=False),
        next_best=_hash(obj, "next_best", required=False),
    )


def decode_merkle_proof(data: Any) -> MerkleProof:
    obj = _object(data, "<body>")
    merkle = _list(_field(obj, "merkle", ""), "merkle")
    siblings = tuple(decode_hash(item, f"merkle[{i}]") for i, item in enumerate(merkle))
    pos = _uint32(obj, "pos")
    if pos >= 1 << len(siblings):
        raise MalformedResponse("pos", f"position {pos} does not fit a tree of depth {len(siblings)}")
    return MerkleProof(block_height=_uint32(obj, "block_height"), merkle=siblings, pos=pos)


def decode_output_status(data: Any) -> OutputStatus:
    obj = _object(data, "<body>")
    spent = _bool(obj, "spent")
    if not spent:
        return OutputStatus(spent=False)
    status = _field(obj, "status", "", required=False)
    return OutputStatus(
        spent=True,
        txid=_hash(obj, "txid"),
        vin=_uint32(obj, "vin"),
        status=None if status is None else decode_tx_status(status, "status."),
    )


def decode_utxo(data: Any, prefix: str) -> Utxo:
    obj = _object(data, prefix.rstrip("."))
    return Utxo(
        outpoint=OutPoint(txid=_hash(obj, "txid", prefix), vout=_uint32(obj, "vout", prefix)),
        value=_satoshis(obj, "value", prefix),
        status=decode_tx_status(_field(obj, "status", prefix), f"{prefix}status."),
    )


def decode_utxos(data: Any) -> List[Utxo]:
    return [decode_utxo(item, f"[{i}].") for i, item in enumerate(_list(data, "<body>"))]


def decode_fee_estimates(data: Any) -> FeeEstimateTable:
    obj = _object(data, "<body>")
    rates = {}
    for key, value in obj.items():
        try:
            target = int(key)
        except (TypeError, ValueError):
            raise MalformedResponse(key, "confirmation target is not an integer") from None
        if target <= 0 or target > 0xFFFF or str(target) != key.strip():
            raise MalformedResponse(key, "confirmation target must be a positive integer")
        if target in rates:
            raise MalformedResponse(key, "duplicate confirmation target")
        rates[target] = _nonneg_float(value, key)
    return FeeEstimateTable(rates=rates)


def _decode_activity(data: Any, prefix: str) -> ActivityStats:
    obj = _object(data, prefix.rstrip("."))
    return ActivityStats(
        funded_txo_count=_uint64(obj, "funded_txo_count", prefix),
        funded_txo_sum=_satoshis(obj, "funded_txo_sum", prefix),
        spent_txo_count=_uint64(obj, "spent_txo_count", prefix),
        spent_txo_sum=_satoshis(obj, "spent_txo_sum", prefix),
        tx_count=_uint64(obj, "tx_count", prefix),
    )


def decode_script_stats(data: Any) -> ScriptActivityStats:
    obj = _object(data, "<body>")
    return ScriptActivityStats(
        chain_stats=_decode_activity(_field(obj, "chain_stats", ""), "chain_stats."),
        mempool_stats=_decode_activity(_field(obj, "mempool_stats", ""), "mempool_stats."),
        address=_str(obj, "address", required=False),
        scripthash=_str(obj, "scripthash", required=False),
    )


def decode_txids(data: Any) -> List[Hash256]:
    return [decode_hash(item, f"[{i}]") for i, item in enumerate(_list(data, "<body>"))]


def decode_uint32_text(text: str) -> int:
    # ASCII digits only; str.isdigit also accepts superscripts and other scripts
    if not re.fullmatch(r"[0-9]{1,10}", text):
        raise MalformedResponse("<body>", f"expected decimal height, got {text[:64]!r}")
    return _int(int(text), "<body>", 0, UINT32_MAX)


def decode_raw_bytes(body: bytes) -> bytes:
    if not body:
        raise MalformedResponse("<body>", "empty response")
    return body


# ==================== Endpoint dispatch ====================

def _json(decoder: Callable[[Any], Any]) -> Callable[[bytes], Any]:
    return lambda body: decoder(parse_json(body))


def _hash_text(body: bytes) -> Hash256:
    return decode_hash(parse_text(body), "<body>")


DECODERS: Dict[EndpointKind, Callable[[bytes], Any]] = {
    EndpointKind.TX: _json(decode_transaction),
    EndpointKind.TX_RAW: decode_raw_bytes,
    EndpointKind.TX_HEX: lambda body: decode_raw_bytes(decode_hex_bytes(parse_text(body), "<body>")),
    EndpointKind.TX_STATUS: _json(decode_tx_status),
    EndpointKind.MERKLE_PROOF: _json(decode_merkle_proof),
    EndpointKind.OUTPUT_STATUS: _json(decode_output_status),
    EndpointKind.TXID_AT_BLOCK_INDEX: _hash_text,
    EndpointKind.BLOCK: _json(decode_block),
    EndpointKind.BLOCK_HEADER_RAW: lambda body: decode_hex_bytes(parse_text(body), "<body>", BLOCK_HEADER_SIZE),
    EndpointKind.BLOCK_STATUS: _json(decode_block_status),
    EndpointKind.BLOCK_TXIDS: _json(decode_txids),
    EndpointKind.BLOCK_HASH_AT_HEIGHT: _hash_text,
    EndpointKind.TIP_HASH: _hash_text,
    EndpointKind.TIP_HEIGHT: lambda body: decode_uint32_text(parse_text(body)),
    EndpointKind.BLOCKS: _json(decode_blocks),
    EndpointKind.FEE_ESTIMATES: _json(decode_fee_estimates),
    EndpointKind.BROADCAST: _hash_text,
    EndpointKind.ADDRESS_STATS: _json(decode_script_stats),
    EndpointKind.ADDRESS_TXS: _json(decode_transactions),
    EndpointKind.ADDRESS_UTXOS: _json(decode_utxos),
    EndpointKind.SCRIPTHASH_STATS: _json(decode_script_stats),
    EndpointKind.SCRIPTHASH_TXS: _json(decode_transactions),
    EndpointKind.SCRIPTHASH_UTXOS: _json(decode_utxos),
}


def check_status(response: RawResponse) -> None:
    """Raise HttpStatusError for any non-2xx response."""
    if 200 <= response.status < 300:
        return
    raise HttpStatusError(
        status=response.status,
        body=response.body.decode("utf-8", errors="replace"),
        retry_after=response.header("Retry-After"),
    )


def decode_response(request: Request, response: RawResponse) -> Any:
    """
    Decode a server response for the given request.

    Returns None for a 404 on optional lookups, raises HttpStatusError for
    other non-2xx statuses and MalformedResponse for invalid payloads.
    """
    if response.status == 404 and request.optional:
        return None
    check_status(response)
    return DECODERS[request.endpoint](response.body)
