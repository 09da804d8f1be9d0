"""Chain data models returned by the Esplora client."""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple

# Satoshis per Bitcoin and the hard supply ceiling in satoshis
SATOSHIS_PER_BTC = 100_000_000
MAX_MONEY = 21_000_000 * SATOSHIS_PER_BTC

UINT32_MAX = 2**32 - 1
UINT64_MAX = 2**64 - 1

_HASH_HEX_PATTERN = re.compile(r'^[0-9a-fA-F]{64}$')


class Hash256:
    """
    A 32-byte double-SHA256 hash (txid, block hash, merkle node).

    Esplora prints hashes in display order, i.e. the byte-reversed form of
    the digest as it appears inside serialized transactions and headers.
    `from_hex`/`to_hex` work with display order, `from_bytes`/`bytes()`
    with internal order.
    """

    __slots__ = ("_internal",)

    def __init__(self, internal: bytes):
        if not isinstance(internal, (bytes, bytearray)) or len(internal) != 32:
            raise ValueError("hash must be exactly 32 bytes")
        self._internal = bytes(internal)

    @classmethod
    def from_hex(cls, value: str) -> "Hash256":
        """Parse a 64 character display-order hex string."""
        if not isinstance(value, str) or not _HASH_HEX_PATTERN.match(value):
            raise ValueError(f"not a 32-byte hex hash: {value!r}")
        return cls(bytes.fromhex(value)[::-1])

    @classmethod
    def from_bytes(cls, internal: bytes) -> "Hash256":
        return cls(internal)

    def to_hex(self) -> str:
        return self._internal[::-1].hex()

    def __bytes__(self) -> bytes:
        return self._internal

    def __str__(self) -> str:
        return self.to_hex()

    def __repr__(self) -> str:
        return f"Hash256('{self.to_hex()}')"

    def __eq__(self, other) -> bool:
        if isinstance(other, Hash256):
            return self._internal == other._internal
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._internal)


@dataclass(frozen=True)
class OutPoint:
    """Reference to a transaction output."""
    txid: Hash256
    vout: int

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"


@dataclass(frozen=True)
class TxOut:
    """Transaction output."""
    value: int
    script_pubkey: bytes
    script_type: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class TxIn:
    """Transaction input."""
    previous_output: OutPoint
    script_sig: bytes
    sequence: int
    witness: Tuple[bytes, ...] = ()
    is_coinbase: bool = False
    prevout: Optional[TxOut] = None


@dataclass(frozen=True)
class TxStatus:
    """
    Confirmation status of a transaction.

    Confirmed transactions carry block height, hash and time; unconfirmed
    ones carry none of them.
    """
    confirmed: bool
    block_height: Optional[int] = None
    block_hash: Optional[Hash256] = None
    block_time: Optional[int] = None


@dataclass(frozen=True)
class Transaction:
    """Transaction as reported by the explorer."""
    txid: Hash256
    version: int
    locktime: int
    inputs: Tuple[TxIn, ...]
    outputs: Tuple[TxOut, ...]
    size: Optional[int] = None
    weight: Optional[int] = None
    fee: Optional[int] = None
    status: Optional[TxStatus] = None

    @property
    def is_coinbase(self) -> bool:
        return len(self.inputs) == 1 and self.inputs[0].is_coinbase

    @property
    def vsize(self) -> Optional[int]:
        if self.weight is None:
            return None
        return (self.weight + 3) // 4

    @property
    def total_output_value(self) -> int:
        return sum(output.value for output in self.outputs)


@dataclass(frozen=True)
class Utxo:
    """Unspent output returned by a UTXO query."""
    outpoint: OutPoint
    value: int
    status: TxStatus

    @property
    def txid(self) -> Hash256:
        return self.outpoint.txid

    @property
    def vout(self) -> int:
        return self.outpoint.vout


@dataclass(frozen=True)
class OutputStatus:
    """Spending status of a transaction output."""
    spent: bool
    txid: Optional[Hash256] = None
    vin: Optional[int] = None
    status: Optional[TxStatus] = None


@dataclass(frozen=True)
class BlockHeader:
    """Block header fields plus the explorer's block metadata."""
    hash: Hash256
    height: int
    version: int
    previous_block_hash: Optional[Hash256]
    merkle_root: Hash256
    time: int
    bits: int
    nonce: int
    tx_count: Optional[int] = None
    size: Optional[int] = None
    weight: Optional[int] = None
    median_time: Optional[int] = None
    difficulty: Optional[float] = None


@dataclass(frozen=True)
class BlockStatus:
    """Best-chain membership of a block."""
    in_best_chain: bool
    height: Optional[int] = None
    next_best: Optional[Hash256] = None


@dataclass(frozen=True)
class MerkleProof:
    """
    Merkle inclusion proof for a transaction.

    `merkle` lists the sibling hashes from the leaf level up to the level
    below the root; bit i of `pos` tells whether the running hash is the
    right (1) or left (0) child at level i.
    """
    block_height: int
    merkle: Tuple[Hash256, ...]
    pos: int


@dataclass(frozen=True)
class ActivityStats:
    """Funded/spent totals for one bucket (confirmed or mempool)."""
    funded_txo_count: int
    funded_txo_sum: int
    spent_txo_count: int
    spent_txo_sum: int
    tx_count: int

    @property
    def balance(self) -> int:
        return self.funded_txo_sum - self.spent_txo_sum


@dataclass(frozen=True)
class ScriptActivityStats:
    """Activity of an address or script hash."""
    chain_stats: ActivityStats
    mempool_stats: ActivityStats
    address: Optional[str] = None
    scripthash: Optional[str] = None

    @property
    def confirmed_balance(self) -> int:
        return self.chain_stats.balance

    @property
    def total_balance(self) -> int:
        return self.chain_stats.balance + self.mempool_stats.balance


@dataclass(frozen=True)
class FeeEstimateTable:
    """Fee rates in sat/vB keyed by confirmation target in blocks."""
    rates: Dict[int, float] = field(default_factory=dict)

    def __getitem__(self, target: int) -> float:
        return self.rates[target]

    def __contains__(self, target) -> bool:
        return target in self.rates

    def __iter__(self) -> Iterator[int]:
        return iter(self.rates)

    def __len__(self) -> int:
        return len(self.rates)

    def for_target(self, target: int) -> Optional[float]:
        """Rate for the largest target at or below `target`, if any."""
        return convert_fee_rate(target, self.rates)


def convert_fee_rate(target: int, estimates: Dict[int, float]) -> Optional[float]:
    """
    Pick the fee rate matching a confirmation target.

    Returns the rate of the largest estimate key that is <= target, or None
    when every key is above the target. Server precision is kept as is.
    """
    eligible = [key for key in estimates if key <= target]
    if not eligible:
        return None
    return estimates[max(eligible)]
