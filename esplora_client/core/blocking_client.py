"""
Blocking Esplora client.

Every call runs on the calling thread: the endpoint catalog builds the
request, the transport sends it, the shared retry policy decides whether a
failure is worth another attempt and the decoder turns the body into chain
models.

API Documentation: https://github.com/Blockstream/esplora/blob/master/API.md
"""

import time
from typing import Any, Callable, List, Optional, Union

import structlog

from esplora_client.core import endpoints
from esplora_client.core.decoder import decode_response
from esplora_client.core.endpoints import HashLike, Request
from esplora_client.core.errors import HttpStatusError, NetworkError
from esplora_client.core.merkle import verify_tx_inclusion
from esplora_client.core.retry import RetryPolicy
from esplora_client.core.transport import BlockingTransport, RequestsTransport
from esplora_client.models.chain import (
    BlockHeader,
    BlockStatus,
    FeeEstimateTable,
    Hash256,
    MerkleProof,
    OutputStatus,
    ScriptActivityStats,
    Transaction,
    TxStatus,
    Utxo,
)
from esplora_client.models.config import ClientConfig

logger = structlog.get_logger(__name__)


class BlockingClient:
    """
    Esplora client for synchronous code.

    Args:
        config: Client configuration (defaults are read from ESPLORA_* env vars)
        transport: Blocking transport; a requests-based one is built if omitted
        policy: Retry policy; derived from `config` if omitted
        sleep: Function used to wait between attempts
    """

    def __init__(self,
                 config: Optional[ClientConfig] = None,
                 transport: Optional[BlockingTransport] = None,
                 policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or ClientConfig()
        self.transport = transport if transport is not None else RequestsTransport(self.config)
        self.policy = policy or RetryPolicy.from_config(self.config)
        self._sleep = sleep

        logger.info("Esplora blocking client initialized", **self.config.get_source_info())

    def __enter__(self) -> "BlockingClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    def call(self, request: Request) -> Any:
        """Send `request` with retries and decode the response."""
        retry = self.policy.start(request.path)
        while True:
            try:
                response = self.transport.send(request)
                return decode_response(request, response)
            except (NetworkError, HttpStatusError) as e:
                delay = retry.on_failure(e)
            self._sleep(delay)

    # ==================== Transactions ====================

    def get_tx(self, txid: HashLike) -> Optional[Transaction]:
        """Transaction by id, or None if the server does not know it."""
        return self.call(endpoints.tx(txid))

    def get_tx_no_opt(self, txid: HashLike) -> Transaction:
        """Transaction by id; a missing transaction is an HttpStatusError."""
        transaction = self.get_tx(txid)
        if transaction is None:
            raise HttpStatusError(404, "Transaction not found")
        return transaction

    def get_tx_raw(self, txid: HashLike) -> Optional[bytes]:
        return self.call(endpoints.tx_raw(txid))

    def get_tx_hex(self, txid: HashLike) -> bytes:
        return self.call(endpoints.tx_hex(txid))

    def get_tx_status(self, txid: HashLike) -> TxStatus:
        return self.call(endpoints.tx_status(txid))

    def get_merkle_proof(self, txid: HashLike) -> Optional[MerkleProof]:
        return self.call(endpoints.merkle_proof(txid))

    def get_output_status(self, txid: HashLike, vout: int) -> Optional[OutputStatus]:
        return self.call(endpoints.output_status(txid, vout))

    def broadcast(self, raw_tx: Union[bytes, str]) -> Hash256:
        """Submit a serialized transaction; returns its txid."""
        return self.call(endpoints.broadcast(raw_tx))

    # ==================== Blocks ====================

    def get_block(self, block_hash: HashLike) -> BlockHeader:
        return self.call(endpoints.block(block_hash))

    def get_header_raw(self, block_hash: HashLike) -> bytes:
        """80-byte serialized block header."""
        return self.call(endpoints.block_header_raw(block_hash))

    def get_block_status(self, block_hash: HashLike) -> BlockStatus:
        return self.call(endpoints.block_status(block_hash))

    def get_block_txids(self, block_hash: HashLike) -> List[Hash256]:
        return self.call(endpoints.block_txids(block_hash))

    def get_txid_at_block_index(self, block_hash: HashLike, index: int) -> Optional[Hash256]:
        return self.call(endpoints.txid_at_block_index(block_hash, index))

    def get_block_hash(self, height: int) -> Hash256:
        return self.call(endpoints.block_hash_at_height(height))

    def get_tip_hash(self) -> Hash256:
        return self.call(endpoints.tip_hash())

    def get_height(self) -> int:
        return self.call(endpoints.tip_height())

    def get_blocks(self, start_height: Optional[int] = None) -> List[BlockHeader]:
        """Recent blocks, newest first, optionally ending at `start_height`."""
        return self.call(endpoints.blocks(start_height))

    # ==================== Fees ====================

    def get_fee_estimates(self) -> FeeEstimateTable:
        return self.call(endpoints.fee_estimates())

    # ==================== Addresses / script hashes ====================

    def get_address_stats(self, address: str) -> ScriptActivityStats:
        return self.call(endpoints.address_stats(address))

    def get_address_txs(self, address: str, last_seen: Optional[HashLike] = None) -> List[Transaction]:
        return self.call(endpoints.address_txs(address, last_seen))

    def get_address_utxos(self, address: str) -> List[Utxo]:
        return self.call(endpoints.address_utxos(address))

    def get_scripthash_stats(self, scripthash: str) -> ScriptActivityStats:
        return self.call(endpoints.scripthash_stats(scripthash))

    def get_scripthash_txs(self, scripthash: str, last_seen: Optional[HashLike] = None) -> List[Transaction]:
        return self.call(endpoints.scripthash_txs(scripthash, last_seen))

    def get_scripthash_utxos(self, scripthash: str) -> List[Utxo]:
        return self.call(endpoints.scripthash_utxos(scripthash))

    # ==================== Proofs ====================

    def check_inclusion(self, txid: HashLike) -> bool:
        """
        Fetch a transaction's merkle proof and check it against its block.

        The block at the proof's height is fetched from the same server, so
        this only detects inconsistent answers; callers that hold their own
        trusted headers should use `verify_tx_inclusion` directly.
        """
        proof = self.get_merkle_proof(txid)
        if proof is None:
            return False
        header = self.get_block(self.get_block_hash(proof.block_height))
        return verify_tx_inclusion(txid, proof, header)
