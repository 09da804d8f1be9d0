"""
Async Esplora client.

Same endpoints, retry policy and decoder as `BlockingClient`; the only
difference is that the transport and the wait between attempts are awaited.
Cancelling a call abandons the in-flight request: retry state is local to
the call, so nothing shared is left half-updated.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Union

import structlog

from esplora_client.core import endpoints
from esplora_client.core.decoder import decode_response
from esplora_client.core.endpoints import HashLike, Request
from esplora_client.core.errors import HttpStatusError, NetworkError
from esplora_client.core.merkle import verify_tx_inclusion
from esplora_client.core.retry import RetryPolicy
from esplora_client.core.transport import AsyncTransport, HttpxTransport
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


class AsyncClient:
    """
    Esplora client for asyncio code.

    Use as an async context manager, or call `aclose()` when done, to release
    the transport's connection pool.
    """

    def __init__(self,
                 config: Optional[ClientConfig] = None,
                 transport: Optional[AsyncTransport] = None,
                 policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config or ClientConfig()
        self.transport = transport if transport is not None else HttpxTransport(self.config)
        self.policy = policy or RetryPolicy.from_config(self.config)
        self._sleep = sleep

        logger.info("Esplora async client initialized", **self.config.get_source_info())

    async def __aenter__(self) -> "AsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def call(self, request: Request) -> Any:
        """Send `request` with retries and decode the response."""
        retry = self.policy.start(request.path)
        while True:
            try:
                response = await self.transport.send(request)
                return decode_response(request, response)
            except (NetworkError, HttpStatusError) as e:
                delay = retry.on_failure(e)
            await self._sleep(delay)

    # ==================== Transactions ====================

    async def get_tx(self, txid: HashLike) -> Optional[Transaction]:
        return await self.call(endpoints.tx(txid))

    async def get_tx_no_opt(self, txid: HashLike) -> Transaction:
        transaction = await self.get_tx(txid)
        if transaction is None:
            raise HttpStatusError(404, "Transaction not found")
        return transaction

    async def get_tx_raw(self, txid: HashLike) -> Optional[bytes]:
        return await self.call(endpoints.tx_raw(txid))

    async def get_tx_hex(self, txid: HashLike) -> bytes:
        return await self.call(endpoints.tx_hex(txid))

    async def get_tx_status(self, txid: HashLike) -> TxStatus:
        return await self.call(endpoints.tx_status(txid))

    async def get_merkle_proof(self, txid: HashLike) -> Optional[MerkleProof]:
        return await self.call(endpoints.merkle_proof(txid))

    async def get_output_status(self, txid: HashLike, vout: int) -> Optional[OutputStatus]:
        return await self.call(endpoints.output_status(txid, vout))

    async def broadcast(self, raw_tx: Union[bytes, str]) -> Hash256:
        return await self.call(endpoints.broadcast(raw_tx))

    # ==================== Blocks ====================

    async def get_block(self, block_hash: HashLike) -> BlockHeader:
        return await self.call(endpoints.block(block_hash))

    async def get_header_raw(self, block_hash: HashLike) -> bytes:
        return await self.call(endpoints.block_header_raw(block_hash))

    async def get_block_status(self, block_hash: HashLike) -> BlockStatus:
        return await self.call(endpoints.block_status(block_hash))

    async def get_block_txids(self, block_hash: HashLike) -> List[Hash256]:
        return await self.call(endpoints.block_txids(block_hash))

    async def get_txid_at_block_index(self, block_hash: HashLike, index: int) -> Optional[Hash256]:
        return await self.call(endpoints.txid_at_block_index(block_hash, index))

    async def get_block_hash(self, height: int) -> Hash256:
        return await self.call(endpoints.block_hash_at_height(height))

    async def get_tip_hash(self) -> Hash256:
        return await self.call(endpoints.tip_hash())

    async def get_height(self) -> int:
        return await self.call(endpoints.tip_height())

    async def get_blocks(self, start_height: Optional[int] = None) -> List[BlockHeader]:
        return await self.call(endpoints.blocks(start_height))

    # ==================== Fees ====================

    async def get_fee_estimates(self) -> FeeEstimateTable:
        return await self.call(endpoints.fee_estimates())

    # ==================== Addresses / script hashes ====================

    async def get_address_stats(self, address: str) -> ScriptActivityStats:
        return await self.call(endpoints.address_stats(address))

    async def get_address_txs(self, address: str, last_seen: Optional[HashLike] = None) -> List[Transaction]:
        return await self.call(endpoints.address_txs(address, last_seen))

    async def get_address_utxos(self, address: str) -> List[Utxo]:
        return await self.call(endpoints.address_utxos(address))

    async def get_scripthash_stats(self, scripthash: str) -> ScriptActivityStats:
        return await self.call(endpoints.scripthash_stats(scripthash))

    async def get_scripthash_txs(self, scripthash: str,
                                 last_seen: Optional[HashLike] = None) -> List[Transaction]:
        return await self.call(endpoints.scripthash_txs(scripthash, last_seen))

    async def get_scripthash_utxos(self, scripthash: str) -> List[Utxo]:
        return await self.call(endpoints.scripthash_utxos(scripthash))

    # ==================== Proofs ====================

    async def check_inclusion(self, txid: HashLike) -> bool:
        """Async counterpart of `BlockingClient.check_inclusion`."""
        proof = await self.get_merkle_proof(txid)
        if proof is None:
            return False
        header = await self.get_block(await self.get_block_hash(proof.block_height))
        return verify_tx_inclusion(txid, proof, header)
