"""Pytest configuration and fixtures for Esplora client tests."""

import asyncio
import copy
import json
import pytest
from typing import Any, Dict, List

from esplora_client.core.transport import RawResponse
from esplora_client.models.config import ClientConfig


TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"
PREV_TXID = "0e3e2357e806b6cdb1f70b54c3a3a17b6714ee1f0e68bebb44a74b1efd512098"
BLOCK_HASH = "00000000000000000002a7c4c1e48d76c5a37902165a270156b7a8d72728a054"
PREV_BLOCK_HASH = "000000000000000000035030b3d4ad5ab6aefa1d95af3f1d7a9e6ad5b59b3c1a"
NEXT_BLOCK_HASH = "00000000000000000000b6efb7c0e6bc73fbd77f4bdd7be1d1c11bb1f3e8b5d2"
MERKLE_ROOT = "5e46b5ad9d8f35c19ec2ec7a13ad7b4c9cb8b6d9b1b6e7f4a9ab1cc7cc6b0d64"
SCRIPTHASH = "8b01df4e368ea28f8dc0423bcf7a4923e3a12d307c875e47a0cfbf90b5c39161"
ADDRESS = "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"
SCRIPT_PUBKEY = "0014" + "e8df018c7e326cc253faac7e46cdc51e68542c42"


# ============================================================================
# SAMPLE PAYLOADS
# ============================================================================

@pytest.fixture
def confirmed_status() -> Dict[str, Any]:
    return {
        "confirmed": True,
        "block_height": 800000,
        "block_hash": BLOCK_HASH,
        "block_time": 1690168629,
    }


@pytest.fixture
def unconfirmed_status() -> Dict[str, Any]:
    return {"confirmed": False}


@pytest.fixture
def sample_tx(confirmed_status) -> Dict[str, Any]:
    """Segwit spend as returned by GET /tx/:txid."""
    return {
        "txid": TXID,
        "version": 2,
        "locktime": 799999,
        "vin": [
            {
                "txid": PREV_TXID,
                "vout": 1,
                "prevout": {
                    "scriptpubkey": SCRIPT_PUBKEY,
                    "scriptpubkey_asm": "OP_0 OP_PUSHBYTES_20 e8df018c7e326cc253faac7e46cdc51e68542c42",
                    "scriptpubkey_type": "v0_p2wpkh",
                    "scriptpubkey_address": ADDRESS,
                    "value": 150000,
                },
                "scriptsig": "",
                "scriptsig_asm": "",
                "witness": [
                    "3044022041a3c3e1b1c2d3e4f5a6b7c8d9e0f1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8"
                    "02205f0e1d2c3b4a59687766554433221100ffeeddccbbaa99887766554433221101",
                    "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5",
                ],
                "is_coinbase": False,
                "sequence": 4294967293,
            }
        ],
        "vout": [
            {
                "scriptpubkey": "76a914" + "89abcdefabbaabbaabbaabbaabbaabbaabbaabba" + "88ac",
                "scriptpubkey_type": "p2pkh",
                "scriptpubkey_address": "1DYwPTpZuLjY2qApmJdHaSAuWRvEF5skCN",
                "value": 100000,
            },
            {
                "scriptpubkey": SCRIPT_PUBKEY,
                "scriptpubkey_type": "v0_p2wpkh",
                "scriptpubkey_address": ADDRESS,
                "value": 45000,
            },
        ],
        "size": 225,
        "weight": 573,
        "fee": 5000,
        "status": confirmed_status,
    }


@pytest.fixture
def coinbase_tx(confirmed_status) -> Dict[str, Any]:
    return {
        "txid": PREV_TXID,
        "version": 1,
        "locktime": 0,
        "vin": [
            {
                "txid": "0" * 64,
                "vout": 4294967295,
                "prevout": None,
                "scriptsig": "03003507",
                "witness": [],
                "is_coinbase": True,
                "sequence": 4294967295,
            }
        ],
        "vout": [
            {"scriptpubkey": SCRIPT_PUBKEY, "scriptpubkey_type": "v0_p2wpkh", "value": 625000000},
        ],
        "size": 120,
        "weight": 480,
        "fee": 0,
        "status": confirmed_status,
    }


@pytest.fixture
def sample_block() -> Dict[str, Any]:
    """Block as returned by GET /block/:hash."""
    return {
        "id": BLOCK_HASH,
        "height": 800000,
        "version": 536870912,
        "timestamp": 1690168629,
        "tx_count": 3721,
        "size": 1634361,
        "weight": 3993075,
        "merkle_root": MERKLE_ROOT,
        "previousblockhash": PREV_BLOCK_HASH,
        "mediantime": 1690165851,
        "nonce": 106861918,
        "bits": 386236009,
        "difficulty": 53911173001054.59,
    }


@pytest.fixture
def sample_utxo(confirmed_status) -> Dict[str, Any]:
    return {"txid": TXID, "vout": 1, "status": confirmed_status, "value": 45000}


@pytest.fixture
def sample_stats() -> Dict[str, Any]:
    return {
        "address": ADDRESS,
        "chain_stats": {
            "funded_txo_count": 4,
            "funded_txo_sum": 2150000,
            "spent_txo_count": 2,
            "spent_txo_sum": 1100000,
            "tx_count": 5,
        },
        "mempool_stats": {
            "funded_txo_count": 1,
            "funded_txo_sum": 45000,
            "spent_txo_count": 0,
            "spent_txo_sum": 0,
            "tx_count": 1,
        },
    }


@pytest.fixture
def sample_fee_estimates() -> Dict[str, float]:
    return {"1": 87.882, "2": 87.882, "3": 87.882, "6": 68.285, "144": 1.027, "1008": 1.0}


@pytest.fixture
def sample_merkle_proof() -> Dict[str, Any]:
    return {
        "block_height": 800000,
        "merkle": [PREV_TXID, NEXT_BLOCK_HASH, MERKLE_ROOT],
        "pos": 5,
    }


def json_response(payload: Any, status: int = 200, headers: Dict[str, str] = None) -> RawResponse:
    return RawResponse(
        status=status,
        body=json.dumps(payload).encode("utf-8"),
        headers=headers or {"Content-Type": "application/json"},
    )


def text_response(text: str, status: int = 200, headers: Dict[str, str] = None) -> RawResponse:
    return RawResponse(status=status, body=text.encode("utf-8"), headers=headers or {"Content-Type": "text/plain"})


# ============================================================================
# SCRIPTED TRANSPORTS
# ============================================================================

class ScriptedTransport:
    """Blocking transport replaying a fixed script of responses or errors."""

    def __init__(self, script: List[Any]):
        self.script = list(script)
        self.requests = []
        self.closed = False

    def send(self, request):
        self.requests.append(request)
        outcome = self.script.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return copy.deepcopy(outcome)

    def close(self):
        self.closed = True


class AsyncScriptedTransport(ScriptedTransport):
    """Async twin of ScriptedTransport."""

    async def send(self, request):
        await asyncio.sleep(0)
        return ScriptedTransport.send(self, request)

    async def aclose(self):
        self.closed = True


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


class AsyncRecordingSleep(RecordingSleep):

    async def __call__(self, seconds):
        self.delays.append(seconds)


# ============================================================================
# CONFIG FIXTURES
# ============================================================================

@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(
        base_url="https://esplora.test/api/",
        timeout=5.0,
        max_retries=3,
        base_delay=0.1,
        max_delay=2.0,
        max_retry_after=60.0,
    )
