"""Command-line interface for the Esplora client."""

import json
import sys
from dataclasses import fields, is_dataclass
from typing import Any, Optional

import click
import structlog

from esplora_client.core.blocking_client import BlockingClient
from esplora_client.core.errors import EsploraError
from esplora_client.models.chain import FeeEstimateTable, Hash256
from esplora_client.models.config import ClientConfig
from esplora_client.utils.logging import setup_logging

logger = structlog.get_logger(__name__)


def _plain(value: Any) -> Any:
    """Convert chain models into JSON-friendly values."""
    if isinstance(value, Hash256):
        return value.to_hex()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, FeeEstimateTable):
        return {str(target): rate for target, rate in sorted(value.rates.items())}
    if is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _emit(value: Any) -> None:
    click.echo(json.dumps(_plain(value), indent=2))


def _run(ctx, method: str, *args) -> Any:
    client = ctx.obj['client']
    try:
        return getattr(client, method)(*args)
    except (EsploraError, ValueError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


@click.group()
@click.option('--base-url', '-u', default=None,
              help='Esplora API base URL (default: ESPLORA_BASE_URL or blockstream.info)')
@click.option('--log-level', '-l', default='WARNING',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, base_url: Optional[str], log_level: str):
    """Esplora block explorer client CLI."""
    ctx.ensure_object(dict)

    try:
        overrides = {"log_level": log_level}
        if base_url:
            overrides["base_url"] = base_url
        config = ClientConfig(**overrides)
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    setup_logging(config)
    ctx.obj['config'] = config
    ctx.obj['client'] = ctx.with_resource(BlockingClient(config))


@cli.command()
@click.pass_context
def tip(ctx):
    """Show the chain tip height and hash."""
    height = _run(ctx, "get_height")
    tip_hash = _run(ctx, "get_tip_hash")
    _emit({"height": height, "hash": tip_hash})


@cli.command()
@click.argument('txid')
@click.pass_context
def tx(ctx, txid: str):
    """Show a transaction."""
    transaction = _run(ctx, "get_tx", txid)
    if transaction is None:
        click.echo(f"❌ Transaction {txid} not found", err=True)
        sys.exit(1)
    _emit(transaction)


@cli.command()
@click.argument('txid')
@click.pass_context
def status(ctx, txid: str):
    """Show the confirmation status of a transaction."""
    _emit(_run(ctx, "get_tx_status", txid))


@cli.command()
@click.option('--target', '-t', type=int, default=None,
              help='Confirmation target in blocks')
@click.pass_context
def fees(ctx, target: Optional[int]):
    """Show fee estimates (sat/vB)."""
    estimates = _run(ctx, "get_fee_estimates")
    if target is None:
        _emit(estimates)
        return
    _emit({"target": target, "fee_rate": estimates.for_target(target)})


@cli.command()
@click.argument('scripthash')
@click.pass_context
def utxos(ctx, scripthash: str):
    """List unspent outputs of a script hash."""
    _emit(_run(ctx, "get_scripthash_utxos", scripthash))


@cli.command()
@click.argument('raw_tx_hex')
@click.pass_context
def broadcast(ctx, raw_tx_hex: str):
    """Broadcast a signed raw transaction."""
    txid = _run(ctx, "broadcast", raw_tx_hex)
    logger.info("Transaction broadcast", txid=str(txid))
    _emit({"txid": txid})


@cli.command()
@click.argument('txid')
@click.pass_context
def verify(ctx, txid: str):
    """Verify a transaction's merkle proof against its block header."""
    included = _run(ctx, "check_inclusion", txid)
    _emit({"txid": txid, "included": included})
    if not included:
        sys.exit(2)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
