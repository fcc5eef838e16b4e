"""
sharesweep CLI - check balances, quote fees and move funds from a recovered key.
"""

from __future__ import annotations

import asyncio
import math
import sys

import typer
from coincurve import PrivateKey
from loguru import logger

from sharesweep.backends.whatsonchain import WhatsOnChainBackend
from sharesweep.balance import (
    BalanceAggregator,
    BalancePoller,
    coins_to_satoshis,
    format_coins,
    format_satoshis,
    get_explorer_url,
    get_tx_explorer_url,
)
from sharesweep.config import Settings, get_settings
from sharesweep.errors import TransferError
from sharesweep.fees import get_fee_rates
from sharesweep.keys import CoincurveKeyManager, private_key_from_wif
from sharesweep.models import (
    BalanceSnapshot,
    FeeQuote,
    NetworkType,
    TransferRequest,
    TransferResult,
)
from sharesweep.transfer import TransferOrchestrator, validate_request

app = typer.Typer(
    name="sharesweep",
    help="Recover a key from backup shares and transfer its funds",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _make_backend(settings: Settings) -> WhatsOnChainBackend:
    return WhatsOnChainBackend(
        base_url=settings.indexer_url,
        user_agent=settings.user_agent,
        timeout=settings.request_timeout,
    )


def _print_snapshot(address: str, snapshot: BalanceSnapshot) -> None:
    typer.echo(f"\nAddress:     {address}")
    typer.echo(
        f"Confirmed:   {format_coins(snapshot.confirmed_coins)} BSV "
        f"({format_satoshis(snapshot.confirmed)} sats)"
    )
    typer.echo(
        f"Unconfirmed: {format_coins(snapshot.unconfirmed_coins)} BSV "
        f"({format_satoshis(snapshot.unconfirmed)} sats)"
    )
    typer.echo(
        f"Total:       {format_coins(snapshot.total_coins)} BSV "
        f"({format_satoshis(snapshot.total)} sats)"
    )


@app.command()
def balance(
    address: str = typer.Argument(..., help="Address to query"),
    network: NetworkType = typer.Option(None, "--network", "-n", help="mainnet | testnet"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show confirmed and unconfirmed balance of an address."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    network = network or settings.network

    try:
        snapshot = asyncio.run(_fetch_balance(settings, network, address))
    except TransferError as e:
        logger.error(f"Failed to fetch balance: {e}")
        raise typer.Exit(1)

    _print_snapshot(address, snapshot)
    typer.echo(f"Explorer:    {get_explorer_url(network, address)}")


async def _fetch_balance(
    settings: Settings, network: NetworkType, address: str
) -> BalanceSnapshot:
    backend = _make_backend(settings)
    try:
        return await BalanceAggregator(backend).fetch_balance(network, address)
    finally:
        await backend.close()


@app.command()
def watch(
    address: str = typer.Argument(..., help="Address to watch"),
    network: NetworkType = typer.Option(None, "--network", "-n", help="mainnet | testnet"),
    interval: float = typer.Option(None, "--interval", "-i", help="Seconds between refreshes"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Poll the balance of an address until interrupted."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    if interval is None:
        interval = settings.balance_poll_interval
    if not math.isfinite(interval) or interval <= 0:
        logger.error("Interval must be a positive number of seconds")
        raise typer.Exit(1)

    try:
        asyncio.run(_watch_balance(settings, network or settings.network, address, interval))
    except KeyboardInterrupt:
        typer.echo("\nStopped.")


async def _watch_balance(
    settings: Settings, network: NetworkType, address: str, interval: float
) -> None:
    backend = _make_backend(settings)
    poller = BalancePoller(
        BalanceAggregator(backend),
        network,
        address,
        on_update=lambda snapshot: _print_snapshot(address, snapshot),
        interval=interval,
    )
    handle = poller.start()
    try:
        await handle.wait()
    finally:
        handle.cancel()
        await backend.close()


@app.command("fee-rates")
def fee_rates() -> None:
    """Show the fee rate presets (sats/byte)."""
    rates = get_fee_rates()
    typer.echo(f"slow:   {rates.slow}")
    typer.echo(f"normal: {rates.normal}")
    typer.echo(f"fast:   {rates.fast}")


@app.command()
def quote(
    address: str = typer.Argument(..., help="Source address"),
    network: NetworkType = typer.Option(None, "--network", "-n", help="mainnet | testnet"),
    fee_rate: float = typer.Option(None, "--fee-rate", "-r", help="Fee rate in sats/byte"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Predict the fee of spending everything at an address."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    network = network or settings.network
    if fee_rate is None:
        fee_rate = settings.default_fee_rate

    if not math.isfinite(fee_rate) or fee_rate <= 0:
        logger.error(f"Fee rate must be a positive number, got {fee_rate}")
        raise typer.Exit(1)

    try:
        fee_quote = asyncio.run(_quote(settings, network, address, fee_rate))
    except TransferError as e:
        logger.error(f"Failed to quote: {e}")
        raise typer.Exit(1)

    typer.echo(f"\nUTXOs:        {fee_quote.input_count}")
    typer.echo(f"Available:    {format_satoshis(fee_quote.available)} sats")
    typer.echo(f"Fee:          {format_satoshis(fee_quote.fee)} sats @ {fee_rate} sats/byte")
    typer.echo(f"Max sendable: {format_satoshis(fee_quote.max_sendable)} sats")


async def _quote(
    settings: Settings, network: NetworkType, address: str, fee_rate: float
) -> FeeQuote:
    backend = _make_backend(settings)
    try:
        return await TransferOrchestrator(backend).quote(address, network, fee_rate)
    finally:
        await backend.close()


def _load_key(
    key_manager: CoincurveKeyManager,
    wif: str | None,
    shares: list[str] | None,
    threshold: int | None,
    network: NetworkType,
) -> PrivateKey:
    if wif and shares:
        raise typer.BadParameter("Use either --wif or --share, not both")

    if wif:
        try:
            private_key, wif_network = private_key_from_wif(wif)
        except ValueError as e:
            raise typer.BadParameter(str(e)) from e
        if wif_network != network:
            raise typer.BadParameter(f"WIF is for {wif_network.value}, not {network.value}")
        return private_key

    if shares:
        if threshold is None:
            raise typer.BadParameter("--threshold is required with --share")
        return key_manager.reconstruct_from_shares(shares, threshold)

    raise typer.BadParameter("A key is required: --wif or --share (with --threshold)")


@app.command()
def transfer(
    destination: str = typer.Argument(..., help="Recipient address"),
    amount: str = typer.Option(None, "--amount", "-a", help="Amount in BSV"),
    sweep: bool = typer.Option(False, "--sweep", help="Send everything minus fee"),
    wif: str = typer.Option(None, "--wif", envvar="SHARESWEEP_WIF", help="Source key (WIF)"),
    shares: list[str] = typer.Option(None, "--share", "-s", help="Backup share (repeatable)"),
    threshold: int = typer.Option(None, "--threshold", "-t", help="Shares needed to recover"),
    network: NetworkType = typer.Option(None, "--network", "-n", help="mainnet | testnet"),
    fee_rate: float = typer.Option(None, "--fee-rate", "-r", help="Fee rate in sats/byte"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Send a fixed amount, or sweep everything, to DESTINATION."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    network = network or settings.network
    if fee_rate is None:
        fee_rate = settings.default_fee_rate

    if sweep == (amount is not None):
        logger.error("Specify exactly one of --amount or --sweep")
        raise typer.Exit(1)

    amount_sats = None
    if amount is not None:
        try:
            amount_sats = coins_to_satoshis(amount)
        except ValueError as e:
            logger.error(str(e))
            raise typer.Exit(1)

    key_manager = CoincurveKeyManager()
    try:
        private_key = _load_key(key_manager, wif, shares, threshold, network)
    except TransferError as e:
        logger.error(f"Failed to recover key: {e}")
        raise typer.Exit(1)

    request = TransferRequest(
        source_key=private_key,
        destination=destination,
        network=network,
        fee_rate=fee_rate,
        amount=amount_sats,
        sweep=sweep,
    )
    try:
        validate_request(request)
    except TransferError as e:
        logger.error(f"Invalid transfer: {e}")
        raise typer.Exit(1)

    try:
        result = asyncio.run(_run_transfer(settings, key_manager, request, yes))
    except TransferError as e:
        logger.error(f"Transfer failed: {e}")
        raise typer.Exit(1)

    if result is None:
        typer.echo("Aborted.")
        raise typer.Exit(1)

    typer.echo(f"\nTransaction: {result.txid}")
    typer.echo(f"Sent:        {format_satoshis(result.total_sent)} sats")
    typer.echo(f"Fee:         {format_satoshis(result.fee)} sats")
    typer.echo(f"Explorer:    {get_tx_explorer_url(network, result.txid)}")


async def _run_transfer(
    settings: Settings,
    key_manager: CoincurveKeyManager,
    request: TransferRequest,
    yes: bool,
) -> TransferResult | None:
    backend = _make_backend(settings)
    orchestrator = TransferOrchestrator(
        backend,
        key_manager=key_manager,
        batch_size=settings.enrich_batch_size,
        batch_delay=settings.enrich_batch_delay,
    )
    try:
        # The draft shown here is exactly the one signed and broadcast
        prepared = await orchestrator.prepare(request)

        typer.echo(f"\nFrom:   {prepared.source_address}")
        typer.echo(f"To:     {request.destination}")
        typer.echo(f"Amount: {format_satoshis(prepared.total_sent)} sats")
        typer.echo(f"Fee:    {format_satoshis(prepared.fee)} sats")
        if not yes and not typer.confirm("Broadcast this transaction?"):
            return None

        return await orchestrator.commit(prepared)
    finally:
        await backend.close()


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
