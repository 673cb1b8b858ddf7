"""
GotSOL relay operator CLI.

Usage:
    gotsol-relay [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import NetworkVariant, RelaySettings, get_settings
from .exceptions import RelayError, ValidationError
from .fee_payer import FeeSponsorshipSigner, load_fee_payer
from .logging_utils import setup_logging
from .payment_request import PaymentRequestBuilder, parse_network
from .registry import MerchantRegistry
from .solana.client import SolanaClient, get_solana_config
from .stablecoins import STABLECOINS

console = Console()

NETWORK_CHOICES = click.Choice(["production", "test", "mainnet", "devnet"], case_sensitive=False)


def _network(settings: RelaySettings, value: Optional[str]) -> NetworkVariant:
    return parse_network(value) if value else settings.default_network


@click.group()
@click.version_option(version=__version__, message="%(prog)s %(version)s")
@click.option("--log-level", envvar="GOTSOL_LOG_LEVEL", default=None, help="Logging level")
@click.pass_context
def cli(ctx, log_level: Optional[str]):
    """GotSOL relay - fee-sponsored stablecoin payments on Solana."""
    ctx.ensure_object(dict)
    settings = get_settings()
    setup_logging(level=log_level or settings.log_level, json_format=settings.log_json)
    ctx.obj["settings"] = settings


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
@click.pass_context
def serve(ctx, host: str, port: int):
    """Run the relay HTTP API."""
    import uvicorn

    from .api import create_app

    settings: RelaySettings = ctx.obj["settings"]
    try:
        app = create_app(settings)
    except RelayError as e:
        console.print(f"[red]Refusing to start: {e.message}[/red]")
        ctx.exit(1)

    console.print(f"[bold blue]GotSOL relay[/bold blue] listening on [cyan]{host}:{port}[/cyan]")
    uvicorn.run(app, host=host, port=port, log_config=None)


@cli.group(name="fee-payer")
def fee_payer():
    """Fee payer funding."""
    pass


@fee_payer.command()
@click.option("--network", type=NETWORK_CHOICES, default=None, help="Network to check")
@click.pass_context
def status(ctx, network: Optional[str]):
    """Show fee payer balance and refill estimate."""
    settings: RelaySettings = ctx.obj["settings"]
    variant = _network(settings, network)

    async def _status():
        secret = settings.fee_payer_private_key.get_secret_value() if settings.fee_payer_private_key else None
        identity = load_fee_payer(secret)
        client = SolanaClient(get_solana_config(settings, variant))
        try:
            return await FeeSponsorshipSigner(identity, client, settings.safety_floor_lamports).status()
        finally:
            await client.close()

    try:
        result = asyncio.run(_status())
    except RelayError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        ctx.exit(1)

    colour = {"good": "green", "warning": "yellow", "critical": "red"}[result.health]
    console.print(f"\n[bold blue]Fee Payer ({variant.cluster})[/bold blue]\n")
    console.print(f"Address: [cyan]{result.address}[/cyan]")
    console.print(f"Balance: {result.balance_sol:.4f} SOL ({result.balance_lamports} lamports)")
    console.print(f"Health: [{colour}]{result.health}[/{colour}]")
    console.print(f"Can sponsor: {'yes' if result.can_sponsor else '[red]no[/red]'}")
    console.print(f"Estimated transactions: {result.estimated_transactions}")
    console.print(f"Estimated ATA creations: {result.estimated_ata_creations}")
    console.print()


@cli.command()
@click.argument("owner")
@click.option("--network", type=NETWORK_CHOICES, default=None, help="Network to query")
@click.pass_context
def merchants(ctx, owner: str, network: Optional[str]):
    """List active merchants owned by OWNER."""
    settings: RelaySettings = ctx.obj["settings"]
    variant = _network(settings, network)

    async def _find():
        client = SolanaClient(get_solana_config(settings, variant))
        try:
            registry = MerchantRegistry(client, settings.program_id)
            return await registry.find_merchants_by_owner(owner)
        finally:
            await client.close()

    try:
        found = asyncio.run(_find())
    except RelayError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        ctx.exit(1)

    if not found:
        console.print("[yellow]No active merchants found[/yellow]")
        return

    table = Table(title=f"Merchants ({variant.cluster})")
    table.add_column("Name", style="cyan")
    table.add_column("Address")
    table.add_column("Fee side")
    table.add_column("Withdrawn (base units)", justify="right")
    table.add_column("Refunded (base units)", justify="right")
    for merchant in found:
        table.add_row(
            merchant.entity_name,
            merchant.address,
            "merchant" if merchant.fee_eligible else "customer",
            str(merchant.total_withdrawn),
            str(merchant.total_refunded),
        )
    console.print(table)


@cli.command()
@click.option("--merchant", required=True, help="Merchant account address")
@click.option("--amount", required=True, help="Amount in display units, e.g. 12.34")
@click.option("--network", type=NETWORK_CHOICES, default=None, help="Settlement network")
@click.option("--token", default="USDC", help="Payment token")
@click.option("--memo", default=None, help="Optional memo")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write the QR code PNG here")
@click.pass_context
def qr(ctx, merchant: str, amount: str, network: Optional[str], token: str,
       memo: Optional[str], output: Optional[Path]):
    """Create a payment link and QR code."""
    settings: RelaySettings = ctx.obj["settings"]
    builder = PaymentRequestBuilder(settings.public_base_url)
    try:
        descriptor = builder.build(
            merchant, amount, _network(settings, network), memo=memo, token=token,
        )
    except ValidationError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        ctx.exit(1)

    console.print(f"[bold]Payment link[/bold]: {descriptor.url}")
    console.print(
        f"Amount: {descriptor.request.display_amount} {descriptor.request.token.symbol} "
        f"({descriptor.request.amount_base_units} base units)"
    )
    if output:
        output.write_bytes(descriptor.qr_png)
        console.print(f"QR code written to [cyan]{output}[/cyan]")


@cli.command()
def stablecoins():
    """List supported payment tokens."""
    table = Table(title="Supported Tokens")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    table.add_column("Decimals", justify="right")
    table.add_column("Mainnet mint")
    table.add_column("Devnet mint")
    for coin in STABLECOINS.values():
        table.add_row(
            coin.symbol,
            coin.display_name,
            str(coin.decimals),
            coin.mainnet_mint,
            coin.devnet_mint,
        )
    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
