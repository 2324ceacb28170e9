import asyncio
import base64
import binascii
import logging
from typing import Optional

import aiohttp
import typer
from solana.exceptions import SolanaRpcException

from .client import LightspeedClient
from .config import ConfigError, Settings, load_settings
from .pipeline import ConfirmationResult
from .scenarios import jupiter_swap, show_summary, sol_transfer, token_transfer
from .wallet import WalletError, load_wallet

app = typer.Typer(help="Priority-tipped Solana transactions through LightSpeed")


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format="%(message)s", force=True)


def main(
    ctx: typer.Context,
    env_file: Optional[str] = typer.Option(None, help="Path to a .env file"),
    log_level: str = typer.Option("INFO", envvar="LIGHTSPEED_LOG_LEVEL", help="Logging level"),
):
    """Priority-tipped Solana transactions through LightSpeed."""
    try:
        configure_logging(log_level)
    except ValueError:
        typer.echo(f"Invalid log level: {log_level}", err=True)
        raise typer.Exit(1)
    ctx.obj = env_file


def _settings(ctx: typer.Context) -> Settings:
    try:
        return load_settings(ctx.obj)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)


def _startup(ctx: typer.Context):
    settings = _settings(ctx)
    try:
        wallet = load_wallet(settings.wallet_path)
    except WalletError as e:
        typer.echo(f"Wallet error: {e}", err=True)
        raise typer.Exit(1)
    return settings, wallet


def _run(command):
    """Run an async command body; an unreachable node ends the command with status 1."""
    try:
        return asyncio.run(command())
    except (SolanaRpcException, aiohttp.ClientError, asyncio.TimeoutError) as e:
        typer.echo(f"RPC error: {e}", err=True)
        raise typer.Exit(1)


def _report(result: Optional[ConfirmationResult]) -> None:
    if result is None:
        print("aborted: no transaction was confirmed")
        raise typer.Exit(1)
    print(f"{result.status.value}  {result.signature}")
    if not result.status.is_success:
        raise typer.Exit(1)


def info(ctx: typer.Context):
    """Show tip mode, wallet and balance."""
    settings, wallet = _startup(ctx)

    async def run():
        async with LightspeedClient(settings) as client:
            return await show_summary(client, wallet)

    balance = _run(run)
    print(f"{wallet.pubkey()}  {balance} lamports")


def transfer(
    ctx: typer.Context,
    recipient: Optional[str] = typer.Option(None, help="Recipient address (default: DEFAULT_RECIPIENT)"),
    lamports: int = typer.Option(1_000_000, help="Amount in lamports"),
):
    """Send SOL with a priority tip."""
    settings, wallet = _startup(ctx)

    async def run():
        async with LightspeedClient(settings) as client:
            return await sol_transfer(client, wallet, recipient, lamports)

    _report(_run(run))


def token_transfer_command(
    ctx: typer.Context,
    recipient: Optional[str] = typer.Option(None, help="Recipient wallet (default: DEFAULT_RECIPIENT)"),
    mint: Optional[str] = typer.Option(None, help="Token mint (default: USDC)"),
    amount: int = typer.Option(1, help="Amount in raw token units"),
):
    """Send SPL tokens with a priority tip."""
    settings, wallet = _startup(ctx)

    async def run():
        async with LightspeedClient(settings) as client:
            return await token_transfer(client, wallet, recipient, mint, amount)

    _report(_run(run))


def swap(
    ctx: typer.Context,
    amount: int = typer.Option(1_000_000, help="Input amount in lamports"),
    slippage_bps: int = typer.Option(100, help="Slippage tolerance in basis points"),
):
    """Swap SOL to USDC through Jupiter with a priority tip."""
    settings, wallet = _startup(ctx)

    async def run():
        async with LightspeedClient(settings) as client:
            return await jupiter_swap(client, wallet, amount=amount, slippage_bps=slippage_bps)

    _report(_run(run))


def send_raw(
    ctx: typer.Context,
    tx_path: str = typer.Argument(..., help="Path to signed transaction file"),
    encoding: str = typer.Option("auto", help="auto|base64|raw"),
    max_attempts: int = typer.Option(3, help="Submission attempts"),
):
    """Submit an already signed transaction and wait for confirmation."""
    settings = _settings(ctx)

    with open(tx_path, "rb") as f:
        data = f.read().strip() if encoding != "raw" else f.read()

    if encoding == "base64" or (encoding == "auto" and _looks_b64(data)):
        data = base64.b64decode(data)

    async def run():
        async with LightspeedClient(settings) as client:
            signature = await client.send_with_retry(data, max_attempts)
            if not signature:
                return None
            return await client.monitor_status(signature)

    _report(_run(run))


def _looks_b64(data: bytes) -> bool:
    """Check if data looks like base64."""
    try:
        base64.b64decode(data, validate=True)
        return True
    except (binascii.Error, ValueError):
        return False


app.callback()(main)
app.command()(info)
app.command()(transfer)
app.command("token-transfer")(token_transfer_command)
app.command()(swap)
app.command()(send_raw)

if __name__ == "__main__":
    app()
