"""
Scenario drivers: native transfer, token transfer and Jupiter swap.

Each driver runs the same sequence (balance guard, compose, tip, build,
sign, send with retry, monitor) and returns the ConfirmationResult of the
submitted transaction, or None when it stopped before sending anything.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

import aiohttp
from solana.exceptions import SolanaRpcException
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from .balance import check_balance, format_sol
from .client import LightspeedClient
from .config import (
    SOL_MINT,
    TOKEN_ACCOUNT_RENT_LAMPORTS,
    TX_FEE_LAMPORTS,
    USDC_DECIMALS,
    USDC_MINT,
)
from .instructions import (
    SWAP_PRIORITY_FEE,
    compose_sol_transfer,
    compose_swap,
    compose_token_transfer,
)
from .jupiter import AggregatorError, JupiterClient, SwapAggregator, describe_route
from .pipeline import ConfirmationResult

logger = logging.getLogger(__name__)

SWAP_NETWORK_FEE_LAMPORTS = 10_000


def _ui_amount(raw: int, decimals: int) -> Decimal:
    return Decimal(raw).scaleb(-decimals)


async def show_summary(client: LightspeedClient, wallet: Keypair) -> int:
    """Log the active tip mode and the wallet balance; returns the balance."""
    tip = client.settings.tip
    logger.info("Solana Vibe Station Priority Transaction Examples")
    logger.info("LightSpeed Mode: %s", "ENABLED" if tip.enabled else "DISABLED")
    if tip.enabled:
        logger.info("Tip Address: %s", tip.account)
        logger.info("Tip Amount: %s", format_sol(tip.lamports))

    balance = await client.get_balance(wallet.pubkey())
    logger.info("Wallet: %s", wallet.pubkey())
    logger.info("Balance: %s", format_sol(balance))
    return balance


async def _submit(client: LightspeedClient, transaction) -> Optional[ConfirmationResult]:
    signature = await client.send_with_retry(transaction)
    if not signature:
        logger.error("Transaction was not accepted by %s", client.settings.submission_endpoint)
        return None

    logger.info("View on Solscan: https://solscan.io/tx/%s", signature)
    return await client.monitor_status(signature)


async def sol_transfer(
    client: LightspeedClient,
    wallet: Keypair,
    recipient: Optional[str] = None,
    lamports: int = 1_000_000,
) -> Optional[ConfirmationResult]:
    logger.info("=== SOL Transfer with LightSpeed Tip ===")
    tip = client.settings.tip
    payer = wallet.pubkey()
    to = Pubkey.from_string(recipient or client.settings.default_recipient)

    balance = await client.get_balance(payer)
    if not check_balance(balance, lamports + TX_FEE_LAMPORTS, tip, "SOL transfer"):
        return None

    instructions = compose_sol_transfer(payer, to, lamports, tip)
    transaction = await client.build_transaction(wallet, instructions)

    result = await _submit(client, transaction)
    if result:
        logger.info("Transfer complete: %s (%s)", result.signature, result.status.value)
    return result


async def token_transfer(
    client: LightspeedClient,
    wallet: Keypair,
    recipient: Optional[str] = None,
    mint: Optional[str] = None,
    amount: int = 1,
) -> Optional[ConfirmationResult]:
    """
    Send SPL tokens, creating the recipient's associated token account if needed.

    Defaults to the smallest USDC unit (0.000001 USDC) to the default recipient.
    """
    logger.info("=== SPL Token Transfer with LightSpeed Tip ===")
    tip = client.settings.tip
    payer = wallet.pubkey()
    to = Pubkey.from_string(recipient or client.settings.default_recipient)
    token_mint = Pubkey.from_string(mint or USDC_MINT)
    token_name = "USDC" if str(token_mint) == USDC_MINT else "tokens"

    logger.info("Token transfer details:")
    logger.info("- Token: %s (%s...)", token_name, str(token_mint)[:8])
    logger.info("- Recipient: %s", to)
    logger.info("- Amount: %d raw units", amount)

    sender_ata = get_associated_token_address(payer, token_mint)
    recipient_ata = get_associated_token_address(to, token_mint)
    needs_account = not await client.account_exists(recipient_ata)

    base_cost = TX_FEE_LAMPORTS + (TOKEN_ACCOUNT_RENT_LAMPORTS if needs_account else 0)
    logger.info("- Recipient needs token account: %s", needs_account)
    logger.info("- SOL needed for fees: %s", format_sol(base_cost))

    balance = await client.get_balance(payer)
    if not check_balance(balance, base_cost, tip, "token transfer"):
        return None

    token_balance = await client.get_token_balance(sender_ata)
    if token_balance is None:
        logger.error("Error: You don't have a token account for this mint")
        logger.error("Token mint: %s", token_mint)
        return None

    held, decimals = token_balance
    wanted = _ui_amount(amount, decimals)
    logger.info("- Your %s balance: %s", token_name, held)
    if held < wanted:
        logger.error("Error: Insufficient %s balance", token_name)
        logger.error("Have: %s %s", held, token_name)
        logger.error("Need: %s %s", wanted, token_name)
        return None

    instructions = compose_token_transfer(
        payer,
        to,
        token_mint,
        amount,
        tip,
        create_recipient_account=needs_account,
    )
    transaction = await client.build_transaction(wallet, instructions)

    result = await _submit(client, transaction)
    if result:
        logger.info("Token transfer complete!")
        logger.info("- Sent: %s %s", wanted, token_name)
        logger.info("- To: %s", to)
        logger.info("- Status: %s", result.status.value)
    return result


async def jupiter_swap(
    client: LightspeedClient,
    wallet: Keypair,
    aggregator: Optional[SwapAggregator] = None,
    amount: int = 1_000_000,
    slippage_bps: int = 100,
    input_mint: str = SOL_MINT,
    output_mint: str = USDC_MINT,
) -> Optional[ConfirmationResult]:
    """
    Swap through the Jupiter aggregator with a LightSpeed tip.

    Aggregator failures abort the swap before anything is signed or sent.
    """
    logger.info("=== Jupiter Swap with LightSpeed Tip ===")
    tip = client.settings.tip
    payer = wallet.pubkey()
    aggregator = aggregator or JupiterClient(client.settings.jupiter_api_url)

    base_cost = amount + SWAP_NETWORK_FEE_LAMPORTS + SWAP_PRIORITY_FEE
    logger.info("Swap details:")
    logger.info("- Input: %d units of %s", amount, input_mint)
    logger.info("- Output: %s", output_mint)
    logger.info("- Slippage: %s%%", Decimal(slippage_bps) / 100)
    logger.info("- Total needed before tip: %s", format_sol(base_cost))

    balance = await client.get_balance(payer)
    if not check_balance(balance, base_cost, tip, "Jupiter swap"):
        return None

    try:
        logger.info("Getting quote from Jupiter...")
        quote = await aggregator.get_quote(input_mint, output_mint, amount, slippage_bps)
        out_amount = int(quote.get("outAmount", 0))
        if output_mint == USDC_MINT:
            logger.info("- Expected output: %s USDC", _ui_amount(out_amount, USDC_DECIMALS))
        else:
            logger.info("- Expected output: %d units", out_amount)
        logger.info("- Route: %s", describe_route(quote))
        logger.info("- Price impact: %s%%", quote.get("priceImpactPct"))

        logger.info("Getting swap instructions...")
        swap_instructions = await aggregator.get_swap_instructions(quote, str(payer))

        lookup_addresses = swap_instructions.get("addressLookupTableAddresses") or []
        lookup_tables = []
        if lookup_addresses:
            logger.info("Loading address lookup tables...")
            lookup_tables = await client.get_lookup_tables(lookup_addresses)

        instructions = compose_swap(payer, swap_instructions, tip)

        logger.info("Building transaction...")
        transaction = await client.build_transaction(wallet, instructions, lookup_tables)
    except AggregatorError as e:
        logger.error("Swap error: %s", e)
        if e.body:
            logger.error("API Error: %s", e.body)
        logger.error(e.describe())
        return None
    except (aiohttp.ClientError, asyncio.TimeoutError, SolanaRpcException, ValueError, KeyError) as e:
        logger.error("Swap error: %s", e)
        return None

    logger.info("Sending swap transaction...")
    result = await _submit(client, transaction)
    if result is None:
        return None

    if result.status.is_success:
        logger.info("Swap confirmed successfully!")
    elif result.error is not None:
        logger.error("Swap failed: %s", result.error)
    return result
