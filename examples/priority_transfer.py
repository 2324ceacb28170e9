#!/usr/bin/env python3
"""
Send 0.001 SOL with a LightSpeed priority tip, then wait for confirmation.

Reads RPC_ENDPOINT, RPC_LIGHTSPEED_ENDPOINT, WALLET_PATH, USE_LIGHTSPEED and
DEFAULT_RECIPIENT from the environment or a local .env file.
"""

import logging
import sys

import anyio

from lightspeed_tips.client import LightspeedClient
from lightspeed_tips.config import ConfigError, load_settings
from lightspeed_tips.scenarios import show_summary, sol_transfer
from lightspeed_tips.wallet import WalletError, load_wallet


async def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        settings = load_settings()
        wallet = load_wallet(settings.wallet_path)
    except (ConfigError, WalletError) as e:
        print(f"Setup failed: {e}")
        sys.exit(1)

    print(f"Submission endpoint: {settings.submission_endpoint}")

    async with LightspeedClient(settings) as client:
        await show_summary(client, wallet)
        result = await sol_transfer(client, wallet)

    if result is None:
        print("Transfer aborted")
    else:
        print(f"Signature: {result.signature}")
        print(f"Status: {result.status.value}")
        print(f"Explorer: https://solscan.io/tx/{result.signature}")


if __name__ == "__main__":
    anyio.run(main)
