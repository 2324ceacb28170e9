import asyncio
import os
import signal
import subprocess
import time
from typing import Optional

import pytest
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from lightspeed_tips.client import LightspeedClient
from lightspeed_tips.config import TIP_ACCOUNT, Settings, TipPolicy
from lightspeed_tips.pipeline import ConfirmationStatus
from lightspeed_tips.scenarios import sol_transfer


class LocalSolanaValidator:
    """Manages a local Solana test validator for integration testing."""

    def __init__(self, rpc_port: int = 8899, faucet_port: int = 9900):
        self.rpc_port = rpc_port
        self.faucet_port = faucet_port
        self.process: Optional[subprocess.Popen] = None
        self.rpc_url = f"http://localhost:{rpc_port}"

    def start(self):
        """Start the local Solana test validator."""
        if self.process is not None:
            return

        cmd = [
            "solana-test-validator",
            "--rpc-port", str(self.rpc_port),
            "--faucet-port", str(self.faucet_port),
            "--reset",
            "--quiet"
        ]

        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                preexec_fn=os.setsid if os.name != 'nt' else None
            )
        except FileNotFoundError:
            pytest.skip("solana-test-validator not found. Install Solana CLI tools.")

        self._wait_for_validator()

    def stop(self):
        """Stop the local Solana test validator."""
        if self.process is None:
            return

        try:
            if os.name != 'nt':
                os.killpg(os.getpgid(self.process.pid), signal.SIGTERM)
            else:
                self.process.terminate()
            self.process.wait(timeout=10)
        except subprocess.TimeoutExpired:
            self.process.kill()
        finally:
            self.process = None

    def _wait_for_validator(self, timeout: int = 30):
        """Wait for the validator to be ready."""
        start_time = time.time()
        while time.time() - start_time < timeout:
            try:
                if asyncio.run(is_connected(self.rpc_url)):
                    return
            except Exception:
                pass
            time.sleep(1)

        self.stop()
        raise TimeoutError("Validator failed to start within timeout")


async def is_connected(rpc_url: str) -> bool:
    async with AsyncClient(rpc_url) as client:
        return await client.is_connected()


async def airdrop(rpc_url: str, pubkey: Pubkey, lamports: int) -> int:
    async with AsyncClient(rpc_url) as client:
        response = await client.request_airdrop(pubkey, lamports)
        await client.confirm_transaction(response.value, commitment=Confirmed)
        return (await client.get_balance(pubkey)).value


@pytest.fixture(scope="session")
def local_validator():
    """Session-scoped fixture for local Solana validator."""
    validator = LocalSolanaValidator()
    validator.start()
    yield validator
    validator.stop()


@pytest.fixture
def funded_keypair(local_validator):
    """Keypair with 1 SOL on the local validator."""
    keypair = Keypair()
    assert asyncio.run(airdrop(local_validator.rpc_url, keypair.pubkey(), 1_000_000_000)) > 0
    return keypair


def local_settings(validator, tmp_path, tip_enabled):
    return Settings(
        rpc_endpoint=validator.rpc_url,
        lightspeed_endpoint=validator.rpc_url,
        wallet_path=tmp_path / "id.json",
        tip=TipPolicy(enabled=tip_enabled),
        default_recipient=str(Keypair().pubkey()),
    )


class TestLocalValidator:
    """Integration tests using local Solana validator."""

    pytestmark = pytest.mark.integration

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tip_enabled", [False, True])
    async def test_sol_transfer_lands(self, local_validator, funded_keypair, tmp_path, tip_enabled):
        settings = local_settings(local_validator, tmp_path, tip_enabled)
        recipient = Keypair().pubkey()

        async with LightspeedClient(settings) as client:
            result = await sol_transfer(client, funded_keypair, str(recipient), 1_000_000)
            tip_balance = await client.get_balance(Pubkey.from_string(TIP_ACCOUNT))
            recipient_balance = await client.get_balance(recipient)

        assert result is not None
        assert result.status.is_success
        assert recipient_balance == 1_000_000
        if tip_enabled:
            assert tip_balance >= 1_000_000

    @pytest.mark.asyncio
    async def test_invalid_transaction_gives_up(self, local_validator, tmp_path):
        settings = local_settings(local_validator, tmp_path, tip_enabled=False)

        async with LightspeedClient(settings) as client:
            assert await client.send_with_retry(b"invalid_transaction_data") is None

    @pytest.mark.asyncio
    async def test_unfunded_wallet_is_stopped_by_guard(self, local_validator, tmp_path):
        settings = local_settings(local_validator, tmp_path, tip_enabled=True)

        async with LightspeedClient(settings) as client:
            assert await sol_transfer(client, Keypair()) is None

    @pytest.mark.asyncio
    async def test_unknown_signature_times_out(self, local_validator, tmp_path):
        settings = local_settings(local_validator, tmp_path, tip_enabled=False)
        unknown = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"

        async with LightspeedClient(settings) as client:
            result = await client.monitor_status(unknown, timeout_ms=1_500, interval_ms=500)

        assert result.status is ConfirmationStatus.TIMED_OUT
