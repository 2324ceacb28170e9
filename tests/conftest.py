import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from solana.exceptions import SolanaRpcException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lightspeed_tips.client import LightspeedClient
from lightspeed_tips.config import Settings, TipPolicy

os.environ.setdefault("LIGHTSPEED_LOG_LEVEL", "DEBUG")

RPC_URL = "https://rpc.test/rpc"
LIGHTSPEED_URL = "https://lightspeed.test/rpc"
JUPITER_URL = "https://jup.test/v6"


def make_settings(tmp_path, tip_enabled=False, recipient=None):
    return Settings(
        rpc_endpoint=RPC_URL,
        lightspeed_endpoint=LIGHTSPEED_URL,
        wallet_path=tmp_path / "id.json",
        tip=TipPolicy(enabled=tip_enabled),
        default_recipient=recipient or str(Pubkey.new_unique()),
        jupiter_api_url=JUPITER_URL,
    )


@pytest.fixture
def wallet():
    return Keypair()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def tip_settings(tmp_path):
    return make_settings(tmp_path, tip_enabled=True)


@pytest.fixture
def rpc():
    """solana-py AsyncClient double with a funded wallet and a fresh blockhash."""
    mock = AsyncMock()
    mock.get_balance.return_value = MagicMock(value=10_000_000)
    mock.get_latest_blockhash.return_value = MagicMock(value=MagicMock(blockhash=Hash.default()))
    mock.get_account_info.return_value = MagicMock(value=MagicMock())
    return mock


@pytest.fixture
def client(settings, rpc):
    return LightspeedClient(settings, rpc=rpc)


@pytest.fixture
def tip_client(tip_settings, rpc):
    return LightspeedClient(tip_settings, rpc=rpc)


class RpcUnavailable(SolanaRpcException):
    """SolanaRpcException carrying a plain message, as raised by a failing node."""

    def __init__(self, message="connection reset by peer"):
        Exception.__init__(self, message)
        self.error_msg = message
