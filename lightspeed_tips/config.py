import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from solders.pubkey import Pubkey

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

# LightSpeed priority tip, 0.001 SOL
TIP_LAMPORTS = 1_000_000
TIP_ACCOUNT = "53PhM3UTdMQWu5t81wcd35AHGc5xpmHoRjem7GQPvXjA"

DEFAULT_COMPUTE_UNITS = 200_000
DEFAULT_PRIORITY_FEE = 1_000  # micro-lamports per compute unit

TX_FEE_LAMPORTS = 5_000
TOKEN_ACCOUNT_RENT_LAMPORTS = 2_039_280

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDC_DECIMALS = 6

DEFAULT_JUPITER_API = "https://quote-api.jup.ag/v6"


class ConfigError(ValueError):
    """Raised when the environment does not describe a usable setup."""


@dataclass(frozen=True)
class TipPolicy:
    enabled: bool
    lamports: int = TIP_LAMPORTS
    account: str = TIP_ACCOUNT


@dataclass(frozen=True)
class Settings:
    rpc_endpoint: str
    lightspeed_endpoint: str
    wallet_path: Path
    tip: TipPolicy = field(default_factory=lambda: TipPolicy(enabled=False))
    default_recipient: str = SOL_MINT
    jupiter_api_url: str = DEFAULT_JUPITER_API

    @property
    def submission_endpoint(self) -> str:
        """Endpoint transactions are sent to: the relay only when tipping."""
        return self.lightspeed_endpoint if self.tip.enabled else self.rpc_endpoint

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        rpc_endpoint = _require(env, "RPC_ENDPOINT")
        lightspeed_endpoint = _require(env, "RPC_LIGHTSPEED_ENDPOINT")
        wallet_path = Path(_require(env, "WALLET_PATH")).expanduser().resolve()

        recipient = env.get("DEFAULT_RECIPIENT", "").strip()
        if not recipient:
            logger.warning("DEFAULT_RECIPIENT not set, using placeholder %s", SOL_MINT)
            recipient = SOL_MINT
        _parse_address("DEFAULT_RECIPIENT", recipient)

        tip = TipPolicy(
            enabled=env.get("USE_LIGHTSPEED", "").strip().lower() == "true",
            lamports=_parse_lamports(env.get("LIGHTSPEED_TIP_LAMPORTS")),
            account=_parse_address(
                "LIGHTSPEED_TIP_ACCOUNT",
                env.get("LIGHTSPEED_TIP_ACCOUNT", "").strip() or TIP_ACCOUNT,
            ),
        )

        return cls(
            rpc_endpoint=rpc_endpoint,
            lightspeed_endpoint=lightspeed_endpoint,
            wallet_path=wallet_path,
            tip=tip,
            default_recipient=recipient,
            jupiter_api_url=env.get("JUPITER_API_URL", "").strip().rstrip("/") or DEFAULT_JUPITER_API,
        )


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigError(f"{name} is not set in the environment or .env file")
    return value


def _parse_address(name: str, value: str) -> str:
    try:
        Pubkey.from_string(value)
    except ValueError:
        raise ConfigError(f"{name} is not a valid Solana address: {value!r}")
    return value


def _parse_lamports(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return TIP_LAMPORTS
    try:
        lamports = int(raw)
    except ValueError:
        raise ConfigError(f"LIGHTSPEED_TIP_LAMPORTS must be an integer, got {raw!r}")
    if lamports < 0:
        raise ConfigError("LIGHTSPEED_TIP_LAMPORTS must not be negative")
    return lamports


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load a .env file (process variables take precedence) and build Settings."""
    load_dotenv(env_file, override=False)
    return Settings.from_env()
