import json
from pathlib import Path
from typing import Union

from solders.keypair import Keypair


class WalletError(ValueError):
    """Raised when a keypair file cannot be turned into a signer."""


def load_wallet(path: Union[str, Path]) -> Keypair:
    """
    Load a keypair from a Solana CLI style JSON file.

    The file holds the 64 byte secret key as a JSON array of integers.

    Raises:
        WalletError: If the file is missing or does not contain a valid key
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise WalletError(f"Cannot read wallet file {path}: {e}")

    try:
        secret = json.loads(raw)
    except json.JSONDecodeError as e:
        raise WalletError(f"Wallet file {path} is not valid JSON: {e}")

    if not isinstance(secret, list) or len(secret) != 64:
        raise WalletError(f"Wallet file {path} must contain a 64 byte array")
    if not all(isinstance(b, int) and 0 <= b <= 255 for b in secret):
        raise WalletError(f"Wallet file {path} contains values outside 0-255")

    try:
        return Keypair.from_bytes(bytes(secret))
    except (ValueError, TypeError) as e:
        raise WalletError(f"Invalid keypair in {path}: {e}")
