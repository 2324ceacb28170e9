import base64
import logging
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

import aiohttp
import base58
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Processed
from solders.address_lookup_table_account import (
    AddressLookupTable,
    AddressLookupTableAccount,
)
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from .config import Settings
from .pipeline import (
    ConfirmationResult,
    ConfirmationStatus,
    monitor_status,
    send_with_retry,
)

logger = logging.getLogger(__name__)


class LightspeedClient:
    """
    Network boundary for the tipped transaction pipeline.

    Reads (balances, accounts, blockhashes, statuses) go to the basic RPC
    endpoint through solana-py. Submissions go to the submission endpoint
    with a raw JSON-RPC ``sendTransaction`` call.
    """

    def __init__(self, settings: Settings, rpc: Optional[AsyncClient] = None):
        self.settings = settings
        self.rpc = rpc or AsyncClient(settings.rpc_endpoint, commitment=Processed)

    async def __aenter__(self) -> "LightspeedClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.rpc.close()

    async def get_balance(self, pubkey: Pubkey) -> int:
        resp = await self.rpc.get_balance(pubkey)
        return resp.value

    async def get_latest_blockhash(self) -> Hash:
        resp = await self.rpc.get_latest_blockhash(Processed)
        return resp.value.blockhash

    async def account_exists(self, pubkey: Pubkey) -> bool:
        resp = await self.rpc.get_account_info(pubkey)
        return resp.value is not None

    async def get_token_balance(self, token_account: Pubkey) -> Optional[tuple[Decimal, int]]:
        """UI balance and decimals of a token account, None if it does not exist."""
        if not await self.account_exists(token_account):
            return None
        resp = await self.rpc.get_token_account_balance(token_account)
        amount = resp.value
        ui_amount = Decimal(amount.ui_amount_string) if amount.ui_amount_string else Decimal(0)
        return ui_amount, amount.decimals

    async def get_lookup_tables(self, addresses: Sequence[str]) -> list[AddressLookupTableAccount]:
        """Resolve address lookup tables; tables that cannot be found are skipped."""
        tables = []
        for address in addresses:
            key = Pubkey.from_string(address)
            resp = await self.rpc.get_account_info(key)
            if resp.value is None:
                logger.warning("Lookup table %s not found, skipping", address)
                continue
            table = AddressLookupTable.deserialize(bytes(resp.value.data))
            tables.append(AddressLookupTableAccount(key=key, addresses=list(table.addresses)))
        return tables

    async def get_signature_status(self, signature: str) -> ConfirmationResult:
        resp = await self.rpc.get_signature_statuses([Signature.from_string(signature)])
        status = resp.value[0] if resp.value else None

        if status is None:
            return ConfirmationResult(signature, ConfirmationStatus.PENDING)
        if status.err is not None:
            return ConfirmationResult(signature, ConfirmationStatus.FAILED, error=status.err)
        if status.confirmation_status == TransactionConfirmationStatus.Finalized:
            return ConfirmationResult(signature, ConfirmationStatus.FINALIZED)
        if status.confirmation_status == TransactionConfirmationStatus.Confirmed:
            return ConfirmationResult(signature, ConfirmationStatus.CONFIRMED)
        return ConfirmationResult(signature, ConfirmationStatus.PENDING)

    async def build_transaction(
        self,
        payer: Keypair,
        instructions: Sequence[Instruction],
        lookup_tables: Sequence[AddressLookupTableAccount] = (),
    ) -> VersionedTransaction:
        """Compile a v0 message against a fresh blockhash and sign it."""
        blockhash = await self.get_latest_blockhash()
        message = MessageV0.try_compile(
            payer=payer.pubkey(),
            instructions=list(instructions),
            address_lookup_table_accounts=list(lookup_tables),
            recent_blockhash=blockhash,
        )
        return VersionedTransaction(message, [payer])

    async def send_transaction(
        self,
        transaction: Union[VersionedTransaction, bytes, str],
        encoding: str = "base64",
        skip_preflight: bool = True,
        preflight_commitment: str = "processed",
        max_retries: int = 3,
    ) -> str:
        """
        Submit a signed transaction once using JSON-RPC.

        Args:
            transaction: Signed transaction, its bytes, or an already encoded string
            encoding: Encoding for the wire ("base58" or "base64")
            skip_preflight: Whether to skip preflight checks
            preflight_commitment: Commitment level for preflight checks
            max_retries: How often the endpoint itself may rebroadcast

        Returns:
            The transaction signature

        Raises:
            ValueError: If the transaction or the response is malformed
            aiohttp.ClientError: If the network request fails
        """
        endpoint = self.settings.submission_endpoint

        if isinstance(transaction, VersionedTransaction):
            transaction = bytes(transaction)

        if isinstance(transaction, str):
            tx_encoded = transaction
        elif isinstance(transaction, bytes):
            if encoding == "base58":
                tx_encoded = base58.b58encode(transaction).decode("ascii")
            elif encoding == "base64":
                tx_encoded = base64.b64encode(transaction).decode("ascii")
            else:
                raise ValueError(f"Unsupported encoding: {encoding}")
        else:
            raise ValueError("Transaction must be a VersionedTransaction, bytes or string")

        logger.debug("Sending transaction (%d chars) to %s", len(tx_encoded), endpoint)

        options = {
            "encoding": encoding,
            "skipPreflight": skip_preflight,
            "maxRetries": max_retries,
        }
        if preflight_commitment:
            options["preflightCommitment"] = preflight_commitment

        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendTransaction",
            "params": [tx_encoded, options],
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(endpoint, json=payload, timeout=aiohttp.ClientTimeout(total=30)) as response:
                response.raise_for_status()
                result = await response.json()

        if "error" in result:
            error_msg = result["error"].get("message", "Unknown error")
            raise ValueError(f"Transaction submission failed: {error_msg}")

        if "result" not in result:
            raise ValueError("Invalid response format: missing 'result' field")

        return result["result"]

    async def send_with_retry(
        self,
        transaction: VersionedTransaction,
        max_attempts: int = 3,
    ) -> Optional[str]:
        return await send_with_retry(self.send_transaction, transaction, max_attempts)

    async def monitor_status(
        self,
        signature: str,
        timeout_ms: int = 30_000,
        interval_ms: int = 1_000,
    ) -> ConfirmationResult:
        return await monitor_status(self.get_signature_status, signature, timeout_ms, interval_ms)
