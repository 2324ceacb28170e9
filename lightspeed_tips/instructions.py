"""
Instruction assembly for tipped transactions.

Every transaction built here has the same shape: compute budget directives
first, the operation itself next, and the LightSpeed tip (when enabled) as
the very last instruction.
"""

import base64
import logging
from typing import Any, List, Mapping

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    create_associated_token_account,
    get_associated_token_address,
)
from spl.token.instructions import transfer as token_transfer
from spl.token.models import TransferParams as TokenTransferParams

from .config import DEFAULT_COMPUTE_UNITS, DEFAULT_PRIORITY_FEE, TipPolicy

logger = logging.getLogger(__name__)

SWAP_COMPUTE_UNITS = 400_000
SWAP_PRIORITY_FEE = 50_000


def compute_budget_instructions(
    units: int = DEFAULT_COMPUTE_UNITS,
    micro_lamports: int = DEFAULT_PRIORITY_FEE,
) -> List[Instruction]:
    return [
        set_compute_unit_limit(units),
        set_compute_unit_price(micro_lamports),
    ]


def add_compute_budget(
    instructions: List[Instruction],
    units: int = DEFAULT_COMPUTE_UNITS,
    micro_lamports: int = DEFAULT_PRIORITY_FEE,
) -> None:
    """Prepend the compute unit limit and price directives."""
    instructions[:0] = compute_budget_instructions(units, micro_lamports)


def tip_instruction(payer: Pubkey, tip: TipPolicy) -> Instruction:
    return transfer(
        TransferParams(
            from_pubkey=payer,
            to_pubkey=Pubkey.from_string(tip.account),
            lamports=tip.lamports,
        )
    )


def add_tip(instructions: List[Instruction], payer: Pubkey, tip: TipPolicy) -> None:
    """Append the LightSpeed tip transfer. Call this after everything else."""
    if not tip.enabled:
        logger.info("LightSpeed tips disabled (USE_LIGHTSPEED=false)")
        return

    logger.info("Adding LightSpeed tip...")
    instructions.append(tip_instruction(payer, tip))


def compose_sol_transfer(
    payer: Pubkey,
    recipient: Pubkey,
    lamports: int,
    tip: TipPolicy,
) -> List[Instruction]:
    instructions = [
        transfer(TransferParams(from_pubkey=payer, to_pubkey=recipient, lamports=lamports))
    ]
    add_compute_budget(instructions)
    add_tip(instructions, payer, tip)
    return instructions


def compose_token_transfer(
    payer: Pubkey,
    recipient: Pubkey,
    mint: Pubkey,
    amount: int,
    tip: TipPolicy,
    create_recipient_account: bool = False,
) -> List[Instruction]:
    """
    Build an SPL token transfer between the associated token accounts of
    payer and recipient.

    Args:
        payer: Sender wallet, also pays fees and any account rent
        recipient: Recipient wallet (not its token account)
        mint: Token mint
        amount: Raw token units
        tip: Tip policy
        create_recipient_account: Create the recipient ATA first

    Returns:
        Ordered instruction list
    """
    sender_ata = get_associated_token_address(payer, mint)
    recipient_ata = get_associated_token_address(recipient, mint)

    instructions: List[Instruction] = []
    add_compute_budget(instructions)

    if create_recipient_account:
        logger.info("Creating recipient token account...")
        instructions.append(create_associated_token_account(payer, recipient, mint))

    instructions.append(
        token_transfer(
            TokenTransferParams(
                program_id=TOKEN_PROGRAM_ID,
                source=sender_ata,
                dest=recipient_ata,
                owner=payer,
                amount=amount,
                signers=[],
            )
        )
    )

    add_tip(instructions, payer, tip)
    return instructions


def deserialize_instruction(payload: Mapping[str, Any]) -> Instruction:
    """Convert a Jupiter JSON instruction into a solders Instruction."""
    accounts = [
        AccountMeta(
            pubkey=Pubkey.from_string(key["pubkey"]),
            is_signer=bool(key["isSigner"]),
            is_writable=bool(key["isWritable"]),
        )
        for key in payload.get("accounts", [])
    ]
    return Instruction(
        program_id=Pubkey.from_string(payload["programId"]),
        data=base64.b64decode(payload.get("data", "")),
        accounts=accounts,
    )


def compose_swap(
    payer: Pubkey,
    swap_instructions: Mapping[str, Any],
    tip: TipPolicy,
    units: int = SWAP_COMPUTE_UNITS,
    micro_lamports: int = SWAP_PRIORITY_FEE,
) -> List[Instruction]:
    """
    Assemble a swap from a Jupiter /swap-instructions response.

    The aggregator's own computeBudgetInstructions are dropped and replaced
    with ours so the priority fee stays under our control.
    """
    instructions = compute_budget_instructions(units, micro_lamports)

    setup = swap_instructions.get("setupInstructions") or []
    if setup:
        logger.info("Adding %d setup instructions...", len(setup))
        instructions.extend(deserialize_instruction(ix) for ix in setup)

    swap_ix = swap_instructions.get("swapInstruction")
    if not swap_ix:
        raise ValueError("Swap response is missing swapInstruction")
    logger.info("Adding swap instruction...")
    instructions.append(deserialize_instruction(swap_ix))

    cleanup = swap_instructions.get("cleanupInstruction")
    if cleanup:
        logger.info("Adding cleanup instruction...")
        instructions.append(deserialize_instruction(cleanup))

    add_tip(instructions, payer, tip)
    return instructions
