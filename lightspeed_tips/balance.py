import logging
from dataclasses import dataclass
from typing import Optional

from .config import LAMPORTS_PER_SOL, TipPolicy

logger = logging.getLogger(__name__)


def format_sol(lamports: int) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.9f}".rstrip("0").rstrip(".") + " SOL"


def required_lamports(base_cost: int, tip: TipPolicy) -> int:
    """Total lamports an operation needs, with the tip added when enabled."""
    return base_cost + (tip.lamports if tip.enabled else 0)


@dataclass(frozen=True)
class BalanceCheck:
    balance: int
    base_cost: int
    tip_lamports: int = 0

    @property
    def required(self) -> int:
        return self.base_cost + self.tip_lamports

    @property
    def remaining(self) -> int:
        return self.balance - self.required

    @property
    def sufficient(self) -> bool:
        return self.balance >= self.required


def check_balance(
    balance: int,
    base_cost: int,
    tip: TipPolicy,
    description: Optional[str] = None,
) -> bool:
    """
    Compare a payer balance against what an operation needs.

    An insufficient balance is a normal negative result, not an error: the
    caller must stop before building a transaction the network would reject.

    Args:
        balance: Current payer balance in lamports
        base_cost: Operation cost in lamports, tip excluded
        tip: Tip policy; its amount is added only when enabled
        description: Operation name used in the report

    Returns:
        True when the balance covers base cost plus tip
    """
    check = BalanceCheck(
        balance=balance,
        base_cost=base_cost,
        tip_lamports=required_lamports(0, tip),
    )
    suffix = f" for {description}" if description else ""

    if not check.sufficient:
        logger.error("Insufficient balance%s", suffix)
        logger.error("Have: %s", format_sol(check.balance))
        logger.error("Need: %s", format_sol(check.required))
        if tip.enabled:
            logger.error("(includes %s LightSpeed tip)", format_sol(tip.lamports))
        return False

    logger.info("Balance check passed%s", suffix)
    logger.info("Available: %s", format_sol(check.balance))
    logger.info("Required: %s", format_sol(check.base_cost))
    if tip.enabled:
        logger.info("LightSpeed tip: %s", format_sol(tip.lamports))
        logger.info("Total with tip: %s", format_sol(check.required))
    logger.info("Remaining after: %s", format_sol(check.remaining))
    return True
