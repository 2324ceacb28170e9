import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from time import monotonic
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ConfirmationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_success(self) -> bool:
        return self in (ConfirmationStatus.CONFIRMED, ConfirmationStatus.FINALIZED)

    @property
    def is_terminal(self) -> bool:
        return self is not ConfirmationStatus.PENDING


@dataclass(frozen=True)
class ConfirmationResult:
    signature: str
    status: ConfirmationStatus
    error: Optional[Any] = None
    polls: int = 0


async def send_with_retry(
    submit: Callable[[Any], Awaitable[Optional[str]]],
    transaction: Any,
    max_attempts: int = 3,
) -> Optional[str]:
    """
    Submit a signed transaction, retrying immediately on failure.

    Args:
        submit: Coroutine function performing one submission
        transaction: Signed transaction handed to ``submit`` unchanged
        max_attempts: Number of submissions before giving up

    Returns:
        The first non-empty signature, or None once every attempt failed.
        Submission errors are logged, never raised.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            signature = await submit(transaction)
            if not signature:
                raise ValueError("No signature returned")
        except Exception as e:
            logger.error("Attempt %d failed: %s", attempt, e)
            if attempt == max_attempts:
                logger.error("Max retries reached")
            continue

        logger.info("Transaction sent (attempt %d): %s", attempt, signature)
        return signature

    return None


async def monitor_status(
    fetch_status: Callable[[str], Awaitable[ConfirmationResult]],
    signature: str,
    timeout_ms: int = 30_000,
    interval_ms: int = 1_000,
) -> ConfirmationResult:
    """
    Poll a signature until it lands, fails or the time bound runs out.

    ``fetch_status`` performs a single status query per poll. A query that
    raises is logged and counts as a pending poll.
    """
    start = monotonic()
    polls = 0

    while (monotonic() - start) * 1000 < timeout_ms:
        polls += 1
        try:
            result = await fetch_status(signature)
        except Exception as e:
            logger.warning("Status check %d failed: %s", polls, e)
            await asyncio.sleep(interval_ms / 1000)
            continue

        if result.status.is_success:
            logger.info("Transaction confirmed: %s", signature)
            logger.info("Status: %s", result.status.value)
            return ConfirmationResult(signature, result.status, polls=polls)

        if result.status is ConfirmationStatus.FAILED:
            logger.error("Transaction failed: %s", result.error)
            return ConfirmationResult(signature, result.status, error=result.error, polls=polls)

        await asyncio.sleep(interval_ms / 1000)

    logger.error("Transaction confirmation timeout")
    return ConfirmationResult(signature, ConfirmationStatus.TIMED_OUT, polls=polls)
