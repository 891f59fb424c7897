"""
Optimistic Retry

Runs a read-validate-apply-commit step and repeats it when the commit
loses a version race. Each attempt starts over from a fresh read, so
invariants (balance, broken flag) are re-checked against the latest
committed state, never against what an earlier attempt saw.

Only VersionConflictError is retried. Business rejections raised inside
the step (insufficient balance, goal broken, duplicate key) end the loop
immediately.
"""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import ConcurrentModificationError
from pocketledger.services.storage import VersionConflictError


T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def run_optimistic(
    step: Callable[[], Awaitable[T]],
    operation: str,
    settings: Optional[LedgerSettings] = None,
) -> T:
    """
    Execute ``step`` with bounded retries on version conflicts.

    Raises:
        ConcurrentModificationError: Every attempt hit a version conflict
    """
    settings = settings or get_settings().ledger
    attempts = settings.max_commit_attempts

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=settings.retry_backoff_seconds,
                max=settings.retry_backoff_max_seconds,
            ),
            retry=retry_if_exception_type(VersionConflictError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        "optimistic_retry",
                        operation=operation,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await step()
    except (VersionConflictError, RetryError) as e:
        logger.warning("optimistic_retries_exhausted", operation=operation, attempts=attempts)
        raise ConcurrentModificationError(attempts) from e
