"""
Delayed completion of simulated transactions.

Real providers answer asynchronously: the STK prompt waits for the PIN, the
bank settles later. The scheduler mimics that by running each completion as
its own asyncio task after a fixed delay. Every task is wrapped so a failure
is logged and never reaches the event loop or other tasks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from payment_simulator.error_handler import AlreadyResolvedError, NotFoundError
from payment_simulator.integrations.contracts.interfaces import Transaction

logger = logging.getLogger(__name__)

CompletionJob = Callable[[str, Optional[bool]], Awaitable[Transaction]]


class CompletionScheduler:
    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @staticmethod
    def can_schedule() -> bool:
        """True when called from inside a running event loop."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def schedule(
        self,
        transaction_id: str,
        delay: float,
        job: CompletionJob,
        force_success: Optional[bool] = None,
    ) -> asyncio.Task:
        """
        Run ``job(transaction_id, force_success)`` after ``delay`` seconds.

        Must be called from a running event loop. Returns immediately.
        """
        task = asyncio.get_running_loop().create_task(
            self._run(transaction_id, delay, job, force_success),
            name=f"complete-{transaction_id}",
        )
        # The loop only keeps weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Scheduled completion of %s in %.1fs", transaction_id, delay)
        return task

    async def join(self) -> None:
        """Wait for every outstanding completion to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _run(
        self,
        transaction_id: str,
        delay: float,
        job: CompletionJob,
        force_success: Optional[bool],
    ) -> None:
        try:
            await asyncio.sleep(delay)
            transaction = await job(transaction_id, force_success)
        except AlreadyResolvedError as e:
            logger.info("[CALLBACK] %s was resolved manually first (%s)", transaction_id, e.status)
            return
        except NotFoundError:
            logger.warning("[CALLBACK] %s no longer exists; transactions were reset", transaction_id)
            return
        except Exception:
            logger.exception("[ERROR] Failed to complete %s", transaction_id)
            return

        if isinstance(transaction, Transaction):
            _log_outcome(transaction)


def _log_outcome(transaction: Transaction) -> None:
    logger.info(
        "[CALLBACK] %s completed for %s: %s",
        "M-Pesa callback" if transaction.is_mpesa else "Bank transfer",
        transaction.transaction_id,
        transaction.status.value,
    )
    if not transaction.webhook_sent or transaction.webhook_result is None:
        return
    if transaction.webhook_result.delivered:
        logger.info("[WEBHOOK] Successfully sent to %s", transaction.callback_url)
    else:
        logger.warning(
            "[WEBHOOK] Failed to send to %s: %s",
            transaction.callback_url,
            transaction.webhook_result.error,
        )
