"""
Simulated KYC review.

Stand-in for a real review pipeline: a request that enters ``pending`` is
approved after a fixed delay unless an admin acts on it first. Each timer is
an asyncio task owned by the scheduler, so it can be cancelled per request
and all of them are cancelled at application shutdown.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from marketplace.database import utcnow
from marketplace.models.verification import VerificationStatus
from marketplace.repositories.verification import VerificationRepository
from typing import Dict
import asyncio
import uuid
import logging

logger = logging.getLogger(__name__)


class AutoApprovalScheduler:
    """Owns one delayed approval task per pending verification request."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        delay_seconds: float,
        enabled: bool = True
    ):
        self.session_factory = session_factory
        self.delay_seconds = delay_seconds
        self.enabled = enabled
        self._tasks: Dict[uuid.UUID, asyncio.Task] = {}

    def schedule(self, request_id: uuid.UUID) -> bool:
        """
        Start (or restart) the timer for a request.

        Returns:
            True if a timer was started, False when auto-approval is disabled
        """
        if not self.enabled:
            return False

        self.cancel(request_id)
        task = asyncio.create_task(self._approve_later(request_id), name=f"kyc-auto-approve-{request_id}")
        self._tasks[request_id] = task
        task.add_done_callback(lambda t: self._forget(request_id, t))

        logger.debug(f"Scheduled auto-approval for verification {request_id} in {self.delay_seconds}s")
        return True

    def cancel(self, request_id: uuid.UUID) -> bool:
        """Cancel a request's timer. Returns True if one was running."""
        task = self._tasks.pop(request_id, None)
        if task is None or task.done():
            return False

        task.cancel()
        logger.debug(f"Cancelled auto-approval for verification {request_id}")
        return True

    def is_scheduled(self, request_id: uuid.UUID) -> bool:
        task = self._tasks.get(request_id)
        return task is not None and not task.done()

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def wait_all(self) -> None:
        """Wait for every running timer to finish."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all timers and wait for them to unwind."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Auto-approval scheduler stopped ({len(tasks)} timers cancelled)")

    def _forget(self, request_id: uuid.UUID, task: asyncio.Task) -> None:
        if self._tasks.get(request_id) is task:
            del self._tasks[request_id]

    async def _approve_later(self, request_id: uuid.UUID) -> None:
        await asyncio.sleep(self.delay_seconds)

        try:
            async with self.session_factory() as session:
                repo = VerificationRepository(session)
                approved = await repo.transition_if_status(
                    request_id,
                    VerificationStatus.PENDING,
                    {"status": VerificationStatus.APPROVED, "verified_at": utcnow()}
                )
        except Exception as e:
            # Background task: nothing awaits it, so log instead of raising into the loop
            logger.error(f"Auto-approval of verification {request_id} failed: {e}", exc_info=True)
            return

        if approved:
            logger.info(f"Verification {request_id} auto-approved after simulated review")
        else:
            logger.info(f"Auto-approval skipped for verification {request_id}: no longer pending")
