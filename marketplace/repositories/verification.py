"""
Verification repository for KYC/KYB requests.
Latest-request lookups and guarded status updates.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc
from marketplace.repositories.base import BaseRepository
from marketplace.models.verification import VerificationRequest, VerificationStatus
from marketplace.database import utcnow
from typing import Optional, List, Dict, Any, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class VerificationRepository(BaseRepository[VerificationRequest]):
    """Data access for kyc_verifications rows."""

    def __init__(self, db: AsyncSession):
        super().__init__(VerificationRequest, db)

    async def latest_for_user(self, user_id: uuid.UUID) -> Optional[VerificationRequest]:
        """
        Most recent request of a user; this one decides the user's access.

        Args:
            user_id: Subject of the verification

        Returns:
            Latest request or None if the user never submitted
        """
        query = (
            select(VerificationRequest)
            .where(VerificationRequest.user_id == user_id)
            .order_by(desc(VerificationRequest.created_at))
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID) -> List[VerificationRequest]:
        return await self.get_multi(filters={"user_id": user_id}, limit=1000)

    async def list_by_status(
        self,
        status: Optional[VerificationStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[VerificationRequest], int]:
        """
        Admin review queue, newest first.

        Returns:
            Tuple of (requests list, total count)
        """
        filters = {"status": status} if status is not None else None
        items = await self.get_multi(skip=skip, limit=limit, filters=filters)
        total = await self.count(filters)
        return items, total

    async def transition_if_status(
        self,
        request_id: uuid.UUID,
        expected: VerificationStatus,
        values: Dict[str, Any]
    ) -> bool:
        """
        Conditionally update a request still in ``expected`` status.

        Used by the delayed auto-approval so an admin decision taken in the
        meantime is never overwritten.

        Returns:
            True if the row was updated
        """
        stmt = (
            update(VerificationRequest)
            .where(VerificationRequest.id == request_id, VerificationRequest.status == expected)
            .values(updated_at=utcnow(), **values)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        updated = result.rowcount > 0
        logger.debug(f"Conditional update of verification {request_id} from {expected.value}: {updated}")
        return updated
