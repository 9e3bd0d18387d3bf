"""
Identity verification (KYC/KYB) workflow.

State machine: pending -> {approved, rejected, needs_revision};
needs_revision -> pending on resubmit; approved and rejected are terminal.
Every transition is a conditional update on the expected current status, so
an admin decision and the simulated auto-approval can never both apply.
"""

from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.database import utcnow
from marketplace.models.user import User
from marketplace.models.verification import (
    VerificationRequest,
    VerificationKind,
    VerificationStatus,
)
from marketplace.repositories.verification import VerificationRepository
from marketplace.schemas.verification import VerificationData, BusinessVerification
from marketplace.services.auto_approval import AutoApprovalScheduler
from marketplace.utils.exceptions import (
    VerificationNotFoundError,
    VerificationStatusError,
    VerificationInProgressError,
    InsufficientPermissionsError,
    ValidationError,
)
import uuid
import logging

logger = logging.getLogger(__name__)

# Latest-request states that block a fresh submission
BLOCKING_STATUSES = {VerificationStatus.PENDING, VerificationStatus.APPROVED}


class VerificationService:
    """
    Submission, review and status queries for verification requests.
    The scheduler is optional; without one nothing is auto-approved.
    """

    def __init__(self, db_session: AsyncSession, scheduler: Optional[AutoApprovalScheduler] = None):
        self.db = db_session
        self.repo = VerificationRepository(db_session)
        self.scheduler = scheduler

    @staticmethod
    def _columns_for(data: VerificationData) -> dict:
        company_name = data.company_info.name if isinstance(data, BusinessVerification) else None
        return {
            "verification_type": VerificationKind(data.kind),
            "company_name": company_name,
            "verification_data": data.model_dump(mode="json"),
        }

    async def submit(self, user: User, data: VerificationData) -> VerificationRequest:
        """
        Create a pending request for the session user.

        Raises:
            VerificationInProgressError: If the latest request is pending or approved
        """
        latest = await self.repo.latest_for_user(user.id)
        if latest is not None and latest.status in BLOCKING_STATUSES:
            logger.warning(f"User {user.email} tried to submit verification while {latest.status.value}")
            raise VerificationInProgressError(latest.status.value)

        request = await self.repo.create({
            "user_id": user.id,
            "status": VerificationStatus.PENDING,
            **self._columns_for(data),
        })

        logger.info(f"Verification {request.id} submitted by {user.email} ({data.kind})")
        self._schedule(request.id)
        return request

    async def resubmit(self, request_id: uuid.UUID, actor: User, data: VerificationData) -> VerificationRequest:
        """
        Replace the data of a request awaiting revision and put it back to pending.

        Raises:
            VerificationNotFoundError: If the request doesn't exist
            InsufficientPermissionsError: If actor is neither the subject nor an admin
            VerificationStatusError: If the request is not in needs_revision
        """
        request = await self.get_request(request_id)

        if request.user_id != actor.id and not actor.is_admin:
            raise InsufficientPermissionsError("resubmit this verification request")

        await self._transition(
            request,
            VerificationStatus.PENDING,
            {"rejection_reason": None, **self._columns_for(data)}
        )

        logger.info(f"Verification {request_id} resubmitted by {actor.email}")
        self._schedule(request_id)
        return await self.get_request(request_id)

    async def approve(self, request_id: uuid.UUID, admin: User, admin_notes: Optional[str] = None) -> VerificationRequest:
        request = await self.get_request(request_id)
        values = {"verified_at": utcnow(), "rejection_reason": None}
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        await self._transition(request, VerificationStatus.APPROVED, values)
        logger.info(f"Verification {request_id} approved by {admin.email}")
        return await self.get_request(request_id)

    async def reject(
        self,
        request_id: uuid.UUID,
        admin: User,
        reason: str,
        admin_notes: Optional[str] = None
    ) -> VerificationRequest:
        """
        Reject a pending request. Terminal; the subject may file a new request.

        Raises:
            ValidationError: If reason is empty (nothing is changed)
        """
        if not reason or not reason.strip():
            raise ValidationError(
                "Rejection reason is required",
                field_errors=[{"field": "reason", "message": "Rejection reason is required", "type": "missing"}]
            )

        request = await self.get_request(request_id)
        values = {"rejection_reason": reason.strip()}
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        await self._transition(request, VerificationStatus.REJECTED, values)
        logger.info(f"Verification {request_id} rejected by {admin.email}")
        return await self.get_request(request_id)

    async def request_revision(
        self,
        request_id: uuid.UUID,
        admin: User,
        notes: Optional[str] = None
    ) -> VerificationRequest:
        """Send a pending request back to the subject; notes are shown as the reason."""
        request = await self.get_request(request_id)
        await self._transition(request, VerificationStatus.NEEDS_REVISION, {"rejection_reason": notes})
        logger.info(f"Verification {request_id} returned for revision by {admin.email}")
        return await self.get_request(request_id)

    async def bulk_approve(self, request_ids: List[uuid.UUID], admin: User) -> Tuple[List[uuid.UUID], List[uuid.UUID]]:
        """
        Approve every listed request that is still pending.

        Returns:
            Tuple of (approved ids, skipped ids)
        """
        approved, skipped = [], []
        for request_id in dict.fromkeys(request_ids):
            request = await self.repo.get_by_id(request_id)
            if request is None or request.status != VerificationStatus.PENDING:
                skipped.append(request_id)
                continue

            if self.scheduler is not None:
                self.scheduler.cancel(request_id)
            updated = await self.repo.transition_if_status(
                request_id,
                VerificationStatus.PENDING,
                {"status": VerificationStatus.APPROVED, "verified_at": utcnow(), "rejection_reason": None}
            )
            (approved if updated else skipped).append(request_id)

        logger.info(f"Bulk approval by {admin.email}: {len(approved)} approved, {len(skipped)} skipped")
        return approved, skipped

    async def get_request(self, request_id: uuid.UUID) -> VerificationRequest:
        request = await self.repo.get_by_id(request_id)
        if request is None:
            raise VerificationNotFoundError(str(request_id))
        return request

    async def get_request_for(self, request_id: uuid.UUID, actor: User) -> VerificationRequest:
        request = await self.get_request(request_id)
        if request.user_id != actor.id and not actor.is_admin:
            raise InsufficientPermissionsError("view this verification request")
        return request

    async def latest_for_user(self, user_id: uuid.UUID) -> Optional[VerificationRequest]:
        return await self.repo.latest_for_user(user_id)

    async def current_status(self, user_id: uuid.UUID) -> Optional[VerificationStatus]:
        latest = await self.repo.latest_for_user(user_id)
        return latest.status if latest is not None else None

    async def is_verified(self, user_id: uuid.UUID) -> bool:
        """Only an approved latest request unlocks listing submission."""
        return await self.current_status(user_id) == VerificationStatus.APPROVED

    async def list_for_user(self, user_id: uuid.UUID) -> List[VerificationRequest]:
        return await self.repo.list_for_user(user_id)

    async def list_requests(
        self,
        status: Optional[VerificationStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[VerificationRequest], int]:
        return await self.repo.list_by_status(status=status, skip=(page - 1) * page_size, limit=page_size)

    async def _transition(self, request: VerificationRequest, target: VerificationStatus, values: dict) -> None:
        if not request.can_transition_to(target):
            raise VerificationStatusError(request.status.value, target.value)

        # Admin action wins over the simulated review
        if self.scheduler is not None and request.status == VerificationStatus.PENDING:
            self.scheduler.cancel(request.id)

        updated = await self.repo.transition_if_status(request.id, request.status, {"status": target, **values})
        if not updated:
            # Status changed underneath us (e.g. auto-approved meanwhile)
            current = await self.get_request(request.id)
            raise VerificationStatusError(current.status.value, target.value)

    def _schedule(self, request_id: uuid.UUID) -> None:
        if self.scheduler is not None:
            self.scheduler.schedule(request_id)
