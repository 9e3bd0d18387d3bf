"""
Property service for the listing lifecycle and token issuance.

Lifecycle: draft -> pending -> approved -> tokenized, or pending -> rejected.
A listing only leaves draft when its owner's latest verification is approved,
and tokens are issued exactly once, in the same transaction that marks the
listing tokenized.
"""

from typing import Optional, List, Tuple
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.repositories.property import PropertyRepository, PropertySearchFilters
from marketplace.repositories.token import TokenIssuanceRepository
from marketplace.repositories.verification import VerificationRepository
from marketplace.models.property import Property, PropertyType, PropertyStatus
from marketplace.models.token import TokenIssuance
from marketplace.models.user import User
from marketplace.models.verification import VerificationStatus
from marketplace.schemas.property import PropertyCreate, PropertyUpdate
from marketplace.utils.exceptions import (
    PropertyNotFoundError,
    PropertyOwnershipError,
    PropertyStatusError,
    VerificationRequiredError,
    DuplicateIssuanceError,
    ValidationError,
)
import uuid
import logging

logger = logging.getLogger(__name__)

# Listings whose stored objects can still be changed by the owner
ATTACHABLE_STATUSES = {PropertyStatus.DRAFT, PropertyStatus.PENDING, PropertyStatus.APPROVED}


class PropertyService:
    """
    Property service for managing listings with ownership, verification and review rules.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.issuance_repo = TokenIssuanceRepository(db_session)
        self.verification_repo = VerificationRepository(db_session)

    async def create_draft(self, property_data: PropertyCreate, owner: User) -> Property:
        """
        Save a listing as draft. No verification needed.

        Raises:
            ValidationError: If property data is invalid
        """
        return await self._create(property_data, owner, PropertyStatus.DRAFT)

    async def submit(self, property_data: PropertyCreate, owner: User) -> Property:
        """
        Create a listing directly in pending review.

        Raises:
            VerificationRequiredError: If the owner's latest verification is not approved
        """
        await self._require_verified_owner(owner)
        return await self._create(property_data, owner, PropertyStatus.PENDING)

    async def _create(self, property_data: PropertyCreate, owner: User, status: PropertyStatus) -> Property:
        create_data = property_data.model_dump()
        create_data["owner_id"] = owner.id
        create_data["status"] = status

        try:
            property_obj = await self.property_repo.create_property(create_data)
        except ValueError as e:
            raise ValidationError(str(e))

        logger.info(f"Property {status.value} by {owner.email}: {property_obj.title} (ID: {property_obj.id})")
        return property_obj

    async def update_listing(self, property_id: uuid.UUID, property_data: PropertyUpdate, owner: User) -> Property:
        """
        Edit a draft listing.

        Raises:
            PropertyNotFoundError: If property doesn't exist
            PropertyOwnershipError: If the user does not own the listing
            PropertyStatusError: If the listing is no longer a draft
        """
        property_obj = await self._get_owned(property_id, owner)

        if not property_obj.is_editable:
            raise PropertyStatusError(f"Only draft listings can be edited (status: {property_obj.status.value})")

        update_data = property_data.model_dump(exclude_unset=True)
        if not update_data:
            return property_obj

        for field, value in update_data.items():
            setattr(property_obj, field, value)

        try:
            property_obj.validate_all()
        except ValueError as e:
            await self.db.rollback()
            raise ValidationError(str(e))

        updated = await self.property_repo.update(property_obj, {})
        logger.info(f"Draft {property_id} updated by {owner.email}: {', '.join(update_data)}")
        return updated

    async def submit_draft(self, property_id: uuid.UUID, owner: User) -> Property:
        """
        Move a draft into pending review.

        Raises:
            VerificationRequiredError: If the owner's latest verification is not approved
            PropertyStatusError: If the listing is not a draft
        """
        property_obj = await self._get_owned(property_id, owner)
        await self._require_verified_owner(owner)

        await self._transition(property_obj, PropertyStatus.PENDING, {})
        logger.info(f"Draft {property_id} submitted for review by {owner.email}")
        return await self.get_by_id(property_id)

    async def approve(self, property_id: uuid.UUID, admin: User, admin_notes: Optional[str] = None) -> Property:
        property_obj = await self.get_by_id(property_id)

        values = {"rejection_reason": None}
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        await self._transition(property_obj, PropertyStatus.APPROVED, values)
        logger.info(f"Property {property_id} approved by {admin.email}")
        return await self.get_by_id(property_id)

    async def reject(
        self,
        property_id: uuid.UUID,
        admin: User,
        reason: str,
        admin_notes: Optional[str] = None
    ) -> Property:
        """
        Reject a pending listing; the reason is shown to the owner.

        Raises:
            ValidationError: If reason is empty (the listing is left untouched)
        """
        if not reason or not reason.strip():
            raise ValidationError(
                "Rejection reason is required",
                field_errors=[{"field": "reason", "message": "Rejection reason is required", "type": "missing"}]
            )

        property_obj = await self.get_by_id(property_id)

        values = {"rejection_reason": reason.strip()}
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        await self._transition(property_obj, PropertyStatus.REJECTED, values)
        logger.info(f"Property {property_id} rejected by {admin.email}")
        return await self.get_by_id(property_id)

    async def issue_tokens(
        self,
        property_id: uuid.UUID,
        admin: User,
        total_tokens: int,
        price_per_token: Decimal
    ) -> Tuple[Property, TokenIssuance]:
        """
        Create the token pool of an approved listing and mark it tokenized.

        Both writes share one transaction.

        Raises:
            ValidationError: If total_tokens or price_per_token is not positive
            DuplicateIssuanceError: If tokens were already issued for the property
            PropertyStatusError: If the listing is not approved
        """
        if total_tokens is None or total_tokens <= 0:
            raise ValidationError("Total tokens must be a positive integer")
        if price_per_token is None or price_per_token <= 0:
            raise ValidationError("Price per token must be greater than 0")

        property_obj = await self.get_by_id(property_id)

        if await self.issuance_repo.get_by_property(property_id) is not None:
            logger.warning(f"Duplicate token issuance attempt for property {property_id} by {admin.email}")
            raise DuplicateIssuanceError(str(property_id))

        if not property_obj.can_transition_to(PropertyStatus.TOKENIZED):
            raise PropertyStatusError(
                f"Tokens can only be issued for approved listings (status: {property_obj.status.value})"
            )

        try:
            issuance = await self.issuance_repo.create(
                {
                    "property_id": property_id,
                    "total_tokens": total_tokens,
                    "available_tokens": total_tokens,
                    "price_per_token": price_per_token,
                },
                commit=False
            )
            moved = await self.property_repo.transition_if_status(
                property_id, PropertyStatus.APPROVED, {"status": PropertyStatus.TOKENIZED}, commit=False
            )
            if not moved:
                await self.db.rollback()
                raise PropertyStatusError("Listing status changed before tokens could be issued")
            await self.db.commit()
        except IntegrityError:
            # Unique property_id: a concurrent issuance got there first
            await self.db.rollback()
            raise DuplicateIssuanceError(str(property_id))

        logger.info(
            f"Issued {total_tokens} tokens at {price_per_token} for property {property_id} by {admin.email}"
        )
        return await self.get_by_id(property_id), await self.issuance_repo.get_by_id(issuance.id)

    async def attach_file(self, property_id: uuid.UUID, owner: User, path: str, field: str) -> Property:
        """
        Append a stored-object path to ``property_images`` or ``ownership_documents``.

        Raises:
            PropertyStatusError: If the listing is tokenized or rejected
        """
        if field not in ("property_images", "ownership_documents"):
            raise ValueError(f"Unknown attachment field: {field}")

        property_obj = await self.check_attachable(property_id, owner)

        # Assign a new list so the JSON column is flagged dirty
        paths = list(getattr(property_obj, field) or []) + [path]
        updated = await self.property_repo.update(property_obj, {field: paths})
        logger.info(f"Attached {path} to {field} of property {property_id}")
        return updated

    async def check_attachable(self, property_id: uuid.UUID, owner: User) -> Property:
        """
        Raises:
            PropertyOwnershipError: If owner does not own the listing
            PropertyStatusError: If the listing is tokenized or rejected
        """
        property_obj = await self._get_owned(property_id, owner)
        if property_obj.status not in ATTACHABLE_STATUSES:
            raise PropertyStatusError(f"Cannot attach files to a {property_obj.status.value} listing")
        return property_obj

    async def get_by_id(self, property_id: uuid.UUID) -> Property:
        property_obj = await self.property_repo.get_by_id(property_id)
        if property_obj is None:
            raise PropertyNotFoundError(str(property_id))
        return property_obj

    async def get_property(self, property_id: uuid.UUID, viewer: User) -> Property:
        """
        Owners and admins see any listing; everyone else only tokenized ones.

        Raises:
            PropertyNotFoundError: If missing or not visible to the viewer
        """
        property_obj = await self.get_by_id(property_id)
        if (
            property_obj.owner_id != viewer.id
            and not viewer.is_admin
            and property_obj.status != PropertyStatus.TOKENIZED
        ):
            raise PropertyNotFoundError(str(property_id))
        return property_obj

    async def get_issuance(self, property_id: uuid.UUID) -> Optional[TokenIssuance]:
        return await self.issuance_repo.get_by_property(property_id)

    async def get_issuances(self, property_ids: List[uuid.UUID]) -> dict:
        return await self.issuance_repo.get_for_properties(property_ids)

    async def list_owner_properties(
        self,
        owner: User,
        status: Optional[PropertyStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Property], int]:
        filters = PropertySearchFilters(owner_id=owner.id, status=status)
        return await self.property_repo.search_properties(filters, skip=(page - 1) * page_size, limit=page_size)

    async def list_properties(
        self,
        status: Optional[PropertyStatus] = None,
        property_type: Optional[PropertyType] = None,
        search_text: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Property], int]:
        """Admin listing across all owners."""
        filters = PropertySearchFilters(status=status, property_type=property_type, search_text=search_text)
        return await self.property_repo.search_properties(filters, skip=(page - 1) * page_size, limit=page_size)

    async def marketplace(
        self,
        property_type: Optional[PropertyType] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Tuple[Property, TokenIssuance]], int]:
        return await self.property_repo.get_marketplace(
            property_type=property_type, skip=(page - 1) * page_size, limit=page_size
        )

    async def _get_owned(self, property_id: uuid.UUID, owner: User) -> Property:
        property_obj = await self.get_by_id(property_id)
        if property_obj.owner_id != owner.id:
            raise PropertyOwnershipError()
        return property_obj

    async def _require_verified_owner(self, owner: User) -> None:
        latest = await self.verification_repo.latest_for_user(owner.id)
        if latest is None or latest.status != VerificationStatus.APPROVED:
            status = latest.status.value if latest is not None else "missing"
            logger.warning(f"Listing submission blocked for {owner.email}: verification {status}")
            raise VerificationRequiredError()

    async def _transition(self, property_obj: Property, target: PropertyStatus, values: dict) -> None:
        if not property_obj.can_transition_to(target):
            raise PropertyStatusError(
                f"Cannot move listing from '{property_obj.status.value}' to '{target.value}'"
            )

        updated = await self.property_repo.transition_if_status(
            property_obj.id, property_obj.status, {"status": target, **values}
        )
        if not updated:
            raise PropertyStatusError("Listing status changed concurrently; reload and retry")
