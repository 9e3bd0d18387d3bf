"""
Tests for database models: state machines, validation and serialization.
"""

import pytest
import uuid
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from marketplace.models.user import User, UserRoleAssignment, AppRole, UserMode
from marketplace.models.verification import (
    VerificationRequest,
    VerificationStatus,
    VerificationKind,
    VERIFICATION_TRANSITIONS,
)
from marketplace.models.property import Property, PropertyStatus, PropertyType, PROPERTY_TRANSITIONS
from marketplace.models.token import TokenIssuance, TokenPurchase
from tests.conftest import UserFactory, PropertyFactory


class TestUserModel:
    """Test User model functionality."""

    def test_validate_email_normalizes(self):
        assert User.validate_email_format("Jane.Doe@Example.COM") == "jane.doe@example.com"

    def test_validate_email_rejects_garbage(self):
        with pytest.raises(ValueError, match="Invalid email format"):
            User.validate_email_format("not-an-email")

    def test_password_hashing(self):
        hashed = User.hash_password("correct horse 1")
        user = User(email="a@example.com", hashed_password=hashed)

        assert hashed != "correct horse 1"
        assert user.verify_password("correct horse 1")
        assert not user.verify_password("wrong horse 1")

    def test_short_password_rejected(self):
        with pytest.raises(ValueError, match="at least 8 characters"):
            User.hash_password("short1")

    def test_roles_from_assignments(self):
        user = User(
            email="a@example.com",
            hashed_password="x",
            role_assignments=[UserRoleAssignment(role=AppRole.USER), UserRoleAssignment(role=AppRole.ADMIN)],
        )

        assert user.roles == {AppRole.USER, AppRole.ADMIN}
        assert user.has_role(AppRole.ADMIN)
        assert user.is_admin

    @pytest.mark.asyncio
    async def test_to_dict_excludes_password(self, user_repository):
        user = await UserFactory.create_user(user_repository, email="dict@example.com")
        data = user.to_dict()

        assert "hashed_password" not in data
        assert data["email"] == "dict@example.com"
        assert data["mode"] == UserMode.BUYER.value
        assert data["roles"] == ["user"]


class TestVerificationModel:
    """Verification state machine."""

    def test_pending_transitions(self):
        assert VERIFICATION_TRANSITIONS[VerificationStatus.PENDING] == {
            VerificationStatus.APPROVED,
            VerificationStatus.REJECTED,
            VerificationStatus.NEEDS_REVISION,
        }

    @pytest.mark.parametrize("terminal", [VerificationStatus.APPROVED, VerificationStatus.REJECTED])
    def test_terminal_states(self, terminal):
        request = VerificationRequest(status=terminal)
        for target in VerificationStatus:
            assert not request.can_transition_to(target)

    def test_needs_revision_only_back_to_pending(self):
        request = VerificationRequest(status=VerificationStatus.NEEDS_REVISION)

        assert request.can_transition_to(VerificationStatus.PENDING)
        assert not request.can_transition_to(VerificationStatus.APPROVED)

    def test_approved_only_reachable_from_pending(self):
        sources = [s for s, targets in VERIFICATION_TRANSITIONS.items() if VerificationStatus.APPROVED in targets]
        assert sources == [VerificationStatus.PENDING]


class TestPropertyModel:
    """Listing state machine and validation."""

    def test_lifecycle_transitions(self):
        assert PROPERTY_TRANSITIONS[PropertyStatus.DRAFT] == {PropertyStatus.PENDING}
        assert PROPERTY_TRANSITIONS[PropertyStatus.APPROVED] == {PropertyStatus.TOKENIZED}
        assert PROPERTY_TRANSITIONS[PropertyStatus.TOKENIZED] == set()
        assert PROPERTY_TRANSITIONS[PropertyStatus.REJECTED] == set()

    def test_only_drafts_are_editable(self):
        assert Property(status=PropertyStatus.DRAFT).is_editable
        assert not Property(status=PropertyStatus.PENDING).is_editable

    def test_valuation_must_be_positive(self):
        property_obj = Property(**PropertyFactory.create_property_data(valuation=Decimal("0")))
        with pytest.raises(ValueError, match="greater than 0"):
            property_obj.validate_all()

    def test_coordinates_range(self):
        property_obj = Property(**PropertyFactory.create_property_data(latitude=Decimal("91"), longitude=Decimal("0")))
        with pytest.raises(ValueError, match="Latitude"):
            property_obj.validate_all()

    def test_expected_tokens_positive(self):
        property_obj = Property(**PropertyFactory.create_property_data(expected_tokens=0))
        with pytest.raises(ValueError, match="Expected tokens"):
            property_obj.validate_all()

    @pytest.mark.asyncio
    async def test_to_dict(self, property_repository, verified_owner):
        property_obj = await PropertyFactory.create_property(
            property_repository, verified_owner, property_images=["property-images/a.jpg"]
        )
        data = property_obj.to_dict()

        assert data["owner_id"] == str(verified_owner.id)
        assert data["status"] == "pending"
        assert data["property_type"] == PropertyType.RESIDENTIAL.value
        assert data["property_images"] == ["property-images/a.jpg"]


class TestTokenModels:
    """Database constraints on the token tables."""

    @pytest.mark.asyncio
    async def test_available_cannot_exceed_total(self, db_session, approved_property):
        db_session.add(TokenIssuance(
            property_id=approved_property.id,
            total_tokens=100,
            available_tokens=101,
            price_per_token=Decimal("10.00"),
        ))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_one_issuance_per_property(self, db_session, issuance_repository, approved_property):
        await PropertyFactory.create_issuance(issuance_repository, approved_property)

        db_session.add(TokenIssuance(
            property_id=approved_property.id,
            total_tokens=5,
            available_tokens=5,
            price_per_token=Decimal("1.00"),
        ))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_tokens_sold(self, issuance_repository, approved_property):
        issuance = await PropertyFactory.create_issuance(issuance_repository, approved_property, total_tokens=200)
        issuance.available_tokens = 150

        assert issuance.tokens_sold == 50

    @pytest.mark.asyncio
    async def test_purchase_must_buy_something(self, db_session, test_user, approved_property):
        db_session.add(TokenPurchase(
            buyer_id=test_user.id,
            property_id=approved_property.id,
            tokens_purchased=0,
            price_per_token=Decimal("10.00"),
            total_amount=Decimal("0.00"),
        ))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()
