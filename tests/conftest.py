"""
Test configuration and fixtures for the marketplace API.
Provides a file-backed SQLite database per test, test data factories and
authenticated HTTP clients.
"""

import os
import tempfile

# Settings are read at import time; point them at throwaway locations first.
_TEST_ROOT = tempfile.mkdtemp(prefix="marketplace-tests-")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_ROOT}/app.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TEST_ROOT, "uploads"))
os.environ.setdefault("KYC_AUTO_APPROVE", "false")

import io
import uuid
import pytest
from decimal import Decimal
from typing import AsyncGenerator, Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from httpx import AsyncClient, ASGITransport
from PIL import Image as PILImage

from marketplace.main import app
from marketplace.database import Base, get_db
from marketplace.models.user import User, AppRole
from marketplace.models.verification import VerificationRequest, VerificationStatus, VerificationKind
from marketplace.models.property import Property, PropertyType, PropertyStatus
from marketplace.models.token import TokenIssuance
from marketplace.repositories.user import UserRepository
from marketplace.repositories.verification import VerificationRepository
from marketplace.repositories.property import PropertyRepository
from marketplace.repositories.token import TokenIssuanceRepository, TokenPurchaseRepository
from marketplace.services.auth import AuthService
from marketplace.services.auto_approval import AutoApprovalScheduler
from marketplace.services.verification import VerificationService
from marketplace.services.property import PropertyService
from marketplace.services.token import TokenService
from marketplace.services.portfolio import PortfolioService
from marketplace.services.storage import StorageService
from marketplace.utils.auth import create_access_token
from marketplace.utils.dependencies import get_auto_approval_scheduler, get_storage_service


TEST_PASSWORD = "testpassword123"


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture
async def scheduler(session_factory) -> AsyncGenerator[AutoApprovalScheduler, None]:
    """Auto-approval scheduler, disabled unless a test enables it."""
    scheduler = AutoApprovalScheduler(session_factory, delay_seconds=0.05, enabled=False)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
def storage_service(tmp_path) -> StorageService:
    return StorageService(upload_dir=str(tmp_path / "uploads"), max_file_size=1024 * 1024)


@pytest.fixture
async def async_client(session_factory, scheduler, storage_service) -> AsyncGenerator[AsyncClient, None]:
    """Async test client bound to the per-test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auto_approval_scheduler] = lambda: scheduler
    app.dependency_overrides[get_storage_service] = lambda: storage_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# Repository fixtures
@pytest.fixture
def user_repository(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def verification_repository(db_session: AsyncSession) -> VerificationRepository:
    return VerificationRepository(db_session)


@pytest.fixture
def property_repository(db_session: AsyncSession) -> PropertyRepository:
    return PropertyRepository(db_session)


@pytest.fixture
def issuance_repository(db_session: AsyncSession) -> TokenIssuanceRepository:
    return TokenIssuanceRepository(db_session)


@pytest.fixture
def purchase_repository(db_session: AsyncSession) -> TokenPurchaseRepository:
    return TokenPurchaseRepository(db_session)


# Service fixtures
@pytest.fixture
def auth_service(db_session: AsyncSession) -> AuthService:
    return AuthService(db_session)


@pytest.fixture
def verification_service(db_session: AsyncSession, scheduler: AutoApprovalScheduler) -> VerificationService:
    return VerificationService(db_session, scheduler)


@pytest.fixture
def property_service(db_session: AsyncSession) -> PropertyService:
    return PropertyService(db_session)


@pytest.fixture
def token_service(db_session: AsyncSession) -> TokenService:
    return TokenService(db_session)


@pytest.fixture
def portfolio_service(db_session: AsyncSession) -> PortfolioService:
    return PortfolioService(db_session)


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    async def create_user(
        user_repo: UserRepository,
        email: Optional[str] = None,
        password: str = TEST_PASSWORD,
        full_name: str = "Test User",
        roles: Iterable[AppRole] = (AppRole.USER,),
        is_active: bool = True
    ) -> User:
        return await user_repo.create_user(
            {
                "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
                "password": password,
                "full_name": full_name,
                "is_active": is_active,
            },
            roles=roles
        )


class VerificationFactory:
    """Factory for verification payloads and stored requests."""

    @staticmethod
    def individual_data(first_name: str = "Jane", **overrides) -> dict:
        data = {
            "kind": "individual",
            "personal_info": {
                "first_name": first_name,
                "last_name": "Doe",
                "date_of_birth": "1990-04-12",
                "nationality": "Portuguese",
            },
            "address": {
                "street": "Rua Augusta 10",
                "city": "Lisbon",
                "postal_code": "1100-053",
                "country": "Portugal",
            },
            "documents": {"id_document": "kyc-documents/passport.pdf"},
        }
        data.update(overrides)
        return data

    @staticmethod
    def business_data(company_name: str = "Acme Holdings Ltd") -> dict:
        data = VerificationFactory.individual_data()
        data["kind"] = "business"
        data["company_info"] = {
            "name": company_name,
            "registration_number": "REG-12345",
            "tax_id": "PT123456789",
        }
        return data

    @staticmethod
    async def create_request(
        verification_repo: VerificationRepository,
        user: User,
        status: VerificationStatus = VerificationStatus.PENDING
    ) -> VerificationRequest:
        return await verification_repo.create({
            "user_id": user.id,
            "verification_type": VerificationKind.INDIVIDUAL,
            "status": status,
            "verification_data": VerificationFactory.individual_data(),
        })


class PropertyFactory:
    """Factory for creating test listings."""

    @staticmethod
    def create_property_data(
        title: str = "Harbour View Apartments",
        address: str = "12 Quay Street, Lisbon",
        property_type: PropertyType = PropertyType.RESIDENTIAL,
        valuation: Decimal = Decimal("2000000.00"),
        **overrides
    ) -> dict:
        data = {
            "title": title,
            "address": address,
            "property_type": property_type,
            "valuation": valuation,
            "description": "Twelve units overlooking the river",
            "expected_tokens": 10000,
        }
        data.update(overrides)
        return data

    @staticmethod
    async def create_property(
        property_repo: PropertyRepository,
        owner: User,
        status: PropertyStatus = PropertyStatus.PENDING,
        **overrides
    ) -> Property:
        data = PropertyFactory.create_property_data(**overrides)
        data["owner_id"] = owner.id
        data["status"] = status
        return await property_repo.create_property(data)

    @staticmethod
    async def create_issuance(
        issuance_repo: TokenIssuanceRepository,
        property_obj: Property,
        total_tokens: int = 10000,
        price_per_token: Decimal = Decimal("100.00")
    ) -> TokenIssuance:
        return await issuance_repo.create({
            "property_id": property_obj.id,
            "total_tokens": total_tokens,
            "available_tokens": total_tokens,
            "price_per_token": price_per_token,
        })


# Common test fixtures
@pytest.fixture
async def test_user(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, email="buyer@test.com", full_name="Test Buyer")


@pytest.fixture
async def test_admin(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="admin@test.com",
        full_name="Test Admin",
        roles=(AppRole.USER, AppRole.ADMIN)
    )


@pytest.fixture
async def test_inactive_user(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="inactive@test.com",
        full_name="Inactive User",
        is_active=False
    )


@pytest.fixture
async def verified_owner(user_repository: UserRepository, verification_repository: VerificationRepository) -> User:
    """Seller whose latest verification is approved."""
    owner = await UserFactory.create_user(user_repository, email="owner@test.com", full_name="Verified Owner")
    await VerificationFactory.create_request(verification_repository, owner, VerificationStatus.APPROVED)
    return owner


@pytest.fixture
async def pending_property(property_repository: PropertyRepository, verified_owner: User) -> Property:
    return await PropertyFactory.create_property(property_repository, verified_owner)


@pytest.fixture
async def approved_property(property_repository: PropertyRepository, verified_owner: User) -> Property:
    return await PropertyFactory.create_property(property_repository, verified_owner, status=PropertyStatus.APPROVED)


@pytest.fixture
async def tokenized_property(property_service: PropertyService, approved_property: Property, test_admin: User) -> Property:
    """Listing tokenized with 10,000 tokens at $100."""
    property_obj, _ = await property_service.issue_tokens(
        approved_property.id, test_admin, total_tokens=10000, price_per_token=Decimal("100.00")
    )
    return property_obj


# Utility functions for tests
def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user.id, user.email, user.roles)
    return {"Authorization": f"Bearer {token}"}


def make_image_bytes(fmt: str = "JPEG", size=(64, 48)) -> bytes:
    buffer = io.BytesIO()
    PILImage.new("RGB", size, color=(30, 120, 200)).save(buffer, format=fmt)
    return buffer.getvalue()
