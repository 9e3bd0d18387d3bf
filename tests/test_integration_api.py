"""
Integration tests for the HTTP API.
Tests complete request/response cycles through the ASGI app against the per-test database.
"""

import uuid
import pytest
from decimal import Decimal
from httpx import AsyncClient
from fastapi import status

from marketplace.models.user import User
from marketplace.models.property import Property
from tests.conftest import TEST_PASSWORD, VerificationFactory, auth_headers, make_image_bytes


API = "/api/v1"

pytestmark = pytest.mark.integration


def listing_payload(**overrides) -> dict:
    payload = {
        "title": "Riverside Office Block",
        "address": "12 Quay Street, Manchester",
        "property_type": "commercial",
        "valuation": "1000000.00",
        "description": "Grade A offices with river views.",
        "expected_tokens": 10000,
    }
    payload.update(overrides)
    return payload


class TestAuthenticationEndpoints:
    """Sign-up, login and session endpoints."""

    @pytest.mark.asyncio
    async def test_signup_returns_tokens(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/auth/signup",
            json={"email": "fresh@example.com", "password": "freshpass1", "full_name": "Fresh Investor"}
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "fresh@example.com"
        assert data["user"]["roles"] == ["user"]
        assert data["user"]["mode"] == "buyer"

    @pytest.mark.asyncio
    async def test_signup_duplicate(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            f"{API}/auth/signup", json={"email": test_user.email, "password": "another123"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "EMAIL_TAKEN"

    @pytest.mark.asyncio
    async def test_login_and_me(self, async_client: AsyncClient, test_admin: User):
        login = await async_client.post(
            f"{API}/auth/login", json={"email": test_admin.email, "password": TEST_PASSWORD}
        )
        assert login.status_code == status.HTTP_200_OK
        token = login.json()["access_token"]

        response = await async_client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == str(test_admin.id)
        assert sorted(response.json()["roles"]) == ["admin", "user"]

    @pytest.mark.asyncio
    async def test_login_invalid_credentials(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            f"{API}/auth/login", json={"email": test_user.email, "password": "wrongpassword1"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_refresh(self, async_client: AsyncClient, test_user: User):
        login = await async_client.post(
            f"{API}/auth/login", json={"email": test_user.email, "password": TEST_PASSWORD}
        )

        response = await async_client.post(
            f"{API}/auth/refresh", json={"refresh_token": login.json()["refresh_token"]}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["access_token"]

    @pytest.mark.asyncio
    async def test_validate_token(self, async_client: AsyncClient, test_user: User):
        valid = await async_client.post(f"{API}/auth/validate", headers=auth_headers(test_user))
        invalid = await async_client.post(f"{API}/auth/validate", headers={"Authorization": "Bearer garbage"})

        assert valid.json()["valid"] is True
        assert valid.json()["user_id"] == str(test_user.id)
        assert invalid.json()["valid"] is False

    @pytest.mark.asyncio
    async def test_switch_mode(self, async_client: AsyncClient, test_user: User):
        response = await async_client.patch(
            f"{API}/users/me/mode", json={"mode": "seller"}, headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["mode"] == "seller"
        assert response.json()["roles"] == ["user"]


class TestAdminUserEndpoints:
    """Role management is admin only."""

    @pytest.mark.asyncio
    async def test_non_admin_cannot_list_users(self, async_client: AsyncClient, test_user: User):
        response = await async_client.get(f"{API}/users", headers=auth_headers(test_user))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_grant_and_revoke_admin(self, async_client: AsyncClient, test_user: User, test_admin: User):
        granted = await async_client.post(
            f"{API}/users/{test_user.id}/roles", json={"role": "admin"}, headers=auth_headers(test_admin)
        )
        assert granted.status_code == status.HTTP_200_OK
        assert sorted(granted.json()["roles"]) == ["admin", "user"]

        revoked = await async_client.delete(
            f"{API}/users/{test_user.id}/roles/admin", headers=auth_headers(test_admin)
        )
        assert revoked.status_code == status.HTTP_200_OK
        assert revoked.json()["roles"] == ["user"]

    @pytest.mark.asyncio
    async def test_admin_cannot_revoke_own_admin(self, async_client: AsyncClient, test_admin: User):
        response = await async_client.delete(
            f"{API}/users/{test_admin.id}/roles/admin", headers=auth_headers(test_admin)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestVerificationEndpoints:
    """Submission and admin review over HTTP."""

    @pytest.mark.asyncio
    async def test_submit_and_status(self, async_client: AsyncClient, test_user: User):
        headers = auth_headers(test_user)

        submitted = await async_client.post(
            f"{API}/verifications", json={"data": VerificationFactory.individual_data()}, headers=headers
        )
        assert submitted.status_code == status.HTTP_201_CREATED
        assert submitted.json()["status"] == "pending"

        current = await async_client.get(f"{API}/verifications/me/status", headers=headers)
        assert current.json()["status"] == "pending"
        assert current.json()["can_list_properties"] is False

        again = await async_client.post(
            f"{API}/verifications", json={"data": VerificationFactory.individual_data()}, headers=headers
        )
        assert again.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio
    async def test_invalid_submission(self, async_client: AsyncClient, test_user: User):
        data = VerificationFactory.individual_data()
        del data["personal_info"]["last_name"]

        response = await async_client.post(
            f"{API}/verifications", json={"data": data}, headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, async_client: AsyncClient, test_user: User, test_admin: User):
        submitted = await async_client.post(
            f"{API}/verifications", json={"data": VerificationFactory.individual_data()},
            headers=auth_headers(test_user)
        )
        request_id = submitted.json()["id"]

        blank = await async_client.post(
            f"{API}/verifications/{request_id}/reject", json={"reason": "  "}, headers=auth_headers(test_admin)
        )
        assert blank.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        fetched = await async_client.get(f"{API}/verifications/{request_id}", headers=auth_headers(test_user))
        assert fetched.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_revision_cycle(self, async_client: AsyncClient, test_user: User, test_admin: User):
        submitted = await async_client.post(
            f"{API}/verifications", json={"data": VerificationFactory.individual_data()},
            headers=auth_headers(test_user)
        )
        request_id = submitted.json()["id"]

        revised = await async_client.post(
            f"{API}/verifications/{request_id}/request-revision",
            json={"notes": "Passport scan is cropped"},
            headers=auth_headers(test_admin)
        )
        assert revised.json()["status"] == "needs_revision"
        assert revised.json()["rejection_reason"] == "Passport scan is cropped"

        resubmitted = await async_client.put(
            f"{API}/verifications/{request_id}",
            json={"data": VerificationFactory.individual_data()},
            headers=auth_headers(test_user)
        )
        assert resubmitted.status_code == status.HTTP_200_OK
        assert resubmitted.json()["status"] == "pending"
        assert resubmitted.json()["rejection_reason"] is None

    @pytest.mark.asyncio
    async def test_admin_queue_requires_admin(self, async_client: AsyncClient, test_user: User):
        response = await async_client.get(f"{API}/verifications?status=pending", headers=auth_headers(test_user))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_malformed_request_id(self, async_client: AsyncClient, test_admin: User):
        response = await async_client.post(
            f"{API}/verifications/not-a-uuid/approve", headers=auth_headers(test_admin)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"]["details"][0]["field"] == "request_id"


class TestPropertyEndpoints:
    """Listing endpoints."""

    @pytest.mark.asyncio
    async def test_unverified_seller_blocked(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(f"{API}/properties", json=listing_payload(), headers=auth_headers(test_user))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["code"] == "VERIFICATION_REQUIRED"

    @pytest.mark.asyncio
    async def test_unverified_seller_can_save_draft(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            f"{API}/properties/drafts", json=listing_payload(), headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["status"] == "draft"

    @pytest.mark.asyncio
    async def test_invalid_listing(self, async_client: AsyncClient, verified_owner: User):
        response = await async_client.post(
            f"{API}/properties", json=listing_payload(valuation="-5"), headers=auth_headers(verified_owner)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_pending_listing_hidden_from_buyers(
        self, async_client: AsyncClient, pending_property: Property, test_user: User
    ):
        response = await async_client.get(
            f"{API}/properties/{pending_property.id}", headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_non_admin_cannot_approve(
        self, async_client: AsyncClient, pending_property: Property, verified_owner: User
    ):
        response = await async_client.post(
            f"{API}/properties/{pending_property.id}/approve", headers=auth_headers(verified_owner)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_upload_image(self, async_client: AsyncClient, pending_property: Property, verified_owner: User):
        response = await async_client.post(
            f"{API}/properties/{pending_property.id}/images",
            files={"file": ("front.jpg", make_image_bytes("JPEG"), "image/jpeg")},
            headers=auth_headers(verified_owner)
        )

        assert response.status_code == status.HTTP_201_CREATED
        images = response.json()["property_images"]
        assert len(images) == 1
        assert images[0].startswith(f"property-images/{verified_owner.id}/")

    @pytest.mark.asyncio
    async def test_upload_rejects_fake_image(
        self, async_client: AsyncClient, pending_property: Property, verified_owner: User
    ):
        response = await async_client.post(
            f"{API}/properties/{pending_property.id}/images",
            files={"file": ("front.jpg", b"definitely not a jpeg", "image/jpeg")},
            headers=auth_headers(verified_owner)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_upload_by_stranger_writes_nothing(
        self, async_client: AsyncClient, pending_property: Property, test_user: User, storage_service
    ):
        response = await async_client.post(
            f"{API}/properties/{pending_property.id}/images",
            files={"file": ("front.jpg", make_image_bytes("JPEG"), "image/jpeg")},
            headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not (storage_service.upload_dir / "property-images" / str(test_user.id)).exists()


class TestStorageEndpoints:
    """Direct uploads and downloads."""

    @pytest.mark.asyncio
    async def test_upload_and_download(self, async_client: AsyncClient, test_user: User, test_admin: User):
        pdf = b"%PDF-1.4\n%%EOF\n"
        uploaded = await async_client.post(
            f"{API}/storage/kyc-documents",
            files={"file": ("passport.pdf", pdf, "application/pdf")},
            headers=auth_headers(test_user)
        )
        assert uploaded.status_code == status.HTTP_201_CREATED
        path = uploaded.json()["path"]

        own = await async_client.get(f"{API}/storage/file", params={"path": path}, headers=auth_headers(test_user))
        assert own.status_code == status.HTTP_200_OK
        assert own.content == pdf

        admin = await async_client.get(f"{API}/storage/file", params={"path": path}, headers=auth_headers(test_admin))
        assert admin.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_unknown_bucket(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            f"{API}/storage/other-bucket",
            files={"file": ("a.pdf", b"%PDF-1.4", "application/pdf")},
            headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestMarketplaceFlow:
    """Seller onboarding through to a buyer's portfolio."""

    @pytest.mark.asyncio
    async def test_full_flow(self, async_client: AsyncClient, test_admin: User, test_user: User):
        admin = auth_headers(test_admin)
        buyer = auth_headers(test_user)

        # Seller signs up and gets verified
        signup = await async_client.post(
            f"{API}/auth/signup", json={"email": "seller@example.com", "password": "sellerpass1"}
        )
        seller = {"Authorization": f"Bearer {signup.json()['access_token']}"}

        verification = await async_client.post(
            f"{API}/verifications",
            json={"data": VerificationFactory.business_data("Quayside Holdings")},
            headers=seller
        )
        assert verification.json()["company_name"] == "Quayside Holdings"

        approved = await async_client.post(
            f"{API}/verifications/{verification.json()['id']}/approve",
            json={"admin_notes": "Registry entry matches"},
            headers=admin
        )
        assert approved.json()["status"] == "approved"
        assert approved.json()["verified_at"] is not None

        # Listing is submitted, reviewed and tokenized
        created = await async_client.post(f"{API}/properties", json=listing_payload(), headers=seller)
        assert created.status_code == status.HTTP_201_CREATED
        property_id = created.json()["id"]

        review = await async_client.post(f"{API}/properties/{property_id}/approve", headers=admin)
        assert review.json()["status"] == "approved"

        issued = await async_client.post(
            f"{API}/properties/{property_id}/tokens",
            json={"total_tokens": 10000, "price_per_token": "100.00"},
            headers=admin
        )
        assert issued.status_code == status.HTTP_201_CREATED
        assert issued.json()["status"] == "tokenized"
        assert issued.json()["token_issuance"]["available_tokens"] == 10000

        duplicate = await async_client.post(
            f"{API}/properties/{property_id}/tokens",
            json={"total_tokens": 5, "price_per_token": "1.00"},
            headers=admin
        )
        assert duplicate.status_code == status.HTTP_409_CONFLICT

        # Buyer finds it and buys in
        market = await async_client.get(f"{API}/properties/marketplace", headers=buyer)
        assert [p["id"] for p in market.json()["properties"]] == [property_id]

        purchase = await async_client.post(
            f"{API}/purchases", json={"property_id": property_id, "tokens": 150}, headers=buyer
        )
        assert purchase.status_code == status.HTTP_201_CREATED
        assert Decimal(str(purchase.json()["total_amount"])) == Decimal("15000")

        oversell = await async_client.post(
            f"{API}/purchases", json={"property_id": property_id, "tokens": 10001}, headers=buyer
        )
        assert oversell.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert oversell.json()["error"]["code"] == "TOKEN_RANGE_ERROR"

        listing = await async_client.get(f"{API}/properties/{property_id}", headers=buyer)
        assert listing.json()["token_issuance"]["available_tokens"] == 9850
        assert listing.json()["token_issuance"]["tokens_sold"] == 150

        # Derived views
        portfolio = await async_client.get(f"{API}/portfolio", headers=buyer)
        holding = portfolio.json()["holdings"][0]
        assert holding["tokens"] == 150
        assert Decimal(str(holding["current_value"])) == Decimal("15000")
        assert Decimal(str(holding["roi"])) == Decimal("0")

        earnings = await async_client.get(f"{API}/portfolio/earnings", headers=seller)
        assert earnings.json()["tokens_sold"] == 150
        assert Decimal(str(earnings.json()["total_revenue"])) == Decimal("15000")

        purchases = await async_client.get(f"{API}/properties/{property_id}/purchases", headers=seller)
        assert purchases.json()["total"] == 1

        overview = await async_client.get(f"{API}/portfolio/overview", headers=admin)
        assert overview.json()["tokenized_properties"] == 1
        assert overview.json()["tokens_sold"] == 150

    @pytest.mark.asyncio
    async def test_purchase_malformed_property_id(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            f"{API}/purchases", json={"property_id": "nope", "tokens": 1}, headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_purchase_unknown_property(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            f"{API}/purchases", json={"property_id": str(uuid.uuid4()), "tokens": 1}, headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_portfolio_overview_admin_only(self, async_client: AsyncClient, test_user: User):
        response = await async_client.get(f"{API}/portfolio/overview", headers=auth_headers(test_user))

        assert response.status_code == status.HTTP_403_FORBIDDEN
