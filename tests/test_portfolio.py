"""
Tests for derived portfolio values, seller earnings and the admin overview.
"""

import pytest
from decimal import Decimal

from marketplace.models.property import PropertyStatus
from marketplace.services.portfolio import ownership_pct, current_value, roi
from tests.conftest import PropertyFactory, VerificationFactory


class TestDerivedValues:
    """Pure portfolio formulas."""

    def test_ownership_pct(self):
        assert ownership_pct(150, 10000) == Decimal("0.015000")
        assert ownership_pct(10000, 10000) == Decimal("1.000000")

    def test_ownership_pct_empty_supply(self):
        assert ownership_pct(5, 0) == Decimal("0")

    def test_current_value(self):
        assert current_value(Decimal("2000000"), 150, 10000) == Decimal("30000.00")
        assert current_value(Decimal("1000"), 1, 3) == Decimal("333.33")

    def test_roi(self):
        assert roi(Decimal("30000"), Decimal("15000")) == Decimal("1.000000")
        assert roi(Decimal("7500"), Decimal("10000")) == Decimal("-0.250000")

    def test_roi_nothing_invested(self):
        assert roi(Decimal("100"), Decimal("0")) == Decimal("0")


class TestBuyerPortfolio:
    """Holdings recomputed from purchase records."""

    @pytest.mark.asyncio
    async def test_empty_portfolio(self, portfolio_service, test_user):
        portfolio = await portfolio_service.buyer_portfolio(test_user)

        assert portfolio["holdings"] == []
        assert portfolio["total_invested"] == Decimal("0.00")
        assert portfolio["roi"] == Decimal("0")
        assert portfolio["purchase_count"] == 0

    @pytest.mark.asyncio
    async def test_holdings_aggregate_purchases(self, portfolio_service, token_service, tokenized_property, test_user):
        await token_service.purchase(test_user, tokenized_property.id, 100)
        await token_service.purchase(test_user, tokenized_property.id, 50)

        portfolio = await portfolio_service.buyer_portfolio(test_user)

        assert portfolio["purchase_count"] == 2
        assert len(portfolio["holdings"]) == 1
        holding = portfolio["holdings"][0]
        assert holding["tokens"] == 150
        assert holding["total_invested"] == Decimal("15000.00")
        assert holding["current_value"] == Decimal("30000.00")
        assert holding["ownership_pct"] == Decimal("0.015000")
        assert holding["roi"] == Decimal("1.000000")
        assert portfolio["current_value"] == Decimal("30000.00")

    @pytest.mark.asyncio
    async def test_repeated_reads_identical(self, portfolio_service, token_service, tokenized_property, test_user):
        await token_service.purchase(test_user, tokenized_property.id, 321)

        first = await portfolio_service.buyer_portfolio(test_user)
        second = await portfolio_service.buyer_portfolio(test_user)

        assert first == second

    @pytest.mark.asyncio
    async def test_holdings_across_properties(
        self, portfolio_service, token_service, property_service, property_repository,
        tokenized_property, verified_owner, test_admin, test_user
    ):
        second = await PropertyFactory.create_property(
            property_repository, verified_owner, status=PropertyStatus.APPROVED,
            title="Canal Side Offices", valuation=Decimal("500000.00")
        )
        await property_service.issue_tokens(second.id, test_admin, total_tokens=1000, price_per_token=Decimal("400.00"))

        await token_service.purchase(test_user, tokenized_property.id, 10)
        await token_service.purchase(test_user, second.id, 10)

        portfolio = await portfolio_service.buyer_portfolio(test_user)

        assert len(portfolio["holdings"]) == 2
        assert portfolio["total_invested"] == Decimal("5000.00")
        # 2000 from the first listing, 5000 from the second
        assert portfolio["current_value"] == Decimal("7000.00")
        assert portfolio["roi"] == Decimal("0.400000")


class TestSellerAndAdmin:
    """Seller earnings and platform overview."""

    @pytest.mark.asyncio
    async def test_seller_earnings(
        self, portfolio_service, token_service, property_repository, tokenized_property, verified_owner, test_user
    ):
        await PropertyFactory.create_property(property_repository, verified_owner)
        await token_service.purchase(test_user, tokenized_property.id, 250)

        earnings = await portfolio_service.seller_earnings(verified_owner)

        assert earnings["listing_count"] == 2
        assert earnings["tokenized_count"] == 1
        assert earnings["tokens_sold"] == 250
        assert earnings["total_revenue"] == Decimal("25000.00")
        row = earnings["listings"][0]
        assert row["sold_pct"] == Decimal("0.025000")

    @pytest.mark.asyncio
    async def test_seller_without_sales(self, portfolio_service, test_user):
        earnings = await portfolio_service.seller_earnings(test_user)

        assert earnings["listings"] == []
        assert earnings["total_revenue"] == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_admin_overview(
        self, portfolio_service, token_service, verification_repository, pending_property,
        tokenized_property, test_user
    ):
        await VerificationFactory.create_request(verification_repository, test_user)
        await token_service.purchase(test_user, tokenized_property.id, 7)

        overview = await portfolio_service.admin_overview()

        # buyer, owner and admin
        assert overview["total_users"] == 3
        assert overview["pending_verifications"] == 1
        assert overview["pending_properties"] == 1
        assert overview["tokenized_properties"] == 1
        assert overview["approved_properties"] == 0
        assert overview["tokens_sold"] == 7
        assert overview["total_revenue"] == Decimal("700.00")
