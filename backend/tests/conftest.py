"""
Shared fixtures: an in-memory SQLite database per test plus seed helpers.
DATABASE_URL must be set before anything imports recengine.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENVIRONMENT", "development")

import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from recengine.database import Base
from recengine.models import (
    Company, Brand, IntegrationCredential, AdPortfolio, AdCampaign, KeywordMetric, Recommendation,
    AMAZON_ADS_INTEGRATION, CredentialStatus, RecommendationType, RecommendationStatus, ConfidenceLevel,
)
from recengine.utils import utcnow


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Seeder:
    """Creates the collaborator rows the engine reads. Every helper commits."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._portfolios = {}

    async def brand(self, name: str = "Acme", settings: Optional[dict] = None, is_active: bool = True) -> Brand:
        company = Company(name=f"{name} Co", settings=settings)
        brand = Brand(company=company, name=name, is_active=is_active)
        self.session.add_all([company, brand])
        await self.session.commit()
        return brand

    async def _portfolio(self, brand: Brand) -> AdPortfolio:
        if brand.id not in self._portfolios:
            credential = IntegrationCredential(
                brand_id=brand.id,
                integration_type=AMAZON_ADS_INTEGRATION,
                status=CredentialStatus.ACTIVE.value,
            )
            self.session.add(credential)
            await self.session.flush()
            portfolio = AdPortfolio(credential_id=credential.id, external_id=uuid.uuid4().hex, name=f"{brand.name} Portfolio")
            self.session.add(portfolio)
            await self.session.flush()
            self._portfolios[brand.id] = portfolio
        return self._portfolios[brand.id]

    async def campaign(
        self,
        brand: Brand,
        name: str,
        targeting_type: str = "manual",
        daily_budget: Optional[float] = None,
    ) -> AdCampaign:
        portfolio = await self._portfolio(brand)
        campaign = AdCampaign(
            portfolio_id=portfolio.id,
            credential_id=portfolio.credential_id,
            external_id=uuid.uuid4().hex,
            name=name,
            targeting_type=targeting_type,
            daily_budget=Decimal(str(daily_budget)) if daily_budget is not None else None,
        )
        self.session.add(campaign)
        await self.session.commit()
        return campaign

    async def metrics(
        self,
        campaign: AdCampaign,
        keyword: str,
        days: int,
        spend: int = 0,
        orders: int = 0,
        sales: int = 0,
        impressions: int = 0,
        clicks: int = 0,
        match_type: str = "exact",
    ):
        """
        One row per day for the `days` days before today. Totals are split
        into whole numbers (remainder on the most recent day) so sums stay exact.
        """
        today = utcnow().date()
        totals = {"spend": spend, "orders": orders, "sales": sales, "impressions": impressions, "clicks": clicks}
        for i in range(days):
            values = {k: v // days + (v % days if i == 0 else 0) for k, v in totals.items()}
            self.session.add(KeywordMetric(
                campaign_id=campaign.id,
                portfolio_id=campaign.portfolio_id,
                keyword=keyword,
                match_type=match_type,
                date=today - timedelta(days=i + 1),
                impressions=values["impressions"],
                clicks=values["clicks"],
                spend=Decimal(values["spend"]),
                orders=values["orders"],
                sales=Decimal(values["sales"]),
            ))
        await self.session.commit()

    async def recommendation(
        self,
        brand: Brand,
        status: RecommendationStatus = RecommendationStatus.PENDING,
        snoozed_until=None,
        rec_type: RecommendationType = RecommendationType.NEGATIVE_KEYWORD,
        confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM,
        keyword: str = "blue widget",
        campaign: Optional[AdCampaign] = None,
        generated_at=None,
    ) -> Recommendation:
        now = utcnow()
        rec = Recommendation(
            brand_id=brand.id,
            type=rec_type.value,
            status=status.value,
            confidence=confidence.value,
            keyword=keyword,
            campaign_id=campaign.id if campaign else None,
            rationale=f"Test rationale for {keyword}",
            expected_impact={"metric": "spend", "current": 40.0, "projected": 0.0},
            metadata_json={},
            generated_at=generated_at or now,
            created_at=generated_at or now,
            snoozed_until=snoozed_until,
        )
        self.session.add(rec)
        await self.session.commit()
        return rec


@pytest.fixture
def seed(db):
    return Seeder(db)
