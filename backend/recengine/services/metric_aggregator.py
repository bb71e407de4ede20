"""
Metric Aggregator — sums KeywordMetric rows over a lookback window.

Campaigns are resolved through the brand's active Amazon Ads credentials
(credential -> portfolio -> campaign). Sums run in SQL over the Numeric
columns and pass through Decimal before becoming floats, so currency
totals don't drift. An empty result means "no candidates", never an error.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from recengine.models import (
    AdCampaign, AdPortfolio, IntegrationCredential, KeywordMetric,
    CredentialStatus, AMAZON_ADS_INTEGRATION,
)
from recengine.utils import utcnow

logger = logging.getLogger(__name__)

UNKNOWN_CAMPAIGN = "Unknown Campaign"


def _decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_acos(spend: float, sales: float) -> float:
    """spend / sales, or exactly 1.0 (worst case) when there are no sales."""
    return spend / sales if sales > 0 else 1.0


def calculate_roas(spend: float, sales: float) -> float:
    return sales / spend if spend > 0 else 0.0


def lookback_start(lookback_days: int, today: Optional[date] = None) -> date:
    return (today or utcnow().date()) - timedelta(days=lookback_days)


# ══════════════════════════════════════════════════════════════════════
#  AGGREGATES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BrandCampaign:
    id: uuid.UUID
    name: str
    targeting_type: Optional[str] = None
    daily_budget: Optional[Decimal] = None


@dataclass(frozen=True)
class KeywordMetricsAggregate:
    """Sums for one (keyword, campaign, match type) over the window."""
    keyword: str
    campaign_id: uuid.UUID
    campaign_name: str
    match_type: str
    total_spend: float
    total_orders: int
    total_sales: float
    total_impressions: int
    total_clicks: int
    data_points: int                    # rows aggregated, ~ days with data

    @property
    def acos(self) -> float:
        return calculate_acos(self.total_spend, self.total_sales)

    @property
    def roas(self) -> float:
        return calculate_roas(self.total_spend, self.total_sales)

    def to_dict(self) -> dict:
        return {
            "keyword": self.keyword,
            "campaignId": str(self.campaign_id),
            "campaignName": self.campaign_name,
            "matchType": self.match_type,
            "totalSpend": self.total_spend,
            "totalOrders": self.total_orders,
            "totalSales": self.total_sales,
            "totalImpressions": self.total_impressions,
            "totalClicks": self.total_clicks,
            "acos": self.acos,
            "dataPoints": self.data_points,
        }


@dataclass(frozen=True)
class CampaignMetricsAggregate:
    """Sums for one campaign (with a daily budget) over the window."""
    campaign_id: uuid.UUID
    campaign_name: str
    daily_budget: float
    total_spend: float
    total_sales: float
    total_orders: int
    total_impressions: int
    total_clicks: int
    data_points: int

    @property
    def acos(self) -> float:
        return calculate_acos(self.total_spend, self.total_sales)

    @property
    def roas(self) -> float:
        return calculate_roas(self.total_spend, self.total_sales)

    @property
    def avg_daily_spend(self) -> float:
        return self.total_spend / self.data_points if self.data_points > 0 else 0.0

    @property
    def budget_utilization(self) -> float:
        return self.avg_daily_spend / self.daily_budget if self.daily_budget > 0 else 0.0


# ══════════════════════════════════════════════════════════════════════
#  QUERIES
# ══════════════════════════════════════════════════════════════════════

async def get_brand_campaigns(db: AsyncSession, brand_id: uuid.UUID) -> List[BrandCampaign]:
    """Campaigns under the brand's active amazon_ads credentials, via their portfolios."""
    result = await db.execute(
        select(AdCampaign.id, AdCampaign.name, AdCampaign.targeting_type, AdCampaign.daily_budget)
        .join(AdPortfolio, AdCampaign.portfolio_id == AdPortfolio.id)
        .join(IntegrationCredential, AdPortfolio.credential_id == IntegrationCredential.id)
        .where(
            IntegrationCredential.brand_id == brand_id,
            IntegrationCredential.integration_type == AMAZON_ADS_INTEGRATION,
            IntegrationCredential.status == CredentialStatus.ACTIVE.value,
        )
        .order_by(AdCampaign.name, AdCampaign.id)
    )
    return [
        BrandCampaign(id=row.id, name=row.name, targeting_type=row.targeting_type, daily_budget=row.daily_budget)
        for row in result.all()
    ]


def _summed_columns():
    return (
        func.sum(KeywordMetric.spend).label("spend"),
        func.sum(KeywordMetric.orders).label("orders"),
        func.sum(KeywordMetric.sales).label("sales"),
        func.sum(KeywordMetric.impressions).label("impressions"),
        func.sum(KeywordMetric.clicks).label("clicks"),
        func.count(KeywordMetric.id).label("data_points"),
    )


async def aggregate_keyword_metrics(
    db: AsyncSession,
    brand_id: uuid.UUID,
    lookback_days: int = 30,
    campaign_filter: Optional[Callable[[BrandCampaign], bool]] = None,
) -> List[KeywordMetricsAggregate]:
    """
    Group the brand's keyword metrics by (keyword, campaign, match type).
    campaign_filter narrows the campaigns considered (e.g. Discovery only).
    """
    campaigns = await get_brand_campaigns(db, brand_id)
    if campaign_filter is not None:
        campaigns = [c for c in campaigns if campaign_filter(c)]
    if not campaigns:
        return []

    names: Dict[uuid.UUID, str] = {c.id: c.name for c in campaigns}
    result = await db.execute(
        select(KeywordMetric.keyword, KeywordMetric.campaign_id, KeywordMetric.match_type, *_summed_columns())
        .where(
            KeywordMetric.campaign_id.in_(list(names.keys())),
            KeywordMetric.date >= lookback_start(lookback_days),
        )
        .group_by(KeywordMetric.keyword, KeywordMetric.campaign_id, KeywordMetric.match_type)
        .order_by(KeywordMetric.keyword, KeywordMetric.campaign_id, KeywordMetric.match_type)
    )

    aggregates = []
    for row in result.all():
        if row.campaign_id is None:
            continue
        aggregates.append(KeywordMetricsAggregate(
            keyword=row.keyword,
            campaign_id=row.campaign_id,
            campaign_name=names.get(row.campaign_id, UNKNOWN_CAMPAIGN),
            match_type=row.match_type,
            total_spend=float(_decimal(row.spend)),
            total_orders=int(row.orders or 0),
            total_sales=float(_decimal(row.sales)),
            total_impressions=int(row.impressions or 0),
            total_clicks=int(row.clicks or 0),
            data_points=int(row.data_points or 0),
        ))
    logger.debug(f"Aggregated {len(aggregates)} keyword groups for brand {brand_id} over {lookback_days} days")
    return aggregates


async def aggregate_campaign_metrics(
    db: AsyncSession,
    brand_id: uuid.UUID,
    lookback_days: int = 30,
) -> List[CampaignMetricsAggregate]:
    """Group the brand's keyword metrics by campaign. Campaigns without a daily budget are left out."""
    campaigns = [c for c in await get_brand_campaigns(db, brand_id) if c.daily_budget]
    if not campaigns:
        return []

    by_id: Dict[uuid.UUID, BrandCampaign] = {c.id: c for c in campaigns}
    result = await db.execute(
        select(KeywordMetric.campaign_id, *_summed_columns())
        .where(
            KeywordMetric.campaign_id.in_(list(by_id.keys())),
            KeywordMetric.date >= lookback_start(lookback_days),
        )
        .group_by(KeywordMetric.campaign_id)
    )

    aggregates = []
    for row in result.all():
        campaign = by_id.get(row.campaign_id)
        if campaign is None:
            continue
        aggregates.append(CampaignMetricsAggregate(
            campaign_id=campaign.id,
            campaign_name=campaign.name,
            daily_budget=float(_decimal(campaign.daily_budget)),
            total_spend=float(_decimal(row.spend)),
            total_sales=float(_decimal(row.sales)),
            total_orders=int(row.orders or 0),
            total_impressions=int(row.impressions or 0),
            total_clicks=int(row.clicks or 0),
            data_points=int(row.data_points or 0),
        ))
    aggregates.sort(key=lambda a: (a.campaign_name, str(a.campaign_id)))
    return aggregates


async def find_latest_keyword_metric_id(
    db: AsyncSession,
    keyword: str,
    campaign_id: Optional[uuid.UUID],
    match_type: Optional[str] = None,
) -> Optional[uuid.UUID]:
    """Most recent KeywordMetric row for a keyword in a campaign, for back-reference."""
    query = select(KeywordMetric.id).where(KeywordMetric.keyword == keyword, KeywordMetric.campaign_id == campaign_id)
    if match_type is not None:
        query = query.where(KeywordMetric.match_type == match_type)
    result = await db.execute(
        query
        .order_by(KeywordMetric.date.desc(), KeywordMetric.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()
