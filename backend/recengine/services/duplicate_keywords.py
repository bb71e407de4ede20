"""
Duplicate Keyword Detection — keywords running in two or more campaigns,
where the brand ends up bidding against itself.

Grouping is by keyword text only; match type is ignored, and a keyword
counts as duplicated once it appears under at least two distinct campaigns.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from recengine.models import RecommendationType
from recengine.services.confidence_scoring import confidence_for
from recengine.services.metric_aggregator import (
    KeywordMetricsAggregate, aggregate_keyword_metrics, calculate_acos,
)
from recengine.services.recommendation_types import GeneratedRecommendation, expected_impact

logger = logging.getLogger(__name__)

# Consolidation removes internal competition; assume 20% spend savings
CONSOLIDATION_SPEND_FACTOR = 0.80


@dataclass(frozen=True)
class CampaignOccurrence:
    campaign_id: uuid.UUID
    campaign_name: str
    match_type: str
    spend: float
    orders: int
    sales: float
    impressions: int
    clicks: int
    data_points: int

    @property
    def acos(self) -> float:
        return calculate_acos(self.spend, self.sales)

    @classmethod
    def from_aggregate(cls, agg: KeywordMetricsAggregate) -> "CampaignOccurrence":
        return cls(
            campaign_id=agg.campaign_id,
            campaign_name=agg.campaign_name,
            match_type=agg.match_type,
            spend=agg.total_spend,
            orders=agg.total_orders,
            sales=agg.total_sales,
            impressions=agg.total_impressions,
            clicks=agg.total_clicks,
            data_points=agg.data_points,
        )

    def to_dict(self) -> dict:
        return {
            "campaignId": str(self.campaign_id),
            "campaignName": self.campaign_name,
            "matchType": self.match_type,
            "spend": self.spend,
            "orders": self.orders,
            "sales": self.sales,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "acos": self.acos,
            "dataPoints": self.data_points,
        }


@dataclass(frozen=True)
class DuplicateKeywordGroup:
    keyword: str
    brand_id: uuid.UUID
    occurrences: Tuple[CampaignOccurrence, ...]

    @property
    def total_spend(self) -> float:
        return sum(o.spend for o in self.occurrences)

    @property
    def total_orders(self) -> int:
        return sum(o.orders for o in self.occurrences)

    @property
    def total_sales(self) -> float:
        return sum(o.sales for o in self.occurrences)

    @property
    def total_impressions(self) -> int:
        return sum(o.impressions for o in self.occurrences)

    @property
    def total_clicks(self) -> int:
        return sum(o.clicks for o in self.occurrences)

    @property
    def total_data_points(self) -> int:
        return sum(o.data_points for o in self.occurrences)

    @property
    def campaign_ids(self) -> set:
        return {o.campaign_id for o in self.occurrences}


def group_duplicates(brand_id: uuid.UUID, aggregates: List[KeywordMetricsAggregate]) -> List[DuplicateKeywordGroup]:
    """Pure grouping step, split out from the finder so it can be tested without a database."""
    by_keyword: Dict[str, List[KeywordMetricsAggregate]] = {}
    for agg in aggregates:
        by_keyword.setdefault(agg.keyword, []).append(agg)

    groups = []
    for keyword, entries in by_keyword.items():
        if len({e.campaign_id for e in entries}) < 2:
            continue
        groups.append(DuplicateKeywordGroup(
            keyword=keyword,
            brand_id=brand_id,
            occurrences=tuple(CampaignOccurrence.from_aggregate(e) for e in entries),
        ))
    groups.sort(key=lambda g: g.total_spend, reverse=True)
    return groups


async def find_duplicate_keywords(
    db: AsyncSession,
    brand_id: uuid.UUID,
    lookback_days: int = 30,
) -> List[DuplicateKeywordGroup]:
    aggregates = await aggregate_keyword_metrics(db, brand_id, lookback_days)
    groups = group_duplicates(brand_id, aggregates)
    logger.info(f"Duplicate keywords: {len(groups)} groups for brand {brand_id}")
    return groups


def build_duplicate_rationale(group: DuplicateKeywordGroup) -> str:
    names = ", ".join(o.campaign_name for o in group.occurrences)
    if group.total_sales > 0:
        combined_acos = f"{group.total_spend / group.total_sales * 100:.1f}"
    else:
        combined_acos = "N/A"
    return (
        f"Keyword '{group.keyword}' appears in {len(group.occurrences)} campaigns: {names}. "
        f"Total spend: ${group.total_spend:.2f}, Total orders: {group.total_orders}, "
        f"Combined ACOS: {combined_acos}%. "
        f"Consider consolidating to a single campaign to avoid bidding against yourself and optimize ad spend."
    )


def calculate_duplicate_impact(group: DuplicateKeywordGroup) -> dict:
    return expected_impact("spend", group.total_spend, max(0.0, group.total_spend * CONSOLIDATION_SPEND_FACTOR))


def generate_duplicate_recommendation(
    group: DuplicateKeywordGroup,
    keyword_metric_id: Optional[uuid.UUID],
) -> GeneratedRecommendation:
    """Confidence uses the combined data across every occurrence."""
    impact = calculate_duplicate_impact(group)
    return GeneratedRecommendation(
        type=RecommendationType.DUPLICATE_KEYWORD,
        keyword=group.keyword,
        keyword_metric_id=keyword_metric_id,
        campaign_id=None,
        confidence=confidence_for(group.total_data_points, group.total_impressions),
        rationale=build_duplicate_rationale(group),
        expected_impact=impact,
        metadata={
            "occurrences": [o.to_dict() for o in group.occurrences],
            "totalCampaigns": len(group.occurrences),
            "totalSpend": group.total_spend,
            "totalOrders": group.total_orders,
            "potentialSavings": group.total_spend - impact["projected"],
        },
    )
