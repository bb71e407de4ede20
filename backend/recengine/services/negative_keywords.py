"""
Negative Keyword Suggestions — keywords with real spend and clicks but no
orders, which should be negated to stop wasting budget.
"""

import logging
import uuid
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from recengine.models import RecommendationType
from recengine.services.confidence_scoring import confidence_for
from recengine.services.metric_aggregator import KeywordMetricsAggregate, aggregate_keyword_metrics
from recengine.services.recommendation_types import GeneratedRecommendation, expected_impact
from recengine.services.thresholds import RequiredThresholds

logger = logging.getLogger(__name__)


def meets_negative_thresholds(metrics: KeywordMetricsAggregate, thresholds: RequiredThresholds) -> bool:
    """Inclusive on every bound: spend >= min, orders <= max, clicks >= min."""
    negative = thresholds.negative
    return (
        metrics.total_spend >= negative.min_spend
        and metrics.total_orders <= negative.max_orders
        and metrics.total_clicks >= negative.min_clicks
    )


async def find_negative_keywords(
    db: AsyncSession,
    brand_id: uuid.UUID,
    thresholds: RequiredThresholds,
    lookback_days: int = 30,
) -> List[KeywordMetricsAggregate]:
    """Worst offenders (highest spend) first."""
    aggregates = await aggregate_keyword_metrics(db, brand_id, lookback_days)
    candidates = [a for a in aggregates if meets_negative_thresholds(a, thresholds)]
    candidates.sort(key=lambda a: a.total_spend, reverse=True)
    logger.info(f"Negative keywords: {len(candidates)} candidates for brand {brand_id}")
    return candidates


def build_negative_rationale(metrics: KeywordMetricsAggregate) -> str:
    if metrics.total_impressions > 0:
        ctr = f"{metrics.total_clicks / metrics.total_impressions * 100:.2f}"
    else:
        ctr = "0.00"
    return (
        f"Keyword '{metrics.keyword}' has spent ${metrics.total_spend:.2f} with {metrics.total_clicks} clicks "
        f"and {metrics.total_impressions:,} impressions ({ctr}% CTR) but generated 0 orders. "
        f"Consider adding as a negative keyword in campaign '{metrics.campaign_name}' to stop wasting ad budget."
    )


def calculate_negative_impact(metrics: KeywordMetricsAggregate) -> dict:
    # Negated keyword stops spending entirely
    return expected_impact("spend", metrics.total_spend, 0.0)


def generate_negative_recommendation(
    metrics: KeywordMetricsAggregate,
    keyword_metric_id: Optional[uuid.UUID],
) -> GeneratedRecommendation:
    return GeneratedRecommendation(
        type=RecommendationType.NEGATIVE_KEYWORD,
        keyword=metrics.keyword,
        keyword_metric_id=keyword_metric_id,
        campaign_id=metrics.campaign_id,
        confidence=confidence_for(metrics.data_points, metrics.total_impressions),
        rationale=build_negative_rationale(metrics),
        expected_impact=calculate_negative_impact(metrics),
        metadata={
            "campaigns": [metrics.campaign_name],
            "campaignIds": [str(metrics.campaign_id)],
            "matchType": metrics.match_type,
            "totalSpend": metrics.total_spend,
            "totalClicks": metrics.total_clicks,
            "totalImpressions": metrics.total_impressions,
        },
    )
