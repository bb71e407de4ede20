"""
Keyword Graduation — finds keywords in Discovery campaigns that have proven
themselves and are ready to move to an Accelerate campaign.

A keyword qualifies when ALL of:
  ACOS <= graduation.max_acos
  orders >= graduation.min_conversions
  spend >= graduation.min_spend
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from recengine.models import RecommendationType
from recengine.services.campaign_classifier import is_discovery_campaign, CampaignCategory
from recengine.services.confidence_scoring import confidence_for
from recengine.services.metric_aggregator import KeywordMetricsAggregate, aggregate_keyword_metrics
from recengine.services.recommendation_types import GeneratedRecommendation, expected_impact
from recengine.services.thresholds import RequiredThresholds

logger = logging.getLogger(__name__)

# Exact match in an Accelerate campaign typically improves ACOS 10-20%
GRADUATION_ACOS_FACTOR = 0.85


@dataclass(frozen=True)
class GraduationEligibility:
    eligible: bool
    acos_below_threshold: bool
    meets_conversion_min: bool
    meets_spend_min: bool
    current_acos: float
    current_conversions: int
    current_spend: float
    max_acos: float
    min_conversions: int
    min_spend: float

    def to_dict(self) -> dict:
        return {
            "eligible": self.eligible,
            "acosBelowThreshold": self.acos_below_threshold,
            "meetsConversionMin": self.meets_conversion_min,
            "meetsSpendMin": self.meets_spend_min,
            "metrics": {
                "currentAcos": self.current_acos,
                "currentConversions": self.current_conversions,
                "currentSpend": self.current_spend,
            },
            "thresholds": {
                "maxAcos": self.max_acos,
                "minConversions": self.min_conversions,
                "minSpend": self.min_spend,
            },
        }


def get_graduation_eligibility(metrics: KeywordMetricsAggregate, thresholds: RequiredThresholds) -> GraduationEligibility:
    """Per-criterion breakdown; a keyword must pass all three."""
    graduation = thresholds.graduation
    acos_ok = metrics.acos <= graduation.max_acos
    conversions_ok = metrics.total_orders >= graduation.min_conversions
    spend_ok = metrics.total_spend >= graduation.min_spend
    return GraduationEligibility(
        eligible=acos_ok and conversions_ok and spend_ok,
        acos_below_threshold=acos_ok,
        meets_conversion_min=conversions_ok,
        meets_spend_min=spend_ok,
        current_acos=metrics.acos,
        current_conversions=metrics.total_orders,
        current_spend=metrics.total_spend,
        max_acos=graduation.max_acos,
        min_conversions=graduation.min_conversions,
        min_spend=graduation.min_spend,
    )


def meets_graduation_thresholds(metrics: KeywordMetricsAggregate, thresholds: RequiredThresholds) -> bool:
    return get_graduation_eligibility(metrics, thresholds).eligible


async def find_graduation_candidates(
    db: AsyncSession,
    brand_id: uuid.UUID,
    thresholds: RequiredThresholds,
    lookback_days: int = 30,
) -> List[KeywordMetricsAggregate]:
    aggregates = await aggregate_keyword_metrics(
        db, brand_id, lookback_days,
        campaign_filter=lambda c: is_discovery_campaign(c.name, c.targeting_type),
    )
    candidates = [a for a in aggregates if meets_graduation_thresholds(a, thresholds)]
    logger.info(f"Graduation: {len(candidates)} of {len(aggregates)} Discovery keywords eligible for brand {brand_id}")
    return candidates


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def build_graduation_rationale(metrics: KeywordMetricsAggregate, eligibility: GraduationEligibility) -> str:
    return (
        f"Keyword '{metrics.keyword}' has achieved {metrics.acos * 100:.1f}% ACOS with "
        f"{_plural(metrics.total_orders, 'conversion')} "
        f"and ${metrics.total_spend:.2f} spend over {_plural(metrics.data_points, 'day')} "
        f"in Discovery campaign '{metrics.campaign_name}'. "
        f"Meets all graduation criteria (ACOS < {eligibility.max_acos * 100:.0f}%, "
        f"min {eligibility.min_conversions} conversions, min ${eligibility.min_spend:g} spend). "
        f"Ready to graduate to Accelerate for scaling."
    )


def calculate_graduation_impact(metrics: KeywordMetricsAggregate) -> dict:
    return expected_impact("acos", metrics.acos, max(0.0, metrics.acos * GRADUATION_ACOS_FACTOR))


def generate_graduation_recommendation(
    metrics: KeywordMetricsAggregate,
    keyword_metric_id: Optional[uuid.UUID],
    thresholds: RequiredThresholds,
) -> GeneratedRecommendation:
    """
    The eligibility breakdown in metadata is computed against the same
    thresholds the finder used, so brand overrides show up as applied.
    """
    eligibility = get_graduation_eligibility(metrics, thresholds)
    return GeneratedRecommendation(
        type=RecommendationType.KEYWORD_GRADUATION,
        keyword=metrics.keyword,
        keyword_metric_id=keyword_metric_id,
        campaign_id=metrics.campaign_id,
        confidence=confidence_for(metrics.data_points, metrics.total_impressions),
        rationale=build_graduation_rationale(metrics, eligibility),
        expected_impact=calculate_graduation_impact(metrics),
        metadata={
            "sourceCampaign": metrics.campaign_name,
            "sourceCampaignType": CampaignCategory.DISCOVERY.value,
            "metrics": metrics.to_dict(),
            "eligibility": eligibility.to_dict(),
        },
    )
