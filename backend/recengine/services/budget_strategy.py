"""
Budget & Bid Strategy — campaign-level recommendations.

Budget increase: campaign keeps hitting its daily budget while performing
well (utilization >= threshold AND (ACOS < max_acos_for_increase OR ROAS >= min_roas)).

Bid decrease: campaign is over-spending for its return
(ACOS >= min_acos_for_decrease AND ROAS < min_roas).
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from recengine.models import RecommendationType
from recengine.services.confidence_scoring import confidence_for
from recengine.services.metric_aggregator import CampaignMetricsAggregate, aggregate_campaign_metrics
from recengine.services.recommendation_types import GeneratedRecommendation, expected_impact
from recengine.services.thresholds import RequiredThresholds

logger = logging.getLogger(__name__)

BUDGET_INCREASE_FACTOR = 1.25
MIN_BID_REDUCTION = 0.15
MAX_BID_REDUCTION = 0.20


@dataclass(frozen=True)
class BudgetIncreaseCandidate:
    metrics: CampaignMetricsAggregate
    suggested_daily_budget: float
    expected_additional_spend: float


@dataclass(frozen=True)
class BidDecreaseCandidate:
    metrics: CampaignMetricsAggregate
    target_acos: float
    suggested_bid_reduction: float       # fraction, 0.15 = 15%
    expected_acos_improvement: float     # projected ACOS after the reduction


# ── Candidate selection ──────────────────────────────────────────────

def evaluate_budget_increase(metrics: CampaignMetricsAggregate, thresholds: RequiredThresholds):
    """Returns a BudgetIncreaseCandidate, or None if the campaign doesn't qualify."""
    budget = thresholds.budget
    if metrics.budget_utilization < budget.budget_utilization:
        return None
    if not (metrics.acos < budget.max_acos_for_increase or metrics.roas >= budget.min_roas):
        return None
    suggested = metrics.daily_budget * BUDGET_INCREASE_FACTOR
    return BudgetIncreaseCandidate(
        metrics=metrics,
        suggested_daily_budget=suggested,
        expected_additional_spend=suggested - metrics.daily_budget,
    )


def evaluate_bid_decrease(metrics: CampaignMetricsAggregate, thresholds: RequiredThresholds):
    """Returns a BidDecreaseCandidate, or None if the campaign doesn't qualify."""
    budget = thresholds.budget
    if metrics.acos <= 0 or metrics.acos < budget.min_acos_for_decrease:
        return None
    if metrics.roas >= budget.min_roas:
        return None
    target_acos = budget.max_acos_for_increase
    # Reduce in proportion to the excess over target, clamped to 15-20%
    reduction = max(MIN_BID_REDUCTION, min(MAX_BID_REDUCTION, (metrics.acos - target_acos) / metrics.acos))
    return BidDecreaseCandidate(
        metrics=metrics,
        target_acos=target_acos,
        suggested_bid_reduction=reduction,
        expected_acos_improvement=metrics.acos * (1 - reduction * 0.5),
    )


async def find_budget_increase_candidates(
    db: AsyncSession,
    brand_id: uuid.UUID,
    thresholds: RequiredThresholds,
    lookback_days: int = 30,
) -> List[BudgetIncreaseCandidate]:
    """Best ROAS first."""
    campaigns = await aggregate_campaign_metrics(db, brand_id, lookback_days)
    candidates = [c for c in (evaluate_budget_increase(m, thresholds) for m in campaigns) if c]
    candidates.sort(key=lambda c: c.metrics.roas, reverse=True)
    logger.info(f"Budget increase: {len(candidates)} of {len(campaigns)} campaigns for brand {brand_id}")
    return candidates


async def find_bid_decrease_candidates(
    db: AsyncSession,
    brand_id: uuid.UUID,
    thresholds: RequiredThresholds,
    lookback_days: int = 30,
) -> List[BidDecreaseCandidate]:
    """Worst ACOS first."""
    campaigns = await aggregate_campaign_metrics(db, brand_id, lookback_days)
    candidates = [c for c in (evaluate_bid_decrease(m, thresholds) for m in campaigns) if c]
    candidates.sort(key=lambda c: c.metrics.acos, reverse=True)
    logger.info(f"Bid decrease: {len(candidates)} of {len(campaigns)} campaigns for brand {brand_id}")
    return candidates


# ── Rationale & impact ───────────────────────────────────────────────

def build_budget_increase_rationale(candidate: BudgetIncreaseCandidate) -> str:
    m = candidate.metrics
    return (
        f"Campaign '{m.campaign_name}' is consistently hitting its budget limit "
        f"({m.budget_utilization * 100:.0f}% utilization) while maintaining strong performance "
        f"({m.acos * 100:.1f}% ACOS, {m.roas:.2f}x ROAS). "
        f"Increasing daily budget to ${candidate.suggested_daily_budget:.2f} would capture additional profitable traffic."
    )


def build_bid_decrease_rationale(candidate: BidDecreaseCandidate) -> str:
    m = candidate.metrics
    return (
        f"Campaign '{m.campaign_name}' has ACOS of {m.acos * 100:.1f}%, significantly above "
        f"the target of {candidate.target_acos * 100:.1f}%. "
        f"Reducing bids by {candidate.suggested_bid_reduction * 100:.0f}% should improve ACOS "
        f"towards {candidate.expected_acos_improvement * 100:.1f}% while maintaining impression share."
    )


def calculate_budget_impact(candidate: BudgetIncreaseCandidate) -> dict:
    """Daily sales at the new budget, assuming ACOS holds."""
    m = candidate.metrics
    current_daily_sales = m.avg_daily_spend / m.acos if m.acos > 0 else 0.0
    if m.acos > 0:
        projected_daily_sales = candidate.suggested_daily_budget / m.acos
    else:
        projected_daily_sales = current_daily_sales
    return expected_impact("daily_sales", current_daily_sales, projected_daily_sales)


def calculate_bid_impact(candidate: BidDecreaseCandidate) -> dict:
    return expected_impact("acos", candidate.metrics.acos, candidate.expected_acos_improvement)


# ── Generators ───────────────────────────────────────────────────────

def generate_budget_recommendation(candidate: BudgetIncreaseCandidate) -> GeneratedRecommendation:
    m = candidate.metrics
    return GeneratedRecommendation(
        type=RecommendationType.BUDGET_INCREASE,
        keyword=m.campaign_name,
        keyword_metric_id=None,
        campaign_id=m.campaign_id,
        confidence=confidence_for(m.data_points, m.total_impressions),
        rationale=build_budget_increase_rationale(candidate),
        expected_impact=calculate_budget_impact(candidate),
        metadata={
            "campaignName": m.campaign_name,
            "currentDailyBudget": m.daily_budget,
            "suggestedDailyBudget": candidate.suggested_daily_budget,
            "budgetUtilization": m.budget_utilization,
            "currentAcos": m.acos,
            "currentRoas": m.roas,
            "expectedAdditionalSpend": candidate.expected_additional_spend,
        },
    )


def generate_bid_decrease_recommendation(candidate: BidDecreaseCandidate) -> GeneratedRecommendation:
    m = candidate.metrics
    return GeneratedRecommendation(
        type=RecommendationType.BID_DECREASE,
        keyword=m.campaign_name,
        keyword_metric_id=None,
        campaign_id=m.campaign_id,
        confidence=confidence_for(m.data_points, m.total_impressions),
        rationale=build_bid_decrease_rationale(candidate),
        expected_impact=calculate_bid_impact(candidate),
        metadata={
            "campaignName": m.campaign_name,
            "currentAcos": m.acos,
            "targetAcos": candidate.target_acos,
            "suggestedBidReduction": candidate.suggested_bid_reduction,
            "expectedAcosImprovement": candidate.expected_acos_improvement,
        },
    )
