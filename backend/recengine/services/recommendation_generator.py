"""
Recommendation Generator — runs every finder for one brand, turns candidates
into recommendations, and saves the ones that aren't already pending.

Order: graduation, duplicate, negative, budget increase, bid decrease.
Order only affects log output; each finder reads the same metric snapshot.

Adding a recommendation type means adding one entry to GENERATORS and one
to DEDUP_KEY_FIELDS; both tables are checked against RecommendationType
when this module is imported.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Tuple
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from recengine.models import Brand, Recommendation, RecommendationType, RecommendationStatus
from recengine.services.budget_strategy import (
    find_budget_increase_candidates, find_bid_decrease_candidates,
    generate_budget_recommendation, generate_bid_decrease_recommendation,
)
from recengine.services.duplicate_keywords import find_duplicate_keywords, generate_duplicate_recommendation
from recengine.services.keyword_graduation import find_graduation_candidates, generate_graduation_recommendation
from recengine.services.metric_aggregator import find_latest_keyword_metric_id
from recengine.services.negative_keywords import find_negative_keywords, generate_negative_recommendation
from recengine.services.recommendation_types import GeneratedRecommendation
from recengine.services.thresholds import RequiredThresholds, resolve_thresholds
from recengine.utils import utcnow

logger = logging.getLogger(__name__)


class GenerateRecommendationsResult(BaseModel):
    generated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = []
    recommendations: List[Dict[str, str]] = []


@dataclass
class SaveResult:
    saved: int = 0
    skipped: int = 0
    failed: int = 0


# ══════════════════════════════════════════════════════════════════════
#  TYPE DISPATCH
# ══════════════════════════════════════════════════════════════════════

FindFn = Callable[[AsyncSession, uuid.UUID, RequiredThresholds, int], Awaitable[list]]
GenerateFn = Callable[[AsyncSession, Any, RequiredThresholds], Awaitable[GeneratedRecommendation]]


@dataclass(frozen=True)
class GeneratorStage:
    find: FindFn
    generate: GenerateFn
    label: Callable[[Any], str]      # keyword or campaign name, for error messages
    error_prefix: str


async def _find_duplicates(db, brand_id, thresholds, lookback_days):
    return await find_duplicate_keywords(db, brand_id, lookback_days)


async def _generate_graduation(db, candidate, thresholds):
    metric_id = await find_latest_keyword_metric_id(db, candidate.keyword, candidate.campaign_id, candidate.match_type)
    return generate_graduation_recommendation(candidate, metric_id, thresholds)


async def _generate_duplicate(db, group, thresholds):
    # Reference the first occurrence's latest metric row
    metric_id = await find_latest_keyword_metric_id(
        db, group.keyword, group.occurrences[0].campaign_id, group.occurrences[0].match_type,
    )
    return generate_duplicate_recommendation(group, metric_id)


async def _generate_negative(db, candidate, thresholds):
    metric_id = await find_latest_keyword_metric_id(db, candidate.keyword, candidate.campaign_id, candidate.match_type)
    return generate_negative_recommendation(candidate, metric_id)


async def _generate_budget(db, candidate, thresholds):
    return generate_budget_recommendation(candidate)


async def _generate_bid_decrease(db, candidate, thresholds):
    return generate_bid_decrease_recommendation(candidate)


GENERATORS: Dict[RecommendationType, GeneratorStage] = {
    RecommendationType.KEYWORD_GRADUATION: GeneratorStage(
        find=find_graduation_candidates,
        generate=_generate_graduation,
        label=lambda c: c.keyword,
        error_prefix="Error generating recommendation for",
    ),
    RecommendationType.DUPLICATE_KEYWORD: GeneratorStage(
        find=_find_duplicates,
        generate=_generate_duplicate,
        label=lambda g: g.keyword,
        error_prefix="Error generating duplicate recommendation for",
    ),
    RecommendationType.NEGATIVE_KEYWORD: GeneratorStage(
        find=find_negative_keywords,
        generate=_generate_negative,
        label=lambda c: c.keyword,
        error_prefix="Error generating negative recommendation for",
    ),
    RecommendationType.BUDGET_INCREASE: GeneratorStage(
        find=find_budget_increase_candidates,
        generate=_generate_budget,
        label=lambda c: c.metrics.campaign_name,
        error_prefix="Error generating budget recommendation for",
    ),
    RecommendationType.BID_DECREASE: GeneratorStage(
        find=find_bid_decrease_candidates,
        generate=_generate_bid_decrease,
        label=lambda c: c.metrics.campaign_name,
        error_prefix="Error generating bid decrease recommendation for",
    ),
}

# Natural key (beyond brand + type + PENDING) for "already recommended"
DEDUP_KEY_FIELDS: Dict[RecommendationType, Tuple[str, ...]] = {
    RecommendationType.KEYWORD_GRADUATION: ("keyword", "campaign_id"),
    RecommendationType.DUPLICATE_KEYWORD: ("keyword",),
    RecommendationType.NEGATIVE_KEYWORD: ("keyword", "campaign_id"),
    RecommendationType.BUDGET_INCREASE: ("campaign_id",),
    RecommendationType.BID_DECREASE: ("campaign_id",),
}


def _check_dispatch_tables():
    expected = set(RecommendationType)
    for name, table in (("GENERATORS", GENERATORS), ("DEDUP_KEY_FIELDS", DEDUP_KEY_FIELDS)):
        missing = expected - set(table)
        if missing:
            raise RuntimeError(f"{name} has no entry for: {sorted(t.value for t in missing)}")


_check_dispatch_tables()


# ══════════════════════════════════════════════════════════════════════
#  DEDUPLICATION & PERSISTENCE
# ══════════════════════════════════════════════════════════════════════

async def find_pending_duplicate(db: AsyncSession, brand_id: uuid.UUID, rec: GeneratedRecommendation):
    """Existing PENDING recommendation with the same natural key, or None."""
    query = select(Recommendation.id).where(
        Recommendation.brand_id == brand_id,
        Recommendation.type == rec.type.value,
        Recommendation.status == RecommendationStatus.PENDING.value,
    )
    for field_name in DEDUP_KEY_FIELDS[rec.type]:
        query = query.where(getattr(Recommendation, field_name) == getattr(rec, field_name))
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


async def save_recommendations(
    db: AsyncSession,
    brand_id: uuid.UUID,
    recommendations: List[GeneratedRecommendation],
) -> SaveResult:
    """
    Each row commits on its own. A failed write is rolled back, logged and
    counted; the rest of the batch still goes through.
    """
    result = SaveResult()
    for rec in recommendations:
        try:
            if await find_pending_duplicate(db, brand_id, rec):
                result.skipped += 1
                continue

            now = utcnow()
            db.add(Recommendation(
                brand_id=brand_id,
                type=rec.type.value,
                status=RecommendationStatus.PENDING.value,
                confidence=rec.confidence.value,
                keyword=rec.keyword,
                keyword_metric_id=rec.keyword_metric_id,
                campaign_id=rec.campaign_id,
                rationale=rec.rationale,
                expected_impact=rec.expected_impact,
                metadata_json=rec.metadata,
                generated_at=now,
            ))
            await db.commit()
            result.saved += 1
        except Exception as e:
            await db.rollback()
            result.failed += 1
            logger.error(f"Failed to save {rec.type.value} recommendation for '{rec.keyword}': {e}")
    return result


# ══════════════════════════════════════════════════════════════════════
#  ORCHESTRATOR
# ══════════════════════════════════════════════════════════════════════

def _error_message(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


async def collect_recommendations(
    db: AsyncSession,
    brand_id: uuid.UUID,
    thresholds: RequiredThresholds,
    lookback_days: int,
    errors: List[str],
) -> List[GeneratedRecommendation]:
    """Run every finder and generator. Per-candidate failures are appended to errors."""
    recommendations: List[GeneratedRecommendation] = []
    for rec_type, stage in GENERATORS.items():
        candidates = await stage.find(db, brand_id, thresholds, lookback_days)
        for candidate in candidates:
            try:
                recommendations.append(await stage.generate(db, candidate, thresholds))
            except Exception as e:
                label = stage.label(candidate)
                logger.warning(f"{rec_type.value} generation failed for '{label}': {e}")
                errors.append(f'{stage.error_prefix} "{label}": {_error_message(e)}')
    return recommendations


async def generate_recommendations(
    db: AsyncSession,
    brand_id: uuid.UUID,
    lookback_days: int = 30,
    dry_run: bool = False,
) -> GenerateRecommendationsResult:
    """
    Generate all recommendation types for a brand.

    dry_run reports what would be created without writing anything; its
    `generated` count is the number of candidates found. A missing brand or an
    unexpected failure is reported through `errors`, never raised.
    """
    errors: List[str] = []
    try:
        result = await db.execute(
            select(Brand).options(selectinload(Brand.company)).where(Brand.id == brand_id)
        )
        brand = result.scalar_one_or_none()
        if not brand:
            return GenerateRecommendationsResult(errors=[f"Brand not found: {brand_id}"])

        brand_name = brand.name
        company_settings = brand.company.settings if brand.company else None
        thresholds = resolve_thresholds(company_settings, brand.id)

        recommendations = await collect_recommendations(db, brand.id, thresholds, lookback_days, errors)

        if dry_run:
            save = SaveResult(saved=len(recommendations))
        elif recommendations:
            save = await save_recommendations(db, brand_id, recommendations)
        else:
            save = SaveResult()

        logger.info(
            f"Recommendations for brand {brand_name} ({brand_id}): {save.saved} generated, "
            f"{save.skipped} skipped, {save.failed} failed, {len(errors)} errors"
            f"{' (dry run)' if dry_run else ''}"
        )
        return GenerateRecommendationsResult(
            generated=save.saved,
            skipped=save.skipped,
            failed=save.failed,
            errors=errors,
            recommendations=[r.summary() for r in recommendations],
        )
    except Exception as e:
        logger.exception(f"Recommendation generation failed for brand {brand_id}")
        await db.rollback()
        return GenerateRecommendationsResult(errors=[f"Fatal error: {_error_message(e)}"])
