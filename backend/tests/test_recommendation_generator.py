"""
Tests for the generation orchestrator: end to end runs, dedup, dry runs and error handling.
"""

import uuid
from unittest.mock import patch, AsyncMock

import pytest
from sqlalchemy import select, func

from recengine.models import Recommendation, RecommendationType, RecommendationStatus, ConfidenceLevel
from recengine.services.recommendation_generator import (
    GENERATORS, DEDUP_KEY_FIELDS, generate_recommendations, save_recommendations,
)
from recengine.services.recommendation_types import GeneratedRecommendation


async def _recommendations(session, brand_id):
    result = await session.execute(
        select(Recommendation).where(Recommendation.brand_id == brand_id).order_by(Recommendation.type)
    )
    return result.scalars().all()


async def _eco_bottle_brand(seed, settings=None):
    brand = await seed.brand("Eco Co", settings=settings)
    campaign = await seed.campaign(brand, "Discovery - Bottles")
    await seed.metrics(campaign, "eco bottle", days=35, spend=60, orders=8, sales=300, impressions=3500, clicks=350)
    return brand, campaign


def test_every_type_has_a_generator_and_dedup_key():
    assert set(GENERATORS) == set(RecommendationType)
    assert set(DEDUP_KEY_FIELDS) == set(RecommendationType)


@pytest.mark.anyio
async def test_eco_bottle_end_to_end(seed):
    brand, campaign = await _eco_bottle_brand(seed)

    result = await generate_recommendations(seed.session, brand.id, lookback_days=35)
    assert result.generated == 1
    assert result.skipped == 0
    assert result.errors == []
    assert result.recommendations == [
        {"type": "KEYWORD_GRADUATION", "keyword": "eco bottle", "confidence": "HIGH"},
    ]

    [rec] = await _recommendations(seed.session, brand.id)
    assert rec.type == RecommendationType.KEYWORD_GRADUATION.value
    assert rec.status == RecommendationStatus.PENDING.value
    assert rec.confidence == ConfidenceLevel.HIGH.value
    assert rec.campaign_id == campaign.id
    assert rec.keyword_metric_id is not None
    assert rec.expected_impact["projected"] == pytest.approx(0.17)
    assert rec.metadata_json["sourceCampaign"] == "Discovery - Bottles"


@pytest.mark.anyio
async def test_generation_is_idempotent(seed):
    brand, _ = await _eco_bottle_brand(seed)

    await generate_recommendations(seed.session, brand.id, lookback_days=35)
    [first] = await _recommendations(seed.session, brand.id)
    first_id, first_generated_at = first.id, first.generated_at

    second = await generate_recommendations(seed.session, brand.id, lookback_days=35)
    assert second.generated == 0
    assert second.skipped == 1

    [again] = await _recommendations(seed.session, brand.id)
    assert again.id == first_id
    assert again.generated_at == first_generated_at


@pytest.mark.anyio
async def test_actioned_recommendation_does_not_block_a_new_one(seed):
    brand, _ = await _eco_bottle_brand(seed)
    await generate_recommendations(seed.session, brand.id, lookback_days=35)
    [rec] = await _recommendations(seed.session, brand.id)
    rec.status = RecommendationStatus.REJECTED.value
    await seed.session.commit()

    result = await generate_recommendations(seed.session, brand.id, lookback_days=35)
    assert result.generated == 1
    assert len(await _recommendations(seed.session, brand.id)) == 2


@pytest.mark.anyio
async def test_dry_run_writes_nothing(seed):
    brand, _ = await _eco_bottle_brand(seed)

    result = await generate_recommendations(seed.session, brand.id, lookback_days=35, dry_run=True)
    assert result.generated == 1
    assert result.skipped == 0
    assert len(result.recommendations) == 1
    assert await _recommendations(seed.session, brand.id) == []


@pytest.mark.anyio
async def test_brand_without_campaigns_is_a_quiet_success(seed):
    brand = await seed.brand("Empty")
    result = await generate_recommendations(seed.session, brand.id)
    assert (result.generated, result.skipped, result.errors) == (0, 0, [])


@pytest.mark.anyio
async def test_unknown_brand_is_reported_not_raised(db):
    missing = uuid.uuid4()
    result = await generate_recommendations(db, missing)
    assert result.generated == 0
    assert result.errors == [f"Brand not found: {missing}"]


@pytest.mark.anyio
async def test_brand_threshold_overrides_apply(seed):
    brand, _ = await _eco_bottle_brand(seed)
    brand.company.settings = {"brandThresholds": {str(brand.id): {"graduation": {"minConversions": 10}}}}
    await seed.session.commit()

    result = await generate_recommendations(seed.session, brand.id, lookback_days=35)
    assert result.generated == 0


@pytest.mark.anyio
async def test_all_types_in_one_run(seed):
    brand = await seed.brand("Full House")
    discovery = await seed.campaign(brand, "Discovery - Bottles")
    accelerate = await seed.campaign(brand, "Accelerate - Bottles", daily_budget=100)
    bleeding = await seed.campaign(brand, "Scale - Bleeding", daily_budget=100)
    await seed.metrics(discovery, "eco bottle", days=35, spend=60, orders=8, sales=300, impressions=3500, clicks=350)
    await seed.metrics(discovery, "free bottle", days=10, spend=40, clicks=80, impressions=5000)
    await seed.metrics(accelerate, "eco bottle", days=10, spend=980, orders=60, sales=4900, impressions=20000, clicks=900)
    await seed.metrics(bleeding, "glass jar", days=10, spend=500, orders=20, sales=500, impressions=8000, clicks=400)

    result = await generate_recommendations(seed.session, brand.id, lookback_days=35)
    assert result.errors == []
    assert sorted(r["type"] for r in result.recommendations) == sorted([
        "KEYWORD_GRADUATION", "DUPLICATE_KEYWORD", "NEGATIVE_KEYWORD", "BUDGET_INCREASE", "BID_DECREASE",
    ])
    assert result.generated == 5

    recs = {r.type: r for r in await _recommendations(seed.session, brand.id)}
    assert recs["DUPLICATE_KEYWORD"].campaign_id is None
    assert recs["DUPLICATE_KEYWORD"].keyword == "eco bottle"
    assert recs["BUDGET_INCREASE"].campaign_id == accelerate.id
    assert recs["BUDGET_INCREASE"].keyword == "Accelerate - Bottles"
    assert recs["BID_DECREASE"].campaign_id == bleeding.id
    assert recs["NEGATIVE_KEYWORD"].keyword == "free bottle"


@pytest.mark.anyio
async def test_generator_failure_is_collected_and_run_continues(seed):
    brand, _ = await _eco_bottle_brand(seed)
    other = await seed.campaign(brand, "Performance - Core")
    await seed.metrics(other, "free bottle", days=10, spend=40, clicks=80, impressions=5000)

    with patch(
        "recengine.services.recommendation_generator.generate_negative_recommendation",
        side_effect=ValueError("boom"),
    ):
        result = await generate_recommendations(seed.session, brand.id, lookback_days=35)

    assert result.errors == ['Error generating negative recommendation for "free bottle": boom']
    assert result.generated == 1
    assert [r["type"] for r in result.recommendations] == ["KEYWORD_GRADUATION"]


@pytest.mark.anyio
async def test_fatal_error_reports_single_error(seed):
    brand, _ = await _eco_bottle_brand(seed)
    with patch(
        "recengine.services.recommendation_generator.resolve_thresholds",
        side_effect=RuntimeError("settings exploded"),
    ):
        result = await generate_recommendations(seed.session, brand.id)
    assert (result.generated, result.skipped) == (0, 0)
    assert result.errors == ["Fatal error: settings exploded"]


@pytest.mark.anyio
async def test_save_failure_drops_row_and_continues(seed):
    brand = await seed.brand()
    recs = [
        GeneratedRecommendation(
            type=RecommendationType.NEGATIVE_KEYWORD,
            keyword=keyword,
            keyword_metric_id=None,
            campaign_id=None,
            confidence=ConfidenceLevel.LOW,
            rationale="r",
            expected_impact={"metric": "spend", "current": 30.0, "projected": 0.0},
        )
        for keyword in ("first", "second")
    ]
    with patch(
        "recengine.services.recommendation_generator.find_pending_duplicate",
        new_callable=AsyncMock,
        side_effect=[RuntimeError("db hiccup"), None],
    ):
        result = await save_recommendations(seed.session, brand.id, recs)

    assert (result.saved, result.skipped, result.failed) == (1, 0, 1)
    count = (await seed.session.execute(select(func.count()).select_from(Recommendation))).scalar()
    assert count == 1


@pytest.mark.anyio
async def test_same_keyword_under_two_match_types_saves_once(seed):
    brand = await seed.brand("Eco Co")
    campaign = await seed.campaign(brand, "Discovery - Bottles")
    for match_type in ("exact", "broad"):
        await seed.metrics(
            campaign, "eco bottle", days=35, spend=60, orders=8, sales=300,
            impressions=3500, clicks=350, match_type=match_type,
        )

    result = await generate_recommendations(seed.session, brand.id, lookback_days=35)
    # Both candidates share one dedup key, so the second in the batch is skipped
    assert (result.generated, result.skipped) == (1, 1)
    assert len(result.recommendations) == 2
    assert len(await _recommendations(seed.session, brand.id)) == 1
