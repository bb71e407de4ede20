"""
Tests for the HTTP surface: recommendations, change log, thresholds, cron and auth.
"""

import uuid
from unittest.mock import patch, AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from recengine.config import Settings
from recengine.database import get_db
from recengine.main import app
from recengine.models import RecommendationType
from recengine.services.scheduler import ScheduledGenerationResult


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


USER = {"X-User-Id": "reviewer-1"}


# ── Recommendations ───────────────────────────────────────────────────

@pytest.mark.anyio
async def test_list_recommendations_with_meta(client, seed):
    brand = await seed.brand()
    for i in range(3):
        await seed.recommendation(brand, keyword=f"kw{i}")

    response = await client.get("/api/recommendations", params={"brand_id": str(brand.id), "page_size": 2})
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["meta"] == {"total": 3, "page": 1, "page_size": 2, "total_pages": 2}


@pytest.mark.anyio
async def test_list_rejects_unknown_sort_field_and_bad_uuid(client, seed):
    brand = await seed.brand()
    response = await client.get("/api/recommendations", params={"brand_id": str(brand.id), "sort_by": "keyword"})
    assert response.status_code == 400

    response = await client.get("/api/recommendations", params={"brand_id": "not-a-uuid"})
    assert response.status_code == 400


@pytest.mark.anyio
async def test_summary_endpoint(client, seed):
    brand = await seed.brand()
    await seed.recommendation(brand)
    response = await client.get("/api/recommendations/summary", params={"brand_id": str(brand.id)})
    assert response.status_code == 200
    assert response.json()["pending"] == 1


@pytest.mark.anyio
async def test_get_recommendation_is_brand_scoped(client, seed):
    brand = await seed.brand()
    other = await seed.brand("Other")
    rec = await seed.recommendation(brand)

    ok = await client.get(f"/api/recommendations/{rec.id}", params={"brand_id": str(brand.id)})
    assert ok.status_code == 200
    assert ok.json()["id"] == str(rec.id)
    assert ok.json()["type_label"] == "Negative Keyword"
    assert ok.json()["improvement_percentage"] == 100.0

    hidden = await client.get(f"/api/recommendations/{rec.id}", params={"brand_id": str(other.id)})
    assert hidden.status_code == 404
    assert hidden.json()["detail"] == "Recommendation not found"


@pytest.mark.anyio
async def test_generate_dry_run_and_unknown_brand(client, seed):
    brand = await seed.brand()
    campaign = await seed.campaign(brand, "Discovery - Bottles")
    await seed.metrics(campaign, "eco bottle", days=35, spend=60, orders=8, sales=300, impressions=3500, clicks=350)

    response = await client.post("/api/recommendations/generate", json={
        "brand_id": str(brand.id), "dry_run": True, "lookback_days": 35,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["generated"] == 1
    assert body["recommendations"][0]["keyword"] == "eco bottle"

    listing = await client.get("/api/recommendations", params={"brand_id": str(brand.id)})
    assert listing.json()["meta"]["total"] == 0

    missing = await client.post("/api/recommendations/generate", json={"brand_id": str(uuid.uuid4())})
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_review_requires_user_header(client, seed):
    brand = await seed.brand()
    rec = await seed.recommendation(brand)
    response = await client.patch(
        f"/api/recommendations/{rec.id}", json={"brand_id": str(brand.id), "action": "ACCEPTED"},
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_reject_requires_reason(client, seed):
    brand = await seed.brand()
    rec = await seed.recommendation(brand)
    response = await client.patch(
        f"/api/recommendations/{rec.id}", headers=USER,
        json={"brand_id": str(brand.id), "action": "REJECTED", "reason": "  "},
    )
    assert response.status_code == 400
    assert "reason" in response.json()["detail"]


@pytest.mark.anyio
async def test_snooze_days_out_of_range_is_rejected(client, seed):
    brand = await seed.brand()
    rec = await seed.recommendation(brand)
    response = await client.patch(
        f"/api/recommendations/{rec.id}", headers=USER,
        json={"brand_id": str(brand.id), "action": "SNOOZED", "snooze_days": 45},
    )
    assert response.status_code == 422


@pytest.mark.anyio
async def test_accept_then_second_action_conflicts(client, seed):
    brand = await seed.brand()
    rec = await seed.recommendation(brand)
    url = f"/api/recommendations/{rec.id}"

    first = await client.patch(url, headers=USER, json={"brand_id": str(brand.id), "action": "ACCEPTED"})
    assert first.status_code == 200
    body = first.json()
    assert body["status"] == "ACCEPTED"
    assert body["change_log_entries"][0]["user_id"] == "reviewer-1"

    second = await client.patch(url, headers=USER, json={"brand_id": str(brand.id), "action": "SNOOZED"})
    assert second.status_code == 400
    assert second.json()["detail"] == "Recommendation has already been actioned"


@pytest.mark.anyio
async def test_review_from_other_brand_is_not_found(client, seed):
    brand = await seed.brand()
    other = await seed.brand("Other")
    rec = await seed.recommendation(brand)
    response = await client.patch(
        f"/api/recommendations/{rec.id}", headers=USER, json={"brand_id": str(other.id), "action": "ACCEPTED"},
    )
    assert response.status_code == 404


# ── Change log ────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_change_log_endpoint(client, seed):
    brand = await seed.brand()
    rec = await seed.recommendation(brand, keyword="eco bottle", rec_type=RecommendationType.BID_DECREASE)
    await client.patch(
        f"/api/recommendations/{rec.id}", headers=USER,
        json={"brand_id": str(brand.id), "action": "REJECTED", "reason": "seasonal"},
    )

    response = await client.get("/api/change-log", params={"brand_id": str(brand.id), "action": "REJECTED"})
    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["total"] == 1
    assert body["data"][0]["reason"] == "seasonal"

    bad_range = await client.get("/api/change-log", params={
        "brand_id": str(brand.id), "start_date": "2024-05-02", "end_date": "2024-05-01",
    })
    assert bad_range.status_code == 400


# ── Thresholds ────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_thresholds_get_and_put(client, seed):
    brand = await seed.brand(settings={"recommendationThresholds": {"negative": {"minSpend": 40}}})
    params = {"brand_id": str(brand.id)}

    current = (await client.get("/api/thresholds", params=params)).json()
    assert current["effective"]["negative"]["minSpend"] == 40
    assert current["overrides"] is None
    assert current["defaults"]["graduation"]["maxAcos"] == 0.25

    updated = await client.put("/api/thresholds", params=params, json={"graduation": {"minConversions": 10}})
    assert updated.status_code == 200
    body = updated.json()
    assert body["overrides"] == {"graduation": {"minConversions": 10}}
    assert body["effective"]["graduation"]["minConversions"] == 10
    # Company-wide override still applies underneath
    assert body["effective"]["negative"]["minSpend"] == 40

    again = (await client.get("/api/thresholds", params=params)).json()
    assert again["overrides"] == {"graduation": {"minConversions": 10}}


@pytest.mark.anyio
async def test_thresholds_unknown_brand(client):
    response = await client.get("/api/thresholds", params={"brand_id": str(uuid.uuid4())})
    assert response.status_code == 404


# ── Cron ──────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_cron_requires_configured_secret(client):
    with patch("recengine.auth.get_settings", return_value=Settings(cron_secret="")):
        response = await client.post("/api/cron/recommendations")
    assert response.status_code == 500


@pytest.mark.anyio
async def test_cron_rejects_wrong_secret(client):
    with patch("recengine.auth.get_settings", return_value=Settings(cron_secret="s3cret-value-123456")):
        response = await client.post("/api/cron/recommendations", headers={"X-Cron-Secret": "nope"})
    assert response.status_code == 401


@pytest.mark.anyio
@pytest.mark.parametrize("headers", [
    {"X-Cron-Secret": "s3cret-value-123456"},
    {"Authorization": "Bearer s3cret-value-123456"},
])
async def test_cron_runs_generation(client, headers):
    run = AsyncMock(return_value=ScheduledGenerationResult(total_brands=2, brands_processed=2))
    with patch("recengine.auth.get_settings", return_value=Settings(cron_secret="s3cret-value-123456")), \
            patch("recengine.routers.cron.run_scheduled_recommendation_generation", run):
        response = await client.post("/api/cron/recommendations", params={"force": "true"}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["result"]["brands_processed"] == 2
    run.assert_awaited_once_with(force=True)


@pytest.mark.anyio
async def test_cron_reports_skipped_runs(client):
    run = AsyncMock(return_value=ScheduledGenerationResult(skipped="wrong_day"))
    with patch("recengine.auth.get_settings", return_value=Settings(cron_secret="s3cret-value-123456")), \
            patch("recengine.routers.cron.run_scheduled_recommendation_generation", run):
        response = await client.post("/api/cron/recommendations", headers={"X-Cron-Secret": "s3cret-value-123456"})
    assert response.json()["status"] == "skipped"


# ── API key auth ──────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_api_key_is_enforced_when_configured(client, seed):
    brand = await seed.brand()
    params = {"brand_id": str(brand.id)}
    with patch("recengine.auth.get_settings", return_value=Settings(api_key="test-key")):
        missing = await client.get("/api/recommendations", params=params)
        wrong = await client.get("/api/recommendations", params=params, headers={"Authorization": "Bearer nope"})
        ok = await client.get("/api/recommendations", params=params, headers={"Authorization": "Bearer test-key"})
    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.status_code == 200
