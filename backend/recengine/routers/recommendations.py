"""
Recommendations Router — list, review and generate recommendations for a brand.
Every endpoint is scoped by brand_id; a recommendation from another brand is a 404.
"""

import logging
import math
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from recengine.database import get_db
from recengine.models import RecommendationStatus, RecommendationType, ConfidenceLevel, ChangeLogAction
from recengine.services.recommendation_actions import (
    NOT_FOUND, ALREADY_ACTIONED, SORT_FIELDS,
    ActionRecommendationParams, RecommendationFilters, Pagination,
    action_recommendation, get_recommendations_for_brand,
    get_recommendation_by_id, get_recommendation_summary,
)
from recengine.services.recommendation_generator import generate_recommendations
from recengine.utils import parse_uuid, safe_error_detail

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request Models ────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    brand_id: str
    dry_run: bool = False
    lookback_days: int = Field(30, ge=1, le=365)


class ActionRequest(BaseModel):
    brand_id: str
    action: ChangeLogAction
    reason: Optional[str] = None
    notes: Optional[str] = None
    snooze_days: Optional[int] = Field(None, ge=1, le=30)


def paginated(result: dict, pagination: Pagination) -> dict:
    total = result["total"]
    return {
        "data": result["data"],
        "meta": {
            "total": total,
            "page": pagination.page,
            "page_size": pagination.page_size,
            "total_pages": math.ceil(total / pagination.page_size) if total else 0,
        },
    }


# ── Read Endpoints ────────────────────────────────────────────────────

@router.get("")
async def list_recommendations(
    brand_id: str = Query(...),
    status: Optional[RecommendationStatus] = Query(None),
    type: Optional[RecommendationType] = Query(None),
    confidence: Optional[ConfidenceLevel] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("createdAt"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    """Paginated recommendations. status=PENDING includes snoozes that have expired."""
    if sort_by not in SORT_FIELDS:
        raise HTTPException(400, f"sort_by must be one of: {', '.join(sorted(SORT_FIELDS))}")

    filters = RecommendationFilters(
        status=status, type=type, confidence=confidence,
        sort_by=sort_by, sort_order=sort_order,
    )
    pagination = Pagination(page=page, page_size=page_size)
    result = await get_recommendations_for_brand(db, parse_uuid(brand_id, "brand_id"), filters, pagination)
    return paginated(result, pagination)


@router.get("/summary")
async def recommendations_summary(
    brand_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Counts by status, type and confidence."""
    return await get_recommendation_summary(db, parse_uuid(brand_id, "brand_id"))


@router.get("/{rec_id}")
async def get_recommendation(
    rec_id: str,
    brand_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Single recommendation with its change log."""
    rec = await get_recommendation_by_id(db, parse_uuid(rec_id, "rec_id"), parse_uuid(brand_id, "brand_id"))
    if not rec:
        raise HTTPException(404, "Recommendation not found")
    return rec


# ── Generation ────────────────────────────────────────────────────────

@router.post("/generate")
async def generate(req: GenerateRequest, db: AsyncSession = Depends(get_db)):
    """Run every finder for the brand now. dry_run=true reports without saving."""
    brand_id = parse_uuid(req.brand_id, "brand_id")
    result = await generate_recommendations(db, brand_id, lookback_days=req.lookback_days, dry_run=req.dry_run)
    if result.generated == 0 and any(e.startswith("Brand not found") for e in result.errors):
        raise HTTPException(404, "Brand not found")
    return result.model_dump()


# ── Review Actions ────────────────────────────────────────────────────

@router.patch("/{rec_id}")
async def review_recommendation(
    rec_id: str,
    req: ActionRequest,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: AsyncSession = Depends(get_db),
):
    """Accept, reject (reason required) or snooze (1-30 days, default 7)."""
    if not x_user_id:
        raise HTTPException(400, "X-User-Id header is required")
    if req.action == ChangeLogAction.REJECTED and not (req.reason or "").strip():
        raise HTTPException(400, "A reason is required when rejecting a recommendation")

    params = ActionRecommendationParams(
        id=parse_uuid(rec_id, "rec_id"),
        brand_id=parse_uuid(req.brand_id, "brand_id"),
        user_id=x_user_id,
        action=req.action,
        reason=req.reason,
        notes=req.notes,
        snooze_days=req.snooze_days,
    )
    result = await action_recommendation(db, params)
    if result.success:
        return result.recommendation

    if result.error == NOT_FOUND:
        raise HTTPException(404, "Recommendation not found")
    if result.error == ALREADY_ACTIONED:
        raise HTTPException(400, "Recommendation has already been actioned")
    raise HTTPException(500, safe_error_detail(RuntimeError(result.error)))
