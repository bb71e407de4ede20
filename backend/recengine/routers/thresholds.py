"""
Thresholds Router — view and edit per-brand recommendation thresholds.
Overrides live in the owning company's settings under brandThresholds[brandId].
"""

import uuid
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from recengine.database import get_db
from recengine.models import Brand
from recengine.services.thresholds import (
    DEFAULT_THRESHOLDS, RecommendationThresholds,
    get_brand_overrides, resolve_thresholds, store_brand_overrides,
)
from recengine.utils import parse_uuid

router = APIRouter()


async def _get_brand(db: AsyncSession, brand_id: uuid.UUID) -> Brand:
    result = await db.execute(select(Brand).options(selectinload(Brand.company)).where(Brand.id == brand_id))
    brand = result.scalar_one_or_none()
    if not brand:
        raise HTTPException(404, "Brand not found")
    return brand


def _serialize_thresholds(brand: Brand) -> dict:
    company_settings = brand.company.settings if brand.company else None
    overrides = get_brand_overrides(company_settings, brand.id)
    return {
        "brand_id": str(brand.id),
        "effective": resolve_thresholds(company_settings, brand.id).model_dump(by_alias=True),
        "overrides": overrides.model_dump(by_alias=True, exclude_none=True) if overrides else None,
        "defaults": DEFAULT_THRESHOLDS.model_dump(by_alias=True),
    }


@router.get("")
async def get_thresholds(
    brand_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Effective thresholds, the brand's own overrides and the defaults."""
    brand = await _get_brand(db, parse_uuid(brand_id, "brand_id"))
    return _serialize_thresholds(brand)


@router.put("")
async def update_thresholds(
    overrides: RecommendationThresholds,
    brand_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Replace the brand's overrides. Omitted fields fall back to company settings, then defaults."""
    brand = await _get_brand(db, parse_uuid(brand_id, "brand_id"))
    if not brand.company:
        raise HTTPException(400, "Brand has no company to store thresholds on")
    brand.company.settings = store_brand_overrides(brand.company.settings, brand.id, overrides)
    await db.commit()
    return _serialize_thresholds(brand)
