"""
Change Log Router — read-only audit trail of review actions for a brand.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from recengine.database import get_db
from recengine.models import ChangeLogAction, RecommendationType
from recengine.routers.recommendations import paginated
from recengine.services.change_log import ChangeLogFilters, get_change_log
from recengine.services.recommendation_actions import Pagination
from recengine.utils import parse_uuid

router = APIRouter()


@router.get("")
async def list_change_log(
    brand_id: str = Query(...),
    recommendation_id: Optional[str] = Query(None),
    action: Optional[ChangeLogAction] = Query(None),
    type: Optional[RecommendationType] = Query(None),
    keyword: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Newest first. Dates are inclusive whole days."""
    if start_date and end_date and start_date > end_date:
        raise HTTPException(400, "start_date must be on or before end_date")

    filters = ChangeLogFilters(
        recommendation_id=parse_uuid(recommendation_id, "recommendation_id") if recommendation_id else None,
        action=action,
        type=type,
        keyword=keyword or None,
        start_date=start_date,
        end_date=end_date,
    )
    pagination = Pagination(page=page, page_size=page_size)
    result = await get_change_log(db, parse_uuid(brand_id, "brand_id"), filters, pagination)
    return paginated(result, pagination)
