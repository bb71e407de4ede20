"""
Change Log — read-only view of the audit trail, scoped to a brand through
each entry's recommendation. Entries are written only by recommendation_actions.
"""

import uuid
from datetime import date, datetime, time, timedelta
from typing import Optional
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from recengine.models import ChangeLogEntry, Recommendation, ChangeLogAction, RecommendationType
from recengine.services.recommendation_actions import Pagination, serialize_change_log_entry


class ChangeLogFilters(BaseModel):
    recommendation_id: Optional[uuid.UUID] = None
    action: Optional[ChangeLogAction] = None
    type: Optional[RecommendationType] = None
    keyword: Optional[str] = None         # case-insensitive substring of the recommendation keyword
    start_date: Optional[date] = None     # inclusive, whole day
    end_date: Optional[date] = None       # inclusive, whole day


async def get_change_log(
    db: AsyncSession,
    brand_id: uuid.UUID,
    filters: Optional[ChangeLogFilters] = None,
    pagination: Optional[Pagination] = None,
) -> dict:
    """Newest first. Returns {"data": [...], "total": n}."""
    filters = filters or ChangeLogFilters()
    pagination = pagination or Pagination()

    conditions = [Recommendation.brand_id == brand_id]
    if filters.recommendation_id:
        conditions.append(ChangeLogEntry.recommendation_id == filters.recommendation_id)
    if filters.action:
        conditions.append(ChangeLogEntry.action == ChangeLogAction(filters.action).value)
    if filters.type:
        conditions.append(Recommendation.type == RecommendationType(filters.type).value)
    if filters.keyword:
        conditions.append(func.lower(Recommendation.keyword).contains(filters.keyword.lower()))
    if filters.start_date:
        conditions.append(ChangeLogEntry.created_at >= datetime.combine(filters.start_date, time.min))
    if filters.end_date:
        conditions.append(ChangeLogEntry.created_at < datetime.combine(filters.end_date + timedelta(days=1), time.min))

    base = select(ChangeLogEntry).join(Recommendation, ChangeLogEntry.recommendation_id == Recommendation.id)

    total = (await db.execute(
        select(func.count()).select_from(base.where(*conditions).subquery())
    )).scalar() or 0

    result = await db.execute(
        base.where(*conditions)
        .options(selectinload(ChangeLogEntry.recommendation).selectinload(Recommendation.campaign))
        .order_by(ChangeLogEntry.created_at.desc(), ChangeLogEntry.id.asc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
    )

    data = []
    for entry in result.scalars().all():
        item = serialize_change_log_entry(entry)
        rec = entry.recommendation
        item["recommendation"] = {
            "id": str(rec.id),
            "type": rec.type,
            "keyword": rec.keyword,
            "campaign": {"name": rec.campaign.name} if rec.campaign else None,
        }
        data.append(item)
    return {"data": data, "total": total}
