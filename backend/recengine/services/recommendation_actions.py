"""
Recommendation Actions — review state machine plus the read side (list, detail, summary).

PENDING ──accept / reject / snooze──▶ ACCEPTED | REJECTED | SNOOZED

ACCEPTED and REJECTED are final. A SNOOZED recommendation whose snooze has
run out behaves exactly like PENDING. Every action writes one ChangeLogEntry
in the same transaction as the status change.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from sqlalchemy import select, func, and_, or_, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from recengine.models import (
    Recommendation, ChangeLogEntry,
    RecommendationStatus, RecommendationType, ConfidenceLevel, ChangeLogAction,
)
from recengine.services.confidence_scoring import get_confidence_description
from recengine.utils import (
    utcnow, iso_or_none, calculate_snoozed_until, is_recommendation_actionable,
    calculate_improvement_percentage, get_type_label, get_status_label, get_confidence_label,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"
ALREADY_ACTIONED = "ALREADY_ACTIONED"
INTERNAL_ERROR = "INTERNAL_ERROR"

SORT_FIELDS = {"createdAt", "generatedAt", "confidence"}

# HIGH first when ascending
_CONFIDENCE_ORDER = case(
    (Recommendation.confidence == ConfidenceLevel.HIGH.value, 0),
    (Recommendation.confidence == ConfidenceLevel.MEDIUM.value, 1),
    else_=2,
)


class ActionRecommendationParams(BaseModel):
    id: uuid.UUID
    brand_id: uuid.UUID
    user_id: str
    action: ChangeLogAction
    reason: Optional[str] = None
    notes: Optional[str] = None
    snooze_days: Optional[int] = None  # default 7, capped at 30


class ActionRecommendationResult(BaseModel):
    success: bool
    recommendation: Optional[dict] = None
    error: Optional[str] = None


class RecommendationFilters(BaseModel):
    status: Optional[RecommendationStatus] = None
    type: Optional[RecommendationType] = None
    confidence: Optional[ConfidenceLevel] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class RecommendationActionError(Exception):
    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


# ── Serialization ────────────────────────────────────────────────────

def serialize_change_log_entry(entry: ChangeLogEntry) -> dict:
    return {
        "id": str(entry.id),
        "recommendation_id": str(entry.recommendation_id),
        "action": entry.action,
        "reason": entry.reason,
        "notes": entry.notes,
        "before_values": entry.before_values,
        "after_values": entry.after_values,
        "user_id": entry.user_id,
        "created_at": entry.created_at.isoformat(),
    }


def serialize_recommendation(rec: Recommendation, include_change_log: bool = False) -> dict:
    """Relationships (brand, campaign, keyword_metric) must already be loaded."""
    data = {
        "id": str(rec.id),
        "brand_id": str(rec.brand_id),
        "type": rec.type,
        "status": rec.status,
        "confidence": rec.confidence,
        "keyword": rec.keyword,
        "keyword_metric_id": str(rec.keyword_metric_id) if rec.keyword_metric_id else None,
        "campaign_id": str(rec.campaign_id) if rec.campaign_id else None,
        "rationale": rec.rationale,
        "expected_impact": rec.expected_impact,
        "metadata": rec.metadata_json,
        "generated_at": iso_or_none(rec.generated_at),
        "snoozed_until": iso_or_none(rec.snoozed_until),
        "created_at": iso_or_none(rec.created_at),
        "updated_at": iso_or_none(rec.updated_at),
        "type_label": get_type_label(rec.type),
        "status_label": get_status_label(rec.status),
        "confidence_label": get_confidence_label(rec.confidence),
        "confidence_description": get_confidence_description(rec.confidence),
        "improvement_percentage": calculate_improvement_percentage(rec.expected_impact or {}),
        "brand": {"id": str(rec.brand.id), "name": rec.brand.name} if rec.brand else None,
        "campaign": {"id": str(rec.campaign.id), "name": rec.campaign.name} if rec.campaign else None,
        "keyword_metric": (
            {"keyword": rec.keyword_metric.keyword, "match_type": rec.keyword_metric.match_type}
            if rec.keyword_metric else None
        ),
    }
    if include_change_log:
        data["change_log_entries"] = [serialize_change_log_entry(e) for e in rec.change_log_entries]
    return data


def _with_relations(query, include_change_log: bool = False):
    options = [
        selectinload(Recommendation.brand),
        selectinload(Recommendation.campaign),
        selectinload(Recommendation.keyword_metric),
    ]
    if include_change_log:
        options.append(selectinload(Recommendation.change_log_entries))
    return query.options(*options)


# ══════════════════════════════════════════════════════════════════════
#  STATE MACHINE
# ══════════════════════════════════════════════════════════════════════

def _snapshot(status: str, snoozed_until: Optional[datetime]) -> dict:
    return {"status": status, "snoozedUntil": iso_or_none(snoozed_until)}


async def action_recommendation(db: AsyncSession, params: ActionRecommendationParams) -> ActionRecommendationResult:
    """
    Accept, reject or snooze a recommendation.

    Fails with NOT_FOUND when the id doesn't exist or belongs to another brand,
    and ALREADY_ACTIONED when it isn't actionable. The status update and the
    change log entry commit together; on any failure both are rolled back.
    """
    try:
        result = await db.execute(
            select(Recommendation)
            .where(Recommendation.id == params.id, Recommendation.brand_id == params.brand_id)
            .with_for_update()
        )
        rec = result.scalar_one_or_none()
        if not rec:
            raise RecommendationActionError(NOT_FOUND)

        now = utcnow()
        if not is_recommendation_actionable(rec.status, rec.snoozed_until, now):
            raise RecommendationActionError(ALREADY_ACTIONED)

        action = ChangeLogAction(params.action)
        snoozed_until = None
        if action == ChangeLogAction.SNOOZED:
            snoozed_until = calculate_snoozed_until(params.snooze_days, now)

        before = _snapshot(rec.status, rec.snoozed_until)
        rec.status = action.value
        rec.snoozed_until = snoozed_until
        rec.updated_at = now

        db.add(ChangeLogEntry(
            recommendation_id=rec.id,
            action=action.value,
            reason=params.reason or None,
            notes=params.notes or None,
            before_values=before,
            after_values=_snapshot(action.value, snoozed_until),
            user_id=params.user_id,
            created_at=now,
        ))
        await db.commit()
    except RecommendationActionError as e:
        await db.rollback()
        return ActionRecommendationResult(success=False, error=e.code)
    except Exception:
        await db.rollback()
        logger.exception(f"Failed to action recommendation {params.id}")
        return ActionRecommendationResult(success=False, error=INTERNAL_ERROR)

    logger.info(f"Recommendation {params.id} {action.value} by {params.user_id}")
    recommendation = await get_recommendation_by_id(db, params.id, params.brand_id)
    return ActionRecommendationResult(success=True, recommendation=recommendation)


# ══════════════════════════════════════════════════════════════════════
#  QUERIES
# ══════════════════════════════════════════════════════════════════════

def status_condition(status: RecommendationStatus, now: datetime):
    """
    SNOOZED means an active snooze only; PENDING also picks up expired
    snoozes, which are actionable again.
    """
    status = RecommendationStatus(status)
    if status == RecommendationStatus.SNOOZED:
        return and_(
            Recommendation.status == RecommendationStatus.SNOOZED.value,
            Recommendation.snoozed_until > now,
        )
    if status == RecommendationStatus.PENDING:
        return or_(
            Recommendation.status == RecommendationStatus.PENDING.value,
            and_(
                Recommendation.status == RecommendationStatus.SNOOZED.value,
                Recommendation.snoozed_until <= now,
            ),
        )
    return Recommendation.status == status.value


def _order_by(sort_by: str, sort_order: str):
    if sort_by == "confidence":
        column = _CONFIDENCE_ORDER
    elif sort_by == "generatedAt":
        column = Recommendation.generated_at
    else:
        column = Recommendation.created_at
    primary = column.asc() if sort_order == "asc" else column.desc()
    return primary, Recommendation.id.asc()


async def get_recommendations_for_brand(
    db: AsyncSession,
    brand_id: uuid.UUID,
    filters: Optional[RecommendationFilters] = None,
    pagination: Optional[Pagination] = None,
) -> dict:
    """Paginated recommendations for a brand. Returns {"data": [...], "total": n}."""
    filters = filters or RecommendationFilters()
    pagination = pagination or Pagination()

    conditions = [Recommendation.brand_id == brand_id]
    if filters.type:
        conditions.append(Recommendation.type == RecommendationType(filters.type).value)
    if filters.confidence:
        conditions.append(Recommendation.confidence == ConfidenceLevel(filters.confidence).value)
    if filters.status:
        conditions.append(status_condition(filters.status, utcnow()))

    total = (await db.execute(
        select(func.count()).select_from(Recommendation).where(*conditions)
    )).scalar() or 0

    query = _with_relations(
        select(Recommendation)
        .where(*conditions)
        .order_by(*_order_by(filters.sort_by, filters.sort_order))
        .offset(pagination.offset)
        .limit(pagination.page_size)
    )
    result = await db.execute(query)
    return {
        "data": [serialize_recommendation(r) for r in result.scalars().all()],
        "total": total,
    }


async def get_recommendation_by_id(db: AsyncSession, rec_id: uuid.UUID, brand_id: uuid.UUID) -> Optional[dict]:
    """Single recommendation with its change log (newest first), scoped to the brand."""
    query = _with_relations(
        select(Recommendation).where(Recommendation.id == rec_id, Recommendation.brand_id == brand_id),
        include_change_log=True,
    ).execution_options(populate_existing=True)
    rec = (await db.execute(query)).scalar_one_or_none()
    if not rec:
        return None
    return serialize_recommendation(rec, include_change_log=True)


async def get_recommendation_summary(db: AsyncSession, brand_id: uuid.UUID) -> dict:
    """Counts by status, type and confidence. Every key is present, zero when empty."""

    async def _counts(column) -> dict:
        result = await db.execute(
            select(column, func.count())
            .where(Recommendation.brand_id == brand_id)
            .group_by(column)
        )
        return {value: count for value, count in result.all()}

    by_status = await _counts(Recommendation.status)
    by_type = await _counts(Recommendation.type)
    by_confidence = await _counts(Recommendation.confidence)

    return {
        "total": sum(by_status.values()),
        "pending": by_status.get(RecommendationStatus.PENDING.value, 0),
        "accepted": by_status.get(RecommendationStatus.ACCEPTED.value, 0),
        "rejected": by_status.get(RecommendationStatus.REJECTED.value, 0),
        "snoozed": by_status.get(RecommendationStatus.SNOOZED.value, 0),
        "by_type": {t.value: by_type.get(t.value, 0) for t in RecommendationType},
        "by_confidence": {c.value: by_confidence.get(c.value, 0) for c in ConfidenceLevel},
    }
