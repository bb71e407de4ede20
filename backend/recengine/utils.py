"""
Shared utility functions.
"""

import logging
from typing import Optional
import uuid as uuid_mod
from datetime import datetime, timedelta, timezone
from fastapi import HTTPException

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE_DAYS = 7
MAX_SNOOZE_DAYS = 30

# Metrics where a lower projected value is an improvement
COST_METRICS = {"acos", "spend", "cpc"}

TYPE_LABELS = {
    "KEYWORD_GRADUATION": "Keyword Graduation",
    "DUPLICATE_KEYWORD": "Duplicate Keyword",
    "NEGATIVE_KEYWORD": "Negative Keyword",
    "BUDGET_INCREASE": "Budget Increase",
    "BID_DECREASE": "Bid Decrease",
}

STATUS_LABELS = {
    "PENDING": "Pending",
    "ACCEPTED": "Accepted",
    "REJECTED": "Rejected",
    "SNOOZED": "Snoozed",
}

CONFIDENCE_LABELS = {
    "HIGH": "High Confidence",
    "MEDIUM": "Medium Confidence",
    "LOW": "Low Confidence",
}


def parse_uuid(value: str, field_name: str = "id") -> uuid_mod.UUID:
    """
    Parse a string as UUID, raising a 400 HTTPException on invalid input
    instead of letting a bare ValueError bubble up as a 500.
    """
    try:
        return uuid_mod.UUID(value)
    except (ValueError, AttributeError):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid UUID for '{field_name}': {value!r}",
        )


def safe_error_detail(exc: Exception, fallback: str = "An internal error occurred. Please try again later.") -> str:
    """
    Return a sanitized error message safe for client consumption.
    Logs the real exception detail server-side.
    """
    logger.error(f"Operation failed: {exc}", exc_info=True)
    return fallback


def utcnow() -> datetime:
    """
    Return the current UTC time as a naive datetime (no tzinfo).
    Naive datetimes are used because our DB columns are TIMESTAMP WITHOUT TIME ZONE.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_float(value) -> float:
    """Numeric/Decimal/None from the DB -> float (None -> 0.0)."""
    if value is None:
        return 0.0
    return float(value)


def iso_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ── Snooze helpers ───────────────────────────────────────────────────

def calculate_snoozed_until(days: Optional[int] = None, now: Optional[datetime] = None) -> datetime:
    """End of a snooze window. Defaults to 7 days, capped at 30."""
    days = days or DEFAULT_SNOOZE_DAYS
    days = max(1, min(days, MAX_SNOOZE_DAYS))
    return (now or utcnow()) + timedelta(days=days)


def is_snooze_period_ended(snoozed_until: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if snoozed_until is None:
        return True
    return snoozed_until <= (now or utcnow())


def is_recommendation_actionable(status: str, snoozed_until: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    PENDING recommendations are actionable, and so are SNOOZED ones whose
    snooze has run out. ACCEPTED / REJECTED are final.
    """
    if status == "PENDING":
        return True
    if status == "SNOOZED":
        return is_snooze_period_ended(snoozed_until, now)
    return False


# ── Display helpers ──────────────────────────────────────────────────

def calculate_improvement_percentage(expected_impact: dict) -> float:
    """
    Percentage change from current to projected, signed so that positive
    always means "better" (cost metrics improve when they go down).
    """
    current = to_float(expected_impact.get("current"))
    projected = to_float(expected_impact.get("projected"))
    if current == 0:
        return 0.0
    change = (projected - current) / abs(current) * 100
    if expected_impact.get("metric") in COST_METRICS:
        change = -change
    return round(change, 1)


def get_type_label(rec_type: str) -> str:
    return TYPE_LABELS.get(rec_type, rec_type)


def get_status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def get_confidence_label(confidence: str) -> str:
    return CONFIDENCE_LABELS.get(confidence, confidence)
