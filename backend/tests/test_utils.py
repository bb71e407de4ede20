"""
Tests for shared helpers: UUID parsing, snooze windows, labels and impact math.
"""

from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from recengine.utils import (
    parse_uuid, calculate_snoozed_until, is_snooze_period_ended, is_recommendation_actionable,
    calculate_improvement_percentage, get_type_label, get_status_label, get_confidence_label, to_float,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


def test_parse_uuid_rejects_garbage():
    with pytest.raises(HTTPException) as exc:
        parse_uuid("not-a-uuid", "brand_id")
    assert exc.value.status_code == 400
    assert "brand_id" in exc.value.detail


@pytest.mark.parametrize("days,expected", [
    (None, 7),
    (0, 7),
    (1, 1),
    (14, 14),
    (30, 30),
    (90, 30),
    (-5, 1),
])
def test_calculate_snoozed_until(days, expected):
    assert calculate_snoozed_until(days, NOW) == NOW + timedelta(days=expected)


def test_snooze_period_ended():
    assert is_snooze_period_ended(NOW - timedelta(seconds=1), NOW) is True
    assert is_snooze_period_ended(NOW, NOW) is True
    assert is_snooze_period_ended(NOW + timedelta(hours=1), NOW) is False
    assert is_snooze_period_ended(None, NOW) is True


@pytest.mark.parametrize("status,snoozed_until,expected", [
    ("PENDING", None, True),
    ("SNOOZED", NOW - timedelta(days=1), True),
    ("SNOOZED", NOW + timedelta(days=1), False),
    ("ACCEPTED", None, False),
    ("REJECTED", None, False),
])
def test_is_recommendation_actionable(status, snoozed_until, expected):
    assert is_recommendation_actionable(status, snoozed_until, NOW) is expected


def test_improvement_percentage_inverts_cost_metrics():
    assert calculate_improvement_percentage({"metric": "acos", "current": 0.2, "projected": 0.17}) == 15.0
    assert calculate_improvement_percentage({"metric": "spend", "current": 40, "projected": 0}) == 100.0
    assert calculate_improvement_percentage({"metric": "daily_sales", "current": 100, "projected": 125}) == 25.0
    assert calculate_improvement_percentage({"metric": "acos", "current": 0, "projected": 0.1}) == 0.0


def test_labels_fall_back_to_raw_value():
    assert get_type_label("KEYWORD_GRADUATION") == "Keyword Graduation"
    assert get_status_label("SNOOZED") == "Snoozed"
    assert get_confidence_label("HIGH") == "High Confidence"
    assert get_type_label("SOMETHING_NEW") == "SOMETHING_NEW"


def test_to_float():
    assert to_float(None) == 0.0
    assert to_float("12.50") == 12.5
