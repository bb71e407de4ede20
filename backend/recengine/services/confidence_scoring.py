"""
Confidence Scoring — maps data volume to a HIGH / MEDIUM / LOW reliability tier.

HIGH:   30+ days of data and 1,000+ impressions
MEDIUM: 14+ days of data and 500+ impressions
LOW:    anything less
"""

import math
from dataclasses import dataclass
from recengine.models import ConfidenceLevel

HIGH_MIN_DATA_POINTS = 30
HIGH_MIN_IMPRESSIONS = 1000
MEDIUM_MIN_DATA_POINTS = 14
MEDIUM_MIN_IMPRESSIONS = 500

MINIMUM_DATA_POINTS = 7
MINIMUM_IMPRESSIONS = 100

CONFIDENCE_DESCRIPTIONS = {
    ConfidenceLevel.HIGH: "Based on 30+ days of data with significant volume. High reliability.",
    ConfidenceLevel.MEDIUM: "Based on 14-29 days of data with moderate volume. Good reliability.",
    ConfidenceLevel.LOW: "Based on limited data. Consider gathering more data before acting.",
}


@dataclass(frozen=True)
class DataQualityMetrics:
    data_points: int
    impressions: int
    days_span: int = 0  # carried for callers; not part of the tier decision


def calculate_confidence(metrics: DataQualityMetrics) -> ConfidenceLevel:
    if metrics.data_points >= HIGH_MIN_DATA_POINTS and metrics.impressions >= HIGH_MIN_IMPRESSIONS:
        return ConfidenceLevel.HIGH
    if metrics.data_points >= MEDIUM_MIN_DATA_POINTS and metrics.impressions >= MEDIUM_MIN_IMPRESSIONS:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def calculate_data_quality_score(metrics: DataQualityMetrics) -> int:
    """
    0-100 score for finer ranking within a tier.
    Up to 50 points for days of data (linear to 30), up to 50 for
    impressions (log10, 1,000 impressions = full marks).
    """
    data_points_score = min(50.0, metrics.data_points / HIGH_MIN_DATA_POINTS * 50)
    if metrics.impressions > 0:
        impressions_score = min(50.0, math.log10(metrics.impressions) / 3 * 50)
    else:
        impressions_score = 0.0
    return round(data_points_score + impressions_score)


def has_minimum_data_quality(metrics: DataQualityMetrics) -> bool:
    return metrics.data_points >= MINIMUM_DATA_POINTS and metrics.impressions >= MINIMUM_IMPRESSIONS


def get_confidence_description(level) -> str:
    return CONFIDENCE_DESCRIPTIONS.get(ConfidenceLevel(level), "")


def confidence_for(data_points: int, impressions: int) -> ConfidenceLevel:
    """Shorthand used by the generators, which treat data points as a continuous span."""
    return calculate_confidence(DataQualityMetrics(
        data_points=data_points, impressions=impressions, days_span=data_points,
    ))
