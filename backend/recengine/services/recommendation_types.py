"""
Recommendation data models shared by the generators and the orchestrator.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from recengine.models import ConfidenceLevel, RecommendationType


def expected_impact(metric: str, current: float, projected: float) -> Dict[str, Any]:
    """The {metric, current, projected} blob stored on every recommendation."""
    return {"metric": metric, "current": current, "projected": projected}


@dataclass(frozen=True)
class GeneratedRecommendation:
    """A fully-formed recommendation, before it is written to the database."""
    type: RecommendationType
    keyword: str                           # keyword text, or campaign name for campaign-level types
    keyword_metric_id: Optional[uuid.UUID]
    campaign_id: Optional[uuid.UUID]       # None only for DUPLICATE_KEYWORD
    confidence: ConfidenceLevel
    rationale: str
    expected_impact: Dict[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> Dict[str, str]:
        return {
            "type": self.type.value,
            "keyword": self.keyword,
            "confidence": self.confidence.value,
        }
