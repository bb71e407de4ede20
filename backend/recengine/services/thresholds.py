"""
Recommendation Thresholds — defaults, stored overrides, and the merge between them.

Overrides live in Company.settings:
  recommendationThresholds        company-wide overrides
  brandThresholds[<brand id>]     per-brand overrides (win over company-wide)

Stored JSON uses camelCase keys ({"graduation": {"maxAcos": 0.3}}); both
camelCase and snake_case parse.
"""

import logging
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

COMPANY_THRESHOLDS_KEY = "recommendationThresholds"
BRAND_THRESHOLDS_KEY = "brandThresholds"


class _ThresholdModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ── Resolved thresholds (every field has a value) ────────────────────

class GraduationThresholds(_ThresholdModel):
    max_acos: float = 0.25
    min_conversions: int = 5
    min_spend: float = 50


class NegativeThresholds(_ThresholdModel):
    min_spend: float = 25
    max_orders: int = 0
    min_clicks: int = 50


class BudgetThresholds(_ThresholdModel):
    min_roas: float = 1.5
    budget_utilization: float = 0.95
    max_acos_for_increase: float = 0.25
    min_acos_for_decrease: float = 0.35


class RequiredThresholds(_ThresholdModel):
    graduation: GraduationThresholds = Field(default_factory=GraduationThresholds)
    negative: NegativeThresholds = Field(default_factory=NegativeThresholds)
    budget: BudgetThresholds = Field(default_factory=BudgetThresholds)


# ── Overrides (every field optional) ─────────────────────────────────

class GraduationOverrides(_ThresholdModel):
    max_acos: Optional[float] = None
    min_conversions: Optional[int] = None
    min_spend: Optional[float] = None


class NegativeOverrides(_ThresholdModel):
    min_spend: Optional[float] = None
    max_orders: Optional[int] = None
    min_clicks: Optional[int] = None


class BudgetOverrides(_ThresholdModel):
    min_roas: Optional[float] = None
    budget_utilization: Optional[float] = None
    max_acos_for_increase: Optional[float] = None
    min_acos_for_decrease: Optional[float] = None


class RecommendationThresholds(_ThresholdModel):
    graduation: Optional[GraduationOverrides] = None
    negative: Optional[NegativeOverrides] = None
    budget: Optional[BudgetOverrides] = None


DEFAULT_THRESHOLDS = RequiredThresholds()


def merge_thresholds(
    overrides: Optional[RecommendationThresholds],
    defaults: RequiredThresholds = DEFAULT_THRESHOLDS,
) -> RequiredThresholds:
    """Field-wise merge: any override that is set replaces the default, the rest fall through."""
    if overrides is None:
        return defaults.model_copy(deep=True)

    merged = {}
    for group in ("graduation", "negative", "budget"):
        base = getattr(defaults, group).model_dump()
        group_overrides = getattr(overrides, group)
        if group_overrides is not None:
            base.update(group_overrides.model_dump(exclude_none=True))
        merged[group] = base
    return RequiredThresholds.model_validate(merged)


def parse_overrides(raw: Optional[dict]) -> Optional[RecommendationThresholds]:
    """Parse a stored override blob. Malformed blobs are logged and ignored."""
    if not raw or not isinstance(raw, dict):
        return None
    try:
        return RecommendationThresholds.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed threshold overrides {raw!r}: {e}")
        return None


def get_brand_overrides(company_settings: Optional[dict], brand_id) -> Optional[RecommendationThresholds]:
    if not company_settings:
        return None
    brand_map = company_settings.get(BRAND_THRESHOLDS_KEY) or {}
    if not isinstance(brand_map, dict):
        return None
    return parse_overrides(brand_map.get(str(brand_id)))


def resolve_thresholds(company_settings: Optional[dict], brand_id=None) -> RequiredThresholds:
    """
    Effective thresholds for a brand:
    defaults <- company recommendationThresholds <- brandThresholds[brand_id].
    """
    settings = company_settings or {}
    thresholds = merge_thresholds(parse_overrides(settings.get(COMPANY_THRESHOLDS_KEY)))
    if brand_id is not None:
        brand_overrides = get_brand_overrides(settings, brand_id)
        if brand_overrides is not None:
            thresholds = merge_thresholds(brand_overrides, thresholds)
    return thresholds


def store_brand_overrides(company_settings: Optional[dict], brand_id, overrides: RecommendationThresholds) -> dict:
    """
    Return a new settings dict with the brand's overrides replaced.
    A fresh dict is returned so SQLAlchemy sees the JSON column as changed.
    """
    settings = dict(company_settings or {})
    brand_map = dict(settings.get(BRAND_THRESHOLDS_KEY) or {})
    brand_map[str(brand_id)] = overrides.model_dump(by_alias=True, exclude_none=True)
    settings[BRAND_THRESHOLDS_KEY] = brand_map
    return settings
