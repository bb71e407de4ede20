"""
Campaign Classifier — names campaigns as Discovery, Accelerate, or unknown.

Name patterns take priority over targeting type. When a name matches both
sets, Accelerate wins (it is the more deliberate naming). With no name match,
auto-targeted campaigns count as Discovery.
"""

import re
import enum
from typing import Optional


class CampaignCategory(str, enum.Enum):
    DISCOVERY = "discovery"
    ACCELERATE = "accelerate"
    UNKNOWN = "unknown"


DISCOVERY_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"discovery", r"research", r"explore", r"test", r"broad",
)]

ACCELERATE_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"accelerate", r"exact", r"scale", r"performance", r"convert",
)]


def classify_campaign(campaign_name: Optional[str], targeting_type: Optional[str] = None) -> CampaignCategory:
    name = campaign_name or ""
    if any(p.search(name) for p in ACCELERATE_PATTERNS):
        return CampaignCategory.ACCELERATE
    if any(p.search(name) for p in DISCOVERY_PATTERNS):
        return CampaignCategory.DISCOVERY
    if targeting_type and targeting_type.lower() == "auto":
        return CampaignCategory.DISCOVERY
    return CampaignCategory.UNKNOWN


def is_discovery_campaign(campaign_name: Optional[str], targeting_type: Optional[str] = None) -> bool:
    return classify_campaign(campaign_name, targeting_type) == CampaignCategory.DISCOVERY


def is_accelerate_campaign(campaign_name: Optional[str], targeting_type: Optional[str] = None) -> bool:
    return classify_campaign(campaign_name, targeting_type) == CampaignCategory.ACCELERATE
