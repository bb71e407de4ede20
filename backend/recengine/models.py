"""
Ads Recommendation Engine — Database Models
Collaborator tables (brands, ad accounts, keyword metrics) are written by the
sync pipeline and read by the engine; recommendations and the change log are
owned by the engine.
"""

import uuid
import enum
from datetime import date as calendar_date, datetime, timezone
from decimal import Decimal
from sqlalchemy import (
    String, Text, Integer, BigInteger, Boolean, Date, DateTime, Numeric,
    JSON, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID
from recengine.database import Base


def _utcnow() -> datetime:
    """Naive UTC now — matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class CredentialStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    ERROR = "error"


class MatchType(str, enum.Enum):
    EXACT = "exact"
    PHRASE = "phrase"
    BROAD = "broad"
    AUTO = "auto"


class MetricSource(str, enum.Enum):
    API = "api"
    MANUAL = "manual"


class RecommendationType(str, enum.Enum):
    KEYWORD_GRADUATION = "KEYWORD_GRADUATION"
    DUPLICATE_KEYWORD = "DUPLICATE_KEYWORD"
    NEGATIVE_KEYWORD = "NEGATIVE_KEYWORD"
    BUDGET_INCREASE = "BUDGET_INCREASE"
    BID_DECREASE = "BID_DECREASE"


class RecommendationStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    SNOOZED = "SNOOZED"


class ConfidenceLevel(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ChangeLogAction(str, enum.Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    SNOOZED = "SNOOZED"


AMAZON_ADS_INTEGRATION = "amazon_ads"


# ══════════════════════════════════════════════════════════════════════
#  COMPANIES & BRANDS — Tenants; company settings carry threshold overrides
# ══════════════════════════════════════════════════════════════════════

class Company(Base):
    """Tenant. `settings` holds recommendationThresholds and brandThresholds."""
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    settings: Mapped[dict] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    brands: Mapped[list["Brand"]] = relationship("Brand", back_populates="company")


class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    company: Mapped["Company"] = relationship("Company", back_populates="brands")
    credentials: Mapped[list["IntegrationCredential"]] = relationship("IntegrationCredential", back_populates="brand")

    __table_args__ = (
        Index("ix_brands_company_id", "company_id"),
        Index("ix_brands_is_active", "is_active"),
    )


# ══════════════════════════════════════════════════════════════════════
#  AD ACCOUNT STRUCTURE — Credentials → Portfolios → Campaigns
# ══════════════════════════════════════════════════════════════════════

class IntegrationCredential(Base):
    """A brand's connection to an ads platform. Tokens live with the sync pipeline."""
    __tablename__ = "integration_credentials"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    brand_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("brands.id", ondelete="CASCADE"), nullable=True)
    integration_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=CredentialStatus.ACTIVE.value)
    external_account_id: Mapped[str] = mapped_column(String(100), nullable=True)
    external_account_name: Mapped[str] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    brand: Mapped["Brand"] = relationship("Brand", back_populates="credentials")
    portfolios: Mapped[list["AdPortfolio"]] = relationship("AdPortfolio", back_populates="credential", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_integration_credentials_brand", "brand_id", "integration_type", "status"),
    )


class AdPortfolio(Base):
    __tablename__ = "ad_portfolios"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    credential_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("integration_credentials.id", ondelete="CASCADE"), nullable=False)
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    state: Mapped[str] = mapped_column(String(20), default="enabled")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    credential: Mapped["IntegrationCredential"] = relationship("IntegrationCredential", back_populates="portfolios")
    campaigns: Mapped[list["AdCampaign"]] = relationship("AdCampaign", back_populates="portfolio")

    __table_args__ = (
        UniqueConstraint("credential_id", "external_id", name="uq_portfolio_per_credential"),
    )


class AdCampaign(Base):
    __tablename__ = "ad_campaigns"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    portfolio_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_portfolios.id", ondelete="SET NULL"), nullable=True)
    credential_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("integration_credentials.id", ondelete="CASCADE"), nullable=False)
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    campaign_type: Mapped[str] = mapped_column(String(50), default="sponsoredProducts")
    targeting_type: Mapped[str] = mapped_column(String(50), nullable=True)  # auto / manual
    state: Mapped[str] = mapped_column(String(20), default="enabled")
    daily_budget: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    portfolio: Mapped["AdPortfolio"] = relationship("AdPortfolio", back_populates="campaigns")

    __table_args__ = (
        UniqueConstraint("credential_id", "external_id", name="uq_campaign_per_credential"),
        Index("ix_ad_campaigns_portfolio_id", "portfolio_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  KEYWORD METRICS — Daily keyword performance written by the sync pipeline
# ══════════════════════════════════════════════════════════════════════

class KeywordMetric(Base):
    """
    One row per (keyword, campaign, match type, date, source).
    Re-syncs upsert on the natural key; the engine only reads these rows.
    """
    __tablename__ = "keyword_metrics"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    portfolio_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_portfolios.id", ondelete="SET NULL"), nullable=True)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_campaigns.id", ondelete="SET NULL"), nullable=True)
    ad_group_id: Mapped[str] = mapped_column(String(100), nullable=True)
    keyword: Mapped[str] = mapped_column(String(500), nullable=False)
    match_type: Mapped[str] = mapped_column(String(20), nullable=False)
    date: Mapped[calendar_date] = mapped_column(Date, nullable=False)

    impressions: Mapped[int] = mapped_column(BigInteger, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    spend: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    orders: Mapped[int] = mapped_column(Integer, default=0)
    sales: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))

    # Derived; null when the denominator is zero
    ctr: Mapped[Decimal] = mapped_column(Numeric(8, 4), nullable=True)
    cpc: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)
    acos: Mapped[Decimal] = mapped_column(Numeric(8, 4), nullable=True)
    roas: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=True)
    conversion_rate: Mapped[Decimal] = mapped_column(Numeric(8, 4), nullable=True)

    source: Mapped[str] = mapped_column(String(50), nullable=False, default=MetricSource.API.value)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "keyword", "match_type", "date", "source", "portfolio_id", "campaign_id", "ad_group_id",
            name="uq_keyword_metric_natural_key",
        ),
        Index("ix_keyword_metrics_campaign_date", "campaign_id", "date"),
        Index("ix_keyword_metrics_keyword", "keyword"),
    )


# ══════════════════════════════════════════════════════════════════════
#  RECOMMENDATIONS — Generated suggestions awaiting human review
# ══════════════════════════════════════════════════════════════════════

class Recommendation(Base):
    """
    Created by a generation run, mutated only by review actions, never deleted.
    `keyword` holds the campaign name for campaign-level types;
    `campaign_id` is null only for DUPLICATE_KEYWORD, which spans campaigns.
    """
    __tablename__ = "recommendations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    brand_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=RecommendationStatus.PENDING.value)
    confidence: Mapped[str] = mapped_column(String(10), nullable=False)
    keyword: Mapped[str] = mapped_column(String(500), nullable=True)
    keyword_metric_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("keyword_metrics.id", ondelete="SET NULL"), nullable=True)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_campaigns.id", ondelete="SET NULL"), nullable=True)
    rationale: Mapped[str] = mapped_column(Text, nullable=False)
    expected_impact: Mapped[dict] = mapped_column(JSON, nullable=False)
    # {metric, current, projected}
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    snoozed_until: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    brand: Mapped["Brand"] = relationship("Brand")
    campaign: Mapped["AdCampaign"] = relationship("AdCampaign")
    keyword_metric: Mapped["KeywordMetric"] = relationship("KeywordMetric")
    change_log_entries: Mapped[list["ChangeLogEntry"]] = relationship(
        "ChangeLogEntry", back_populates="recommendation", order_by="ChangeLogEntry.created_at.desc()",
    )

    __table_args__ = (
        Index("ix_recommendations_brand_status", "brand_id", "status"),
        Index("ix_recommendations_dedup", "brand_id", "type", "status", "keyword", "campaign_id"),
        Index("ix_recommendations_generated_at", "generated_at"),
    )


class ChangeLogEntry(Base):
    """Append-only audit trail; written in the same transaction as the status change."""
    __tablename__ = "change_log_entries"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recommendation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("recommendations.id", ondelete="RESTRICT"), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=True)
    before_values: Mapped[dict] = mapped_column(JSON, nullable=False)
    after_values: Mapped[dict] = mapped_column(JSON, nullable=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    recommendation: Mapped["Recommendation"] = relationship("Recommendation", back_populates="change_log_entries")

    __table_args__ = (
        Index("ix_change_log_entries_recommendation_id", "recommendation_id"),
        Index("ix_change_log_entries_created_at", "created_at"),
        Index("ix_change_log_entries_action", "action"),
    )
