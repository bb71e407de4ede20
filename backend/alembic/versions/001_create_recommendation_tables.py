"""Create tenant, ad account, keyword metric, recommendation and change log tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    existing = insp.get_table_names()

    if "recommendations" in existing:
        return  # Already applied (e.g. from create_all)

    op.create_table(
        "companies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("settings", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "brands",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_brands_company_id", "brands", ["company_id"])
    op.create_index("ix_brands_is_active", "brands", ["is_active"])

    op.create_table(
        "integration_credentials",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("brand_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("integration_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=True, server_default="active"),
        sa.Column("external_account_id", sa.String(100), nullable=True),
        sa.Column("external_account_name", sa.String(200), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_integration_credentials_brand", "integration_credentials",
        ["brand_id", "integration_type", "status"],
    )

    op.create_table(
        "ad_portfolios",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("credential_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("external_id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("state", sa.String(20), nullable=True, server_default="enabled"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["credential_id"], ["integration_credentials.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("credential_id", "external_id", name="uq_portfolio_per_credential"),
    )

    op.create_table(
        "ad_campaigns",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("portfolio_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("credential_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("external_id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("campaign_type", sa.String(50), nullable=True, server_default="sponsoredProducts"),
        sa.Column("targeting_type", sa.String(50), nullable=True),
        sa.Column("state", sa.String(20), nullable=True, server_default="enabled"),
        sa.Column("daily_budget", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["portfolio_id"], ["ad_portfolios.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["credential_id"], ["integration_credentials.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("credential_id", "external_id", name="uq_campaign_per_credential"),
    )
    op.create_index("ix_ad_campaigns_portfolio_id", "ad_campaigns", ["portfolio_id"])

    op.create_table(
        "keyword_metrics",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("portfolio_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("ad_group_id", sa.String(100), nullable=True),
        sa.Column("keyword", sa.String(500), nullable=False),
        sa.Column("match_type", sa.String(20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("impressions", sa.BigInteger(), nullable=True, server_default="0"),
        sa.Column("clicks", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("spend", sa.Numeric(10, 2), nullable=True, server_default="0"),
        sa.Column("orders", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("sales", sa.Numeric(10, 2), nullable=True, server_default="0"),
        sa.Column("ctr", sa.Numeric(8, 4), nullable=True),
        sa.Column("cpc", sa.Numeric(10, 2), nullable=True),
        sa.Column("acos", sa.Numeric(8, 4), nullable=True),
        sa.Column("roas", sa.Numeric(10, 2), nullable=True),
        sa.Column("conversion_rate", sa.Numeric(8, 4), nullable=True),
        sa.Column("source", sa.String(50), nullable=False, server_default="api"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["portfolio_id"], ["ad_portfolios.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["campaign_id"], ["ad_campaigns.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "keyword", "match_type", "date", "source", "portfolio_id", "campaign_id", "ad_group_id",
            name="uq_keyword_metric_natural_key",
        ),
    )
    op.create_index("ix_keyword_metrics_campaign_date", "keyword_metrics", ["campaign_id", "date"])
    op.create_index("ix_keyword_metrics_keyword", "keyword_metrics", ["keyword"])

    op.create_table(
        "recommendations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("brand_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=True, server_default="PENDING"),
        sa.Column("confidence", sa.String(10), nullable=False),
        sa.Column("keyword", sa.String(500), nullable=True),
        sa.Column("keyword_metric_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("rationale", sa.Text(), nullable=False),
        sa.Column("expected_impact", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("generated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("snoozed_until", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["keyword_metric_id"], ["keyword_metrics.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["campaign_id"], ["ad_campaigns.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_recommendations_brand_status", "recommendations", ["brand_id", "status"])
    op.create_index(
        "ix_recommendations_dedup", "recommendations",
        ["brand_id", "type", "status", "keyword", "campaign_id"],
    )
    op.create_index("ix_recommendations_generated_at", "recommendations", ["generated_at"])

    op.create_table(
        "change_log_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("recommendation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("before_values", sa.JSON(), nullable=False),
        sa.Column("after_values", sa.JSON(), nullable=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["recommendation_id"], ["recommendations.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_log_entries_recommendation_id", "change_log_entries", ["recommendation_id"])
    op.create_index("ix_change_log_entries_created_at", "change_log_entries", ["created_at"])
    op.create_index("ix_change_log_entries_action", "change_log_entries", ["action"])


def downgrade() -> None:
    op.drop_table("change_log_entries")
    op.drop_table("recommendations")
    op.drop_table("keyword_metrics")
    op.drop_table("ad_campaigns")
    op.drop_table("ad_portfolios")
    op.drop_table("integration_credentials")
    op.drop_table("brands")
    op.drop_table("companies")
