"""create marketing campaign and saved review tables

Revision ID: 4d5e6f7a8b9c
Revises: 3c4d5e6f7a8b
Create Date: 2026-10-19 09:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "4d5e6f7a8b9c"
down_revision = "3c4d5e6f7a8b"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "marketing_campaigns",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("campaign_code", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_marketing_campaigns_campaign_code"),
        "marketing_campaigns",
        ["campaign_code"],
        unique=True,
    )

    op.create_table(
        "campaign_visits",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("campaign_code", sa.String(length=100), nullable=True),
        sa.Column("campaign_id", sa.String(length=36), nullable=True),
        sa.Column("visitor_id", sa.String(length=255), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("session_id", sa.String(length=255), nullable=True),
        sa.Column("landing_page", sa.String(length=2048), nullable=True),
        sa.Column("referrer", sa.String(length=2048), nullable=True),
        sa.Column("utm_source", sa.String(length=255), nullable=True),
        sa.Column("utm_medium", sa.String(length=255), nullable=True),
        sa.Column("utm_campaign", sa.String(length=255), nullable=True),
        sa.Column("utm_content", sa.String(length=255), nullable=True),
        sa.Column("utm_term", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("device_type", sa.String(length=20), nullable=False),
        sa.Column("browser", sa.String(length=20), nullable=False),
        sa.Column(
            "visited_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["campaign_id"], ["marketing_campaigns.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_campaign_visits_campaign_code"), "campaign_visits", ["campaign_code"])
    op.create_index(op.f("ix_campaign_visits_campaign_id"), "campaign_visits", ["campaign_id"])

    op.create_table(
        "saved_reviews",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("location_id", sa.String(length=255), nullable=False),
        sa.Column("google_review_id", sa.String(length=255), nullable=False),
        sa.Column("author_name", sa.String(length=255), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reply_text", sa.Text(), nullable=True),
        sa.Column("reply_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_sentiment", sa.String(length=20), nullable=True),
        sa.Column("ai_tags", sa.JSON(), nullable=False),
        sa.Column("ai_issues", sa.JSON(), nullable=True),
        sa.Column("ai_suggestions", sa.JSON(), nullable=True),
        sa.Column("ai_analyzed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "google_review_id", "location_id", name="uq_saved_reviews_google_location"
        ),
    )
    op.create_index(op.f("ix_saved_reviews_user_id"), "saved_reviews", ["user_id"])
    op.create_index(op.f("ix_saved_reviews_location_id"), "saved_reviews", ["location_id"])


def downgrade() -> None:
    op.drop_index(op.f("ix_saved_reviews_location_id"), table_name="saved_reviews")
    op.drop_index(op.f("ix_saved_reviews_user_id"), table_name="saved_reviews")
    op.drop_table("saved_reviews")
    op.drop_index(op.f("ix_campaign_visits_campaign_id"), table_name="campaign_visits")
    op.drop_index(op.f("ix_campaign_visits_campaign_code"), table_name="campaign_visits")
    op.drop_table("campaign_visits")
    op.drop_index(op.f("ix_marketing_campaigns_campaign_code"), table_name="marketing_campaigns")
    op.drop_table("marketing_campaigns")
