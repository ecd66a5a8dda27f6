"""toe review core tables

Revision ID: 3f1c9a7e2b40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "3f1c9a7e2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Enums ---
    toestatus = sa.Enum(
        "draft",
        "internal_review",
        "review_completed",
        "ready_to_send",
        "sent",
        "signed",
        "expired",
        name="toestatus",
    )
    reviewstatus = sa.Enum("pending", "completed", "archived", name="reviewstatus")
    toestatus.create(op.get_bind(), checkfirst=True)
    reviewstatus.create(op.get_bind(), checkfirst=True)

    # --- Terms of Engagement ---
    op.create_table(
        "terms_of_engagement",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_title", sa.String(length=500), nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            postgresql.ENUM(
                "draft",
                "internal_review",
                "review_completed",
                "ready_to_send",
                "sent",
                "signed",
                "expired",
                name="toestatus",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("version", sa.String(length=20), nullable=True),
        sa.Column("scope_of_work", sa.Text(), nullable=True),
        sa.Column("fee_structure", sa.JSON(), nullable=True),
        sa.Column("assumptions", sa.Text(), nullable=True),
        sa.Column("exclusions", sa.Text(), nullable=True),
        sa.Column("total_fee", sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column(
            "total_fee_with_gst", sa.Numeric(precision=14, scale=2), nullable=True
        ),
        sa.Column("pre_review_version", sa.JSON(), nullable=True),
        sa.Column("history", sa.JSON(), nullable=True),
        sa.Column("created_by_email", sa.String(length=255), nullable=False),
        sa.Column("created_by_name", sa.String(length=255), nullable=True),
        sa.Column("sent_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_by_name", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_terms_of_engagement_status", "terms_of_engagement", ["status"]
    )
    op.create_index(
        "ix_terms_of_engagement_created_by_email",
        "terms_of_engagement",
        ["created_by_email"],
    )

    # --- Review requests ---
    op.create_table(
        "toe_reviews",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("requester_email", sa.String(length=255), nullable=False),
        sa.Column("requester_name", sa.String(length=255), nullable=True),
        sa.Column("reviewer_email", sa.String(length=255), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(
                "pending",
                "completed",
                "archived",
                name="reviewstatus",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("review_data", sa.JSON(), nullable=True),
        sa.Column("changes_made", sa.JSON(), nullable=True),
        sa.Column("has_changes", sa.Boolean(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["terms_of_engagement.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_toe_reviews_document_id", "toe_reviews", ["document_id"])
    op.create_index(
        "ix_toe_reviews_reviewer_status",
        "toe_reviews",
        ["reviewer_email", "status"],
    )


def downgrade() -> None:
    op.drop_index("ix_toe_reviews_reviewer_status", table_name="toe_reviews")
    op.drop_index("ix_toe_reviews_document_id", table_name="toe_reviews")
    op.drop_table("toe_reviews")

    op.drop_index(
        "ix_terms_of_engagement_created_by_email", table_name="terms_of_engagement"
    )
    op.drop_index("ix_terms_of_engagement_status", table_name="terms_of_engagement")
    op.drop_table("terms_of_engagement")

    for enum_name in ["reviewstatus", "toestatus"]:
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
