import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from toe_review.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TOEStatus(enum.Enum):
    draft = "draft"
    internal_review = "internal_review"
    review_completed = "review_completed"
    ready_to_send = "ready_to_send"
    sent = "sent"
    signed = "signed"
    expired = "expired"


class ReviewStatus(enum.Enum):
    pending = "pending"
    completed = "completed"
    archived = "archived"


# ---------------------------------------------------------------------------
# Terms of Engagement
# ---------------------------------------------------------------------------


class TermsOfEngagement(Base):
    __tablename__ = "terms_of_engagement"
    __table_args__ = (
        Index("ix_terms_of_engagement_status", "status"),
        Index("ix_terms_of_engagement_created_by_email", "created_by_email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    project_title: Mapped[str] = mapped_column(String(500), nullable=False)
    client_name: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[TOEStatus] = mapped_column(
        Enum(TOEStatus), default=TOEStatus.draft, nullable=False
    )
    version: Mapped[str] = mapped_column(String(20), default="1.0")

    # Reviewable fields
    scope_of_work: Mapped[str] = mapped_column(Text, default="")
    fee_structure: Mapped[list] = mapped_column(JSON, default=list)
    assumptions: Mapped[str] = mapped_column(Text, default="")
    exclusions: Mapped[str] = mapped_column(Text, default="")

    total_fee: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False), default=0
    )
    total_fee_with_gst: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False), default=0
    )

    # Snapshot of reviewable fields + totals, set only while review_completed
    pre_review_version: Mapped[dict | None] = mapped_column(
        JSON(none_as_null=True)
    )
    history: Mapped[list] = mapped_column(JSON, default=list)

    created_by_email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by_name: Mapped[str | None] = mapped_column(String(255))
    sent_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    signed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    signed_by_name: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    reviews = relationship("TOEReview", back_populates="document")


# ---------------------------------------------------------------------------
# Review requests
# ---------------------------------------------------------------------------


class TOEReview(Base):
    __tablename__ = "toe_reviews"
    __table_args__ = (
        Index("ix_toe_reviews_document_id", "document_id"),
        Index("ix_toe_reviews_reviewer_status", "reviewer_email", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("terms_of_engagement.id"), nullable=False
    )
    requester_email: Mapped[str] = mapped_column(String(255), nullable=False)
    requester_name: Mapped[str | None] = mapped_column(String(255))
    reviewer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ReviewStatus] = mapped_column(
        Enum(ReviewStatus), default=ReviewStatus.pending, nullable=False
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    comments: Mapped[str | None] = mapped_column(Text)
    review_data: Mapped[dict | None] = mapped_column(JSON)
    changes_made: Mapped[list] = mapped_column(JSON, default=list)
    has_changes: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    document = relationship("TermsOfEngagement", back_populates="reviews")
