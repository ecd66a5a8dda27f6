from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from toe_review.schemas.toe import (
    ChangeDescriptor,
    ReviewableFields,
    TOERead,
    Totals,
)


# ---------------------------------------------------------------------------
# Review submission (emitted by a ReviewSession)
# ---------------------------------------------------------------------------


class ReviewedData(ReviewableFields):
    total_fee: float = 0
    total_fee_with_gst: float = 0


class ReviewSubmission(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_data: ReviewableFields
    reviewed_data: ReviewedData
    changes: list[ChangeDescriptor]
    comments: str = ""
    has_changes: bool


# ---------------------------------------------------------------------------
# Review requests
# ---------------------------------------------------------------------------


class ReviewRequestCreate(BaseModel):
    reviewer_emails: list[str]


class ReviewSubmitRequest(BaseModel):
    candidate: ReviewableFields
    comments: str = ""


class ReviewPreviewRequest(BaseModel):
    candidate: ReviewableFields


class ReviewPreviewRead(BaseModel):
    changes: list[ChangeDescriptor]
    change_count: int
    has_changes: bool
    totals: Totals
    original_totals: Totals


class ReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    requester_email: str
    requester_name: str | None = None
    reviewer_email: str
    status: str
    requested_at: datetime
    completed_at: datetime | None = None
    comments: str | None = None
    review_data: ReviewedData | None = None
    changes_made: list[ChangeDescriptor] = Field(default_factory=list)
    has_changes: bool = False
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def _enum_value(cls, value):
        return getattr(value, "value", value)

    @field_validator("changes_made", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value


class FanOutRead(BaseModel):
    document: TOERead
    reviews: list[ReviewRead]


class SubmissionRead(BaseModel):
    review: ReviewRead
    document: TOERead


# ---------------------------------------------------------------------------
# Diff / feedback
# ---------------------------------------------------------------------------


class DiffRequest(BaseModel):
    original: str = ""
    modified: str = ""


class DiffSegmentRead(BaseModel):
    type: str
    text: str


class FieldDiff(BaseModel):
    field: str
    segments: list[DiffSegmentRead]


class ReviewFeedbackRead(BaseModel):
    review: ReviewRead
    diffs: list[FieldDiff]
    original_totals: Totals
    reviewed_totals: Totals


class FeedbackRead(BaseModel):
    document: TOERead
    reviews: list[ReviewFeedbackRead]
