from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    email: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("email must not be empty")
        return value

    @property
    def display_name(self) -> str:
        return self.name or self.email


# ---------------------------------------------------------------------------
# Reviewable fields
# ---------------------------------------------------------------------------


class FeeLineItem(BaseModel):
    # Unknown keys are kept so round-tripping a stored item never drops data
    model_config = ConfigDict(extra="allow")

    description: str = ""
    cost: float = 0
    time_estimate: str = ""
    staff_breakdown: list = Field(default_factory=list)
    linked_task_templates: list[str] = Field(default_factory=list)

    @field_validator("cost", mode="before")
    @classmethod
    def _coerce_cost(cls, value):
        if value is None or value == "":
            return 0
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0

    @field_validator("description", "time_estimate", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class ReviewableFields(BaseModel):
    """The four fields a reviewer may edit."""

    scope_of_work: str = ""
    fee_structure: list[FeeLineItem] = Field(default_factory=list)
    assumptions: str = ""
    exclusions: str = ""

    @field_validator("scope_of_work", "assumptions", "exclusions", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("fee_structure", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value


class Totals(BaseModel):
    subtotal: float
    gst: float
    total: float


class PreReviewVersion(ReviewableFields):
    total_fee: float = 0
    total_fee_with_gst: float = 0
    saved_at: datetime
    saved_by: str


class HistoryEntry(BaseModel):
    timestamp: datetime
    actor: str
    actor_name: str | None = None
    action: str
    details: str | None = None


class ChangeDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    field: str


# ---------------------------------------------------------------------------
# Terms of Engagement
# ---------------------------------------------------------------------------


class TOEBase(BaseModel):
    project_title: str
    client_name: str | None = None
    scope_of_work: str = ""
    fee_structure: list[FeeLineItem] = Field(default_factory=list)
    assumptions: str = ""
    exclusions: str = ""


class TOECreate(TOEBase):
    pass


class TOEUpdate(BaseModel):
    project_title: str | None = None
    client_name: str | None = None
    scope_of_work: str | None = None
    fee_structure: list[FeeLineItem] | None = None
    assumptions: str | None = None
    exclusions: str | None = None

    # Omit the key to leave the title alone; null would clear a required column
    @field_validator("project_title")
    @classmethod
    def _title_not_null(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("project_title cannot be null")
        return value


class TOERead(TOEBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    version: str
    total_fee: float
    total_fee_with_gst: float
    pre_review_version: PreReviewVersion | None = None
    history: list[HistoryEntry] = Field(default_factory=list)
    created_by_email: str
    created_by_name: str | None = None
    sent_date: datetime | None = None
    signed_date: datetime | None = None
    signed_by_name: str | None = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def _enum_value(cls, value):
        return getattr(value, "value", value)


class TOESignRequest(BaseModel):
    signer_name: str
