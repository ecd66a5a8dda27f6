"""Per-reviewer working copy of a TOE's reviewable fields.

A session is seeded from the live document, edited in memory, and closed by
``submit()``, which returns a frozen :class:`ReviewSubmission`. The change
summary is recomputed after every mutation.
"""

import enum
import logging

from toe_review.exceptions import (
    MissingDocumentContext,
    OriginalPreviewReadOnly,
    SessionClosed,
)
from toe_review.schemas.toe import (
    ChangeDescriptor,
    FeeLineItem,
    ReviewableFields,
    Totals,
)
from toe_review.schemas.toe_review import ReviewedData, ReviewSubmission
from toe_review.services import change_detector
from toe_review.services.fees import calculate_totals

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("scope_of_work", "assumptions", "exclusions")
REVIEWABLE_FIELDS = TEXT_FIELDS + ("fee_structure",)


class SessionState(enum.Enum):
    editing = "editing"
    submitted = "submitted"


def snapshot_fields(document) -> ReviewableFields:
    """Validated copy of a document's reviewable fields.

    Accepts an ORM row, any object exposing the four attributes, or a dict.
    """
    if document is None:
        raise MissingDocumentContext()
    if isinstance(document, dict):
        data = {name: document.get(name) for name in REVIEWABLE_FIELDS}
    else:
        data = {name: getattr(document, name, None) for name in REVIEWABLE_FIELDS}
    # Validation builds new FeeLineItem objects, so nothing aliases the source
    return ReviewableFields.model_validate(data)


class ReviewSession:
    def __init__(self, document, gst_rate: float | None = None):
        self.original = snapshot_fields(document)
        self.candidate = self.original.model_copy(deep=True)
        self.gst_rate = gst_rate
        self.state = SessionState.editing
        self.showing_original = False
        self.submission: ReviewSubmission | None = None
        self._changes: list[ChangeDescriptor] = []
        self._recompute()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def changes(self) -> list[ChangeDescriptor]:
        return list(self._changes)

    @property
    def change_count(self) -> int:
        return len(self._changes)

    @property
    def has_changes(self) -> bool:
        return self.change_count > 0

    @property
    def displayed(self) -> ReviewableFields:
        return self.original if self.showing_original else self.candidate

    def totals(self) -> Totals:
        return calculate_totals(self.candidate.fee_structure, self.gst_rate)

    def original_totals(self) -> Totals:
        return calculate_totals(self.original.fee_structure, self.gst_rate)

    def is_field_changed(self, field: str) -> bool:
        return change_detector.field_changed(self.original, self.candidate, field)

    def is_fee_item_changed(self, index: int) -> bool:
        return change_detector.fee_item_changed(self.original, self.candidate, index)

    def toggle_original(self) -> bool:
        self.showing_original = not self.showing_original
        return self.showing_original

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _ensure_editable(self) -> None:
        if self.state is not SessionState.editing:
            raise SessionClosed()
        if self.showing_original:
            raise OriginalPreviewReadOnly()

    def _recompute(self) -> None:
        self._changes = change_detector.summarize(self.original, self.candidate)

    def set_field(self, field: str, value) -> None:
        self._ensure_editable()
        if field not in REVIEWABLE_FIELDS:
            raise ValueError(f"Field is not reviewable: {field}")
        data = self.candidate.model_dump()
        data[field] = value
        self.candidate = ReviewableFields.model_validate(data)
        self._recompute()

    def replace_candidate(self, candidate: ReviewableFields | dict) -> None:
        self._ensure_editable()
        if isinstance(candidate, ReviewableFields):
            candidate = candidate.model_dump()
        self.candidate = ReviewableFields.model_validate(candidate)
        self._recompute()

    def _fee_items_for(self, index: int) -> list[dict]:
        self._ensure_editable()
        items = [item.model_dump() for item in self.candidate.fee_structure]
        if not 0 <= index < len(items):
            raise ValueError(f"No fee item at position {index}")
        return items

    def update_fee_item(self, index: int, key: str, value) -> None:
        items = self._fee_items_for(index)
        items[index][key] = value
        self._set_fees(items)

    def add_fee_item(self) -> None:
        self._ensure_editable()
        items = [item.model_dump() for item in self.candidate.fee_structure]
        items.append(FeeLineItem().model_dump())
        self._set_fees(items)

    def remove_fee_item(self, index: int) -> None:
        items = self._fee_items_for(index)
        del items[index]
        self._set_fees(items)

    def link_task_template(self, index: int, template_id: str, linked: bool) -> None:
        items = self._fee_items_for(index)
        links = list(items[index].get("linked_task_templates") or [])
        if linked:
            if template_id not in links:
                links.append(template_id)
        else:
            links = [link for link in links if link != template_id]
        items[index]["linked_task_templates"] = links
        self._set_fees(items)

    def apply_cost_calculation(
        self,
        index: int,
        total_cost: float,
        total_hours: float,
        breakdown: list,
    ) -> None:
        items = self._fee_items_for(index)
        items[index].update(
            cost=total_cost,
            time_estimate=f"{total_hours:g} hours",
            staff_breakdown=list(breakdown),
        )
        self._set_fees(items)

    def append_library_item(self, field: str, content: str) -> None:
        if field not in TEXT_FIELDS:
            raise ValueError(f"Library items only apply to text fields: {field}")
        current = getattr(self.candidate, field)
        bullet = f"• {content}"
        self.set_field(field, f"{current}\n{bullet}" if current else bullet)

    def _set_fees(self, items: list[dict]) -> None:
        data = self.candidate.model_dump()
        data["fee_structure"] = items
        self.candidate = ReviewableFields.model_validate(data)
        self._recompute()

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit(self, comments: str = "") -> ReviewSubmission:
        if self.state is not SessionState.editing:
            raise SessionClosed()
        self._recompute()
        totals = self.totals()
        reviewed = ReviewedData(
            **self.candidate.model_dump(),
            total_fee=totals.subtotal,
            total_fee_with_gst=totals.total,
        )
        self.submission = ReviewSubmission(
            original_data=self.original.model_copy(deep=True),
            reviewed_data=reviewed,
            changes=list(self._changes),
            comments=comments or "",
            has_changes=self.has_changes,
        )
        self.state = SessionState.submitted
        logger.debug("Review session submitted with %d change(s)", self.change_count)
        return self.submission
