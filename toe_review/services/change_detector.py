"""Structural change summary between an original and a candidate snapshot.

Descriptor ids depend only on (field, index) so repeated summaries of the
same edit produce identical output.
"""

from toe_review.schemas.toe import ChangeDescriptor, ReviewableFields

# (field, descriptor id, sentence), in output order
_TEXT_FIELDS = (
    ("scope_of_work", "scope", "Scope of Work was modified."),
    ("assumptions", "assumptions", "Assumptions were modified."),
    ("exclusions", "exclusions", "Exclusions were modified."),
)


def _as_fields(value) -> ReviewableFields:
    if isinstance(value, ReviewableFields):
        return value
    return ReviewableFields.model_validate(value or {})


def fee_item_changed(
    original: ReviewableFields, candidate: ReviewableFields, index: int
) -> bool:
    if index >= len(original.fee_structure):
        return True
    return (
        original.fee_structure[index].model_dump()
        != candidate.fee_structure[index].model_dump()
    )


def field_changed(
    original: ReviewableFields, candidate: ReviewableFields, field: str
) -> bool:
    before = getattr(original, field)
    after = getattr(candidate, field)
    if field == "fee_structure":
        return [item.model_dump() for item in before] != [
            item.model_dump() for item in after
        ]
    return before != after


def summarize(original, candidate) -> list[ChangeDescriptor]:
    original = _as_fields(original)
    candidate = _as_fields(candidate)
    summary: list[ChangeDescriptor] = []

    for field, change_id, text in _TEXT_FIELDS:
        if field_changed(original, candidate, field):
            summary.append(ChangeDescriptor(id=change_id, text=text, field=field))

    original_fees = original.fee_structure
    candidate_fees = candidate.fee_structure
    delta = len(candidate_fees) - len(original_fees)
    if delta > 0:
        summary.append(
            ChangeDescriptor(
                id="fee_count_added",
                text=f"{delta} new fee item(s) added.",
                field="fee_structure",
            )
        )
    elif delta < 0:
        summary.append(
            ChangeDescriptor(
                id="fee_count_removed",
                text=f"{-delta} fee item(s) removed.",
                field="fee_structure",
            )
        )

    # Indices beyond the shorter list are covered by the count descriptor
    for index in range(min(len(original_fees), len(candidate_fees))):
        if fee_item_changed(original, candidate, index):
            label = candidate_fees[index].description or "Untitled"
            summary.append(
                ChangeDescriptor(
                    id=f"fee_mod_{index}",
                    text=f'Fee item "{label}" was modified.',
                    field="fee_structure",
                )
            )

    return summary


def has_changes(original, candidate) -> bool:
    return len(summarize(original, candidate)) > 0
