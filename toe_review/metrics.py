from prometheus_client import Counter

TOE_TRANSITIONS = Counter(
    "toe_status_transitions_total",
    "Terms of Engagement status transitions",
    ["from_status", "to_status"],
)
REVIEW_SUBMISSIONS = Counter(
    "toe_review_submissions_total",
    "Review submissions accepted, by whether they carried changes",
    ["has_changes"],
)
RECONCILIATIONS = Counter(
    "toe_review_reconciliations_total",
    "Accept/discard decisions on completed reviews",
    ["outcome"],
)
