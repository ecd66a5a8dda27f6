from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from factories import candidate_from, make_toe
from toe_review.exceptions import (
    InconsistentSnapshot,
    InvalidTransition,
    ReconciliationFailed,
)
from toe_review.models.toe import ReviewStatus, TOEStatus
from toe_review.schemas.toe import ReviewableFields
from toe_review.services.toe_reconciliation import (
    ReconciliationEngine,
    select_accepted_review,
)
from toe_review.services.toe_review import ReviewRequests


def _review_completed(db_session, actor, reviewers, edits_by_index):
    """Fan out to every reviewer and submit; edits_by_index maps index -> edits."""
    doc = make_toe(db_session, actor)
    doc, reviews = ReviewRequests.request_reviews(
        db_session, str(doc.id), [r.email for r in reviewers], actor
    )
    for index, (review, reviewer) in enumerate(zip(reviews, reviewers)):
        candidate = candidate_from(doc, **edits_by_index.get(index, {}))
        _, doc = ReviewRequests.submit(
            db_session,
            str(review.id),
            ReviewableFields.model_validate(candidate),
            "",
            reviewer,
        )
    return doc, reviews


class TestAccept:
    def test_merges_latest_review_and_archives_all(
        self, db_session, actor, reviewers
    ):
        new_fees = [
            {"description": "Site survey", "cost": 2000},
            {"description": "Report", "cost": 500},
        ]
        doc, reviews = _review_completed(
            db_session,
            actor,
            reviewers,
            {
                0: {"assumptions": "First reviewer edit."},
                2: {
                    "scope_of_work": "Survey the entire site.",
                    "fee_structure": new_fees,
                },
            },
        )
        assert doc.status == TOEStatus.review_completed

        doc = ReconciliationEngine.accept(db_session, str(doc.id), actor)
        assert doc.status == TOEStatus.ready_to_send
        assert doc.scope_of_work == "Survey the entire site."
        # Only the most recently completed review is merged
        assert doc.assumptions == "Access is provided."
        assert [item["cost"] for item in doc.fee_structure] == [2000, 500]
        assert doc.total_fee == 2500
        assert doc.total_fee_with_gst == pytest.approx(2875)
        assert doc.pre_review_version is None
        assert doc.history[-1]["action"] == "Review Changes Accepted"
        assert reviewers[2].email in doc.history[-1]["details"]
        for review in reviews:
            db_session.refresh(review)
            assert review.status == ReviewStatus.archived

    def test_requires_review_completed(self, db_session, actor):
        doc = make_toe(db_session, actor)
        with pytest.raises(InvalidTransition) as exc:
            ReconciliationEngine.accept(db_session, str(doc.id), actor)
        assert exc.value.current_status == "draft"

    def test_inconsistent_snapshot_makes_no_changes(
        self, db_session, actor, reviewers
    ):
        doc, reviews = _review_completed(
            db_session, actor, reviewers[:1], {0: {"exclusions": "More."}}
        )
        reviews[0].has_changes = False
        db_session.flush()
        with pytest.raises(InconsistentSnapshot):
            ReconciliationEngine.accept(db_session, str(doc.id), actor)
        db_session.refresh(doc)
        assert doc.status == TOEStatus.review_completed
        assert doc.pre_review_version is not None
        assert doc.exclusions == "No geotechnical work."

    def test_storage_failure_rolls_back(
        self, db_session, actor, reviewers, event_delay
    ):
        doc, reviews = _review_completed(
            db_session, actor, reviewers[:1], {0: {"exclusions": "More."}}
        )
        event_delay.reset_mock()
        with patch(
            "toe_review.services.toe_reconciliation._archive_reviews",
            side_effect=OperationalError("UPDATE", {}, Exception("disk full")),
        ):
            with pytest.raises(ReconciliationFailed) as exc:
                ReconciliationEngine.accept(db_session, str(doc.id), actor)
        assert exc.value.status_code == 500
        event_delay.assert_not_called()
        db_session.refresh(doc)
        assert doc.status == TOEStatus.review_completed
        assert doc.exclusions == "No geotechnical work."
        assert doc.pre_review_version is not None
        db_session.refresh(reviews[0])
        assert reviews[0].status == ReviewStatus.completed

    def test_publishes_after_commit(self, db_session, actor, reviewers, event_delay):
        doc, _ = _review_completed(
            db_session, actor, reviewers[:1], {0: {"exclusions": "More."}}
        )
        event_delay.reset_mock()
        ReconciliationEngine.accept(db_session, str(doc.id), actor)
        calls = [c.kwargs for c in event_delay.call_args_list]
        assert [c["event_type"] for c in calls] == [
            "toe.status_changed",
            "review.changes_accepted",
        ]
        assert calls[0]["payload"] == {
            "from": "review_completed",
            "to": "ready_to_send",
        }


class TestDiscard:
    def test_discard_restores_pre_review_fields(self, db_session, actor, reviewers):
        doc, reviews = _review_completed(
            db_session, actor, reviewers, {1: {"scope_of_work": "Different scope."}}
        )
        snapshot = dict(doc.pre_review_version)

        doc = ReconciliationEngine.discard(db_session, str(doc.id), actor)
        assert doc.status == TOEStatus.draft
        assert doc.scope_of_work == snapshot["scope_of_work"] == "Survey the site."
        assert doc.assumptions == snapshot["assumptions"]
        assert doc.exclusions == snapshot["exclusions"]
        assert doc.total_fee == 1500
        assert doc.pre_review_version is None
        assert doc.history[-1]["action"] == "Review Changes Discarded"
        for review in reviews:
            db_session.refresh(review)
            assert review.status == ReviewStatus.archived

    def test_discard_then_request_again(self, db_session, actor, reviewers):
        doc, _ = _review_completed(
            db_session, actor, reviewers[:1], {0: {"exclusions": "More."}}
        )
        ReconciliationEngine.discard(db_session, str(doc.id), actor)
        doc, reviews = ReviewRequests.request_reviews(
            db_session, str(doc.id), [reviewers[1].email], actor
        )
        assert doc.status == TOEStatus.internal_review
        assert len(reviews) == 1

    def test_discard_twice(self, db_session, actor, reviewers):
        doc, _ = _review_completed(
            db_session, actor, reviewers[:1], {0: {"exclusions": "More."}}
        )
        ReconciliationEngine.discard(db_session, str(doc.id), actor)
        with pytest.raises(InvalidTransition):
            ReconciliationEngine.discard(db_session, str(doc.id), actor)

    def test_storage_failure_publishes_nothing(
        self, db_session, actor, reviewers, event_delay
    ):
        doc, _ = _review_completed(
            db_session, actor, reviewers[:1], {0: {"exclusions": "More."}}
        )
        event_delay.reset_mock()
        with patch(
            "toe_review.services.toe_reconciliation._archive_reviews",
            side_effect=OperationalError("UPDATE", {}, Exception("disk full")),
        ):
            with pytest.raises(ReconciliationFailed):
                ReconciliationEngine.discard(db_session, str(doc.id), actor)
        event_delay.assert_not_called()
        db_session.refresh(doc)
        assert doc.status == TOEStatus.review_completed
        assert doc.exclusions == "No geotechnical work."
        assert doc.pre_review_version is not None


class TestSelectAcceptedReview:
    def test_none_without_changes(self):
        assert select_accepted_review([]) is None


class TestFeedback:
    def test_diffs_against_live_document(self, db_session, actor, reviewers):
        doc, reviews = _review_completed(
            db_session,
            actor,
            reviewers[:2],
            {1: {"scope_of_work": "Survey the entire site carefully."}},
        )
        result = ReconciliationEngine.feedback(db_session, str(doc.id))
        assert result["document"].id == doc.id
        by_reviewer = {
            item["review"].reviewer_email: item for item in result["reviews"]
        }
        assert by_reviewer[reviewers[0].email]["diffs"] == []
        diffs = by_reviewer[reviewers[1].email]["diffs"]
        assert [d["field"] for d in diffs] == ["scope_of_work"]
        assert diffs[0]["segments"] == [
            {"type": "unchanged", "text": "Survey the "},
            {"type": "removed", "text": "site."},
            {"type": "added", "text": "entire site carefully."},
        ]
        assert by_reviewer[reviewers[1].email]["original_totals"].subtotal == 1500
