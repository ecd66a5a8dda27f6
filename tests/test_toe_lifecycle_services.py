import pytest
from sqlalchemy import update

from factories import make_toe, set_status
from toe_review.exceptions import DocumentLocked, InvalidTransition
from toe_review.models.toe import TermsOfEngagement, TOEStatus
from toe_review.services.toe_lifecycle import TRANSITIONS, LifecycleController


class TestTransitionTable:
    def test_terminal_states(self):
        assert TRANSITIONS[TOEStatus.signed] == set()
        assert TRANSITIONS[TOEStatus.expired] == set()

    @pytest.mark.parametrize(
        "from_status,to_status,allowed",
        [
            (TOEStatus.draft, TOEStatus.internal_review, True),
            (TOEStatus.draft, TOEStatus.sent, False),
            (TOEStatus.internal_review, TOEStatus.review_completed, True),
            (TOEStatus.internal_review, TOEStatus.draft, False),
            (TOEStatus.review_completed, TOEStatus.draft, True),
            (TOEStatus.ready_to_send, TOEStatus.sent, True),
            (TOEStatus.sent, TOEStatus.expired, True),
            (TOEStatus.signed, TOEStatus.draft, False),
        ],
    )
    def test_can_transition(self, from_status, to_status, allowed):
        assert LifecycleController.can_transition(from_status, to_status) is allowed


class TestTransition:
    def test_records_history_without_publishing(
        self, db_session, actor, event_delay
    ):
        doc = make_toe(db_session, actor)
        event_delay.reset_mock()
        LifecycleController.transition(
            db_session, doc, TOEStatus.internal_review, actor, "Sent for Review"
        )
        assert doc.status == TOEStatus.internal_review
        entry = doc.history[-1]
        assert entry["action"] == "Sent for Review"
        assert entry["actor"] == actor.email
        assert entry["actor_name"] == actor.name
        event_delay.assert_not_called()

    def test_commit_transition_publishes(self, db_session, actor, event_delay):
        doc = make_toe(db_session, actor)
        event_delay.reset_mock()
        LifecycleController.transition(
            db_session, doc, TOEStatus.internal_review, actor, "Sent for Review"
        )
        LifecycleController.commit_transition(
            db_session, doc, TOEStatus.draft, actor
        )
        call = event_delay.call_args.kwargs
        assert call["event_type"] == "toe.status_changed"
        assert call["payload"] == {"from": "draft", "to": "internal_review"}

    def test_illegal_transition_leaves_document_untouched(self, db_session, actor):
        doc = make_toe(db_session, actor)
        with pytest.raises(InvalidTransition) as exc:
            LifecycleController.transition(
                db_session, doc, TOEStatus.signed, actor, "TOE Signed"
            )
        assert exc.value.details["current_status"] == "draft"
        assert exc.value.details["attempted_status"] == "signed"
        db_session.refresh(doc)
        assert doc.status == TOEStatus.draft
        assert len(doc.history) == 1

    def test_lost_race_raises(self, db_session, actor):
        doc = make_toe(db_session, actor)
        # Another writer moves the row on after this copy was read
        db_session.execute(
            update(TermsOfEngagement)
            .where(TermsOfEngagement.id == doc.id)
            .values(status=TOEStatus.internal_review)
            .execution_options(synchronize_session=False)
        )
        assert doc.status == TOEStatus.draft
        with pytest.raises(InvalidTransition):
            LifecycleController.transition(
                db_session, doc, TOEStatus.internal_review, actor, "Sent for Review"
            )

    def test_snapshot_set_only_in_review_completed(self, db_session, actor):
        doc = set_status(
            db_session, make_toe(db_session, actor), TOEStatus.internal_review
        )
        LifecycleController.transition(
            db_session, doc, TOEStatus.review_completed, actor, "Reviews Completed"
        )
        assert doc.pre_review_version["scope_of_work"] == "Survey the site."
        assert doc.pre_review_version["total_fee_with_gst"] == pytest.approx(1725)
        LifecycleController.transition(
            db_session, doc, TOEStatus.ready_to_send, actor, "Accepted"
        )
        assert doc.pre_review_version is None

    def test_values_written_with_status(self, db_session, actor):
        doc = set_status(
            db_session, make_toe(db_session, actor), TOEStatus.ready_to_send
        )
        LifecycleController.send(db_session, doc, actor)
        assert doc.status == TOEStatus.sent
        assert doc.sent_date is not None
        LifecycleController.sign(db_session, doc, "Client Signer", actor)
        assert doc.status == TOEStatus.signed
        assert doc.signed_by_name == "Client Signer"
        assert doc.history[-1]["details"] == "Signed by Client Signer."


class TestLockAndEditability:
    def test_lock_missing(self, db_session):
        from fastapi import HTTPException

        with pytest.raises(HTTPException) as exc:
            LifecycleController.lock(db_session, "00000000-0000-0000-0000-000000000000")
        assert exc.value.status_code == 404

    def test_only_draft_is_editable(self, db_session, actor):
        doc = make_toe(db_session, actor)
        LifecycleController.assert_editable(doc)
        set_status(db_session, doc, TOEStatus.internal_review)
        with pytest.raises(DocumentLocked):
            LifecycleController.assert_editable(doc)
