import uuid

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from factories import make_toe, set_status
from toe_review.exceptions import DocumentLocked, InvalidTransition
from toe_review.models.toe import TOEStatus
from toe_review.schemas.toe import TOEUpdate
from toe_review.services.toe_document import TermsOfEngagements


def _list(db_session, **overrides):
    params = dict(
        status=None,
        client_name=None,
        created_by_email=None,
        is_active=None,
        order_by="created_at",
        order_dir="desc",
        limit=50,
        offset=0,
    )
    params.update(overrides)
    return TermsOfEngagements.list(db_session, **params)


class TestCreate:
    def test_create_computes_totals_and_history(self, db_session, actor):
        doc = make_toe(db_session, actor)
        assert doc.status == TOEStatus.draft
        assert doc.version == "1.0"
        assert doc.total_fee == 1500
        assert doc.total_fee_with_gst == pytest.approx(1725)
        assert doc.created_by_email == actor.email
        assert doc.history[0]["action"] == "Created"
        assert doc.pre_review_version is None

    def test_create_publishes_event(self, db_session, actor, event_delay):
        doc = make_toe(db_session, actor)
        call = event_delay.call_args.kwargs
        assert call["event_type"] == "toe.created"
        assert call["entity_id"] == str(doc.id)


class TestGetAndList:
    def test_get_not_found(self, db_session):
        with pytest.raises(HTTPException) as exc:
            TermsOfEngagements.get(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_get_invalid_id(self, db_session):
        with pytest.raises(HTTPException) as exc:
            TermsOfEngagements.get(db_session, "not-a-uuid")
        assert exc.value.status_code == 400

    def test_list_filters_status(self, db_session, actor):
        make_toe(db_session, actor, project_title="Draft")
        sent = make_toe(db_session, actor, project_title="Sent")
        set_status(db_session, sent, TOEStatus.sent)
        results = _list(db_session, status="sent")
        assert [r.id for r in results] == [sent.id]

    def test_list_invalid_status(self, db_session):
        with pytest.raises(HTTPException) as exc:
            _list(db_session, status="bogus")
        assert exc.value.status_code == 400

    def test_list_invalid_order_by(self, db_session):
        with pytest.raises(HTTPException) as exc:
            _list(db_session, order_by="nope")
        assert exc.value.status_code == 400


class TestUpdate:
    def test_update_draft_recomputes_totals(self, db_session, actor):
        doc = make_toe(db_session, actor)
        doc = TermsOfEngagements.update(
            db_session,
            str(doc.id),
            TOEUpdate(fee_structure=[{"description": "Only", "cost": 100}]),
            actor,
        )
        assert doc.total_fee == 100
        assert doc.total_fee_with_gst == pytest.approx(115)
        assert doc.history[-1]["action"] == "Updated"
        assert doc.history[-1]["details"] == "Updated fee_structure."

    def test_content_locked_during_review(self, db_session, actor):
        doc = set_status(
            db_session, make_toe(db_session, actor), TOEStatus.internal_review
        )
        with pytest.raises(DocumentLocked) as exc:
            TermsOfEngagements.update(
                db_session, str(doc.id), TOEUpdate(scope_of_work="Sneaky"), actor
            )
        assert exc.value.status_code == 409
        db_session.refresh(doc)
        assert doc.scope_of_work == "Survey the site."

    def test_title_editable_during_review(self, db_session, actor):
        doc = set_status(
            db_session, make_toe(db_session, actor), TOEStatus.internal_review
        )
        doc = TermsOfEngagements.update(
            db_session, str(doc.id), TOEUpdate(project_title="Renamed"), actor
        )
        assert doc.project_title == "Renamed"

    def test_empty_update_is_noop(self, db_session, actor):
        doc = make_toe(db_session, actor)
        doc = TermsOfEngagements.update(db_session, str(doc.id), TOEUpdate(), actor)
        assert len(doc.history) == 1

    def test_null_title_rejected(self):
        with pytest.raises(ValidationError):
            TOEUpdate(project_title=None)
        assert TOEUpdate(client_name=None).model_dump(exclude_unset=True) == {
            "client_name": None
        }


class TestDeleteAndDuplicate:
    def test_soft_delete(self, db_session, actor):
        doc = make_toe(db_session, actor)
        TermsOfEngagements.delete(db_session, str(doc.id), actor)
        assert doc.is_active is False
        with pytest.raises(HTTPException):
            TermsOfEngagements.get(db_session, str(doc.id))

    def test_signed_cannot_be_deleted(self, db_session, actor):
        doc = set_status(db_session, make_toe(db_session, actor), TOEStatus.signed)
        with pytest.raises(HTTPException) as exc:
            TermsOfEngagements.delete(db_session, str(doc.id), actor)
        assert exc.value.status_code == 409

    def test_duplicate(self, db_session, actor, reviewers):
        source = set_status(db_session, make_toe(db_session, actor), TOEStatus.sent)
        copy = TermsOfEngagements.duplicate(db_session, str(source.id), reviewers[0])
        assert copy.id != source.id
        assert copy.project_title == "Harbour Bridge Assessment (Copy)"
        assert copy.version == "1.1"
        assert copy.status == TOEStatus.draft
        assert copy.fee_structure == source.fee_structure
        assert copy.created_by_email == reviewers[0].email
        assert [h["action"] for h in copy.history] == ["Duplicated"]


class TestClientTransitions:
    def test_send_sign(self, db_session, actor):
        doc = set_status(
            db_session, make_toe(db_session, actor), TOEStatus.ready_to_send
        )
        doc = TermsOfEngagements.send(db_session, str(doc.id), actor)
        assert doc.status == TOEStatus.sent
        doc = TermsOfEngagements.sign(db_session, str(doc.id), "Jo Client", actor)
        assert doc.status == TOEStatus.signed
        assert doc.signed_date is not None

    def test_send_from_draft_rejected(self, db_session, actor):
        doc = make_toe(db_session, actor)
        with pytest.raises(InvalidTransition):
            TermsOfEngagements.send(db_session, str(doc.id), actor)

    def test_expire(self, db_session, actor):
        doc = set_status(db_session, make_toe(db_session, actor), TOEStatus.sent)
        doc = TermsOfEngagements.expire(db_session, str(doc.id), actor)
        assert doc.status == TOEStatus.expired
        assert doc.history[-1]["action"] == "TOE Expired"
