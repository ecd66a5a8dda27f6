"""Accept or discard reviewer changes on a review_completed document.

Both paths run inside a savepoint: the field merge, the status transition
and the archiving of every review request commit together or not at all.
Events and counters follow the commit, never the savepoint.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from toe_review.exceptions import (
    InconsistentSnapshot,
    InvalidTransition,
    ReconciliationFailed,
    TOEError,
)
from toe_review.metrics import RECONCILIATIONS
from toe_review.models.toe import ReviewStatus, TermsOfEngagement, TOEReview, TOEStatus
from toe_review.schemas.toe import Actor, PreReviewVersion
from toe_review.schemas.toe_review import ReviewedData
from toe_review.services import text_diff
from toe_review.services.common import as_utc, coerce_uuid
from toe_review.services.event import EventType, publish_event
from toe_review.services.fees import calculate_totals
from toe_review.services.review_session import TEXT_FIELDS, snapshot_fields
from toe_review.services.toe_lifecycle import lifecycle
from toe_review.services.toe_review import ReviewRequests

logger = logging.getLogger(__name__)


def select_accepted_review(reviews: list[TOEReview]) -> TOEReview | None:
    """The most recently completed review that carries changes."""
    candidates = [
        review
        for review in reviews
        if review.status is ReviewStatus.completed
        and review.has_changes
        and review.review_data
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda review: as_utc(review.completed_at))


def _merged_values(review: TOEReview) -> dict:
    data = ReviewedData.model_validate(review.review_data)
    return {
        "scope_of_work": data.scope_of_work,
        "fee_structure": [item.model_dump() for item in data.fee_structure],
        "assumptions": data.assumptions,
        "exclusions": data.exclusions,
        "total_fee": data.total_fee,
        "total_fee_with_gst": data.total_fee_with_gst,
    }


def _restored_values(document: TermsOfEngagement) -> dict:
    if not document.pre_review_version:
        return {}
    snapshot = PreReviewVersion.model_validate(document.pre_review_version)
    return {
        "scope_of_work": snapshot.scope_of_work,
        "fee_structure": [item.model_dump() for item in snapshot.fee_structure],
        "assumptions": snapshot.assumptions,
        "exclusions": snapshot.exclusions,
        "total_fee": snapshot.total_fee,
        "total_fee_with_gst": snapshot.total_fee_with_gst,
    }


def _archive_reviews(db: Session, document_id) -> int:
    reviews = (
        db.query(TOEReview)
        .filter(
            TOEReview.document_id == document_id,
            TOEReview.status != ReviewStatus.archived,
        )
        .all()
    )
    for review in reviews:
        review.status = ReviewStatus.archived
    db.flush()
    return len(reviews)


class ReconciliationEngine:
    @staticmethod
    def _load_resolved(db: Session, document_id, action: str, attempted: TOEStatus):
        document = lifecycle.lock(db, document_id)
        if document.status is not TOEStatus.review_completed:
            raise InvalidTransition(action, document.status.value, attempted.value)
        reviews = ReviewRequests.for_document(db, document.id)
        accepted = select_accepted_review(reviews)
        if accepted is None:
            logger.warning(
                "TOE %s is review_completed but has no completed review with changes",
                document.id,
                extra={"document_id": document.id},
            )
            RECONCILIATIONS.labels("inconsistent").inc()
            raise InconsistentSnapshot(
                "No completed review with changes exists for this document",
                {"document_id": str(document.id)},
            )
        return document, accepted

    @staticmethod
    def accept(db: Session, document_id: str, actor: Actor) -> TermsOfEngagement:
        document, accepted = ReconciliationEngine._load_resolved(
            db, document_id, "accept review changes", TOEStatus.ready_to_send
        )
        accepted_id = accepted.id
        try:
            with db.begin_nested():
                lifecycle.transition(
                    db,
                    document,
                    TOEStatus.ready_to_send,
                    actor,
                    action="Review Changes Accepted",
                    details=(
                        f"Changes from review by {accepted.reviewer_email} were "
                        "accepted. TOE is ready to sign and send."
                    ),
                    values=_merged_values(accepted),
                )
                archived = _archive_reviews(db, document.id)
        except TOEError:
            raise
        except SQLAlchemyError as e:
            RECONCILIATIONS.labels("failed").inc()
            logger.exception("Failed to accept review changes on TOE %s", document.id)
            raise ReconciliationFailed(
                "Accepting review changes failed; nothing was applied",
                {"document_id": str(document.id), "error": str(e)},
            )
        lifecycle.commit_transition(db, document, TOEStatus.review_completed, actor)
        RECONCILIATIONS.labels("accepted").inc()
        logger.info(
            "Accepted review %s on TOE %s (%d review(s) archived)",
            accepted_id,
            document.id,
            archived,
            extra={"document_id": document.id, "review_id": accepted_id},
        )
        publish_event(
            EventType.review_changes_accepted,
            entity_type="toe",
            entity_id=document.id,
            actor=actor.email,
            document_id=document.id,
            payload={"review_id": str(accepted_id)},
        )
        return document

    @staticmethod
    def discard(db: Session, document_id: str, actor: Actor) -> TermsOfEngagement:
        document, _ = ReconciliationEngine._load_resolved(
            db, document_id, "discard review changes", TOEStatus.draft
        )
        try:
            with db.begin_nested():
                lifecycle.transition(
                    db,
                    document,
                    TOEStatus.draft,
                    actor,
                    action="Review Changes Discarded",
                    details=(
                        "Changes from reviewers were discarded. "
                        "TOE reverted to draft."
                    ),
                    values=_restored_values(document),
                )
                archived = _archive_reviews(db, document.id)
        except TOEError:
            raise
        except SQLAlchemyError as e:
            RECONCILIATIONS.labels("failed").inc()
            logger.exception("Failed to discard review changes on TOE %s", document.id)
            raise ReconciliationFailed(
                "Discarding review changes failed; nothing was applied",
                {"document_id": str(document.id), "error": str(e)},
            )
        lifecycle.commit_transition(db, document, TOEStatus.review_completed, actor)
        RECONCILIATIONS.labels("discarded").inc()
        logger.info(
            "Discarded review changes on TOE %s (%d review(s) archived)",
            document.id,
            archived,
            extra={"document_id": document.id},
        )
        publish_event(
            EventType.review_changes_discarded,
            entity_type="toe",
            entity_id=document.id,
            actor=actor.email,
            document_id=document.id,
        )
        return document

    @staticmethod
    def feedback(db: Session, document_id: str) -> dict:
        """Word diffs of every completed review against the live document."""
        document = db.get(TermsOfEngagement, coerce_uuid(document_id))
        if not document or not document.is_active:
            raise HTTPException(status_code=404, detail="TOE not found")
        original = snapshot_fields(document)
        original_totals = calculate_totals(original.fee_structure)

        reviews = ReviewRequests.for_document(db, document.id, ReviewStatus.completed)
        reviews = sorted(
            reviews, key=lambda review: as_utc(review.completed_at), reverse=True
        )
        items = []
        for review in reviews:
            reviewed = ReviewedData.model_validate(review.review_data or {})
            diffs = []
            for field in TEXT_FIELDS:
                before = getattr(original, field)
                after = getattr(reviewed, field)
                if before == after:
                    continue
                diffs.append(
                    {
                        "field": field,
                        "segments": [
                            {"type": segment.type.value, "text": segment.text}
                            for segment in text_diff.diff(before, after)
                        ],
                    }
                )
            items.append(
                {
                    "review": review,
                    "diffs": diffs,
                    "original_totals": original_totals,
                    "reviewed_totals": calculate_totals(reviewed.fee_structure),
                }
            )
        return {"document": document, "reviews": items}


reconciliation = ReconciliationEngine()
