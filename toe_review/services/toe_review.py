"""Review request fan-out and fan-in.

One pending TOEReview is created per reviewer. Each submission completes its
own review; the submission that leaves no review pending drives the
document out of internal_review. All of this runs under the document row
lock taken by :meth:`LifecycleController.lock`, so the "anything still
pending?" check always sees the other reviewers' committed results.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from toe_review.exceptions import EmptyReviewerSet, InvalidTransition, StaleSubmission
from toe_review.metrics import REVIEW_SUBMISSIONS
from toe_review.models.toe import ReviewStatus, TermsOfEngagement, TOEReview, TOEStatus
from toe_review.schemas.toe import Actor, ReviewableFields
from toe_review.schemas.toe_review import ReviewSubmission
from toe_review.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    utcnow,
)
from toe_review.services.event import EventType, publish_event
from toe_review.services.response import ListResponseMixin
from toe_review.services.review_session import ReviewSession
from toe_review.services.toe_lifecycle import lifecycle

logger = logging.getLogger(__name__)

_COMMENT_PREVIEW_CHARS = 100


def _validate_review_status(status: str) -> ReviewStatus:
    try:
        return ReviewStatus(status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")


def normalise_reviewers(reviewer_emails: list[str] | None) -> list[str]:
    seen: list[str] = []
    for email in reviewer_emails or []:
        email = (email or "").strip().lower()
        if email and email not in seen:
            seen.append(email)
    return seen


def _completion_details(actor: Actor, submission: ReviewSubmission) -> str:
    if submission.has_changes:
        outcome = f" with {len(submission.changes)} changes"
    else:
        outcome = " with no changes"
    details = f"Review by {actor.display_name} completed{outcome}."
    if submission.comments:
        preview = submission.comments[:_COMMENT_PREVIEW_CHARS]
        if len(submission.comments) > _COMMENT_PREVIEW_CHARS:
            preview += "..."
        details += f" Comments: {preview}"
    return details


class ReviewRequests(ListResponseMixin):
    @staticmethod
    def get(db: Session, review_id: str) -> TOEReview:
        review = db.get(TOEReview, coerce_uuid(review_id))
        if not review or not review.is_active:
            raise HTTPException(status_code=404, detail="Review not found")
        return review

    @staticmethod
    def list(
        db: Session,
        document_id: str | None,
        reviewer_email: str | None,
        status: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[TOEReview]:
        stmt = select(TOEReview)
        if document_id is not None:
            stmt = stmt.where(TOEReview.document_id == coerce_uuid(document_id))
        if reviewer_email is not None:
            stmt = stmt.where(TOEReview.reviewer_email == reviewer_email.lower())
        if status is not None:
            stmt = stmt.where(TOEReview.status == _validate_review_status(status))
        if is_active is None:
            stmt = stmt.where(TOEReview.is_active.is_(True))
        else:
            stmt = stmt.where(TOEReview.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "requested_at": TOEReview.requested_at,
                "completed_at": TOEReview.completed_at,
                "created_at": TOEReview.created_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def for_document(
        db: Session, document_id, status: ReviewStatus | None = None
    ) -> list[TOEReview]:
        stmt = select(TOEReview).where(
            TOEReview.document_id == coerce_uuid(document_id),
            TOEReview.is_active.is_(True),
        )
        if status is not None:
            stmt = stmt.where(TOEReview.status == status)
        return db.scalars(stmt.order_by(TOEReview.requested_at.asc())).all()

    @staticmethod
    def pending_count(db: Session, document_id) -> int:
        return db.scalar(
            select(func.count())
            .select_from(TOEReview)
            .where(
                TOEReview.document_id == coerce_uuid(document_id),
                TOEReview.status == ReviewStatus.pending,
                TOEReview.is_active.is_(True),
            )
        )

    @staticmethod
    def awaiting_review(db: Session, reviewer_email: str) -> list[TOEReview]:
        stmt = (
            select(TOEReview)
            .where(
                TOEReview.reviewer_email == reviewer_email.strip().lower(),
                TOEReview.status == ReviewStatus.pending,
                TOEReview.is_active.is_(True),
            )
            .order_by(TOEReview.requested_at.asc())
        )
        return db.scalars(stmt).all()

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    @staticmethod
    def request_reviews(
        db: Session,
        document_id: str,
        reviewer_emails: list[str],
        actor: Actor,
    ) -> tuple[TermsOfEngagement, list[TOEReview]]:
        reviewers = normalise_reviewers(reviewer_emails)
        if not reviewers:
            raise EmptyReviewerSet()

        document = lifecycle.lock(db, document_id)
        if ReviewRequests.pending_count(db, document.id):
            raise InvalidTransition(
                "request reviews",
                document.status.value,
                TOEStatus.internal_review.value,
            )
        from_status = document.status
        lifecycle.send_for_review(db, document, actor, reviewers)

        now = utcnow()
        reviews = [
            TOEReview(
                document_id=document.id,
                requester_email=actor.email,
                requester_name=actor.name,
                reviewer_email=reviewer,
                status=ReviewStatus.pending,
                requested_at=now,
            )
            for reviewer in reviewers
        ]
        db.add_all(reviews)
        db.flush()
        lifecycle.commit_transition(db, document, from_status, actor)
        logger.info(
            "Requested %d review(s) for TOE %s",
            len(reviews),
            document.id,
            extra={"document_id": document.id, "actor": actor.email},
        )
        for review in reviews:
            publish_event(
                EventType.review_requested,
                entity_type="toe_review",
                entity_id=review.id,
                actor=actor.email,
                document_id=document.id,
                payload={"reviewer_email": review.reviewer_email},
            )
        return document, reviews

    # ------------------------------------------------------------------
    # Fan-in
    # ------------------------------------------------------------------

    @staticmethod
    def open_session(db: Session, review_id: str) -> ReviewSession:
        review = ReviewRequests.get(db, review_id)
        document = db.get(TermsOfEngagement, review.document_id)
        return ReviewSession(document)

    @staticmethod
    def preview_changes(
        db: Session, review_id: str, candidate: ReviewableFields
    ) -> dict:
        session = ReviewRequests.open_session(db, review_id)
        session.replace_candidate(candidate)
        return {
            "changes": session.changes,
            "change_count": session.change_count,
            "has_changes": session.has_changes,
            "totals": session.totals(),
            "original_totals": session.original_totals(),
        }

    @staticmethod
    def submit(
        db: Session,
        review_id: str,
        candidate: ReviewableFields,
        comments: str,
        actor: Actor,
    ) -> tuple[TOEReview, TermsOfEngagement]:
        """Run a server-side review session and complete the review with it."""
        review = ReviewRequests.get(db, review_id)
        if review.status is not ReviewStatus.pending:
            raise StaleSubmission(review.id, review.status.value)
        session = ReviewRequests.open_session(db, review_id)
        session.replace_candidate(candidate)
        submission = session.submit(comments)
        return ReviewRequests.complete(db, review_id, submission, actor)

    @staticmethod
    def complete(
        db: Session,
        review_id: str,
        submission: ReviewSubmission,
        actor: Actor,
    ) -> tuple[TOEReview, TermsOfEngagement]:
        review = ReviewRequests.get(db, review_id)
        if review.reviewer_email != actor.email:
            raise HTTPException(
                status_code=403, detail="Review is assigned to another reviewer"
            )

        document = lifecycle.lock(db, review.document_id)
        if document.status is not TOEStatus.internal_review:
            raise InvalidTransition(
                "submit review", document.status.value, None
            )

        result = db.execute(
            update(TOEReview)
            .where(
                TOEReview.id == review.id,
                TOEReview.status == ReviewStatus.pending,
            )
            .values(
                status=ReviewStatus.completed,
                completed_at=utcnow(),
                comments=submission.comments,
                review_data=submission.reviewed_data.model_dump(mode="json"),
                changes_made=[c.model_dump() for c in submission.changes],
                has_changes=submission.has_changes,
            )
            .execution_options(synchronize_session=False)
        )
        db.refresh(review)
        if result.rowcount != 1:
            raise StaleSubmission(review.id, review.status.value)

        lifecycle.record(
            db,
            document,
            actor,
            "Review Completed",
            _completion_details(actor, submission),
        )
        completed = None
        if ReviewRequests.pending_count(db, document.id) == 0:
            completed = ReviewRequests.for_document(
                db, document.id, ReviewStatus.completed
            )
            lifecycle.resolve_reviews(db, document, completed, actor)
            lifecycle.commit_transition(
                db, document, TOEStatus.internal_review, actor
            )
        else:
            db.commit()
            db.refresh(review)

        REVIEW_SUBMISSIONS.labels(str(submission.has_changes).lower()).inc()
        logger.info(
            "Review %s completed for TOE %s (%d change(s))",
            review.id,
            document.id,
            len(submission.changes),
            extra={"review_id": review.id, "document_id": document.id},
        )
        publish_event(
            EventType.review_completed,
            entity_type="toe_review",
            entity_id=review.id,
            actor=actor.email,
            document_id=document.id,
            payload={"has_changes": submission.has_changes},
        )
        if completed is not None:
            publish_event(
                EventType.reviews_resolved,
                entity_type="toe",
                entity_id=document.id,
                actor=actor.email,
                document_id=document.id,
                payload={
                    "review_ids": [str(r.id) for r in completed],
                    "status": document.status.value,
                },
            )
        return review, document


review_requests = ReviewRequests()
