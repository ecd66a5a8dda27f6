"""TOE lifecycle state machine.

    draft -> internal_review -> ready_to_send | review_completed
    review_completed -> ready_to_send (accept) | draft (discard)
    ready_to_send -> sent -> signed | expired

Status writes are conditional on the status the caller read, so two
requests racing on the same document cannot both win a transition.
``pre_review_version`` is written here and nowhere else: it is set on entry
to ``review_completed`` and cleared on every other transition.

``transition`` only writes. Callers commit through ``commit_transition``,
which counts and publishes the change once it is durable.
"""

import logging

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from toe_review.exceptions import DocumentLocked, InvalidTransition
from toe_review.metrics import TOE_TRANSITIONS
from toe_review.models.toe import TermsOfEngagement, TOEStatus
from toe_review.schemas.toe import Actor, PreReviewVersion
from toe_review.services.common import coerce_uuid, utcnow
from toe_review.services.event import EventType, publish_event
from toe_review.services.review_session import snapshot_fields

logger = logging.getLogger(__name__)

TRANSITIONS: dict[TOEStatus, set[TOEStatus]] = {
    TOEStatus.draft: {TOEStatus.internal_review},
    TOEStatus.internal_review: {TOEStatus.ready_to_send, TOEStatus.review_completed},
    TOEStatus.review_completed: {TOEStatus.ready_to_send, TOEStatus.draft},
    TOEStatus.ready_to_send: {TOEStatus.sent},
    TOEStatus.sent: {TOEStatus.signed, TOEStatus.expired},
    TOEStatus.signed: set(),
    TOEStatus.expired: set(),
}

EDITABLE_STATUSES = {TOEStatus.draft}


def history_entry(actor: Actor, action: str, details: str | None = None) -> dict:
    return {
        "timestamp": utcnow().isoformat(),
        "actor": actor.email,
        "actor_name": actor.name,
        "action": action,
        "details": details,
    }


def pre_review_snapshot(document: TermsOfEngagement, actor: Actor) -> dict:
    fields = snapshot_fields(document)
    snapshot = PreReviewVersion(
        **fields.model_dump(),
        total_fee=document.total_fee or 0,
        total_fee_with_gst=document.total_fee_with_gst or 0,
        saved_at=utcnow(),
        saved_by=actor.email,
    )
    return snapshot.model_dump(mode="json")


class LifecycleController:
    @staticmethod
    def lock(db: Session, document_id) -> TermsOfEngagement:
        """Load a document with a row lock held until the transaction ends."""
        stmt = (
            select(TermsOfEngagement)
            .where(TermsOfEngagement.id == coerce_uuid(document_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        document = db.scalars(stmt).first()
        if not document or not document.is_active:
            raise HTTPException(status_code=404, detail="TOE not found")
        return document

    @staticmethod
    def can_transition(from_status: TOEStatus, to_status: TOEStatus) -> bool:
        return to_status in TRANSITIONS.get(from_status, set())

    @staticmethod
    def assert_editable(document: TermsOfEngagement) -> None:
        if document.status not in EDITABLE_STATUSES:
            raise DocumentLocked(document.status.value)

    @staticmethod
    def record(
        db: Session,
        document: TermsOfEngagement,
        actor: Actor,
        action: str,
        details: str | None = None,
    ) -> None:
        """Append a history entry without changing status."""
        # Reassign so the JSON column is marked dirty
        document.history = [
            *(document.history or []),
            history_entry(actor, action, details),
        ]
        db.flush()

    @staticmethod
    def transition(
        db: Session,
        document: TermsOfEngagement,
        to_status: TOEStatus,
        actor: Actor,
        action: str,
        details: str | None = None,
        values: dict | None = None,
    ) -> TermsOfEngagement:
        from_status = document.status
        if not LifecycleController.can_transition(from_status, to_status):
            raise InvalidTransition(action, from_status.value, to_status.value)

        db.flush()
        data = dict(values or {})
        if to_status is TOEStatus.review_completed:
            data["pre_review_version"] = pre_review_snapshot(document, actor)
        else:
            data["pre_review_version"] = None
        data["status"] = to_status
        data["history"] = [
            *(document.history or []),
            history_entry(actor, action, details),
        ]

        result = db.execute(
            update(TermsOfEngagement)
            .where(
                TermsOfEngagement.id == document.id,
                TermsOfEngagement.status == from_status,
            )
            .values(**data)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.refresh(document)
            raise InvalidTransition(action, document.status.value, to_status.value)
        db.refresh(document)
        return document

    @staticmethod
    def commit_transition(
        db: Session,
        document: TermsOfEngagement,
        from_status: TOEStatus,
        actor: Actor,
    ) -> TermsOfEngagement:
        """Commit a written transition, then count and announce it."""
        db.commit()
        db.refresh(document)
        to_status = document.status
        TOE_TRANSITIONS.labels(from_status.value, to_status.value).inc()
        logger.info(
            "Transitioned TOE %s from %s to %s",
            document.id,
            from_status.value,
            to_status.value,
            extra={
                "document_id": document.id,
                "from_status": from_status.value,
                "to_status": to_status.value,
                "actor": actor.email,
            },
        )
        publish_event(
            EventType.toe_status_changed,
            entity_type="toe",
            entity_id=document.id,
            actor=actor.email,
            document_id=document.id,
            payload={"from": from_status.value, "to": to_status.value},
        )
        return document

    # ------------------------------------------------------------------
    # Named transitions
    # ------------------------------------------------------------------

    @staticmethod
    def send_for_review(
        db: Session,
        document: TermsOfEngagement,
        actor: Actor,
        reviewer_emails: list[str],
    ) -> TermsOfEngagement:
        return LifecycleController.transition(
            db,
            document,
            TOEStatus.internal_review,
            actor,
            action="Sent for Review",
            details=f"Review requested from: {', '.join(reviewer_emails)}",
        )

    @staticmethod
    def resolve_reviews(
        db: Session,
        document: TermsOfEngagement,
        completed_reviews: list,
        actor: Actor,
    ) -> TermsOfEngagement:
        """Leave internal_review once every review request has resolved."""
        with_changes = [
            review
            for review in completed_reviews
            if review.has_changes and review.review_data
        ]
        if with_changes:
            return LifecycleController.transition(
                db,
                document,
                TOEStatus.review_completed,
                actor,
                action="Reviews Completed with Changes",
                details=(
                    f"{len(with_changes)} review(s) contain changes. Original "
                    "version saved. Please review and accept changes."
                ),
            )
        return LifecycleController.transition(
            db,
            document,
            TOEStatus.ready_to_send,
            actor,
            action="All Reviews Completed",
            details=(
                "All internal reviews completed with no changes. "
                "TOE is ready to send to client."
            ),
        )

    @staticmethod
    def send(db: Session, document: TermsOfEngagement, actor: Actor):
        return LifecycleController.transition(
            db,
            document,
            TOEStatus.sent,
            actor,
            action="TOE Sent to Client",
            details="TOE has been sent to client for signature.",
            values={"sent_date": utcnow()},
        )

    @staticmethod
    def sign(
        db: Session, document: TermsOfEngagement, signer_name: str, actor: Actor
    ) -> TermsOfEngagement:
        return LifecycleController.transition(
            db,
            document,
            TOEStatus.signed,
            actor,
            action="TOE Signed",
            details=f"Signed by {signer_name}.",
            values={"signed_date": utcnow(), "signed_by_name": signer_name},
        )

    @staticmethod
    def expire(db: Session, document: TermsOfEngagement, actor: Actor):
        return LifecycleController.transition(
            db,
            document,
            TOEStatus.expired,
            actor,
            action="TOE Expired",
            details="Client signature was not received in time.",
        )


lifecycle = LifecycleController()
