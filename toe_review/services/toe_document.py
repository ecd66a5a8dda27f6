from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from toe_review.models.toe import TermsOfEngagement, TOEStatus
from toe_review.schemas.toe import Actor, TOECreate, TOEUpdate
from toe_review.services.common import apply_ordering, apply_pagination, coerce_uuid
from toe_review.services.event import EventType, publish_event
from toe_review.services.fees import calculate_totals
from toe_review.services.response import ListResponseMixin
from toe_review.services.review_session import REVIEWABLE_FIELDS
from toe_review.services.toe_lifecycle import history_entry, lifecycle

logger = logging.getLogger(__name__)

_VALID_STATUSES = {e.value for e in TOEStatus}


def _bump_version(version: str | None) -> str:
    try:
        return f"{float(version or '1.0') + 0.1:.1f}"
    except ValueError:
        return "1.0"


class TermsOfEngagements(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: TOECreate, actor: Actor) -> TermsOfEngagement:
        data = payload.model_dump()
        totals = calculate_totals(payload.fee_structure)
        document = TermsOfEngagement(
            **data,
            status=TOEStatus.draft,
            total_fee=totals.subtotal,
            total_fee_with_gst=totals.total,
            created_by_email=actor.email,
            created_by_name=actor.name,
            history=[history_entry(actor, "Created", "TOE created.")],
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        logger.info("Created TOE %s", document.id)
        publish_event(
            EventType.toe_created,
            entity_type="toe",
            entity_id=document.id,
            actor=actor.email,
            document_id=document.id,
        )
        return document

    @staticmethod
    def get(db: Session, document_id: str) -> TermsOfEngagement:
        document = db.get(TermsOfEngagement, coerce_uuid(document_id))
        if not document or not document.is_active:
            raise HTTPException(status_code=404, detail="TOE not found")
        return document

    @staticmethod
    def list(
        db: Session,
        status: str | None,
        client_name: str | None,
        created_by_email: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[TermsOfEngagement]:
        stmt = select(TermsOfEngagement)
        if status is not None:
            if status not in _VALID_STATUSES:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid status. Allowed: {sorted(_VALID_STATUSES)}",
                )
            stmt = stmt.where(TermsOfEngagement.status == TOEStatus(status))
        if client_name is not None:
            stmt = stmt.where(TermsOfEngagement.client_name == client_name)
        if created_by_email is not None:
            stmt = stmt.where(
                TermsOfEngagement.created_by_email == created_by_email.lower()
            )
        if is_active is None:
            stmt = stmt.where(TermsOfEngagement.is_active.is_(True))
        else:
            stmt = stmt.where(TermsOfEngagement.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "created_at": TermsOfEngagement.created_at,
                "updated_at": TermsOfEngagement.updated_at,
                "project_title": TermsOfEngagement.project_title,
                "total_fee": TermsOfEngagement.total_fee,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, document_id: str, payload: TOEUpdate, actor: Actor
    ) -> TermsOfEngagement:
        document = lifecycle.lock(db, document_id)
        data = payload.model_dump(exclude_unset=True)
        if not data:
            return document
        # Title and client can change at any point; content only in draft
        if any(field in data for field in REVIEWABLE_FIELDS):
            lifecycle.assert_editable(document)

        for key, value in data.items():
            if key == "fee_structure" and value is None:
                value = []
            elif key in REVIEWABLE_FIELDS and value is None:
                value = ""
            setattr(document, key, value)
        if "fee_structure" in data:
            totals = calculate_totals(document.fee_structure)
            document.total_fee = totals.subtotal
            document.total_fee_with_gst = totals.total

        lifecycle.record(
            db, document, actor, "Updated", f"Updated {', '.join(sorted(data))}."
        )
        db.commit()
        db.refresh(document)
        logger.info("Updated TOE %s", document.id)
        publish_event(
            EventType.toe_updated,
            entity_type="toe",
            entity_id=document.id,
            actor=actor.email,
            document_id=document.id,
            payload={"changed_fields": list(data.keys())},
        )
        return document

    @staticmethod
    def delete(db: Session, document_id: str, actor: Actor) -> None:
        document = lifecycle.lock(db, document_id)
        if document.status is TOEStatus.signed:
            raise HTTPException(status_code=409, detail="Signed TOEs cannot be deleted")
        document.is_active = False
        db.commit()
        logger.info("Soft-deleted TOE %s", document.id)
        publish_event(
            EventType.toe_deleted,
            entity_type="toe",
            entity_id=document.id,
            actor=actor.email,
            document_id=document.id,
        )

    @staticmethod
    def duplicate(db: Session, document_id: str, actor: Actor) -> TermsOfEngagement:
        source = TermsOfEngagements.get(db, document_id)
        copy = TermsOfEngagement(
            project_title=f"{source.project_title} (Copy)",
            client_name=source.client_name,
            status=TOEStatus.draft,
            version=_bump_version(source.version),
            scope_of_work=source.scope_of_work or "",
            fee_structure=[dict(item) for item in source.fee_structure or []],
            assumptions=source.assumptions or "",
            exclusions=source.exclusions or "",
            total_fee=source.total_fee,
            total_fee_with_gst=source.total_fee_with_gst,
            created_by_email=actor.email,
            created_by_name=actor.name,
            history=[
                history_entry(
                    actor, "Duplicated", f"Duplicated from TOE {source.id}."
                )
            ],
        )
        db.add(copy)
        db.commit()
        db.refresh(copy)
        logger.info("Duplicated TOE %s as %s", source.id, copy.id)
        publish_event(
            EventType.toe_created,
            entity_type="toe",
            entity_id=copy.id,
            actor=actor.email,
            document_id=copy.id,
            payload={"duplicated_from": str(source.id)},
        )
        return copy

    # ------------------------------------------------------------------
    # Client-facing transitions
    # ------------------------------------------------------------------

    @staticmethod
    def send(db: Session, document_id: str, actor: Actor) -> TermsOfEngagement:
        document = lifecycle.lock(db, document_id)
        from_status = document.status
        lifecycle.send(db, document, actor)
        return lifecycle.commit_transition(db, document, from_status, actor)

    @staticmethod
    def sign(
        db: Session, document_id: str, signer_name: str, actor: Actor
    ) -> TermsOfEngagement:
        document = lifecycle.lock(db, document_id)
        from_status = document.status
        lifecycle.sign(db, document, signer_name, actor)
        return lifecycle.commit_transition(db, document, from_status, actor)

    @staticmethod
    def expire(db: Session, document_id: str, actor: Actor) -> TermsOfEngagement:
        document = lifecycle.lock(db, document_id)
        from_status = document.status
        lifecycle.expire(db, document, actor)
        return lifecycle.commit_transition(db, document, from_status, actor)


toes = TermsOfEngagements()
