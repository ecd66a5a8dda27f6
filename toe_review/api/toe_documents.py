from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from toe_review.api.deps import get_actor, get_db
from toe_review.schemas.common import ListResponse
from toe_review.schemas.toe import (
    Actor,
    TOECreate,
    TOERead,
    TOESignRequest,
    TOEUpdate,
)
from toe_review.schemas.toe_review import (
    DiffRequest,
    DiffSegmentRead,
    FanOutRead,
    FeedbackRead,
    ReviewRead,
    ReviewRequestCreate,
)
from toe_review.services import text_diff
from toe_review.services import toe_document as toe_service
from toe_review.services import toe_reconciliation as reconciliation_service
from toe_review.services import toe_review as review_service

router = APIRouter(prefix="/toe", tags=["toe"])


# ------------------------------------------------------------------
# Document CRUD
# ------------------------------------------------------------------


@router.post(
    "/documents", response_model=TOERead, status_code=status.HTTP_201_CREATED
)
def create_toe(
    payload: TOECreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return toe_service.toes.create(db, payload, actor)


@router.get("/documents/{document_id}", response_model=TOERead)
def get_toe(document_id: str, db: Session = Depends(get_db)):
    return toe_service.toes.get(db, document_id)


@router.get("/documents", response_model=ListResponse[TOERead])
def list_toes(
    status_filter: str | None = Query(default=None, alias="status"),
    client_name: str | None = None,
    created_by_email: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return toe_service.toes.list_response(
        db,
        status_filter,
        client_name,
        created_by_email,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.patch("/documents/{document_id}", response_model=TOERead)
def update_toe(
    document_id: str,
    payload: TOEUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return toe_service.toes.update(db, document_id, payload, actor)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_toe(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    toe_service.toes.delete(db, document_id, actor)


@router.post(
    "/documents/{document_id}/duplicate",
    response_model=TOERead,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_toe(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return toe_service.toes.duplicate(db, document_id, actor)


# ------------------------------------------------------------------
# Internal review
# ------------------------------------------------------------------


@router.post(
    "/documents/{document_id}/reviews",
    response_model=FanOutRead,
    status_code=status.HTTP_201_CREATED,
)
def request_reviews(
    document_id: str,
    payload: ReviewRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    document, reviews = review_service.review_requests.request_reviews(
        db, document_id, payload.reviewer_emails, actor
    )
    return {"document": document, "reviews": reviews}


@router.get(
    "/documents/{document_id}/reviews", response_model=ListResponse[ReviewRead]
)
def list_document_reviews(
    document_id: str,
    status_filter: str | None = Query(default=None, alias="status"),
    order_by: str = Query(default="requested_at"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    toe_service.toes.get(db, document_id)
    return review_service.review_requests.list_response(
        db,
        document_id,
        None,
        status_filter,
        None,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/documents/{document_id}/review-feedback", response_model=FeedbackRead)
def review_feedback(document_id: str, db: Session = Depends(get_db)):
    return reconciliation_service.reconciliation.feedback(db, document_id)


@router.post("/documents/{document_id}/accept-review", response_model=TOERead)
def accept_review(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return reconciliation_service.reconciliation.accept(db, document_id, actor)


@router.post("/documents/{document_id}/discard-review", response_model=TOERead)
def discard_review(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return reconciliation_service.reconciliation.discard(db, document_id, actor)


# ------------------------------------------------------------------
# Client-facing lifecycle
# ------------------------------------------------------------------


@router.post("/documents/{document_id}/send", response_model=TOERead)
def send_toe(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return toe_service.toes.send(db, document_id, actor)


@router.post("/documents/{document_id}/sign", response_model=TOERead)
def sign_toe(
    document_id: str,
    payload: TOESignRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return toe_service.toes.sign(db, document_id, payload.signer_name, actor)


@router.post("/documents/{document_id}/expire", response_model=TOERead)
def expire_toe(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return toe_service.toes.expire(db, document_id, actor)


# ------------------------------------------------------------------
# Text diff
# ------------------------------------------------------------------


@router.post("/diff", response_model=list[DiffSegmentRead])
def diff_text(payload: DiffRequest):
    return [
        {"type": segment.type.value, "text": segment.text}
        for segment in text_diff.diff(payload.original, payload.modified)
    ]
