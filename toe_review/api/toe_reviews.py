from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from toe_review.api.deps import get_actor, get_db
from toe_review.schemas.common import ListResponse
from toe_review.schemas.toe import Actor
from toe_review.schemas.toe_review import (
    ReviewPreviewRead,
    ReviewPreviewRequest,
    ReviewRead,
    ReviewSubmitRequest,
    SubmissionRead,
)
from toe_review.services import toe_review as review_service

router = APIRouter(prefix="/toe/reviews", tags=["toe-reviews"])


@router.get("", response_model=ListResponse[ReviewRead])
def list_reviews(
    document_id: str | None = None,
    reviewer_email: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    is_active: bool | None = None,
    order_by: str = Query(default="requested_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return review_service.review_requests.list_response(
        db,
        document_id,
        reviewer_email,
        status_filter,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/awaiting-me", response_model=list[ReviewRead])
def awaiting_my_review(
    db: Session = Depends(get_db), actor: Actor = Depends(get_actor)
):
    return review_service.review_requests.awaiting_review(db, actor.email)


@router.get("/{review_id}", response_model=ReviewRead)
def get_review(review_id: str, db: Session = Depends(get_db)):
    return review_service.review_requests.get(db, review_id)


@router.post("/{review_id}/preview", response_model=ReviewPreviewRead)
def preview_review(
    review_id: str,
    payload: ReviewPreviewRequest,
    db: Session = Depends(get_db),
):
    return review_service.review_requests.preview_changes(
        db, review_id, payload.candidate
    )


@router.post("/{review_id}/submit", response_model=SubmissionRead)
def submit_review(
    review_id: str,
    payload: ReviewSubmitRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    review, document = review_service.review_requests.submit(
        db, review_id, payload.candidate, payload.comments, actor
    )
    return {"review": review, "document": document}
