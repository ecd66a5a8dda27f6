import logging

from toe_review.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="toe_review.tasks.notifications.notify_reviewer", ignore_result=True
)
def notify_reviewer(
    document_id: str | None,
    review_id: str,
    reviewer_email: str | None,
    requester: str | None = None,
) -> None:
    """Tell a reviewer a TOE is awaiting their review.

    Hook only: delivery (email, chat) is handled outside this service.
    """
    if not reviewer_email:
        return
    logger.info(
        "Would notify %s of review %s on TOE %s requested by %s",
        reviewer_email,
        review_id,
        document_id,
        requester,
        extra={"review_id": review_id, "document_id": document_id},
    )
