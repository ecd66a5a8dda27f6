import logging

from toe_review.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="toe_review.tasks.events.process_event", ignore_result=True)
def process_event(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor: str | None = None,
    document_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Central fan-out task for TOE events."""
    logger.info(
        "Processing event %s for %s/%s",
        event_type,
        entity_type,
        entity_id,
        extra={"event_type": event_type, "document_id": document_id},
    )
    if event_type == "review.requested":
        _fanout_reviewer_notifications(
            document_id=document_id,
            review_id=entity_id,
            reviewer_email=(payload or {}).get("reviewer_email"),
            requester=actor,
        )


def _fanout_reviewer_notifications(**kwargs) -> None:
    try:
        from toe_review.tasks.notifications import notify_reviewer

        notify_reviewer.delay(**kwargs)
    except Exception as e:
        logger.exception("Failed to fan-out reviewer notification: %s", e)
