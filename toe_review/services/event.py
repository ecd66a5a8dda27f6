import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    toe_created = "toe.created"
    toe_updated = "toe.updated"
    toe_deleted = "toe.deleted"
    toe_status_changed = "toe.status_changed"

    review_requested = "review.requested"
    review_completed = "review.completed"
    reviews_resolved = "review.all_resolved"
    review_changes_accepted = "review.changes_accepted"
    review_changes_discarded = "review.changes_discarded"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor: str | None = None,
    document_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Queues a Celery task for fan-out to notification hooks.
    Never raises; logs failures and continues.
    """
    try:
        from toe_review.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor=actor,
            document_id=str(document_id) if document_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
