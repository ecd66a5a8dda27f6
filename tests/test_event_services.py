import uuid
from unittest.mock import patch

from toe_review.services.event import EventType, publish_event


class TestEventType:
    def test_all_event_types_have_dotted_values(self) -> None:
        for et in EventType:
            assert "." in et.value, f"{et.name} value should contain a dot"

    def test_review_events(self) -> None:
        assert EventType.review_requested.value == "review.requested"
        assert EventType.review_completed.value == "review.completed"
        assert EventType.reviews_resolved.value == "review.all_resolved"
        assert EventType.review_changes_accepted.value == "review.changes_accepted"
        assert EventType.review_changes_discarded.value == "review.changes_discarded"


class TestPublishEvent:
    def test_queues_process_event(self, event_delay) -> None:
        entity_id = uuid.uuid4()
        publish_event(
            EventType.toe_created,
            entity_type="toe",
            entity_id=entity_id,
            actor="author@firm.test",
            document_id=entity_id,
        )
        event_delay.assert_called_once_with(
            event_type="toe.created",
            entity_type="toe",
            entity_id=str(entity_id),
            actor="author@firm.test",
            document_id=str(entity_id),
            payload={},
        )

    def test_never_raises(self, event_delay) -> None:
        event_delay.side_effect = ConnectionError("broker down")
        publish_event(EventType.toe_updated, entity_type="toe", entity_id="x")


class TestProcessEvent:
    @patch("toe_review.tasks.notifications.notify_reviewer.delay")
    def test_review_requested_notifies_reviewer(self, notify_delay) -> None:
        from toe_review.tasks.events import process_event

        process_event(
            event_type="review.requested",
            entity_type="toe_review",
            entity_id="review-1",
            actor="author@firm.test",
            document_id="doc-1",
            payload={"reviewer_email": "rev1@firm.test"},
        )
        notify_delay.assert_called_once_with(
            document_id="doc-1",
            review_id="review-1",
            reviewer_email="rev1@firm.test",
            requester="author@firm.test",
        )

    @patch("toe_review.tasks.notifications.notify_reviewer.delay")
    def test_other_events_do_not_notify(self, notify_delay) -> None:
        from toe_review.tasks.events import process_event

        process_event(
            event_type="toe.updated", entity_type="toe", entity_id="doc-1"
        )
        notify_delay.assert_not_called()

    def test_notify_reviewer_without_email_is_noop(self, caplog) -> None:
        from toe_review.tasks.notifications import notify_reviewer

        with caplog.at_level("INFO"):
            notify_reviewer("doc-1", "review-1", None)
        assert "Would notify" not in caplog.text
