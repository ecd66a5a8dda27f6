from celery import Celery
from celery.schedules import crontab

from toe_review.config import settings

celery_app = Celery(
    "toe_review",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "toe_review.tasks.events",
        "toe_review.tasks.notifications",
        "toe_review.tasks.expiry",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    beat_schedule={
        "expire-sent-documents": {
            "task": "toe_review.tasks.expiry.expire_sent_documents",
            "schedule": crontab(minute=0, hour=2),
        },
    },
)
