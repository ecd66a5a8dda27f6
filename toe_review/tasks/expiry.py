import logging
from datetime import timedelta

from toe_review.celery_app import celery_app

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_EMAIL = "system@toe-review"


@celery_app.task(
    name="toe_review.tasks.expiry.expire_sent_documents", ignore_result=True
)
def expire_sent_documents() -> None:
    """Periodic task moving stale ``sent`` documents to ``expired``."""
    from toe_review.config import settings
    from toe_review.db import SessionLocal
    from toe_review.models.toe import TermsOfEngagement, TOEStatus
    from toe_review.schemas.toe import Actor
    from toe_review.services.common import utcnow
    from toe_review.services.toe_lifecycle import lifecycle

    db = SessionLocal()
    try:
        cutoff = utcnow() - timedelta(days=settings.expiry_days)
        stale = (
            db.query(TermsOfEngagement)
            .filter(
                TermsOfEngagement.status == TOEStatus.sent,
                TermsOfEngagement.sent_date <= cutoff,
                TermsOfEngagement.is_active.is_(True),
            )
            .all()
        )
        actor = Actor(email=SYSTEM_ACTOR_EMAIL, name="System")
        count = 0
        for document in stale:
            try:
                locked = lifecycle.lock(db, document.id)
                lifecycle.expire(db, locked, actor)
                lifecycle.commit_transition(db, locked, TOEStatus.sent, actor)
                count += 1
            except Exception as e:
                db.rollback()
                logger.warning("Failed to expire TOE %s: %s", document.id, e)
        logger.info("Expired %d sent TOE(s)", count)
    except Exception as e:
        logger.exception("Failed to expire sent TOEs: %s", e)
    finally:
        db.close()
