from fastapi import Header, HTTPException

from toe_review.db import SessionLocal
from toe_review.schemas.toe import Actor


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_actor(
    x_actor_email: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
) -> Actor:
    if not x_actor_email or not x_actor_email.strip():
        raise HTTPException(status_code=401, detail="Missing X-Actor-Email header")
    return Actor(email=x_actor_email, name=x_actor_name or None)
