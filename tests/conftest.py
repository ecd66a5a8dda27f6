import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_FORMAT", "text")

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import event  # noqa: E402

from toe_review import models  # noqa: E402,F401
from toe_review.api.deps import get_db  # noqa: E402
from toe_review.db import Base, SessionLocal, engine  # noqa: E402
from toe_review.main import app  # noqa: E402
from toe_review.schemas.toe import Actor  # noqa: E402


# pysqlite defers BEGIN on its own, which breaks SAVEPOINT handling
@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest.fixture()
def db_session():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def event_delay():
    with patch("toe_review.tasks.events.process_event.delay") as delay:
        yield delay


@pytest.fixture()
def actor():
    return Actor(email="author@firm.test", name="Ada Author")


@pytest.fixture()
def reviewers():
    return [
        Actor(email="rev1@firm.test", name="Rev One"),
        Actor(email="rev2@firm.test", name="Rev Two"),
        Actor(email="rev3@firm.test", name="Rev Three"),
    ]


@pytest.fixture()
def actor_headers(actor):
    return {"X-Actor-Email": actor.email, "X-Actor-Name": actor.name}


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
