import os
from contextlib import nullcontext

# Must be set before the app (and its settings) are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_JSON"] = "false"
os.environ["BACKGROUND_SIDE_EFFECTS"] = "false"

import pytest
from sqlalchemy.orm import sessionmaker

from app.api.deps import get_dispatcher
from app.core.dispatch import InlineDispatcher
from app.db.base import Base
from app.db.session import engine, get_db, get_session_factory
from app.main import app

TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session():
    """
    Fresh in-memory schema per test.

    Application code commits freely; the schema is dropped afterwards instead
    of rolling back an outer transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def override_get_db(db_session):
    def _get_db_override():
        yield db_session

    app.dependency_overrides[get_db] = _get_db_override
    # Side effects run inline on the test session so tests can assert on them
    app.dependency_overrides[get_session_factory] = lambda: (lambda: nullcontext(db_session))
    app.dependency_overrides[get_dispatcher] = lambda: InlineDispatcher()
    yield
    app.dependency_overrides.clear()
