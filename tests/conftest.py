"""Shared test fixtures and configuration."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rollcall.main import app
from rollcall.db.base import Base
from rollcall.api.deps import get_db
from rollcall.services import CheckinService, CheckinStateStore

from tests.utils import setup_event


# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(autouse=True)
def disable_rate_limiting_for_tests(request):
    """Disable rate limiting for all tests except rate limiting tests."""
    from rollcall.core.rate_limit import limiter

    # Check if this is a rate limiting test (marked with @pytest.mark.rate_limit)
    if "rate_limit" in request.keywords:
        limiter.reset()
        yield
        limiter.reset()
    else:
        limiter.enabled = False
        yield
        limiter.enabled = True


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh database for each test."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a new database session for a test."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def event(db_session):
    """Check-in enabled for every method, with an owner, a moderator and two participants."""
    return setup_event(db_session)


@pytest.fixture
def store(db_session):
    # No backoff sleeps in tests
    return CheckinStateStore(db_session, max_attempts=3, max_wait=0)


@pytest.fixture
def service(db_session, store):
    return CheckinService(db_session, store=store)


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with a test database."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
