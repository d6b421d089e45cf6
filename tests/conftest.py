import os
import tempfile

# Settings are read once and cached, so the environment must be in place before any surveyhub import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RESPONSE_STORE"] = "sql"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="surveyhub-test-logs-")
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import surveyhub.models  # noqa: F401
from surveyhub.core.security.auth import create_access_token, create_hashed_password
from surveyhub.core.security.principal import Principal
from surveyhub.crud.surveys import SurveyRepository
from surveyhub.db.base import Base
from surveyhub.db.session import get_db
from surveyhub.main import app
from surveyhub.models.user import Role, RoleType, User
from surveyhub.schemas.survey import SurveyCreate
from surveyhub.services.synchronizer import SurveySynchronizer

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
def engine():
    # One shared in-memory database for every session opened during a test
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def password():
    return TEST_PASSWORD


@pytest.fixture(scope="session")
def hashed_password(password):
    return create_hashed_password(password)


@pytest.fixture
def users(db, hashed_password):
    roles = {role_type: Role(role=role_type) for role_type in RoleType}
    db.add_all(roles.values())
    db.commit()

    people = {
        "owner": User(name="Olive Owner", email="owner@example.com", username="owner",
                      role_id=roles[RoleType.USER].id, hashed_password=hashed_password),
        "stranger": User(name="Sam Stranger", email="stranger@example.com", username="stranger",
                         role_id=roles[RoleType.USER].id, hashed_password=hashed_password),
        "admin": User(name="Ada Admin", email="admin@example.com", username="admin",
                      role_id=roles[RoleType.ADMIN].id, hashed_password=hashed_password),
    }
    db.add_all(people.values())
    db.commit()
    return people


@pytest.fixture
def principals(users):
    return {name: Principal.from_user(user) for name, user in users.items()}


@pytest.fixture
def make_survey(db):
    """Create a survey (and its questions) through the synchronizer, as the API does."""
    def _make(principal, questions=(), title="Customer feedback", **fields):
        payload = SurveyCreate(title=title, questions=list(questions), **fields)
        return SurveySynchronizer(SurveyRepository(db)).create_survey(principal, payload)
    return _make


@pytest.fixture
def client(session_factory, users):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(username):
        token = create_access_token({"sub": username})
        return {"Authorization": f"Bearer {token}"}
    return _headers
