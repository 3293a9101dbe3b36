import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from app.core.database import get_database
from app.models.database import Base, ItemModel, SuiteModel
from app.repositories.implementations.sql_execution_repository import SQLExecutionRepository
from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.services.run_service import RunService
from app.services.start_test_service import ResumeDiscardController
from app.services.status_service import StatusAggregator
from app.services.suite_service import SuiteService


@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite database file per test"""
    engine = create_engine(
        f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def repository(db_session):
    return SQLExecutionRepository(db_session)


@pytest.fixture
def run_service(repository):
    return RunService(repository, StatusAggregator(repository), max_create_attempts=3)


@pytest.fixture
def controller(repository, run_service):
    return ResumeDiscardController(repository, run_service)


@pytest.fixture
def suite_service(db_session, repository):
    return SuiteService(repository, SQLTestCaseRepository(db_session), StatusAggregator(repository))


@pytest.fixture
def suite(db_session):
    suite = SuiteModel(project_id=1, name="Release 1.0 regression", purpose="Regression")
    db_session.add(suite)
    db_session.commit()
    return suite


@pytest.fixture
def item(db_session, suite):
    item = ItemModel(suite_id=suite.id, name="Login", requirement_ids=["REQ-1", "REQ-2"])
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture
def test_client(session_factory):
    """Synchronous test client bound to the per-test database"""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_database] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
