import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Import app and DB dependency function first
from main import app, get_db

# Import database components needed for setup
from database import Base, make_engine
from auth import create_token
import models

TEST_DATABASE_URL = "sqlite:///./jobly-test.db"

test_engine = make_engine(TEST_DATABASE_URL)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create the test database from models for the whole run."""
    db_path = TEST_DATABASE_URL.split("///")[-1]
    if os.path.exists(db_path):
        os.unlink(db_path)

    Base.metadata.create_all(bind=test_engine)

    yield  # Tests run here

    test_engine.dispose()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture(scope="function", autouse=True)
def seed_data(setup_test_database):
    """Reset both tables to three companies and one job per company.

    Returns the job ids in title order (j1, j2, j3).
    """
    session = TestSessionLocal()
    try:
        session.query(models.Job).delete()
        session.query(models.Company).delete()
        for n in (1, 2, 3):
            session.add(
                models.Company(
                    handle=f"c{n}",
                    name=f"C{n}",
                    description=f"Desc{n}",
                    num_employees=n,
                    logo_url=f"http://c{n}.img",
                )
            )
        session.flush()

        jobs = [
            models.Job(title="j1", salary=50000, equity=0, company_handle="c1"),
            models.Job(title="j2", salary=129000, equity=0.025, company_handle="c2"),
            models.Job(title="j3", salary=249000, equity=0.099, company_handle="c3"),
        ]
        session.add_all(jobs)
        session.commit()
        job_ids = [job.id for job in jobs]
    finally:
        session.close()
    return job_ids


@pytest.fixture(scope="function")
def job_ids(seed_data):
    return seed_data


@pytest.fixture(scope="function")  # Function scope for session
def db_session(setup_test_database):  # Depends on DB setup
    """Yields a SQLAlchemy session directly from the test factory."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


# Override the get_db dependency for tests
@pytest.fixture(scope="function")
def override_get_db():
    """Point the get_db dependency at the test database, one session per call."""

    def _override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    original = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = _override_get_db

    yield

    if original:
        app.dependency_overrides[get_db] = original
    else:
        del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def test_client(override_get_db):
    """Provides a test client configured with our test database session."""
    return TestClient(app)


@pytest.fixture(scope="session")
def admin_token():
    return create_token("admin", is_admin=True)


@pytest.fixture(scope="session")
def u1_token():
    return create_token("u1", is_admin=False)
