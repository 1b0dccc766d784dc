"""Shared fixtures for the expiry letter tests."""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models.db_models import LetterBatchDB  # noqa: F401 - registers the table
from app.models.letters import RawRecord
from app.services.expiry_letters import LetterGroupingEngine

ISSUE_DATE = date(2025, 5, 1)


@pytest.fixture
def make_record():
    """Factory for valid RawRecords; override any field per test."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "client_name": "Juan Pérez",
            "policy_number": f"AUT-{counter['n']:03d}",
            "insurer": "Seguros Illimani",
            "coverage_category": "Automotor",
            "expiry_date": "2025-06-15",
            "insured_value": 25000.0,
            "premium": 1200.0,
            "insured_matter": "Toyota Hilux 2020",
            "phone": "71234567",
            "email": "juan.perez@example.com",
            "agent_name": "María Salazar",
            "beneficiary": None,
            "record_id": f"rec-{counter['n']}",
        }
        values.update(overrides)
        return RawRecord(**values)

    return _make


@pytest.fixture
def engine():
    """Grouping engine with a fixed issue date and predictable ids."""
    counter = {"n": 0}

    def next_id():
        counter["n"] += 1
        return f"letter-{counter['n']}"

    return LetterGroupingEngine(today=ISSUE_DATE, id_factory=next_id)


@pytest.fixture
def client():
    """TestClient bound to an in-memory SQLite database."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides = {}
    Base.metadata.drop_all(bind=test_engine)
