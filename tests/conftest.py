"""
tests/conftest.py — Shared pytest configuration and fixtures.

Sets dummy environment variables BEFORE any leadvalidator module is imported,
so that pydantic-settings doesn't fail on missing required fields and the
engine points at an in-memory SQLite database.
"""

import os
import pytest

# ── Set dummy env vars before any app module is imported ─────────────────────
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("NOTIFIER_DRY_RUN", "true")
os.environ.setdefault("WEBHOOK_BACKOFF_SECONDS", "0")


@pytest.fixture
def db():
    """
    Provide a session on a freshly created schema for each test.

    The session module shares one SQLite connection, so background
    sessions opened by the pipeline see the same data.
    """
    from leadvalidator.db.models import Base
    from leadvalidator.db.session import SessionLocal, engine

    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def project(db):
    """A committed project with a webhook configured."""
    from leadvalidator.db.repository import create_project

    project = create_project(
        db,
        name="Acme contact form",
        webhook_url="https://hooks.acme.test/leads",
        min_score=70,
    )
    db.commit()
    return project
