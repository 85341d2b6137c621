"""Shared fixtures for the HelmetPulse test suite."""

import os

# Settings are read at import time; point them at throwaway resources first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  registers tables on Base.metadata
from app.database import Base, make_engine
from app.services.catalog import get_or_create_helmet
from app.services.reconciler import HelmetReconciler


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_helmet(db):
    """Create (or fetch) a catalog helmet with sensible defaults."""

    def _make(player="Patrick Mahomes", team="Chiefs", helmet_type="fullsize-authentic", design_type="regular", **kwargs):
        helmet, _ = get_or_create_helmet(
            db,
            player=player,
            team=team,
            helmet_type=helmet_type,
            design_type=design_type,
            **kwargs,
        )
        return helmet

    return _make


@pytest.fixture
def exact_reconciler(db):
    return HelmetReconciler(db, relaxed=False)


@pytest.fixture
def relaxed_reconciler(db):
    return HelmetReconciler(db, relaxed=True)
