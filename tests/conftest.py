"""Shared pytest fixtures for growthlab tests."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from growthlab.db.schema import Base
from growthlab.models.domain import ABTestEntity

# Fixed clock for date-range and history timestamps
NOW = datetime(2025, 6, 15, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine with the growthlab schema."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(engine):
    """Create a database session for testing."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def make_test():
    """Factory for lab test entities with sensible defaults."""
    counter = {"next_id": 1}

    def _make(**overrides) -> ABTestEntity:
        fields = {
            "id": counter["next_id"],
            "sku": f"SKU-{counter['next_id']:04d}",
            "product_name": "Ceramic Mug",
            "category": "Kitchen",
            "platform": "WB",
            "test_type": "CTR",
            "visibility": {"lab": True},
            "created_at": NOW,
        }
        fields.update(overrides)
        counter["next_id"] += 1
        return ABTestEntity(**fields)

    return _make
