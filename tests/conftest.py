"""Pytest configuration and shared fixtures."""

import os
import tempfile
from pathlib import Path

import pytest
from alembic.config import Config

from alembic import command

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


@pytest.fixture(scope="function")
def temp_db_path():
    """Create a temporary database file for testing."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=".db") as tmp:
        db_path = tmp.name
    yield db_path
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.remove(db_path + suffix)


@pytest.fixture(scope="function")
def test_db_schema(temp_db_path):
    """Create test database schema using Alembic migration."""
    alembic_config = Config(str(ALEMBIC_INI))
    alembic_config.set_main_option(
        "sqlalchemy.url", f"sqlite:///{os.path.abspath(temp_db_path)}"
    )
    command.upgrade(alembic_config, "head")
    yield temp_db_path


@pytest.fixture(scope="function")
def test_db(test_db_schema):
    """Create a Database instance for testing."""
    from foliohub.database import Database

    return Database(db_path=test_db_schema, encryption_key=None)


@pytest.fixture
def fmp_base():
    return "https://fmp.test"


@pytest.fixture
def fmp_client(fmp_base):
    """FMP client pointed at a mockable host."""
    from foliohub.market_data import FMPClient

    return FMPClient(api_key="test-key", base_url=fmp_base)


@pytest.fixture
def no_retry_sleep(monkeypatch):
    """Make tenacity back off instantly."""
    from foliohub.market_data import FMPClient

    monkeypatch.setattr(FMPClient._get.retry, "sleep", lambda seconds: None)


@pytest.fixture
def sample_holdings():
    """Request-body holdings: 2 A, 1 B."""
    return [{"sym": "A", "shares": 2}, {"sym": "b", "shares": 1}]


@pytest.fixture
def sample_discount_row():
    """Sample discount_positions row."""
    return {
        "id": 1,
        "article_id": "ftv-2025-03",
        "article_title": "FTV March",
        "article_date": "2025-03-01T00:00:00",
        "symbol": "aapl",
        "name": "Apple Inc",
        "recommendation": "Buy",
        "allocation": 5.0,
        "entry_date": "2024-06-01T00:00:00",
        "entry_price": 100.0,
        "current_price": 150.0,
        "return_pct": 50.0,
        "fair_value": 180.0,
        "stop_price": 90.0,
        "notes": None,
        "as_of_date": "2025-03-02T00:00:00",
        "created_at": "2025-03-03T10:00:00",
        "updated_at": "2025-03-03T10:00:00",
    }
