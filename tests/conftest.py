"""Shared test fixtures for CareCircle tests."""

from __future__ import annotations

import sys
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("CARE_TIMEZONE", "Asia/Tokyo")
    monkeypatch.setenv("DB_PATH", ":memory:")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


@pytest.fixture
def tz() -> ZoneInfo:
    """The care circle timezone used throughout the tests."""
    return ZoneInfo("Asia/Tokyo")


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from carecircle.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def payload_cipher():
    """Create a PayloadCipher with a fresh test key."""
    from carecircle.core.storage.encryption import PayloadCipher

    return PayloadCipher(PayloadCipher.generate_key())


@pytest.fixture
def care_repository(health_db, payload_cipher):
    """Create a CareRepository backed by in-memory SQLite."""
    from carecircle.core.storage.repository import CareRepository

    return CareRepository(health_db, payload_cipher)


@pytest.fixture
def audit_logger(health_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from carecircle.core.audit.logger import AuditLogger

    return AuditLogger(health_db)


@pytest.fixture
def record_store(care_repository):
    """Create a RepositoryRecordStore over the in-memory repository."""
    from carecircle.domains.health.connectors.repository_store import RepositoryRecordStore

    return RepositoryRecordStore(care_repository)


@pytest.fixture
def in_memory_store():
    """Create an InMemoryRecordStore."""
    from carecircle.domains.health.connectors.providers import InMemoryRecordStore

    return InMemoryRecordStore()
