"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- A scan oracle with fixed readings
- Sample scan readings and fields
- Field aggregate, ledger and session objects
- Mock store client
- FastAPI test client
"""
import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from fieldquest.main import app
from fieldquest.domain.models import Field, ImageReference, ScanReading, ScanResult, Stage
from fieldquest.infrastructure.store_client import FieldStoreClient
from fieldquest.services.application.game_session import GameSession
from fieldquest.services.domain.field_aggregate import FieldAggregate, GridConfig
from fieldquest.services.domain.task_ledger import RewardAccount, TaskLedger


GROWTH_DELAY = 0.01


class FixedScanOracle:
    """Scan oracle returning a preset reading after an optional delay."""

    def __init__(self, reading: ScanReading, delay: float = 0.0):
        self.reading = reading
        self.delay = delay
        self.calls: list[ImageReference] = []

    async def analyze(self, image: ImageReference) -> ScanReading:
        self.calls.append(image)
        await asyncio.sleep(self.delay)
        return self.reading


def make_reading(stage: str = "empty", **overrides) -> ScanReading:
    values = {
        "detected_stage": stage,
        "moisture_level": 45,
        "soil_condition": "Good",
        "recommendations": ["Consider adding organic matter"],
        "size_acres": 2.5,
    }
    values.update(overrides)
    return ScanReading(**values)


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_reading() -> ScanReading:
    """A valid oracle reading for an unploughed field."""
    return make_reading("empty")


@pytest.fixture
def sample_scan_result() -> ScanResult:
    """A validated scan result."""
    return ScanResult(
        detected_stage=Stage.EMPTY,
        moisture_level=45,
        soil_condition="Good",
        recommendations=["Consider adding organic matter"],
        size_acres=2.5,
    )


@pytest.fixture
def sample_image() -> ImageReference:
    """A decoded image handed over by the upload collaborator."""
    return ImageReference(name="field.jpg", content_type="image/jpeg", data=b"\xff\xd8fake")


@pytest.fixture
def stored_field() -> Field:
    """A stage-only field as kept in the store."""
    return Field(
        id="field-1",
        name="North Plot",
        user_id="user-1",
        size_acres=2.5,
        soil_condition="Fair",
        moisture_level=40,
        current_stage=Stage.EMPTY,
        last_scanned_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
    )


# ============================================================
# Domain Fixtures
# ============================================================

@pytest.fixture
def aggregate() -> FieldAggregate:
    """Field aggregate with the 10x10 product grid."""
    return FieldAggregate(GridConfig(width=10, height=10))


@pytest.fixture
def grid_field(aggregate, sample_scan_result) -> Field:
    """A freshly created 10x10 grid field."""
    return aggregate.create_field(10, 10, sample_scan_result, field_id="grid-1")


@pytest.fixture
def account() -> RewardAccount:
    return RewardAccount()


@pytest.fixture
def ledger(account) -> TaskLedger:
    """Ledger loaded with the reference task catalog."""
    return TaskLedger(account)


@pytest.fixture
def oracle(sample_reading) -> FixedScanOracle:
    return FixedScanOracle(sample_reading)


@pytest.fixture
def session(oracle, aggregate) -> GameSession:
    """Session without a field, with a short growth delay."""
    game = GameSession(
        oracle=oracle,
        user_id="user-1",
        starting_points=0,
        aggregate=aggregate,
        growth_delay=GROWTH_DELAY,
    )
    yield game
    game.close()


@pytest.fixture
async def field_session(session, sample_image) -> GameSession:
    """Session that has already scanned its grid field."""
    await session.scan_field(sample_image)
    return session


# ============================================================
# Mock Store Fixtures
# ============================================================

@pytest.fixture
def mock_store(stored_field):
    """Create a mock store client that accepts every write."""
    store = AsyncMock(spec=FieldStoreClient)
    store.get_field.return_value = stored_field
    store.list_fields.return_value = [stored_field]
    store.upsert_field.side_effect = lambda field: field
    store.insert_scan.return_value = None
    store.update_total_points.return_value = None
    store.get_total_points.return_value = 1285
    return store


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)
