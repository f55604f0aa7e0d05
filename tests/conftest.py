from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from travelweb.api.deps import get_estimator, get_ingestion_service, get_segment_store
from travelweb.api.main import app
from travelweb.components.estimator import CompletionEstimator
from travelweb.components.ingestion import EventIngestionService, InMemorySegmentStore

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)


class ManualClock:
    """Wall and monotonic clock advanced by hand."""

    def __init__(self, start: datetime = NOW) -> None:
        self._start = start
        self._elapsed = 0.0

    def now_utc(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return 500.0 + self._elapsed

    def advance(self, seconds: float) -> None:
        self._elapsed += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def memory_store() -> InMemorySegmentStore:
    return InMemorySegmentStore()


@pytest.fixture
def ingestion_service(memory_store: InMemorySegmentStore, clock: ManualClock) -> EventIngestionService:
    return EventIngestionService(store=memory_store, time_port=clock)


@pytest.fixture
def api_client(
    memory_store: InMemorySegmentStore,
    ingestion_service: EventIngestionService,
    clock: ManualClock,
) -> Iterator[TestClient]:
    """
    TestClient over the real app with storage swapped for memory.

    The lifespan is not entered, so no rules file is needed.
    """
    app.dependency_overrides[get_segment_store] = lambda: memory_store
    app.dependency_overrides[get_ingestion_service] = lambda: ingestion_service
    app.dependency_overrides[get_estimator] = lambda: CompletionEstimator(
        source=ingestion_service, time_port=clock
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
