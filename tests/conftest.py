"""
Shared pytest fixtures and configuration for the LedgerShare test suite.

This module provides:
- Hypothesis configuration for property-based testing
- In-memory collaborators wired the same way the app factory wires Redis
- Markers assigned from the test directory
"""

import pytest
from hypothesis import HealthCheck, Phase, settings

from ledgershare.application.event_publisher import EventPublisher
from ledgershare.application.file_share_service import FileShareService
from ledgershare.application.reclamation_scheduler import ReclamationScheduler
from ledgershare.domain.file_records.lifecycle import FileLifecycleService
from ledgershare.domain.file_records.token_issuer import TokenIssuer
from ledgershare.domain.ledger.services import LedgerAnchorClient
from ledgershare.domain.ownership.services import OwnershipVerifier

from tests.fixtures.domain_fixtures import FrozenClock, create_file_record
from tests.fixtures.mock_repositories import (
    InMemoryAnchorLedger,
    InMemoryBlobStorage,
    InMemoryFileRecordRepository,
    StubSignatureRecoverer,
)

# Register Hypothesis profiles
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
)
settings.register_profile(
    "ci",
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile("default")


# =============================================================================
# Collaborators
# =============================================================================

@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def records() -> InMemoryFileRecordRepository:
    return InMemoryFileRecordRepository()


@pytest.fixture
def storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def ledger() -> InMemoryAnchorLedger:
    return InMemoryAnchorLedger()


@pytest.fixture
def recoverer() -> StubSignatureRecoverer:
    return StubSignatureRecoverer()


@pytest.fixture
def sleeps():
    """Collects the delays a retry policy asked to sleep for."""
    return []


@pytest.fixture
def ledger_client(ledger, sleeps) -> LedgerAnchorClient:
    return LedgerAnchorClient(ledger, max_retries=3, base_delay=2.0, sleep=sleeps.append)


@pytest.fixture
def event_publisher() -> EventPublisher:
    return EventPublisher()


@pytest.fixture
def published(event_publisher):
    """Every event published through ``event_publisher``, in order."""
    from ledgershare.domain.events import DomainEvent

    events = []
    event_publisher.subscribe(DomainEvent, events.append)
    return events


@pytest.fixture
def lifecycle(records, storage, recoverer, clock, event_publisher) -> FileLifecycleService:
    return FileLifecycleService(
        records,
        storage,
        OwnershipVerifier(recoverer),
        clock=clock,
        lock_wait_seconds=0.5,
        event_publisher=event_publisher,
    )


@pytest.fixture
def file_share_service(
    lifecycle, records, storage, ledger_client, clock, event_publisher
) -> FileShareService:
    return FileShareService(
        lifecycle,
        records,
        storage,
        ledger_client,
        token_issuer=TokenIssuer(),
        clock=clock,
        max_upload_bytes=1024,
        event_publisher=event_publisher,
    )


@pytest.fixture
def scheduler(records, storage, clock, event_publisher) -> ReclamationScheduler:
    return ReclamationScheduler(
        records,
        storage,
        interval_seconds=3600,
        clock=clock,
        lock_wait_seconds=0.1,
        event_publisher=event_publisher,
    )


@pytest.fixture
def stored_record(records, storage):
    """Factory storing a record and its blob: ``stored_record(view_limit=1)``."""

    def _store(content: bytes = b"hello world", **overrides):
        record = create_file_record(file_size=len(content), **overrides)
        records.put(record)
        storage.save(record.blob_ref, content)
        return record

    return _store


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require external services)"
    )
    config.addinivalue_line(
        "markers", "property: Property-based tests using Hypothesis"
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their location.

    - tests/unit/* -> @pytest.mark.unit
    - tests/integration/* -> @pytest.mark.integration
    - tests/property/* -> @pytest.mark.property
    """
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path or "\\unit\\" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path or "\\integration\\" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/property/" in test_path or "\\property\\" in test_path:
            item.add_marker(pytest.mark.property)
